"""
config.py — ITR engine settings.

Usage:
    from itr_engine.config import settings
    print(settings.default_financial_year)

Every setting can be overridden with an ITR_ENGINE_-prefixed environment variable
or a .env file in the working directory.
"""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

# YAML rule files shipped with the package, one per financial year
PACKAGED_RULES_DIR = Path(__file__).parent / "rules" / "data"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ITR_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Rules ---
    # Directory of <financial_year>.yaml files. None → packaged rules.
    rules_dir: Optional[Path] = None
    default_financial_year: str = "2024-25"

    # --- Application ---
    log_level: str = "INFO"
    debug: bool = False
    app_version: str = "0.1.0"

    @property
    def resolved_rules_dir(self) -> Path:
        """Rules directory actually used by the registry."""
        return self.rules_dir or PACKAGED_RULES_DIR


# Module-level singleton: import this throughout the codebase
settings = Settings()
