"""
Test configuration for the itr_engine test suite.

sys.path is configured so BOTH import styles resolve:
  - 'from demo_profiles import ...'  (fixture modules beside the tests)
  - 'from itr_engine...'             (the package, from the project root)

This handles pytest being run from the project root or from itr_engine/tests/.
"""
import sys
from pathlib import Path

import pytest

_tests_dir = Path(__file__).parent                 # .../itr_engine/tests/
_project_root = _tests_dir.parent.parent           # .../

for _path in (_project_root, _tests_dir):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))


@pytest.fixture
def rules_2024():
    from itr_engine.rules.loader import get_rules
    return get_rules("2024-25")


@pytest.fixture
def rules_2025():
    from itr_engine.rules.loader import get_rules
    return get_rules("2025-26")
