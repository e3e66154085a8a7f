import sys

from itr_engine.main import main

sys.exit(main())
