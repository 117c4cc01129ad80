import sys

from arlog_engine.main import main

sys.exit(main())
