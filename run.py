#!/usr/bin/env python3
import sys
import os

# Add project root to path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from arlog_engine.main import main

if __name__ == "__main__":
    sys.exit(main())
