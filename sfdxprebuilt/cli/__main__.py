"""
Entry point for running the sfdx-prebuilt CLI as a module.

Usage: python -m sfdxprebuilt.cli [command] [options]
"""

import sys

from .parser import main

if __name__ == "__main__":
    sys.exit(main())
