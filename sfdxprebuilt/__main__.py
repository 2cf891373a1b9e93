"""
Entry point for running the installer as a module.

Usage: python -m sfdxprebuilt [command] [options]
"""

import sys

from sfdxprebuilt.cli.parser import main

if __name__ == "__main__":
    sys.exit(main())
