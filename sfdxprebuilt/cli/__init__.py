"""
sfdx-prebuilt CLI module.

This module provides the command-line interface of the installer.
"""

from .parser import CLI, main

__all__ = ["CLI", "main"]
