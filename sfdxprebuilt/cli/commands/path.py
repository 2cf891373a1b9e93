"""
Path command implementation.

Prints the location of the installed binary.
"""

import logging

from sfdxprebuilt import get_binary_path
from sfdxprebuilt.core.config import load_config

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the path command.

    Returns:
        Exit code (0 if a binary is recorded, 1 otherwise)
    """
    config = load_config(config_file=args.config, install_root=args.install_root)
    binary = get_binary_path(config.install_root)
    if binary is None:
        logger.error(
            f"sfdx is not installed under {config.install_root}; "
            "run 'sfdx-prebuilt install' first"
        )
        return 1

    print(binary)
    return 0
