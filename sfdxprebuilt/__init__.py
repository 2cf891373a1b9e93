"""
sfdx-prebuilt - installs a prebuilt Salesforce CLI (sfdx).

Run ``sfdx-prebuilt install`` (or ``python -m sfdxprebuilt install``) to
resolve a binary matching the published manifest version, then use
get_binary_path() to find it.

Example:
    >>> import sfdxprebuilt
    >>> sfdxprebuilt.get_binary_path()
    PosixPath('/.../sfdxprebuilt/lib/sfdx/bin/sfdx')
"""

import logging
from pathlib import Path
from typing import Optional

from sfdxprebuilt.core.config import load_config
from sfdxprebuilt.core.filesystem import ensure_mode_bits
from sfdxprebuilt.location_store import LocationStore

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

# Read and execute for everyone
RUNNABLE_MODE = 0o555


def get_binary_path(install_root: Optional[Path] = None) -> Optional[Path]:
    """
    Path of the installed sfdx binary.

    Makes sure the binary is readable and executable by all users.

    Args:
        install_root: Directory holding location.py (default: configured root)

    Returns:
        Absolute binary path, or None if nothing has been installed
    """
    if install_root is None:
        install_root = load_config().install_root

    store = LocationStore(install_root)
    record = store.read()
    if record is None:
        return None

    binary = record.resolve(store.lib_dir)
    try:
        ensure_mode_bits(binary, RUNNABLE_MODE)
    except OSError as e:
        logger.debug(f"Could not update permissions of {binary}: {e}")
    return binary


__all__ = ["__version__", "get_binary_path"]
