"""
The package's own ``sfdx`` launcher.

Installing sfdx-prebuilt puts an ``sfdx`` console script on PATH that runs
the binary recorded in ``location.py``. The resolver must not mistake this
launcher for a real CLI install, and a launcher from another environment
("peer" install) is followed back to that environment's location record.
"""

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from sfdxprebuilt.location_store import LOCATION_FILENAME

logger = logging.getLogger(__name__)

# Present in every console script generated for this module's entry point.
SHIM_MARKER = "sfdxprebuilt.shim"

# Legacy layout of a global npm install on Windows.
LEGACY_SHIM_FRAGMENT = os.path.join("npm", "sfdxprebuilt")


def is_shim_file(path: Path) -> bool:
    """True if the file at ``path`` is a launcher generated for this package."""
    with open(path, "rb") as f:
        return SHIM_MARKER.encode("ascii") in f.read()


def peer_location_candidates(shim_path: Path) -> List[Path]:
    """
    Location records a launcher may belong to.

    For a launcher at ``<prefix>/bin/sfdx`` (``<prefix>\\Scripts\\sfdx.exe``
    on Windows) the package lives either next to it (``<prefix>/lib``) or in
    the environment's site-packages.
    """
    real = Path(os.path.realpath(shim_path))
    prefix = real.parent.parent

    candidates = [prefix / "lib" / LOCATION_FILENAME]
    candidates.extend(
        sorted(
            prefix.glob(f"lib/python*/site-packages/sfdxprebuilt/lib/{LOCATION_FILENAME}")
        )
    )
    candidates.append(
        prefix / "Lib" / "site-packages" / "sfdxprebuilt" / "lib" / LOCATION_FILENAME
    )
    return candidates


def is_own_shim(found: Path, own_location_file: Path) -> bool:
    """
    True if ``found`` is the launcher of this very installation.

    A launcher is ours when one of its candidate location records is our own
    record file; the legacy ``npm/sfdxprebuilt`` path fragment is honoured too.
    """
    if LEGACY_SHIM_FRAGMENT in str(found):
        return True

    own = os.path.normcase(os.path.abspath(own_location_file))
    for candidate in peer_location_candidates(found):
        if os.path.normcase(os.path.abspath(candidate)) == own:
            return True
    return False


def main(argv: Optional[List[str]] = None) -> int:
    """Run the recorded sfdx binary with the given arguments."""
    from sfdxprebuilt import get_binary_path

    if argv is None:
        argv = sys.argv[1:]

    binary = get_binary_path()
    if binary is None:
        print(
            "sfdx is not installed; run 'sfdx-prebuilt install' first",
            file=sys.stderr,
        )
        return 127

    try:
        return subprocess.call([str(binary), *argv])
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
