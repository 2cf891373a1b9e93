"""
Runs the install script bundled with POSIX builds of the Salesforce CLI.
"""

import logging
import subprocess
from pathlib import Path

from sfdxprebuilt.core.exceptions import PostInstallError
from sfdxprebuilt.core.platform import TargetIdentity

logger = logging.getLogger(__name__)

INSTALL_SCRIPT = "install"


def run_install_script(install_dir: Path, target: TargetIdentity) -> bool:
    """
    Run ``<install_dir>/install``, retrying once with sudo on failure.

    Non-POSIX targets have no script and are skipped, as is a build that
    does not ship one.

    Args:
        install_dir: Directory the build was placed into
        target: Target identity of the run

    Returns:
        True if the script ran successfully, False if it was skipped

    Raises:
        PostInstallError: If the script fails with and without sudo
    """
    if not target.is_posix:
        logger.debug(f"No post-install step for {target}")
        return False

    installer = Path(install_dir) / INSTALL_SCRIPT
    if not installer.is_file():
        logger.warning(f"No install script at {installer}, skipping post-install")
        return False

    logger.info(f"Installing SFDX using {installer}")
    try:
        subprocess.run([str(installer)], check=True)
        return True
    except (subprocess.CalledProcessError, OSError) as e:
        logger.warning(f"Install script failed ({e}), retrying with sudo")

    try:
        subprocess.run(["sudo", str(installer)], check=True)
    except (subprocess.CalledProcessError, OSError) as e:
        raise PostInstallError(
            f"Install script {installer} failed with sudo: {e}"
        ) from e
    return True


__all__ = ["run_install_script", "INSTALL_SCRIPT"]
