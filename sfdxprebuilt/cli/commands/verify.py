"""
Verify command implementation.

Checks that the recorded binary exists, belongs to the configured target and
reports the version currently published in the manifest.
"""

import logging

from sfdxprebuilt.core.config import load_config
from sfdxprebuilt.core.download import build_request_options
from sfdxprebuilt.location_store import LocationStore
from sfdxprebuilt.locator import probe_binary
from sfdxprebuilt.manifest import ManifestFetcher

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the verify command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 if the recorded binary is valid, 1 otherwise)
    """
    config = load_config(config_file=args.config, install_root=args.install_root)
    manifest = ManifestFetcher(
        config.manifest_url, build_request_options(config)
    ).get_manifest()

    store = LocationStore(config.install_root)
    result = probe_binary(store.location_file, manifest.version, config.target())
    if not result.found:
        logger.error(f"Verification failed: {result.reason}")
        return 1

    logger.info(f"SFDX {manifest.version} verified at {result.path}")
    return 0
