"""
Install command implementation.

Resolves an sfdx binary matching the manifest version: an earlier install,
a CLI already on PATH, or a fresh download for the target platform.
"""

import logging

from sfdxprebuilt.cli.progress import ProgressBar
from sfdxprebuilt.core.config import load_config
from sfdxprebuilt.resolver import InstallResolver, ResolverContext

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 if installation failed)
    """
    config = load_config(
        config_file=args.config,
        platform=args.platform,
        arch=args.arch,
        tmp_dir=args.tmp_dir,
        install_root=args.install_root,
    )
    logger.debug(f"Configuration: {config}")

    progress = None if args.no_progress or args.quiet else ProgressBar()
    context = ResolverContext(config, progress_callback=progress)

    try:
        result = InstallResolver(context).run()
    finally:
        if progress is not None:
            progress.finish()

    logger.debug(
        "State history: " + " -> ".join(state.value for state in result.history)
    )
    return result.exit_code
