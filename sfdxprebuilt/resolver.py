"""
Install resolution for the Salesforce CLI.

The resolver is an explicit state machine::

    CHECKING_LIB -> CHECKING_PATH -> DOWNLOADING -> EXTRACTING -> PLACING
        -> INSTALLING_POST_STEPS -> RECORDING -> DONE

``CHECKING_LIB`` and ``CHECKING_PATH`` may jump straight to ``DONE`` when a
usable binary already exists. Any exception escaping a state ends the run in
``FAILED``. All per-run state (configuration, target identity, cached
manifest, intermediate paths) lives on a single ResolverContext.

Example:
    >>> from sfdxprebuilt.core.config import load_config
    >>> from sfdxprebuilt.resolver import InstallResolver, ResolverContext
    >>> result = InstallResolver(ResolverContext(load_config())).run()
    >>> result.exit_code
    0
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from sfdxprebuilt.acquirer import Acquirer, DownloadArtifact
from sfdxprebuilt.core.config import InstallerConfig
from sfdxprebuilt.core.download import ProgressCallback, build_request_options
from sfdxprebuilt.core.exceptions import (
    BinaryPermissionError,
    ConfigurationError,
    ISSUES_URL,
    UnsupportedPlatformError,
)
from sfdxprebuilt.core.filesystem import clean_path, find_executable
from sfdxprebuilt.core.platform import TargetIdentity, detect_host
from sfdxprebuilt.locator import check_binary_version, find_valid_binary
from sfdxprebuilt.location_store import LocationRecord, LocationStore
from sfdxprebuilt.manifest import ManifestFetcher, VersionManifest
from sfdxprebuilt.post_install import run_install_script
from sfdxprebuilt.shim import is_own_shim, is_shim_file, peer_location_candidates

logger = logging.getLogger(__name__)

INSTALL_DIRNAME = "sfdx"
BINARY_NAME = "sfdx"
EXECUTABLE_MODE = 0o755


class InstallState(Enum):
    """States of an installer run."""

    CHECKING_LIB = "checking_lib"
    CHECKING_PATH = "checking_path"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    PLACING = "placing"
    INSTALLING_POST_STEPS = "installing_post_steps"
    RECORDING = "recording"
    DONE = "done"
    FAILED = "failed"


class InstallSource(Enum):
    """Where the resolved binary came from."""

    LIB = "lib"  # previous install of this package
    GLOBAL = "global"  # another sfdx-prebuilt install found on PATH
    PATH = "path"  # manually installed CLI found on PATH
    DOWNLOAD = "download"  # freshly acquired


@dataclass
class InstallResult:
    """
    Outcome of an installer run.

    Attributes:
        state: Terminal state (DONE or FAILED)
        exit_code: Process exit code for the run
        binary_path: Resolved sfdx binary on success
        source: Where the binary came from on success
        error: Exception that ended a failed run
        history: States visited, in order, ending with the terminal state
    """

    state: InstallState
    exit_code: int
    binary_path: Optional[Path] = None
    source: Optional[InstallSource] = None
    error: Optional[BaseException] = None
    history: List[InstallState] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state is InstallState.DONE


class ResolverContext:
    """
    Everything one installer run needs, constructed once per run.

    Args:
        config: Installer configuration
        host: Host identity (default: detected)
        search_path: Executable search path (default: cleaned $PATH)
        progress_callback: Optional download progress callback
    """

    def __init__(
        self,
        config: InstallerConfig,
        host: Optional[TargetIdentity] = None,
        search_path: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.config = config
        self.target = config.target()
        self.host = host or detect_host()

        self.lib_dir = Path(config.install_root)
        self.install_dir = self.lib_dir / INSTALL_DIRNAME
        self.store = LocationStore(self.lib_dir)

        if search_path is None:
            search_path = clean_path(os.environ.get("PATH", ""))
        self.search_path = search_path

        self.request_options = build_request_options(config)
        self.manifest_fetcher = ManifestFetcher(
            config.manifest_url, self.request_options
        )
        self.acquirer = Acquirer(
            self.target,
            config,
            request_options=self.request_options,
            progress_callback=progress_callback,
        )

        # Products of individual states
        self.artifact: Optional[DownloadArtifact] = None
        self.extracted_path: Optional[Path] = None
        self.resolved_path: Optional[Path] = None
        self.source: Optional[InstallSource] = None

    @property
    def manifest(self) -> VersionManifest:
        """Version manifest, fetched on first access."""
        return self.manifest_fetcher.get_manifest()

    @property
    def binary_location(self) -> Path:
        """Where a freshly placed build keeps its executable."""
        return self.install_dir / "bin" / self.target.executable_name

    @property
    def is_cross_install(self) -> bool:
        return self.target != self.host

    def resolved(self, path: Path, source: InstallSource) -> InstallState:
        self.resolved_path = Path(path)
        self.source = source
        return InstallState.DONE


class InstallResolver:
    """Drives a ResolverContext through the install states."""

    def __init__(self, context: ResolverContext):
        self.context = context
        self._handlers: Dict[InstallState, Callable[[], InstallState]] = {
            InstallState.CHECKING_LIB: self._check_lib,
            InstallState.CHECKING_PATH: self._check_path,
            InstallState.DOWNLOADING: self._download,
            InstallState.EXTRACTING: self._extract,
            InstallState.PLACING: self._place,
            InstallState.INSTALLING_POST_STEPS: self._post_install,
            InstallState.RECORDING: self._record,
        }

    def run(self) -> InstallResult:
        """
        Run the state machine to a terminal state.

        Returns:
            InstallResult with exit code 0 on DONE and 1 on FAILED
        """
        ctx = self.context
        state = InstallState.CHECKING_LIB
        history: List[InstallState] = []

        try:
            while state is not InstallState.DONE:
                history.append(state)
                logger.debug(f"Install state: {state.value}")
                state = self._handlers[state]()
        except Exception as e:
            history.append(InstallState.FAILED)
            logger.error(f"SFDX installation failed: {e}")
            if isinstance(e, ConfigurationError) and not isinstance(
                e, UnsupportedPlatformError
            ):
                logger.error(f"Please report this issue at {ISSUES_URL}")
            logger.debug("Installation failure details", exc_info=True)
            return InstallResult(
                state=InstallState.FAILED, exit_code=1, error=e, history=history
            )

        history.append(InstallState.DONE)
        return InstallResult(
            state=InstallState.DONE,
            exit_code=0,
            binary_path=ctx.resolved_path,
            source=ctx.source,
            history=history,
        )

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _check_lib(self) -> InstallState:
        ctx = self.context
        located = find_valid_binary(
            ctx.store.location_file, ctx.manifest.version, ctx.target
        )
        if located:
            logger.info(f"SFDX is previously installed at {located}")
            return ctx.resolved(located, InstallSource.LIB)
        return InstallState.CHECKING_PATH

    def _check_path(self) -> InstallState:
        ctx = self.context
        if ctx.is_cross_install:
            logger.info(
                f"Building for target platform {ctx.target}. Skipping PATH search"
            )
            return InstallState.DOWNLOADING

        try:
            return self._search_path()
        except (OSError, ValueError) as e:
            logger.error(f"Error checking path, continuing: {e}")
            return InstallState.DOWNLOADING

    def _search_path(self) -> InstallState:
        ctx = self.context
        version = ctx.manifest.version

        found = find_executable(BINARY_NAME, ctx.search_path)
        if found is None:
            logger.info("SFDX not found on PATH")
            return InstallState.DOWNLOADING

        logger.info(f"Considering SFDX found at {found}")

        if is_own_shim(found, ctx.store.location_file):
            logger.info("Looks like this package's own sfdx launcher; skipping it.")
            return InstallState.DOWNLOADING

        if is_shim_file(found):
            logger.info("Looks like a global sfdx-prebuilt install")
            for candidate in peer_location_candidates(found):
                located = find_valid_binary(candidate, version, ctx.target)
                if located:
                    ctx.store.write(LocationRecord.for_target(located, ctx.target))
                    logger.info(f"SFDX linked at {candidate}")
                    return ctx.resolved(located, InstallSource.GLOBAL)
            logger.info("Could not link global install, skipping...")
            return InstallState.DOWNLOADING

        if check_binary_version(found, version):
            ctx.store.write(LocationRecord.for_target(found, ctx.target))
            logger.info(f"SFDX is already installed on PATH at {found}")
            return ctx.resolved(found, InstallSource.PATH)

        return InstallState.DOWNLOADING

    def _download(self) -> InstallState:
        ctx = self.context
        spec = ctx.acquirer.resolve_download_spec(ctx.manifest)
        if spec is None:
            raise UnsupportedPlatformError(ctx.target.platform, ctx.target.architecture)

        ctx.artifact = ctx.acquirer.download(spec)
        return InstallState.EXTRACTING

    def _extract(self) -> InstallState:
        ctx = self.context
        ctx.extracted_path = ctx.acquirer.extract(ctx.artifact)
        return InstallState.PLACING

    def _place(self) -> InstallState:
        ctx = self.context
        ctx.acquirer.place_into(
            ctx.extracted_path, ctx.install_dir, ctx.manifest.version
        )
        ctx.acquirer.cleanup(ctx.extracted_path)
        return InstallState.INSTALLING_POST_STEPS

    def _post_install(self) -> InstallState:
        ctx = self.context
        run_install_script(ctx.install_dir, ctx.target)
        return InstallState.RECORDING

    def _record(self) -> InstallState:
        ctx = self.context
        location = ctx.binary_location

        # All users must be able to run the binary
        try:
            os.chmod(location, EXECUTABLE_MODE)
        except FileNotFoundError:
            raise BinaryPermissionError(location)

        relative = os.path.relpath(location, ctx.lib_dir)
        ctx.store.write(LocationRecord.for_target(relative, ctx.target))

        logger.info(f"Done. sfdx binary available at {location}")
        return ctx.resolved(location, InstallSource.DOWNLOAD)


def install(
    config: InstallerConfig,
    progress_callback: Optional[ProgressCallback] = None,
) -> InstallResult:
    """
    Resolve (and if needed acquire) the sfdx binary for ``config``.

    Convenience wrapper creating a fresh context for one run.
    """
    context = ResolverContext(config, progress_callback=progress_callback)
    return InstallResolver(context).run()


__all__ = [
    "InstallState",
    "InstallSource",
    "InstallResult",
    "ResolverContext",
    "InstallResolver",
    "install",
]
