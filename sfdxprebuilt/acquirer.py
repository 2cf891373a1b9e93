"""
Acquisition of a prebuilt sfdx build.

The acquirer covers the "fresh install" half of the resolver:

1. Map the target to a manifest build (unsupported targets have none)
2. Download the archive to a deterministic temp path, reusing a previous
   download when its SHA-256 still matches
3. Extract into a uniquely named directory, materializing link entries after
   every regular file exists
4. Move the versioned top-level directory into the install directory
"""

import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sfdxprebuilt.core.config import InstallerConfig
from sfdxprebuilt.core.download import (
    ProgressCallback,
    RequestOptions,
    fetch_to_file,
    verify_checksum,
)
from sfdxprebuilt.core.exceptions import ExtractionLayoutError
from sfdxprebuilt.core.filesystem import (
    FilesystemError,
    default_temp_candidates,
    extract_archive,
    find_writable_temp_dir,
    materialize_links,
    open_permissions,
    safe_rmtree,
)
from sfdxprebuilt.core.locking import artifact_lock
from sfdxprebuilt.core.platform import TargetIdentity
from sfdxprebuilt.manifest import BuildSpec, VersionManifest, resolve_download_spec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadArtifact:
    """
    A downloaded build archive.

    Attributes:
        path: Archive location in the temp directory
        url: URL the archive was (or would have been) fetched from
        reused: True if a previous download was reused after verification
    """

    path: Path
    url: str
    reused: bool = False


class Acquirer:
    """
    Downloads, extracts and places the sfdx build for one target.

    Example:
        >>> acquirer = Acquirer(target, config)
        >>> spec = acquirer.resolve_download_spec(manifest)
        >>> artifact = acquirer.download(spec)
        >>> extracted = acquirer.extract(artifact)
        >>> acquirer.place_into(extracted, install_dir, manifest.version)
    """

    def __init__(
        self,
        target: TargetIdentity,
        config: InstallerConfig,
        request_options: Optional[RequestOptions] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self.target = target
        self.config = config
        self.request_options = request_options or RequestOptions(
            timeout=config.timeout
        )
        self.progress_callback = progress_callback
        self._temp_dir: Optional[Path] = None

    @property
    def temp_dir(self) -> Path:
        """
        Writable temp directory, chosen on first use.

        Raises:
            TempDirectoryError: If no candidate directory is writable
        """
        if self._temp_dir is None:
            self._temp_dir = find_writable_temp_dir(
                default_temp_candidates(self.config.tmp_dir)
            )
            logger.debug(f"Using temp directory {self._temp_dir}")
        return self._temp_dir

    def resolve_download_spec(self, manifest: VersionManifest) -> Optional[BuildSpec]:
        """Build for this target, or None if the target is unsupported."""
        return resolve_download_spec(manifest, self.target)

    def download(self, spec: BuildSpec) -> DownloadArtifact:
        """
        Download a build, reusing a verified earlier download.

        Args:
            spec: Build to download

        Returns:
            DownloadArtifact pointing at the verified archive

        Raises:
            TempDirectoryError: If no temp directory is writable
            CertificateTrustError: On a self-signed certificate chain
            DownloadError: On transport errors or non-success status
            ChecksumError: If the downloaded bytes do not match the checksum
        """
        downloaded_file = self.temp_dir / spec.filename

        with artifact_lock(downloaded_file, timeout=self.config.lock_timeout):
            if downloaded_file.exists():
                logger.info(f"Download already available at {downloaded_file}")
                if self._cached_copy_matches(downloaded_file, spec.expected_checksum):
                    return DownloadArtifact(
                        path=downloaded_file, url=spec.download_url, reused=True
                    )

            fetch_to_file(
                spec.download_url,
                downloaded_file,
                options=self.request_options,
                expected_sha256=spec.expected_checksum,
                progress_callback=self.progress_callback,
            )

        return DownloadArtifact(path=downloaded_file, url=spec.download_url)

    def _cached_copy_matches(self, path: Path, expected_checksum: str) -> bool:
        try:
            verified = verify_checksum(path, expected_checksum)
        except OSError as e:
            logger.error(f"Failed to verify checksum: {e}")
            return False

        if verified:
            logger.info("Verified checksum of previously downloaded file")
        else:
            logger.info("Checksum did not match")
        return verified

    def extract(self, artifact: DownloadArtifact) -> Path:
        """
        Unpack an archive into a fresh, uniquely named directory.

        Link entries are created as hard links after the bulk extraction;
        links that cannot be created are skipped with a warning.

        Returns:
            Path of the extraction directory

        Raises:
            ArchiveExtractionError: If the archive cannot be extracted
        """
        # Unique per invocation: concurrent installers may extract at once
        extracted_path = artifact.path.with_name(
            f"{artifact.path.name}-extract-{int(time.time() * 1000)}"
        )
        open_permissions(extracted_path)

        logger.info("Decompressing files")
        links = extract_archive(artifact.path, extracted_path)

        if links:
            logger.info("Linking files")
            created = materialize_links(links)
            logger.debug(f"Created {created}/{len(links)} links")

        logger.info("Files decompressed")
        return extracted_path

    def place_into(self, extracted_path: Path, target_dir: Path, version: str) -> Path:
        """
        Move the versioned top-level directory to ``target_dir``.

        Anything already at ``target_dir`` is removed first.

        Raises:
            ExtractionLayoutError: If no top-level directory contains ``version``
        """
        extracted_path = Path(extracted_path)
        target_dir = Path(target_dir)

        logger.info(f"Removing {target_dir}")
        safe_rmtree(target_dir)
        target_dir.parent.mkdir(parents=True, exist_ok=True)

        entries = sorted(extracted_path.iterdir())
        for entry in entries:
            if entry.is_dir() and version in entry.name:
                logger.info(f"Copying extracted folder {entry} -> {target_dir}")
                shutil.move(str(entry), str(target_dir))
                return target_dir

        logger.error(f"Could not find extracted file {[e.name for e in entries]}")
        raise ExtractionLayoutError(
            extracted_path, version, [entry.name for entry in entries]
        )

    def cleanup(self, extracted_path: Path) -> None:
        """Remove an extraction directory after a successful placement."""
        try:
            safe_rmtree(extracted_path, require_prefix=self.temp_dir)
        except (FilesystemError, ValueError) as e:
            logger.warning(f"Failed to remove {extracted_path}: {e}")


__all__ = ["Acquirer", "DownloadArtifact"]
