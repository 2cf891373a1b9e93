"""
Salesforce CLI version manifest.

The manifest is a small JSON document published next to the CLI builds::

    {
        "version": "6.0.0-a1b2c3d",
        "builds": {
            "linux-amd64": {"url": "https://.../sfdx-linux-amd64.tar.xz",
                            "sha256": "..."},
            ...
        }
    }

It is fetched lazily once per installer run and cached by the fetcher.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import requests
from requests.exceptions import RequestException

from sfdxprebuilt.core.download import RequestOptions
from sfdxprebuilt.core.exceptions import NetworkError, ParseError
from sfdxprebuilt.core.platform import TargetIdentity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildSpec:
    """Download location and expected SHA-256 of one prebuilt build."""

    download_url: str
    expected_checksum: str

    @property
    def filename(self) -> str:
        """Trailing filename of the download URL."""
        return self.download_url.rstrip("/").split("/")[-1].split("?")[0]


@dataclass(frozen=True)
class VersionManifest:
    """
    Immutable snapshot of the remote manifest.

    Attributes:
        version: CLI version published by the manifest
        builds: Build target name (e.g. 'linux-amd64') to BuildSpec
    """

    version: str
    builds: Mapping[str, BuildSpec] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data) -> "VersionManifest":
        """
        Parse a decoded manifest document.

        Raises:
            ParseError: If required fields are missing or mistyped
        """
        if not isinstance(data, dict):
            raise ParseError("Manifest must be a JSON object")

        version = data.get("version")
        if not isinstance(version, str) or not version:
            raise ParseError("Manifest is missing a 'version' string")

        raw_builds = data.get("builds")
        if not isinstance(raw_builds, dict):
            raise ParseError("Manifest is missing a 'builds' object")

        builds: Dict[str, BuildSpec] = {}
        for name, build in raw_builds.items():
            if not isinstance(build, dict):
                raise ParseError(f"Manifest build '{name}' must be an object")
            url = build.get("url")
            checksum = build.get("sha256")
            if not isinstance(url, str) or not isinstance(checksum, str):
                raise ParseError(f"Manifest build '{name}' needs 'url' and 'sha256'")
            builds[name] = BuildSpec(download_url=url, expected_checksum=checksum)

        return cls(version=version, builds=builds)


def build_target_for(target: TargetIdentity) -> Optional[str]:
    """
    Map a target identity to the manifest's build target name.

    Returns:
        Build target name, or None when no binary exists for the target

    Example:
        >>> build_target_for(TargetIdentity("linux", "ia32"))
        'linux-386'
        >>> build_target_for(TargetIdentity("solaris", "sparc")) is None
        True
    """
    platform, arch = target.platform, target.architecture

    if platform == "linux" and arch == "x64":
        return "linux-amd64"
    elif platform == "linux" and arch == "ia32":
        return "linux-386"
    elif platform == "darwin":
        return "darwin-amd64"
    elif platform == "win32" and arch == "x64":
        return "windows-amd64"
    elif platform == "win32" and arch == "ia32":
        return "windows-386"
    return None


def resolve_download_spec(
    manifest: VersionManifest, target: TargetIdentity
) -> Optional[BuildSpec]:
    """
    Look up the build for a target.

    Args:
        manifest: Fetched version manifest
        target: Target identity of the run

    Returns:
        BuildSpec recorded in the manifest, or None for unsupported targets

    Raises:
        ParseError: If the target is supported but the manifest lacks its build
    """
    build_target = build_target_for(target)
    if build_target is None:
        return None

    spec = manifest.builds.get(build_target)
    if spec is None:
        raise ParseError(f"Manifest has no build for {build_target}")
    return spec


class ManifestFetcher:
    """
    Fetches the version manifest once and caches it.

    Example:
        >>> fetcher = ManifestFetcher(DEFAULT_MANIFEST_URL)
        >>> fetcher.get_manifest().version
        '6.0.0-a1b2c3d'
    """

    def __init__(self, url: str, options: Optional[RequestOptions] = None):
        self.url = url
        self.options = options or RequestOptions()
        self._manifest: Optional[VersionManifest] = None

    @property
    def is_cached(self) -> bool:
        return self._manifest is not None

    def get_manifest(self) -> VersionManifest:
        """
        Return the manifest, issuing the request on first call only.

        Raises:
            NetworkError: If the request fails or returns a non-success status
            ParseError: If the body is not a well-formed manifest
        """
        if self._manifest is not None:
            return self._manifest

        logger.debug(f"Fetching manifest from {self.url}")
        try:
            response = requests.get(self.url, **self.options.as_kwargs())
        except RequestException as e:
            raise NetworkError(self.url, str(e)) from e

        if not response.ok:
            raise NetworkError(self.url, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ParseError(f"Manifest at {self.url} is not valid JSON: {e}") from e

        self._manifest = VersionManifest.from_dict(data)
        logger.info(f"Salesforce CLI manifest version {self._manifest.version}")
        return self._manifest


__all__ = [
    "BuildSpec",
    "VersionManifest",
    "ManifestFetcher",
    "build_target_for",
    "resolve_download_spec",
]
