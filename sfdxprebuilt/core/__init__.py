"""
Core functionality for sfdx-prebuilt.

This package contains the foundational modules that the resolver and
acquirer depend on: configuration, platform identity, transport,
filesystem helpers and cross-process locking.
"""

from .exceptions import (
    ISSUES_URL,
    SfdxPrebuiltError,
    ManifestError,
    NetworkError,
    ParseError,
    ConfigurationError,
    UnsupportedPlatformError,
    TempDirectoryError,
    ConfigFileError,
    TransportError,
    DownloadError,
    CertificateTrustError,
    ChecksumError,
    ArchiveExtractionError,
    UnsupportedArchiveFormat,
    InsecureArchiveError,
    ExtractionLayoutError,
    BinaryPermissionError,
    PostInstallError,
)

from .platform import (
    TargetIdentity,
    detect_host,
    resolve_target,
    clear_host_cache,
)

from .config import (
    InstallerConfig,
    load_config,
)

__all__ = [
    "ISSUES_URL",
    "SfdxPrebuiltError",
    "ManifestError",
    "NetworkError",
    "ParseError",
    "ConfigurationError",
    "UnsupportedPlatformError",
    "TempDirectoryError",
    "ConfigFileError",
    "TransportError",
    "DownloadError",
    "CertificateTrustError",
    "ChecksumError",
    "ArchiveExtractionError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    "ExtractionLayoutError",
    "BinaryPermissionError",
    "PostInstallError",
    "TargetIdentity",
    "detect_host",
    "resolve_target",
    "clear_host_cache",
    "InstallerConfig",
    "load_config",
]
