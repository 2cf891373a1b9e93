"""
Centralized exception hierarchy for sfdx-prebuilt.

Probe failures (missing binary, wrong version, unreadable metadata) are never
raised; they are reported as negative results by the locator. Everything
defined here is fatal for an installer run and ends up in the resolver's
top-level handler.
"""

ISSUES_URL = "https://github.com/coveo/sfdx-prebuilt"


# ============================================================================
# Base Exceptions
# ============================================================================


class SfdxPrebuiltError(Exception):
    """Base exception for all sfdx-prebuilt errors."""

    pass


# ============================================================================
# Manifest Exceptions
# ============================================================================


class ManifestError(SfdxPrebuiltError):
    """Base exception for version manifest errors."""

    pass


class NetworkError(ManifestError):
    """Manifest request errored or returned a non-success status."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Could not fetch manifest from {url}: {reason}")


class ParseError(ManifestError):
    """Manifest body is not well-formed."""

    pass


# ============================================================================
# Configuration / Environment Exceptions
# ============================================================================


class ConfigurationError(SfdxPrebuiltError):
    """Base exception for configuration and environment errors."""

    pass


class UnsupportedPlatformError(ConfigurationError):
    """No prebuilt binary exists for the requested platform/architecture."""

    def __init__(self, platform: str, arch: str):
        self.platform = platform
        self.arch = arch
        super().__init__(
            f"Unexpected platform or architecture: {platform}/{arch}\n"
            "It seems there is no binary available for your platform/architecture\n"
            "Try to install SFDX globally"
        )


class TempDirectoryError(ConfigurationError):
    """No writable temporary directory could be found."""

    def __init__(self, candidates):
        self.candidates = list(candidates)
        super().__init__(
            "Can not find a writable tmp directory, please report issue "
            f"on {ISSUES_URL} with as much information as possible. "
            f"Tried: {', '.join(str(c) for c in self.candidates)}"
        )


class ConfigFileError(ConfigurationError):
    """Configuration file could not be read or parsed."""

    pass


# ============================================================================
# Transport Exceptions
# ============================================================================


class TransportError(SfdxPrebuiltError):
    """Base exception for artifact transfer errors."""

    pass


class DownloadError(TransportError):
    """Download failed (transport error or non-success status)."""

    pass


class CertificateTrustError(TransportError):
    """Server certificate chain contains a self-signed certificate."""

    def __init__(self, url: str, detail: str = ""):
        self.url = url
        message = (
            f"Error making request to {url}, SELF_SIGNED_CERT_IN_CHAIN. "
            "This usually means a corporate proxy is intercepting TLS traffic; "
            "configure npm_config_cafile or npm_config_ca. "
            f"Please read {ISSUES_URL}"
        )
        if detail:
            message += f"\n{detail}"
        super().__init__(message)


class ChecksumError(TransportError):
    """Downloaded bytes do not match the expected checksum."""

    pass


# ============================================================================
# Archive Exceptions
# ============================================================================


class ArchiveExtractionError(SfdxPrebuiltError):
    """Failed to extract an archive."""

    pass


class UnsupportedArchiveFormat(ArchiveExtractionError):
    """Archive format is not supported."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """Archive contains insecure paths (directory traversal attempt)."""

    pass


class ExtractionLayoutError(ArchiveExtractionError):
    """Extracted archive has no top-level directory matching the version."""

    def __init__(self, extracted_path, version: str, entries):
        self.extracted_path = extracted_path
        self.version = version
        self.entries = list(entries)
        super().__init__(
            f"Could not find extracted directory for version {version} "
            f"in {extracted_path}. Found: {self.entries}"
        )


# ============================================================================
# Finalization Exceptions
# ============================================================================


class BinaryPermissionError(SfdxPrebuiltError):
    """Binary is missing where the executable bit has to be set."""

    def __init__(self, location):
        self.location = location
        super().__init__(
            f"chmod failed: sfdx was not successfully copied to {location}"
        )


class PostInstallError(SfdxPrebuiltError):
    """Bundled post-install script failed, also with elevated privileges."""

    pass
