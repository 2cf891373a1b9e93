"""
Network transfer primitives with progress tracking and checksum verification.

This module provides:
- Request options derived from the installer configuration (proxy, CA bundle,
  strict TLS, User-Agent)
- Streaming binary downloads written through a uniquely-suffixed temporary
  file and atomically renamed into place
- Progress reporting (bytes, percentage, speed, ETA)
- SHA-256 verification of downloaded and cached files
"""

import hashlib
import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Optional, Union

import requests
from requests.exceptions import HTTPError, RequestException, SSLError

from sfdxprebuilt.core.config import InstallerConfig
from sfdxprebuilt.core.exceptions import (
    ISSUES_URL,
    CertificateTrustError,
    ChecksumError,
    DownloadError,
)
from sfdxprebuilt.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192

# Markers OpenSSL/urllib3 use for a self-signed certificate in the chain.
SELF_SIGNED_MARKERS = (
    "SELF_SIGNED_CERT_IN_CHAIN",
    "self signed certificate in certificate chain",
    "self-signed certificate in certificate chain",
)


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float  # bytes per second
    eta_seconds: float  # estimated time remaining

    def __str__(self) -> str:
        """Format progress for display."""
        return format_progress(self)


ProgressCallback = Callable[[DownloadProgress], None]


@dataclass
class RequestOptions:
    """
    Keyword arguments shared by every request of an installer run.

    Attributes:
        headers: Extra request headers (User-Agent)
        proxies: requests-style proxy mapping
        verify: True, False, or path to a CA bundle
        timeout: Transport timeout in seconds
    """

    headers: Dict[str, str] = field(default_factory=dict)
    proxies: Dict[str, str] = field(default_factory=dict)
    verify: Union[bool, str] = True
    timeout: int = 60

    def as_kwargs(self) -> dict:
        return {
            "headers": dict(self.headers),
            "proxies": dict(self.proxies),
            "verify": self.verify,
            "timeout": self.timeout,
            "allow_redirects": True,
        }


def build_request_options(config: InstallerConfig) -> RequestOptions:
    """
    Derive request options from the installer configuration.

    An inline CA (``npm_config_ca``) takes precedence over a CA file. Inline
    PEM text is written to a temporary file because requests only accepts
    bundle paths. An unreadable CA file is logged and ignored.

    Args:
        config: Installer configuration

    Returns:
        RequestOptions for requests.get()
    """
    options = RequestOptions(timeout=config.timeout)

    if config.user_agent:
        options.headers["User-Agent"] = config.user_agent

    if config.proxy:
        logger.info(f"Using proxy {config.masked_proxy}")
        options.proxies = {"http": config.proxy, "https": config.proxy}

    if not config.strict_ssl:
        logger.warning("TLS certificate verification is disabled (strict-ssl=false)")
        options.verify = False
        return options

    if config.ca:
        logger.info("Using npmconf ca")
        options.verify = _materialize_ca_bundle(config.ca)
    elif config.cafile:
        if os.access(config.cafile, os.R_OK):
            logger.info(f"Using CA bundle {config.cafile}")
            options.verify = str(config.cafile)
        else:
            logger.error(f"Could not read cafile {config.cafile}")

    return options


def _materialize_ca_bundle(pem_text: str) -> str:
    """
    Write inline PEM certificates to a bundle file in the temp directory.

    The file name carries the SHA-256 of the certificates, so repeated runs
    with the same ``npm_config_ca`` share one bundle.
    """
    pem = pem_text.replace("\\n", "\n")
    digest = hashlib.sha256(pem.encode("utf-8")).hexdigest()[:16]
    bundle_path = Path(tempfile.gettempdir()) / f"sfdxprebuilt-ca-{digest}.pem"

    try:
        current = bundle_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        current = None
    if current != pem:
        atomic_write(bundle_path, pem)
    return str(bundle_path)


class StreamingHasher:
    """Compute hash incrementally for streaming downloads."""

    def __init__(self, algorithm: str = "sha256"):
        """
        Initialize streaming hasher.

        Args:
            algorithm: Hash algorithm ('sha256' or 'sha512')

        Raises:
            ValueError: If algorithm is not supported
        """
        self.algorithm = algorithm.lower()

        if self.algorithm == "sha256":
            self.hasher = hashlib.sha256()
        elif self.algorithm == "sha512":
            self.hasher = hashlib.sha512()
        else:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")

    def update(self, data: bytes):
        """Add data to hash computation."""
        self.hasher.update(data)

    def finalize(self) -> str:
        """Get final hash value as hex string."""
        return self.hasher.hexdigest()

    def verify(self, expected_hash: str) -> bool:
        """Check if computed hash matches expected value (case-insensitive)."""
        return self.finalize().lower() == expected_hash.lower()


def compute_sha256(file_path: Path) -> str:
    """
    Compute the SHA-256 hex digest of a file.

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    hasher = StreamingHasher("sha256")
    with open(file_path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.finalize()


def verify_checksum(file_path: Path, expected_sha256: str) -> bool:
    """
    Verify file SHA256 checksum.

    Args:
        file_path: Path to file to verify
        expected_sha256: Expected SHA256 hash (hex string)

    Returns:
        True if checksum matches, False otherwise

    Raises:
        FileNotFoundError: If file doesn't exist
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    return compute_sha256(file_path).lower() == expected_sha256.lower()


def is_self_signed_error(error: BaseException) -> bool:
    """Check whether a TLS error was caused by a self-signed certificate chain."""
    text = str(error)
    return any(marker.lower() in text.lower() for marker in SELF_SIGNED_MARKERS)


def fetch_to_file(
    url: str,
    destination: Path,
    options: Optional[RequestOptions] = None,
    expected_sha256: Optional[str] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> Path:
    """
    Stream a URL to disk.

    Bytes are written to ``<destination>-download-<millis>`` and renamed onto
    ``destination`` only once the transfer completed (and, when a checksum is
    given, verified), so concurrent readers never see a partial file.

    Args:
        url: URL to download
        destination: Final path of the downloaded file
        options: Request options (default: verified TLS, no proxy)
        expected_sha256: Expected SHA256 of the response body
        progress_callback: Optional callback for progress updates

    Returns:
        Path to downloaded file

    Raises:
        CertificateTrustError: If the certificate chain contains a self-signed cert
        DownloadError: On transport errors or non-success status
        ChecksumError: If the body does not hash to expected_sha256
    """
    if not url:
        raise ValueError("URL cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    options = options or RequestOptions()
    write_path = destination.with_name(
        f"{destination.name}-download-{int(time.time() * 1000)}"
    )

    logger.info(f"Downloading {url}")
    logger.info(f"Saving to {destination}")

    try:
        hasher = _stream_response(url, write_path, options, progress_callback)
    except SSLError as e:
        write_path.unlink(missing_ok=True)
        if is_self_signed_error(e):
            raise CertificateTrustError(url, str(e)) from e
        raise DownloadError(
            f"Error making request to {url}: {e}\n\n"
            f"Please report this full log at {ISSUES_URL}"
        ) from e
    except HTTPError as e:
        write_path.unlink(missing_ok=True)
        response = e.response
        status = response.status_code if response is not None else "unknown"
        headers = dict(response.headers) if response is not None else {}
        raise DownloadError(
            "Error requesting archive.\n"
            f"Status: {status}\n"
            f"URL: {url}\n"
            f"Response headers: {headers}\n"
            "Make sure your network and proxy settings are correct.\n\n"
            f"If you continue to have issues, please report this full log at {ISSUES_URL}"
        ) from e
    except RequestException as e:
        write_path.unlink(missing_ok=True)
        raise DownloadError(
            f"Error making request to {url}: {e}\n\n"
            f"Please report this full log at {ISSUES_URL}"
        ) from e

    if expected_sha256 and not hasher.verify(expected_sha256):
        write_path.unlink(missing_ok=True)
        raise ChecksumError(
            f"Checksum mismatch for {destination.name}: "
            f"expected {expected_sha256}, got {hasher.finalize()}"
        )

    os.replace(write_path, destination)
    logger.info(f"Received {destination.stat().st_size // 1024}K total.")
    return destination


def _stream_response(
    url: str,
    write_path: Path,
    options: RequestOptions,
    progress_callback: Optional[ProgressCallback],
) -> StreamingHasher:
    """Perform the streaming GET, writing to write_path while hashing."""
    response = requests.get(url, stream=True, **options.as_kwargs())
    response.raise_for_status()

    content_length = response.headers.get("content-length")
    total_size = int(content_length) if content_length else 0

    hasher = StreamingHasher("sha256")
    downloaded = 0
    start_time = time.time()
    last_progress_time = start_time

    try:
        with open(write_path, "wb") as f:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                f.write(chunk)
                hasher.update(chunk)
                downloaded += len(chunk)

                # Report progress (max once per 0.5 seconds)
                current_time = time.time()
                if progress_callback and (
                    current_time - last_progress_time >= 0.5
                    or downloaded == total_size
                ):
                    progress_callback(
                        _progress(downloaded, total_size, current_time - start_time)
                    )
                    last_progress_time = current_time
    except OSError:
        write_path.unlink(missing_ok=True)
        raise
    finally:
        response.close()

    # Unknown sizes never hit the in-loop completion check
    if progress_callback and downloaded != total_size:
        progress_callback(_progress(downloaded, total_size, time.time() - start_time))

    return hasher


def _progress(downloaded: int, total_size: int, elapsed: float) -> DownloadProgress:
    speed = downloaded / elapsed if elapsed > 0 else 0
    remaining = total_size - downloaded if total_size > 0 else 0
    return DownloadProgress(
        bytes_downloaded=downloaded,
        total_bytes=total_size if total_size > 0 else downloaded,
        percentage=(downloaded / total_size * 100) if total_size > 0 else 0,
        speed_bps=speed,
        eta_seconds=remaining / speed if speed > 0 else 0,
    )


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.total_bytes > 0 and progress.percentage > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s "
            f"ETA: {progress.eta_seconds:.0f}s"
        )
    # Unknown total size
    return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"


__all__ = [
    "DownloadProgress",
    "ProgressCallback",
    "RequestOptions",
    "StreamingHasher",
    "build_request_options",
    "compute_sha256",
    "verify_checksum",
    "fetch_to_file",
    "format_progress",
    "is_self_signed_error",
]
