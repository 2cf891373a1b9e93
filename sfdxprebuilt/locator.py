"""
Probing for an existing, version-matching sfdx binary.

A probe answers "is there a usable binary here?" and never raises: every
failure (missing record, foreign target, missing file, unexpected
``--version`` output, wrong version) is a negative ProbeResult carrying the
reason, which callers log and otherwise discard.
"""

import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from sfdxprebuilt.core.platform import TargetIdentity
from sfdxprebuilt.location_store import LocationStore

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"sfdx-cli/([0-9.a-zA-Z\-]+)\s")
VERSION_TIMEOUT = 30


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a binary probe: a path on success, a reason otherwise."""

    path: Optional[Path] = None
    reason: str = ""

    @property
    def found(self) -> bool:
        return self.path is not None


def extract_version(output: str) -> Optional[str]:
    """
    Extract the CLI version from ``sfdx --version`` output.

    Example:
        >>> extract_version("sfdx-cli/6.0.0-a1b2c3d (linux-x64) node-v8.9.4\\n")
        '6.0.0-a1b2c3d'
    """
    match = VERSION_PATTERN.search(output or "")
    return match.group(1) if match else None


def read_binary_version(binary_path: Union[str, Path]) -> Optional[str]:
    """
    Run ``<binary> --version`` and return the reported CLI version.

    Returns:
        Version string, or None if the binary cannot be run or its output
        does not carry a version
    """
    try:
        result = subprocess.run(
            [str(binary_path), "--version"],
            capture_output=True,
            text=True,
            errors="replace",
            timeout=VERSION_TIMEOUT,
        )
    except subprocess.TimeoutExpired:
        logger.info(f"SFDX --version timed out @ {binary_path}")
        return None
    except (OSError, subprocess.SubprocessError) as e:
        logger.info(f"Error verifying SFDX at {binary_path}, continuing: {e}")
        return None

    output = result.stdout or ""
    if not output.strip():
        logger.info(f"SFDX --version is empty @ {binary_path}")
        return None

    version = extract_version(output)
    if version is None:
        logger.info(
            f"SFDX detected, but could not extract version "
            f"{output.strip()!r} @ {binary_path}"
        )
    return version


def check_binary_version(binary_path: Union[str, Path], expected_version: str) -> bool:
    """
    Check that a binary reports exactly ``expected_version``.

    Args:
        binary_path: sfdx executable to run
        expected_version: Version from the manifest

    Returns:
        True on exact match, False otherwise (never raises)
    """
    logger.info(f"Found SFDX at {binary_path} ...verifying")
    actual = read_binary_version(binary_path)
    if actual is None:
        return False
    if actual != expected_version:
        logger.info(
            f"SFDX detected, but wrong version {actual} "
            f"(expected {expected_version}) @ {binary_path}"
        )
        return False
    return True


def probe_binary(
    record_path: Union[str, Path], expected_version: str, target: TargetIdentity
) -> ProbeResult:
    """
    Check whether a location record points to a valid binary.

    Steps: load the record, require its platform/architecture to equal
    ``target``, resolve the location against the record's directory, require
    the file to exist, and require ``--version`` to report
    ``expected_version`` exactly.

    Args:
        record_path: Location record file (``.../lib/location.py``)
        expected_version: Version from the manifest
        target: Target identity of the current run

    Returns:
        ProbeResult with the resolved binary path on success
    """
    record_path = Path(record_path)
    record = LocationStore(record_path.parent).read(record_path)
    if record is None:
        return ProbeResult(reason=f"no location record at {record_path}")

    if not record.matches(target):
        return ProbeResult(
            reason=(
                f"record is for {record.platform}/{record.architecture}, "
                f"not {target}"
            )
        )

    try:
        resolved = record.resolve(record_path.parent)
        exists = resolved.is_file()
    except (OSError, RuntimeError, ValueError) as e:
        return ProbeResult(reason=f"cannot resolve {record.location}: {e}")

    if not exists:
        return ProbeResult(reason=f"recorded binary {resolved} does not exist")

    if not check_binary_version(resolved, expected_version):
        return ProbeResult(reason=f"{resolved} is not version {expected_version}")

    return ProbeResult(path=resolved)


def find_valid_binary(
    record_path: Union[str, Path], expected_version: str, target: TargetIdentity
) -> Optional[Path]:
    """
    Resolved binary path if the record points to a valid binary, else None.

    Example:
        >>> find_valid_binary(Path("./blargh"), "5.99.1-d7efd75", detect_host())
        None
    """
    result = probe_binary(record_path, expected_version, target)
    if not result.found:
        logger.debug(f"No valid binary: {result.reason}")
    return result.path


__all__ = [
    "ProbeResult",
    "VERSION_PATTERN",
    "extract_version",
    "read_binary_version",
    "check_binary_version",
    "probe_binary",
    "find_valid_binary",
]
