"""
Target platform identity for sfdx-prebuilt.

Platform and architecture names follow the Node.js vocabulary used by the
upstream Salesforce CLI manifest ('linux', 'darwin', 'win32' / 'x64', 'ia32',
'arm64', ...). The host identity is detected once per process; the target
identity is the host identity unless overridden by configuration.

Usage:
    from sfdxprebuilt.core.platform import detect_host, resolve_target

    host = detect_host()
    target = resolve_target(platform_override="linux", arch_override="x64")
    if target != host:
        print(f"Cross-installing for {target}")
"""

import functools
import platform as _platform
import sys
from dataclasses import dataclass
from typing import Optional

POSIX_PLATFORMS = ("linux", "darwin")


@dataclass(frozen=True)
class TargetIdentity:
    """
    Platform/architecture pair the binary is resolved for.

    Attributes:
        platform: OS name ('linux', 'darwin', 'win32', ...)
        architecture: CPU architecture ('x64', 'ia32', 'arm64', ...)
    """

    platform: str
    architecture: str

    @property
    def is_windows(self) -> bool:
        return self.platform == "win32"

    @property
    def is_posix(self) -> bool:
        """True for targets that ship the bundled post-install script."""
        return self.platform in POSIX_PLATFORMS

    @property
    def executable_name(self) -> str:
        return "sfdx.exe" if self.is_windows else "sfdx"

    def __str__(self) -> str:
        return f"{self.platform}/{self.architecture}"


@functools.lru_cache(maxsize=1)
def detect_host() -> TargetIdentity:
    """
    Detect the identity of the running host.

    This function is cached - it only runs detection once per process.

    Returns:
        TargetIdentity of the current machine
    """
    return TargetIdentity(platform=_detect_os(), architecture=_detect_architecture())


def _detect_os() -> str:
    """
    Detect operating system.

    Returns:
        Normalized OS name: 'linux', 'darwin', 'win32', 'freebsd', 'sunos', ...
    """
    name = sys.platform

    if name.startswith("linux"):
        return "linux"
    elif name in ("win32", "cygwin"):
        return "win32"
    elif name.startswith("freebsd"):
        return "freebsd"
    elif name.startswith("openbsd"):
        return "openbsd"
    elif name.startswith("sunos"):
        return "sunos"
    elif name.startswith("aix"):
        return "aix"
    return name


def _detect_architecture() -> str:
    """
    Detect CPU architecture.

    Returns:
        Normalized architecture: 'x64', 'ia32', 'arm64', 'arm', or the raw
        machine name for anything else
    """
    machine = _platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    elif machine in ("i386", "i686", "x86"):
        return "ia32"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine.startswith("arm"):
        return "arm"
    return machine


def resolve_target(
    platform_override: Optional[str] = None, arch_override: Optional[str] = None
) -> TargetIdentity:
    """
    Compute the target identity for a run.

    Args:
        platform_override: Platform to install for (default: host platform)
        arch_override: Architecture to install for (default: host architecture)

    Returns:
        TargetIdentity to resolve the binary for

    Example:
        >>> resolve_target("win32", "ia32")
        TargetIdentity(platform='win32', architecture='ia32')
    """
    host = detect_host()
    return TargetIdentity(
        platform=platform_override or host.platform,
        architecture=arch_override or host.architecture,
    )


def clear_host_cache():
    """
    Clear the host detection cache.

    Forces the next call to detect_host() to re-detect.
    """
    detect_host.cache_clear()


__all__ = [
    "TargetIdentity",
    "detect_host",
    "resolve_target",
    "clear_host_cache",
    "POSIX_PLATFORMS",
]
