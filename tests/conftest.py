"""
Pytest configuration and shared fixtures for sfdx-prebuilt tests.
"""

import hashlib
import io
import sys
import tarfile
from pathlib import Path

import pytest

from sfdxprebuilt.core.config import InstallerConfig
from sfdxprebuilt.core.platform import TargetIdentity

CLI_VERSION = "6.0.0-a1b2c3d"
ARCHIVE_URL = "https://developer.salesforce.com/media/salesforce-cli/sfdx-linux-amd64.tar.xz"
MANIFEST_URL = "https://developer.salesforce.com/media/salesforce-cli/manifest.json"
LINUX_X64 = TargetIdentity("linux", "x64")

requires_posix = pytest.mark.skipif(
    sys.platform == "win32", reason="fake sfdx binaries are shell scripts"
)


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )


# ============================================================================
# Helpers
# ============================================================================


def version_script(version: str = CLI_VERSION) -> str:
    """Shell script printing ``sfdx --version`` style output."""
    return f'#!/bin/sh\necho "sfdx-cli/{version} (linux-x64) node-v8.9.4"\n'


def write_executable(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    path.chmod(0o755)
    return path


def _add_file(tar: tarfile.TarFile, name: str, content: bytes, mode: int = 0o644):
    info = tarfile.TarInfo(name)
    info.size = len(content)
    info.mode = mode
    tar.addfile(info, io.BytesIO(content))


def build_cli_archive(
    version: str = CLI_VERSION,
    top_level: str = None,
    mode: str = "w:xz",
    install_script: bool = True,
) -> bytes:
    """
    Build an archive laid out like a Salesforce CLI build.

    ``<top_level>/bin/sfdx`` prints ``version``, ``bin/sfdx-link`` is a
    symlink to it and ``<top_level>/install`` succeeds.
    """
    top_level = top_level or f"sfdx-cli-v{version}-linux-x64"
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode=mode) as tar:
        for directory in (top_level, f"{top_level}/bin"):
            info = tarfile.TarInfo(directory)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)

        _add_file(
            tar, f"{top_level}/bin/sfdx", version_script(version).encode(), 0o755
        )

        link = tarfile.TarInfo(f"{top_level}/bin/sfdx-link")
        link.type = tarfile.SYMTYPE
        link.linkname = "sfdx"
        tar.addfile(link)

        if install_script:
            _add_file(tar, f"{top_level}/install", b"#!/bin/sh\nexit 0\n", 0o755)
    return buffer.getvalue()


def manifest_document(
    version: str = CLI_VERSION, url: str = ARCHIVE_URL, sha256: str = "0" * 64
) -> dict:
    return {
        "version": version,
        "builds": {
            "linux-amd64": {"url": url, "sha256": sha256},
            "darwin-amd64": {
                "url": url.replace("linux-amd64", "darwin-amd64"),
                "sha256": "1" * 64,
            },
        },
    }


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def cli_archive() -> bytes:
    """xz-compressed CLI build for linux-x64."""
    return build_cli_archive()


@pytest.fixture
def cli_archive_sha256(cli_archive: bytes) -> str:
    return hashlib.sha256(cli_archive).hexdigest()


@pytest.fixture
def fake_sfdx(tmp_path: Path):
    """Factory writing a fake ``sfdx`` reporting the given version."""

    def _make(directory: Path = None, version: str = CLI_VERSION) -> Path:
        directory = directory or tmp_path / "bin"
        return write_executable(directory / "sfdx", version_script(version))

    return _make


@pytest.fixture
def installer_config(tmp_path: Path) -> InstallerConfig:
    """Linux/x64 configuration isolated under tmp_path."""
    return InstallerConfig(
        platform="linux",
        arch="x64",
        tmp_dir=tmp_path / "tmp",
        install_root=tmp_path / "lib",
        manifest_url=MANIFEST_URL,
        lock_timeout=5,
    )


@pytest.fixture
def clean_environment(monkeypatch):
    """Remove installer environment variables for the duration of a test."""
    for variable in (
        "SFDX_PLATFORM",
        "SFDX_ARCH",
        "SFDX_MANIFEST_URL",
        "SFDX_INSTALL_ROOT",
        "npm_config_tmp",
        "npm_config_ca",
        "npm_config_cafile",
        "npm_config_strict_ssl",
        "npm_config_user_agent",
        "npm_config_https_proxy",
        "npm_config_http_proxy",
        "npm_config_proxy",
    ):
        monkeypatch.delenv(variable, raising=False)
