"""
Tests for the package-level binary path API.
"""

import stat
import sys

import pytest

from conftest import LINUX_X64
from sfdxprebuilt import __version__, get_binary_path
from sfdxprebuilt.location_store import LocationRecord, LocationStore


class TestGetBinaryPath:
    """Test get_binary_path()."""

    def test_not_installed(self, tmp_path):
        """Test None when no record exists."""
        assert get_binary_path(tmp_path) is None

    def test_relative_record(self, tmp_path):
        """Test relative records resolve against the install root."""
        binary = tmp_path / "sfdx" / "bin" / "sfdx"
        binary.parent.mkdir(parents=True)
        binary.write_text("#!/bin/sh\n")
        LocationStore(tmp_path).write(LocationRecord.for_target("sfdx/bin/sfdx", LINUX_X64))

        assert get_binary_path(tmp_path) == binary.resolve()

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permission bits")
    def test_makes_binary_runnable(self, tmp_path):
        """Test read and execute bits are added for everyone."""
        binary = tmp_path / "sfdx"
        binary.write_text("#!/bin/sh\n")
        binary.chmod(0o600)
        LocationStore(tmp_path).write(LocationRecord.for_target(binary, LINUX_X64))

        get_binary_path(tmp_path)

        assert stat.S_IMODE(binary.stat().st_mode) == 0o755

    def test_missing_binary_still_reported(self, tmp_path):
        """Test a recorded but deleted binary is returned without error."""
        LocationStore(tmp_path).write(LocationRecord("gone/sfdx"))

        assert get_binary_path(tmp_path) == (tmp_path / "gone" / "sfdx").resolve()

    def test_install_root_from_environment(self, tmp_path, monkeypatch, clean_environment):
        """Test SFDX_INSTALL_ROOT selects the default root."""
        monkeypatch.setenv("SFDX_INSTALL_ROOT", str(tmp_path))
        LocationStore(tmp_path).write(LocationRecord("/opt/sfdx/bin/sfdx"))

        assert get_binary_path().name == "sfdx"


def test_version():
    assert __version__ == "0.1.0"
