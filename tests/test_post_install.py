"""
Unit tests for the post-install script runner.
"""

import subprocess
from unittest.mock import call, patch

import pytest

from conftest import LINUX_X64, requires_posix, write_executable
from sfdxprebuilt.core.exceptions import PostInstallError
from sfdxprebuilt.core.platform import TargetIdentity
from sfdxprebuilt.post_install import run_install_script


class TestRunInstallScript:
    """Test running the bundled install script."""

    def test_windows_skipped(self, tmp_path):
        """Test non-POSIX targets have no post-install step."""
        with patch("sfdxprebuilt.post_install.subprocess.run") as mock_run:
            assert run_install_script(tmp_path, TargetIdentity("win32", "x64")) is False

        mock_run.assert_not_called()

    def test_missing_script_skipped(self, tmp_path, caplog):
        """Test builds without a script are skipped with a warning."""
        with patch("sfdxprebuilt.post_install.subprocess.run") as mock_run:
            assert run_install_script(tmp_path, LINUX_X64) is False

        mock_run.assert_not_called()
        assert "No install script" in caplog.text

    @requires_posix
    def test_runs_script(self, tmp_path):
        """Test the script is executed."""
        marker = tmp_path / "ran"
        write_executable(tmp_path / "install", f"#!/bin/sh\ntouch '{marker}'\n")

        assert run_install_script(tmp_path, LINUX_X64) is True
        assert marker.exists()

    def test_retries_with_sudo(self, tmp_path):
        """Test a failing script is retried with sudo."""
        script = tmp_path / "install"
        script.write_text("#!/bin/sh\n")

        with patch(
            "sfdxprebuilt.post_install.subprocess.run",
            side_effect=[subprocess.CalledProcessError(1, str(script)), None],
        ) as mock_run:
            assert run_install_script(tmp_path, TargetIdentity("darwin", "x64")) is True

        assert mock_run.call_args_list == [
            call([str(script)], check=True),
            call(["sudo", str(script)], check=True),
        ]

    def test_sudo_failure(self, tmp_path):
        """Test PostInstallError when the sudo attempt fails too."""
        (tmp_path / "install").write_text("#!/bin/sh\n")

        with patch(
            "sfdxprebuilt.post_install.subprocess.run",
            side_effect=[
                subprocess.CalledProcessError(1, "install"),
                FileNotFoundError("sudo"),
            ],
        ):
            with pytest.raises(PostInstallError, match="failed with sudo"):
                run_install_script(tmp_path, LINUX_X64)
