"""
Unit tests for the acquirer.
"""

import os

import pytest
import responses

from conftest import ARCHIVE_URL, CLI_VERSION, LINUX_X64, build_cli_archive
from sfdxprebuilt.acquirer import Acquirer, DownloadArtifact
from sfdxprebuilt.core.config import InstallerConfig
from sfdxprebuilt.core.exceptions import ChecksumError, ExtractionLayoutError
from sfdxprebuilt.core.platform import TargetIdentity
from sfdxprebuilt.manifest import BuildSpec, VersionManifest


@pytest.fixture
def acquirer(tmp_path):
    config = InstallerConfig(platform="linux", arch="x64", tmp_dir=tmp_path / "tmp")
    return Acquirer(LINUX_X64, config)


class TestTempDir:
    """Test temp directory selection."""

    def test_override_used(self, acquirer, tmp_path):
        """Test the configured tmp_dir is preferred."""
        assert acquirer.temp_dir == (tmp_path / "tmp").resolve() / "sfdx"

    def test_chosen_once(self, acquirer):
        assert acquirer.temp_dir is acquirer.temp_dir


class TestDownload:
    """Test downloading and reuse of artifacts."""

    @responses.activate
    def test_fresh_download(self, acquirer, cli_archive, cli_archive_sha256):
        """Test a missing artifact is downloaded."""
        responses.add(responses.GET, ARCHIVE_URL, body=cli_archive)

        artifact = acquirer.download(BuildSpec(ARCHIVE_URL, cli_archive_sha256))

        assert artifact.path == acquirer.temp_dir / "sfdx-linux-amd64.tar.xz"
        assert artifact.reused is False
        assert artifact.path.read_bytes() == cli_archive

    @responses.activate
    def test_reuse_when_checksum_matches(self, acquirer, cli_archive, cli_archive_sha256):
        """Test a verified earlier download is reused without a request."""
        (acquirer.temp_dir / "sfdx-linux-amd64.tar.xz").write_bytes(cli_archive)

        artifact = acquirer.download(BuildSpec(ARCHIVE_URL, cli_archive_sha256))

        assert artifact.reused is True
        assert len(responses.calls) == 0

    @responses.activate
    def test_redownload_when_checksum_differs(
        self, acquirer, cli_archive, cli_archive_sha256
    ):
        """Test a partial earlier download is replaced."""
        stale = acquirer.temp_dir / "sfdx-linux-amd64.tar.xz"
        stale.write_bytes(cli_archive[:100])
        responses.add(responses.GET, ARCHIVE_URL, body=cli_archive)

        artifact = acquirer.download(BuildSpec(ARCHIVE_URL, cli_archive_sha256))

        assert artifact.reused is False
        assert len(responses.calls) == 1
        assert stale.read_bytes() == cli_archive

    @responses.activate
    def test_fresh_download_checksum_mismatch(self, acquirer):
        """Test tampered bytes are rejected and not kept."""
        responses.add(responses.GET, ARCHIVE_URL, body=b"tampered")

        with pytest.raises(ChecksumError):
            acquirer.download(BuildSpec(ARCHIVE_URL, "0" * 64))

        assert not (acquirer.temp_dir / "sfdx-linux-amd64.tar.xz").exists()


class TestExtractAndPlace:
    """Test extraction and placement."""

    def _artifact(self, acquirer, data):
        path = acquirer.temp_dir / "sfdx-linux-amd64.tar.xz"
        path.write_bytes(data)
        return DownloadArtifact(path=path, url=ARCHIVE_URL)

    def test_extract_into_unique_directory(self, acquirer, cli_archive):
        """Test extraction lands in a fresh directory next to the artifact."""
        artifact = self._artifact(acquirer, cli_archive)

        extracted = acquirer.extract(artifact)

        assert extracted.parent == acquirer.temp_dir
        assert extracted.name.startswith("sfdx-linux-amd64.tar.xz-extract-")
        top = extracted / f"sfdx-cli-v{CLI_VERSION}-linux-x64"
        assert (top / "bin" / "sfdx").is_file()

    def test_extract_materializes_links(self, acquirer, cli_archive):
        """Test symlink entries become hard links to their targets."""
        extracted = acquirer.extract(self._artifact(acquirer, cli_archive))

        bin_dir = extracted / f"sfdx-cli-v{CLI_VERSION}-linux-x64" / "bin"
        assert os.path.samefile(bin_dir / "sfdx-link", bin_dir / "sfdx")

    def test_place_into(self, acquirer, cli_archive, tmp_path):
        """Test the versioned directory replaces the install directory."""
        extracted = acquirer.extract(self._artifact(acquirer, cli_archive))
        install_dir = tmp_path / "lib" / "sfdx"
        install_dir.mkdir(parents=True)
        (install_dir / "leftover").write_text("old")

        placed = acquirer.place_into(extracted, install_dir, CLI_VERSION)

        assert placed == install_dir
        assert (install_dir / "bin" / "sfdx").is_file()
        assert not (install_dir / "leftover").exists()

    def test_place_into_without_versioned_directory(self, acquirer, tmp_path):
        """Test a layout without the version raises ExtractionLayoutError."""
        archive = build_cli_archive(top_level="sfdx-cli-other")
        extracted = acquirer.extract(self._artifact(acquirer, archive))

        with pytest.raises(ExtractionLayoutError) as exc_info:
            acquirer.place_into(extracted, tmp_path / "lib" / "sfdx", CLI_VERSION)

        assert exc_info.value.entries == ["sfdx-cli-other"]

    def test_cleanup(self, acquirer, cli_archive, tmp_path):
        """Test the extraction directory is removed after placement."""
        extracted = acquirer.extract(self._artifact(acquirer, cli_archive))
        acquirer.place_into(extracted, tmp_path / "lib" / "sfdx", CLI_VERSION)

        acquirer.cleanup(extracted)

        assert not extracted.exists()

    def test_cleanup_refuses_outside_temp(self, acquirer, tmp_path, caplog):
        """Test cleanup never removes directories outside the temp dir."""
        outside = tmp_path / "precious"
        outside.mkdir()

        acquirer.cleanup(outside)

        assert outside.exists()
        assert "Failed to remove" in caplog.text


class TestResolveDownloadSpec:
    """Test build lookup through the acquirer."""

    def test_unsupported_target(self, tmp_path):
        acquirer = Acquirer(TargetIdentity("sunos", "x64"), InstallerConfig())
        manifest = VersionManifest(CLI_VERSION, {})

        assert acquirer.resolve_download_spec(manifest) is None