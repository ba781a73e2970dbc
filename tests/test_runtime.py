"""Tests for runtime layouts and config directory preparation."""

import stat
from pathlib import Path
from unittest.mock import Mock

import pytest

from cf_tunnel.common.exceptions import ConfigError
from cf_tunnel.runtime import CONTAINER_CONFIG_DIR, layout_for, prepare_directories
from cf_tunnel.settings import DeployMode


class TestLayoutFor:
    """Test layout_for."""

    def test_docker_layout(self, make_settings, config_dir):
        layout = layout_for(make_settings())

        assert layout.host_dir == config_dir
        assert layout.runtime_dir == CONTAINER_CONFIG_DIR
        assert layout.cert_file == config_dir / "cert.pem"
        assert layout.runtime_artifact("abc.json") == Path("/home/nonroot/.cloudflared/abc.json")
        assert layout.runtime_config_file == Path("/home/nonroot/.cloudflared/config.yml")
        assert layout.owner == 65532
        assert layout.cli_prefix[:3] == ("docker", "run", "--rm")
        assert f"{config_dir}:/home/nonroot/.cloudflared" in layout.cli_prefix
        assert layout.cli_prefix[-1] == "cloudflare/cloudflared:latest"

    def test_docker_layout_uses_configured_image(self, make_settings):
        layout = layout_for(make_settings(docker_image="cloudflare/cloudflared:2024.6.1"))
        assert layout.cli_prefix[-1] == "cloudflare/cloudflared:2024.6.1"

    def test_systemd_layout(self, make_settings, config_dir):
        layout = layout_for(make_settings(mode=DeployMode.SYSTEMD, service_user="tunnel"))

        assert layout.runtime_dir == config_dir
        assert layout.host_config_file == layout.runtime_config_file
        assert layout.cert_file == config_dir / ".cloudflared" / "cert.pem"
        assert layout.runtime_artifact("abc.json") == config_dir / ".cloudflared" / "abc.json"
        assert layout.owner == "tunnel"
        assert layout.cli_prefix == ("sudo", "-H", "-u", "tunnel", "/usr/local/bin/cloudflared")


class TestPrepareDirectories:
    """Test prepare_directories."""

    def test_creates_directory_owner_only(self, docker_layout):
        prepare_directories(docker_layout)

        assert docker_layout.host_dir.is_dir()
        assert stat.S_IMODE(docker_layout.host_dir.stat().st_mode) == 0o700

    def test_removes_stale_cert_and_config(self, docker_layout, tunnel_id):
        docker_layout.host_dir.mkdir(parents=True)
        docker_layout.cert_file.write_text("old cert")
        docker_layout.host_config_file.write_text("tunnel: old")
        other_credentials = docker_layout.host_artifact(f"{tunnel_id}.json")
        other_credentials.write_text("{}")

        prepare_directories(docker_layout)

        assert not docker_layout.cert_file.exists()
        assert not docker_layout.host_config_file.exists()
        assert other_credentials.exists()

    def test_creates_artifact_subdirectory(self, make_settings):
        layout = layout_for(make_settings(mode=DeployMode.SYSTEMD)).model_copy(
            update={"owner": None, "group": None}
        )

        prepare_directories(layout)

        assert layout.host_artifact_dir.is_dir()
        assert stat.S_IMODE(layout.host_artifact_dir.stat().st_mode) == 0o700

    def test_ownership_failure_is_logged(self, make_settings, monkeypatch):
        layout = layout_for(make_settings()).model_copy(update={"owner": "no-such-user-xyz"})
        mock_log = Mock()
        monkeypatch.setattr("cf_tunnel.runtime.logger", mock_log)

        prepare_directories(layout)

        assert layout.host_dir.is_dir()
        mock_log.warning.assert_called()

    def test_config_dir_that_is_a_file_raises_config_error(self, docker_layout):
        docker_layout.host_dir.write_text("not a directory")

        with pytest.raises(ConfigError, match="Cannot prepare config directory"):
            prepare_directories(docker_layout)
