"""Starting the tunnel runtime as a Docker container or a systemd service."""

import time
from pathlib import Path
from typing import Protocol

from .common.exceptions import DeployError
from .common.logging import get_logger
from .common.process import CommandRunner
from .common.utils import tail_lines
from .runtime import CONTAINER_GID, CONTAINER_UID, RuntimeLayout

logger = get_logger(__name__)

DEFAULT_GRACE_PERIOD = 3.0
LOG_LINES = 50
SYSTEMD_UNIT_DIR = Path("/etc/systemd/system")


class RuntimeDeployer(Protocol):
    """Starts (or restarts) the tunnel runtime."""

    def deploy(self) -> None:
        """Replace any running instance and verify the new one is up."""
        ...


class DockerDeployer:
    """Runs cloudflared in a container named after the tunnel runtime."""

    def __init__(
        self,
        runner: CommandRunner,
        layout: RuntimeLayout,
        container_name: str,
        image: str,
        grace_period: float = DEFAULT_GRACE_PERIOD,
    ) -> None:
        self.runner = runner
        self.layout = layout
        self.container_name = container_name
        self.image = image
        self.grace_period = grace_period

    def run_command(self) -> list[str]:
        """docker run command line for the tunnel container."""
        return [
            "docker", "run", "-d",
            "--name", self.container_name,
            "--restart", "unless-stopped",
            "-u", f"{CONTAINER_UID}:{CONTAINER_GID}",
            "-v", f"{self.layout.host_dir}:{self.layout.runtime_dir}",
            "--network", "host",
            self.image,
            "tunnel", "--no-autoupdate",
            "--config", str(self.layout.runtime_config_file),
            "run",
        ]

    def deploy(self) -> None:
        """Pull the image, replace the container and wait for it to come up.

        Raises:
            DeployError: If the container cannot be started or exits early
        """
        logger.info("Pulling image", image=self.image)
        if not self.runner.run(["docker", "pull", self.image]).ok:
            logger.warning("Failed to pull latest image, using cached version", image=self.image)

        removed = self.runner.run(["docker", "rm", "-f", self.container_name])
        if removed.ok:
            logger.info("Removed existing container", container=self.container_name)

        logger.info("Starting container", container=self.container_name)
        started = self.runner.run(self.run_command())
        if not started.ok:
            raise DeployError(
                f"Failed to start container {self.container_name}",
                logs=tail_lines(started.output, LOG_LINES),
            )

        logger.info("Waiting for tunnel to initialize", seconds=self.grace_period)
        time.sleep(self.grace_period)

        if not self.is_running():
            raise DeployError(
                f"Container {self.container_name} is not running. "
                f"Check logs with: docker logs -f {self.container_name}",
                logs=self.logs(),
            )
        logger.info("Tunnel container is up and running", container=self.container_name)

    def is_running(self) -> bool:
        result = self.runner.run(
            ["docker", "ps", "-f", f"name=^{self.container_name}$", "--format", "{{.Names}}"]
        )
        return result.ok and self.container_name in result.stdout.split()

    def logs(self) -> str:
        result = self.runner.run(["docker", "logs", "--tail", str(LOG_LINES), self.container_name])
        return result.output


class SystemdDeployer:
    """Runs cloudflared as a systemd service under a dedicated user."""

    def __init__(
        self,
        runner: CommandRunner,
        layout: RuntimeLayout,
        service_name: str,
        service_user: str,
        binary_path: Path,
        unit_dir: Path = SYSTEMD_UNIT_DIR,
        grace_period: float = DEFAULT_GRACE_PERIOD,
    ) -> None:
        self.runner = runner
        self.layout = layout
        self.service_name = service_name
        self.service_user = service_user
        self.binary_path = binary_path
        self.unit_dir = unit_dir
        self.grace_period = grace_period

    @property
    def unit_path(self) -> Path:
        return self.unit_dir / f"{self.service_name}.service"

    def render_unit(self) -> str:
        return f"""[Unit]
Description=Cloudflare Tunnel
After=network-online.target
Wants=network-online.target

[Service]
Type=simple
User={self.service_user}
ExecStart={self.binary_path} tunnel --no-autoupdate --config {self.layout.runtime_config_file} run
Restart=always
RestartSec=5
EnvironmentFile=-/etc/default/cloudflared

[Install]
WantedBy=multi-user.target
"""

    def deploy(self) -> None:
        """Install the unit and (re)start the service.

        Raises:
            DeployError: If the unit cannot be written, systemd cannot start
                the service, or it is not active
        """
        self.runner.run(["systemctl", "stop", self.service_name])

        try:
            self.unit_path.write_text(self.render_unit(), encoding="utf-8")
        except OSError as e:
            raise DeployError(f"Failed to write unit file {self.unit_path}: {e}") from e
        logger.info("Systemd unit written", path=str(self.unit_path))

        reloaded = self.runner.run(["systemctl", "daemon-reload"])
        if not reloaded.ok:
            raise DeployError("systemctl daemon-reload failed", logs=reloaded.output)

        started = self.runner.run(["systemctl", "enable", "--now", self.service_name])
        if not started.ok:
            raise DeployError(f"Failed to enable service {self.service_name}", logs=self.logs())

        logger.info("Waiting for tunnel to initialize", seconds=self.grace_period)
        time.sleep(self.grace_period)

        if not self.is_running():
            raise DeployError(
                f"Service {self.service_name} is not active. "
                f"Check logs with: journalctl -u {self.service_name} -f",
                logs=self.logs(),
            )
        logger.info("Tunnel service is active", service=self.service_name)

    def is_running(self) -> bool:
        return self.runner.run(["systemctl", "is-active", "--quiet", self.service_name]).ok

    def logs(self) -> str:
        result = self.runner.run(
            ["journalctl", "-u", self.service_name, "-n", str(LOG_LINES), "--no-pager"]
        )
        return result.output
