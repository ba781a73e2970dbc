"""Filesystem layout and ownership for each deployment mode.

The tunnel runtime does not necessarily see the host filesystem: in Docker
mode the config directory is bind-mounted at the non-root user's home inside
the container. Paths written into config.yml must be the runtime's view, while
files are created and checked through the host's view.
"""

import shutil
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .common.exceptions import ConfigError
from .common.logging import get_logger
from .settings import DeployMode, TunnelSettings

logger = get_logger(__name__)

# cloudflare/cloudflared images run as the distroless "nonroot" user
CONTAINER_CONFIG_DIR = Path("/home/nonroot/.cloudflared")
CONTAINER_UID = 65532
CONTAINER_GID = 65532

CONFIG_FILE_NAME = "config.yml"
CERT_FILE_NAME = "cert.pem"


class RuntimeLayout(BaseModel):
    """Where tunnel artifacts live, seen from the host and from the runtime."""

    model_config = ConfigDict(frozen=True)

    mode: DeployMode
    host_dir: Path = Field(description="Config directory on the host")
    runtime_dir: Path = Field(description="Same directory as seen by the tunnel runtime")
    artifact_subdir: str = Field(
        default="", description="Subdirectory where cloudflared writes cert.pem and credentials"
    )
    owner: int | str | None = Field(default=None, description="File owner (uid or user name)")
    group: int | str | None = Field(default=None, description="File group (gid or group name)")
    cli_prefix: tuple[str, ...] = Field(description="Command prefix that invokes cloudflared")

    @property
    def host_artifact_dir(self) -> Path:
        return self.host_dir / self.artifact_subdir if self.artifact_subdir else self.host_dir

    @property
    def host_config_file(self) -> Path:
        return self.host_dir / CONFIG_FILE_NAME

    @property
    def runtime_config_file(self) -> Path:
        return self.runtime_dir / CONFIG_FILE_NAME

    @property
    def cert_file(self) -> Path:
        return self.host_artifact_dir / CERT_FILE_NAME

    def host_artifact(self, name: str) -> Path:
        """Host path of a file cloudflared wrote."""
        return self.host_artifact_dir / name

    def runtime_artifact(self, name: str) -> Path:
        """Runtime path of a file cloudflared wrote."""
        if self.artifact_subdir:
            return self.runtime_dir / self.artifact_subdir / name
        return self.runtime_dir / name

    def apply_owner(self, path: Path) -> None:
        """Hand path over to the runtime user; failures are logged, not raised."""
        if self.owner is None and self.group is None:
            return
        try:
            shutil.chown(path, user=self.owner, group=self.group)
        except (OSError, LookupError) as e:
            logger.warning("Failed to change owner", path=str(path), owner=self.owner, error=str(e))


def layout_for(settings: TunnelSettings) -> RuntimeLayout:
    """Build the runtime layout for the configured deployment mode."""
    if settings.mode is DeployMode.DOCKER:
        return RuntimeLayout(
            mode=settings.mode,
            host_dir=settings.config_dir,
            runtime_dir=CONTAINER_CONFIG_DIR,
            owner=CONTAINER_UID,
            group=CONTAINER_GID,
            cli_prefix=(
                "docker", "run", "--rm",
                "-v", f"{settings.config_dir}:{CONTAINER_CONFIG_DIR}",
                "--user", f"{CONTAINER_UID}:{CONTAINER_GID}",
                settings.docker_image,
            ),
        )

    # The service user's home is the config directory; cloudflared keeps
    # cert.pem and credentials under ~/.cloudflared
    return RuntimeLayout(
        mode=settings.mode,
        host_dir=settings.config_dir,
        runtime_dir=settings.config_dir,
        artifact_subdir=".cloudflared",
        owner=settings.service_user,
        group=settings.service_user,
        cli_prefix=("sudo", "-H", "-u", settings.service_user, str(settings.binary_path)),
    )


def prepare_directories(layout: RuntimeLayout) -> None:
    """Create the config directories and clear artifacts of a previous run.

    The existing cert.pem and config.yml are removed so that login and config
    generation start clean. Credentials of other tunnels are left in place.

    Raises:
        ConfigError: If a directory cannot be created or a stale file removed
    """
    for directory in dict.fromkeys((layout.host_dir, layout.host_artifact_dir)):
        try:
            directory.mkdir(parents=True, exist_ok=True)
            directory.chmod(0o700)
        except OSError as e:
            raise ConfigError(f"Cannot prepare config directory {directory}: {e}") from e
        layout.apply_owner(directory)

    for stale in (layout.cert_file, layout.host_config_file):
        if stale.exists():
            try:
                stale.unlink()
            except OSError as e:
                raise ConfigError(f"Cannot remove stale file {stale}: {e}") from e
            logger.info("Removed stale file", path=str(stale))

    logger.info("Config directory ready", path=str(layout.host_dir), mode=layout.mode.value)
