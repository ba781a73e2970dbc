"""Installation of the cloudflared binary and service user for systemd mode."""

import json
import os
import platform
import stat
import tempfile
from pathlib import Path
from urllib.error import URLError
from urllib.request import urlopen, urlretrieve

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common.exceptions import InstallError
from .common.logging import get_logger
from .common.process import CommandRunner

logger = get_logger(__name__)

RELEASES_API_URL = "https://api.github.com/repos/cloudflare/cloudflared/releases/latest"
DOWNLOAD_URL = "https://github.com/cloudflare/cloudflared/releases/download/{version}/cloudflared-linux-{arch}"

ARCH_MAPPING = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "arm",
    "armhf": "arm",
}


class InstallationConfig(BaseModel):
    """Configuration for the cloudflared installation."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True, extra="forbid")

    binary_path: Path = Field(default=Path("/usr/local/bin/cloudflared"), description="Binary location")
    service_user: str = Field(default="cloudflared", min_length=1, description="Service user account")
    home_dir: Path = Field(default=Path("/etc/cloudflared"), description="Service user home")
    timeout: float = Field(default=30.0, gt=0, description="Network timeout in seconds")

    @field_validator("binary_path", "home_dir")
    @classmethod
    def validate_absolute(cls, v: Path) -> Path:
        """Validate installation paths are absolute."""
        if not v.is_absolute():
            raise ValueError("Installation paths must be absolute")
        return v


class CloudflaredInstaller:
    """Downloads cloudflared and creates its system user."""

    def __init__(self, runner: CommandRunner, config: InstallationConfig | None = None) -> None:
        self.runner = runner
        self.config = config or InstallationConfig()

    def get_arch(self) -> str:
        """Map the machine architecture to cloudflared's release naming.

        Raises:
            InstallError: If the architecture has no cloudflared build
        """
        machine = platform.machine().lower()
        try:
            return ARCH_MAPPING[machine]
        except KeyError:
            raise InstallError(f"Unsupported architecture: {machine}") from None

    def latest_version(self) -> str:
        """Fetch the tag of the latest cloudflared release."""
        logger.info("Fetching latest cloudflared release")
        try:
            with urlopen(RELEASES_API_URL, timeout=self.config.timeout) as response:
                data = json.load(response)
        except (URLError, OSError, ValueError) as e:
            raise InstallError(f"Failed to fetch release info: {e}") from e

        version = data.get("tag_name") if isinstance(data, dict) else None
        if not version:
            raise InstallError("Release info has no tag_name")
        return str(version)

    def get_download_url(self, version: str) -> str:
        return DOWNLOAD_URL.format(version=version, arch=self.get_arch())

    def is_installed(self) -> bool:
        binary = self.config.binary_path
        return binary.is_file() and os.access(binary, os.X_OK)

    def install_binary(self, version: str = "latest", force: bool = False) -> Path:
        """Download cloudflared to the configured path unless it is already there.

        Args:
            version: Release tag, or "latest"
            force: Download even when a binary is already installed

        Returns:
            Path of the installed binary

        Raises:
            InstallError: If the download fails
        """
        binary = self.config.binary_path
        if self.is_installed() and not force:
            logger.info("cloudflared already installed", path=str(binary))
            return binary

        if version == "latest":
            version = self.latest_version()
        url = self.get_download_url(version)

        binary.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=binary.parent, prefix=".cloudflared-")
        os.close(fd)

        logger.info("Downloading cloudflared", version=version, url=url)
        try:
            urlretrieve(url, temp_path)
            mode = os.stat(temp_path).st_mode
            os.chmod(temp_path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH | stat.S_IRGRP | stat.S_IROTH)
            os.replace(temp_path, binary)
        except (URLError, OSError) as e:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise InstallError(f"Download failed: {e}") from e

        logger.info("cloudflared installed", path=str(binary), version=version)
        return binary

    def ensure_service_user(self) -> None:
        """Create the system user that runs the tunnel, if it does not exist.

        Raises:
            InstallError: If useradd fails
        """
        user = self.config.service_user
        if self.runner.run(["id", user]).ok:
            logger.debug("Service user exists", user=user)
            return

        logger.info("Creating system user", user=user)
        result = self.runner.run([
            "useradd", "--system",
            "--shell", "/usr/sbin/nologin",
            "--home-dir", str(self.config.home_dir),
            user,
        ])
        if not result.ok:
            raise InstallError(f"Failed to create user {user}: {result.output.strip()}")
