"""Resolution of run settings from environment values and operator prompts."""

from collections.abc import Callable, Mapping
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .common.exceptions import ConfigError
from .common.logging import get_logger
from .hosts import is_valid_hostname

logger = get_logger(__name__)

Prompt = Callable[[str], str]


class DeployMode(str, Enum):
    """How the tunnel runtime is deployed."""

    DOCKER = "docker"
    SYSTEMD = "systemd"


class AddressingMode(str, Enum):
    """How ingress hostnames are specified."""

    HOSTS = "hosts"
    SUBDOMAINS = "subdomains"


class TunnelLogLevel(str, Enum):
    """cloudflared log levels accepted in config.yml."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


# Environment variable -> TunnelSettings field for the optional overrides
OVERRIDE_VARIABLES: dict[str, str] = {
    "DEPLOY_MODE": "mode",
    "CFG_DIR": "config_dir",
    "CONTAINER_NAME": "container_name",
    "DOCKER_IMAGE": "docker_image",
    "CLOUDFLARED_BIN": "binary_path",
    "SERVICE_NAME": "service_name",
    "SERVICE_USER": "service_user",
    "TUNNEL_LOGLEVEL": "tunnel_log_level",
    "TUNNEL_LOGFILE": "tunnel_log_file",
    "STRICT_DNS": "strict_dns",
}


class TunnelSettings(BaseModel):
    """Immutable settings for one setup run."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    tunnel_name: str = Field(min_length=1, description="Name of the tunnel to create")
    domain: str | None = Field(default=None, description="Parent domain for SUBDOMAINS")
    subdomains: str | None = Field(default=None, description="Comma-separated label[:port] list")
    hosts: str | None = Field(default=None, description="Comma-separated hostname:service list")

    mode: DeployMode = Field(default=DeployMode.DOCKER)
    config_dir: Path = Field(default=Path("/etc/cloudflared"), description="Host config directory")
    container_name: str = Field(default="cloudflared", min_length=1)
    docker_image: str = Field(default="cloudflare/cloudflared:latest", min_length=1)
    binary_path: Path = Field(default=Path("/usr/local/bin/cloudflared"))
    service_name: str = Field(default="cloudflared", pattern=r"^[A-Za-z0-9@._-]+$")
    service_user: str = Field(default="cloudflared", min_length=1)

    tunnel_log_level: TunnelLogLevel | None = Field(default=None)
    tunnel_log_file: str | None = Field(default=None)
    strict_dns: bool = Field(default=False, description="Fail the run on partial DNS failure")

    @field_validator("domain", "subdomains", "hosts", "tunnel_log_file", mode="before")
    @classmethod
    def empty_to_none(cls, v: str | None) -> str | None:
        """Treat blank strings as unset."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("domain")
    @classmethod
    def validate_domain(cls, v: str | None) -> str | None:
        """Validate domain format."""
        if v is not None and not is_valid_hostname(v):
            raise ValueError(f"Invalid domain format: {v}")
        return v

    @field_validator("config_dir", "binary_path")
    @classmethod
    def validate_absolute(cls, v: Path) -> Path:
        """Paths handed to the runtime must be absolute."""
        if not v.is_absolute():
            raise ValueError(f"Path must be absolute: {v}")
        return v

    @model_validator(mode="after")
    def validate_addressing(self) -> "TunnelSettings":
        """Exactly one addressing mode must be configured."""
        if self.hosts and (self.subdomains or self.domain):
            raise ValueError("Cannot use both HOSTS and SUBDOMAINS/DOMAIN")
        if not self.hosts and not (self.subdomains and self.domain):
            raise ValueError("Either HOSTS or SUBDOMAINS and DOMAIN must be set")
        return self

    @property
    def addressing(self) -> AddressingMode:
        """Addressing mode in effect."""
        return AddressingMode.HOSTS if self.hosts else AddressingMode.SUBDOMAINS

    @property
    def config_file(self) -> Path:
        """Host path of the generated ingress configuration."""
        return self.config_dir / "config.yml"


def _ask(prompt: Prompt | None, text: str) -> str:
    if prompt is None:
        return ""
    return (prompt(text) or "").strip()


def resolve_settings(environ: Mapping[str, str], prompt: Prompt | None = None) -> TunnelSettings:
    """Build TunnelSettings from environment-style values.

    Missing tunnel name, domain or subdomains are asked for through prompt
    when one is given. HOSTS and SUBDOMAINS/DOMAIN are mutually exclusive.

    Args:
        environ: Mapping with TUNNEL_NAME, DOMAIN, SUBDOMAINS, HOSTS and
            optional overrides (see OVERRIDE_VARIABLES)
        prompt: Callable asking the operator for a value, or None when
            running non-interactively

    Returns:
        Validated, immutable settings

    Raises:
        ConfigError: If input is missing, contradictory or malformed
    """
    tunnel_name = (environ.get("TUNNEL_NAME") or "").strip()
    domain = (environ.get("DOMAIN") or "").strip()
    subdomains = (environ.get("SUBDOMAINS") or "").strip()
    hosts = (environ.get("HOSTS") or "").strip()

    if hosts and (subdomains or domain):
        raise ConfigError("Cannot use both HOSTS and SUBDOMAINS/DOMAIN. Choose one method.")

    if not tunnel_name:
        tunnel_name = _ask(prompt, "Enter tunnel name")
    if not tunnel_name:
        raise ConfigError("Tunnel name cannot be empty.")

    if not hosts:
        if not subdomains and not domain:
            raise ConfigError("You must define either HOSTS or SUBDOMAINS and DOMAIN.")
        if not domain:
            domain = _ask(prompt, "Enter your domain (e.g. example.com)")
        if not domain:
            raise ConfigError("Domain cannot be empty when using SUBDOMAINS.")
        if not subdomains:
            subdomains = _ask(prompt, "Enter subdomains (comma-separated, e.g. app:3000,monitor)")
        if not subdomains:
            raise ConfigError("Subdomains cannot be empty when using DOMAIN.")

    overrides = {
        field: environ[variable].strip()
        for variable, field in OVERRIDE_VARIABLES.items()
        if (environ.get(variable) or "").strip()
    }

    try:
        settings = TunnelSettings(
            tunnel_name=tunnel_name,
            domain=domain,
            subdomains=subdomains,
            hosts=hosts,
            **overrides,
        )
    except PydanticValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'settings'}: {error['msg']}"
            for error in e.errors()
        )
        raise ConfigError(f"Invalid settings: {details}") from e

    logger.info(
        "Settings resolved",
        tunnel_name=settings.tunnel_name,
        addressing=settings.addressing.value,
        mode=settings.mode.value,
        config_dir=str(settings.config_dir),
    )
    return settings
