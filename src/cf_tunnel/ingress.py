"""Generation of the cloudflared ingress configuration (config.yml)."""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .common.exceptions import ConfigError, NoValidHostsError
from .common.logging import get_logger
from .hosts import HostEntry
from .provisioner import TunnelIdentity
from .settings import TunnelLogLevel

logger = get_logger(__name__)

CATCH_ALL_SERVICE = "http_status:404"
CONFIG_FILE_MODE = 0o600


class IngressRule(BaseModel):
    """One ingress rule; a rule without hostname matches every request."""

    model_config = ConfigDict(frozen=True)

    hostname: str | None = None
    service: str = Field(min_length=1)

    @property
    def is_catch_all(self) -> bool:
        return self.hostname is None

    def to_dict(self) -> dict[str, str]:
        if self.hostname is None:
            return {"service": self.service}
        return {"hostname": self.hostname, "service": self.service}


CATCH_ALL_RULE = IngressRule(service=CATCH_ALL_SERVICE)


class IngressConfig(BaseModel):
    """cloudflared config document: tunnel, credentials and ingress rules.

    The rule list always ends with exactly one catch-all rule, preceded by at
    least one hostname rule.
    """

    model_config = ConfigDict(frozen=True)

    tunnel: str = Field(min_length=1, description="Tunnel UUID")
    credentials_file: Path = Field(description="Credentials path as seen by the runtime")
    loglevel: TunnelLogLevel | None = None
    logfile: str | None = None
    ingress: tuple[IngressRule, ...]

    @model_validator(mode="after")
    def validate_rules(self) -> "IngressConfig":
        """Catch-all must be present exactly once and last."""
        if not self.ingress or not self.ingress[-1].is_catch_all:
            raise ValueError("Ingress rules must end with a catch-all rule")
        if any(rule.is_catch_all for rule in self.ingress[:-1]):
            raise ValueError("Catch-all rule must appear only once, as the last rule")
        if len(self.ingress) < 2:
            raise ValueError("Ingress rules must contain at least one hostname rule")
        return self

    @property
    def hostnames(self) -> list[str]:
        return [rule.hostname for rule in self.ingress if rule.hostname is not None]

    def to_dict(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "tunnel": self.tunnel,
            "credentials-file": str(self.credentials_file),
        }
        if self.loglevel is not None:
            document["loglevel"] = self.loglevel.value
        if self.logfile:
            document["logfile"] = self.logfile
        document["ingress"] = [rule.to_dict() for rule in self.ingress]
        return document

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False)


def build_ingress_config(
    identity: TunnelIdentity,
    hosts: Mapping[str, HostEntry],
    runtime_credentials_path: Path,
    loglevel: TunnelLogLevel | None = None,
    logfile: str | None = None,
) -> IngressConfig:
    """Render host entries into an IngressConfig.

    Hostname rules are sorted by hostname so repeated runs produce the same file.

    Args:
        identity: Created tunnel
        hosts: Parsed host entries keyed by hostname
        runtime_credentials_path: Credentials path on the runtime's filesystem
        loglevel: Optional cloudflared log level
        logfile: Optional cloudflared log file

    Raises:
        NoValidHostsError: If hosts is empty
    """
    if not hosts:
        raise NoValidHostsError("Refusing to build an ingress configuration with no hostnames")

    rules = [
        IngressRule(hostname=entry.hostname, service=entry.service)
        for _, entry in sorted(hosts.items())
    ]
    rules.append(CATCH_ALL_RULE)

    return IngressConfig(
        tunnel=str(identity.id),
        credentials_file=runtime_credentials_path,
        loglevel=loglevel,
        logfile=logfile,
        ingress=tuple(rules),
    )


def write_ingress_config(config: IngressConfig, path: Path) -> Path:
    """Write config.yml with owner-only permissions.

    Args:
        config: Document to write
        path: Destination on the host

    Returns:
        The written path

    Raises:
        ConfigError: If the file or its directory cannot be written
    """
    content = config.to_yaml()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, CONFIG_FILE_MODE)
        with os.fdopen(fd, "w") as f:
            f.write(content)
        # O_CREAT mode does not apply to an existing file
        path.chmod(CONFIG_FILE_MODE)
    except OSError as e:
        raise ConfigError(f"Failed to write ingress configuration {path}: {e}") from e

    logger.info("Ingress configuration written", path=str(path), rules=len(config.ingress))
    logger.debug("Ingress configuration", content=content)
    return path
