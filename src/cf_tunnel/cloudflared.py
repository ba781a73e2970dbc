"""Interface to the cloudflared tunnel-management CLI."""

from __future__ import annotations

import json
import re
from pathlib import PurePath
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from .common.exceptions import ProvisionError
from .common.logging import get_logger
from .common.process import CommandRunner

logger = get_logger(__name__)

# cloudflared prints "Tunnel credentials written to /path/<id>.json" on create
_CREDENTIALS_LINE = re.compile(r"credentials written to (?P<path>\S+\.json)", re.IGNORECASE)


class CreatedTunnel(BaseModel):
    """What cloudflared reported for a newly created tunnel."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Tunnel UUID as reported; may be empty if output was odd")
    credentials_file: str | None = Field(
        default=None, description="Basename of the credentials file, if reported"
    )


class TunnelCLI(Protocol):
    """Operations the setup workflow needs from the tunnel provider's CLI."""

    def login(self) -> bool:
        """Run browser-based login; True if it exited successfully."""
        ...

    def create_tunnel(self, name: str) -> CreatedTunnel:
        """Create a named tunnel."""
        ...

    def route_dns(self, tunnel_ref: str, fqdn: str) -> bool:
        """Create a DNS route for fqdn to the tunnel; True on success."""
        ...


class CloudflaredCLI:
    """TunnelCLI backed by the cloudflared binary or container image."""

    def __init__(self, runner: CommandRunner, prefix: tuple[str, ...] | list[str]) -> None:
        """Initialize CloudflaredCLI.

        Args:
            runner: Command runner used for every invocation
            prefix: Command prefix that invokes cloudflared, e.g.
                ``("docker", "run", "--rm", ..., "cloudflare/cloudflared:latest")``
                or ``("/usr/local/bin/cloudflared",)``
        """
        self.runner = runner
        self.prefix = tuple(prefix)

    def _command(self, *args: str) -> list[str]:
        return [*self.prefix, "tunnel", *args]

    def login(self) -> bool:
        logger.info("Running cloudflared tunnel login")
        result = self.runner.run(self._command("login"), interactive=True)
        return result.ok

    def create_tunnel(self, name: str) -> CreatedTunnel:
        """Create a tunnel and parse the JSON that cloudflared prints.

        Raises:
            ProvisionError: If cloudflared exits non-zero or prints no JSON object
        """
        logger.info("Creating tunnel", name=name)
        result = self.runner.run(self._command("create", "--output", "json", name))
        if not result.ok:
            raise ProvisionError(
                f"Tunnel creation failed (exit {result.returncode}): {result.output.strip()}"
            )

        try:
            data = json.loads(result.stdout)
        except ValueError as e:
            raise ProvisionError(f"Could not parse tunnel create output: {result.stdout!r}") from e
        if not isinstance(data, dict):
            raise ProvisionError(f"Unexpected tunnel create output: {result.stdout!r}")

        tunnel_id = data.get("id")
        credentials_file = data.get("credentials_file")
        if not credentials_file:
            match = _CREDENTIALS_LINE.search(result.output)
            if match:
                credentials_file = match.group("path")

        return CreatedTunnel(
            id="" if tunnel_id is None else str(tunnel_id).strip(),
            credentials_file=PurePath(credentials_file).name if credentials_file else None,
        )

    def route_dns(self, tunnel_ref: str, fqdn: str) -> bool:
        result = self.runner.run(self._command("route", "dns", tunnel_ref, fqdn))
        if not result.ok:
            logger.warning(
                "cloudflared route dns failed",
                hostname=fqdn,
                returncode=result.returncode,
                output=result.output.strip(),
            )
        return result.ok
