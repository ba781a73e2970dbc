"""Tunnel login and creation through the tunnel CLI."""

import uuid
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .cloudflared import TunnelCLI
from .common.exceptions import AuthError, ProvisionError
from .common.logging import get_logger
from .runtime import RuntimeLayout

logger = get_logger(__name__)

OWNER_ONLY = 0o600


class TunnelIdentity(BaseModel):
    """A created tunnel, exactly as cloudflared reported it."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    id: uuid.UUID
    credentials_path: Path = Field(description="Host path of the credentials file")

    @property
    def credentials_file(self) -> str:
        return self.credentials_path.name


class TunnelProvisioner:
    """Authenticates with Cloudflare and creates the tunnel."""

    def __init__(self, cli: TunnelCLI, layout: RuntimeLayout) -> None:
        self.cli = cli
        self.layout = layout

    def login(self) -> Path:
        """Run the interactive login and return the host path of cert.pem.

        Raises:
            AuthError: If login fails or produces no certificate
        """
        if not self.cli.login():
            raise AuthError("Tunnel login failed")

        cert = self.layout.cert_file
        if not cert.is_file():
            raise AuthError(f"cert.pem not found after login: {cert}")
        self._restrict(cert)
        logger.info("Login complete", cert=str(cert))
        return cert

    def create(self, name: str) -> TunnelIdentity:
        """Create the tunnel and locate its credentials file.

        Raises:
            ProvisionError: If creation fails, no usable ID is returned, or
                the credentials file does not appear
        """
        created = self.cli.create_tunnel(name)
        if not created.id or created.id.lower() == "null":
            raise ProvisionError("Failed to get tunnel ID from cloudflared")
        try:
            tunnel_id = uuid.UUID(created.id)
        except ValueError as e:
            raise ProvisionError(f"Tunnel ID is not a UUID: {created.id}") from e

        credentials = self._locate_credentials(tunnel_id, created.credentials_file)
        self._restrict(credentials)

        identity = TunnelIdentity(name=name, id=tunnel_id, credentials_path=credentials)
        logger.info(
            "Tunnel created",
            name=name,
            tunnel_id=str(identity.id),
            credentials=str(identity.credentials_path),
        )
        return identity

    def provision(self, name: str) -> TunnelIdentity:
        """Login, then create the tunnel."""
        self.login()
        return self.create(name)

    def _locate_credentials(self, tunnel_id: uuid.UUID, reported: str | None) -> Path:
        fallback = self.layout.host_artifact(f"{tunnel_id}.json")
        if reported:
            primary = self.layout.host_artifact(reported)
            if primary.is_file():
                return primary
            logger.debug("Reported credentials file missing", path=str(primary))

        if fallback.is_file():
            logger.warning(
                "Using fallback credentials file name",
                reported=reported,
                path=str(fallback),
            )
            return fallback

        searched = [str(fallback)]
        if reported and reported != fallback.name:
            searched.insert(0, str(self.layout.host_artifact(reported)))
        raise ProvisionError(f"Credentials file not found (looked for: {', '.join(searched)})")

    def _restrict(self, path: Path) -> None:
        path.chmod(OWNER_ONLY)
        self.layout.apply_owner(path)
