"""Parsing of HOSTS and SUBDOMAINS input into ingress host entries.

Two mini-grammars are accepted::

    HOSTS      := entry ("," entry)*
    entry      := hostname ":" service        (split on the first ":" only)

    SUBDOMAINS := token ("," token)*
    token      := label [":" port]            (service is http://localhost:<port>)

Empty tokens are skipped. Entries that fail validation are skipped with a
warning, so a partially malformed list still yields the valid routes.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .common.exceptions import NoValidHostsError, ValidationError
from .common.logging import get_logger
from .common.utils import DEFAULT_HTTP_PORT, parse_port, split_list, validate_port

logger = get_logger(__name__)

HOSTNAME_PATTERN = re.compile(
    r"^(?=.{1,253}$)"
    r"(?:[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+"
    r"[A-Za-z]{2,63}$"
)
NETWORK_SERVICE_PATTERN = re.compile(
    r"^(?P<scheme>https?|tcp)://(?P<host>\[[0-9A-Fa-f:]+\]|[A-Za-z0-9.-]+)(?::(?P<port>\d{1,5}))?/?$"
)
UNIX_SERVICE_PATTERN = re.compile(r"^unix:/\S+$")

LOCAL_SERVICE_HOST = "localhost"


def is_valid_hostname(value: str) -> bool:
    """Check value against the dotted DNS-label pattern."""
    return bool(HOSTNAME_PATTERN.match(value))


class HostEntry(BaseModel):
    """A single ingress route: public hostname to local service."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True, extra="forbid")

    hostname: str = Field(min_length=1, description="Public DNS name")
    service: str = Field(min_length=1, description="Local service URL")

    @field_validator("hostname")
    @classmethod
    def validate_hostname(cls, v: str) -> str:
        """Validate and lower-case the hostname."""
        if not is_valid_hostname(v):
            raise ValueError(f"Invalid hostname format: {v}")
        return v.lower()

    @field_validator("service")
    @classmethod
    def validate_service(cls, v: str) -> str:
        """Validate service URL format."""
        if UNIX_SERVICE_PATTERN.match(v):
            return v

        match = NETWORK_SERVICE_PATTERN.match(v)
        if match is None:
            raise ValueError(
                f"Invalid service format: {v} "
                "(expected http(s)://host:port, tcp://host:port or unix:/path)"
            )
        if match.group("port") is not None:
            validate_port(int(match.group("port")), "Service port")
        return v


HostMap = dict[str, HostEntry]


def _build_entry(hostname: str, service: str) -> HostEntry | None:
    try:
        return HostEntry(hostname=hostname, service=service)
    except PydanticValidationError as e:
        reasons = "; ".join(str(error["msg"]) for error in e.errors())
        logger.warning("Skipping invalid host entry", hostname=hostname, service=service, reason=reasons)
        return None


def parse_hosts(raw: str) -> HostMap:
    """Parse a HOSTS list of ``hostname:service`` pairs.

    Args:
        raw: Comma-separated pairs, e.g. ``"app.example.com:http://localhost:3000"``

    Returns:
        Mapping of hostname to HostEntry; later duplicates replace earlier ones

    Raises:
        NoValidHostsError: If no entry survives validation
    """
    entries: HostMap = {}
    for token in split_list(raw):
        hostname, sep, service = token.partition(":")
        if not sep:
            logger.warning("Skipping host entry without service", entry=token)
            continue

        entry = _build_entry(hostname.strip(), service.strip())
        if entry is None:
            continue
        if entry.hostname in entries:
            logger.warning("Duplicate hostname, last entry wins", hostname=entry.hostname)
        entries[entry.hostname] = entry
        logger.debug("Parsed host entry", hostname=entry.hostname, service=entry.service)

    return _require_hosts(entries, "HOSTS")


def parse_subdomains(raw: str, domain: str) -> HostMap:
    """Parse a SUBDOMAINS list of ``label[:port]`` tokens under a domain.

    A missing port defaults to 80. A non-numeric or out-of-range port also
    falls back to 80, with a warning.

    Args:
        raw: Comma-separated tokens, e.g. ``"web:3000,api"``
        domain: Parent domain, e.g. ``"example.com"``

    Returns:
        Mapping of ``label.domain`` to HostEntry pointing at localhost

    Raises:
        ValidationError: If the domain itself is malformed
        NoValidHostsError: If no token survives validation
    """
    domain = domain.strip().strip(".")
    if not is_valid_hostname(domain):
        raise ValidationError(f"Invalid domain format: {domain}")

    entries: HostMap = {}
    for token in split_list(raw):
        label, sep, port_text = token.partition(":")
        label = label.strip()
        port = DEFAULT_HTTP_PORT
        if sep:
            try:
                port = parse_port(port_text.strip())
            except ValueError:
                logger.warning(
                    "Invalid port, falling back to default",
                    subdomain=label,
                    port=port_text,
                    default=DEFAULT_HTTP_PORT,
                )

        entry = _build_entry(f"{label}.{domain}", f"http://{LOCAL_SERVICE_HOST}:{port}")
        if entry is None:
            continue
        entries[entry.hostname] = entry
        logger.debug("Parsed subdomain", hostname=entry.hostname, service=entry.service)

    return _require_hosts(entries, "SUBDOMAINS")


def _require_hosts(entries: HostMap, source: str) -> HostMap:
    if not entries:
        raise NoValidHostsError(f"No valid hostnames defined in {source}")
    logger.info("Host entries parsed", source=source, count=len(entries))
    return entries
