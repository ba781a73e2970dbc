"""DNS route registration with bounded retry."""

import time
import warnings
from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .cloudflared import TunnelCLI
from .common.exceptions import DnsRegistrationWarning
from .common.logging import get_logger

logger = get_logger(__name__)

MAX_ATTEMPTS = 3
BACKOFF_SECONDS = 2.0


class DnsOutcome(str, Enum):
    """Result of registering one hostname."""

    SUCCESS = "success"
    FAILED = "failed"


class DnsRecordResult(BaseModel):
    """Registration result for one hostname."""

    model_config = ConfigDict(frozen=True)

    hostname: str
    attempts: int = Field(ge=1)
    outcome: DnsOutcome


class DnsReport(BaseModel):
    """All registration results of a run."""

    model_config = ConfigDict(frozen=True)

    results: tuple[DnsRecordResult, ...] = ()

    @property
    def succeeded(self) -> list[str]:
        return [r.hostname for r in self.results if r.outcome is DnsOutcome.SUCCESS]

    @property
    def failed(self) -> list[str]:
        return [r.hostname for r in self.results if r.outcome is DnsOutcome.FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed


class DnsRegistrar:
    """Creates DNS routes for tunnel hostnames.

    Each hostname gets up to max_attempts tries, sleeping
    ``attempt * backoff`` seconds between them. A hostname that never
    succeeds is recorded as failed and the next one is attempted.
    """

    def __init__(
        self,
        cli: TunnelCLI,
        max_attempts: int = MAX_ATTEMPTS,
        backoff: float = BACKOFF_SECONDS,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.cli = cli
        self.max_attempts = max_attempts
        self.backoff = backoff

    def register(self, tunnel_ref: str, hostname: str) -> DnsRecordResult:
        """Register one hostname, retrying on failure."""
        for attempt in range(1, self.max_attempts + 1):
            logger.info("Creating DNS record", hostname=hostname, attempt=attempt)
            if self.cli.route_dns(tunnel_ref, hostname):
                logger.info("DNS record created", hostname=hostname, attempts=attempt)
                return DnsRecordResult(hostname=hostname, attempts=attempt, outcome=DnsOutcome.SUCCESS)

            if attempt < self.max_attempts:
                delay = attempt * self.backoff
                logger.warning("DNS record creation failed, retrying", hostname=hostname, delay=delay)
                time.sleep(delay)

        logger.error("DNS record creation failed", hostname=hostname, attempts=self.max_attempts)
        return DnsRecordResult(hostname=hostname, attempts=self.max_attempts, outcome=DnsOutcome.FAILED)

    def register_all(self, tunnel_ref: str, hostnames: Iterable[str]) -> DnsReport:
        """Register every hostname and warn once about any failures."""
        report = DnsReport(
            results=tuple(self.register(tunnel_ref, hostname) for hostname in sorted(hostnames))
        )
        if not report.ok:
            message = (
                f"DNS routing failed for {len(report.failed)} of {len(report.results)} "
                f"hostname(s): {', '.join(report.failed)}. Create the records manually "
                f"with: cloudflared tunnel route dns {tunnel_ref} <hostname>"
            )
            logger.warning("DNS registration incomplete", failed=report.failed)
            warnings.warn(message, DnsRegistrationWarning, stacklevel=2)
        return report
