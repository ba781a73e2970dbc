"""Common utilities and shared functionality."""

from .exceptions import (
    AuthError,
    BinaryNotFoundError,
    ConfigError,
    DeployError,
    DnsRegistrationWarning,
    InstallError,
    NoValidHostsError,
    ProcessError,
    ProvisionError,
    TunnelSetupError,
    ValidationError,
)
from .logging import get_logger, setup_logging
from .process import CommandResult, CommandRunner
from .utils import (
    DEFAULT_HTTP_PORT,
    MAX_PORT,
    MIN_PORT,
    parse_port,
    split_list,
    tail_lines,
    validate_port,
)

__all__ = [
    # Process execution
    "CommandRunner",
    "CommandResult",
    # Exceptions
    "TunnelSetupError",
    "ConfigError",
    "ValidationError",
    "NoValidHostsError",
    "AuthError",
    "ProvisionError",
    "DeployError",
    "ProcessError",
    "BinaryNotFoundError",
    "InstallError",
    "DnsRegistrationWarning",
    # Logging
    "get_logger",
    "setup_logging",
    # Utils
    "validate_port",
    "parse_port",
    "split_list",
    "tail_lines",
    "DEFAULT_HTTP_PORT",
    "MIN_PORT",
    "MAX_PORT",
]
