"""Custom exceptions for cf-tunnel-setup."""


class TunnelSetupError(Exception):
    """Base exception for all tunnel setup errors."""
    pass


class ConfigError(TunnelSetupError):
    """Raised when required input is missing or contradictory."""
    pass


class ValidationError(TunnelSetupError):
    """Raised when a hostname, service or port is malformed."""
    pass


class NoValidHostsError(ValidationError):
    """Raised when parsing leaves no deployable ingress routes."""
    pass


class AuthError(TunnelSetupError):
    """Raised when cloudflared login fails."""
    pass


class ProvisionError(TunnelSetupError):
    """Raised when tunnel creation or credential discovery fails."""
    pass


class DeployError(TunnelSetupError):
    """Raised when the tunnel runtime is not running after start."""

    def __init__(self, message: str, logs: str = "") -> None:
        self.logs = logs
        if logs:
            message = f"{message}\n--- runtime logs ---\n{logs.rstrip()}"
        super().__init__(message)


class ProcessError(TunnelSetupError):
    """Raised when an external command cannot be executed."""
    pass


class BinaryNotFoundError(ProcessError):
    """Raised when an external binary is not found or not executable."""
    pass


class InstallError(TunnelSetupError):
    """Raised when the cloudflared binary cannot be installed."""
    pass


class DnsRegistrationWarning(UserWarning):
    """Emitted when one or more DNS routes could not be created."""
    pass
