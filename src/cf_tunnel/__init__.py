"""cf-tunnel-setup - provision a Cloudflare Tunnel with generated ingress rules."""

__version__ = "0.1.0"

from .cloudflared import CloudflaredCLI, CreatedTunnel, TunnelCLI
from .common.exceptions import (
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
from .common.logging import get_logger, setup_logging
from .common.process import CommandResult, CommandRunner
from .deploy import DockerDeployer, RuntimeDeployer, SystemdDeployer
from .dns import DnsOutcome, DnsRecordResult, DnsRegistrar, DnsReport
from .hosts import HostEntry, parse_hosts, parse_subdomains
from .ingress import IngressConfig, IngressRule, build_ingress_config, write_ingress_config
from .installer import CloudflaredInstaller, InstallationConfig
from .provisioner import TunnelIdentity, TunnelProvisioner
from .runtime import RuntimeLayout, layout_for
from .settings import AddressingMode, DeployMode, TunnelSettings, resolve_settings
from .workflow import SetupResult, SetupWorkflow

__all__ = [
    # Settings
    "TunnelSettings",
    "DeployMode",
    "AddressingMode",
    "resolve_settings",
    # Hosts
    "HostEntry",
    "parse_hosts",
    "parse_subdomains",
    # Provisioning
    "TunnelCLI",
    "CloudflaredCLI",
    "CreatedTunnel",
    "TunnelIdentity",
    "TunnelProvisioner",
    "RuntimeLayout",
    "layout_for",
    "CloudflaredInstaller",
    "InstallationConfig",
    # Config generation
    "IngressConfig",
    "IngressRule",
    "build_ingress_config",
    "write_ingress_config",
    # DNS
    "DnsRegistrar",
    "DnsReport",
    "DnsRecordResult",
    "DnsOutcome",
    # Deployment
    "RuntimeDeployer",
    "DockerDeployer",
    "SystemdDeployer",
    # Workflow
    "SetupWorkflow",
    "SetupResult",
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
]
