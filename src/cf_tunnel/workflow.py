"""End-to-end tunnel setup: parse, provision, configure, route DNS, deploy."""

import os
import shutil
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from .cloudflared import CloudflaredCLI, TunnelCLI
from .common.exceptions import BinaryNotFoundError, ConfigError
from .common.logging import get_logger
from .common.process import CommandRunner
from .deploy import DockerDeployer, RuntimeDeployer, SystemdDeployer
from .dns import BACKOFF_SECONDS, DnsRegistrar, DnsReport
from .hosts import HostMap, parse_hosts, parse_subdomains
from .ingress import build_ingress_config, write_ingress_config
from .installer import CloudflaredInstaller, InstallationConfig
from .provisioner import TunnelIdentity, TunnelProvisioner
from .runtime import RuntimeLayout, layout_for, prepare_directories
from .settings import AddressingMode, DeployMode, TunnelSettings

logger = get_logger(__name__)

REQUIRED_COMMANDS = {
    DeployMode.DOCKER: ("docker",),
    DeployMode.SYSTEMD: ("systemctl", "sudo"),
}


class SetupResult(BaseModel):
    """What a completed setup run produced."""

    model_config = ConfigDict(frozen=True)

    identity: TunnelIdentity
    config_path: Path
    hostnames: tuple[str, ...]
    dns: DnsReport | None = None

    @property
    def dns_ok(self) -> bool:
        return self.dns is None or self.dns.ok


def build_deployer(settings: TunnelSettings, runner: CommandRunner, layout: RuntimeLayout) -> RuntimeDeployer:
    """Deployer matching the configured deployment mode."""
    if settings.mode is DeployMode.DOCKER:
        return DockerDeployer(runner, layout, settings.container_name, settings.docker_image)
    return SystemdDeployer(
        runner,
        layout,
        service_name=settings.service_name,
        service_user=settings.service_user,
        binary_path=settings.binary_path,
    )


class SetupWorkflow:
    """Runs the setup stages strictly in order; any fatal error aborts the run."""

    def __init__(
        self,
        settings: TunnelSettings,
        runner: CommandRunner | None = None,
        cli: TunnelCLI | None = None,
        deployer: RuntimeDeployer | None = None,
        installer: CloudflaredInstaller | None = None,
        preflight: bool = True,
        dns_backoff: float = BACKOFF_SECONDS,
    ) -> None:
        self.settings = settings
        self.layout = layout_for(settings)
        self.runner = runner or CommandRunner()
        self.cli = cli or CloudflaredCLI(self.runner, self.layout.cli_prefix)
        self.deployer = deployer or build_deployer(settings, self.runner, self.layout)
        if installer is None and settings.mode is DeployMode.SYSTEMD:
            installer = CloudflaredInstaller(
                self.runner,
                InstallationConfig(
                    binary_path=settings.binary_path,
                    service_user=settings.service_user,
                    home_dir=settings.config_dir,
                ),
            )
        self.installer = installer
        self.run_preflight = preflight
        self.dns_backoff = dns_backoff

    def preflight(self) -> None:
        """Check privileges and required commands.

        Raises:
            ConfigError: If not running as root
            BinaryNotFoundError: If a required command is missing
        """
        if os.geteuid() != 0:
            raise ConfigError("Please run as root or via sudo")
        for command in REQUIRED_COMMANDS[self.settings.mode]:
            if shutil.which(command) is None:
                raise BinaryNotFoundError(f"{command} is required but not installed")

    def parse_hosts(self) -> HostMap:
        if self.settings.addressing is AddressingMode.HOSTS:
            return parse_hosts(self.settings.hosts or "")
        return parse_subdomains(self.settings.subdomains or "", self.settings.domain or "")

    def prepare(self) -> None:
        """Install cloudflared (systemd mode) and set up the config directory."""
        if self.installer is not None:
            self.installer.ensure_service_user()
            self.installer.install_binary()
        prepare_directories(self.layout)

    def register_dns(self, identity: TunnelIdentity, hosts: HostMap) -> DnsReport | None:
        if self.settings.addressing is AddressingMode.HOSTS:
            logger.info(
                "HOSTS mode: DNS records are not created automatically",
                hint=f"cloudflared tunnel route dns {identity.id} <hostname>",
            )
            return None
        registrar = DnsRegistrar(self.cli, backoff=self.dns_backoff)
        return registrar.register_all(str(identity.id), hosts.keys())

    def run(self) -> SetupResult:
        """Run every stage and return what was set up.

        Raises:
            TunnelSetupError: Subclasses for any fatal failure
        """
        if self.run_preflight:
            self.preflight()

        hosts = self.parse_hosts()
        self.prepare()

        identity = TunnelProvisioner(self.cli, self.layout).provision(self.settings.tunnel_name)

        config = build_ingress_config(
            identity,
            hosts,
            runtime_credentials_path=self.layout.runtime_artifact(identity.credentials_file),
            loglevel=self.settings.tunnel_log_level,
            logfile=self.settings.tunnel_log_file,
        )
        config_path = write_ingress_config(config, self.layout.host_config_file)
        self.layout.apply_owner(config_path)

        dns = self.register_dns(identity, hosts)
        self.deployer.deploy()

        logger.info("Setup completed", tunnel_id=str(identity.id), hostnames=config.hostnames)
        return SetupResult(
            identity=identity,
            config_path=config_path,
            hostnames=tuple(config.hostnames),
            dns=dns,
        )
