"""Command-line entry point."""

import os
import sys
import warnings

import click

from . import __version__
from .common.exceptions import DnsRegistrationWarning, TunnelSetupError
from .common.logging import get_logger, setup_logging
from .settings import DeployMode, resolve_settings
from .workflow import SetupResult, SetupWorkflow

logger = get_logger(__name__)

EXIT_FAILURE = 1
EXIT_DNS_INCOMPLETE = 3


def _prompt(text: str) -> str:
    return click.prompt(text, default="", show_default=False)


def _print_summary(result: SetupResult, mode: DeployMode, runtime_name: str) -> None:
    click.echo("")
    click.echo("Setup completed successfully!")
    click.echo(f"Tunnel Name: {result.identity.name}")
    click.echo(f"Tunnel ID:   {result.identity.id}")
    click.echo(f"Config File: {result.config_path}")
    click.echo(f"Hostnames:   {', '.join(result.hostnames)}")
    click.echo("")
    if mode is DeployMode.DOCKER:
        click.echo(f"To view logs: docker logs -f {runtime_name}")
    else:
        click.echo(f"To check service status: systemctl status {runtime_name}")
        click.echo(f"To view logs: journalctl -u {runtime_name} -f")


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--tunnel-name", envvar="TUNNEL_NAME", default="", help="Tunnel name (TUNNEL_NAME).")
@click.option("--domain", envvar="DOMAIN", default="", help="Parent domain for --subdomains (DOMAIN).")
@click.option("--subdomains", envvar="SUBDOMAINS", default="", help="Comma-separated label[:port] list (SUBDOMAINS).")
@click.option("--hosts", envvar="HOSTS", default="", help="Comma-separated hostname:service list (HOSTS).")
@click.option("--mode", envvar="DEPLOY_MODE", default="", help="Deployment mode: docker or systemd (DEPLOY_MODE).")
@click.option("--config-dir", envvar="CFG_DIR", default="", help="Host config directory (CFG_DIR).")
@click.option("--container-name", envvar="CONTAINER_NAME", default="", help="Docker container name (CONTAINER_NAME).")
@click.option("--docker-image", envvar="DOCKER_IMAGE", default="", help="cloudflared image (DOCKER_IMAGE).")
@click.option("--cloudflared-bin", envvar="CLOUDFLARED_BIN", default="", help="cloudflared binary path (CLOUDFLARED_BIN).")
@click.option("--service-name", envvar="SERVICE_NAME", default="", help="systemd service name (SERVICE_NAME).")
@click.option("--service-user", envvar="SERVICE_USER", default="", help="systemd service user (SERVICE_USER).")
@click.option("--tunnel-loglevel", envvar="TUNNEL_LOGLEVEL", default="", help="cloudflared loglevel in config.yml.")
@click.option("--tunnel-logfile", envvar="TUNNEL_LOGFILE", default="", help="cloudflared logfile in config.yml.")
@click.option("--strict-dns", is_flag=True, help=f"Exit {EXIT_DNS_INCOMPLETE} if any DNS route fails (or set STRICT_DNS).")
@click.option("--no-input", is_flag=True, help="Never prompt; fail on missing input.")
@click.option("--log-level", envvar="LOG_LEVEL", default="INFO", show_default=True, help="Log level.")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON.")
@click.option("--log-file", default=None, help="Also write logs to this file.")
@click.version_option(__version__, prog_name="cf-tunnel-setup")
def main(
    tunnel_name: str,
    domain: str,
    subdomains: str,
    hosts: str,
    mode: str,
    config_dir: str,
    container_name: str,
    docker_image: str,
    cloudflared_bin: str,
    service_name: str,
    service_user: str,
    tunnel_loglevel: str,
    tunnel_logfile: str,
    strict_dns: bool,
    no_input: bool,
    log_level: str,
    json_logs: bool,
    log_file: str | None,
) -> None:
    """Create a Cloudflare Tunnel, generate its ingress config and start it.

    Hostnames come either from HOSTS (hostname:service pairs, DNS managed by
    you) or from SUBDOMAINS plus DOMAIN (DNS routes created automatically).
    """
    try:
        setup_logging(level=log_level, json_format=json_logs, log_file=log_file)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--log-level") from e

    environ = {
        "TUNNEL_NAME": tunnel_name,
        "DOMAIN": domain,
        "SUBDOMAINS": subdomains,
        "HOSTS": hosts,
        "DEPLOY_MODE": mode,
        "CFG_DIR": config_dir,
        "CONTAINER_NAME": container_name,
        "DOCKER_IMAGE": docker_image,
        "CLOUDFLARED_BIN": cloudflared_bin,
        "SERVICE_NAME": service_name,
        "SERVICE_USER": service_user,
        "TUNNEL_LOGLEVEL": tunnel_loglevel,
        "TUNNEL_LOGFILE": tunnel_logfile,
        # STRICT_DNS is parsed by TunnelSettings with the other overrides
        "STRICT_DNS": "1" if strict_dns else os.environ.get("STRICT_DNS", ""),
    }

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always", DnsRegistrationWarning)
        try:
            settings = resolve_settings(environ, prompt=None if no_input else _prompt)
            result = SetupWorkflow(settings).run()
        except TunnelSetupError as e:
            logger.error("Setup failed", error_type=type(e).__name__, error=str(e))
            click.echo(f"Error: {e}", err=True)
            sys.exit(EXIT_FAILURE)

    for warning in caught:
        if issubclass(warning.category, DnsRegistrationWarning):
            click.echo(f"Warning: {warning.message}", err=True)
        else:
            warnings.showwarning(warning.message, warning.category, warning.filename, warning.lineno)

    runtime_name = settings.container_name if settings.mode is DeployMode.DOCKER else settings.service_name
    _print_summary(result, settings.mode, runtime_name)

    if not result.dns_ok and settings.strict_dns:
        sys.exit(EXIT_DNS_INCOMPLETE)
