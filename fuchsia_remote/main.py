"""
Main entry point for the Fuchsia Remote command-line interface.

This module provides commands to inspect service ports and Flutter views on
a device, hold port forwarding open, and copy build artifacts to a device.
"""

import asyncio
import sys
from typing import Any, Coroutine, Optional, TypeVar

import typer
from loguru import logger

from .application.remote_connection import FuchsiaRemoteConnection
from .core.exceptions import FuchsiaRemoteError
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ApplicationConfig
from .infrastructure.logging.setup import setup_logging
from .infrastructure.ssh.command_runner import SSHCommandRunner
from .infrastructure.vmservice.client import VMServiceConnection

# Create CLI application
cli = typer.Typer(
    name="fuchsia-remote",
    help="SSH port forwarding and VM service inspection for Fuchsia devices"
)

T = TypeVar("T")

ADDRESS_ARGUMENT = typer.Argument(None, help="Device IPv4 or IPv6 address")
INTERFACE_OPTION = typer.Option(None, "--interface", "-i", help="Outgoing interface for IPv6 link-local addresses")
SSH_CONFIG_OPTION = typer.Option(None, "--ssh-config", "-F", help="ssh_config file for the device")
CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Configuration file path")
LOG_LEVEL_OPTION = typer.Option(None, "--log-level", help="Logging level")


def load_settings(
    config_file: Optional[str],
    address: Optional[str],
    interface: Optional[str],
    ssh_config: Optional[str],
    log_level: Optional[str]
) -> ApplicationConfig:
    """Load configuration and apply command line overrides."""
    try:
        config = ConfigLoader().load_config(config_file)

        if address:
            config.ssh.address = address
        if interface is not None:
            config.ssh.interface = interface
        if ssh_config:
            config.ssh.ssh_config_path = ssh_config
        if log_level:
            config.logging.level = log_level.upper()
        if config.debug:
            config.logging.level = "DEBUG"
        config.validate()
    except (OSError, ValueError, TypeError) as e:
        typer.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(1)

    if not config.ssh.address:
        raise typer.BadParameter("a device address is required (argument, config file or FUCHSIA_REMOTE_ADDRESS)")

    setup_logging(config.logging)
    return config


def _run(coro: Coroutine[Any, Any, T]) -> T:
    try:
        return asyncio.run(coro)
    except FuchsiaRemoteError as e:
        logger.error(str(e))
        typer.echo(f"Error: {e}", err=True)
        sys.exit(1)


async def _connect(config: ApplicationConfig) -> FuchsiaRemoteConnection:
    open_timeout = config.vmservice.open_timeout

    async def service_connector(uri: str) -> VMServiceConnection:
        return await VMServiceConnection.connect(uri, open_timeout=open_timeout)

    return await FuchsiaRemoteConnection.connect(
        config.ssh.address or "",
        config.ssh.interface,
        config.ssh.ssh_config_path,
        service_connector=service_connector,
        timeout=config.ssh.command_timeout
    )


def _runner(config: ApplicationConfig) -> SSHCommandRunner:
    return SSHCommandRunner(
        address=config.ssh.address or "",
        interface=config.ssh.interface,
        ssh_config_path=config.ssh.ssh_config_path,
        timeout=config.ssh.command_timeout
    )


@cli.command()
def ports(
    address: Optional[str] = ADDRESS_ARGUMENT,
    interface: Optional[str] = INTERFACE_OPTION,
    ssh_config: Optional[str] = SSH_CONFIG_OPTION,
    config_file: Optional[str] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION
) -> None:
    """List the Dart VM service ports advertised by the device."""
    config = load_settings(config_file, address, interface, ssh_config, log_level)

    async def list_ports() -> None:
        connection = FuchsiaRemoteConnection(_runner(config))
        for port in await connection.get_device_service_ports():
            typer.echo(port)

    _run(list_ports())


@cli.command()
def views(
    address: Optional[str] = ADDRESS_ARGUMENT,
    interface: Optional[str] = INTERFACE_OPTION,
    ssh_config: Optional[str] = SSH_CONFIG_OPTION,
    config_file: Optional[str] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION
) -> None:
    """List the Flutter views running on the device."""
    config = load_settings(config_file, address, interface, ssh_config, log_level)

    async def list_views() -> None:
        async with await _connect(config) as connection:
            for forwarder in connection.forwarded_ports:
                for view in await connection.get_flutter_views_at_port(forwarder):
                    isolate = view.isolate_name or "-"
                    typer.echo(f"{forwarder.remote_port}\t{view.id}\t{isolate}")

    _run(list_views())


@cli.command()
def forward(
    address: Optional[str] = ADDRESS_ARGUMENT,
    interface: Optional[str] = INTERFACE_OPTION,
    ssh_config: Optional[str] = SSH_CONFIG_OPTION,
    config_file: Optional[str] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION
) -> None:
    """Forward every VM service port and keep the tunnels open until interrupted."""
    config = load_settings(config_file, address, interface, ssh_config, log_level)

    async def hold_forwarding() -> None:
        async with await _connect(config) as connection:
            for forwarder in connection.forwarded_ports:
                typer.echo(f"localhost:{forwarder.port} -> {connection.address}:{forwarder.remote_port}")
            await asyncio.Event().wait()

    try:
        _run(hold_forwarding())
    except KeyboardInterrupt:
        logger.info("Forwarding interrupted by user")


@cli.command()
def install(
    source: str = typer.Argument(..., help="Local file or directory to copy"),
    address: Optional[str] = ADDRESS_ARGUMENT,
    dest: str = typer.Option("/tmp", "--dest", "-d", help="Destination directory on the device"),
    interface: Optional[str] = INTERFACE_OPTION,
    ssh_config: Optional[str] = SSH_CONFIG_OPTION,
    config_file: Optional[str] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION
) -> None:
    """Copy a build artifact to the device."""
    config = load_settings(config_file, address, interface, ssh_config, log_level)

    async def copy() -> None:
        connection = FuchsiaRemoteConnection(_runner(config))
        await connection.install_app(source, dest)

    _run(copy())
    typer.echo(f"Copied {source} to {config.ssh.address}:{dest}")


@cli.command()
def init_config(
    output: str = typer.Option(
        "fuchsia_remote.yaml", "--output", "-o", help="Output configuration file"
    ),
    format: str = typer.Option(
        "yaml", "--format", "-f", help="Configuration format (yaml/json)"
    )
) -> None:
    """Generate a default configuration file."""

    config = ApplicationConfig()
    config_loader = ConfigLoader()

    try:
        config_loader.save_config(config, output, format)
        typer.echo(f"Default configuration saved to {output}")
    except (OSError, ValueError) as e:
        typer.echo(f"Error saving configuration: {e}", err=True)
        sys.exit(1)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
