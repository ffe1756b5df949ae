"""Command-line interface for UBNT device management."""

import json
import logging
import re
import sys
from pathlib import Path
from typing import Any, NoReturn, Optional

import click
import yaml
from dotenv import load_dotenv

from . import __version__
from .config import ClientSettings, load_settings
from .device import UBNTDevice
from .mca import TransformError
from .session import ConnectStatus


def _load_env_files() -> None:
    """Load environment variables from .env in the working directory or above."""
    cwd_env = Path.cwd() / ".env"
    if cwd_env.exists():
        load_dotenv(cwd_env)
    else:
        load_dotenv()


_load_env_files()


def parse_target(target: str) -> dict[str, Any]:
    """
    Parse a target string into connection parameters.

    Supports:
    - IP address: 192.168.1.20
    - Hostname: ap.local
    - IP:port: 192.168.1.20:2222
    - user@host: ubnt@192.168.1.20
    - user@host:port: ubnt@192.168.1.20:2222
    - [IPv6]:port: [fe80::1]:22

    Returns:
        Dictionary with host, and port/username when given
    """
    result: dict[str, Any] = {"host": target}

    if "@" in target:
        user_part, target = target.split("@", 1)
        result["username"] = user_part

    if target.startswith("["):
        match = re.match(r"\[([^\]]+)\]:?(\d+)?", target)
        if match:
            result["host"] = match.group(1)
            if match.group(2):
                result["port"] = int(match.group(2))
            return result

    if target.count(":") == 1:
        host, port = target.rsplit(":", 1)
        try:
            result["port"] = int(port)
            result["host"] = host
        except ValueError:
            # Not a valid port, treat the whole thing as hostname
            result["host"] = target
    else:
        result["host"] = target

    return result


def open_device(
    settings: ClientSettings,
    target: str,
    password: Optional[str],
    key_file: Optional[str],
    public_key: Optional[str],
    timeout: Optional[float],
) -> UBNTDevice:
    """Create a device for ``target`` and log in, raising ConnectionError on failure."""
    if timeout is not None:
        settings = settings.model_copy(update={"timeout": timeout, "connect_timeout": timeout})

    params = parse_target(target)
    device = UBNTDevice(
        params["host"],
        port=params.get("port"),
        username=params.get("username"),
        settings=settings,
    )

    if key_file:
        status = device.connect_key(public_key or f"{key_file}.pub", key_file)
    elif password is not None:
        status = device.connect_password(password)
    else:
        raise click.UsageError("Either --password or --key-file is required")

    if status is not ConnectStatus.OK:
        device.disconnect()
        raise ConnectionError(f"login failed ({status.name}, code {int(status)})")
    return device


def connection_options(func: Any) -> Any:
    """Shared target and credential options."""
    func = click.option(
        "-t", "--timeout", type=float, default=None, envvar="UBNT_TIMEOUT",
        help="Connect/read timeout in seconds",
    )(func)
    func = click.option(
        "--public-key", type=click.Path(exists=True), envvar="UBNT_PUBLIC_KEY",
        help="SSH public key file (default: KEY_FILE.pub)",
    )(func)
    func = click.option(
        "-k", "--key-file", type=click.Path(exists=True), envvar="UBNT_KEY_FILE",
        help="SSH private key file",
    )(func)
    func = click.option(
        "-p", "--password", envvar="UBNT_PASSWORD", help="SSH password"
    )(func)
    func = click.argument("target", envvar="UBNT_TARGET")(func)
    return func


def _run(ctx: click.Context, target: str, action: Any, **credentials: Any) -> None:
    """Log in to ``target``, call ``action(device)`` and report failures."""
    try:
        device = open_device(ctx.obj, target, **credentials)
        with device:
            action(device)
    except click.UsageError:
        raise
    except ConnectionError as e:
        click.echo(f"Error: Failed to connect to {target}: {e}", err=True)
        sys.exit(1)
    except TransformError as e:
        click.echo(f"Error: Could not parse device output: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="ubntkit")
@click.option(
    "--settings", "settings_file", type=click.Path(exists=True), envvar="UBNT_SETTINGS",
    help="YAML settings file",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, settings_file: Optional[str], verbose: bool) -> None:
    """ubntkit - manage Ubiquiti access points over SSH.

    Examples:

        \b
        # Show device status
        ubntkit status 192.168.1.20 -p ubnt

        \b
        # List associated stations with key auth
        ubntkit stations admin@ap.local -k ~/.ssh/id_rsa

        \b
        # Back up the configuration file
        ubntkit pull-config 192.168.1.20 system.cfg -p ubnt
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    ctx.obj = load_settings(settings_file) if settings_file else ClientSettings()


@cli.command()
@connection_options
@click.option(
    "--format", "output_format", type=click.Choice(["json", "yaml"]), default="json",
    help="Output format (default: json)",
)
@click.pass_context
def status(ctx: click.Context, target: str, output_format: str, **credentials: Any) -> None:
    """Show the device status reported by mca-status.

    TARGET is the device address (IP or hostname, optionally user@ and :port).
    """

    def action(device: UBNTDevice) -> None:
        data = device.mca_status()
        if data is None:
            _fail("mca-status produced no result")
        if output_format == "yaml":
            click.echo(yaml.safe_dump(data, default_flow_style=False, sort_keys=False), nl=False)
        else:
            click.echo(json.dumps(data, indent=2))

    _run(ctx, target, action, **credentials)


@cli.command()
@connection_options
@click.pass_context
def stations(ctx: click.Context, target: str, **credentials: Any) -> None:
    """List the stations associated with the device."""

    def action(device: UBNTDevice) -> None:
        output = device.wstalist()
        if output is None:
            _fail("wstalist produced no result")
        click.echo(output)

    _run(ctx, target, action, **credentials)


@cli.command()
@connection_options
@click.pass_context
def scan(ctx: click.Context, target: str, **credentials: Any) -> None:
    """List the access points the device can see."""

    def action(device: UBNTDevice) -> None:
        output = device.scan()
        if output is None:
            _fail("scan produced no result")
        click.echo(output)

    _run(ctx, target, action, **credentials)


@cli.command()
@connection_options
@click.pass_context
def save(ctx: click.Context, target: str, **credentials: Any) -> None:
    """Persist the running configuration to flash."""

    def action(device: UBNTDevice) -> None:
        if not device.save():
            _fail("save command could not be run")
        click.echo("Configuration saved.")

    _run(ctx, target, action, **credentials)


@cli.command("exec")
@connection_options
@click.argument("command")
@click.pass_context
def exec_(ctx: click.Context, target: str, command: str, **credentials: Any) -> None:
    """Run COMMAND on the device and print its output."""

    def action(device: UBNTDevice) -> None:
        result = device.execute(command)
        if result is None:
            _fail(f"could not run {command!r}")
        click.echo(result.output)
        if not result.complete:
            click.echo("Warning: output may be incomplete (read timed out)", err=True)

    _run(ctx, target, action, **credentials)


@cli.command("pull-config")
@connection_options
@click.argument("output_file", type=click.Path())
@click.pass_context
def pull_config(ctx: click.Context, target: str, output_file: str, **credentials: Any) -> None:
    """Download the device configuration file to OUTPUT_FILE."""

    def action(device: UBNTDevice) -> None:
        result = device.copy_config()
        if result.data:
            Path(output_file).write_bytes(result.data)
        if not result.ok:
            detail = f": {result.message}" if result.message else ""
            _fail(
                f"transfer {result.status.value} ({result.nbytes} of {result.size} bytes){detail}"
            )
        click.echo(f"Saved {result.nbytes} bytes to {output_file}")

    _run(ctx, target, action, **credentials)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
