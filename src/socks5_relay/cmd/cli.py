"""Command-line interface for the SOCKS5 relay.

This module provides the main command-line interface, handling:
- Command-line and environment option parsing
- Logging setup
- The startup banner (listen address, credentials, local and public addresses)
- Server lifecycle and the fatal bind error

Example:
    # Run from command line:
    $ socks5-relay proxy --port 1080 --username alice --password secret
    $ SOCKS5_PORT=1081 python -m socks5_relay proxy --log
"""

import typer
from loguru import logger
from rich.console import Console

from socks5_relay import __version__
from socks5_relay.core.network import scan_interfaces
from socks5_relay.core.proxy import Credentials, ServerConfig, run_server
from socks5_relay.core.stun import DEFAULT_STUN_SERVER, discover_public_ips
from socks5_relay.core.utils.log_config import LOG_DIR, configure_logging

console = Console()
app = typer.Typer(help="SOCKS5 relay with optional username/password authentication")


@app.callback(invoke_without_command=True)
def version_callback():
    """Show version information."""
    console.print(f"[cyan]SOCKS5 Relay v{__version__}[/cyan]")


def print_banner(config: ServerConfig, stun: bool, stun_server: str) -> None:
    """Print where the relay can be reached."""
    console.print(f"[bold green]Socks server listening {config.listen_endpoint}")
    if config.credentials.auth_required:
        console.print(f"Username: {config.credentials.username}")
        console.print(f"Password: {config.credentials.password}")

    if not config.address:
        for interface in scan_interfaces():
            console.print(f"[cyan]Local {interface.name}:[/cyan] {interface.ip}")

    if stun:
        ipv4, ipv6 = discover_public_ips(stun_server)
        if ipv4:
            console.print(f"[cyan]Public IPv4:[/cyan] {ipv4}")
        if ipv6:
            console.print(f"[cyan]Public IPv6:[/cyan] {ipv6}")


@app.command(name="proxy")
def start_proxy(
    address: str = typer.Option("", "--address", envvar="SOCKS5_ADDRESS", help="Listening address"),
    port: int = typer.Option(1080, "--port", "-p", envvar="SOCKS5_PORT", help="Listening port"),
    username: str = typer.Option("", "--username", "-u", envvar="SOCKS5_USERNAME", help="Socks username"),
    password: str = typer.Option("", "--password", envvar="SOCKS5_PASSWORD", help="Socks password"),
    log: bool = typer.Option(False, "--log", envvar="SOCKS5_LOG", help="Log every connection"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
    log_file: bool = typer.Option(False, "--log-file", help=f"Also log to {LOG_DIR / 'proxy.log'}"),
    stun: bool = typer.Option(True, "--stun/--no-stun", help="Show public addresses found via STUN"),
    stun_server: str = typer.Option(DEFAULT_STUN_SERVER, "--stun-server", help="STUN server host:port"),
    dns_fallback: bool = typer.Option(
        True, "--dns-fallback/--no-dns-fallback", help="Retry failed lookups via public nameservers"
    ),
):
    """Start the SOCKS5 relay."""
    configure_logging(debug=debug, log_file=LOG_DIR / "proxy.log" if log_file else None)

    config = ServerConfig(
        address=address,
        port=port,
        credentials=Credentials(username, password),
        dns_fallback=dns_fallback,
        log_connections=log,
    )
    if (username or password) and not config.credentials.auth_required:
        logger.warning("Both --username and --password are needed to enable authentication")

    print_banner(config, stun, stun_server)

    try:
        run_server(config)
    except OSError as e:
        logger.error(f"Listen failed: {e}")
        console.print(f"[red]Listen failed: {e}")
        raise typer.Exit(code=1) from e


@app.command(name="public-ip")
def public_ip(
    stun_server: str = typer.Option(DEFAULT_STUN_SERVER, "--stun-server", help="STUN server host:port"),
):
    """Print this host's public IPv4 and IPv6 addresses."""
    ipv4, ipv6 = discover_public_ips(stun_server)
    console.print(f"IPv4: {ipv4 or '[yellow]unavailable'}")
    console.print(f"IPv6: {ipv6 or '[yellow]unavailable'}")
    if not (ipv4 or ipv6):
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
