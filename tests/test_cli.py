import pytest
from typer.testing import CliRunner

from socks5_relay import __version__
from socks5_relay.cmd import cli

runner = CliRunner()


@pytest.fixture
def captured(monkeypatch):
    """Stub out logging setup, interface scanning and the server loop."""
    configs = []
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)
    monkeypatch.setattr(cli, "scan_interfaces", lambda: [])
    monkeypatch.setattr(cli, "run_server", configs.append)
    return configs


def test_version_is_read_from_pyproject():
    assert __version__ == "0.1.0"


def test_proxy_builds_config(captured):
    result = runner.invoke(
        cli.app,
        ["proxy", "--address", "127.0.0.1", "--port", "9050", "-u", "alice", "--password", "secret", "--no-stun", "--log"],
    )
    assert result.exit_code == 0, result.output
    (config,) = captured
    assert config.listen_endpoint == "127.0.0.1:9050"
    assert config.credentials.auth_required
    assert config.log_connections
    assert "Username: alice" in result.output


def test_proxy_reads_environment(captured):
    result = runner.invoke(
        cli.app, ["proxy", "--no-stun"], env={"SOCKS5_PORT": "2080", "SOCKS5_USERNAME": "bob"}
    )
    assert result.exit_code == 0, result.output
    (config,) = captured
    assert config.port == 2080
    assert config.address == ""
    # A username alone does not enable authentication
    assert not config.credentials.auth_required
    assert "Socks server listening *:2080" in result.output


def test_proxy_bind_failure_exits(monkeypatch, captured):
    def fail(config):
        raise OSError(98, "Address already in use")

    monkeypatch.setattr(cli, "run_server", fail)
    result = runner.invoke(cli.app, ["proxy", "--no-stun", "--address", "127.0.0.1"])
    assert result.exit_code == 1
    assert "Listen failed" in result.output


def test_banner_shows_public_addresses(monkeypatch, captured):
    monkeypatch.setattr(cli, "discover_public_ips", lambda server: ("203.0.113.5", None))
    result = runner.invoke(cli.app, ["proxy", "--address", "127.0.0.1"])
    assert result.exit_code == 0, result.output
    assert "Public IPv4: 203.0.113.5" in result.output
    assert "Public IPv6" not in result.output


def test_public_ip(monkeypatch):
    monkeypatch.setattr(cli, "discover_public_ips", lambda server: ("203.0.113.5", "2001:db8::5"))
    result = runner.invoke(cli.app, ["public-ip"])
    assert result.exit_code == 0
    assert "IPv4: 203.0.113.5" in result.output
    assert "IPv6: 2001:db8::5" in result.output


def test_public_ip_unavailable(monkeypatch):
    monkeypatch.setattr(cli, "discover_public_ips", lambda server: (None, None))
    result = runner.invoke(cli.app, ["public-ip"])
    assert result.exit_code == 1
    assert "unavailable" in result.output
