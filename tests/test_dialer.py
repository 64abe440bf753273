import socket

import pytest

from conftest import TIMEOUT, BytesStream, closed_port, recv_exact
from socks5_relay.core.exceptions import (
    REP_CONNECTION_REFUSED,
    REP_HOST_UNREACHABLE,
    DialError,
    DNSResolutionError,
    StreamError,
)
from socks5_relay.core.lib.dialer import SUCCESS_REPLY, Dialer, build_reply, split_endpoint
from socks5_relay.core.lib.stream import SocketStream


UNRESOLVABLE = "no-such-host.invalid"


@pytest.fixture
def no_system_dns(monkeypatch):
    """Make the system resolver fail for UNRESOLVABLE without touching the network."""
    create_connection = socket.create_connection

    def fake_create_connection(address, *args, **kwargs):
        if address[0] == UNRESOLVABLE:
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        return create_connection(address, *args, **kwargs)

    monkeypatch.setattr(socket, "create_connection", fake_create_connection)


class FakeResolver:
    def __init__(self, answer: str | None = None) -> None:
        self.answer = answer
        self.queries = []

    def resolve(self, domain: str) -> str:
        self.queries.append(domain)
        if self.answer is None:
            raise DNSResolutionError(domain)
        return self.answer


@pytest.mark.parametrize(
    "endpoint, expected",
    [
        ("1.2.3.4:80", ("1.2.3.4", 80)),
        ("example.com:443", ("example.com", 443)),
        ("[::1]:8080", ("::1", 8080)),
        ("[2001:db8::1]:1", ("2001:db8::1", 1)),
    ],
)
def test_split_endpoint(endpoint, expected):
    assert split_endpoint(endpoint) == expected


@pytest.mark.parametrize("endpoint", ["example.com", "example.com:", "host:http"])
def test_split_endpoint_malformed(endpoint):
    with pytest.raises(DialError):
        split_endpoint(endpoint)


def test_reply_layout():
    assert SUCCESS_REPLY == b"\x05\x00\x00\x01\x00\x00\x00\x00\x00\x00"
    assert build_reply(REP_CONNECTION_REFUSED) == b"\x05\x05\x00\x01\x00\x00\x00\x00\x00\x00"


def test_dial_echo(echo_server):
    destination = Dialer(connect_timeout=TIMEOUT).dial(f"127.0.0.1:{echo_server.port}")
    try:
        assert isinstance(destination, SocketStream)
        assert destination.sock.gettimeout() is None
        destination.write(b"PING")
        assert recv_exact(destination.sock, 4) == b"PING"
    finally:
        destination.close()


def test_connect_writes_success_reply(echo_server):
    client = BytesStream()
    destination = Dialer(connect_timeout=TIMEOUT).connect(client, f"127.0.0.1:{echo_server.port}")
    destination.close()
    assert bytes(client.written) == SUCCESS_REPLY


def test_dial_refused():
    endpoint = f"127.0.0.1:{closed_port()}"
    with pytest.raises(DialError) as excinfo:
        Dialer(connect_timeout=TIMEOUT).dial(endpoint)
    assert excinfo.value.reply_code == REP_CONNECTION_REFUSED
    assert excinfo.value.endpoint == endpoint


def test_connect_failure_writes_nothing():
    client = BytesStream()
    with pytest.raises(DialError):
        Dialer(connect_timeout=TIMEOUT).connect(client, f"127.0.0.1:{closed_port()}")
    assert client.written == b""


def test_reply_failure_closes_destination():
    destination = BytesStream()

    class StubDialer(Dialer):
        def dial(self, endpoint):
            return destination

    client = BytesStream()
    client.close()
    with pytest.raises(StreamError):
        StubDialer().connect(client, "127.0.0.1:1")
    assert destination.closed


def test_fallback_resolver_used_after_system_failure(echo_server, no_system_dns):
    resolver = FakeResolver("127.0.0.1")
    dialer = Dialer(connect_timeout=TIMEOUT, resolver=resolver)
    destination = dialer.dial(f"{UNRESOLVABLE}:{echo_server.port}")
    destination.close()
    assert resolver.queries == [UNRESOLVABLE]


def test_fallback_resolver_failure(no_system_dns):
    dialer = Dialer(connect_timeout=TIMEOUT, resolver=FakeResolver())
    with pytest.raises(DNSResolutionError) as excinfo:
        dialer.dial(f"{UNRESOLVABLE}:80")
    assert excinfo.value.reply_code == REP_HOST_UNREACHABLE


def test_unresolvable_without_fallback(no_system_dns):
    with pytest.raises(DialError) as excinfo:
        Dialer(connect_timeout=TIMEOUT).dial(f"{UNRESOLVABLE}:80")
    assert excinfo.value.reply_code == REP_HOST_UNREACHABLE


def test_fallback_not_used_for_ip_literals():
    resolver = FakeResolver("127.0.0.1")
    with pytest.raises(DialError):
        Dialer(connect_timeout=TIMEOUT, resolver=resolver).dial(f"127.0.0.1:{closed_port()}")
    assert resolver.queries == []


@pytest.mark.parametrize("host", ["a..example", "x" * 64 + ".example"])
def test_dial_invalid_hostname(host):
    with pytest.raises(DialError) as excinfo:
        Dialer(connect_timeout=TIMEOUT).dial(f"{host}:80")
    assert excinfo.value.reply_code == REP_HOST_UNREACHABLE
