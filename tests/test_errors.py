import socket

import httpx
import pytest

from tempest_cli.errors import (
    CONFIG_HINT,
    ConfigurationError,
    TransportError,
    UpstreamStatusError,
    describe_error,
    transport_error,
)


@pytest.mark.parametrize(
    "status, fragment",
    [(401, "API token"), (404, "station ID"), (429, "rate limit"), (500, "status 500")],
)
def test_describe_upstream_status(status, fragment):
    assert fragment in describe_error(UpstreamStatusError(status, "/stations/1001", source="WeatherFlow API"))


@pytest.mark.parametrize(
    "kind, fragment",
    [
        (TransportError.TIMEOUT, "timed out"),
        (TransportError.DNS, "DNS lookup failed"),
        (TransportError.CONNECT, "cannot reach the server"),
        (TransportError.OTHER, "network error"),
    ],
)
def test_describe_transport_error(kind, fragment):
    assert fragment in describe_error(TransportError("boom", kind))


def test_configuration_error_includes_remediation():
    err = ConfigurationError("no stations configured", CONFIG_HINT)
    assert describe_error(err) == f"no stations configured\n{CONFIG_HINT}"


def test_transport_error_finds_dns_failure_in_chain():
    try:
        try:
            raise socket.gaierror(-2, "lookup failed")
        except socket.gaierror as e:
            raise httpx.ConnectError("connect failed") from e
    except httpx.ConnectError as e:
        err = transport_error(e, "tempestd")

    assert err.kind == TransportError.DNS


def test_transport_error_other():
    err = transport_error(httpx.RemoteProtocolError("bad framing"), "tempestd")
    assert err.kind == TransportError.OTHER
    assert "tempestd" in str(err)
