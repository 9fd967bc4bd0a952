import socket
from typing import Optional

import httpx

CONFIG_HINT = "Add a station to ~/.config/tempest/config.yaml or set TEMPEST_TOKEN and TEMPEST_STATION_ID"


class TempestError(Exception):
    """Base class for all errors raised by tempest-cli"""


class ValidationError(TempestError):
    """Malformed or incomplete user input, such as a bad --date value"""

    def __init__(self, message: str, flag: Optional[str] = None, expected: Optional[str] = None):
        super().__init__(message)
        self.flag = flag
        self.expected = expected


class ConfigurationError(TempestError):
    """Missing or inconsistent configuration"""

    def __init__(self, message: str, remediation: Optional[str] = None):
        super().__init__(message)
        self.remediation = remediation

    def __str__(self) -> str:
        message = super().__str__()
        if self.remediation:
            return f"{message}\n{self.remediation}"
        return message


class TransportError(TempestError):
    """Network level failure: timeout, DNS lookup or connection error"""

    TIMEOUT = "timeout"
    DNS = "dns"
    CONNECT = "connect"
    OTHER = "other"

    def __init__(self, message: str, kind: str = OTHER):
        super().__init__(message)
        self.kind = kind


class UpstreamStatusError(TempestError):
    """Non-success HTTP status from the cloud API or the local daemon"""

    def __init__(self, status_code: int, path: str, source: str = "tempestd"):
        super().__init__(f"{source} returned status {status_code} for {path}")
        self.status_code = status_code
        self.path = path
        self.source = source


class DecodeError(TempestError):
    """Response body is not valid JSON or does not have the expected shape"""

    def __init__(self, path: str, reason: str):
        super().__init__(f"decoding response from {path}: {reason}")
        self.path = path
        self.reason = reason


def _is_dns_failure(exc: BaseException) -> bool:
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return True
        text = str(current).lower()
        if "name or service not known" in text or "nodename nor servname" in text or "name resolution" in text:
            return True
        current = current.__cause__ or current.__context__
    return False


def transport_error(exc: httpx.TransportError, target: str) -> TransportError:
    """Classify an httpx transport failure into a TransportError"""
    if isinstance(exc, httpx.TimeoutException):
        return TransportError(f"request to {target} timed out: {exc}", TransportError.TIMEOUT)
    if isinstance(exc, httpx.ConnectError):
        if _is_dns_failure(exc):
            return TransportError(f"cannot resolve host for {target}: {exc}", TransportError.DNS)
        return TransportError(f"contacting {target}: {exc}", TransportError.CONNECT)
    return TransportError(f"contacting {target}: {exc}", TransportError.OTHER)


def describe_error(err: Exception) -> str:
    """Turn an error into a message a user can act on"""
    if isinstance(err, UpstreamStatusError):
        if err.status_code == 401:
            return (
                "authentication failed: your API token may be invalid or expired.\n"
                "Check your token at https://tempestwx.com/settings/tokens"
            )
        if err.status_code == 404:
            return f"station not found: check that your station ID is correct. {err}"
        if err.status_code == 429:
            return "API rate limit exceeded. Try again in a moment"
        return str(err)

    if isinstance(err, TransportError):
        if err.kind == TransportError.TIMEOUT:
            return "request timed out: the server did not respond in time. Try again later"
        if err.kind == TransportError.DNS:
            return "DNS lookup failed: cannot resolve the server hostname. Check your internet connection"
        if err.kind == TransportError.CONNECT:
            return f"network error: cannot reach the server. Check your internet connection: {err}"
        return f"network error: {err}"

    return str(err)
