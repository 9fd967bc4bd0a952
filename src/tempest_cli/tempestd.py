"""Client helpers for tempestd, the optional local caching daemon."""

import asyncio
import json
import logging
import ssl
from typing import Any, Optional
from urllib.parse import urlsplit

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from tempest_cli.errors import ConfigurationError, DecodeError, TransportError, UpstreamStatusError, transport_error

logger = logging.getLogger("tempest.tempestd")

MAX_RESPONSE_BODY = 10 * 1024 * 1024  # 10 MiB
CONNECT_TIMEOUT = 30.0
REQUEST_TIMEOUT = 60.0


def tls_context() -> ssl.SSLContext:
    """Default verifying TLS context pinned to TLS 1.2 or newer"""
    context = ssl.create_default_context()
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


def build_client(
    transport: Optional[httpx.AsyncBaseTransport] = None, headers: Optional[dict] = None
) -> httpx.AsyncClient:
    """Create an AsyncClient with the connect and request timeouts used for all fetches"""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(REQUEST_TIMEOUT, connect=CONNECT_TIMEOUT),
        verify=tls_context(),
        headers=headers,
        transport=transport,
    )


def validate_server_url(server_url: str) -> None:
    """Check that a server URL is an absolute http or https URL"""
    try:
        parts = urlsplit(server_url)
    except ValueError as e:
        raise ConfigurationError(f"invalid server URL {server_url!r}: {e}") from e
    if parts.scheme not in ("http", "https"):
        raise ConfigurationError(f"invalid server URL {server_url!r}: scheme must be http or https")
    if not parts.netloc:
        raise ConfigurationError(f"invalid server URL {server_url!r}: missing host")


async def read_limited(response: httpx.Response, path: str, limit: int = MAX_RESPONSE_BODY) -> bytes:
    """Read a streamed response body, failing once it grows past limit bytes"""
    body = bytearray()
    async for chunk in response.aiter_bytes():
        body.extend(chunk)
        if len(body) > limit:
            raise DecodeError(path, f"response body exceeds {limit} bytes")
    return bytes(body)


def decode_body(body: bytes, path: str, shape: Any = None) -> Any:
    """Decode a JSON body and, when shape is given, validate it into that type"""
    try:
        data = json.loads(body)
    except ValueError as e:
        raise DecodeError(path, str(e)) from e

    if shape is None:
        return data
    try:
        return TypeAdapter(shape).validate_python(data)
    except PydanticValidationError as e:
        raise DecodeError(path, str(e)) from e


async def _get(server_url: str, path: str, shape: Any, transport: Optional[httpx.AsyncBaseTransport]) -> Any:
    url = httpx.URL(server_url).join(path)
    logger.debug(f"GET {url}")

    async with build_client(transport) as client:
        try:
            async with client.stream("GET", url) as response:
                if response.status_code != httpx.codes.OK:
                    raise UpstreamStatusError(response.status_code, path)
                body = await read_limited(response, path)
        except httpx.TransportError as e:
            raise transport_error(e, f"tempestd at {server_url}") from e

    return decode_body(body, path, shape)


async def fetch_json(
    server_url: str,
    path: str,
    shape: Any = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Any:
    """
    GET a tempestd endpoint and decode its JSON body.

    Args:
        server_url: Base URL of the daemon, e.g. http://localhost:8080
        path: Path relative to the base URL, including any query string
        shape: Optional type (pydantic model, List[Model], ...) to validate into
        transport: Optional httpx transport, used by tests
    """
    try:
        return await asyncio.wait_for(_get(server_url, path, shape, transport), timeout=REQUEST_TIMEOUT)
    except asyncio.TimeoutError as e:
        raise TransportError(
            f"request to tempestd at {server_url} exceeded {REQUEST_TIMEOUT:.0f}s", TransportError.TIMEOUT
        ) from e
