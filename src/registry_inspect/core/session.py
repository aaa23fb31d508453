"""HTTP session helpers."""

import asyncio
import json
import logging
from typing import Any, Mapping

import aiohttp

from ..exceptions import TransportError
from .types import RequestResult

logger = logging.getLogger(__name__)


async def create_session(timeout: int | None = None) -> aiohttp.ClientSession:
    """Create an aiohttp session.

    Args:
        timeout: Total request timeout in seconds, None for aiohttp defaults

    Returns:
        New client session; the caller closes it
    """
    if timeout is None:
        return aiohttp.ClientSession()
    return aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout))


def parse_json_response(text: str | bytes) -> Any:
    """Parse a response body as JSON.

    Returns:
        Decoded value, or None if the body is empty or not JSON
    """
    if not text:
        return None
    try:
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


def header_value(headers: Mapping[str, str], name: str) -> str | None:
    """Case-insensitive header lookup on a plain mapping."""
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


async def perform_request(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    **kwargs: Any,
) -> RequestResult:
    """Issue a request and read the whole body.

    Raises:
        TransportError: On connection failures and timeouts
    """
    logger.debug("%s %s", method, url)
    try:
        async with session.request(method, url, **kwargs) as resp:
            data = await resp.read()
            logger.debug("%s %s -> %s (%d bytes)", method, url, resp.status, len(data))
            return RequestResult(
                status_code=resp.status,
                headers=dict(resp.headers),
                data=data,
            )
    except asyncio.TimeoutError as e:
        raise TransportError(f"Request to {url} timed out") from e
    except aiohttp.ClientError as e:
        raise TransportError(f"Request to {url} failed: {e}") from e
