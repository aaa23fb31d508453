"""Registry v2 capability probe."""

import logging
from typing import Mapping

import aiohttp

from ..exceptions import RegistryUnreachableError
from .session import create_session, header_value, perform_request
from .types import RegistryConfig, RequestResult

logger = logging.getLogger(__name__)

API_VERSION_HEADER = "Docker-Distribution-API-Version"
API_VERSION = "registry/2.0"

# 401 is the normal answer from registries that require a token
PROBE_STATUSES = (200, 401)


def check_api_version_header(headers: Mapping[str, str]) -> bool:
    """Check that the v2 API version marker is present."""
    return header_value(headers, API_VERSION_HEADER) == API_VERSION


def check_json_content_type(headers: Mapping[str, str]) -> bool:
    """Check that the response declares a JSON body."""
    content_type = header_value(headers, "Content-Type") or ""
    return content_type.split(";", 1)[0].strip().lower() == "application/json"


def validate_connectivity_response(result: RequestResult) -> None:
    """Validate the ``GET /v2/`` probe response.

    Raises:
        RegistryUnreachableError: If the response does not come from a v2 registry
    """
    if result.status_code not in PROBE_STATUSES:
        raise RegistryUnreachableError(
            f"Registry probe returned HTTP {result.status_code}"
        )
    if not check_api_version_header(result.headers):
        raise RegistryUnreachableError(
            f"Registry probe response lacks {API_VERSION_HEADER}: {API_VERSION}"
        )
    if not check_json_content_type(result.headers):
        raise RegistryUnreachableError(
            "Registry probe response is not application/json"
        )


async def probe_registry(
    session: aiohttp.ClientSession, config: RegistryConfig
) -> RequestResult:
    """Send the unauthenticated ``GET /v2/`` probe.

    Returns:
        Validated probe response, kept for challenge discovery

    Raises:
        RegistryUnreachableError: If the URL is not a v2 registry
        TransportError: If the registry cannot be contacted
    """
    result = await perform_request(session, "GET", f"{config.base_url}/v2/")
    validate_connectivity_response(result)
    logger.debug("Registry %s speaks %s", config.base_url, API_VERSION)
    return result


async def check_connectivity(config: RegistryConfig) -> bool:
    """Check whether ``config.url`` points at a v2 registry.

    Returns:
        True if the probe succeeds

    Raises:
        RegistryUnreachableError: If the probe fails
        TransportError: If the registry cannot be contacted
    """
    async with await create_session(config.timeout) as session:
        await probe_registry(session, config)
    return True
