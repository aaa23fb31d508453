"""Bearer token authentication for registry requests.

The registry answers an unauthenticated ``GET /v2/`` with a challenge such
as::

    WWW-Authenticate: Bearer realm="https://auth.docker.io/token",service="registry.docker.io"

The token is then requested from ``realm`` with the ``service`` and a
``repository:<name>:pull`` scope.
"""

import logging
import re

import aiohttp

from ..exceptions import AuthenticationError, CredentialsRejectedError
from .connectivity import probe_registry
from .session import header_value, parse_json_response, perform_request
from .types import AuthContext, Credentials, RegistryConfig, RequestResult

logger = logging.getLogger(__name__)

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


def pull_scope(repository: str) -> str:
    """Token scope granting pull access to one repository."""
    return f"repository:{repository}:pull"


def parse_challenge(header: str) -> dict[str, str]:
    """Parse a ``WWW-Authenticate: Bearer ...`` challenge.

    Args:
        header: Header value

    Returns:
        Challenge parameters (``realm``, ``service``, ...)

    Raises:
        AuthenticationError: If the scheme is not Bearer or realm is missing
    """
    scheme, _, params_str = header.strip().partition(" ")
    if scheme.lower() != "bearer":
        raise AuthenticationError(f"Unsupported authentication scheme: {scheme}")

    params = dict(_CHALLENGE_PARAM.findall(params_str))
    if not params.get("realm"):
        raise AuthenticationError("Authentication challenge has no realm")
    return params


def challenge_from_probe(result: RequestResult) -> AuthContext:
    """Build the partial auth context from a validated probe response."""
    if result.status_code == 200:
        logger.debug("Registry allows anonymous access")
        return AuthContext()

    header = header_value(result.headers, "WWW-Authenticate")
    if not header:
        raise AuthenticationError(
            "Registry requires authentication but sent no challenge"
        )

    params = parse_challenge(header)
    logger.debug(
        "Auth challenge: realm=%s service=%s", params["realm"], params.get("service")
    )
    return AuthContext(auth_endpoint=params["realm"], service=params.get("service"))


async def discover_challenge(
    session: aiohttp.ClientSession, config: RegistryConfig
) -> AuthContext:
    """Probe the registry and extract its auth challenge.

    Raises:
        RegistryUnreachableError: If the probe is not answered by a v2 registry
        AuthenticationError: If the challenge cannot be understood
    """
    result = await probe_registry(session, config)
    return challenge_from_probe(result)


def _token_failure(
    message: str, errors: list | None, credentials: Credentials | None
) -> AuthenticationError:
    if credentials is not None:
        return CredentialsRejectedError(
            f"{message} (credentials for {credentials.username!r} were rejected; "
            "public images may only be readable anonymously)",
            errors,
        )
    return AuthenticationError(message, errors)


async def fetch_token(
    session: aiohttp.ClientSession,
    context: AuthContext,
    repository: str,
    credentials: Credentials | None = None,
) -> str:
    """Exchange the challenge (and optional credentials) for a bearer token.

    Args:
        session: HTTP session
        context: Auth context carrying the token endpoint
        repository: Repository the token is scoped to
        credentials: Optional basic credentials

    Returns:
        Bearer token

    Raises:
        AuthenticationError: If the endpoint reports errors or sends no token
        CredentialsRejectedError: Same, when credentials were supplied
    """
    if not context.auth_endpoint:
        raise AuthenticationError("No token endpoint to authenticate against")

    params = {"scope": pull_scope(repository)}
    if context.service:
        params["service"] = context.service

    auth = None
    if credentials is not None:
        auth = aiohttp.BasicAuth(credentials.username, credentials.password)

    result = await perform_request(
        session, "GET", context.auth_endpoint, params=params, auth=auth
    )
    payload = parse_json_response(result.data)

    if isinstance(payload, dict) and payload.get("errors") is not None:
        raise _token_failure(
            f"Token request for {repository} failed", payload["errors"], credentials
        )
    if result.status_code >= 400:
        detail = payload if payload is not None else result.data.decode(errors="replace")
        raise _token_failure(
            f"Token request for {repository} failed with HTTP {result.status_code}",
            [detail] if detail else None,
            credentials,
        )
    if not isinstance(payload, dict):
        raise AuthenticationError("Token endpoint returned no JSON object")

    token = payload.get("token") or payload.get("access_token")
    if not token:
        raise _token_failure(
            f"Token endpoint returned no token for {repository}", None, credentials
        )

    logger.debug("Obtained pull token for %s", repository)
    return token


async def authenticate(
    session: aiohttp.ClientSession,
    config: RegistryConfig,
    repository: str,
    credentials: Credentials | None = None,
) -> AuthContext:
    """Run the probe and token exchange for one repository.

    Returns:
        AuthContext with a token, or an anonymous context
    """
    context = await discover_challenge(session, config)
    if context.requires_token:
        context.token = await fetch_token(session, context, repository, credentials)
    return context
