"""Docker Registry API v2 async client implementation."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

import aiohttp

from ..exceptions import DownloadError, RegistryAPIError, TransportError
from .manifest import LIST_MEDIA_TYPES, SINGLE_MEDIA_TYPES
from .session import create_session, parse_json_response, perform_request
from .types import AuthContext, RegistryConfig, RequestResult

logger = logging.getLogger(__name__)

MANIFEST_OR_LIST_ACCEPT = ", ".join(LIST_MEDIA_TYPES + SINGLE_MEDIA_TYPES)
MANIFEST_ACCEPT = ", ".join(SINGLE_MEDIA_TYPES)

DOWNLOAD_CHUNK_SIZE = 1024 * 1024  # 1MB


def check_response(result: RequestResult, what: str) -> Any:
    """Reject responses carrying a registry error payload.

    The registry reports failures as ``{"errors": [...]}`` bodies; those are
    authoritative regardless of the HTTP status.

    Args:
        result: Completed request
        what: Description used in the error message

    Returns:
        Decoded JSON body, or None when the body is not JSON

    Raises:
        RegistryAPIError: If the body has a non-null ``errors`` field or the
            status is an error without a structured body
    """
    payload = parse_json_response(result.data)
    if isinstance(payload, dict) and payload.get("errors") is not None:
        raise RegistryAPIError(f"Failed to get {what}", payload["errors"])

    if result.status_code >= 400:
        raise RegistryAPIError(
            f"Failed to get {what}",
            [{"code": "UNKNOWN", "message": f"HTTP {result.status_code}"}],
        )
    return payload


async def _write_stream(resp: aiohttp.ClientResponse, destination: Path) -> None:
    """Copy a response body into a new file, removing it if the copy fails.

    File operations run in the default executor; only the network read
    happens on the event loop.
    """
    loop = asyncio.get_event_loop()
    try:
        f = await loop.run_in_executor(None, open, destination, "xb")
    except OSError as e:
        raise DownloadError(f"Cannot create {destination}: {e}") from e

    try:
        try:
            async for chunk in resp.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                await loop.run_in_executor(None, f.write, chunk)
        finally:
            await loop.run_in_executor(None, f.close)
    except OSError as e:
        await loop.run_in_executor(None, _remove_partial, destination)
        raise DownloadError(f"Cannot write {destination}: {e}") from e
    except BaseException:
        await loop.run_in_executor(None, _remove_partial, destination)
        raise


def _remove_partial(path: Path) -> None:
    path.unlink(missing_ok=True)


class RegistryClient:
    """Authenticated read-only client for one registry."""

    def __init__(
        self,
        config: RegistryConfig,
        auth: Optional[AuthContext] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        """Initialize the registry client.

        Args:
            config: Registry URL and timeout
            auth: Auth context whose token is sent with every request
            session: Existing session to reuse; it is not closed by the client
        """
        self.config = config
        self.auth = auth or AuthContext()
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "RegistryClient":
        """Enter async context manager."""
        if not self.session:
            self.session = await create_session(self.config.timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the client session if the client opened it."""
        if self._owns_session and self.session and not self.session.closed:
            await self.session.close()

    def _url(self, repository: str, *parts: str) -> str:
        return "/".join((f"{self.config.base_url}/v2/{repository}",) + parts)

    async def _get(self, url: str, accept: Optional[str] = None) -> RequestResult:
        headers = self.auth.headers()
        if accept:
            headers["Accept"] = accept
        return await perform_request(self.session, "GET", url, headers=headers)

    async def list_tags(self, repository: str) -> list[str]:
        """List tags for a repository.

        Args:
            repository: Repository name

        Returns:
            Tag names in the order the registry sent them

        Raises:
            RegistryAPIError: If the registry reports an error
        """
        result = await self._get(self._url(repository, "tags", "list"))
        data = check_response(result, f"tags of {repository}")
        if not isinstance(data, dict):
            raise RegistryAPIError(
                f"Failed to get tags of {repository}",
                [{"code": "UNKNOWN", "message": "tag list is not a JSON object"}],
            )
        return data.get("tags") or []

    async def get_manifest_or_list(self, repository: str, reference: str) -> bytes:
        """Retrieve the manifest list for a reference, or its manifest.

        Both list and manifest media types are accepted so the registry
        returns the list when one exists.

        Args:
            repository: Repository name
            reference: Tag or digest

        Returns:
            Raw manifest bytes

        Raises:
            RegistryAPIError: If the registry reports an error
        """
        result = await self._get(
            self._url(repository, "manifests", reference), MANIFEST_OR_LIST_ACCEPT
        )
        check_response(result, f"manifest {repository}:{reference}")
        return result.data

    async def get_manifest_by_digest(self, repository: str, digest: str) -> bytes:
        """Retrieve a single manifest by its content digest.

        Returns:
            Raw manifest bytes
        """
        result = await self._get(
            self._url(repository, "manifests", digest), MANIFEST_ACCEPT
        )
        check_response(result, f"manifest {repository}@{digest}")
        return result.data

    async def get_config_blob(self, repository: str, digest: str) -> bytes:
        """Retrieve an image config blob.

        Returns:
            Raw config JSON bytes
        """
        result = await self._get(self._url(repository, "blobs", digest))
        check_response(result, f"config blob {digest}")
        return result.data

    async def head_blob(self, repository: str, digest: str) -> bool:
        """Check if a blob exists in the registry.

        Args:
            repository: Repository name
            digest: Blob digest

        Returns:
            True if blob exists

        Raises:
            RegistryAPIError: For statuses other than 200 and 404
        """
        result = await perform_request(
            self.session,
            "HEAD",
            self._url(repository, "blobs", digest),
            headers=self.auth.headers(),
        )
        if result.status_code == 404:
            return False
        if result.status_code != 200:
            check_response(result, f"blob {digest}")
        return True

    async def download_blob(
        self, repository: str, digest: str, destination: Path
    ) -> Path:
        """Stream a blob to a new file.

        The file is created exclusively; an existing file is never
        overwritten. The content is not checked against the digest.

        Args:
            repository: Repository name
            digest: Blob digest
            destination: File to create

        Returns:
            Path of the written file

        Raises:
            RegistryAPIError: If the registry reports an error
            DownloadError: If the file cannot be created or written
            TransportError: On connection failures
        """
        destination = Path(destination)
        url = self._url(repository, "blobs", digest)
        # Layers can be large; only bound the time between reads
        timeout = aiohttp.ClientTimeout(total=None, sock_read=self.config.timeout)
        logger.debug("GET %s -> %s", url, destination)

        try:
            async with self.session.get(
                url, headers=self.auth.headers(), timeout=timeout
            ) as resp:
                if resp.status != 200:
                    body = await resp.read()
                    check_response(
                        RequestResult(resp.status, dict(resp.headers), body),
                        f"blob {digest}",
                    )
                    raise RegistryAPIError(
                        f"Failed to get blob {digest}",
                        [{"code": "UNKNOWN", "message": f"HTTP {resp.status}"}],
                    )

                await _write_stream(resp, destination)

        except asyncio.TimeoutError as e:
            raise TransportError(f"Download of {digest} timed out") from e
        except aiohttp.ClientError as e:
            raise TransportError(f"Download of {digest} failed: {e}") from e

        logger.info("Wrote %s to %s", digest, destination)
        return destination
