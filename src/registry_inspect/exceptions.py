"""Custom exceptions for registry inspection."""

import json
from typing import Any


class RegistryError(Exception):
    """Base exception for all registry-related errors."""

    pass


class InvalidReferenceError(RegistryError):
    """Raised when an image reference string cannot be parsed."""

    pass


class RegistryUnreachableError(RegistryError):
    """Raised when the registry does not answer the v2 capability probe."""

    pass


class TransportError(RegistryError):
    """Raised on connection-level failures (DNS, TLS, reset, timeout)."""

    pass


class AuthenticationError(RegistryError):
    """Raised when the bearer token exchange fails."""

    def __init__(self, message: str, errors: list[Any] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    def __str__(self) -> str:
        if not self.errors:
            return str(self.args[0])
        return f"{self.args[0]}: {json.dumps(self.errors)}"


class CredentialsRejectedError(AuthenticationError):
    """Raised when the token exchange fails with user supplied credentials.

    Registries commonly refuse credentialed requests that would have
    succeeded anonymously, so this is reported separately.
    """

    pass


class RegistryAPIError(RegistryError):
    """Raised when a registry response carries a structured ``errors`` payload."""

    def __init__(self, message: str, errors: list[Any]) -> None:
        super().__init__(message)
        self.errors = errors

    def __str__(self) -> str:
        return f"{self.args[0]}: {json.dumps(self.errors)}"


class ManifestError(RegistryError):
    """Raised when manifest operations fail."""

    pass


class MalformedManifestError(ManifestError):
    """Raised when a manifest has a schema the resolver does not understand."""

    def __init__(self, message: str, schema_version: Any = None) -> None:
        super().__init__(message)
        self.schema_version = schema_version


class ManifestListNotFoundError(ManifestError):
    """Raised when a manifest list was requested but only a manifest exists."""

    pass


class PlatformError(RegistryError):
    """Base class for platform resolution failures."""

    pass


class PlatformNotFoundError(PlatformError):
    """Raised when no manifest list entry matches the requested platform."""

    def __init__(self, message: str, available: list[str]) -> None:
        super().__init__(message)
        self.available = available


class PlatformMismatchError(PlatformError):
    """Raised when a single manifest was built for another platform."""

    def __init__(
        self, message: str, found_os: str, found_arch: str, manifest_digest: str
    ) -> None:
        super().__init__(message)
        self.found_os = found_os
        self.found_arch = found_arch
        self.manifest_digest = manifest_digest


class AmbiguousPlatformError(PlatformError):
    """Raised when several variants match and no variant was requested."""

    def __init__(self, message: str, candidates: list[str]) -> None:
        super().__init__(message)
        self.candidates = candidates


class LayerNotFoundError(RegistryError):
    """Raised when a layer blob is not part of the image or absent upstream."""

    def __init__(self, message: str, digest: str) -> None:
        super().__init__(message)
        self.digest = digest


class DownloadError(RegistryError):
    """Raised when a blob cannot be written to its destination."""

    pass
