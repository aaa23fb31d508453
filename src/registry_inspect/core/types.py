"""Core data types shared by the registry modules."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RegistryConfig:
    """Registry connection settings."""

    url: str
    timeout: int = 30

    @property
    def base_url(self) -> str:
        """Registry URL without a trailing slash."""
        return self.url.rstrip("/")


@dataclass(frozen=True)
class Credentials:
    """Basic credentials presented to the token endpoint."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class Platform:
    """Target platform selector."""

    os: str
    architecture: str
    variant: str | None = None

    def __str__(self) -> str:
        if self.variant:
            return f"{self.os}/{self.architecture}/{self.variant}"
        return f"{self.os}/{self.architecture}"


@dataclass
class AuthContext:
    """Per-invocation authentication state.

    ``auth_endpoint`` is None for registries that allow anonymous access
    without a challenge. The token is fetched once and never refreshed.
    """

    auth_endpoint: str | None = None
    service: str | None = None
    token: str | None = None

    @property
    def requires_token(self) -> bool:
        return self.auth_endpoint is not None

    def headers(self) -> dict[str, str]:
        """Authorization headers for registry requests."""
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}


@dataclass
class RequestResult:
    """Status, headers and body of a completed HTTP request."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    data: bytes = b""
