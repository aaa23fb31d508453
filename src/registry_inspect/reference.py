"""Image reference parsing.

Grammar (Docker conventions)::

    reference  := [host "/"] repository ["@" digest | ":" tag]
    host       := component containing "." | "localhost" | name ":" port
    digest     := "sha256:" 64 * lowercase-hex

A leading path component is only treated as a registry host when it looks
like one (a dot, ``localhost`` or an explicit port). ``foo.bar/baz`` is
therefore always read as host ``foo.bar``; this mirrors the docker CLI.
"""

import re
from dataclasses import dataclass

from .exceptions import InvalidReferenceError
from .utils.digest import DIGEST_PATTERN

DEFAULT_REGISTRY_HOST = "registry-1.docker.io"
PUBLIC_REGISTRY_ALIASES = frozenset({"docker.io", "index.docker.io"})
OFFICIAL_NAMESPACE = "library"
DEFAULT_TAG = "latest"

# Host components: localhost[:port] or name:port
_HOST_PORT_PATTERN = re.compile(r"^(localhost|[A-Za-z0-9-]+)(:[0-9]+)?$")
_LOCALHOST_PATTERN = re.compile(r"^localhost(:[0-9]+)?$")
_LOOPBACK_PATTERN = re.compile(r"^(localhost|127\.0\.0\.1|\[::1\])(:[0-9]+)?$")


@dataclass(frozen=True)
class ImageReference:
    """Parsed identity of a requested image.

    Exactly one of ``tag`` and ``digest`` is set.
    """

    registry_host: str
    repository: str
    tag: str | None = None
    digest: str | None = None

    @property
    def reference(self) -> str:
        """Tag or digest, whichever addresses the image."""
        return self.digest or self.tag or DEFAULT_TAG

    @property
    def registry_url(self) -> str:
        """Base URL of the registry; loopback registries are plain HTTP."""
        scheme = "http" if _LOOPBACK_PATTERN.match(self.registry_host) else "https"
        return f"{scheme}://{self.registry_host}"

    def __str__(self) -> str:
        if self.digest:
            return f"{self.registry_host}/{self.repository}@{self.digest}"
        return f"{self.registry_host}/{self.repository}:{self.tag}"


def is_registry_host(component: str) -> bool:
    """Check whether the first path component of a reference names a host."""
    if "." in component:
        return True
    if _LOCALHOST_PATTERN.match(component):
        return True
    return ":" in component and _HOST_PORT_PATTERN.match(component) is not None


def normalize_host(host: str) -> str:
    """Map empty and public alias hosts to the canonical public registry."""
    if not host or host in PUBLIC_REGISTRY_ALIASES:
        return DEFAULT_REGISTRY_HOST
    return host


def parse_reference(raw: str) -> ImageReference:
    """Parse ``[REGISTRY/]REPOSITORY[:TAG|@DIGEST]``.

    Args:
        raw: Reference string as typed by the user

    Returns:
        ImageReference with defaults applied

    Raises:
        InvalidReferenceError: If the tag is digest-shaped, the digest is
            not, or a component is empty
    """
    if not raw or not raw.strip():
        raise InvalidReferenceError("Empty image reference")
    raw = raw.strip()

    host = ""
    remainder = raw
    if "/" in raw:
        first, rest = raw.split("/", 1)
        if is_registry_host(first):
            host, remainder = first, rest

    tag: str | None = None
    digest: str | None = None
    if "@" in remainder:
        repository, digest = remainder.split("@", 1)
        if not DIGEST_PATTERN.match(digest):
            raise InvalidReferenceError(
                f"Invalid digest {digest!r} in reference {raw!r}: "
                "expected sha256:<64 lowercase hex characters>"
            )
        if ":" in repository:
            raise InvalidReferenceError(
                f"Reference {raw!r} has both a tag and a digest"
            )
    elif ":" in remainder:
        repository, tag = remainder.split(":", 1)
        if not tag:
            raise InvalidReferenceError(f"Empty tag in reference {raw!r}")
        if DIGEST_PATTERN.match(tag):
            raise InvalidReferenceError(
                f"Tag {tag!r} in reference {raw!r} looks like a digest; use @ instead of :"
            )
    else:
        repository = remainder
        tag = DEFAULT_TAG

    if not repository or repository.startswith("/") or repository.endswith("/"):
        raise InvalidReferenceError(f"Invalid repository in reference {raw!r}")

    if "/" not in repository:
        repository = f"{OFFICIAL_NAMESPACE}/{repository}"

    return ImageReference(
        registry_host=normalize_host(host),
        repository=repository,
        tag=tag,
        digest=digest,
    )
