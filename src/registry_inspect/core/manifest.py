"""Manifest documents decoded from registry responses.

A registry answers a manifest request with either a manifest list (one
entry per platform) or a single manifest (config and layers). Both are
decoded once into :class:`ManifestList` or :class:`SingleManifest`; the
raw bytes are kept because a manifest's digest is the hash of exactly
those bytes.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Union

from ..exceptions import MalformedManifestError
from ..utils.digest import calculate_digest

MANIFEST_LIST_V2 = "application/vnd.docker.distribution.manifest.list.v2+json"
MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
OCI_INDEX = "application/vnd.oci.image.index.v1+json"
OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"

LIST_MEDIA_TYPES = (MANIFEST_LIST_V2, OCI_INDEX)
SINGLE_MEDIA_TYPES = (MANIFEST_V2, OCI_MANIFEST)


@dataclass
class PlatformManifestEntry:
    """Platform-specific manifest reference inside a manifest list."""

    digest: str
    os: str
    architecture: str
    variant: str | None = None
    size: int = 0
    media_type: str = ""

    @property
    def platform(self) -> str:
        if self.variant:
            return f"{self.os}/{self.architecture}/{self.variant}"
        return f"{self.os}/{self.architecture}"


@dataclass
class LayerDescriptor:
    """Layer blob reference inside a single manifest."""

    digest: str
    size: int = 0
    media_type: str = ""


@dataclass
class ManifestList:
    """Manifest list / OCI image index."""

    media_type: str
    schema_version: Any
    entries: list[PlatformManifestEntry] = field(default_factory=list)
    raw: bytes = b""

    @property
    def digest(self) -> str:
        return calculate_digest(self.raw)

    @property
    def platforms(self) -> list[str]:
        return [entry.platform for entry in self.entries]


@dataclass
class SingleManifest:
    """Image manifest for one platform."""

    media_type: str
    schema_version: Any
    config_digest: str | None = None
    layers: list[LayerDescriptor] = field(default_factory=list)
    raw: bytes = b""

    @property
    def digest(self) -> str:
        return calculate_digest(self.raw)

    def require_config_digest(self) -> str:
        """Return the config digest.

        Raises:
            MalformedManifestError: For schemas without a config blob
        """
        if not self.config_digest:
            raise MalformedManifestError(
                f"Manifest (schemaVersion {self.schema_version}, "
                f"mediaType {self.media_type or 'unset'}) has no config digest",
                schema_version=self.schema_version,
            )
        return self.config_digest


Manifest = Union[ManifestList, SingleManifest]


def is_manifest_list(payload: dict[str, Any]) -> bool:
    """Classify a decoded manifest payload by its type marker."""
    media_type = payload.get("mediaType")
    if media_type:
        return media_type in LIST_MEDIA_TYPES
    # OCI indexes may omit mediaType
    return isinstance(payload.get("manifests"), list)


def _parse_entry(item: dict[str, Any]) -> PlatformManifestEntry:
    platform = item.get("platform") or {}
    return PlatformManifestEntry(
        digest=item.get("digest", ""),
        os=platform.get("os", ""),
        architecture=platform.get("architecture", ""),
        variant=platform.get("variant") or None,
        size=item.get("size", 0),
        media_type=item.get("mediaType", ""),
    )


def _parse_layer(item: dict[str, Any]) -> LayerDescriptor:
    return LayerDescriptor(
        digest=item.get("digest", ""),
        size=item.get("size", 0),
        media_type=item.get("mediaType", ""),
    )


def decode_manifest(raw: bytes) -> Manifest:
    """Decode raw manifest bytes.

    Args:
        raw: Response body exactly as received

    Returns:
        ManifestList or SingleManifest

    Raises:
        MalformedManifestError: If the body is not a JSON object
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedManifestError(f"Manifest is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedManifestError("Manifest is not a JSON object")

    media_type = payload.get("mediaType", "")
    schema_version = payload.get("schemaVersion")

    if is_manifest_list(payload):
        return ManifestList(
            media_type=media_type,
            schema_version=schema_version,
            entries=[_parse_entry(item) for item in payload.get("manifests") or []],
            raw=raw,
        )

    config = payload.get("config") or {}
    return SingleManifest(
        media_type=media_type,
        schema_version=schema_version,
        config_digest=config.get("digest") if isinstance(config, dict) else None,
        layers=[_parse_layer(item) for item in payload.get("layers") or []],
        raw=raw,
    )


@dataclass
class ImageConfig:
    """Image configuration blob; its digest is the image id."""

    digest: str
    data: dict[str, Any] = field(default_factory=dict)
    raw: bytes = b""

    @property
    def os(self) -> str:
        return self.data.get("os", "")

    @property
    def architecture(self) -> str:
        return self.data.get("architecture", "")

    @property
    def labels(self) -> dict[str, str] | None:
        return (self.data.get("config") or {}).get("Labels")

    @property
    def history(self) -> list[dict[str, Any]]:
        return self.data.get("history") or []


def decode_config(raw: bytes, digest: str) -> ImageConfig:
    """Decode an image config blob.

    Raises:
        MalformedManifestError: If the blob is not a JSON object
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedManifestError(f"Image config is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise MalformedManifestError("Image config is not a JSON object")
    return ImageConfig(digest=digest, data=data, raw=raw)
