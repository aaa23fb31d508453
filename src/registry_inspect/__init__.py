"""registry-inspect - Inspect remote container images through the Registry HTTP API v2."""

__version__ = "0.1.0"

from .core.manifest import ImageConfig, ManifestList, PlatformManifestEntry, SingleManifest
from .core.registry_client import RegistryClient
from .core.resolver import ManifestResolver
from .core.types import AuthContext, Credentials, Platform, RegistryConfig
from .exceptions import (
    AmbiguousPlatformError,
    AuthenticationError,
    CredentialsRejectedError,
    DownloadError,
    InvalidReferenceError,
    LayerNotFoundError,
    MalformedManifestError,
    ManifestError,
    ManifestListNotFoundError,
    PlatformError,
    PlatformMismatchError,
    PlatformNotFoundError,
    RegistryAPIError,
    RegistryError,
    RegistryUnreachableError,
    TransportError,
)
from .reference import ImageReference, parse_reference
from .registry import (
    VerificationCheck,
    download_layer,
    get_config,
    get_digest,
    get_digest_list,
    get_history,
    get_image_id,
    get_labels,
    get_manifest,
    get_manifest_list,
    list_tags,
    verify_image,
)

__all__ = [
    "AmbiguousPlatformError",
    "AuthContext",
    "AuthenticationError",
    "Credentials",
    "CredentialsRejectedError",
    "DownloadError",
    "ImageConfig",
    "ImageReference",
    "InvalidReferenceError",
    "LayerNotFoundError",
    "MalformedManifestError",
    "ManifestError",
    "ManifestList",
    "ManifestListNotFoundError",
    "ManifestResolver",
    "Platform",
    "PlatformError",
    "PlatformManifestEntry",
    "PlatformMismatchError",
    "PlatformNotFoundError",
    "RegistryAPIError",
    "RegistryClient",
    "RegistryConfig",
    "RegistryError",
    "RegistryUnreachableError",
    "SingleManifest",
    "TransportError",
    "VerificationCheck",
    "download_layer",
    "get_config",
    "get_digest",
    "get_digest_list",
    "get_history",
    "get_image_id",
    "get_labels",
    "get_manifest",
    "get_manifest_list",
    "list_tags",
    "parse_reference",
    "verify_image",
]
