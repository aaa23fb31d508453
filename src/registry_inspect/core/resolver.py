"""Resolution of a tag or digest to the manifest digest for one platform.

Registries may answer a tag request with a manifest list or directly with
a single manifest. For a list, the entry matching the target platform is
selected. For a single manifest its digest is computed from the received
bytes and its config blob is consulted to confirm the platform.
"""

import logging

from ..exceptions import (
    AmbiguousPlatformError,
    PlatformMismatchError,
    PlatformNotFoundError,
)
from .manifest import (
    ManifestList,
    PlatformManifestEntry,
    SingleManifest,
    decode_config,
    decode_manifest,
)
from .registry_client import RegistryClient
from .types import Platform

logger = logging.getLogger(__name__)


class ManifestResolver:
    """Resolve references to platform-specific manifest digests."""

    def __init__(self, client: RegistryClient, platform: Platform) -> None:
        self.client = client
        self.platform = platform

    def select(self, manifest_list: ManifestList) -> PlatformManifestEntry:
        """Pick the manifest list entry for the target platform.

        A requested variant must match exactly. Without one, entries that
        differ only by variant are ambiguous and rejected.

        Raises:
            PlatformNotFoundError: If no entry matches
            AmbiguousPlatformError: If several variants match
        """
        target = self.platform
        candidates = [
            entry
            for entry in manifest_list.entries
            if entry.os == target.os and entry.architecture == target.architecture
        ]
        if target.variant:
            candidates = [e for e in candidates if e.variant == target.variant]

        if not candidates:
            raise PlatformNotFoundError(
                f"No manifest for platform {target}; available: "
                + ", ".join(manifest_list.platforms),
                available=manifest_list.platforms,
            )

        variants = {entry.variant for entry in candidates}
        if len(variants) > 1:
            names = [entry.platform for entry in candidates]
            raise AmbiguousPlatformError(
                f"Platform {target} matches several variants: {', '.join(names)}; "
                "select one with a variant",
                candidates=names,
            )

        return candidates[0]

    async def check_single(self, repository: str, manifest: SingleManifest) -> str:
        """Confirm a single manifest was built for the target platform.

        Returns:
            Digest of the manifest bytes

        Raises:
            MalformedManifestError: If the manifest names no config blob
            PlatformMismatchError: If the config reports another platform
        """
        manifest_digest = manifest.digest
        config_digest = manifest.require_config_digest()
        config = decode_config(
            await self.client.get_config_blob(repository, config_digest), config_digest
        )
        found_os, found_arch = config.os, config.architecture

        target = self.platform
        if (found_os, found_arch) != (target.os, target.architecture):
            raise PlatformMismatchError(
                f"Image is {found_os}/{found_arch}, not {target}; "
                f"manifest {manifest_digest}",
                found_os=found_os,
                found_arch=found_arch,
                manifest_digest=manifest_digest,
            )
        return manifest_digest

    async def resolve(self, repository: str, reference: str) -> str:
        """Resolve a tag or digest to a manifest digest.

        Args:
            repository: Repository name
            reference: Tag or digest

        Returns:
            Digest of the manifest for the target platform
        """
        raw = await self.client.get_manifest_or_list(repository, reference)
        manifest = decode_manifest(raw)

        if isinstance(manifest, ManifestList):
            entry = self.select(manifest)
            logger.debug(
                "%s:%s is a manifest list; %s -> %s",
                repository,
                reference,
                entry.platform,
                entry.digest,
            )
            return entry.digest

        logger.debug("%s:%s has no manifest list", repository, reference)
        return await self.check_single(repository, manifest)
