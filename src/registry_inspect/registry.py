"""Async functional registry inspection operations."""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

from .core.auth import authenticate
from .core.manifest import (
    ImageConfig,
    LayerDescriptor,
    ManifestList,
    PlatformManifestEntry,
    SingleManifest,
    decode_config,
    decode_manifest,
)
from .core.registry_client import RegistryClient
from .core.resolver import ManifestResolver
from .core.session import create_session
from .core.types import Credentials, Platform, RegistryConfig
from .exceptions import (
    LayerNotFoundError,
    MalformedManifestError,
    ManifestListNotFoundError,
)
from .reference import ImageReference, parse_reference
from .utils.digest import calculate_digest, digest_hex
from .utils.platform import local_platform

logger = logging.getLogger(__name__)

ImageArg = str | ImageReference


@dataclass
class VerificationCheck:
    """Outcome of one content-addressing check."""

    name: str
    expected: str
    actual: str

    @property
    def passed(self) -> bool:
        return self.expected == self.actual


def _as_reference(image: ImageArg) -> ImageReference:
    if isinstance(image, ImageReference):
        return image
    return parse_reference(image)


@asynccontextmanager
async def open_registry(
    ref: ImageReference,
    credentials: Credentials | None = None,
    timeout: int = 30,
) -> AsyncIterator[RegistryClient]:
    """Probe, authenticate and yield a client scoped to ``ref.repository``."""
    config = RegistryConfig(url=ref.registry_url, timeout=timeout)
    async with await create_session(config.timeout) as session:
        auth = await authenticate(session, config, ref.repository, credentials)
        async with RegistryClient(config, auth, session=session) as client:
            yield client


async def resolve_digest(
    client: RegistryClient, ref: ImageReference, platform: Platform
) -> str:
    """Resolve ``ref`` to the manifest digest for ``platform``.

    A digest in the reference is used as given unless it names a manifest
    list, in which case the platform entry is selected from that list. A
    digest naming a single manifest is not checked against ``platform``.
    """
    resolver = ManifestResolver(client, platform)
    if not ref.digest:
        return await resolver.resolve(ref.repository, ref.reference)

    manifest = decode_manifest(
        await client.get_manifest_or_list(ref.repository, ref.digest)
    )
    if isinstance(manifest, ManifestList):
        return resolver.select(manifest).digest
    return ref.digest


async def fetch_manifest(
    client: RegistryClient, repository: str, digest: str
) -> SingleManifest:
    """Fetch a single manifest by digest.

    Raises:
        MalformedManifestError: If the digest names a manifest list
    """
    manifest = decode_manifest(await client.get_manifest_by_digest(repository, digest))
    if isinstance(manifest, ManifestList):
        raise MalformedManifestError(
            f"{repository}@{digest} is a manifest list, not an image manifest",
            schema_version=manifest.schema_version,
        )
    return manifest


async def fetch_config(
    client: RegistryClient, repository: str, manifest: SingleManifest
) -> ImageConfig:
    """Fetch the config blob named by a manifest."""
    config_digest = manifest.require_config_digest()
    raw = await client.get_config_blob(repository, config_digest)
    return decode_config(raw, config_digest)


async def _image_manifest(
    client: RegistryClient, ref: ImageReference, platform: Platform
) -> SingleManifest:
    digest = await resolve_digest(client, ref, platform)
    return await fetch_manifest(client, ref.repository, digest)


async def list_tags(
    image: ImageArg, credentials: Credentials | None = None, timeout: int = 30
) -> list[str]:
    """저장소의 모든 태그 목록을 조회합니다.

    Args:
        image: 이미지 참조 (예: "ubuntu", "ghcr.io/org/app"); 태그는 무시됩니다
        credentials: 토큰 발급에 사용할 자격 증명 (선택사항)
        timeout: 요청 타임아웃 (초, 기본값: 30초)

    Returns:
        list[str]: 레지스트리가 반환한 순서 그대로의 태그 목록

    Raises:
        RegistryError: 요청 실패 시

    Examples:
        tags = await list_tags("library/ubuntu")
        print(f"ubuntu 태그: {tags}")
    """
    ref = _as_reference(image)
    async with open_registry(ref, credentials, timeout) as client:
        return await client.list_tags(ref.repository)


async def get_manifest_list(
    image: ImageArg, credentials: Credentials | None = None, timeout: int = 30
) -> ManifestList:
    """태그의 매니페스트 리스트를 조회합니다.

    Args:
        image: 이미지 참조 (예: "ubuntu:18.04")
        credentials: 자격 증명 (선택사항)
        timeout: 요청 타임아웃 (초, 기본값: 30초)

    Returns:
        ManifestList: 플랫폼별 매니페스트 항목과 원본 바이트

    Raises:
        ManifestListNotFoundError: 태그에 단일 매니페스트만 있는 경우
        RegistryError: 요청 실패 시
    """
    ref = _as_reference(image)
    async with open_registry(ref, credentials, timeout) as client:
        manifest = decode_manifest(
            await client.get_manifest_or_list(ref.repository, ref.reference)
        )
    if not isinstance(manifest, ManifestList):
        raise ManifestListNotFoundError(f"{ref} has no manifest list")
    return manifest


async def get_digest_list(
    image: ImageArg, credentials: Credentials | None = None, timeout: int = 30
) -> list[PlatformManifestEntry]:
    """태그가 가리키는 모든 플랫폼의 매니페스트 digest를 조회합니다.

    매니페스트 리스트가 없으면 단일 매니페스트의 digest와 config에
    기록된 플랫폼을 한 항목으로 반환합니다.

    Args:
        image: 이미지 참조 (예: "ubuntu:18.04")
        credentials: 자격 증명 (선택사항)
        timeout: 요청 타임아웃 (초, 기본값: 30초)

    Returns:
        list[PlatformManifestEntry]: 플랫폼별 digest 목록

    Raises:
        RegistryError: 요청 실패 시
    """
    ref = _as_reference(image)
    async with open_registry(ref, credentials, timeout) as client:
        raw = await client.get_manifest_or_list(ref.repository, ref.reference)
        manifest = decode_manifest(raw)
        if isinstance(manifest, ManifestList):
            return manifest.entries

        config = await fetch_config(client, ref.repository, manifest)
        return [
            PlatformManifestEntry(
                digest=manifest.digest,
                os=config.os,
                architecture=config.architecture,
                variant=config.data.get("variant") or None,
                size=len(raw),
                media_type=manifest.media_type,
            )
        ]


async def get_digest(
    image: ImageArg,
    platform: Platform | None = None,
    credentials: Credentials | None = None,
    timeout: int = 30,
) -> str:
    """이미지의 플랫폼별 매니페스트 digest를 조회합니다.

    digest 참조가 단일 매니페스트를 가리키면 그 digest를 그대로 반환하며
    config의 플랫폼은 확인하지 않습니다. digest가 매니페스트 리스트를
    가리키는 경우에만 플랫폼 항목을 선택합니다.

    Args:
        image: 이미지 참조 (예: "ubuntu:18.04", "repo@sha256:...")
        platform: 대상 플랫폼 (기본값: 현재 시스템)
        credentials: 자격 증명 (선택사항)
        timeout: 요청 타임아웃 (초, 기본값: 30초)

    Returns:
        str: 매니페스트 digest (예: "sha256:d62e...")

    Raises:
        PlatformNotFoundError: 매니페스트 리스트에 해당 플랫폼이 없는 경우
        PlatformMismatchError: 단일 매니페스트의 플랫폼이 다른 경우
        RegistryError: 요청 실패 시

    Examples:
        digest = await get_digest("ubuntu:18.04", Platform("linux", "arm64"))
    """
    ref = _as_reference(image)
    async with open_registry(ref, credentials, timeout) as client:
        return await resolve_digest(client, ref, platform or local_platform())


async def get_manifest(
    image: ImageArg,
    platform: Platform | None = None,
    credentials: Credentials | None = None,
    timeout: int = 30,
) -> SingleManifest:
    """이미지의 매니페스트를 조회합니다.

    Args:
        image: 이미지 참조
        platform: 대상 플랫폼 (기본값: 현재 시스템)
        credentials: 자격 증명 (선택사항)
        timeout: 요청 타임아웃 (초, 기본값: 30초)

    Returns:
        SingleManifest: config/레이어 정보와 원본 바이트

    Raises:
        RegistryError: 요청 실패 시
    """
    ref = _as_reference(image)
    async with open_registry(ref, credentials, timeout) as client:
        return await _image_manifest(client, ref, platform or local_platform())


async def get_image_id(
    image: ImageArg,
    platform: Platform | None = None,
    credentials: Credentials | None = None,
    timeout: int = 30,
) -> str:
    """이미지 ID(config blob의 digest)를 조회합니다.

    Args:
        image: 이미지 참조
        platform: 대상 플랫폼 (기본값: 현재 시스템)
        credentials: 자격 증명 (선택사항)
        timeout: 요청 타임아웃 (초, 기본값: 30초)

    Returns:
        str: 매니페스트에 기록된 config digest

    Raises:
        MalformedManifestError: 매니페스트에 config digest가 없는 경우
        RegistryError: 요청 실패 시
    """
    ref = _as_reference(image)
    async with open_registry(ref, credentials, timeout) as client:
        manifest = await _image_manifest(client, ref, platform or local_platform())
    return manifest.require_config_digest()


async def get_config(
    image: ImageArg,
    platform: Platform | None = None,
    credentials: Credentials | None = None,
    timeout: int = 30,
) -> ImageConfig:
    """이미지 config를 조회합니다.

    Args:
        image: 이미지 참조
        platform: 대상 플랫폼 (기본값: 현재 시스템)
        credentials: 자격 증명 (선택사항)
        timeout: 요청 타임아웃 (초, 기본값: 30초)

    Returns:
        ImageConfig: config 딕셔너리, digest, 원본 바이트

    Raises:
        RegistryError: 요청 실패 시
    """
    ref = _as_reference(image)
    async with open_registry(ref, credentials, timeout) as client:
        manifest = await _image_manifest(client, ref, platform or local_platform())
        return await fetch_config(client, ref.repository, manifest)


async def get_labels(
    image: ImageArg,
    platform: Platform | None = None,
    credentials: Credentials | None = None,
    timeout: int = 30,
) -> dict[str, str] | None:
    """이미지 config의 라벨을 조회합니다.

    Returns:
        dict[str, str] | None: config.Labels (라벨이 없으면 None)
    """
    config = await get_config(image, platform, credentials, timeout)
    return config.labels


async def get_history(
    image: ImageArg,
    platform: Platform | None = None,
    credentials: Credentials | None = None,
    timeout: int = 30,
) -> list[dict]:
    """이미지 config의 빌드 히스토리를 조회합니다.

    Returns:
        list[dict]: history 항목 목록
    """
    config = await get_config(image, platform, credentials, timeout)
    return config.history


def select_layer(manifest: SingleManifest, layer: str | int) -> LayerDescriptor:
    """Pick a layer of a manifest by digest or by zero-based index.

    Raises:
        LayerNotFoundError: If the manifest has no such layer
    """
    if isinstance(layer, int):
        if 0 <= layer < len(manifest.layers):
            return manifest.layers[layer]
        raise LayerNotFoundError(
            f"Layer index {layer} out of range; image has "
            f"{len(manifest.layers)} layers",
            digest=str(layer),
        )

    for descriptor in manifest.layers:
        if descriptor.digest == layer:
            return descriptor
    raise LayerNotFoundError(f"Layer {layer} is not part of the image", digest=layer)


def layer_filename(descriptor: LayerDescriptor) -> str:
    """File name for a downloaded layer, derived from its digest."""
    if "zstd" in descriptor.media_type:
        suffix = ".tar.zst"
    elif "gzip" in descriptor.media_type:
        suffix = ".tar.gz"
    else:
        suffix = ".tar"
    return f"{digest_hex(descriptor.digest)}{suffix}"


async def download_layer(
    image: ImageArg,
    layer: str | int,
    output_dir: str | Path = ".",
    platform: Platform | None = None,
    credentials: Credentials | None = None,
    timeout: int = 30,
) -> Path:
    """이미지의 레이어 하나를 파일로 다운로드합니다.

    파일 이름은 레이어 digest로 정해지며, 같은 이름의 파일이 있으면
    덮어쓰지 않고 실패합니다. 다운로드한 내용은 digest로 검증하지 않습니다.

    Args:
        image: 이미지 참조
        layer: 레이어 digest 또는 0부터 시작하는 인덱스
        output_dir: 저장 디렉토리 (기본값: 현재 디렉토리)
        platform: 대상 플랫폼 (기본값: 현재 시스템)
        credentials: 자격 증명 (선택사항)
        timeout: 요청 타임아웃 (초, 기본값: 30초)

    Returns:
        Path: 저장된 파일 경로

    Raises:
        LayerNotFoundError: 레이어가 이미지에 없거나 레지스트리에 없는 경우
        DownloadError: 파일을 쓸 수 없는 경우
        RegistryError: 요청 실패 시

    Examples:
        path = await download_layer("ubuntu:18.04", 0, "./layers")
    """
    ref = _as_reference(image)
    async with open_registry(ref, credentials, timeout) as client:
        manifest = await _image_manifest(client, ref, platform or local_platform())
        descriptor = select_layer(manifest, layer)

        if not await client.head_blob(ref.repository, descriptor.digest):
            raise LayerNotFoundError(
                f"Layer {descriptor.digest} is missing from {ref.registry_host}",
                digest=descriptor.digest,
            )

        destination = Path(output_dir) / layer_filename(descriptor)
        return await client.download_blob(ref.repository, descriptor.digest, destination)


async def verify_image(
    image: ImageArg,
    platform: Platform | None = None,
    credentials: Credentials | None = None,
    timeout: int = 30,
) -> list[VerificationCheck]:
    """이미지의 content-addressing 속성을 검증합니다.

    digest로 다시 조회한 문서의 SHA-256이 그 digest와 같아야 합니다.
    다음 항목을 검사합니다:
    1. manifestlist: 매니페스트 리스트 바이트의 digest로 리스트를 재조회 (리스트가 있는 경우)
    2. digest: 해석된 매니페스트 digest로 매니페스트를 재조회
    3. id: 매니페스트의 config digest로 config blob을 재조회

    Args:
        image: 이미지 참조
        platform: 대상 플랫폼 (기본값: 현재 시스템)
        credentials: 자격 증명 (선택사항)
        timeout: 요청 타임아웃 (초, 기본값: 30초)

    Returns:
        list[VerificationCheck]: 검사별 기대값/실제값

    Raises:
        RegistryError: 요청 실패 시
    """
    ref = _as_reference(image)
    platform = platform or local_platform()
    checks: list[VerificationCheck] = []

    async with open_registry(ref, credentials, timeout) as client:
        raw = await client.get_manifest_or_list(ref.repository, ref.reference)
        if isinstance(decode_manifest(raw), ManifestList):
            list_digest = calculate_digest(raw)
            refetched = await client.get_manifest_or_list(ref.repository, list_digest)
            checks.append(
                VerificationCheck(
                    "manifestlist", list_digest, calculate_digest(refetched)
                )
            )

        manifest_digest = await resolve_digest(client, ref, platform)
        manifest = await fetch_manifest(client, ref.repository, manifest_digest)
        checks.append(VerificationCheck("digest", manifest_digest, manifest.digest))

        config_digest = manifest.require_config_digest()
        config_raw = await client.get_config_blob(ref.repository, config_digest)
        checks.append(
            VerificationCheck("id", config_digest, calculate_digest(config_raw))
        )

    for check in checks:
        logger.info(
            "%s %s: %s", "PASS" if check.passed else "FAIL", check.name, check.actual
        )
    return checks
