"""Tests for the authenticated registry client."""

import asyncio

import pytest

from registry_inspect.core.registry_client import RegistryClient, check_response
from registry_inspect.core.types import AuthContext, RegistryConfig, RequestResult
from registry_inspect.exceptions import DownloadError, RegistryAPIError
from tests.helpers import TOKEN


def authed_client(registry) -> RegistryClient:
    return RegistryClient(
        RegistryConfig(url=registry.url), AuthContext(token=TOKEN)
    )


class TestCheckResponse:
    """Error envelope handling independent of status codes."""

    def test_success_returns_payload(self):
        result = RequestResult(200, {}, b'{"tags": ["a"]}')
        assert check_response(result, "tags") == {"tags": ["a"]}

    def test_errors_with_success_status(self):
        result = RequestResult(200, {}, b'{"errors": [{"code": "TOOMANYREQUESTS"}]}')
        with pytest.raises(RegistryAPIError) as exc_info:
            check_response(result, "tags")
        assert exc_info.value.errors == [{"code": "TOOMANYREQUESTS"}]

    def test_null_errors_is_success(self):
        result = RequestResult(200, {}, b'{"errors": null, "tags": []}')
        assert check_response(result, "tags")["tags"] == []

    def test_error_status_without_body(self):
        with pytest.raises(RegistryAPIError) as exc_info:
            check_response(RequestResult(502, {}, b"Bad Gateway"), "tags")
        assert exc_info.value.errors[0]["message"] == "HTTP 502"

    def test_error_string_includes_payload(self):
        error = RegistryAPIError("Failed", [{"code": "DENIED"}])
        assert str(error) == 'Failed: [{"code": "DENIED"}]'


@pytest.mark.asyncio
async def test_list_tags_keeps_server_order(fake_registry):
    fake_registry.tags["library/busybox"] = ["musl", "1.36", "latest", "glibc"]
    async with authed_client(fake_registry) as client:
        tags = await client.list_tags("library/busybox")
    assert tags == ["musl", "1.36", "latest", "glibc"]


@pytest.mark.asyncio
async def test_list_tags_unknown_repository(fake_registry):
    async with authed_client(fake_registry) as client:
        with pytest.raises(RegistryAPIError) as exc_info:
            await client.list_tags("library/missing")
    assert exc_info.value.errors[0]["code"] == "NAME_UNKNOWN"


@pytest.mark.asyncio
async def test_requests_carry_bearer_token(fake_registry):
    fake_registry.add_image("library/busybox", tag="latest")
    async with RegistryClient(RegistryConfig(url=fake_registry.url)) as client:
        with pytest.raises(RegistryAPIError) as exc_info:
            await client.get_manifest_or_list("library/busybox", "latest")
    assert exc_info.value.errors[0]["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_get_manifest_returns_raw_bytes(fake_registry):
    image = fake_registry.add_image("library/busybox", tag="latest")
    async with authed_client(fake_registry) as client:
        by_tag = await client.get_manifest_or_list("library/busybox", "latest")
        by_digest = await client.get_manifest_by_digest(
            "library/busybox", image["manifest_digest"]
        )
    assert by_tag == image["manifest_raw"]
    assert by_digest == image["manifest_raw"]


@pytest.mark.asyncio
async def test_get_manifest_unknown(fake_registry):
    async with authed_client(fake_registry) as client:
        with pytest.raises(RegistryAPIError) as exc_info:
            await client.get_manifest_or_list("library/busybox", "nope")
    assert exc_info.value.errors[0]["code"] == "MANIFEST_UNKNOWN"


@pytest.mark.asyncio
async def test_get_config_blob(fake_registry):
    image = fake_registry.add_image("library/busybox")
    async with authed_client(fake_registry) as client:
        raw = await client.get_config_blob("library/busybox", image["config_digest"])
    assert raw == image["config_raw"]


@pytest.mark.asyncio
async def test_head_blob(fake_registry):
    image = fake_registry.add_image("library/busybox")
    async with authed_client(fake_registry) as client:
        assert await client.head_blob("library/busybox", image["layer_digests"][0])
        assert not await client.head_blob("library/busybox", "sha256:" + "0" * 64)


@pytest.mark.asyncio
async def test_download_blob(fake_registry, tmp_path):
    image = fake_registry.add_image("library/busybox", layers=[b"x" * 3000000])
    digest = image["layer_digests"][0]
    destination = tmp_path / "layer.tar.gz"

    async with authed_client(fake_registry) as client:
        path = await client.download_blob("library/busybox", digest, destination)

    assert path == destination
    assert destination.read_bytes() == b"x" * 3000000


@pytest.mark.asyncio
async def test_download_blob_never_overwrites(fake_registry, tmp_path):
    image = fake_registry.add_image("library/busybox")
    destination = tmp_path / "layer.tar.gz"
    destination.write_bytes(b"existing")

    async with authed_client(fake_registry) as client:
        with pytest.raises(DownloadError):
            await client.download_blob(
                "library/busybox", image["layer_digests"][0], destination
            )
    assert destination.read_bytes() == b"existing"


@pytest.mark.asyncio
async def test_download_blob_unknown(fake_registry, tmp_path):
    destination = tmp_path / "missing.tar.gz"
    async with authed_client(fake_registry) as client:
        with pytest.raises(RegistryAPIError) as exc_info:
            await client.download_blob(
                "library/busybox", "sha256:" + "1" * 64, destination
            )
    assert exc_info.value.errors[0]["code"] == "BLOB_UNKNOWN"
    assert not destination.exists()


@pytest.mark.asyncio
async def test_download_blob_file_io_runs_in_executor(
    fake_registry, tmp_path, monkeypatch
):
    image = fake_registry.add_image("library/busybox", layers=[b"y" * 2500000])
    loop = asyncio.get_running_loop()
    run_in_executor = loop.run_in_executor
    offloaded = []

    def recording(executor, func, *args):
        offloaded.append(getattr(func, "__name__", ""))
        return run_in_executor(executor, func, *args)

    monkeypatch.setattr(loop, "run_in_executor", recording)

    destination = tmp_path / "layer.tar.gz"
    async with authed_client(fake_registry) as client:
        await client.download_blob(
            "library/busybox", image["layer_digests"][0], destination
        )

    assert destination.read_bytes() == b"y" * 2500000
    file_ops = [name for name in offloaded if name in ("open", "write", "close")]
    assert file_ops[0] == "open"
    assert "write" in file_ops
    assert file_ops[-1] == "close"


@pytest.mark.asyncio
async def test_download_blob_missing_directory(fake_registry, tmp_path):
    image = fake_registry.add_image("library/busybox")
    destination = tmp_path / "absent" / "layer.tar.gz"
    async with authed_client(fake_registry) as client:
        with pytest.raises(DownloadError):
            await client.download_blob(
                "library/busybox", image["layer_digests"][0], destination
            )
    assert not destination.exists()


@pytest.mark.asyncio
async def test_owned_session_uses_config_timeout(fake_registry):
    client = RegistryClient(RegistryConfig(url=fake_registry.url, timeout=7))
    async with client:
        assert client.session.timeout.total == 7
    assert client.session.closed
