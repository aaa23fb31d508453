"""In-process fake registry for tests."""

import hashlib
import json
from typing import Any

from aiohttp import web

MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
MANIFEST_LIST_V2 = "application/vnd.docker.distribution.manifest.list.v2+json"
CONFIG_V1 = "application/vnd.docker.container.image.v1+json"
LAYER_GZIP = "application/vnd.docker.image.rootfs.diff.tar.gzip"

TOKEN = "test-token"
SERVICE = "fake-registry"
API_HEADERS = {"Docker-Distribution-API-Version": "registry/2.0"}


def sha256(data: bytes) -> str:
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def error_body(code: str, message: str = "") -> dict[str, Any]:
    return {"errors": [{"code": code, "message": message, "detail": None}]}


class FakeRegistry:
    """Minimal registry v2 with a token endpoint and a request log.

    ``auth_mode`` is ``"bearer"`` (challenge + token) or ``"anonymous"``.
    """

    def __init__(self, auth_mode: str = "bearer") -> None:
        self.auth_mode = auth_mode
        self.url = ""
        self.host = ""
        self.tags: dict[str, list[str]] = {}
        self.manifests: dict[str, dict[str, tuple[bytes, str]]] = {}
        self.blobs: dict[str, dict[str, bytes]] = {}
        self.calls: list[tuple[str, str]] = []
        self.token_requests: list[dict[str, Any]] = []
        self.token_response: tuple[int, Any] | None = None
        self.probe_headers: dict[str, str] | None = None

        self.app = web.Application()
        self.app.router.add_get("/v2/", self.handle_probe)
        self.app.router.add_get("/token", self.handle_token)
        self.app.router.add_get("/v2/{repo:.+}/tags/list", self.handle_tags)
        self.app.router.add_get("/v2/{repo:.+}/manifests/{ref}", self.handle_manifest)
        self.app.router.add_get("/v2/{repo:.+}/blobs/{digest}", self.handle_blob)

    # -- fixtures -------------------------------------------------------

    def add_blob(self, repo: str, data: bytes) -> str:
        digest = sha256(data)
        self.blobs.setdefault(repo, {})[digest] = data
        return digest

    def add_manifest(
        self, repo: str, raw: bytes, media_type: str, tag: str | None = None
    ) -> str:
        digest = sha256(raw)
        refs = self.manifests.setdefault(repo, {})
        refs[digest] = (raw, media_type)
        if tag:
            refs[tag] = (raw, media_type)
            tags = self.tags.setdefault(repo, [])
            if tag not in tags:
                tags.append(tag)
        return digest

    def add_image(
        self,
        repo: str,
        os: str = "linux",
        architecture: str = "amd64",
        tag: str | None = None,
        layers: list[bytes] | None = None,
        labels: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Store config, layers and manifest of one image."""
        layers = layers if layers is not None else [f"{os}/{architecture} layer".encode()]
        config = {
            "architecture": architecture,
            "os": os,
            "config": {"Env": ["PATH=/usr/bin"], "Labels": labels},
            "history": [{"created_by": "/bin/sh -c #(nop) ADD file:abc in / "}],
            "rootfs": {"type": "layers", "diff_ids": []},
        }
        config_raw = json.dumps(config).encode()
        config_digest = self.add_blob(repo, config_raw)
        layer_digests = [self.add_blob(repo, layer) for layer in layers]

        manifest = {
            "schemaVersion": 2,
            "mediaType": MANIFEST_V2,
            "config": {
                "mediaType": CONFIG_V1,
                "size": len(config_raw),
                "digest": config_digest,
            },
            "layers": [
                {"mediaType": LAYER_GZIP, "size": len(layer), "digest": digest}
                for layer, digest in zip(layers, layer_digests)
            ],
        }
        # Registries return the bytes as pushed; indent makes them non-canonical
        manifest_raw = json.dumps(manifest, indent=3).encode()
        manifest_digest = self.add_manifest(repo, manifest_raw, MANIFEST_V2, tag)
        return {
            "manifest_digest": manifest_digest,
            "manifest_raw": manifest_raw,
            "config_digest": config_digest,
            "config_raw": config_raw,
            "layer_digests": layer_digests,
        }

    def add_manifest_list(
        self, repo: str, tag: str, entries: list[tuple[str, str, str, str | None]]
    ) -> str:
        """Store a manifest list of ``(digest, os, architecture, variant)`` entries."""
        manifests = []
        for digest, os, architecture, variant in entries:
            platform = {"architecture": architecture, "os": os}
            if variant:
                platform["variant"] = variant
            manifests.append(
                {
                    "mediaType": MANIFEST_V2,
                    "size": 527,
                    "digest": digest,
                    "platform": platform,
                }
            )
        raw = json.dumps(
            {"schemaVersion": 2, "mediaType": MANIFEST_LIST_V2, "manifests": manifests},
            indent=3,
        ).encode()
        return self.add_manifest(repo, raw, MANIFEST_LIST_V2, tag)

    def manifest_requests(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if "/manifests/" in call[1]]

    # -- handlers -------------------------------------------------------

    def _record(self, request: web.Request) -> None:
        self.calls.append((request.method, request.path))

    def _authorized(self, request: web.Request) -> bool:
        if self.auth_mode == "anonymous":
            return True
        return request.headers.get("Authorization") == f"Bearer {TOKEN}"

    def _unauthorized(self) -> web.Response:
        return web.json_response(
            error_body("UNAUTHORIZED", "authentication required"),
            status=401,
            headers=API_HEADERS,
        )

    async def handle_probe(self, request: web.Request) -> web.Response:
        self._record(request)
        if self.probe_headers is not None:
            return web.Response(text="<html>hello</html>", headers=self.probe_headers)

        if self.auth_mode == "anonymous":
            return web.json_response({}, headers=API_HEADERS)

        challenge = f'Bearer realm="http://{request.host}/token",service="{SERVICE}"'
        return web.json_response(
            error_body("UNAUTHORIZED", "authentication required"),
            status=401,
            headers={**API_HEADERS, "WWW-Authenticate": challenge},
        )

    async def handle_token(self, request: web.Request) -> web.Response:
        self._record(request)
        self.token_requests.append(
            {
                "params": dict(request.query),
                "authorization": request.headers.get("Authorization"),
            }
        )
        if self.token_response is not None:
            status, body = self.token_response
            return web.json_response(body, status=status)
        return web.json_response({"token": TOKEN, "expires_in": 300})

    async def handle_tags(self, request: web.Request) -> web.Response:
        self._record(request)
        if not self._authorized(request):
            return self._unauthorized()
        repo = request.match_info["repo"]
        if repo not in self.tags:
            return web.json_response(
                error_body("NAME_UNKNOWN", "repository name not known to registry"),
                status=404,
                headers=API_HEADERS,
            )
        return web.json_response(
            {"name": repo, "tags": self.tags[repo]}, headers=API_HEADERS
        )

    async def handle_manifest(self, request: web.Request) -> web.Response:
        self._record(request)
        if not self._authorized(request):
            return self._unauthorized()
        repo = request.match_info["repo"]
        ref = request.match_info["ref"]
        stored = self.manifests.get(repo, {}).get(ref)
        if stored is None:
            return web.json_response(
                error_body("MANIFEST_UNKNOWN", "manifest unknown"),
                status=404,
                headers=API_HEADERS,
            )
        raw, media_type = stored
        return web.Response(
            body=raw,
            headers={
                **API_HEADERS,
                "Content-Type": media_type,
                "Docker-Content-Digest": sha256(raw),
            },
        )

    async def handle_blob(self, request: web.Request) -> web.Response:
        self._record(request)
        if not self._authorized(request):
            return self._unauthorized()
        repo = request.match_info["repo"]
        digest = request.match_info["digest"]
        data = self.blobs.get(repo, {}).get(digest)
        if data is None:
            return web.json_response(
                error_body("BLOB_UNKNOWN", "blob unknown to registry"),
                status=404,
                headers=API_HEADERS,
            )
        return web.Response(
            body=data,
            headers={
                "Content-Type": "application/octet-stream",
                "Docker-Content-Digest": digest,
            },
        )
