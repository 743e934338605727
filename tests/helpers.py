"""Fake upstream servers and data builders for tests."""

import asyncio
import json
from typing import Any, Optional

from aiohttp import web

from registry_bridge.core.types import CONTAINER_CONFIG_V1, MANIFEST_V2
from registry_bridge.utils.digest import calculate_digest

NAMESPACE = "no_skatteetaten_aurora"
IMAGE = "whoami"


def image_config(env: Optional[list[str]] = None, created: str = "2018-11-05T14:01:22Z") -> dict:
    """Build an image config blob document."""
    return {
        "created": created,
        "docker_version": "1.13.1",
        "config": {"Env": env or []},
    }


def build_image(config: dict, layers: Optional[list[bytes]] = None) -> tuple[dict, dict[str, bytes]]:
    """Build a v2 manifest with its blobs.

    Returns:
        (manifest, blobs by digest)
    """
    config_bytes = json.dumps(config).encode("utf-8")
    config_digest = calculate_digest(config_bytes)
    blobs = {config_digest: config_bytes}
    layer_entries = []
    for layer in layers or [b"layer-one", b"layer-two"]:
        digest = calculate_digest(layer)
        blobs[digest] = layer
        layer_entries.append(
            {
                "mediaType": "application/vnd.docker.image.rootfs.diff.tar.gzip",
                "size": len(layer),
                "digest": digest,
            }
        )
    manifest = {
        "schemaVersion": 2,
        "mediaType": MANIFEST_V2,
        "config": {
            "mediaType": CONTAINER_CONFIG_V1,
            "size": len(config_bytes),
            "digest": config_digest,
        },
        "layers": layer_entries,
    }
    return manifest, blobs


class FakeRegistry:
    """In-memory Docker Registry v2 served by an aiohttp application.

    ``failures`` maps a route name (``manifest``, ``tags``, ``head_blob``,
    ``upload`` ...) to a list of statuses answered before serving normally.
    Manifests are served and stored as the exact bytes pushed, and their
    digest is computed over those bytes.
    """

    def __init__(self) -> None:
        self.manifests: dict[tuple[str, str], dict] = {}
        self.manifest_bytes: dict[tuple[str, str], bytes] = {}
        self.blobs: dict[str, dict[str, bytes]] = {}
        self.tags: dict[str, list[str]] = {}
        self.failures: dict[str, list[int]] = {}
        self.requests: list[tuple[str, str, Optional[str]]] = []
        self.manifest_content_type = MANIFEST_V2
        self.send_digest_header = True
        self.send_upload_uuid = True
        self.uploads = 0
        self.tags_body: Optional[Any] = None
        self.manifest_delay = 0.0

    def add_image(
        self,
        repo: str,
        tag: str,
        manifest: dict,
        blobs: dict[str, bytes],
        raw: Optional[bytes] = None,
    ) -> str:
        """Store an image; ``raw`` overrides the serialized manifest bytes."""
        data = raw if raw is not None else json.dumps(manifest).encode("utf-8")
        self.manifests[(repo, tag)] = manifest
        self.manifest_bytes[(repo, tag)] = data
        self.blobs.setdefault(repo, {}).update(blobs)
        self.tags.setdefault(repo, []).append(tag)
        return calculate_digest(data)

    def count(self, method: str, fragment: str) -> int:
        return sum(1 for m, path, _ in self.requests if m == method and fragment in path)

    def _record(self, request: web.Request) -> Optional[int]:
        self.requests.append(
            (request.method, request.path, request.headers.get("Authorization"))
        )
        kind = request.match_info.route.name
        pending = self.failures.get(kind)
        if pending:
            return pending.pop(0)
        return None

    @staticmethod
    def _repo(request: web.Request) -> str:
        return f"{request.match_info['namespace']}/{request.match_info['name']}"

    async def get_manifest(self, request: web.Request) -> web.Response:
        status = self._record(request)
        if status:
            return web.Response(status=status, text="failure")
        if self.manifest_delay:
            await asyncio.sleep(self.manifest_delay)
        body = self.manifest_bytes.get((self._repo(request), request.match_info["tag"]))
        if body is None:
            return web.Response(status=404, text="manifest unknown")
        headers = {}
        if self.send_digest_header:
            headers["Docker-Content-Digest"] = calculate_digest(body)
        return web.Response(
            body=body, headers=headers, content_type=self.manifest_content_type
        )

    async def put_manifest(self, request: web.Request) -> web.Response:
        status = self._record(request)
        if status:
            return web.Response(status=status)
        data = await request.read()
        key = (self._repo(request), request.match_info["tag"])
        self.manifests[key] = json.loads(data)
        self.manifest_bytes[key] = data
        self.tags.setdefault(key[0], []).append(key[1])
        return web.Response(
            status=201, headers={"Docker-Content-Digest": calculate_digest(data)}
        )

    async def get_tags(self, request: web.Request) -> web.Response:
        status = self._record(request)
        if status:
            return web.Response(status=status)
        if self.tags_body is not None:
            return web.json_response(self.tags_body)
        repo = self._repo(request)
        if repo not in self.tags:
            return web.Response(status=200)
        return web.json_response({"name": repo, "tags": self.tags[repo]})

    async def head_blob(self, request: web.Request) -> web.Response:
        status = self._record(request)
        if status:
            return web.Response(status=status)
        if request.match_info["digest"] in self.blobs.get(self._repo(request), {}):
            return web.Response(status=200)
        return web.Response(status=404)

    async def get_blob(self, request: web.Request) -> web.Response:
        status = self._record(request)
        if status:
            return web.Response(status=status)
        data = self.blobs.get(self._repo(request), {}).get(request.match_info["digest"])
        if data is None:
            return web.Response(status=404)
        return web.Response(body=data, content_type="application/octet-stream")

    async def start_upload(self, request: web.Request) -> web.Response:
        status = self._record(request)
        if status:
            return web.Response(status=status)
        self.uploads += 1
        headers = {}
        if self.send_upload_uuid:
            headers["Docker-Upload-UUID"] = f"upload-{self.uploads}"
        return web.Response(status=202, headers=headers)

    async def finish_upload(self, request: web.Request) -> web.Response:
        status = self._record(request)
        if status:
            return web.Response(status=status)
        data = await request.read()
        digest = request.query["digest"]
        if calculate_digest(data) != digest:
            return web.Response(status=400, text="digest invalid")
        self.blobs.setdefault(self._repo(request), {})[digest] = data
        return web.Response(status=201)

    def app(self) -> web.Application:
        app = web.Application()
        base = "/v2/{namespace}/{name}"
        app.router.add_get(
            base + "/manifests/{tag}", self.get_manifest, name="manifest", allow_head=False
        )
        app.router.add_put(base + "/manifests/{tag}", self.put_manifest, name="put_manifest")
        app.router.add_get(base + "/tags/list", self.get_tags, name="tags", allow_head=False)
        app.router.add_get(
            base + "/blobs/{digest}", self.get_blob, name="blob", allow_head=False
        )
        app.router.add_head(base + "/blobs/{digest}", self.head_blob, name="head_blob")
        app.router.add_post(base + "/blobs/uploads/", self.start_upload, name="upload")
        app.router.add_put(
            base + "/blobs/uploads/{uuid}", self.finish_upload, name="finish_upload"
        )
        return app


def nexus_item(
    version: str,
    name: str = f"{NAMESPACE}/{IMAGE}",
    repository: str = "internal-hosted-release",
    sha256: str = "a" * 64,
    last_modified: str = "2021-03-01T10:00:00.000+00:00",
) -> dict[str, Any]:
    """Build a Nexus search item as returned by the REST API."""
    return {
        "id": f"id-{version}",
        "repository": repository,
        "format": "docker",
        "group": None,
        "name": name,
        "version": version,
        "assets": [
            {
                "downloadUrl": f"https://nexus/repository/{repository}/v2/{name}/manifests/{version}",
                "path": f"v2/{name}/manifests/{version}",
                "id": f"asset-{version}",
                "repository": repository,
                "format": "docker",
                "checksum": {"sha1": "b" * 40, "sha256": sha256},
                "lastModified": last_modified,
            }
        ],
    }


def nexus_page(items: list[dict], token: Optional[str] = None) -> dict[str, Any]:
    return {"items": items, "continuationToken": token}


def move_response(
    status: int = 200,
    message: str = "Components moved to internal-hosted-release",
    destination: str = "internal-hosted-release",
    moved: Optional[list[dict]] = None,
) -> dict[str, Any]:
    """Build a staging move API answer."""
    return {
        "status": status,
        "message": message,
        "data": {
            "destination": destination,
            "componentsMoved": moved if moved is not None else [],
        },
    }
