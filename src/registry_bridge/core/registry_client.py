"""Docker Registry API v2 async client implementation."""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

import aiohttp

from ..config import BridgeConfig
from ..exceptions import ProtocolViolationError, ValidationError
from ..utils.digest import validate_digest
from .retry import create_retry_decorator
from .session import create_session, parse_json_response, send_request
from .status import classify_status
from .types import (
    DOCKER_CONTENT_DIGEST_HEADER,
    DOCKER_UPLOAD_UUID_HEADER,
    MANIFEST_V2,
    AuthenticationMethod,
    ManifestResponse,
    RawResponse,
    RepositoryLocator,
)

logger = logging.getLogger(__name__)


class RegistryClient:
    """Docker Registry API v2 async client.

    Every operation takes a :class:`RepositoryLocator`, which decides the
    registry, scheme and credentials for the request. Error statuses are
    classified into bridge errors tagged with the registry host.
    """

    def __init__(
        self,
        config: BridgeConfig,
        connector: Optional[aiohttp.TCPConnector] = None,
    ) -> None:
        """Initialize the registry client.

        Args:
            config: Bridge configuration (timeouts and retry policy)
            connector: aiohttp connector for connection pooling
        """
        self.timeout = config.registry_timeout
        self.connector = connector
        self.session: Optional[aiohttp.ClientSession] = None
        self._retry = create_retry_decorator(config.retry)

    async def __aenter__(self) -> "RegistryClient":
        """Enter async context manager."""
        if not self.session:
            self.session = create_session(self.timeout, self.connector)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self.session and not self.session.closed:
            await self.session.close()

    def _headers(
        self, locator: RepositoryLocator, extra: Optional[Mapping[str, str]] = None
    ) -> Dict[str, str]:
        headers = dict(extra or {})
        if locator.auth_method == AuthenticationMethod.BEARER and locator.token:
            headers["Authorization"] = f"Bearer {locator.token}"
        return headers

    async def _send(
        self,
        method: str,
        locator: RepositoryLocator,
        path: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, str]] = None,
        data: Any = None,
    ) -> RawResponse:
        if self.session is None:
            raise RuntimeError("RegistryClient must be used as an async context manager")
        url = f"{locator.base_url}/{locator.default_repo_path}/{path}"
        return await send_request(
            self.session,
            method,
            url,
            locator.registry,
            headers=self._headers(locator, headers),
            params=params,
            data=data,
        )

    @staticmethod
    def _raise_for_status(response: RawResponse, locator: RepositoryLocator) -> None:
        if not response.ok:
            raise classify_status(response.status, response.text(), locator.registry)

    async def get_manifest(self, locator: RepositoryLocator) -> ManifestResponse:
        """Retrieve the v2 manifest of the locator's tag.

        Args:
            locator: Repository locator with a tag

        Returns:
            ManifestResponse with content type, digest and parsed body

        Raises:
            ValidationError: If the locator has no tag
            UpstreamError: If the registry answers with an error status
            ProtocolViolationError: If the digest header is missing or the
                manifest is not a v2 manifest
        """
        if not locator.image_tag:
            raise ValidationError(f"Invalid url={locator.full_repo_path}")
        return await self._retry(self._get_manifest)(locator)

    async def _get_manifest(self, locator: RepositoryLocator) -> ManifestResponse:
        response = await self._send(
            "GET",
            locator,
            f"manifests/{locator.image_tag}",
            headers={"Accept": MANIFEST_V2},
        )
        self._raise_for_status(response, locator)

        digest = response.headers.get(DOCKER_CONTENT_DIGEST_HEADER)
        if digest is None:
            raise ProtocolViolationError(
                f"Required header {DOCKER_CONTENT_DIGEST_HEADER} is not present "
                f"for image {locator.manifest_repo_path}",
                code=response.status,
                source_system=locator.registry,
            )

        if response.content_type != MANIFEST_V2:
            raise ProtocolViolationError(
                f"Unsupported manifest content-type={response.content_type or None} "
                f"for image {locator.manifest_repo_path}, expected {MANIFEST_V2}",
                code=response.status,
                source_system=locator.registry,
            )

        body = parse_json_response(response, locator.registry)
        if body is not None and not isinstance(body, dict):
            raise ProtocolViolationError(
                f"Manifest for image {locator.manifest_repo_path} is not a JSON object",
                code=response.status,
                source_system=locator.registry,
            )

        return ManifestResponse(
            content_type=response.content_type,
            digest=digest,
            body=body,
            headers=response.headers,
            raw=response.body,
        )

    async def get_tags(self, locator: RepositoryLocator) -> List[str]:
        """List tags for a repository.

        Args:
            locator: Repository locator, the tag is ignored

        Returns:
            List of tag names, empty when the registry returns no body

        Raises:
            UpstreamError: If the registry answers with an error status
            ProtocolViolationError: If the body is not a JSON object
        """
        response = await self._send("GET", locator, "tags/list")
        self._raise_for_status(response, locator)
        data = parse_json_response(response, locator.registry)
        if not data:
            return []
        if not isinstance(data, dict):
            raise ProtocolViolationError(
                f"Tag listing for {locator.default_repo_path} is not a JSON object",
                code=response.status,
                source_system=locator.registry,
            )
        return data.get("tags") or []

    async def blob_exists(self, locator: RepositoryLocator, digest: str) -> bool:
        """Check if a blob exists in the repository.

        A HEAD answer has no body: any 2xx means the blob exists and 404
        means it does not. Every other status is an error.

        Args:
            locator: Repository locator
            digest: Blob digest

        Returns:
            True if blob exists, False on 404

        Raises:
            UpstreamError: For error statuses other than 404
        """
        return await self._retry(self._blob_exists)(locator, digest)

    async def _blob_exists(self, locator: RepositoryLocator, digest: str) -> bool:
        response = await self._send("HEAD", locator, f"blobs/{digest}")
        if response.status == 404:
            return False
        self._raise_for_status(response, locator)
        return True

    async def get_blob(self, locator: RepositoryLocator, digest: str) -> bytes:
        """Retrieve raw blob content.

        Args:
            locator: Repository locator
            digest: Blob digest

        Returns:
            Blob bytes, possibly empty

        Raises:
            UpstreamError: If the registry answers with an error status
        """
        return await self._retry(self._get_blob)(locator, digest)

    async def _get_blob(self, locator: RepositoryLocator, digest: str) -> bytes:
        response = await self._send("GET", locator, f"blobs/{digest}")
        self._raise_for_status(response, locator)
        return response.body

    async def get_config(self, locator: RepositoryLocator, digest: str) -> Dict:
        """Retrieve and parse an image config blob.

        Args:
            locator: Repository locator
            digest: Config blob digest, usually taken from the manifest

        Returns:
            Parsed config document

        Raises:
            UpstreamError: If the registry answers with an error status
            ProtocolViolationError: If the blob is empty or not JSON
        """
        data = await self.get_blob(locator, digest)
        if not data or not data.strip():
            raise ProtocolViolationError(
                f"Unable to retrieve config for {locator.default_repo_path}@{digest}",
                source_system=locator.registry,
            )
        try:
            return json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolViolationError(
                f"Config blob {digest} is not valid JSON: {e}",
                source_system=locator.registry,
                cause=e,
            ) from e

    async def initiate_upload(self, locator: RepositoryLocator) -> str:
        """Start a blob upload session.

        Args:
            locator: Target repository locator

        Returns:
            Upload session id from the Docker-Upload-UUID header

        Raises:
            UpstreamError: If the registry answers with an error status
            ProtocolViolationError: If the session header is missing
        """
        response = await self._send(
            "POST", locator, "blobs/uploads/", headers={"Content-Length": "0"}
        )
        self._raise_for_status(response, locator)

        upload_uuid = response.headers.get(DOCKER_UPLOAD_UUID_HEADER)
        if not upload_uuid:
            raise ProtocolViolationError(
                f"Response did not contain {DOCKER_UPLOAD_UUID_HEADER} header",
                code=response.status,
                source_system=locator.registry,
            )
        return upload_uuid

    async def upload_layer(
        self,
        locator: RepositoryLocator,
        upload_uuid: str,
        digest: str,
        data: bytes,
    ) -> bool:
        """Upload a complete blob in a single request.

        Args:
            locator: Target repository locator
            upload_uuid: Session id returned by :meth:`initiate_upload`
            digest: Digest of ``data``
            data: Blob content

        Returns:
            True when the registry accepted the blob

        Raises:
            ValidationError: If the digest format is invalid
            UpstreamError: If the registry answers with an error status
        """
        if not validate_digest(digest):
            raise ValidationError(f"Invalid digest format: {digest}")
        return await self._retry(self._upload_layer)(locator, upload_uuid, digest, data)

    async def _upload_layer(
        self,
        locator: RepositoryLocator,
        upload_uuid: str,
        digest: str,
        data: bytes,
    ) -> bool:
        response = await self._send(
            "PUT",
            locator,
            f"blobs/uploads/{upload_uuid}",
            headers={"Content-Type": "application/octet-stream"},
            params={"digest": digest},
            data=data,
        )
        self._raise_for_status(response, locator)
        return True

    async def put_manifest(
        self,
        locator: RepositoryLocator,
        manifest: Union[Dict, bytes],
        content_type: str = MANIFEST_V2,
    ) -> bool:
        """Push a manifest to the locator's tag.

        Bytes are sent unchanged, so the manifest keeps the digest it was
        read with. A dict is serialized to JSON first.

        Args:
            locator: Target repository locator with a tag
            manifest: Manifest bytes or document
            content_type: Manifest media type

        Returns:
            True when the registry accepted the manifest

        Raises:
            ValidationError: If the locator has no tag
            UpstreamError: If the registry answers with an error status
        """
        if not locator.image_tag:
            raise ValidationError(f"Invalid url={locator.full_repo_path}")
        return await self._retry(self._put_manifest)(locator, manifest, content_type)

    async def _put_manifest(
        self, locator: RepositoryLocator, manifest: Union[Dict, bytes], content_type: str
    ) -> bool:
        if isinstance(manifest, bytes):
            manifest_data = manifest
        else:
            manifest_data = json.dumps(manifest).encode("utf-8")
        response = await self._send(
            "PUT",
            locator,
            f"manifests/{locator.image_tag}",
            headers={"Content-Type": content_type},
            data=manifest_data,
        )
        self._raise_for_status(response, locator)
        return True
