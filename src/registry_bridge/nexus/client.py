"""Nexus REST API client for docker component search and staging moves."""

import logging
from typing import Dict, Optional

import aiohttp

from ..config import NexusConfig
from ..core.session import create_session, parse_json_response, send_request
from ..core.status import classify_status
from ..core.types import RawResponse
from ..exceptions import ProtocolViolationError, TransientUpstreamError
from .models import NexusMoveResponse, NexusPage

logger = logging.getLogger(__name__)

SOURCE_SYSTEM = "Nexus"
SEARCH_PATH = "/service/rest/v1/search"
MOVE_PATH = "/service/rest/v1/staging/move"


class NexusClient:
    """Single request operations against Nexus.

    Searches for specific images and moves send the configured credential;
    version listings are anonymous.
    """

    def __init__(
        self,
        config: NexusConfig,
        connector: Optional[aiohttp.TCPConnector] = None,
    ) -> None:
        self.base_url = config.base_url
        self.token = config.token
        self.timeout = config.timeout
        self.connector = connector
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "NexusClient":
        if not self.session:
            self.session = create_session(self.timeout, self.connector)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()

    def _headers(self, authenticated: bool) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if authenticated and self.token:
            headers["Authorization"] = f"Basic {self.token}"
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        params: Dict[str, str],
        operation: str,
        authenticated: bool,
    ) -> RawResponse:
        if self.session is None:
            raise RuntimeError("NexusClient must be used as an async context manager")
        logger.debug(f"operation={operation} params={params}")
        return await send_request(
            self.session,
            method,
            f"{self.base_url}{path}",
            SOURCE_SYSTEM,
            headers=self._headers(authenticated),
            params=params,
        )

    async def _search(
        self, params: Dict[str, str], operation: str, authenticated: bool
    ) -> NexusPage:
        response = await self._send("GET", SEARCH_PATH, params, operation, authenticated)
        if not response.ok:
            raise classify_status(response.status, response.text(), SOURCE_SYSTEM)
        data = parse_json_response(response, SOURCE_SYSTEM)
        if data is not None and not isinstance(data, dict):
            raise ProtocolViolationError(
                f"Search answer for operation={operation} is not a JSON object",
                code=response.status,
                source_system=SOURCE_SYSTEM,
            )
        return NexusPage.from_dict(data)

    async def search(
        self,
        repository: str,
        name: str,
        version: Optional[str] = None,
        sha256: Optional[str] = None,
    ) -> NexusPage:
        """Search one repository for a docker image.

        Args:
            repository: Repository to search in
            name: Full image name (``namespace/name``)
            version: Optional version to match
            sha256: Optional checksum to match

        Returns:
            First page of matches

        Raises:
            UpstreamError: If Nexus answers with an error status
        """
        params = {"repository": repository, "name": name}
        if version:
            params["version"] = version
        if sha256:
            params["sha256"] = sha256
        params["format"] = "docker"
        return await self._search(
            params, operation="GET_IMAGE_FROM_NEXUS", authenticated=True
        )

    async def search_versions(
        self,
        namespace: str,
        name: str,
        repository: str,
        continuation_token: Optional[str] = None,
    ) -> NexusPage:
        """Fetch one page of versions of an image, sorted by version.

        Args:
            namespace: Image namespace
            name: Image name
            repository: Repository to list from
            continuation_token: Token of the previous page, None for the first

        Returns:
            The requested page
        """
        params = {
            "name": f"{namespace}/{name}",
            "sort": "version",
            "repository": repository,
        }
        if continuation_token is not None:
            params["continuationToken"] = continuation_token
        params["format"] = "docker"
        return await self._search(
            params, operation="GET_VERSIONS_FROM_NEXUS", authenticated=False
        )

    async def move(
        self,
        from_repository: str,
        to_repository: str,
        name: str,
        version: str,
        sha256: str,
    ) -> NexusMoveResponse:
        """Ask Nexus to move a component to another repository.

        Only server errors are raised; other answers, including 4xx, come
        back as a :class:`NexusMoveResponse` for the caller to interpret.

        Raises:
            TransientUpstreamError: On 5xx answers, carrying the response body
        """
        params = {
            "repository": from_repository,
            "name": name,
            "version": version,
            "sha256": sha256,
            "format": "docker",
        }
        response = await self._send(
            "POST",
            f"{MOVE_PATH}/{to_repository}",
            params,
            operation="POST_MOVE_IMAGE_IN_NEXUS",
            authenticated=True,
        )
        if response.status >= 500:
            body = response.text()
            logger.warning(
                f"Move of {name}:{version} from {from_repository} to {to_repository} "
                f"failed status={response.status} body=\"{body}\""
            )
            raise TransientUpstreamError(
                body or f"Nexus move failed with status {response.status}",
                code=response.status,
                source_system=SOURCE_SYSTEM,
            )
        try:
            data = parse_json_response(response, SOURCE_SYSTEM)
        except ProtocolViolationError:
            # non JSON error pages are reported through their text
            data = None
        if not isinstance(data, dict):
            data = {"message": response.text()}
        return NexusMoveResponse.from_dict(data, response.status)
