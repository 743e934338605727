"""HTTP session helpers shared by the registry, Nexus and cluster clients."""

import asyncio
import json
import logging
from typing import Any, Mapping, Optional

import aiohttp

from ..exceptions import ProtocolViolationError, TransientUpstreamError
from .types import RawResponse

logger = logging.getLogger(__name__)


def create_session(
    timeout: float = 30.0, connector: Optional[aiohttp.BaseConnector] = None
) -> aiohttp.ClientSession:
    """Create an aiohttp session with a total request timeout.

    Must be called with an event loop running.

    Args:
        timeout: Timeout in seconds for each request
        connector: Optional connector for connection pooling

    Returns:
        New client session, to be closed by the caller
    """
    return aiohttp.ClientSession(
        connector=connector, timeout=aiohttp.ClientTimeout(total=timeout)
    )


def mask_authorization(headers: Mapping[str, str]) -> str:
    """Describe the Authorization header without leaking the credential."""
    value = headers.get("Authorization")
    if not value:
        return ""
    scheme, _, credential = value.partition(" ")
    return f"auth={scheme} {credential[:4]}..."


async def send_request(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    source_system: str,
    *,
    headers: Optional[Mapping[str, str]] = None,
    params: Optional[Mapping[str, str]] = None,
    data: Any = None,
) -> RawResponse:
    """Send a request and read the complete response.

    Args:
        session: Session to send with
        method: HTTP method
        url: Absolute URL
        source_system: Upstream name used in error reports
        headers: Request headers
        params: Query parameters
        data: Request body

    Returns:
        RawResponse with status, headers and body; error statuses are not
        raised here

    Raises:
        TransientUpstreamError: On network failures and timeouts
    """
    headers = dict(headers or {})
    logger.debug(f"HttpRequest method={method} url={url} {mask_authorization(headers)}")
    try:
        async with session.request(
            method, url, headers=headers, params=params, data=data
        ) as resp:
            body = await resp.read()
            return RawResponse(
                status=resp.status,
                headers=resp.headers,
                content_type=resp.content_type,
                body=body,
            )
    except asyncio.TimeoutError as e:
        message = f"Timeout when calling {source_system} method={method} url={url}"
        logger.warning(message)
        raise TransientUpstreamError(message, source_system=source_system, cause=e) from e
    except aiohttp.ClientError as e:
        message = (
            f"Error in request to {source_system} name={type(e).__name__} "
            f"errorMessage={e} method={method} url={url}"
        )
        logger.warning(message)
        raise TransientUpstreamError(message, source_system=source_system, cause=e) from e


def parse_json_response(response: RawResponse, source_system: str) -> Optional[Any]:
    """Parse a JSON body, returning None for an empty body.

    Raises:
        ProtocolViolationError: If the body is not valid JSON
    """
    if not response.body or not response.body.strip():
        return None
    try:
        return json.loads(response.body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolViolationError(
            f"Response from {source_system} is not valid JSON: {e}",
            code=response.status,
            source_system=source_system,
            cause=e,
        ) from e
