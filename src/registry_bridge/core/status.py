"""Classification of upstream HTTP status codes into bridge errors."""

import logging

from ..exceptions import (
    BridgeError,
    TransientUpstreamError,
    UnknownError,
    UpstreamClientError,
)

logger = logging.getLogger(__name__)

CLIENT_ERROR_MESSAGES = {
    400: "invalid request",
    403: "forbidden",
    404: "resource not found",
}
SERVER_ERROR_MESSAGES = {
    500: "server processing error",
}


def classify_status(status: int, body: str, source_system: str) -> BridgeError:
    """Build the error matching an upstream status code.

    Args:
        status: HTTP status code of the response
        body: Response body as text, attached as context
        source_system: Registry host or name of the upstream system

    Returns:
        UpstreamClientError for 4xx, TransientUpstreamError for 5xx,
        UnknownError for anything else
    """
    body = body.strip()
    if 400 <= status < 500:
        if status == 403 and body:
            # upstream explanation is passed on untouched
            message = body
        else:
            reason = CLIENT_ERROR_MESSAGES.get(status, "client error")
            message = _with_body(f"{source_system}: {reason} status={status}", body)
        error: BridgeError = UpstreamClientError(
            message, code=status, source_system=source_system
        )
    elif 500 <= status < 600:
        reason = SERVER_ERROR_MESSAGES.get(status, "server error")
        error = TransientUpstreamError(
            _with_body(f"{source_system}: {reason} status={status}", body),
            code=status,
            source_system=source_system,
        )
    else:
        message = _with_body(
            f"{source_system}: unknown error status={status}", body
        )
        error = UnknownError(
            message,
            cause=RuntimeError(f"Unexpected status {status}"),
            source_system=source_system,
        )
        error.code = status

    logger.warning(f"Error in response {error.message}")
    return error


def _with_body(message: str, body: str) -> str:
    return f'{message} body="{body}"' if body else message
