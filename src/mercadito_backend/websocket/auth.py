"""
WebSocket authentication.

The bearer credential travels as the ``token`` query parameter. Any
failure raises WebSocketAuthError; the endpoint then closes the socket
without accepting it, so the client never receives a frame.
"""

import logging
from typing import Optional

from mercadito_backend.permissions.principal import Principal
from mercadito_backend.permissions.tokens import ExpiredTokenError, InvalidTokenError, decode_access_token

logger = logging.getLogger(__name__)

WS_AUTH_FAILED = 4001


class WebSocketAuthError(Exception):
    """Exception raised when WebSocket authentication fails."""

    def __init__(self, code: int, reason: str):
        self.code = code
        self.reason = reason
        super().__init__(reason)


async def authenticate_websocket_token(token: Optional[str]) -> Principal:
    """
    Verify a connection token and return its principal.

    Raises:
        WebSocketAuthError: missing, invalid or expired token
    """
    if not token:
        raise WebSocketAuthError(WS_AUTH_FAILED, "No token provided")

    try:
        principal = decode_access_token(token)
    except ExpiredTokenError:
        raise WebSocketAuthError(WS_AUTH_FAILED, "Token expired")
    except InvalidTokenError as e:
        raise WebSocketAuthError(WS_AUTH_FAILED, f"Invalid token ({e.reason})")

    logger.debug(f"WebSocket token accepted for user {principal.user_id}")
    return principal
