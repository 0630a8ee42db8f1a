"""
Access token issuing and verification.

Tokens are HS256 JWTs issued by the account service with the claims
``{id, email, roles}`` plus ``exp``/``iat``.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError
from pydantic import ValidationError

from mercadito_backend.permissions.principal import Principal
from mercadito_backend.settings import settings

logger = logging.getLogger(__name__)


class InvalidTokenError(Exception):
    """Token is missing, malformed, badly signed or carries unusable claims."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ExpiredTokenError(InvalidTokenError):
    def __init__(self):
        super().__init__("expired")


def create_access_token(
    principal: Principal,
    expires_delta: Optional[timedelta] = None,
    secret: Optional[str] = None,
) -> str:
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_EXPIRES_MINUTES)

    payload = principal.to_claims()
    payload["iat"] = int(now.timestamp())
    payload["exp"] = int((now + expires_delta).timestamp())

    return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: Optional[str], secret: Optional[str] = None) -> Principal:
    """
    Verify signature and expiry and turn the claims into a Principal.

    Raises:
        ExpiredTokenError: exp claim in the past
        InvalidTokenError: anything else that makes the token unusable
    """
    if not token:
        raise InvalidTokenError("missing")

    try:
        claims = jwt.decode(token, secret or settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise ExpiredTokenError()
    except JWTError as e:
        logger.debug(f"Token rejected: {e}")
        raise InvalidTokenError("invalid")

    if not isinstance(claims, dict) or claims.get("id") is None:
        raise InvalidTokenError("missing_id")

    try:
        return Principal.from_claims(claims)
    except (TypeError, ValueError, ValidationError):
        raise InvalidTokenError("malformed_claims")
