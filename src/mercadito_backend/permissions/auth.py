"""
Bearer authentication for the HTTP API.

The websocket relay verifies the same tokens through
``mercadito_backend.websocket.auth``.
"""

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from mercadito_backend.exceptions import TokenExpiredException, UnauthorizedException
from mercadito_backend.permissions.principal import Principal
from mercadito_backend.permissions.tokens import ExpiredTokenError, InvalidTokenError, decode_access_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedException(headers={"WWW-Authenticate": "Bearer"})

    try:
        return decode_access_token(credentials.credentials)
    except ExpiredTokenError:
        raise TokenExpiredException(headers={"WWW-Authenticate": "Bearer"})
    except InvalidTokenError as e:
        logger.info(f"Bearer token rejected: {e.reason}")
        raise UnauthorizedException(
            headers={"WWW-Authenticate": "Bearer"},
            context={"reason": e.reason},
        )
