from mercadito_backend.permissions.principal import Principal
from mercadito_backend.permissions.tokens import (
    InvalidTokenError,
    ExpiredTokenError,
    create_access_token,
    decode_access_token,
)
