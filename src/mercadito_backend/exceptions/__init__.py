"""
Error handling package for the Mercadito backend.

Usage:
    from mercadito_backend.exceptions import (
        NotFoundException,
        ForbiddenException,
        register_exception_handlers,
    )
"""

from mercadito_backend.exceptions.exceptions import (
    MercaditoException,
    UnauthorizedException,
    TokenExpiredException,
    ForbiddenException,
    NotConversationParticipantException,
    BadRequestException,
    MissingFieldException,
    NotFoundException,
    ConversationNotFoundException,
    NotificationNotFoundException,
    ProductNotFoundException,
    ConflictException,
    RateLimitException,
    DatabaseQueryException,
    InternalServerException,
    ServiceUnavailableException,
)

from mercadito_backend.exceptions.error_registry import (
    load_error_registry,
    get_error_definition,
    get_all_error_codes,
    get_errors_by_category,
)

from mercadito_backend.exceptions.error_handlers import register_exception_handlers

__all__ = [
    "MercaditoException",
    "UnauthorizedException",
    "TokenExpiredException",
    "ForbiddenException",
    "NotConversationParticipantException",
    "BadRequestException",
    "MissingFieldException",
    "NotFoundException",
    "ConversationNotFoundException",
    "NotificationNotFoundException",
    "ProductNotFoundException",
    "ConflictException",
    "RateLimitException",
    "DatabaseQueryException",
    "InternalServerException",
    "ServiceUnavailableException",
    "load_error_registry",
    "get_error_definition",
    "get_all_error_codes",
    "get_errors_by_category",
    "register_exception_handlers",
]
