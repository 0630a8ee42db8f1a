"""
Exception classes with error codes and rich metadata.

Each exception maps to an entry of the error registry so HTTP responses
carry a stable ``error_code`` next to the human readable message.
"""

from typing import Any, Dict, Optional
from fastapi import HTTPException, status
import inspect
from datetime import datetime, timezone

from mercadito_types.errors import ErrorResponse, ErrorDebugInfo


class MercaditoException(HTTPException):
    """
    Base exception class for all Mercadito exceptions.

    Provides:
    - Unique error codes from registry
    - Structured error responses
    - Debug information in development mode
    """

    status_code_default = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        error_code: str,
        detail: Any = None,
        headers: Optional[Dict[str, str]] = None,
        context: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ):
        """
        Args:
            error_code: Error code from error registry (e.g., "AUTH_001")
            detail: Additional detail message (overrides registry message if provided)
            headers: HTTP response headers
            context: Additional context for debugging
            user_id: User ID if available
            request_id: Request ID for tracing
        """
        self.error_code = error_code
        # HTTPException replaces a missing detail with the status phrase
        self.custom_detail = detail
        self.context = context or {}
        self.user_id = user_id
        self.request_id = request_id

        # Skip this __init__ and the subclass __init__
        frame = inspect.currentframe()
        caller_frame = frame.f_back.f_back if frame and frame.f_back else None
        if caller_frame:
            self.function_name = caller_frame.f_code.co_name
            self.file_name = caller_frame.f_code.co_filename
            self.line_number = caller_frame.f_lineno
        else:
            self.function_name = None
            self.file_name = None
            self.line_number = None

        super().__init__(status_code=self.status_code_default, detail=detail, headers=headers)

    def to_error_response(self, include_debug: bool = False) -> ErrorResponse:
        """Convert exception to structured ErrorResponse."""
        from mercadito_backend.exceptions.error_registry import get_error_definition

        error_def = get_error_definition(self.error_code)

        debug_info = None
        if include_debug:
            debug_info = ErrorDebugInfo(
                timestamp=datetime.now(timezone.utc).isoformat(),
                request_id=self.request_id,
                function=self.function_name,
                file=self.file_name,
                line=self.line_number,
                user_id=self.user_id,
                additional_context=self.context,
            )

        message = error_def.message.plain
        details = self.context if self.context else None

        if self.custom_detail:
            if isinstance(self.custom_detail, str):
                message = self.custom_detail
            elif isinstance(self.custom_detail, dict):
                details = self.custom_detail
                if "message" in self.custom_detail and isinstance(self.custom_detail["message"], str):
                    message = self.custom_detail["message"]

        return ErrorResponse(
            error_code=self.error_code,
            message=message,
            details=details,
            severity=error_def.severity,
            category=error_def.category,
            retry_after=error_def.retry_after,
            debug=debug_info,
        )


# ============================================================================
# AUTHENTICATION EXCEPTIONS (401)
# ============================================================================


class UnauthorizedException(MercaditoException):
    """Authentication required - 401"""

    status_code_default = status.HTTP_401_UNAUTHORIZED

    def __init__(self, error_code: str = "AUTH_001", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


class TokenExpiredException(MercaditoException):
    """Authentication token expired - 401"""

    status_code_default = status.HTTP_401_UNAUTHORIZED

    def __init__(self, error_code: str = "AUTH_002", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


# ============================================================================
# AUTHORIZATION EXCEPTIONS (403)
# ============================================================================


class ForbiddenException(MercaditoException):
    """Insufficient permissions - 403"""

    status_code_default = status.HTTP_403_FORBIDDEN

    def __init__(self, error_code: str = "AUTHZ_001", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


class NotConversationParticipantException(MercaditoException):
    """Caller is neither buyer nor seller of the conversation - 403"""

    status_code_default = status.HTTP_403_FORBIDDEN

    def __init__(self, conversation_id: Optional[int] = None, error_code: str = "AUTHZ_002",
                 detail: Any = None, headers: Optional[Dict[str, str]] = None, **kwargs):
        if conversation_id is not None:
            kwargs.setdefault("context", {})["conversation_id"] = conversation_id
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


# ============================================================================
# VALIDATION EXCEPTIONS (400)
# ============================================================================


class BadRequestException(MercaditoException):
    """Invalid request data - 400"""

    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, error_code: str = "VAL_001", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


class MissingFieldException(MercaditoException):
    """Required field missing - 400"""

    status_code_default = status.HTTP_400_BAD_REQUEST

    def __init__(self, field_name: str, error_code: str = "VAL_002", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        kwargs.setdefault("context", {})["field_name"] = field_name
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


# ============================================================================
# NOT FOUND EXCEPTIONS (404)
# ============================================================================


class NotFoundException(MercaditoException):
    """Resource not found - 404"""

    status_code_default = status.HTTP_404_NOT_FOUND

    def __init__(self, error_code: str = "NF_001", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


class ConversationNotFoundException(NotFoundException):
    """Conversation not found - 404"""

    def __init__(self, error_code: str = "NF_002", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


class NotificationNotFoundException(NotFoundException):
    """Notification not found - 404"""

    def __init__(self, error_code: str = "NF_003", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


class ProductNotFoundException(NotFoundException):
    """Product not found - 404"""

    def __init__(self, error_code: str = "NF_004", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


# ============================================================================
# CONFLICT EXCEPTIONS (409)
# ============================================================================


class ConflictException(MercaditoException):
    """Resource conflict - 409"""

    status_code_default = status.HTTP_409_CONFLICT

    def __init__(self, error_code: str = "CONFLICT_001", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


# ============================================================================
# RATE LIMITING EXCEPTIONS (429)
# ============================================================================


class RateLimitException(MercaditoException):
    """Too many requests - 429"""

    status_code_default = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, error_code: str = "RATE_001", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


# ============================================================================
# DATABASE / INTERNAL EXCEPTIONS (500/503)
# ============================================================================


class DatabaseQueryException(MercaditoException):
    """Database query failed - 500"""

    def __init__(self, error_code: str = "DB_001", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


class InternalServerException(MercaditoException):
    """Unexpected server error - 500"""

    def __init__(self, error_code: str = "INT_001", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)


class ServiceUnavailableException(MercaditoException):
    """Service temporarily unavailable - 503"""

    status_code_default = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, error_code: str = "SVC_001", detail: Any = None,
                 headers: Optional[Dict[str, str]] = None, **kwargs):
        super().__init__(error_code=error_code, detail=detail, headers=headers, **kwargs)
