"""
Tests for the error code registry and exception rendering.
"""

import pytest

from mercadito_backend.exceptions import (
    ConversationNotFoundException,
    ForbiddenException,
    NotConversationParticipantException,
    TokenExpiredException,
)
from mercadito_backend.exceptions.error_registry import (
    get_all_error_codes,
    get_error_definition,
    get_errors_by_category,
    load_error_registry,
)


@pytest.mark.unit
class TestErrorRegistry:

    def test_registry_loads_every_code_once(self):
        registry = load_error_registry()

        assert len(registry) == len(set(get_all_error_codes()))
        for code in ("AUTH_001", "AUTH_002", "AUTHZ_002", "VAL_002", "NF_002", "NF_004", "RATE_001", "SVC_001"):
            assert code in registry

    def test_definitions_match_http_status(self):
        assert get_error_definition("AUTH_002").http_status == 401
        assert get_error_definition("AUTHZ_002").http_status == 403
        assert get_error_definition("RATE_001").http_status == 429

    def test_unknown_code_falls_back(self):
        definition = get_error_definition("NOPE_999")

        assert definition.code == "UNKNOWN"
        assert definition.http_status == 500
        assert "NOPE_999" in definition.message.plain

    def test_errors_by_category(self):
        codes = {error.code for error in get_errors_by_category("not_found")}

        assert {"NF_001", "NF_002", "NF_003", "NF_004"} <= codes


@pytest.mark.unit
class TestExceptionRendering:

    def test_registry_message_without_detail(self):
        exc = NotConversationParticipantException(conversation_id=100)

        response = exc.to_error_response()

        assert exc.status_code == 403
        assert response.error_code == "AUTHZ_002"
        assert response.message == "You are not a participant of this conversation."
        assert response.details == {"conversation_id": 100}

    def test_detail_overrides_message(self):
        response = ConversationNotFoundException(detail="Conversation not found").to_error_response()

        assert response.message == "Conversation not found"

    def test_dict_detail_becomes_details(self):
        response = ForbiddenException(detail={"message": "Solo el duenio", "notification_id": 3}).to_error_response()

        assert response.message == "Solo el duenio"
        assert response.details["notification_id"] == 3

    def test_debug_info_only_on_request(self):
        exc = TokenExpiredException()

        assert exc.to_error_response().debug is None
        debug = exc.to_error_response(include_debug=True).debug
        assert debug.function == "test_debug_info_only_on_request"
