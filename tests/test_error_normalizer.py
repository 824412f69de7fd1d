"""Tests for backend error normalization and classification.

Tests cover:
- Quota detection from JSON-encoded error messages, dicts and SDK errors
- Structured message extraction and raw-message fallback
- The substring predicates used for retry and fatal decisions
- normalize_error never raising
"""

import pytest
from google.genai import errors as genai_errors

from retrolens.services.exceptions import (
    ErrorKind,
    GenerationError,
    QuotaExhaustedError,
    TransientInternalError,
)
from retrolens.services.image_generation.error_normalizer import (
    QUOTA_MESSAGE,
    classify_error,
    is_internal_fault,
    is_quota_message,
    normalize_error,
)


class TestNormalizeError:
    def test_quota_code_429_returns_fixed_message(self):
        error = Exception('{"error": {"code": 429, "message": "Too many requests"}}')

        assert normalize_error(error) == QUOTA_MESSAGE

    def test_resource_exhausted_status_returns_fixed_message(self):
        error = Exception('{"error": {"status": "RESOURCE_EXHAUSTED", "message": "quota"}}')

        assert normalize_error(error) == QUOTA_MESSAGE

    def test_structured_message_is_surfaced(self):
        error = Exception(
            '{"error": {"code": 400, "status": "INVALID_ARGUMENT", "message": "Bad image"}}'
        )

        assert normalize_error(error) == "Bad image"

    def test_plain_message_is_returned_unchanged(self):
        assert normalize_error(RuntimeError("connection reset by peer")) == (
            "connection reset by peer"
        )

    def test_json_without_error_object_falls_back_to_raw_message(self):
        error = Exception('{"detail": "nope"}')

        assert normalize_error(error) == '{"detail": "nope"}'

    def test_structured_dict_payload(self):
        assert normalize_error({"error": {"code": 429}}) == QUOTA_MESSAGE
        assert normalize_error({"error": {"message": "Model overloaded"}}) == "Model overloaded"

    def test_plain_string(self):
        assert normalize_error("something broke") == "something broke"

    def test_exception_without_message_uses_type_name(self):
        assert normalize_error(TimeoutError()) == "TimeoutError"

    def test_unserializable_value_never_raises(self):
        class Opaque:
            def __repr__(self):
                return "<opaque>"

        assert normalize_error(Opaque()) == '"<opaque>"'

    def test_sdk_quota_error(self):
        error = genai_errors.ClientError(
            429,
            {
                "error": {
                    "code": 429,
                    "message": "Resource has been exhausted (e.g. check quota).",
                    "status": "RESOURCE_EXHAUSTED",
                }
            },
        )

        assert normalize_error(error) == QUOTA_MESSAGE

    def test_sdk_server_error_keeps_status_token(self):
        error = genai_errors.ServerError(
            500,
            {
                "error": {
                    "code": 500,
                    "message": "Internal error encountered.",
                    "status": "INTERNAL",
                }
            },
        )

        message = normalize_error(error)

        assert "INTERNAL" in message
        assert is_internal_fault(message)


class TestPredicates:
    @pytest.mark.parametrize(
        "message",
        ['{"error":{"code":500}}', "500 INTERNAL. upstream failed", "INTERNAL"],
    )
    def test_internal_fault_markers(self, message):
        assert is_internal_fault(message)

    @pytest.mark.parametrize(
        "message",
        ["internal error", "Internal error encountered.", '{"code": 500}', "503 UNAVAILABLE"],
    )
    def test_internal_fault_check_is_case_sensitive_and_exact(self, message):
        assert not is_internal_fault(message)

    @pytest.mark.parametrize(
        "message",
        [QUOTA_MESSAGE, "Daily LIMIT reached", "Kota doldu", "Quota exceeded for project"],
    )
    def test_quota_markers_case_insensitive(self, message):
        assert is_quota_message(message)

    def test_non_quota_message(self):
        assert not is_quota_message("The AI replied with text instead of an image")


class TestClassifyError:
    def test_quota(self):
        classified = classify_error(Exception('{"error": {"code": 429}}'))

        assert isinstance(classified, QuotaExhaustedError)
        assert classified.kind == ErrorKind.QUOTA_EXHAUSTED
        assert classified.message == QUOTA_MESSAGE

    def test_internal(self):
        classified = classify_error(Exception("500 INTERNAL. backend hiccup"))

        assert isinstance(classified, TransientInternalError)
        assert classified.kind == ErrorKind.TRANSIENT_INTERNAL

    def test_other(self):
        classified = classify_error(ValueError("unsupported mime type"))

        assert type(classified) is GenerationError
        assert classified.kind == ErrorKind.OTHER
        assert str(classified) == "unsupported mime type"

    def test_already_classified_error_is_returned_as_is(self):
        original = QuotaExhaustedError(QUOTA_MESSAGE)

        assert classify_error(original) is original
