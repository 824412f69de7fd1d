"""Normalize arbitrary backend errors into user-facing messages.

Backend failures arrive as SDK exceptions, plain exceptions whose message is a
JSON document (``{"error": {"code": ..., "status": ..., "message": ...}}``),
bare strings or dicts. Everything is reduced to one message string plus an
ErrorKind.

Retry eligibility and quota detection on the normalized text are substring
heuristics. They live in the named predicates below so call sites never
inspect message text themselves.
"""

import json
from typing import Any, Optional

from google.genai import errors as genai_errors

from retrolens.services.exceptions import (
    GenerationError,
    QuotaExhaustedError,
    TransientInternalError,
)

QUOTA_MESSAGE = "Our daily generation limit has been reached. Please try again tomorrow."
ALL_ATTEMPTS_FAILED = "The API call failed despite all retry attempts."

INTERNAL_FAULT_MARKERS = ('"code":500', "INTERNAL")
QUOTA_MARKERS = ("quota", "kota", "limit")


def is_internal_fault(message: str) -> bool:
    """Case-sensitive check for a server-side fault in a normalized message."""
    return any(marker in message for marker in INTERNAL_FAULT_MARKERS)


def is_quota_message(message: str) -> bool:
    """Case-insensitive check for a quota/limit marker in a normalized message."""
    lowered = message.lower()
    return any(marker in lowered for marker in QUOTA_MARKERS)


def _is_quota_status(status: Any, code: Any) -> bool:
    return status == "RESOURCE_EXHAUSTED" or code == 429


def _raw_message(error: Any) -> str:
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    try:
        return json.dumps(error, default=str)
    except (TypeError, ValueError):
        return repr(error)


def _structured_error(error: Any, message: str) -> Optional[dict]:
    """Return the inner ``error`` object of a structured payload, if any."""
    payload = error if isinstance(error, dict) else None
    if payload is None:
        try:
            payload = json.loads(message)
        except (TypeError, ValueError):
            return None
    if not isinstance(payload, dict):
        return None
    inner = payload.get("error")
    return inner if isinstance(inner, dict) else None


def _normalize(error: Any) -> tuple[str, bool]:
    message = _raw_message(error)

    # SDK errors expose code/status directly; their string form keeps the
    # status token (e.g. "500 INTERNAL. {...}") for the retry heuristic.
    if isinstance(error, genai_errors.APIError):
        if _is_quota_status(getattr(error, "status", None), getattr(error, "code", None)):
            return QUOTA_MESSAGE, True
        return message, False

    details = _structured_error(error, message)
    if details is None:
        return message, False
    if _is_quota_status(details.get("status"), details.get("code")):
        return QUOTA_MESSAGE, True

    structured_message = details.get("message")
    if isinstance(structured_message, str) and structured_message:
        return structured_message, False
    return message, False


def normalize_error(error: Any) -> str:
    """Return a user-facing message for any error value. Never raises."""
    try:
        return _normalize(error)[0]
    except Exception:
        return repr(error)


def classify_error(error: Any) -> GenerationError:
    """Classify ``error`` into the GenerationError hierarchy.

    Classification rules:
        - RESOURCE_EXHAUSTED status or code 429 → QuotaExhaustedError
        - Normalized message with '"code":500' or 'INTERNAL' → TransientInternalError
        - Anything else → GenerationError (kind "other")
    """
    if isinstance(error, GenerationError):
        return error

    try:
        message, is_quota = _normalize(error)
    except Exception:
        message, is_quota = normalize_error(error), False

    if is_quota:
        return QuotaExhaustedError(message)
    if is_internal_fault(message):
        return TransientInternalError(message)
    return GenerationError(message)
