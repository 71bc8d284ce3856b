"""
Payload shape checks -- pure boundary validation.

Every operation's input type (receipt line, issue line, payment request, ...)
is built from a loose JSON mapping through these helpers.  Shape problems
(not a mapping, unknown keys, missing keys, malformed ids and dates) are
collected and raised together as one ``InvalidPayloadError``; numeric range
problems are the input type's own business and raise
``InvalidQuantityError``.
"""

from datetime import date, datetime
from typing import Any, Iterable, Mapping
from uuid import UUID

from erp_kernel.exceptions import InvalidPayloadError
from erp_kernel.logging_config import get_logger

logger = get_logger("domain.payloads")


def check_shape(
    payload: Any,
    payload_type: str,
    required: Iterable[str],
    optional: Iterable[str] = (),
) -> Mapping[str, Any]:
    """
    Verify ``payload`` is a mapping with exactly the allowed keys.

    Raises:
        InvalidPayloadError: listing every missing and unknown key.
    """
    if not isinstance(payload, Mapping):
        raise InvalidPayloadError(payload_type, [f"expected an object, got {type(payload).__name__}"])

    required = tuple(required)
    allowed = set(required) | set(optional)
    problems = [f"missing '{key}'" for key in required if payload.get(key) is None]
    problems.extend(f"unknown key '{key}'" for key in sorted(set(payload) - allowed))
    if problems:
        logger.info(
            "payload_rejected",
            extra={"payload_type": payload_type, "problems": problems},
        )
        raise InvalidPayloadError(payload_type, problems)
    return payload


def require_list(payload: Any, payload_type: str, key: str) -> list:
    """Return ``payload`` as a non-empty list or raise InvalidPayloadError."""
    if not isinstance(payload, list) or not payload:
        raise InvalidPayloadError(payload_type, [f"'{key}' must be a non-empty array"])
    return payload


def parse_uuid(value: Any, payload_type: str, key: str) -> UUID:
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str):
        raise InvalidPayloadError(payload_type, [f"'{key}' must be a UUID string"])
    try:
        return UUID(value)
    except ValueError:
        raise InvalidPayloadError(payload_type, [f"'{key}' is not a valid UUID: {value!r}"]) from None


def parse_optional_uuid(value: Any, payload_type: str, key: str) -> UUID | None:
    if value is None:
        return None
    return parse_uuid(value, payload_type, key)


def parse_date(value: Any, payload_type: str, key: str) -> date:
    """Accept a ``date``, a ``datetime`` or an ISO-8601 string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            pass
    raise InvalidPayloadError(payload_type, [f"'{key}' must be an ISO date, got {value!r}"])


def parse_optional_date(value: Any, payload_type: str, key: str) -> date | None:
    if value is None:
        return None
    return parse_date(value, payload_type, key)


def parse_text(value: Any, payload_type: str, key: str, max_length: int = 4000) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidPayloadError(payload_type, [f"'{key}' must be a non-empty string"])
    if len(value) > max_length:
        raise InvalidPayloadError(payload_type, [f"'{key}' exceeds {max_length} characters"])
    return value.strip()


def parse_optional_text(value: Any, payload_type: str, key: str, max_length: int = 4000) -> str | None:
    if value is None:
        return None
    return parse_text(value, payload_type, key, max_length)
