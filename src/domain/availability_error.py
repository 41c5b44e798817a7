"""
Availability error classification: what the diner is told when slots
can't be shown.

classify_availability_error() turns whatever a fetch raised (transport
errors, server payloads, strings, None) into one of four categories.
It is total: it never raises and always returns a title and a message.

An empty slot list is not an error and is never classified here; callers
that observe zero results use no_slots_error().
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Literal

import requests

from src.adapters.ports import ApiError, NetworkError

log = logging.getLogger(__name__)

ErrorType = Literal["network_error", "no_slots", "user_friendly", "system_error"]
ErrorAction = Literal["retry", "contact", "change_params", "none"]


@dataclass(frozen=True)
class AvailabilityError:
    type: ErrorType
    title: str
    message: str
    show_contact_info: bool
    action: ErrorAction = "none"


_NETWORK_ERROR = AvailabilityError(
    type="network_error",
    title="Connection Issue",
    message="Unable to connect to the server. Please check your internet connection.",
    show_contact_info=False,
    action="retry",
)

_GENERIC_ERROR = AvailabilityError(
    type="system_error",
    title="Something Went Wrong",
    message="Unable to check availability at this time. Please try again or contact the restaurant.",
    show_contact_info=True,
    action="retry",
)

_API_ERROR_PATTERN = re.compile(r"\[ApiError:\s*(.+)\]")


def no_slots_error() -> AvailabilityError:
    """What to show when a successful fetch returned no bookable slot."""
    return AvailabilityError(
        type="no_slots",
        title="No Availability",
        message=(
            "Unfortunately, no tables are available for the selected date, time, "
            "and party size. Try adjusting your search."
        ),
        show_contact_info=True,
        action="change_params",
    )


def _payload_message(payload: Any) -> str:
    """Dig a human message out of a server error body."""
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, dict):
        return str(payload)
    body = payload.get("body") if isinstance(payload.get("body"), dict) else {}
    for candidate in (
        payload.get("detail"),
        payload.get("title"),
        body.get("detail"),
        payload.get("message"),
        payload.get("reason"),
        payload.get("error"),
        payload.get("errorMessage"),
    ):
        if isinstance(candidate, str) and candidate.strip():
            return candidate
    try:
        return json.dumps(payload)
    except (TypeError, ValueError):
        return "Unknown error format"


def _extract(raw: Any) -> tuple[str, int | None, Any, dict | None]:
    """Return (message, status_code, payload, field_errors) for any raw failure."""
    if raw is None:
        return "", None, None, None
    if isinstance(raw, ApiError):
        return raw.message or "", raw.status_code, raw.payload, raw.errors
    if isinstance(raw, requests.HTTPError) and raw.response is not None:
        try:
            payload = raw.response.json()
        except ValueError:
            payload = raw.response.text
        return _payload_message(payload) or str(raw), raw.response.status_code, payload, None
    if isinstance(raw, dict):
        status = raw.get("status") or raw.get("statusCode")
        errors = raw.get("errors") if isinstance(raw.get("errors"), dict) else None
        return _payload_message(raw), status if isinstance(status, int) else None, raw, errors
    if isinstance(raw, BaseException):
        message = str(raw)
        match = _API_ERROR_PATTERN.search(message)
        return (match.group(1).strip() if match else message), None, None, None
    return str(raw), None, None, None


def _is_network_failure(raw: Any, message: str) -> bool:
    if isinstance(raw, (NetworkError, requests.ConnectionError, requests.Timeout)):
        return True
    if isinstance(raw, (ConnectionError, TimeoutError)):
        return True
    return "network" in message.lower()


def _first_number(pattern: str, text: str) -> str | None:
    match = re.search(pattern, text)
    return match.group(1) if match else None


def _format_field_errors(errors: dict) -> str:
    lines = []
    for name, messages in errors.items():
        if isinstance(messages, (list, tuple)):
            messages = ", ".join(str(m) for m in messages)
        lines.append(f"{name}: {messages}")
    return "\n".join(lines)


def _classify(raw: Any) -> AvailabilityError:
    message, status, payload, field_errors = _extract(raw)
    lower = message.lower()

    if _is_network_failure(raw, message):
        return _NETWORK_ERROR

    # Server-validated messages, safe to act on
    if "mobile bookings are disabled" in lower or "online bookings are disabled" in lower:
        return AvailabilityError(
            type="user_friendly",
            title="Call to Book",
            message=(
                "This restaurant currently doesn't accept online bookings. "
                "Please call the restaurant to make a reservation."
            ),
            show_contact_info=True,
            action="contact",
        )

    if "party size" in lower and "maximum" in lower:
        max_size = _first_number(r"\((\d+)\)", message) or _first_number(r"(\d+)\s+people", message) or "8"
        return AvailabilityError(
            type="user_friendly",
            title="Large Party",
            message=(
                f"This restaurant accepts online bookings for up to {max_size} people. "
                "For larger parties, please contact the restaurant directly."
            ),
            show_contact_info=True,
            action="contact",
        )

    if "cannot book more than" in lower or ("days" in lower and "advance" in lower):
        days = _first_number(r"(\d+)\s+days", message) or "the allowed number of"
        return AvailabilityError(
            type="user_friendly",
            title="Date Too Far Ahead",
            message=f"Reservations can only be made up to {days} days in advance. Please select a closer date.",
            show_contact_info=False,
            action="change_params",
        )

    if (
        "requires at least" in lower
        or "advance notice" in lower
        or ("hours" in lower and "notice" in lower)
    ):
        hours = _first_number(r"(\d+)\s+hours", message) or "several"
        return AvailabilityError(
            type="user_friendly",
            title="Advance Notice Required",
            message=(
                f"This restaurant requires at least {hours} hours advance notice for "
                "reservations. Please select a later date or time."
            ),
            show_contact_info=False,
            action="change_params",
        )

    if "closed" in lower or "not open" in lower:
        return AvailabilityError(
            type="no_slots",
            title="Restaurant Closed",
            message="The restaurant is closed on the selected date. Please choose a different day.",
            show_contact_info=True,
            action="change_params",
        )

    if "no available" in lower or "no tables" in lower or "fully booked" in lower:
        return no_slots_error()

    if status in (401, 403):
        return AvailabilityError(
            type="system_error",
            title="Authentication Required",
            message="Please log in to check availability and make reservations.",
            show_contact_info=True,
            action="none",
        )

    if status == 429:
        return AvailabilityError(
            type="system_error",
            title="Too Many Requests",
            message="You're checking availability too quickly. Please wait a moment and try again.",
            show_contact_info=True,
            action="retry",
        )

    if status is not None and status >= 500:
        return AvailabilityError(
            type="system_error",
            title="Server Error",
            message=(
                "The restaurant booking system is temporarily unavailable. "
                "Please try again in a few minutes."
            ),
            show_contact_info=True,
            action="retry",
        )

    if status in (400, 422):
        text = _format_field_errors(field_errors) if field_errors else message.strip()
        return AvailabilityError(
            type="user_friendly",
            title="Invalid Request",
            message=text or "Please check your selection and try again.",
            show_contact_info=False,
            action="change_params",
        )

    return _GENERIC_ERROR


def classify_availability_error(raw: Any) -> AvailabilityError:
    """
    Map any fetch failure to the category shown to the diner.

    Accepts exceptions (NetworkError, ApiError, requests errors, anything
    else), structured server payloads (dicts), plain strings and None.
    """
    try:
        return _classify(raw)
    except Exception:
        log.exception("classifier failed on %s, using generic error", type(raw).__name__)
        return _GENERIC_ERROR


def error_action_text(error: AvailabilityError) -> str:
    """Label for the button that goes with the error."""
    return {
        "retry": "Try Again",
        "contact": "Contact Restaurant",
        "change_params": "Change Selection",
    }.get(error.action, "OK")


def should_show_contact_info(error: AvailabilityError) -> bool:
    """True when the 'call the restaurant' channel should be offered."""
    return error.show_contact_info and error.type in ("no_slots", "user_friendly", "system_error")
