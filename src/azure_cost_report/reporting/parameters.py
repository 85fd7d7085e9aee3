"""
Request parameter resolution and validation.

Merges the JSON body and query string of an incoming request into a
ParameterSet and checks it against the rules the cost query relies on.
"""

import base64
import binascii
import json
import logging
import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from .models import (
    DEFAULT_END_TIME,
    DEFAULT_GRANULARITY,
    DEFAULT_START_TIME,
    GRANULARITIES,
    ParameterSet,
)

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
MAX_RANGE_DAYS = 365

TIME_PATTERN = re.compile(r"([0-1]?[0-9]|2[0-3]):[0-5][0-9]:[0-5][0-9]")


def decode_event_body(event: Mapping[str, Any]) -> str | None:
    """Return the raw body of a serverless event, undoing base64 transport encoding."""
    body = event.get("body")
    if not body or not event.get("isBase64Encoded"):
        return body
    try:
        return base64.b64decode(body, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        logger.debug(f"Could not decode base64 request body: {e}")
        return None


def parse_body(body: str | bytes | Mapping[str, Any] | None) -> dict[str, Any]:
    """Parse a request body into a dict; anything unparseable is an empty body."""
    if not body:
        return {}
    if isinstance(body, Mapping):
        return dict(body)

    try:
        parsed = json.loads(body)
    except (ValueError, TypeError) as e:
        logger.debug(f"Ignoring malformed request body: {e}")
        return {}

    if not isinstance(parsed, dict):
        logger.debug(f"Ignoring non-object request body of type {type(parsed).__name__}")
        return {}
    return parsed


def _as_text(value: Any) -> str | None:
    # Any falsy value (0, "", False, None) or NaN counts as absent
    if not value or value != value:
        return None
    return value if isinstance(value, str) else str(value)


def _first(*values: Any) -> str | None:
    """First value that is present and non-empty."""
    for value in values:
        text = _as_text(value)
        if text is not None:
            return text
    return None


def _resolve_include_tags(body: dict[str, Any], query: Mapping[str, Any]) -> bool:
    if "include_tags" in body:
        value = body["include_tags"]
        return value is True or value == "true"
    if query.get("include_tags"):
        return query["include_tags"] == "true"
    return True


def resolve_parameters(
    body: str | bytes | Mapping[str, Any] | None,
    query: Mapping[str, Any] | None = None,
    default_subscription_id: str | None = None,
) -> ParameterSet:
    """
    Merge body and query string parameters, body first, and apply defaults.

    Args:
        body: Raw JSON body, an already decoded mapping, or None
        query: Query string parameters
        default_subscription_id: Subscription used when neither source names one

    Returns:
        Resolved ParameterSet
    """
    data = parse_body(body)
    query = query or {}

    return ParameterSet(
        start_date=_first(data.get("start_date"), query.get("start_date")),
        end_date=_first(data.get("end_date"), query.get("end_date")),
        start_time=_first(data.get("start_time"), query.get("start_time")) or DEFAULT_START_TIME,
        end_time=_first(data.get("end_time"), query.get("end_time")) or DEFAULT_END_TIME,
        subscription_id=_first(
            data.get("subscription_id"), query.get("subscription_id"), default_subscription_id
        ),
        include_tags=_resolve_include_tags(data, query),
        granularity=_first(data.get("granularity"), query.get("granularity"))
        or DEFAULT_GRANULARITY,
    )


def parse_request_date(value: str) -> date:
    """Parse a YYYY-MM-DD request date."""
    return datetime.strptime(value.strip(), DATE_FORMAT).date()


def validate_parameters(params: ParameterSet, max_range_days: int = MAX_RANGE_DAYS) -> str | None:
    """
    Check request parameters; the first failing rule wins.

    Args:
        params: Resolved parameters
        max_range_days: Longest allowed span between start and end date

    Returns:
        Error message, or None when the parameters are valid
    """
    if not params.start_date:
        return "Missing required parameter: start_date (format: YYYY-MM-DD)"

    if not params.end_date:
        return "Missing required parameter: end_date (format: YYYY-MM-DD)"

    if not params.subscription_id:
        return "Missing required parameter: subscription_id"

    try:
        start = parse_request_date(params.start_date)
        end = parse_request_date(params.end_date)
    except ValueError:
        return "Invalid date format. Use YYYY-MM-DD"

    if end < start:
        return "end_date must be greater than or equal to start_date"

    if (end - start).days > max_range_days:
        return f"Date range cannot exceed {max_range_days} days"

    if not TIME_PATTERN.fullmatch(params.start_time) or not TIME_PATTERN.fullmatch(
        params.end_time
    ):
        return "Invalid time format. Use HH:MM:SS (e.g., 14:30:00)"

    if params.granularity not in GRANULARITIES:
        return "granularity must be 'Daily' or 'Monthly'"

    return None
