"""Translate free-text prompts such as "people yesterday" into event queries."""
from __future__ import annotations

import logging
import re
import string
from datetime import datetime, timedelta

import parsedatetime

from .query import EventQuery, default_window, extract_keywords

logger = logging.getLogger(__name__)

_calendar = parsedatetime.Calendar()

_RANGE_PATTERN = re.compile(r"(?i)(from|between)\s+(.*?)\s+(to|and)\s+(.*)")
_ALLOWED_CHARACTERS = frozenset(string.ascii_letters + string.digits + " :")

# parsedatetime status codes
_PARSE_FAILED = 0
_PARSED_DATE = 1


class PromptParseError(ValueError):
    """Raised when no date or time can be recognised in a prompt."""


def clean_prompt(prompt: str) -> str:
    """Drop punctuation, keeping letters, digits, spaces and colons."""

    return "".join(char for char in prompt if char in _ALLOWED_CHARACTERS)


def _parse_expression(text: str, now: datetime) -> tuple[datetime, int]:
    parsed, status = _calendar.parseDT(datetimeString=text, sourceTime=now)
    if status == _PARSE_FAILED:
        raise PromptParseError(f"Could not parse date expression {text!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=now.tzinfo)
    return parsed, int(status)


def parse_date_range_prompt(
    prompt: str, now: datetime | None = None
) -> tuple[datetime, datetime]:
    """Return the ``(start, end)`` window described by ``prompt``.

    ``from X to Y`` and ``between X and Y`` give an explicit range. Anything
    else is read as a single expression: a bare date covers the whole day and
    a time of day opens a one hour window.
    """

    current = now if now is not None else datetime.now().astimezone()
    if current.tzinfo is None:
        current = current.astimezone()

    match = _RANGE_PATTERN.search(prompt)
    if match is not None:
        start, _ = _parse_expression(match.group(2), current)
        end, _ = _parse_expression(match.group(4), current)
        return start, end

    moment, status = _parse_expression(prompt, current)
    if status == _PARSED_DATE or (moment.hour == 0 and moment.minute == 0):
        return default_window(moment)
    start = moment.replace(second=0, microsecond=0)
    return start, start + timedelta(hours=1)


def build_prompt_query(prompt: str, now: datetime | None = None) -> EventQuery:
    """Build an :class:`EventQuery`, defaulting to today when no date is found."""

    try:
        start, end = parse_date_range_prompt(prompt, now)
    except PromptParseError as exc:
        logger.warning("Error parsing date range, defaulting to today: %s", exc)
        start, end = default_window(now)
    return EventQuery(
        start=start,
        end=end,
        keywords=extract_keywords(clean_prompt(prompt)),
        exact=True,
    )


__all__ = [
    "PromptParseError",
    "build_prompt_query",
    "clean_prompt",
    "parse_date_range_prompt",
]
