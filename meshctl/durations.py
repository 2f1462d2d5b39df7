"""Parsing of human-readable durations such as ``30m`` or ``1d12h``."""

from __future__ import annotations

import re
from datetime import timedelta

DEFAULT_PRE_AUTH_KEY_EXPIRY = "1h"

_MAX_NANOSECONDS = (1 << 63) - 1
_NS_PER_MS = 1_000_000

_DURATION_RE = re.compile(
    r"^(?:([0-9]+)y)?(?:([0-9]+)w)?(?:([0-9]+)d)?(?:([0-9]+)h)?"
    r"(?:([0-9]+)m)?(?:([0-9]+)s)?(?:([0-9]+)ms)?$"
)

_UNIT_MILLISECONDS = (
    1000 * 60 * 60 * 24 * 365,
    1000 * 60 * 60 * 24 * 7,
    1000 * 60 * 60 * 24,
    1000 * 60 * 60,
    1000 * 60,
    1000,
    1,
)


class DurationError(ValueError):
    """Raised when a duration string cannot be parsed."""


def parse_duration(text: str) -> timedelta:
    """Parse a duration made of y, w, d, h, m, s and ms parts, in that order."""
    if text == "0":
        return timedelta(0)
    if text == "":
        raise DurationError("empty duration string")
    match = _DURATION_RE.match(text)
    if match is None:
        raise DurationError(f"not a valid duration string: {text!r}")

    total_ns = 0
    for group, unit_ms in zip(match.groups(), _UNIT_MILLISECONDS):
        if group is None:
            continue
        count = int(group)
        if count > _MAX_NANOSECONDS // unit_ms // _NS_PER_MS:
            raise DurationError("duration out of range")
        total_ns += count * unit_ms * _NS_PER_MS
        if total_ns > _MAX_NANOSECONDS:
            raise DurationError("duration out of range")
    return timedelta(microseconds=total_ns // 1000)