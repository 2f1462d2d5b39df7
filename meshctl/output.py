"""Command-line output: machine-readable formats, colours and small tables."""

from __future__ import annotations

import dataclasses
import enum
import json
import sys
from datetime import date as _date
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Sequence

import yaml

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
MACHINE_OUTPUT_FORMATS = ("json", "json-line", "yaml")

_LIGHT_GREEN = "\x1b[92m"
_LIGHT_RED = "\x1b[91m"
_RESET = "\x1b[0m"


def _plain(value: Any) -> Any:
    """Turn dataclasses, enums and other rich values into plain data."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            item.name: _plain(getattr(value, item.name))
            for item in dataclasses.fields(value)
        }
    if isinstance(value, enum.Enum):
        return _plain(value.value)
    if isinstance(value, dict):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(item) for item in value]
    if isinstance(value, (datetime, _date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def success_output(result: Any, override: str, output_format: str) -> None:
    """Print ``result`` in the requested format, or ``override`` for humans."""
    if output_format == "json":
        text = json.dumps(_plain(result), indent="\t", ensure_ascii=False)
    elif output_format == "json-line":
        text = json.dumps(_plain(result), separators=(",", ":"), ensure_ascii=False)
    elif output_format == "yaml":
        text = yaml.safe_dump(
            _plain(result), default_flow_style=False, allow_unicode=True
        )
    else:
        print(override)
        return
    print(text)


def error_output(error: BaseException, override: str, output_format: str) -> None:
    """Print an error as ``{"error": ...}`` in machine formats, else ``override``."""
    success_output({"error": str(error)}, override, output_format)


def has_machine_output_flag(argv: Optional[Iterable[str]] = None) -> bool:
    """Report whether the arguments ask for a machine-readable output format."""
    args = sys.argv if argv is None else argv
    return any(arg in MACHINE_OUTPUT_FORMATS for arg in args)


def light_green(text: str) -> str:
    """Wrap ``text`` in the light green terminal colour."""
    return f"{_LIGHT_GREEN}{text}{_RESET}"


def light_red(text: str) -> str:
    """Wrap ``text`` in the light red terminal colour."""
    return f"{_LIGHT_RED}{text}{_RESET}"


def format_datetime(date: datetime) -> str:
    """Format a timestamp the way tables show it."""
    return date.strftime(DATETIME_FORMAT)


def _now_like(date: datetime) -> datetime:
    if date.tzinfo is None:
        return datetime.now()
    return datetime.now(timezone.utc)


def colour_time(date: datetime, now: Optional[datetime] = None) -> str:
    """Format ``date``, green if it lies in the future and red otherwise."""
    reference = _now_like(date) if now is None else now
    text = format_datetime(date)
    if date > reference:
        return light_green(text)
    return light_red(text)


def routes_to_table(
    advertised: Iterable[str], enabled: Sequence[str]
) -> list[list[str]]:
    """Build a table of advertised routes and whether each is enabled."""
    enabled_set = set(enabled)
    table = [["Route", "Enabled"]]
    table.extend(
        [route, "true" if route in enabled_set else "false"] for route in advertised
    )
    return table