"""Human-readable tables of machines, namespaces and pre-auth keys."""

from __future__ import annotations

import base64
import ipaddress
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from meshctl.output import colour_time, format_datetime, light_green, light_red

NODE_PUBLIC_KEY_PREFIX = "nodekey:"
ONLINE_WINDOW = timedelta(minutes=5)

_NODE_KEY_BYTES = 32
_LIGHT_MAGENTA = "\x1b[95m"
_LIGHT_YELLOW = "\x1b[93m"
_RESET = "\x1b[0m"

NODE_TABLE_HEADER = (
    "ID",
    "Hostname",
    "Name",
    "NodeKey",
    "Namespace",
    "IP addresses",
    "Ephemeral",
    "Last seen",
    "Online",
    "Expired",
)
NODE_TABLE_TAG_HEADER = ("ForcedTags", "InvalidTags", "ValidTags")
NAMESPACE_TABLE_HEADER = ("ID", "Name", "Created")
PREAUTHKEY_TABLE_HEADER = (
    "ID",
    "Key",
    "Reusable",
    "Ephemeral",
    "Used",
    "Expiration",
    "Created",
)


@dataclass
class MachineInfo:
    """A machine as reported by the server."""

    id: int
    name: str = ""
    given_name: str = ""
    node_key: str = ""
    namespace: str = ""
    ip_addresses: list[str] = field(default_factory=list)
    ephemeral: bool = False
    last_seen: Optional[datetime] = None
    expiry: Optional[datetime] = None
    forced_tags: list[str] = field(default_factory=list)
    invalid_tags: list[str] = field(default_factory=list)
    valid_tags: list[str] = field(default_factory=list)


@dataclass
class NamespaceInfo:
    """A namespace as reported by the server."""

    id: str
    name: str
    created_at: datetime


@dataclass
class PreAuthKeyInfo:
    """A pre-authentication key as reported by the server."""

    id: str
    key: str
    created_at: datetime
    namespace: str = ""
    reusable: bool = False
    ephemeral: bool = False
    used: bool = False
    expiration: Optional[datetime] = None


def _light_magenta(text: str) -> str:
    return f"{_LIGHT_MAGENTA}{text}{_RESET}"


def _light_yellow(text: str) -> str:
    return f"{_LIGHT_YELLOW}{text}{_RESET}"


def _utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _reference_time(now: Optional[datetime]) -> datetime:
    return datetime.now(timezone.utc) if now is None else _utc(now)


def node_key_short_string(node_key: str) -> str:
    """Return the short form of a node public key, e.g. ``[abcde]``.

    The key may carry the ``nodekey:`` prefix or not; the rest must be
    64 hexadecimal characters. An all-zero key gives an empty string.
    """
    text = node_key
    if not text.startswith(NODE_PUBLIC_KEY_PREFIX):
        text = NODE_PUBLIC_KEY_PREFIX + text
    hex_part = text[len(NODE_PUBLIC_KEY_PREFIX):]
    if len(hex_part) != _NODE_KEY_BYTES * 2:
        raise ValueError(f"invalid node key {node_key!r}: wrong length")
    try:
        raw = bytes.fromhex(hex_part)
    except ValueError as err:
        raise ValueError(f"invalid node key {node_key!r}: {err}") from err
    if not any(raw):
        return ""
    return "[" + base64.b64encode(raw).decode("ascii")[:5] + "]"


def _join_tags(tags: Iterable[str]) -> str:
    return "".join("," + tag for tag in tags).lstrip(",")


def _split_addresses(addresses: Iterable[str]) -> tuple[str, str]:
    ipv4 = ""
    ipv6 = ""
    for address in addresses:
        if isinstance(ipaddress.ip_address(address), ipaddress.IPv4Address):
            ipv4 = address
        else:
            ipv6 = address
    return ipv4, ipv6


def _machine_row(
    machine: MachineInfo, current_namespace: str, show_tags: bool, now: datetime
) -> list[str]:
    if machine.last_seen is not None:
        last_seen = _utc(machine.last_seen)
        last_seen_text = format_datetime(last_seen)
        online = last_seen > now - ONLINE_WINDOW
    else:
        last_seen_text = ""
        online = False

    if machine.expiry is None or _utc(machine.expiry) > now:
        expired = light_green("no")
    else:
        expired = light_red("yes")

    short_key = node_key_short_string(machine.node_key)

    if current_namespace == "" or current_namespace == machine.namespace:
        namespace = _light_magenta(machine.namespace)
    else:
        namespace = _light_yellow(machine.namespace)

    ipv4, ipv6 = _split_addresses(machine.ip_addresses)

    row = [
        str(machine.id),
        machine.name,
        machine.given_name,
        short_key,
        namespace,
        ", ".join([ipv4, ipv6]),
        str(bool(machine.ephemeral)).lower(),
        last_seen_text,
        light_green("online") if online else light_red("offline"),
        expired,
    ]
    if show_tags:
        forced = set(machine.forced_tags)
        row.extend(
            [
                _join_tags(machine.forced_tags),
                _join_tags(
                    light_red(tag) for tag in machine.invalid_tags if tag not in forced
                ),
                _join_tags(
                    light_green(tag) for tag in machine.valid_tags if tag not in forced
                ),
            ]
        )
    return row


def nodes_to_table(
    current_namespace: str,
    show_tags: bool,
    machines: Iterable[MachineInfo],
    now: Optional[datetime] = None,
) -> list[list[str]]:
    """Build the node listing table, header row first."""
    reference = _reference_time(now)
    header = list(NODE_TABLE_HEADER)
    if show_tags:
        header.extend(NODE_TABLE_TAG_HEADER)
    table = [header]
    table.extend(
        _machine_row(machine, current_namespace, show_tags, reference)
        for machine in machines
    )
    return table


def namespaces_to_table(namespaces: Iterable[NamespaceInfo]) -> list[list[str]]:
    """Build the namespace listing table, header row first."""
    table = [list(NAMESPACE_TABLE_HEADER)]
    table.extend(
        [namespace.id, namespace.name, format_datetime(_utc(namespace.created_at))]
        for namespace in namespaces
    )
    return table


def preauthkeys_to_table(
    keys: Iterable[PreAuthKeyInfo], now: Optional[datetime] = None
) -> list[list[str]]:
    """Build the pre-auth key listing table, header row first."""
    reference = _reference_time(now)
    table = [list(PREAUTHKEY_TABLE_HEADER)]
    for item in keys:
        if item.expiration is None:
            expiration = "-"
        else:
            expiration = colour_time(_utc(item.expiration), reference)
        reusable = "N/A" if item.ephemeral else str(bool(item.reusable)).lower()
        table.append(
            [
                item.id,
                item.key,
                reusable,
                str(bool(item.ephemeral)).lower(),
                str(bool(item.used)).lower(),
                expiration,
                format_datetime(_utc(item.created_at)),
            ]
        )
    return table