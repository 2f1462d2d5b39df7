"""Minimal STUN (RFC 5389) binding request parsing and response encoding."""

from __future__ import annotations

import ipaddress
import struct
import zlib
from typing import Iterator, Union

MAGIC_COOKIE = b"\x21\x12\xa4\x42"
HEADER_LEN = 20
TXID_LEN = 12
SOFTWARE = b"tailnode"

ATTR_SOFTWARE = 0x8022
ATTR_FINGERPRINT = 0x8028
ATTR_XOR_MAPPED_ADDRESS = 0x0020

_BINDING_REQUEST = b"\x00\x01"
_BINDING_RESPONSE = b"\x01\x01"
_LEN_FINGERPRINT = 8
_FINGERPRINT_XOR = 0x5354554E

Address = Union[str, bytes, ipaddress.IPv4Address, ipaddress.IPv6Address]


class StunError(ValueError):
    """Raised when a packet is not an acceptable STUN binding request."""


def is_stun(packet: bytes) -> bool:
    """Report whether ``packet`` looks like a STUN message."""
    return (
        len(packet) >= HEADER_LEN
        and packet[0] & 0b11000000 == 0
        and bytes(packet[4:8]) == MAGIC_COOKIE
    )


def _attributes(data: bytes) -> Iterator[tuple[int, bytes]]:
    while data:
        if len(data) < 4:
            raise StunError("invalid attributes")
        attr_type, attr_len = struct.unpack("!HH", data[:4])
        padded_len = (attr_len + 3) & ~3
        data = data[4:]
        if padded_len > len(data):
            raise StunError("invalid attributes")
        yield attr_type, data[:attr_len]
        data = data[padded_len:]


def _fingerprint(data: bytes) -> int:
    return (zlib.crc32(data) ^ _FINGERPRINT_XOR) & 0xFFFFFFFF


def parse_binding_request(packet: bytes) -> bytes:
    """Validate a binding request and return its 12-byte transaction id."""
    packet = bytes(packet)
    if not is_stun(packet):
        raise StunError("request is not STUN")
    if packet[:2] != _BINDING_REQUEST:
        raise StunError("STUN request not a binding request")
    txid = packet[8 : 8 + TXID_LEN]

    attributes = list(_attributes(packet[HEADER_LEN:]))
    software_ok = any(
        attr_type == ATTR_SOFTWARE and value == SOFTWARE
        for attr_type, value in attributes
    )
    fingerprints = [
        struct.unpack("!I", value)[0]
        for attr_type, value in attributes
        if attr_type == ATTR_FINGERPRINT and len(value) == 4
    ]

    if not software_ok:
        raise StunError("STUN request has wrong software attribute")
    if not attributes or attributes[-1][0] != ATTR_FINGERPRINT:
        raise StunError("STUN request didn't end in fingerprint")
    if not fingerprints:
        raise StunError("STUN request has wrong fingerprint value")
    if _fingerprint(packet[: len(packet) - _LEN_FINGERPRINT]) != fingerprints[-1]:
        raise StunError("STUN request has wrong fingerprint value")
    return txid


def binding_response(txid: bytes, ip: Address, port: int) -> bytes:
    """Build a binding success response carrying an XOR-MAPPED-ADDRESS."""
    txid = bytes(txid)
    if len(txid) != TXID_LEN:
        raise ValueError(f"transaction id must be {TXID_LEN} bytes")
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port {port} out of range")

    address = ipaddress.ip_address(ip)
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        address = address.ipv4_mapped
    raw = address.packed
    family = 1 if len(raw) == 4 else 2

    key = MAGIC_COOKIE + txid
    xored = bytes(octet ^ mask for octet, mask in zip(raw, key))
    attrs_len = 8 + len(raw)

    return b"".join(
        [
            _BINDING_RESPONSE,
            struct.pack("!H", attrs_len),
            MAGIC_COOKIE,
            txid,
            struct.pack("!HH", ATTR_XOR_MAPPED_ADDRESS, 4 + len(raw)),
            bytes([0, family]),
            struct.pack("!H", port ^ 0x2112),
            xored,
        ]
    )