"""The embedded DERP server's region description, HTTP helpers and STUN listener."""

from __future__ import annotations

import logging
import re
import socket
import threading
from http import HTTPStatus
from typing import Optional
from urllib.parse import urlsplit

from meshctl.derp import DERPMap, DERPNode, DERPRegion
from meshctl.stun import StunError, binding_response, is_stun, parse_binding_request

log = logging.getLogger(__name__)

FAST_START_HEADER = "Derp-Fast-Start"

_BUFFER_SIZE = 64 << 10
_POLL_INTERVAL = 0.5
_ERROR_BACKOFF = 1.0
_INTEGER = re.compile(r"[+-]?[0-9]+")


def _split_host_port(hostport: str) -> tuple[str, str]:
    """Split ``host:port`` the way network addresses are written."""
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError(f"address {hostport}: missing ']' in address")
        host = hostport[1:end]
        rest = hostport[end + 1 :]
        if not rest:
            raise ValueError(f"address {hostport}: missing port in address")
        if not rest.startswith(":"):
            raise ValueError(f"address {hostport}: unexpected text after ']'")
        port = rest[1:]
    else:
        index = hostport.rfind(":")
        if index < 0:
            raise ValueError(f"address {hostport}: missing port in address")
        host = hostport[:index]
        if ":" in host:
            raise ValueError(f"address {hostport}: too many colons in address")
        port = hostport[index + 1 :]
    if "[" in port or "]" in port or "[" in host or "]" in host:
        raise ValueError(f"address {hostport}: unexpected bracket in address")
    return host, port


def _atoi(text: str) -> int:
    if not _INTEGER.fullmatch(text):
        raise ValueError(f"invalid port number {text!r}")
    return int(text)


def generate_region_local_derp(
    server_url: str,
    region_id: int,
    region_code: str,
    region_name: str,
    stun_addr: str,
) -> DERPRegion:
    """Describe the embedded DERP server as a single-node region."""
    parsed = urlsplit(server_url)
    netloc = parsed.netloc.rpartition("@")[2]
    try:
        host, port_text = _split_host_port(netloc)
    except ValueError:
        host = netloc
        port = 443 if parsed.scheme == "https" else 80
    else:
        port = _atoi(port_text)

    _, stun_port_text = _split_host_port(stun_addr)
    stun_port = _atoi(stun_port_text)

    region = DERPRegion(
        region_id=region_id,
        region_code=region_code,
        region_name=region_name,
        avoid=False,
        nodes=[
            DERPNode(
                name=str(region_id),
                region_id=region_id,
                host_name=host,
                derp_port=port,
                stun_port=stun_port,
            )
        ],
    )
    log.info("DERP region: %r", region)
    return region


def switching_protocols_header(public_key_hex: str, protocol_version) -> bytes:
    """Return the HTTP 101 response that precedes the DERP protocol."""
    return (
        "HTTP/1.1 101 Switching Protocols\r\n"
        "Upgrade: DERP\r\n"
        "Connection: Upgrade\r\n"
        f"Derp-Version: {protocol_version}\r\n"
        f"Derp-Public-Key: {public_key_hex}\r\n\r\n"
    ).encode("ascii")


def probe_response(method: str) -> tuple[HTTPStatus, dict[str, str], bytes]:
    """Return status, headers and body answering a DERP latency probe."""
    if method in ("HEAD", "GET"):
        return HTTPStatus.OK, {"Access-Control-Allow-Origin": "*"}, b""
    return HTTPStatus.METHOD_NOT_ALLOWED, {}, b"bogus probe method"


def bootstrap_dns(derp_map: DERPMap) -> dict[str, list[str]]:
    """Resolve every DERP node host name; names that fail to resolve are left out."""
    entries: dict[str, list[str]] = {}
    for region in derp_map.regions.values():
        for node in region.nodes:
            if not node.host_name:
                continue
            try:
                infos = socket.getaddrinfo(node.host_name, None)
            except (OSError, UnicodeError) as err:
                log.debug("bootstrap DNS lookup failed %r: %s", node.host_name, err)
                continue
            addresses: list[str] = []
            for info in infos:
                address = str(info[4][0]).split("%", 1)[0]
                if address not in addresses:
                    addresses.append(address)
            entries[node.host_name] = addresses
    return entries


def stun_listener(sock: socket.socket, stop_event: threading.Event) -> None:
    """Answer STUN binding requests on ``sock`` until ``stop_event`` is set.

    The socket should carry a timeout so the stop event is checked regularly.
    """
    while not stop_event.is_set():
        try:
            packet, address = sock.recvfrom(_BUFFER_SIZE)
        except socket.timeout:
            continue
        except OSError as err:
            if stop_event.is_set():
                return
            log.error("STUN ReadFrom: %s", err)
            stop_event.wait(_ERROR_BACKOFF)
            continue

        log.debug("STUN request from %s", address)
        if not is_stun(packet):
            log.debug("UDP packet is not STUN")
            continue
        try:
            txid = parse_binding_request(packet)
        except StunError as err:
            log.debug("STUN parse error: %s", err)
            continue

        host = str(address[0]).split("%", 1)[0]
        try:
            response = binding_response(txid, host, address[1])
            sock.sendto(response, address)
        except (OSError, ValueError) as err:
            log.debug("Issue writing to UDP: %s", err)
            continue


def serve_stun(addr: str, stop_event: Optional[threading.Event] = None) -> None:
    """Bind a UDP socket to ``addr`` and serve STUN until stopped."""
    host, port_text = _split_host_port(addr)
    port = _atoi(port_text)
    infos = socket.getaddrinfo(
        host or None, port, type=socket.SOCK_DGRAM, flags=socket.AI_PASSIVE
    )
    family, socktype, proto, _, sockaddr = infos[0]
    with socket.socket(family, socktype, proto) as sock:
        sock.bind(sockaddr)
        log.info("STUN server started at %s", sock.getsockname())
        sock.settimeout(_POLL_INTERVAL)
        stun_listener(sock, stop_event if stop_event is not None else threading.Event())