"""MagicDNS helpers: reverse-lookup root domains and per-client DNS configuration."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

BYTE_SIZE = 8
IPV4_ADDRESS_LENGTH = 32
IPV6_ADDRESS_LENGTH = 128
_NIBBLE_LEN = 4
_MAX_LABEL_LENGTH = 63
_MAX_NAME_LENGTH = 253

Prefix = Union[str, ipaddress.IPv4Network, ipaddress.IPv6Network]


@dataclass
class DNSConfig:
    """DNS settings handed to clients in a map response."""

    nameservers: list[str] = field(default_factory=list)
    routes: dict[str, Optional[list[str]]] = field(default_factory=dict)
    domains: list[str] = field(default_factory=list)
    proxied: bool = False

    def clone(self) -> "DNSConfig":
        """Return an independent copy of this configuration."""
        return DNSConfig(
            nameservers=list(self.nameservers),
            routes={
                name: (list(resolvers) if resolvers is not None else None)
                for name, resolvers in self.routes.items()
            },
            domains=list(self.domains),
            proxied=self.proxied,
        )


def _to_fqdn(name: str) -> str:
    """Validate a DNS name and return it with a trailing dot."""
    raw = name[:-1] if name.endswith(".") else name
    if not raw:
        return "."
    if len(raw) > _MAX_NAME_LENGTH:
        raise ValueError(f"{name!r} is too long to be a DNS name")
    for label in raw.split("."):
        if not label or len(label) > _MAX_LABEL_LENGTH:
            raise ValueError(f"{name!r} has an invalid label {label!r}")
    return raw + "."


def _as_network(prefix: Prefix) -> Union[ipaddress.IPv4Network, ipaddress.IPv6Network]:
    if isinstance(prefix, (ipaddress.IPv4Network, ipaddress.IPv6Network)):
        return prefix
    return ipaddress.ip_network(prefix, strict=False)


def generate_magic_dns_root_domains(prefixes: Iterable[Prefix]) -> list[str]:
    """Return the reverse DNS zones covering every given prefix.

    IPv4 prefixes yield the in-addr.arpa zones of the next class boundary,
    IPv6 prefixes the ip6.arpa zones at nibble granularity.
    """
    fqdns: list[str] = []
    for prefix in prefixes:
        network = _as_network(prefix)
        if network.max_prefixlen == IPV4_ADDRESS_LENGTH:
            fqdns.extend(generate_ipv4_dns_root_domain(network))
        elif network.max_prefixlen == IPV6_ADDRESS_LENGTH:
            fqdns.extend(generate_ipv6_dns_root_domain(network))
        else:
            raise ValueError(
                f"unsupported IP version with address length {network.max_prefixlen}"
            )
    return fqdns


def generate_ipv4_dns_root_domain(prefix: Prefix) -> list[str]:
    """Return the in-addr.arpa zones for the octet the mask ends in."""
    network = _as_network(prefix)
    mask_bits = network.prefixlen
    octets = network.network_address.packed

    last_octet = mask_bits // BYTE_SIZE
    if last_octet >= len(octets):
        raise ValueError(f"prefix {network} has no enclosing reverse zone")
    wildcard_bits = BYTE_SIZE - mask_bits % BYTE_SIZE

    low = octets[last_octet]
    high = low + (1 << wildcard_bits) - 1

    base_parts = [str(octet) for octet in reversed(octets[:last_octet])]
    base_parts.append("in-addr.arpa.")
    rdns_base = ".".join(base_parts)

    fqdns = []
    for value in range(low, high + 1):
        try:
            fqdns.append(_to_fqdn(f"{value}.{rdns_base}"))
        except ValueError:
            continue
    return fqdns


def generate_ipv6_dns_root_domain(prefix: Prefix) -> list[str]:
    """Return the ip6.arpa zones covering the prefix."""
    network = _as_network(prefix)
    mask_bits = network.prefixlen
    nibbles = network.network_address.exploded.replace(":", "")

    constant_parts = list(reversed(nibbles[: mask_bits // _NIBBLE_LEN]))

    def make_domain(*variable: str) -> str:
        return _to_fqdn(".".join([*variable, *constant_parts]) + ".ip6.arpa")

    fqdns = []
    if mask_bits % _NIBBLE_LEN == 0:
        try:
            fqdns.append(make_domain())
        except ValueError:
            pass
    else:
        for value in range(1 << (mask_bits % _NIBBLE_LEN)):
            try:
                fqdns.append(make_domain(f"{value:x}"))
            except ValueError:
                continue
    return fqdns


def map_response_dns_config(
    dns_config: Optional[DNSConfig],
    base_domain: str,
    namespace: str,
    peer_namespaces: Iterable[str],
) -> Optional[DNSConfig]:
    """Return the DNS config for a machine in ``namespace`` with the given peers.

    With MagicDNS enabled the result is a copy that adds the machine's own
    namespace as search domain and a route for every namespace involved;
    otherwise the configuration is returned unchanged.
    """
    if dns_config is None or not dns_config.proxied:
        return dns_config

    config = dns_config.clone()
    config.domains.append(f"{namespace}.{base_domain}")

    namespaces = {namespace, *peer_namespaces}
    for name in namespaces:
        config.routes[f"{name}.{base_domain}"] = None
    return config