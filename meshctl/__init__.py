"""Building blocks for a mesh VPN control server: MagicDNS, DERP maps, STUN, storage and output helpers."""

__version__ = "0.1.0"

__all__ = [
    "dns",
    "tags",
    "derp",
    "stun",
    "derp_server",
    "kvstore",
    "output",
    "durations",
    "tables",
]