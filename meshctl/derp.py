"""DERP relay maps: loading from files and URLs, and merging."""

from __future__ import annotations

import json
import logging
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

import yaml

log = logging.getLogger(__name__)

HTTP_READ_TIMEOUT = 30.0


@dataclass
class DERPNode:
    """A single relay server within a region."""

    name: str = ""
    region_id: int = 0
    host_name: str = ""
    cert_name: str = ""
    ipv4: str = ""
    ipv6: str = ""
    stun_port: int = 0
    stun_only: bool = False
    derp_port: int = 0
    insecure_for_tests: bool = False
    stun_test_ip: str = ""


@dataclass
class DERPRegion:
    """A group of relay servers in one location."""

    region_id: int = 0
    region_code: str = ""
    region_name: str = ""
    avoid: bool = False
    nodes: list[DERPNode] = field(default_factory=list)


@dataclass
class DERPMap:
    """The set of relay regions known to clients, keyed by region id."""

    regions: dict[int, DERPRegion] = field(default_factory=dict)
    omit_default_regions: bool = False


def _as_int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                pass
        raise ValueError(f"expected an integer, got {value!r}")
    return value


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ValueError(f"expected a string, got {value!r}")


def _as_bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    raise ValueError(f"expected a boolean, got {value!r}")


def _as_mapping(value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"expected a mapping, got {value!r}")
    return value


def _build(cls, data: Any, fields: dict[str, tuple[str, Callable[[Any], Any]]]):
    kwargs = {}
    for key, value in _as_mapping(data).items():
        spec = fields.get(str(key).lower())
        if spec is None:
            continue
        attr, convert = spec
        kwargs[attr] = convert(value)
    return cls(**kwargs)


_NODE_FIELDS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "name": ("name", _as_str),
    "regionid": ("region_id", _as_int),
    "hostname": ("host_name", _as_str),
    "certname": ("cert_name", _as_str),
    "ipv4": ("ipv4", _as_str),
    "ipv6": ("ipv6", _as_str),
    "stunport": ("stun_port", _as_int),
    "stunonly": ("stun_only", _as_bool),
    "derpport": ("derp_port", _as_int),
    "insecurefortests": ("insecure_for_tests", _as_bool),
    "stuntestip": ("stun_test_ip", _as_str),
}


def _nodes(value: Any) -> list[DERPNode]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"expected a list of nodes, got {value!r}")
    return [_build(DERPNode, item, _NODE_FIELDS) for item in value]


_REGION_FIELDS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "regionid": ("region_id", _as_int),
    "regioncode": ("region_code", _as_str),
    "regionname": ("region_name", _as_str),
    "avoid": ("avoid", _as_bool),
    "nodes": ("nodes", _nodes),
}


def _regions(value: Any) -> dict[int, DERPRegion]:
    return {
        _as_int(key): _build(DERPRegion, region, _REGION_FIELDS)
        for key, region in _as_mapping(value).items()
    }


_MAP_FIELDS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "regions": ("regions", _regions),
    "omitdefaultregions": ("omit_default_regions", _as_bool),
}


def derp_map_from_dict(data: Any) -> DERPMap:
    """Build a DERPMap from decoded YAML or JSON; keys match case-insensitively."""
    return _build(DERPMap, data, _MAP_FIELDS)


def load_derp_map_from_path(path) -> DERPMap:
    """Read a YAML DERP map from a file."""
    with open(path, "rb") as handle:
        data = yaml.safe_load(handle.read())
    return derp_map_from_dict(data)


def load_derp_map_from_url(url: str, timeout: float = HTTP_READ_TIMEOUT) -> DERPMap:
    """Fetch a JSON DERP map from a URL."""
    with urllib.request.urlopen(url, timeout=timeout) as response:
        body = response.read()
    return derp_map_from_dict(json.loads(body))


def merge_derp_maps(derp_maps: Iterable[DERPMap]) -> DERPMap:
    """Merge the regions of several maps; a later map wins on duplicate ids."""
    result = DERPMap(regions={}, omit_default_regions=False)
    for derp_map in derp_maps:
        result.regions.update(derp_map.regions)
    return result


def get_derp_map(paths: Iterable = (), urls: Iterable[str] = ()) -> DERPMap:
    """Load DERP maps from files then URLs and merge them.

    Loading from each kind of source stops at the first failure; whatever
    loaded before it is kept.
    """
    derp_maps: list[DERPMap] = []

    for path in paths:
        log.debug("Loading DERPMap from path %s", path)
        try:
            derp_maps.append(load_derp_map_from_path(path))
        except (OSError, ValueError, yaml.YAMLError) as err:
            log.error("Could not load DERP map from path %s: %s", path, err)
            break

    for url in urls:
        log.debug("Loading DERPMap from url %s", url)
        try:
            derp_maps.append(load_derp_map_from_url(url))
        except (OSError, ValueError) as err:
            log.error("Could not load DERP map from url %s: %s", url, err)
            break

    derp_map = merge_derp_maps(derp_maps)
    if not derp_map.regions:
        log.warning(
            "DERP map is empty, not a single DERP map datasource was loaded "
            "correctly or contained a region"
        )
    return derp_map