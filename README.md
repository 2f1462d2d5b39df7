# meshctl

`meshctl` is a library of pieces that a control server for a WireGuard-based
mesh VPN needs. Each module works without a running server. PyYAML is the only
third-party dependency.

## Modules

- **`meshctl.dns`**
  - `generate_magic_dns_root_domains` takes address prefixes (strings or
    `ipaddress` networks) and returns the reverse DNS zones that MagicDNS should
    answer for.
    - For an IPv4 prefix it returns one `in-addr.arpa.` zone for each value of
      the octet the mask ends in.
    - For an IPv6 prefix it returns `ip6.arpa.` zones at nibble granularity.
  - `generate_ipv4_dns_root_domain` and `generate_ipv6_dns_root_domain` do the
    same for a single prefix.
  - `DNSConfig` holds nameservers, routes, search domains and the `proxied`
    (MagicDNS) flag.
  - `map_response_dns_config` returns a copy of a `DNSConfig` with MagicDNS
    entries added: the machine's own namespace as a search domain, and a route
    for that namespace and for each peer namespace. If MagicDNS is off, it
    returns the config unchanged.
- **`meshctl.tags`**
  - `validate_tag` checks that an ACL tag starts with `tag:`, is lower case and
    contains no whitespace.
  - It raises `InvalidTagError` (a `ValueError`) if a check fails.
- **`meshctl.derp`**
  - `DERPMap`, `DERPRegion` and `DERPNode` describe relay servers.
  - `derp_map_from_dict` builds a map from decoded YAML or JSON. Keys match
    case-insensitively.
  - `load_derp_map_from_path` reads YAML from a file.
  - `load_derp_map_from_url` fetches JSON over HTTP.
  - `merge_derp_maps` combines maps. When two maps share a region id, the later
    map wins.
  - `get_derp_map` loads from the given paths and then the given URLs.
    - For each kind of source, it stops at the first failure.
    - It keeps whatever it loaded before the failure.
- **`meshctl.stun`**
  - `is_stun` checks whether a packet is a STUN message.
  - `parse_binding_request` validates a binding request, including its software
    attribute and fingerprint, and returns the transaction id. It raises
    `StunError` on bad input.
  - `binding_response` builds a success response with an XOR-MAPPED-ADDRESS.
- **`meshctl.derp_server`**
  - `generate_region_local_derp` describes the local DERP server as a
    single-node region, built from the server URL and the STUN address.
  - `switching_protocols_header` returns the HTTP 101 upgrade response.
  - `probe_response` returns the status, headers and body for a latency probe.
  - `bootstrap_dns` resolves the host names of every node in a `DERPMap`.
  - `stun_listener` answers STUN binding requests on a UDP socket until a
    `threading.Event` is set.
  - `serve_stun` binds the socket for `stun_listener` and runs it.
- **`meshctl.kvstore`**
  - `KVStore` is a key-value table in SQLite. Its methods are `initialize`,
    `get_value`, `set_value`, `ping` and `close`, and it can be used as a
    context manager.
  - `get_value` raises `ValueNotFoundError` for a missing key.
  - `encode_json_column` and `decode_json_column` convert values to and from
    JSON text columns.
- **`meshctl.durations`**
  - `parse_duration` turns strings such as `30m`, `24h` or `1d12h` into
    `timedelta` values.
    - The parts are `y`, `w`, `d`, `h`, `m`, `s` and `ms`, in that order.
    - It raises `DurationError` on bad input.
- **`meshctl.output`**
  - `success_output` and `error_output` print a result in one of the machine
    formats `json`, `json-line` or `yaml`. For any other format they print the
    human-readable override text.
  - `has_machine_output_flag` checks whether an argument list asks for a machine
    format.
  - `light_green`, `light_red`, `format_datetime` and `colour_time` format text
    and timestamps for the terminal.
  - `routes_to_table` builds a route table.
- **`meshctl.tables`**
  - `nodes_to_table`, `namespaces_to_table` and `preauthkeys_to_table` turn
    `MachineInfo`, `NamespaceInfo` and `PreAuthKeyInfo` records into tables.
  - A table is a list of rows, with the header row first. Cells may contain ANSI
    colour codes.
  - `node_key_short_string` gives the short form of a node public key.

## Examples

```python
from meshctl.dns import generate_magic_dns_root_domains

generate_magic_dns_root_domains(["fd7a:115c:a1e0::/48"])
# ['0.e.1.a.c.5.1.1.a.7.d.f.ip6.arpa.']
```

```python
from meshctl.tags import InvalidTagError, validate_tag

validate_tag("tag:server")
try:
    validate_tag("tag:Server")
except InvalidTagError as exc:
    print(exc)  # tag should be lowercase
```

```python
from meshctl.derp import get_derp_map

derp_map = get_derp_map(paths=["derp.yaml"], urls=[])
```

```python
from meshctl.kvstore import KVStore

with KVStore("state.sqlite") as store:
    store.initialize()
    store.set_value("greeting", "hello")
    print(store.get_value("greeting"))
```

```python
from meshctl.durations import parse_duration
from meshctl.output import success_output

print(parse_duration("1h30m"))  # 1:30:00
success_output({"version": "0.1.0"}, "0.1.0", "json-line")
```

## What it does not do

`meshctl` is a library only. It does not include:

- a command-line program;
- an API server or client;
- storage for machines, namespaces, pre-auth keys or API keys;
- an implementation of the DERP relay protocol.

`derp_server` answers HTTP upgrade and probe requests and runs STUN. It does not
relay traffic. The table and output helpers format data that you supply; they do
not fetch it.

## Running the tests

Install the `test` extra, then run `pytest` from the project root.