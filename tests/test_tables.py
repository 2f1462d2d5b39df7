from datetime import datetime, timedelta, timezone

import pytest

from meshctl.output import light_green, light_red
from meshctl.tables import (
    MachineInfo,
    NamespaceInfo,
    PreAuthKeyInfo,
    namespaces_to_table,
    node_key_short_string,
    nodes_to_table,
    preauthkeys_to_table,
)

NOW = datetime(2022, 8, 1, 12, 0, 0, tzinfo=timezone.utc)
NODE_KEY = "ab" * 32


def _machine(**overrides):
    values = dict(
        id=7,
        name="host",
        given_name="host-given",
        node_key=NODE_KEY,
        namespace="ns",
        ip_addresses=["100.64.0.1", "fd7a:115c:a1e0::1"],
    )
    values.update(overrides)
    return MachineInfo(**values)


def _row(machine, current="", show_tags=False):
    table = nodes_to_table(current, show_tags, [machine], NOW)
    assert len(table) == 2
    return table[1]


def test_short_string_all_ones_key():
    assert node_key_short_string("ff" * 32) == "[/////]"


def test_short_string_prefix_optional():
    assert node_key_short_string("nodekey:" + NODE_KEY) == node_key_short_string(
        NODE_KEY
    )
    short = node_key_short_string(NODE_KEY)
    assert short.startswith("[") and short.endswith("]") and len(short) == 7


def test_short_string_zero_key_is_empty():
    assert node_key_short_string("00" * 32) == ""


@pytest.mark.parametrize("bad", ["abcd", "zz" * 32, "mkey:" + "ab" * 32])
def test_short_string_rejects_invalid(bad):
    with pytest.raises(ValueError):
        node_key_short_string(bad)


def test_nodes_header_without_tags():
    table = nodes_to_table("", False, [], NOW)
    assert table == [
        [
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
        ]
    ]


def test_nodes_header_with_tags():
    header = nodes_to_table("", True, [], NOW)[0]
    assert len(header) == 13
    assert header[-3:] == ["ForcedTags", "InvalidTags", "ValidTags"]


def test_node_row_basic_fields():
    row = _row(_machine(ephemeral=True))
    assert row[0] == "7"
    assert row[1] == "host"
    assert row[2] == "host-given"
    assert row[3] == node_key_short_string(NODE_KEY)
    assert row[5] == "100.64.0.1, fd7a:115c:a1e0::1"
    assert row[6] == "true"


def test_node_row_only_ipv4():
    row = _row(_machine(ip_addresses=["100.64.0.1"]))
    assert row[5] == "100.64.0.1, "


def test_node_row_invalid_ip():
    with pytest.raises(ValueError):
        _row(_machine(ip_addresses=["not-an-ip"]))


def test_node_row_invalid_node_key():
    with pytest.raises(ValueError):
        _row(_machine(node_key="short"))


def test_online_when_recently_seen():
    row = _row(_machine(last_seen=NOW - timedelta(minutes=1)))
    assert row[7] == "2022-08-01 11:59:00"
    assert row[8] == light_green("online")


def test_offline_when_seen_long_ago():
    row = _row(_machine(last_seen=NOW - timedelta(minutes=10)))
    assert row[8] == light_red("offline")


def test_never_seen():
    row = _row(_machine(last_seen=None))
    assert row[7] == ""
    assert row[8] == light_red("offline")


def test_expiry_states():
    assert _row(_machine(expiry=None))[9] == light_green("no")
    assert _row(_machine(expiry=NOW + timedelta(hours=1)))[9] == light_green("no")
    assert _row(_machine(expiry=NOW - timedelta(hours=1)))[9] == light_red("yes")


def test_namespace_colouring():
    own = _row(_machine(), current="")[4]
    same = _row(_machine(), current="ns")[4]
    shared = _row(_machine(), current="other")[4]
    assert own == same
    assert shared != own
    assert "ns" in shared and "ns" in own


def test_tags_columns():
    machine = _machine(
        forced_tags=["tag:a"],
        invalid_tags=["tag:a", "tag:b"],
        valid_tags=["tag:a", "tag:c"],
    )
    row = _row(machine, show_tags=True)
    assert row[10] == "tag:a"
    assert row[11] == light_red("tag:b")
    assert row[12] == light_green("tag:c")


def test_multiple_forced_tags_joined():
    row = _row(_machine(forced_tags=["tag:a", "tag:b"]), show_tags=True)
    assert row[10] == "tag:a,tag:b"
    assert row[11] == ""


def test_namespaces_table():
    created = datetime(2022, 8, 1, 12, 30, 0, tzinfo=timezone.utc)
    table = namespaces_to_table([NamespaceInfo(id="1", name="ns", created_at=created)])
    assert table == [
        ["ID", "Name", "Created"],
        ["1", "ns", "2022-08-01 12:30:00"],
    ]


def test_preauthkeys_header():
    assert preauthkeys_to_table([], NOW) == [
        ["ID", "Key", "Reusable", "Ephemeral", "Used", "Expiration", "Created"]
    ]


def test_preauthkeys_ephemeral_and_no_expiration():
    item = PreAuthKeyInfo(
        id="3",
        key="placeholder",
        created_at=NOW,
        reusable=True,
        ephemeral=True,
        used=False,
    )
    row = preauthkeys_to_table([item], NOW)[1]
    assert row == [
        "3",
        "placeholder",
        "N/A",
        "true",
        "false",
        "-",
        "2022-08-01 12:00:00",
    ]


def test_preauthkeys_expiration_colour():
    future = PreAuthKeyInfo(
        id="1",
        key="placeholder",
        created_at=NOW,
        reusable=True,
        expiration=NOW + timedelta(hours=1),
    )
    past = PreAuthKeyInfo(
        id="2",
        key="placeholder",
        created_at=NOW,
        used=True,
        expiration=NOW - timedelta(hours=1),
    )
    rows = preauthkeys_to_table([future, past], NOW)[1:]
    assert rows[0][2] == "true"
    assert rows[0][5] == light_green("2022-08-01 13:00:00")
    assert rows[1][2] == "false"
    assert rows[1][4] == "true"
    assert rows[1][5] == light_red("2022-08-01 11:00:00")