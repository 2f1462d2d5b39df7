import json
import sqlite3

import pytest

from meshctl.kvstore import (
    KVStore,
    ValueNotFoundError,
    decode_json_column,
    encode_json_column,
)


@pytest.fixture
def store(tmp_path):
    kv = KVStore(tmp_path / "db.sqlite")
    kv.initialize()
    yield kv
    kv.close()


def test_initialize_records_version(store):
    assert store.get_value("db_version") == "1"


def test_set_and_get(store):
    store.set_value("alpha", "one")
    assert store.get_value("alpha") == "one"


def test_overwrite(store):
    store.set_value("alpha", "one")
    store.set_value("alpha", "two")
    assert store.get_value("alpha") == "two"


def test_missing_key(store):
    with pytest.raises(ValueNotFoundError) as info:
        store.get_value("missing")
    assert info.value.key == "missing"
    assert str(info.value) == "not found"


def test_initialize_twice_keeps_single_row(tmp_path):
    path = tmp_path / "db.sqlite"
    with KVStore(path) as kv:
        kv.initialize()
        kv.initialize()
    conn = sqlite3.connect(path)
    count = conn.execute("SELECT COUNT(*) FROM kvs WHERE key = 'db_version'").fetchone()[0]
    conn.close()
    assert count == 1


def test_persists_across_reopen(tmp_path):
    path = tmp_path / "db.sqlite"
    with KVStore(path) as kv:
        kv.initialize()
        kv.set_value("alpha", "kept")
    with KVStore(path) as kv:
        assert kv.get_value("alpha") == "kept"


def test_ping_after_close_raises(tmp_path):
    kv = KVStore(tmp_path / "db.sqlite")
    kv.initialize()
    kv.ping()
    assert kv.get_value("db_version") == "1"
    kv.close()
    with pytest.raises(sqlite3.ProgrammingError):
        kv.ping()


def test_json_round_trip():
    value = ["100.64.0.1/32", "fd7a:115c:a1e0::1/128"]
    encoded = encode_json_column(value)
    assert decode_json_column(encoded) == value
    assert decode_json_column(encoded.encode()) == value


def test_json_compact_and_html_escaped():
    encoded = encode_json_column(["a<b", "c&d"])
    assert " " not in encoded
    assert "<" not in encoded and "&" not in encoded
    assert json.loads(encoded) == ["a<b", "c&d"]


def test_json_none_is_null():
    assert encode_json_column(None) == "null"
    assert decode_json_column("null") is None


def test_decode_rejects_other_types():
    with pytest.raises(TypeError):
        decode_json_column(42)