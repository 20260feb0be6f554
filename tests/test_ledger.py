"""Tests for the persistent announced-warning ledger."""
import json

from calmweather.ledger import DedupStore


def test_mark_then_has_been_announced(ledger_path):
    store = DedupStore(path=ledger_path)
    store.load()

    assert not store.has_been_announced("urn:a")
    store.mark_announced("urn:a")

    assert store.has_been_announced("urn:a")
    assert "urn:a" in store


def test_marking_twice_does_not_duplicate(ledger_path):
    store = DedupStore(path=ledger_path)
    store.load()

    store.mark_announced("urn:a")
    store.mark_announced("urn:a")

    assert len(store) == 1
    assert json.loads(ledger_path.read_text(encoding="utf-8")) == ["urn:a"]


def test_each_mark_is_flushed_immediately(ledger_path):
    store = DedupStore(path=ledger_path)
    store.load()

    store.mark_announced("urn:a")
    assert json.loads(ledger_path.read_text(encoding="utf-8")) == ["urn:a"]

    store.mark_announced("urn:b")
    assert json.loads(ledger_path.read_text(encoding="utf-8")) == ["urn:a", "urn:b"]


def test_round_trip_across_restart_with_unicode_ids(ledger_path):
    ids = [
        "urn:oid:2.49.0.1.840.0.abc123.001.1",
        "ünïcødé-警报",
        "tornado \U0001F32A warning",
        "",
    ]
    store = DedupStore(path=ledger_path)
    store.load()
    for i in ids:
        store.mark_announced(i)

    restarted = DedupStore(path=ledger_path)
    restarted.load()

    assert set(restarted) == set(ids)
    assert all(restarted.has_been_announced(i) for i in ids)


def test_missing_file_loads_empty(ledger_path):
    store = DedupStore(path=ledger_path)
    store.load()

    assert len(store) == 0
    assert not ledger_path.exists()


def test_corrupt_file_loads_empty(ledger_path):
    ledger_path.parent.mkdir(parents=True)
    ledger_path.write_text("{not json", encoding="utf-8")

    store = DedupStore(path=ledger_path)
    store.load()

    assert len(store) == 0


def test_wrong_shape_loads_empty(ledger_path):
    ledger_path.parent.mkdir(parents=True)

    for payload in ({"seen": ["urn:a"]}, [1, 2, 3], ["urn:a", None], "urn:a"):
        ledger_path.write_text(json.dumps(payload), encoding="utf-8")
        store = DedupStore(path=ledger_path)
        store.load()
        assert len(store) == 0


def test_undecodable_bytes_load_empty(ledger_path):
    ledger_path.parent.mkdir(parents=True)
    ledger_path.write_bytes(b"\xff\xfe\x00garbage")

    store = DedupStore(path=ledger_path)
    store.load()

    assert len(store) == 0


def test_write_failure_keeps_in_memory_mark(tmp_path, caplog):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    store = DedupStore(path=blocker / "spoken-alerts.json")
    store.load()

    store.mark_announced("urn:a")

    assert store.has_been_announced("urn:a")
    assert "Could not save dedup ledger" in caplog.text


def test_load_replaces_previous_memory(ledger_path):
    store = DedupStore(path=ledger_path)
    store.load()
    store.mark_announced("urn:a")

    ledger_path.write_text(json.dumps(["urn:b"]), encoding="utf-8")
    store.load()

    assert list(store) == ["urn:b"]


def test_lone_surrogate_id_is_persisted_and_reloaded(ledger_path):
    store = DedupStore(path=ledger_path)
    store.load()

    store.mark_announced("urn:ok")
    store.mark_announced("urn:\udfff")

    restarted = DedupStore(path=ledger_path)
    restarted.load()

    assert set(restarted) == {"urn:ok", "urn:\udfff"}
    assert not ledger_path.with_name(ledger_path.name + ".tmp").exists()


def test_unserializable_write_is_logged_not_raised(ledger_path, monkeypatch, caplog):
    def broken_dump(obj, f):
        raise ValueError("cannot encode")

    monkeypatch.setattr("calmweather.ledger.json.dump", broken_dump)
    store = DedupStore(path=ledger_path)
    store.load()

    store.mark_announced("urn:a")

    assert store.has_been_announced("urn:a")
    assert "Could not save dedup ledger" in caplog.text
    assert not ledger_path.with_name(ledger_path.name + ".tmp").exists()
