from __future__ import annotations

import json
import threading

import pytest

import vault_store
from conftest import make_record
from credential import CredentialRecord
from crypto_utils import base64url_encode
from errors import StoreUnavailable
from vault_store import InMemoryCredentialStore, JsonFileCredentialStore


def test_record_dict_round_trip():
    record = make_record(b"\x00\xfa\xfb", sign_counter=7, last_used_at=99)
    data = record.to_dict()

    assert data["credentialId"] == "APr7"
    assert data["counter"] == 7
    assert CredentialRecord.from_dict(data) == record


def test_json_store_persists_and_reloads(tmp_path):
    path = str(tmp_path / "vault.json")
    store = JsonFileCredentialStore(path)
    record = make_record(b"cred-1")
    store.insert(record)
    store.increment_counter(record.credential_id_b64u)

    with open(path, encoding="utf-8") as f:
        raw = json.load(f)
    assert raw[record.credential_id_b64u]["counter"] == 1

    reloaded = JsonFileCredentialStore(path)
    loaded = reloaded.get_by_credential_id(record.credential_id_b64u)
    assert loaded.sign_counter == 1
    assert loaded.private_key == record.private_key
    assert loaded.public_key_cose == record.public_key_cose


def test_corrupt_vault_is_store_unavailable(tmp_path):
    path = tmp_path / "vault.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(StoreUnavailable):
        JsonFileCredentialStore(str(path))


def test_unwritable_vault_is_store_unavailable(tmp_path):
    store = JsonFileCredentialStore(str(tmp_path / "missing-dir" / "vault.json"))
    with pytest.raises(StoreUnavailable):
        store.insert(make_record(b"cred-1"))


def test_increment_is_atomic_under_concurrency():
    record = make_record(b"cred-1")
    store = InMemoryCredentialStore([record])
    observed = []
    lock = threading.Lock()

    def worker():
        for _ in range(50):
            updated = store.increment_counter(record.credential_id_b64u)
            with lock:
                observed.append(updated.sign_counter)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(observed) == list(range(1, 401))
    assert store.get_by_credential_id(record.credential_id_b64u).sign_counter == 400


def test_increment_stamps_last_used_and_unknown_returns_none():
    record = make_record(b"cred-1", last_used_at=0)
    store = InMemoryCredentialStore([record])

    updated = store.increment_counter(record.credential_id_b64u)
    assert updated.last_used_at > 0
    assert store.increment_counter("bm9wZQ") is None


def test_update_unknown_record_fails():
    store = InMemoryCredentialStore()
    with pytest.raises(StoreUnavailable):
        store.update(make_record(b"cred-1"))


def test_lookup_and_delete():
    a = make_record(b"a", last_used_at=1)
    b = make_record(b"b", last_used_at=3)
    c = make_record(b"c", rp_id="other.com", last_used_at=2)
    store = InMemoryCredentialStore([a, b, c])

    assert [r.credential_id for r in store.list_all()] == [b"b", b"c", b"a"]
    assert [r.credential_id for r in store.get_by_credential_ids(
        [b.credential_id_b64u, a.credential_id_b64u, b.credential_id_b64u]
    )] == [b"b", b"a"]

    assert store.delete(a.credential_id_b64u) is True
    assert store.delete(a.credential_id_b64u) is False
    assert store.delete_all() == 2
    assert store.list_all() == []


def _break_writes(store, tmp_path):
    store.path = str(tmp_path / "gone" / "vault.json")


def test_failed_insert_leaves_no_record(tmp_path):
    store = JsonFileCredentialStore(str(tmp_path / "missing-dir" / "vault.json"))
    record = make_record(b"cred-1")

    with pytest.raises(StoreUnavailable):
        store.insert(record)

    assert store.get_by_credential_id(record.credential_id_b64u) is None
    assert store.list_all() == []


def test_failed_update_keeps_previous_record(tmp_path):
    store = JsonFileCredentialStore(str(tmp_path / "vault.json"))
    record = make_record(b"cred-1")
    store.insert(record)
    _break_writes(store, tmp_path)

    with pytest.raises(StoreUnavailable):
        store.update(record.copy(user_display_name="Renamed"))

    assert store.get_by_credential_id(record.credential_id_b64u) == record


def test_failed_delete_keeps_record(tmp_path):
    path = str(tmp_path / "vault.json")
    store = JsonFileCredentialStore(path)
    record = make_record(b"cred-1")
    store.insert(record)
    _break_writes(store, tmp_path)

    with pytest.raises(StoreUnavailable):
        store.delete(record.credential_id_b64u)

    assert store.get_by_credential_id(record.credential_id_b64u) == record
    assert JsonFileCredentialStore(path).get_by_credential_id(record.credential_id_b64u) == record


def test_failed_delete_all_keeps_every_record(tmp_path):
    store = JsonFileCredentialStore(str(tmp_path / "vault.json"))
    records = [make_record(b"a"), make_record(b"b")]
    for record in records:
        store.insert(record)
    _break_writes(store, tmp_path)

    with pytest.raises(StoreUnavailable):
        store.delete_all()

    assert sorted(r.credential_id for r in store.list_all()) == [b"a", b"b"]


def test_failed_increment_keeps_counter(tmp_path):
    store = JsonFileCredentialStore(str(tmp_path / "vault.json"))
    record = make_record(b"cred-1", sign_counter=5)
    store.insert(record)
    _break_writes(store, tmp_path)

    with pytest.raises(StoreUnavailable):
        store.increment_counter(record.credential_id_b64u)

    assert store.get_by_credential_id(record.credential_id_b64u).sign_counter == 5


def test_vault_write_leaves_no_temp_files(tmp_path):
    path = tmp_path / "vault.json"
    store = JsonFileCredentialStore(str(path))
    store.insert(make_record(b"a"))
    store.insert(make_record(b"b"))
    store.delete(base64url_encode(b"a"))

    assert [p.name for p in tmp_path.iterdir()] == ["vault.json"]
    assert list(json.loads(path.read_text(encoding="utf-8"))) == [base64url_encode(b"b")]


def test_interrupted_write_keeps_old_vault(tmp_path, monkeypatch):
    path = tmp_path / "vault.json"
    store = JsonFileCredentialStore(str(path))
    record = make_record(b"cred-1")
    store.insert(record)
    before = path.read_text(encoding="utf-8")

    def fail_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(vault_store.os, "replace", fail_replace)
    with pytest.raises(StoreUnavailable):
        store.insert(make_record(b"cred-2"))

    assert path.read_text(encoding="utf-8") == before
    assert [p.name for p in tmp_path.iterdir()] == ["vault.json"]
    assert [r.credential_id for r in store.list_all()] == [b"cred-1"]
