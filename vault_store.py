"""
vault_store.py
=============
Credential store contract used by the authenticator, plus two implementations:
- InMemoryCredentialStore: records in a dict guarded by a lock
- JsonFileCredentialStore: the same, persisted to a JSON vault file

Records are keyed by their base64url credential id. Lists are returned
most-recently-used first, except get_by_credential_ids which keeps the order
of the requested ids.

The signature counter is only ever advanced through increment_counter(),
which reads, bumps and persists under the store lock so concurrent
assertions never observe the same post-increment value.
"""

from __future__ import annotations

import abc
import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, Iterable, List, Optional

from credential import CredentialRecord, now_millis
from errors import StoreUnavailable

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# File path for persistent storage
# -----------------------------------------------------------------------------
VAULT_FILENAME = os.environ.get("PASSKEY_VAULT_PATH", "authenticator_vault.json")


def _most_recent_first(records: Iterable[CredentialRecord]) -> List[CredentialRecord]:
    return sorted(records, key=lambda r: r.last_used_at, reverse=True)


class CredentialStore(abc.ABC):
    """Lookup, insert, update and delete of credential records."""

    @abc.abstractmethod
    def get_by_credential_id(self, credential_id: str) -> Optional[CredentialRecord]:
        ...

    @abc.abstractmethod
    def get_by_relying_party_id(self, rp_id: str) -> List[CredentialRecord]:
        ...

    @abc.abstractmethod
    def get_by_credential_ids(self, credential_ids: Iterable[str]) -> List[CredentialRecord]:
        ...

    @abc.abstractmethod
    def insert(self, record: CredentialRecord) -> None:
        """Add a record, replacing any record with the same credential id."""

    @abc.abstractmethod
    def update(self, record: CredentialRecord) -> None:
        """Replace an existing record; StoreUnavailable if it is not stored."""

    @abc.abstractmethod
    def delete(self, credential_id: str) -> bool:
        ...

    @abc.abstractmethod
    def delete_all(self) -> int:
        ...

    @abc.abstractmethod
    def list_all(self) -> List[CredentialRecord]:
        ...

    @abc.abstractmethod
    def increment_counter(self, credential_id: str) -> Optional[CredentialRecord]:
        """
        Atomically add one to the record's counter, stamp last_used_at,
        persist, and return the updated record (None if unknown).
        """


class InMemoryCredentialStore(CredentialStore):
    def __init__(self, records: Iterable[CredentialRecord] = ()) -> None:
        self._lock = threading.RLock()
        self._records: Dict[str, CredentialRecord] = {
            r.credential_id_b64u: r for r in records
        }

    def _persist(self) -> None:
        """Hook for subclasses; called with the lock held after each mutation."""

    def _restore(self, key: str, previous: Optional[CredentialRecord]) -> None:
        """Undo a single-entry mutation whose persist failed."""
        if previous is None:
            self._records.pop(key, None)
        else:
            self._records[key] = previous

    def get_by_credential_id(self, credential_id: str) -> Optional[CredentialRecord]:
        with self._lock:
            return self._records.get(credential_id)

    def get_by_relying_party_id(self, rp_id: str) -> List[CredentialRecord]:
        with self._lock:
            return _most_recent_first(r for r in self._records.values() if r.rp_id == rp_id)

    def get_by_credential_ids(self, credential_ids: Iterable[str]) -> List[CredentialRecord]:
        with self._lock:
            found = []
            seen = set()
            for cred_id in credential_ids:
                record = self._records.get(cred_id)
                if record is not None and cred_id not in seen:
                    seen.add(cred_id)
                    found.append(record)
            return found

    def insert(self, record: CredentialRecord) -> None:
        with self._lock:
            key = record.credential_id_b64u
            previous = self._records.get(key)
            self._records[key] = record
            try:
                self._persist()
            except StoreUnavailable:
                self._restore(key, previous)
                raise

    def update(self, record: CredentialRecord) -> None:
        with self._lock:
            key = record.credential_id_b64u
            previous = self._records.get(key)
            if previous is None:
                raise StoreUnavailable(f"Cannot update unknown credential {key}")
            self._records[key] = record
            try:
                self._persist()
            except StoreUnavailable:
                self._restore(key, previous)
                raise

    def delete(self, credential_id: str) -> bool:
        with self._lock:
            previous = self._records.pop(credential_id, None)
            if previous is None:
                return False
            try:
                self._persist()
            except StoreUnavailable:
                self._restore(credential_id, previous)
                raise
            return True

    def delete_all(self) -> int:
        with self._lock:
            snapshot = dict(self._records)
            self._records.clear()
            try:
                self._persist()
            except StoreUnavailable:
                self._records.update(snapshot)
                raise
            return len(snapshot)

    def list_all(self) -> List[CredentialRecord]:
        with self._lock:
            return _most_recent_first(self._records.values())

    def increment_counter(self, credential_id: str) -> Optional[CredentialRecord]:
        with self._lock:
            current = self._records.get(credential_id)
            if current is None:
                return None
            updated = current.copy(
                sign_counter=current.sign_counter + 1,
                last_used_at=now_millis(),
            )
            self._records[credential_id] = updated
            try:
                self._persist()
            except StoreUnavailable:
                self._restore(credential_id, current)
                raise
            return updated


class JsonFileCredentialStore(InMemoryCredentialStore):
    """
    Vault persisted as pretty-printed JSON keyed by credential id.

    The whole file is rewritten after each mutation (indent=2, sort_keys=True
    so diffs stay readable and stable).
    """

    def __init__(self, path: str = VAULT_FILENAME) -> None:
        self.path = path
        super().__init__(self._load())

    def _load(self) -> List[CredentialRecord]:
        """
        Load records from disk.

        Step-by-step:
        1. Missing file means an empty vault (fresh install)
        2. Otherwise parse the JSON object and rebuild each record
        3. Unreadable or malformed files raise StoreUnavailable
        """
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw: Dict[str, Any] = json.load(f)
            records = [CredentialRecord.from_dict(entry) for entry in raw.values()]
        except (OSError, ValueError, KeyError, AttributeError) as exc:
            raise StoreUnavailable(f"Cannot read vault {self.path}: {exc}") from exc
        logger.debug("Loaded %d credential(s) from %s", len(records), self.path)
        return records

    def _persist(self) -> None:
        """
        Rewrite the vault file.

        The JSON goes to a sibling temp file first and is then moved over the
        vault with os.replace, so an interrupted write leaves the old file intact.
        """
        data = {key: record.to_dict() for key, record in self._records.items()}
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=directory, suffix=".tmp", delete=False
            ) as f:
                tmp_path = f.name
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StoreUnavailable(f"Cannot write vault {self.path}: {exc}") from exc
        logger.debug("Saved %d credential(s) to %s", len(data), self.path)
