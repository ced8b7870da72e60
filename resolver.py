"""
resolver.py
==========
Selects which stored credentials can answer an authentication request.

Rules:
1. Non-empty allow-list: look up those ids, keeping only credentials scoped
   to the requested rpId. If none match, fall back to every credential for
   the rpId (some relying parties list ids this vault never issued while
   other valid credentials for them exist here).
2. Empty allow-list: every credential for the rpId.
3. A credential pre-selected upstream goes first; duplicates are dropped,
   keeping the first occurrence.

An empty result is a normal outcome, not an error.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from credential import CredentialRecord
from vault_store import CredentialStore


def resolve_candidates(
    store: CredentialStore,
    rp_id: str,
    allow_list: Optional[Sequence[str]] = None,
    preselected: Optional[str] = None,
) -> List[CredentialRecord]:
    if allow_list:
        matches = [r for r in store.get_by_credential_ids(allow_list) if r.rp_id == rp_id]
        if not matches:
            matches = store.get_by_relying_party_id(rp_id)
    else:
        matches = store.get_by_relying_party_id(rp_id)

    ordered: List[CredentialRecord] = []
    if preselected:
        primary = store.get_by_credential_id(preselected)
        if primary is not None:
            ordered.append(primary)
    ordered.extend(matches)

    seen = set()
    candidates = []
    for record in ordered:
        if record.credential_id in seen:
            continue
        seen.add(record.credential_id)
        candidates.append(record)
    return candidates
