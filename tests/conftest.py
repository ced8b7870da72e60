from __future__ import annotations

import pytest

import key_manager
from authenticator import Authenticator
from credential import CredentialRecord
from vault_store import InMemoryCredentialStore


def make_record(
    credential_id: bytes,
    rp_id: str = "example.com",
    last_used_at: int = 0,
    sign_counter: int = 0,
) -> CredentialRecord:
    private_key, public_key = key_manager.generate_key_pair()
    return CredentialRecord(
        credential_id=credential_id,
        rp_id=rp_id,
        rp_name="Example",
        user_id=b"user-" + credential_id,
        user_name="alice",
        user_display_name="Alice",
        private_key=private_key,
        public_key=public_key,
        public_key_cose=key_manager.encode_cose_public_key(public_key),
        sign_counter=sign_counter,
        created_at=1,
        last_used_at=last_used_at,
    )


@pytest.fixture
def store():
    return InMemoryCredentialStore()


@pytest.fixture
def authenticator(store):
    return Authenticator(store)
