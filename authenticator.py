"""
authenticator.py
===============
A software WebAuthn authenticator that keeps ES256 passkeys in a credential
store and answers registration ("create") and authentication ("get") requests.

Key behaviors:
- One fresh P-256 key pair and a random 16-byte credential id per passkey
- "none" attestation: the attestation statement is always empty
- RP ID binding: authenticatorData carries SHA-256(rpId) of the credential
- Sign counter: advanced atomically by the store before each assertion is built

The store is passed in by the caller; this class keeps no other state, so one
instance can serve requests from several threads.

Entry points return an OperationResult instead of raising, so the caller can
record the failure kind against the request that caused it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional, Sequence

import attestation
import authenticator_data
import client_data
import key_manager
import responses
from credential import CredentialRecord, now_millis
from crypto_utils import base64url_decode
from errors import (
    NO_MATCHING_CREDENTIAL,
    AuthenticatorError,
    KeyImportFailure,
    OperationResult,
    RequestParseError,
    UnknownCredential,
)
from resolver import resolve_candidates
from vault_store import CredentialStore
from webauthn_requests import parse_create_request, parse_get_request

CREDENTIAL_ID_LENGTH = 16

EDITABLE_FIELDS = frozenset(
    {
        "rp_id",
        "rp_name",
        "user_id",
        "user_name",
        "user_display_name",
        "private_key",
        "public_key",
        "sign_counter",
        "backup_eligible",
        "backup_state",
        "source_package",
        "origin",
    }
)


@dataclass
class RegistrationResult:
    response_json: str
    record: CredentialRecord


@dataclass
class AssertionResult:
    response_json: str
    record: CredentialRecord


class Authenticator:
    """Creates passkeys and signs assertions against an injected credential store."""

    def __init__(self, store: CredentialStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def create_credential(
        self,
        *,
        rp_id: str,
        rp_name: str,
        user_id: bytes,
        user_name: str,
        user_display_name: str,
        challenge: str,
        origin: str,
        user_verified: bool = True,
        backup_eligible: bool = True,
        source_package: str = "",
        transports: Optional[Sequence[str]] = None,
    ) -> OperationResult:
        """
        Create a new passkey and return the registration response.

        Step-by-step:
        1. Draw a random 16-byte credential id
        2. Generate a P-256 key pair and COSE-encode the public half
        3. Build authenticatorData with the attested credential block
        4. Wrap it in a "none" attestation object
        5. Build clientDataJSON (webauthn.create) and the response JSON
        6. Persist the record; the response is only returned once stored
        """
        try:
            credential_id = os.urandom(CREDENTIAL_ID_LENGTH)
            private_key, public_key = key_manager.generate_key_pair()
            cose_key = key_manager.encode_cose_public_key(public_key)

            auth_data = authenticator_data.build_for_create(
                rp_id,
                credential_id,
                cose_key,
                user_verified=user_verified,
                backup_eligible=backup_eligible,
                backup_state=False,
            )
            attestation_object = attestation.encode_attestation_object(auth_data)
            client_data_json = client_data.build_create_client_data_json(challenge, origin)
            response_json = responses.build_registration_response(
                credential_id, client_data_json, attestation_object, transports
            )

            created = now_millis()
            record = CredentialRecord(
                credential_id=credential_id,
                rp_id=rp_id,
                rp_name=rp_name,
                user_id=bytes(user_id),
                user_name=user_name,
                user_display_name=user_display_name,
                private_key=private_key,
                public_key=public_key,
                public_key_cose=cose_key,
                sign_counter=0,
                backup_eligible=backup_eligible,
                backup_state=False,
                created_at=created,
                last_used_at=created,
                source_package=source_package,
                origin=origin,
            )
            self.store.insert(record)
        except AuthenticatorError as exc:
            return OperationResult.from_error(exc)
        return OperationResult.success(RegistrationResult(response_json, record))

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def get_assertion(
        self,
        record: CredentialRecord,
        challenge: str,
        origin: str,
        *,
        user_verified: bool = True,
    ) -> OperationResult:
        """
        Sign an assertion with ``record`` and return the response JSON.

        The key is imported before the counter moves, so a broken record does
        not consume a counter value. The counter is then advanced through the
        store (atomic read-increment-persist) and the new value is signed.
        """
        try:
            key_manager.import_private_key(record.private_key)

            updated = self.store.increment_counter(record.credential_id_b64u)
            if updated is None:
                raise UnknownCredential(
                    f"Credential {record.credential_id_b64u} is not in the store"
                )

            auth_data = authenticator_data.build_for_get(
                updated.rp_id,
                updated.sign_counter,
                user_verified=user_verified,
                backup_eligible=updated.backup_eligible,
                backup_state=updated.backup_state,
            )
            client_data_json = client_data.build_get_client_data_json(challenge, origin)
            signature = responses.sign_assertion(updated.private_key, auth_data, client_data_json)
            response_json = responses.build_assertion_response(
                updated.credential_id,
                client_data_json,
                auth_data,
                signature,
                updated.user_id,
            )
        except AuthenticatorError as exc:
            return OperationResult.from_error(exc)
        return OperationResult.success(AssertionResult(response_json, updated))

    def resolve_candidates(
        self,
        rp_id: str,
        allow_list: Optional[Sequence[str]] = None,
        preselected: Optional[str] = None,
    ) -> List[CredentialRecord]:
        return resolve_candidates(self.store, rp_id, allow_list, preselected)

    # ------------------------------------------------------------------
    # Request-level entry points (raw options JSON from the platform)
    # ------------------------------------------------------------------
    def handle_create_request(
        self,
        request_json: str,
        calling_package: str,
        origin: Optional[str] = None,
        *,
        user_verified: bool = True,
    ) -> OperationResult:
        """Parse creation options and register; origin defaults to the app's apk-key-hash origin."""
        try:
            request = parse_create_request(request_json)
            try:
                user_id = base64url_decode(request.user_id)
            except ValueError as exc:
                raise RequestParseError(f"user.id is not base64url: {exc}") from exc
        except AuthenticatorError as exc:
            return OperationResult.from_error(exc)

        return self.create_credential(
            rp_id=request.rp_id,
            rp_name=request.rp_name,
            user_id=user_id,
            user_name=request.user_name,
            user_display_name=request.user_display_name,
            challenge=request.challenge,
            origin=origin or client_data.android_origin_from_package(calling_package),
            user_verified=user_verified,
            source_package=calling_package,
        )

    def handle_get_request(
        self,
        request_json: str,
        calling_package: str,
        preselected_id: Optional[str] = None,
        origin: Optional[str] = None,
        *,
        user_verified: Optional[bool] = None,
    ) -> OperationResult:
        """
        Parse request options, pick the first candidate credential and sign with it.

        Without an explicit `user_verified` the UV flag follows the request:
        set unless the relying party asked for "discouraged".
        """
        try:
            request = parse_get_request(request_json)
            candidates = self.resolve_candidates(
                request.rp_id, request.allow_credential_ids, preselected_id
            )
        except AuthenticatorError as exc:
            return OperationResult.from_error(exc)

        if not candidates:
            return OperationResult.failure(
                NO_MATCHING_CREDENTIAL, f"No credential available for rpId {request.rp_id!r}"
            )
        if user_verified is None:
            user_verified = request.user_verification != "discouraged"
        return self.get_assertion(
            candidates[0],
            request.challenge,
            origin or client_data.android_origin_from_package(calling_package),
            user_verified=user_verified,
        )

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------
    def list_credentials(self) -> List[CredentialRecord]:
        return self.store.list_all()

    def edit_credential(self, credential_id: str, /, **changes) -> OperationResult:
        """
        Apply field edits to a stored credential.

        The credential id itself cannot change. New key material must import
        and both halves must still form one pair; the COSE form is recomputed
        whenever the public key changes.
        Editing the counter is an explicit repair tool and may move it backwards.
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        if changes.get("sign_counter", 0) < 0:
            raise ValueError("sign_counter cannot be negative")

        try:
            current = self.store.get_by_credential_id(credential_id)
            if current is None:
                raise UnknownCredential(f"Credential {credential_id} is not in the store")

            if "private_key" in changes:
                key_manager.import_private_key(changes["private_key"])
            if "public_key" in changes and changes["public_key"] != current.public_key:
                changes["public_key_cose"] = key_manager.encode_cose_public_key(
                    changes["public_key"]
                )

            updated = current.copy(**changes)
            if "private_key" in changes or "public_key" in changes:
                check_key_pair(updated)
            self.store.update(updated)
        except AuthenticatorError as exc:
            return OperationResult.from_error(exc)
        return OperationResult.success(updated)

    def regenerate_key_pair(self, credential_id: str) -> OperationResult:
        """
        Replace a credential's key pair with a fresh one.

        Relying parties holding the old public key can no longer verify this
        credential's assertions afterwards.
        """
        try:
            private_key, public_key = key_manager.generate_key_pair()
        except AuthenticatorError as exc:
            return OperationResult.from_error(exc)
        return self.edit_credential(
            credential_id, private_key=private_key, public_key=public_key
        )

    def delete_credential(self, credential_id: str) -> bool:
        return self.store.delete(credential_id)

    def delete_all_credentials(self) -> int:
        return self.store.delete_all()


def check_key_pair(record: CredentialRecord) -> None:
    """Raise KeyImportFailure when a record's stored halves are not one key pair."""
    if not key_manager.public_key_matches(record.private_key, record.public_key):
        raise KeyImportFailure(
            f"Public key of {record.credential_id_b64u} does not match its private key"
        )
