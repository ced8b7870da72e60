"""
responses.py
===========
Builds the PublicKeyCredential JSON returned to the relying party.

All binary members are base64url without padding. The assertion signature is
taken over authenticatorData || SHA-256(clientDataJSON), in that order.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Sequence

import key_manager
from crypto_utils import base64url_encode, sha256

PUBLIC_KEY_TYPE = "public-key"
DEFAULT_TRANSPORTS = ("internal",)


def _dumps(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def build_registration_response(
    credential_id: bytes,
    client_data_json: str,
    attestation_object: bytes,
    transports: Optional[Sequence[str]] = None,
) -> str:
    credential_id_b64u = base64url_encode(credential_id)
    return _dumps(
        {
            "id": credential_id_b64u,
            "rawId": credential_id_b64u,
            "type": PUBLIC_KEY_TYPE,
            "response": {
                "clientDataJSON": base64url_encode(client_data_json.encode("utf-8")),
                "attestationObject": base64url_encode(attestation_object),
                "transports": list(DEFAULT_TRANSPORTS if transports is None else transports),
            },
        }
    )


def signed_payload(auth_data: bytes, client_data_json: str) -> bytes:
    return bytes(auth_data) + sha256(client_data_json.encode("utf-8"))


def sign_assertion(private_key: bytes, auth_data: bytes, client_data_json: str) -> bytes:
    """ES256 signature over authenticatorData || SHA-256(clientDataJSON)."""
    return key_manager.sign(private_key, signed_payload(auth_data, client_data_json))


def build_assertion_response(
    credential_id: bytes,
    client_data_json: str,
    auth_data: bytes,
    signature: bytes,
    user_handle: bytes,
) -> str:
    credential_id_b64u = base64url_encode(credential_id)
    return _dumps(
        {
            "id": credential_id_b64u,
            "rawId": credential_id_b64u,
            "type": PUBLIC_KEY_TYPE,
            "response": {
                "clientDataJSON": base64url_encode(client_data_json.encode("utf-8")),
                "authenticatorData": base64url_encode(auth_data),
                "signature": base64url_encode(signature),
                "userHandle": base64url_encode(user_handle),
            },
        }
    )
