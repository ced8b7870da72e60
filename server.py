"""
server.py
========
A minimal relying-party verifier used by the demo loop and the tests.

It plays the website side of the ceremonies against the authenticator's
wire output:
- Issues random base64url challenges
- Verifies registration responses: "none" attestation, rpIdHash, AT flag,
  clientDataJSON type/challenge/origin, and stores the COSE public key
- Verifies assertions: signature over authData || SHA-256(clientDataJSON)
  and a strictly increasing sign counter (clone detection)

The attestation object is decoded with cbor2, independently of the
authenticator's own encoder.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Dict, Optional

import cbor2
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from authenticator_data import FLAG_AT, FLAG_UP
from crypto_utils import base64url_decode, base64url_encode, sha256


@dataclass
class StoredCredential:
    """
    Server-side record for a registered passkey.

    - rp_id: domain this credential is bound to
    - cose_key: decoded COSE_Key map from the attested credential data
    - sign_counter: last accepted counter value (must increase each auth)
    """

    rp_id: str
    cose_key: Dict[int, object]
    sign_counter: int = 0


def cose_to_public_key(cose_key: Dict[int, object]) -> ec.EllipticCurvePublicKey:
    if cose_key.get(1) != 2 or cose_key.get(3) != -7 or cose_key.get(-1) != 1:
        raise ValueError("Only EC2 / ES256 / P-256 COSE keys are supported")
    x = int.from_bytes(cose_key[-2], "big")
    y = int.from_bytes(cose_key[-3], "big")
    return ec.EllipticCurvePublicNumbers(x, y, ec.SECP256R1()).public_key()


class RelyingPartyVerifier:
    """Website-side verifier for one rpId and origin."""

    def __init__(self, rp_id: str, origin: str) -> None:
        self.rp_id = rp_id
        self.origin = origin
        self._credential_db: Dict[str, StoredCredential] = {}

    def issue_challenge(self) -> str:
        """Fresh random 32-byte challenge, base64url-encoded for the options JSON."""
        return base64url_encode(os.urandom(32))

    def get_credential(self, credential_id: str) -> Optional[StoredCredential]:
        return self._credential_db.get(credential_id)

    def _check_client_data(self, client_data_json: bytes, expected_type: str, challenge: str) -> bool:
        client_data = json.loads(client_data_json)
        return (
            client_data.get("type") == expected_type
            and client_data.get("challenge") == challenge
            and client_data.get("origin") == self.origin
        )

    def verify_registration(self, response_json: str, challenge: str) -> bool:
        """
        Verify a registration response and store its public key.

        Step-by-step:
        1. Check clientDataJSON (type webauthn.create, challenge, origin)
        2. Decode the attestation object; require fmt "none" and empty attStmt
        3. Check rpIdHash and the UP/AT flags
        4. Parse the attested credential data; credential id must match "id"
        5. Store the COSE key with the received sign counter
        """
        response = json.loads(response_json)
        body = response["response"]
        if not self._check_client_data(
            base64url_decode(body["clientDataJSON"]), "webauthn.create", challenge
        ):
            return False

        att_obj = cbor2.loads(base64url_decode(body["attestationObject"]))
        if att_obj.get("fmt") != "none" or att_obj.get("attStmt") != {}:
            return False

        auth_data = att_obj["authData"]
        if auth_data[:32] != sha256(self.rp_id.encode("utf-8")):
            return False
        flags = auth_data[32]
        if not flags & FLAG_UP or not flags & FLAG_AT:
            return False
        sign_counter = int.from_bytes(auth_data[33:37], "big")

        cred_id_len = int.from_bytes(auth_data[53:55], "big")
        credential_id = auth_data[55 : 55 + cred_id_len]
        if base64url_encode(credential_id) != response["id"]:
            return False
        cose_key = cbor2.loads(auth_data[55 + cred_id_len :])
        try:
            cose_to_public_key(cose_key)
        except (ValueError, KeyError):
            return False

        self._credential_db[response["id"]] = StoredCredential(
            rp_id=self.rp_id, cose_key=cose_key, sign_counter=sign_counter
        )
        return True

    def verify_authentication(self, response_json: str, challenge: str) -> bool:
        """
        Verify an assertion and enforce sign counter monotonicity.

        Counter must be > stored value to detect replay or cloned authenticators.
        """
        response = json.loads(response_json)
        stored = self.get_credential(response["id"])
        if stored is None:
            return False

        body = response["response"]
        client_data_json = base64url_decode(body["clientDataJSON"])
        if not self._check_client_data(client_data_json, "webauthn.get", challenge):
            return False

        auth_data = base64url_decode(body["authenticatorData"])
        if auth_data[:32] != sha256(stored.rp_id.encode("utf-8")):
            return False
        sign_counter = int.from_bytes(auth_data[33:37], "big")
        if sign_counter <= stored.sign_counter:
            return False

        public_key = cose_to_public_key(stored.cose_key)
        try:
            public_key.verify(
                base64url_decode(body["signature"]),
                auth_data + sha256(client_data_json),
                ec.ECDSA(hashes.SHA256()),
            )
        except InvalidSignature:
            return False

        stored.sign_counter = sign_counter
        return True
