"""
credential.py
============
The durable credential record kept in the authenticator vault.

Binary fields are held as bytes in memory. ``to_dict``/``from_dict`` give the
JSON-friendly vault form:
- credentialId, userId: base64url (no padding)
- privateKeyPkcs8, publicKeyX509, publicKeyCose: standard base64 DER/CBOR
- createdAt, lastUsedAt: epoch milliseconds
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict

from crypto_utils import base64_decode, base64_encode, base64url_decode, base64url_encode


def now_millis() -> int:
    return int(time.time() * 1000)


@dataclass
class CredentialRecord:
    """
    One passkey: identity, key pair and usage metadata.

    credential_id is the primary key and never changes after creation.
    sign_counter only moves forward through the get flow.
    """

    credential_id: bytes
    rp_id: str
    rp_name: str
    user_id: bytes
    user_name: str
    user_display_name: str
    private_key: bytes  # PKCS#8 DER
    public_key: bytes  # SubjectPublicKeyInfo DER
    public_key_cose: bytes
    sign_counter: int = 0
    backup_eligible: bool = True
    backup_state: bool = False
    created_at: int = field(default_factory=now_millis)
    last_used_at: int = 0
    source_package: str = ""
    origin: str = ""

    @property
    def credential_id_b64u(self) -> str:
        return base64url_encode(self.credential_id)

    def copy(self, **changes: Any) -> "CredentialRecord":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "credentialId": self.credential_id_b64u,
            "rpId": self.rp_id,
            "rpName": self.rp_name,
            "userId": base64url_encode(self.user_id),
            "userName": self.user_name,
            "userDisplayName": self.user_display_name,
            "privateKeyPkcs8": base64_encode(self.private_key),
            "publicKeyX509": base64_encode(self.public_key),
            "publicKeyCose": base64_encode(self.public_key_cose),
            "counter": self.sign_counter,
            "createdAt": self.created_at,
            "lastUsedAt": self.last_used_at,
            "sourcePackage": self.source_package,
            "origin": self.origin,
            "backupEligible": self.backup_eligible,
            "backupState": self.backup_state,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CredentialRecord":
        """Rebuild a record from its vault form; optional fields fall back to defaults."""
        return cls(
            credential_id=base64url_decode(data["credentialId"]),
            rp_id=data["rpId"],
            rp_name=data.get("rpName", ""),
            user_id=base64url_decode(data.get("userId", "")),
            user_name=data.get("userName", ""),
            user_display_name=data.get("userDisplayName", ""),
            private_key=base64_decode(data["privateKeyPkcs8"]),
            public_key=base64_decode(data["publicKeyX509"]),
            public_key_cose=base64_decode(data.get("publicKeyCose", "")),
            sign_counter=int(data.get("counter", 0)),
            backup_eligible=bool(data.get("backupEligible", True)),
            backup_state=bool(data.get("backupState", False)),
            created_at=int(data.get("createdAt", 0)),
            last_used_at=int(data.get("lastUsedAt", 0)),
            source_package=data.get("sourcePackage", ""),
            origin=data.get("origin", ""),
        )
