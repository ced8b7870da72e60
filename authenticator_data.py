"""
authenticator_data.py
====================
Builds the binary authenticatorData structure (WebAuthn §6.1).

Layout:
    rpIdHash      32 bytes   SHA-256 of the UTF-8 rpId
    flags          1 byte    UP=0x01, UV=0x04, BE=0x08, BS=0x10, AT=0x40
    signCount      4 bytes   big-endian uint32
    [only when AT is set]
    aaguid        16 bytes   fixed identifier of this authenticator
    credIdLength   2 bytes   big-endian uint16
    credentialId   variable
    credentialPublicKey  variable (COSE_Key)

Counter policy: the stored counter is unbounded, the wire field saturates at
0xFFFFFFFF. A negative counter is an EncodingOverflow.
"""

from __future__ import annotations

from crypto_utils import sha256
from errors import EncodingOverflow

# "PasskeyToolsDbg\0": stable across builds for this authenticator identity
AAGUID = bytes.fromhex("506173736b6579546f6f6c7344626700")

FLAG_UP = 0x01  # User Present
FLAG_UV = 0x04  # User Verified
FLAG_BE = 0x08  # Backup Eligible
FLAG_BS = 0x10  # Backup State
FLAG_AT = 0x40  # Attested credential data included

RP_ID_HASH_LENGTH = 32
BASE_LENGTH = 37
MAX_SIGN_COUNT = 0xFFFFFFFF
MAX_CREDENTIAL_ID_LENGTH = 0xFFFF


def encode_flags(
    *,
    user_verified: bool,
    backup_eligible: bool,
    backup_state: bool,
    attested: bool = False,
) -> int:
    flags = FLAG_UP
    if user_verified:
        flags |= FLAG_UV
    if backup_eligible:
        flags |= FLAG_BE
    if backup_state:
        flags |= FLAG_BS
    if attested:
        flags |= FLAG_AT
    return flags


def encode_sign_count(counter: int) -> bytes:
    """Four big-endian bytes, saturating at 0xFFFFFFFF."""
    if counter < 0:
        raise EncodingOverflow(f"Signature counter cannot be negative: {counter}")
    return min(counter, MAX_SIGN_COUNT).to_bytes(4, "big")


def _header(rp_id: str, flags: int, counter: int) -> bytes:
    return sha256(rp_id.encode("utf-8")) + bytes([flags]) + encode_sign_count(counter)


def build_for_create(
    rp_id: str,
    credential_id: bytes,
    cose_public_key: bytes,
    counter: int = 0,
    *,
    user_verified: bool = True,
    backup_eligible: bool = True,
    backup_state: bool = False,
) -> bytes:
    """
    Build authenticatorData for a registration ("create") operation.

    The AT flag is always set and the attested credential data block
    (aaguid, credential id length, credential id, COSE key) is appended.
    """
    if len(credential_id) > MAX_CREDENTIAL_ID_LENGTH:
        raise EncodingOverflow(
            f"Credential id of {len(credential_id)} bytes exceeds the 16-bit length field"
        )
    flags = encode_flags(
        user_verified=user_verified,
        backup_eligible=backup_eligible,
        backup_state=backup_state,
        attested=True,
    )
    return (
        _header(rp_id, flags, counter)
        + AAGUID
        + len(credential_id).to_bytes(2, "big")
        + bytes(credential_id)
        + bytes(cose_public_key)
    )


def build_for_get(
    rp_id: str,
    counter: int,
    *,
    user_verified: bool = True,
    backup_eligible: bool = True,
    backup_state: bool = False,
) -> bytes:
    """Build the 37-byte authenticatorData for an assertion ("get"). Never sets AT."""
    flags = encode_flags(
        user_verified=user_verified,
        backup_eligible=backup_eligible,
        backup_state=backup_state,
    )
    return _header(rp_id, flags, counter)
