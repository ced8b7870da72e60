"""
attestation.py
=============
Wraps authenticatorData into the CBOR attestation object.

This authenticator makes no claim about its own provenance, so it always
uses the "none" format: {"fmt": "none", "attStmt": {}, "authData": <bytes>}.
"""

from __future__ import annotations

import cbor_codec

ATTESTATION_FORMAT_NONE = "none"


def encode_attestation_object(auth_data: bytes) -> bytes:
    return cbor_codec.encode_map(
        [
            ("fmt", ATTESTATION_FORMAT_NONE),
            ("attStmt", {}),
            ("authData", bytes(auth_data)),
        ]
    )
