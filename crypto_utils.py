"""
crypto_utils.py
==============
Small, well-named encoding and hashing helpers shared by the authenticator.

This module centralizes the byte/text conversions that appear on the WebAuthn
wire and in the credential vault. It provides:
- Base64url encoding/decoding (WebAuthn-compatible format, no padding)
- Standard base64 encoding/decoding (used for stored DER key material)
- SHA-256 hashing for rpIdHash and clientDataHash
"""

from __future__ import annotations

import base64
import binascii

from cryptography.hazmat.primitives import hashes


def base64url_encode(raw_bytes: bytes) -> str:
    """
    Encode raw bytes using URL-safe base64 without '=' padding (WebAuthn-style).

    WebAuthn uses base64url encoding (RFC 4648) which differs from standard
    base64: uses - and _ instead of + and /, and omits padding for compactness.

    Step-by-step:
    1. Apply base64.urlsafe_b64encode() to convert bytes → base64 bytes
    2. Decode to ASCII string for JSON/storage compatibility
    3. Strip trailing '=' padding characters (WebAuthn convention)
    """
    return base64.urlsafe_b64encode(raw_bytes).decode("ascii").rstrip("=")


def base64url_decode(encoded: str) -> bytes:
    """
    Decode URL-safe base64 string back to raw bytes, handling missing padding.

    Relying parties occasionally send standard-alphabet or padded values, so
    '+' and '/' are accepted and any existing padding is normalised first.

    Raises ValueError on characters outside the base64 alphabets.
    """
    cleaned = encoded.strip().rstrip("=").replace("+", "-").replace("/", "_")
    padding = "=" * (-len(cleaned) % 4)  # add required '=' padding back
    try:
        return base64.b64decode(cleaned + padding, altchars=b"-_", validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64url text: {exc}") from exc


def base64_encode(raw_bytes: bytes) -> str:
    """Standard base64 with padding; used for DER key blobs in the vault."""
    return base64.b64encode(raw_bytes).decode("ascii")


def base64_decode(encoded: str) -> bytes:
    try:
        return base64.b64decode(encoded, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 text: {exc}") from exc


def sha256(data: bytes) -> bytes:
    """
    Compute SHA-256 cryptographic hash of input bytes.

    Used for the rpIdHash inside authenticatorData and for hashing
    clientDataJSON before it is appended to the signed assertion payload.
    """
    digest = hashes.Hash(hashes.SHA256())  # create hash object
    digest.update(data)                    # feed data
    return digest.finalize()               # output digest
