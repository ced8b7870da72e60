"""
key_manager.py
=============
P-256 key management for credentials: generation, portable DER encodings,
ES256 signing and COSE public-key encoding.

Keys are exchanged as plain DER bytes so they can be stored, exported and
re-imported without loss:
- private keys: PKCS#8 DER (unencrypted; vault confidentiality is the
  store's concern)
- public keys: X.509 SubjectPublicKeyInfo DER

Signatures follow the "SHA256withECDSA" convention: ECDSA over SHA-256 of
the message, DER-encoded as ASN.1 SEQUENCE{r, s}.
"""

from __future__ import annotations

from typing import Tuple

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

import cbor_codec
from crypto_utils import base64_decode, base64_encode
from errors import CryptoProviderUnavailable, EncodingOverflow, KeyImportFailure

CURVE = ec.SECP256R1
COORDINATE_LENGTH = 32

# COSE_Key labels and values (RFC 9052 / RFC 9053)
COSE_KTY = 1
COSE_ALG = 3
COSE_EC2_CRV = -1
COSE_EC2_X = -2
COSE_EC2_Y = -3
COSE_KTY_EC2 = 2
COSE_ALG_ES256 = -7
COSE_CRV_P256 = 1


def generate_key_pair() -> Tuple[bytes, bytes]:
    """
    Generate a fresh P-256 key pair.

    Returns (PKCS#8 private key DER, SubjectPublicKeyInfo public key DER).
    The backend draws from the operating system CSPRNG.
    """
    try:
        private_key = ec.generate_private_key(CURVE())
    except UnsupportedAlgorithm as exc:
        raise CryptoProviderUnavailable(f"P-256 key generation unavailable: {exc}") from exc
    return export_private_key(private_key), export_public_key(private_key.public_key())


def export_private_key(private_key: ec.EllipticCurvePrivateKey) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def export_public_key(public_key: ec.EllipticCurvePublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def import_private_key(pkcs8_der: bytes) -> ec.EllipticCurvePrivateKey:
    """
    Load a PKCS#8 DER private key and check that it is a P-256 EC key.

    Any parse failure or wrong key type is reported as KeyImportFailure.
    """
    try:
        key = serialization.load_der_private_key(pkcs8_der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeyImportFailure(f"Malformed PKCS#8 private key: {exc}") from exc
    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, CURVE):
        raise KeyImportFailure("Private key is not an EC P-256 key")
    return key


def import_public_key(spki_der: bytes) -> ec.EllipticCurvePublicKey:
    try:
        key = serialization.load_der_public_key(spki_der)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeyImportFailure(f"Malformed SubjectPublicKeyInfo public key: {exc}") from exc
    if not isinstance(key, ec.EllipticCurvePublicKey) or not isinstance(key.curve, CURVE):
        raise KeyImportFailure("Public key is not an EC P-256 key")
    return key


def encode_key_pair(private_key_bytes: bytes, public_key_bytes: bytes) -> Tuple[str, str]:
    """Encode a DER key pair as standard base64 strings for storage."""
    return base64_encode(private_key_bytes), base64_encode(public_key_bytes)


def import_private_key_b64(encoded: str) -> ec.EllipticCurvePrivateKey:
    try:
        der = base64_decode(encoded)
    except ValueError as exc:
        raise KeyImportFailure(str(exc)) from exc
    return import_private_key(der)


def import_public_key_b64(encoded: str) -> ec.EllipticCurvePublicKey:
    try:
        der = base64_decode(encoded)
    except ValueError as exc:
        raise KeyImportFailure(str(exc)) from exc
    return import_public_key(der)


def public_key_matches(private_key_bytes: bytes, public_key_bytes: bytes) -> bool:
    """True when the public key DER is the pair of the private key DER."""
    derived = import_private_key(private_key_bytes).public_key()
    return export_public_key(derived) == export_public_key(import_public_key(public_key_bytes))


def sign(private_key_bytes: bytes, message: bytes) -> bytes:
    """
    Sign ``message`` with ECDSA/SHA-256 and return the DER signature.

    Step-by-step:
    1. Import the PKCS#8 private key (KeyImportFailure when malformed)
    2. Hash the message with SHA-256 and sign it with a random nonce
    3. Return the ASN.1 SEQUENCE{r, s} encoding
    """
    private_key = import_private_key(private_key_bytes)
    try:
        return private_key.sign(message, ec.ECDSA(hashes.SHA256()))
    except UnsupportedAlgorithm as exc:
        raise CryptoProviderUnavailable(f"ES256 signing unavailable: {exc}") from exc


def verify(public_key_bytes: bytes, signature: bytes, message: bytes) -> bool:
    """Verify a DER ES256 signature; False on mismatch."""
    public_key = import_public_key(public_key_bytes)
    try:
        public_key.verify(signature, message, ec.ECDSA(hashes.SHA256()))
        return True
    except InvalidSignature:
        return False


def to_fixed_width(value: int, length: int = COORDINATE_LENGTH) -> bytes:
    """
    Fit a non-negative integer into exactly ``length`` big-endian bytes.

    The value is first rendered in minimal two's-complement form, then:
    - shorter output is left-padded with zeros
    - output one byte longer whose first byte is 0x00 (sign byte) is stripped
    - any other length raises EncodingOverflow
    """
    raw = value.to_bytes(value.bit_length() // 8 + 1, "big", signed=True)
    if len(raw) == length:
        return raw
    if len(raw) < length:
        return b"\x00" * (length - len(raw)) + raw
    if len(raw) == length + 1 and raw[0] == 0:
        return raw[1:]
    raise EncodingOverflow(
        f"Coordinate needs {len(raw)} bytes, slot is {length} bytes"
    )


def public_key_coordinates(public_key_bytes: bytes) -> Tuple[bytes, bytes]:
    """Return the affine (X, Y) coordinates, each exactly 32 bytes."""
    numbers = import_public_key(public_key_bytes).public_numbers()
    return to_fixed_width(numbers.x), to_fixed_width(numbers.y)


def encode_cose_public_key(public_key_bytes: bytes) -> bytes:
    """
    Encode a SubjectPublicKeyInfo P-256 key as a COSE_Key map.

    The map is always {1: 2, 3: -7, -1: 1, -2: X, -3: Y} in that order
    (kty=EC2, alg=ES256, crv=P-256), giving a constant 77-byte encoding.
    """
    x, y = public_key_coordinates(public_key_bytes)
    return cbor_codec.encode_map(
        [
            (COSE_KTY, COSE_KTY_EC2),
            (COSE_ALG, COSE_ALG_ES256),
            (COSE_EC2_CRV, COSE_CRV_P256),
            (COSE_EC2_X, x),
            (COSE_EC2_Y, y),
        ]
    )
