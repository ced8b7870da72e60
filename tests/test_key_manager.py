from __future__ import annotations

import cbor2
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from fido2.cose import CoseKey

import key_manager
from errors import EncodingOverflow, KeyImportFailure


def test_signature_verifies_only_with_paired_public_key():
    private_a, public_a = key_manager.generate_key_pair()
    _, public_b = key_manager.generate_key_pair()
    message = b"authenticator-data||client-data-hash"

    signature = key_manager.sign(private_a, message)

    assert key_manager.verify(public_a, signature, message)
    assert not key_manager.verify(public_b, signature, message)
    assert not key_manager.verify(public_a, signature, message + b"x")


def test_signature_is_der_sequence():
    private_key, _ = key_manager.generate_key_pair()
    signature = key_manager.sign(private_key, b"payload")
    assert signature[0] == 0x30
    assert signature[1] == len(signature) - 2


def test_der_encodings_round_trip():
    private_der, public_der = key_manager.generate_key_pair()

    private_key = key_manager.import_private_key(private_der)
    public_key = key_manager.import_public_key(public_der)

    assert key_manager.export_private_key(private_key) == private_der
    assert key_manager.export_public_key(public_key) == public_der
    assert key_manager.public_key_matches(private_der, public_der)


def test_base64_key_pair_encoding_round_trips():
    private_der, public_der = key_manager.generate_key_pair()
    private_b64, public_b64 = key_manager.encode_key_pair(private_der, public_der)

    private_key = key_manager.import_private_key_b64(private_b64)
    public_key = key_manager.import_public_key_b64(public_b64)

    assert key_manager.export_private_key(private_key) == private_der
    assert key_manager.export_public_key(public_key) == public_der


def test_malformed_private_key_is_import_failure():
    with pytest.raises(KeyImportFailure):
        key_manager.import_private_key(b"\x30\x03\x02\x01\x00")
    with pytest.raises(KeyImportFailure):
        key_manager.sign(b"not a key", b"message")
    with pytest.raises(KeyImportFailure):
        key_manager.import_private_key_b64("!!!")


def test_non_p256_key_is_rejected():
    other = ec.generate_private_key(ec.SECP384R1())
    der = other.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    with pytest.raises(KeyImportFailure, match="P-256"):
        key_manager.import_private_key(der)


def test_cose_key_has_fixed_shape_and_length():
    for _ in range(20):
        _, public_der = key_manager.generate_key_pair()
        cose = key_manager.encode_cose_public_key(public_der)

        assert len(cose) == 77
        assert cose[:7] == bytes.fromhex("a5010203262001")
        assert cose[7:10] == bytes.fromhex("215820")
        assert cose[42:45] == bytes.fromhex("225820")

        decoded = cbor2.loads(cose)
        assert list(decoded) == [1, 3, -1, -2, -3]
        numbers = key_manager.import_public_key(public_der).public_numbers()
        assert decoded[-2] == numbers.x.to_bytes(32, "big")
        assert decoded[-3] == numbers.y.to_bytes(32, "big")


def test_cose_key_verifies_signature_with_fido2():
    private_der, public_der = key_manager.generate_key_pair()
    message = b"fido2 cross-check"
    signature = key_manager.sign(private_der, message)

    cose_key = CoseKey.parse(cbor2.loads(key_manager.encode_cose_public_key(public_der)))
    assert cose_key.ALGORITHM == -7
    cose_key.verify(message, signature)


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, b"\x00" * 32),
        (1, b"\x00" * 31 + b"\x01"),
        (0x7F << 248, b"\x7f" + b"\x00" * 31),
        # high bit set: two's complement form is 33 bytes with a sign byte
        (0xFF << 248, b"\xff" + b"\x00" * 31),
        (2**256 - 1, b"\xff" * 32),
    ],
)
def test_coordinates_are_fixed_width(value, expected):
    assert key_manager.to_fixed_width(value) == expected


def test_oversized_coordinate_is_encoding_overflow():
    with pytest.raises(EncodingOverflow):
        key_manager.to_fixed_width(2**256)
