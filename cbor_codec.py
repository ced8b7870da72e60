"""
cbor_codec.py
============
Minimal CBOR (RFC 8949) encoder for the fixed-shape maps this authenticator
emits: the COSE_Key map and the attestation object.

Supported items:
- unsigned and negative integers (major types 0 and 1)
- byte strings (major type 2)
- UTF-8 text strings (major type 3)
- definite-length maps (major type 5)

Maps are written in the order their entries are given. There is no key
sorting: the two call sites rely on a fixed wire order.
No floats, no indefinite lengths, no decoder.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Tuple, Union

from errors import EncodingOverflow

MAJOR_UNSIGNED = 0
MAJOR_NEGATIVE = 1
MAJOR_BYTES = 2
MAJOR_TEXT = 3
MAJOR_MAP = 5

MAX_ARGUMENT = 0xFFFFFFFF

MapEntries = Union[Mapping[Any, Any], Iterable[Tuple[Any, Any]]]


def encode_head(major_type: int, argument: int) -> bytes:
    """
    Encode the initial byte plus any length/value extension.

    Step-by-step:
    1. Values 0..23 fit in the low 5 bits of the initial byte
    2. Larger values use additional info 24/25/26 followed by a
       1-, 2- or 4-byte big-endian argument
    3. Anything above 32 bits is rejected; no item here needs 8-byte heads
    """
    if argument < 0 or argument > MAX_ARGUMENT:
        raise EncodingOverflow(
            f"CBOR argument {argument} does not fit a 4-byte length field"
        )
    prefix = major_type << 5
    if argument <= 23:
        return bytes([prefix | argument])
    if argument <= 0xFF:
        return bytes([prefix | 24]) + argument.to_bytes(1, "big")
    if argument <= 0xFFFF:
        return bytes([prefix | 25]) + argument.to_bytes(2, "big")
    return bytes([prefix | 26]) + argument.to_bytes(4, "big")


def encode_int(value: int) -> bytes:
    if value >= 0:
        return encode_head(MAJOR_UNSIGNED, value)
    return encode_head(MAJOR_NEGATIVE, -1 - value)


def encode_bytes(data: bytes) -> bytes:
    return encode_head(MAJOR_BYTES, len(data)) + bytes(data)


def encode_text(text: str) -> bytes:
    raw = text.encode("utf-8")
    return encode_head(MAJOR_TEXT, len(raw)) + raw


def encode_map(entries: MapEntries) -> bytes:
    """
    Encode a definite-length map, preserving the given entry order.

    Accepts either a mapping (insertion order is used) or an iterable of
    (key, value) pairs.
    """
    pairs = list(entries.items()) if isinstance(entries, Mapping) else list(entries)
    out = bytearray(encode_head(MAJOR_MAP, len(pairs)))
    for key, value in pairs:
        out += encode(key)
        out += encode(value)
    return bytes(out)


def encode(value: Any) -> bytes:
    """Encode one supported item, dispatching on its Python type."""
    # bool is an int subclass but has its own CBOR simple values
    if isinstance(value, bool):
        raise TypeError("CBOR booleans are not supported by this encoder")
    if isinstance(value, int):
        return encode_int(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return encode_bytes(bytes(value))
    if isinstance(value, str):
        return encode_text(value)
    if isinstance(value, Mapping):
        return encode_map(value)
    raise TypeError(f"Unsupported CBOR item type: {type(value).__name__}")
