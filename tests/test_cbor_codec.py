from __future__ import annotations

import cbor2
import pytest

import cbor_codec
from errors import EncodingOverflow


@pytest.mark.parametrize(
    "payload",
    [0, 1, 23, 24, 255, 256, 65535, 65536, 2**32 - 1, -1, -7, -24, -25, -256, -257],
)
def test_integers_match_cbor2(payload):
    assert cbor_codec.encode(payload) == cbor2.dumps(payload)


@pytest.mark.parametrize("length", [0, 1, 23, 24, 255, 256, 65535, 65536])
def test_string_length_prefixes_match_cbor2(length):
    data = b"\xab" * length
    text = "t" * length
    assert cbor_codec.encode(data) == cbor2.dumps(data)
    assert cbor_codec.encode(text) == cbor2.dumps(text)


def test_text_is_utf8_and_counts_bytes():
    encoded = cbor_codec.encode("é")
    assert encoded == b"\x62\xc3\xa9"


def test_map_keeps_given_order():
    encoded = cbor_codec.encode_map([(-1, 1), (1, 2), ("b", b""), ("a", {})])

    assert encoded.hex() == "a4200101026162406161a0"
    assert list(cbor2.loads(encoded)) == [-1, 1, "b", "a"]


def test_map_accepts_mapping_in_insertion_order():
    assert cbor_codec.encode({3: -7, 1: 2}) == bytes.fromhex("a203260102")


def test_empty_map():
    assert cbor_codec.encode({}) == b"\xa0"


def test_argument_beyond_four_bytes_is_overflow():
    with pytest.raises(EncodingOverflow):
        cbor_codec.encode(2**32)
    with pytest.raises(EncodingOverflow):
        cbor_codec.encode_head(cbor_codec.MAJOR_BYTES, -1)


@pytest.mark.parametrize("payload", [True, 1.5, None, [1, 2]])
def test_unsupported_items_are_rejected(payload):
    with pytest.raises(TypeError):
        cbor_codec.encode(payload)
