from __future__ import annotations

import json

import client_data


def test_create_client_data_exact_text():
    text = client_data.build_create_client_data_json("q1w2-e3_r4", "https://example.com")
    assert text == (
        '{"type":"webauthn.create","challenge":"q1w2-e3_r4",'
        '"origin":"https://example.com","crossOrigin":false}'
    )


def test_get_client_data_keeps_key_order():
    text = client_data.build_get_client_data_json("abc", "https://example.com")
    assert list(json.loads(text)) == ["type", "challenge", "origin", "crossOrigin"]
    assert json.loads(text)["type"] == "webauthn.get"


def test_challenge_is_passed_through_verbatim():
    # padded and standard-alphabet input is not normalised
    challenge = "ab+/cd=="
    text = client_data.build_get_client_data_json(challenge, "https://example.com")
    assert f'"challenge":"{challenge}"' in text


def test_native_app_origin():
    origin = client_data.android_origin_from_package("com.example.app")
    assert origin == "android:apk-key-hash:com.example.app"
    text = client_data.build_create_client_data_json("c", origin)
    assert '"origin":"android:apk-key-hash:com.example.app"' in text
