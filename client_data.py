"""
client_data.py
=============
Builds the clientDataJSON text returned to the relying party.

Keys are emitted in a fixed order (type, challenge, origin, crossOrigin) with
compact separators. Some relying parties match this JSON by substring, so the
exact text matters, not just its parsed value.
"""

from __future__ import annotations

import json

TYPE_CREATE = "webauthn.create"
TYPE_GET = "webauthn.get"

ANDROID_ORIGIN_PREFIX = "android:apk-key-hash:"


def build_client_data_json(client_data_type: str, challenge: str, origin: str) -> str:
    """
    Serialize the four clientData members in wire order.

    The challenge is passed through exactly as received (already base64url
    text); it is never decoded or re-encoded here.
    """
    return json.dumps(
        {
            "type": client_data_type,
            "challenge": challenge,
            "origin": origin,
            "crossOrigin": False,
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )


def build_create_client_data_json(challenge: str, origin: str) -> str:
    return build_client_data_json(TYPE_CREATE, challenge, origin)


def build_get_client_data_json(challenge: str, origin: str) -> str:
    return build_client_data_json(TYPE_GET, challenge, origin)


def android_origin_from_package(package_name: str) -> str:
    """Stand-in origin for requests coming from a native app instead of a web page."""
    return f"{ANDROID_ORIGIN_PREFIX}{package_name}"
