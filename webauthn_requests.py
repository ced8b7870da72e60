"""
webauthn_requests.py
===================
Typed parsing of the PublicKeyCredential creation/request options JSON that
the platform hands to the authenticator.

Absent fields get explicit defaults instead of None:
- strings default to ""
- userVerification defaults to "preferred"
- allowCredentials defaults to an empty list
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

from errors import RequestParseError

DEFAULT_USER_VERIFICATION = "preferred"


@dataclass
class CreateRequest:
    rp_id: str = ""
    rp_name: str = ""
    user_id: str = ""  # base64url, as sent by the relying party
    user_name: str = ""
    user_display_name: str = ""
    challenge: str = ""  # base64url, passed through to clientDataJSON
    requires_resident_key: bool = False
    user_verification: str = DEFAULT_USER_VERIFICATION


@dataclass
class GetRequest:
    rp_id: str = ""
    challenge: str = ""
    allow_credential_ids: List[str] = field(default_factory=list)
    user_verification: str = DEFAULT_USER_VERIFICATION


def _load_object(request_json: str) -> Dict[str, Any]:
    try:
        obj = json.loads(request_json)
    except (TypeError, ValueError) as exc:
        raise RequestParseError(f"Request is not valid JSON: {exc}") from exc
    if not isinstance(obj, dict):
        raise RequestParseError("Request JSON must be an object")
    return obj


def _section(obj: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = obj.get(key)
    return value if isinstance(value, dict) else {}


def _text(obj: Dict[str, Any], key: str, default: str = "") -> str:
    value = obj.get(key)
    return value if isinstance(value, str) else default


def parse_create_request(request_json: str) -> CreateRequest:
    """
    Parse creation options into a CreateRequest.

    Reads rp.id, rp.name, user.id, user.name, user.displayName, challenge,
    authenticatorSelection.residentKey and authenticatorSelection.userVerification.
    """
    obj = _load_object(request_json)
    rp = _section(obj, "rp")
    user = _section(obj, "user")
    selection = _section(obj, "authenticatorSelection")
    return CreateRequest(
        rp_id=_text(rp, "id"),
        rp_name=_text(rp, "name"),
        user_id=_text(user, "id"),
        user_name=_text(user, "name"),
        user_display_name=_text(user, "displayName"),
        challenge=_text(obj, "challenge"),
        requires_resident_key=_text(selection, "residentKey") == "required",
        user_verification=_text(selection, "userVerification", DEFAULT_USER_VERIFICATION),
    )


def parse_get_request(request_json: str) -> GetRequest:
    """Parse request options; allowCredentials entries without a string id are skipped."""
    obj = _load_object(request_json)
    allow = obj.get("allowCredentials")
    allow_ids = []
    if isinstance(allow, list):
        for descriptor in allow:
            if isinstance(descriptor, dict) and isinstance(descriptor.get("id"), str):
                allow_ids.append(descriptor["id"])
    return GetRequest(
        rp_id=_text(obj, "rpId"),
        challenge=_text(obj, "challenge"),
        allow_credential_ids=allow_ids,
        user_verification=_text(obj, "userVerification", DEFAULT_USER_VERIFICATION),
    )
