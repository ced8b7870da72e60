"""
main.py
======
Interactive demo driving the software authenticator the way a platform
credential provider would: it builds the relying party's options JSON, hands
it to the authenticator and passes the response back to the relying party.

This is the caller layer, so it owns logging: every failed result is logged
together with the request that produced it.

Demo options:
1. Register - create a passkey, relying party verifies the attestation object
2. Login - sign an assertion, relying party verifies signature + sign counter
3. Phishing attempt - request for another rpId finds no credential
4. Tampered challenge - relying party rejects an assertion for a modified challenge
5. Show stored credentials
6. Delete a credential
"""

import json
import logging
import os

from authenticator import Authenticator
from crypto_utils import base64url_encode
from errors import OperationResult
from server import RelyingPartyVerifier
from vault_store import JsonFileCredentialStore

logger = logging.getLogger(__name__)

CALLING_PACKAGE = "com.example.demo"


def _log_failure(operation: str, request_json: str, result: OperationResult) -> None:
    logger.error("%s failed [%s]: %s; request=%s", operation, result.kind, result.message, request_json)


def _creation_options(rp_id: str, username: str, challenge: str) -> str:
    return json.dumps(
        {
            "rp": {"id": rp_id, "name": "Example"},
            "user": {
                "id": base64url_encode(os.urandom(16)),
                "name": username,
                "displayName": username,
            },
            "challenge": challenge,
            "authenticatorSelection": {"residentKey": "required", "userVerification": "preferred"},
        }
    )


def _request_options(rp_id: str, challenge: str) -> str:
    return json.dumps({"rpId": rp_id, "challenge": challenge, "allowCredentials": []})


def main() -> None:
    """
    Main entry point: run interactive passkey demo loop.

    Step-by-step flow:
    1. Open the JSON vault and wrap it in an Authenticator
    2. Create a relying party verifier for "example.com"
    3. Loop over the menu until the user exits
    """
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    rp_id = "example.com"
    origin = "https://example.com"

    authenticator = Authenticator(JsonFileCredentialStore())
    server = RelyingPartyVerifier(rp_id, origin)

    while True:
        print("\n=== PASSKEY DEMO ===")
        print("1) Register (create passkey)")
        print("2) Login (use passkey)")
        print("3) Phishing attempt (wrong rp_id)")
        print("4) Tampered challenge (verification fails)")
        print("5) Show stored credentials")
        print("6) Delete a credential")
        print("0) Exit")

        choice = input("Choose: ").strip()

        if choice == "0":
            break

        # ---------------------------------------------------------------------
        # Option 1: Register a new passkey
        # ---------------------------------------------------------------------
        if choice == "1":
            username = input("Username: ").strip()
            challenge = server.issue_challenge()
            request_json = _creation_options(rp_id, username, challenge)
            print(f"[RP] Issued challenge: {challenge}")

            result = authenticator.handle_create_request(request_json, CALLING_PACKAGE, origin)
            if not result.ok:
                _log_failure("create", request_json, result)
                print(f"[Authenticator] ERROR: {result.message}")
                continue

            record = result.value.record
            print(f"[Authenticator] Passkey created. credential_id={record.credential_id_b64u}")
            ok = server.verify_registration(result.value.response_json, challenge)
            print(f"[RP] Verify registration: {'OK' if ok else 'FAIL'}")

        # ---------------------------------------------------------------------
        # Option 2: Login with passkey
        # ---------------------------------------------------------------------
        elif choice == "2":
            challenge = server.issue_challenge()
            request_json = _request_options(rp_id, challenge)
            result = authenticator.handle_get_request(request_json, CALLING_PACKAGE, origin=origin)
            if not result.ok:
                _log_failure("get", request_json, result)
                print(f"[Authenticator] ERROR: {result.message}")
                continue

            record = result.value.record
            print(f"[Authenticator] Signed with {record.credential_id_b64u}, counter={record.sign_counter}")
            ok = server.verify_authentication(result.value.response_json, challenge)
            print(f"[RP] Verify login: {'OK' if ok else 'FAIL'}")

        # ---------------------------------------------------------------------
        # Option 3: Phishing attempt (wrong rp_id)
        # ---------------------------------------------------------------------
        elif choice == "3":
            challenge = server.issue_challenge()
            request_json = _request_options("phish.com", challenge)
            result = authenticator.handle_get_request(request_json, CALLING_PACKAGE, origin="https://phish.com")
            if result.ok:
                print("[Authenticator] Unexpected: signed for phishing site.")
            else:
                _log_failure("get", request_json, result)
                print(f"[Authenticator] Refused (expected): {result.kind}")

        # ---------------------------------------------------------------------
        # Option 4: Tampered challenge
        # ---------------------------------------------------------------------
        elif choice == "4":
            challenge = server.issue_challenge()
            request_json = _request_options(rp_id, challenge)
            result = authenticator.handle_get_request(request_json, CALLING_PACKAGE, origin=origin)
            if not result.ok:
                _log_failure("get", request_json, result)
                print(f"[Authenticator] ERROR: {result.message}")
                continue

            print("[Authenticator] Signed ORIGINAL challenge.")
            tampered = server.issue_challenge()
            print(f"[Attacker] Substituted challenge: {tampered}")
            ok = server.verify_authentication(result.value.response_json, tampered)
            print(f"[RP] Verify tampered challenge: {'OK (unexpected)' if ok else 'FAIL (expected)'}")

        # ---------------------------------------------------------------------
        # Option 5: Stored credentials
        # ---------------------------------------------------------------------
        elif choice == "5":
            summary = [
                {
                    "credentialId": r.credential_id_b64u,
                    "rpId": r.rp_id,
                    "userName": r.user_name,
                    "counter": r.sign_counter,
                    "lastUsedAt": r.last_used_at,
                }
                for r in authenticator.list_credentials()
            ]
            print(json.dumps(summary, indent=2))

        # ---------------------------------------------------------------------
        # Option 6: Delete a credential
        # ---------------------------------------------------------------------
        elif choice == "6":
            credential_id = input("Credential id: ").strip()
            removed = authenticator.delete_credential(credential_id)
            print("Deleted." if removed else "No such credential.")

        else:
            print("Invalid option.")


if __name__ == "__main__":
    main()
