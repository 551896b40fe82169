from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json


class InvalidSignedTokenError(RuntimeError):
    pass


def derive_key(client_secret: str, *, purpose: str = "correlation") -> str:
    """Derive a stable signing key from the provider client secret."""
    return hashlib.sha256(f"kickauth:{purpose}:{client_secret}".encode()).hexdigest()


def encode(payload: dict, key: str) -> str:
    data = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode()
    data_b64 = base64.urlsafe_b64encode(data).rstrip(b"=").decode()
    sig = hmac.new(key.encode(), data, hashlib.sha256).digest()
    sig_b64 = base64.urlsafe_b64encode(sig).rstrip(b"=").decode()
    return f"{data_b64}.{sig_b64}"


def decode(token: str, key: str) -> dict:
    parts = token.split(".", 1)
    if len(parts) != 2:
        raise InvalidSignedTokenError("Invalid token format.")
    data_b64, sig_b64 = parts
    try:
        data = base64.urlsafe_b64decode(data_b64 + "==")
        actual_sig = base64.urlsafe_b64decode(sig_b64 + "==")
    except (binascii.Error, ValueError) as error:
        raise InvalidSignedTokenError("Token is not valid base64url.") from error
    expected_sig = hmac.new(key.encode(), data, hashlib.sha256).digest()
    if not hmac.compare_digest(expected_sig, actual_sig):
        raise InvalidSignedTokenError("Token signature verification failed.")
    payload = json.loads(data)
    if not isinstance(payload, dict):
        raise InvalidSignedTokenError("Token payload must be a JSON object.")
    return payload
