from __future__ import annotations

import base64
import hashlib
import secrets
from dataclasses import dataclass

CODE_CHALLENGE_METHOD = "S256"
VERIFIER_ALPHABET = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
)


@dataclass(frozen=True)
class PkceContext:
    verifier: str
    challenge: str
    method: str = CODE_CHALLENGE_METHOD


def generate_code_verifier() -> str:
    while True:
        verifier = secrets.token_urlsafe(64)
        if 43 <= len(verifier) <= 128:
            return verifier


def generate_code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def is_valid_code_verifier(verifier: str) -> bool:
    return 43 <= len(verifier) <= 128 and set(verifier) <= VERIFIER_ALPHABET


def generate() -> PkceContext:
    """Create a fresh verifier/challenge pair for one authorization attempt."""
    verifier = generate_code_verifier()
    return PkceContext(verifier=verifier, challenge=generate_code_challenge(verifier))
