"""
PKCE (RFC 7636) helpers — S256 only.
"""

from __future__ import annotations

import hashlib
import secrets
from base64 import urlsafe_b64encode

CHALLENGE_METHOD = "S256"


def generate_verifier() -> str:
    """32 random bytes -> 43 char base64url string (256 bits of entropy)."""
    return secrets.token_urlsafe(32)


def derive_challenge(verifier: str) -> str:
    """SHA-256 the verifier and base64url-encode it without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
