"""
PKCE (Proof Key for Code Exchange) and state generation
"""
import base64
import hashlib
import secrets
from dataclasses import dataclass

VERIFIER_BYTES = 64
STATE_BYTES = 32


@dataclass(frozen=True)
class PkceCodes:
    """PKCE code verifier and challenge pair

    Attributes:
        verifier: URL-safe base64 (no padding) encoding of 64 random bytes
        challenge: URL-safe base64 (no padding) SHA-256 digest of the verifier
    """
    verifier: str
    challenge: str


def _b64url_nopad(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def compute_challenge(verifier: str) -> str:
    """Derive the S256 code challenge for a verifier"""
    return _b64url_nopad(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_pkce() -> PkceCodes:
    """
    Generate a PKCE code verifier and challenge.

    The verifier is 64 random bytes, base64url encoded without padding
    (86 characters), which stays inside RFC 7636's 43-128 character range.

    Returns:
        PkceCodes: verifier and S256 challenge
    """
    verifier = _b64url_nopad(secrets.token_bytes(VERIFIER_BYTES))
    return PkceCodes(verifier=verifier, challenge=compute_challenge(verifier))


def generate_state() -> str:
    """
    Generate random state parameter for CSRF protection.

    Returns:
        str: base64url encoded 32-byte random string
    """
    return _b64url_nopad(secrets.token_bytes(STATE_BYTES))
