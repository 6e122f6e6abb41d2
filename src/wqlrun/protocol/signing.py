from __future__ import annotations

import base64
import hashlib
import hmac


def digest_b64(message: bytes, secret: bytes) -> str:
    """base64(SHA-256(message || secret)).

    A secret-appended hash rather than an HMAC. The peer computes exactly
    this, so it must not be replaced by ``hmac.new`` without a coordinated
    change on both sides.
    """
    h = hashlib.sha256()
    h.update(message)
    h.update(secret)
    return base64.b64encode(h.digest()).decode()


def signing_string(client_id: str, timestamp: int, nonce: str) -> str:
    return f"{client_id}:{timestamp}:{nonce}"


def sign_request(client_id: str, timestamp: int, nonce: str, secret: str) -> str:
    return digest_b64(signing_string(client_id, timestamp, nonce).encode(), secret.encode())


def verify_response(canonical: bytes, claimed_signature: str, secret: str) -> bool:
    """Recompute the digest over the signature-cleared response and compare."""
    expected = digest_b64(canonical, secret.encode())
    return hmac.compare_digest(expected.encode(), claimed_signature.encode())


class RequestSigner:
    """Signs the canonical request fields. Subclass to change the scheme."""

    def sign(self, client_id: str, timestamp: int, nonce: str) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class ResponseVerifier:
    """Checks a response signature. Subclass to change the scheme."""

    def verify(self, canonical: bytes, claimed_signature: str) -> bool:  # pragma: no cover - interface
        raise NotImplementedError


class DigestSigner(RequestSigner):
    def __init__(self, secret: str):
        self._secret = secret

    def sign(self, client_id: str, timestamp: int, nonce: str) -> str:
        return sign_request(client_id, timestamp, nonce, self._secret)


class DigestVerifier(ResponseVerifier):
    def __init__(self, secret: str):
        self._secret = secret

    def verify(self, canonical: bytes, claimed_signature: str) -> bool:
        return verify_response(canonical, claimed_signature, self._secret)


__all__ = [
    "digest_b64",
    "signing_string",
    "sign_request",
    "verify_response",
    "RequestSigner",
    "ResponseVerifier",
    "DigestSigner",
    "DigestVerifier",
]
