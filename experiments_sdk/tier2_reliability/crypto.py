"""
experiments_sdk.tier2_reliability.crypto
─────────────────────────────────────────
Signature capabilities for origin experiment tokens. The token validator
only ever sees the SignatureVerifier protocol; concrete verifiers wrap the
`cryptography` library (RSA) or the stdlib hmac module (shared secret) so
application code never calls low-level crypto directly.

Provides:
  - RSASSA-PKCS1-v1_5 / SHA-256 verification and signing
  - HMAC-SHA256 verification and signing
"""
from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Any, Mapping, Protocol, runtime_checkable

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa


# ── Protocols ──────────────────────────────────────────────────────────────

@runtime_checkable
class SignatureVerifier(Protocol):
    """Verify a detached signature over a byte payload."""

    async def verify(self, signature: bytes, payload: bytes) -> bool: ...


@runtime_checkable
class TokenSigner(Protocol):
    """Produce a detached signature over a byte payload."""

    def sign(self, payload: bytes) -> bytes: ...


# ── RSA (requires cryptography) ────────────────────────────────────────────

def _b64url_int(value: str) -> int:
    padded = value + "=" * (-len(value) % 4)
    return int.from_bytes(base64.urlsafe_b64decode(padded), "big")


class RsaSignatureVerifier:
    """RSASSA-PKCS1-v1_5 with SHA-256 over the raw payload bytes."""

    def __init__(self, public_key: rsa.RSAPublicKey) -> None:
        self._public_key = public_key

    @classmethod
    def from_pem(cls, pem: str | bytes) -> "RsaSignatureVerifier":
        data = pem.encode() if isinstance(pem, str) else pem
        key = serialization.load_pem_public_key(data)
        if not isinstance(key, rsa.RSAPublicKey):
            raise TypeError("PEM does not contain an RSA public key")
        return cls(key)

    @classmethod
    def from_jwk(cls, jwk: Mapping[str, Any]) -> "RsaSignatureVerifier":
        """Build from a JSON Web Key ({'kty': 'RSA', 'n': ..., 'e': ...})."""
        if jwk.get("kty") != "RSA":
            raise ValueError(f"Unsupported JWK key type: {jwk.get('kty')!r}")
        numbers = rsa.RSAPublicNumbers(_b64url_int(jwk["e"]), _b64url_int(jwk["n"]))
        return cls(numbers.public_key())

    async def verify(self, signature: bytes, payload: bytes) -> bool:
        try:
            self._public_key.verify(signature, payload, padding.PKCS1v15(), hashes.SHA256())
        except (InvalidSignature, ValueError):
            return False
        return True


class RsaTokenSigner:
    """Signing half of RsaSignatureVerifier, used by tooling and tests."""

    def __init__(self, private_key: rsa.RSAPrivateKey) -> None:
        self._private_key = private_key

    @classmethod
    def generate(cls, key_size: int = 2048) -> "RsaTokenSigner":
        return cls(rsa.generate_private_key(public_exponent=65537, key_size=key_size))

    @classmethod
    def from_pem(cls, pem: str | bytes, password: bytes | None = None) -> "RsaTokenSigner":
        data = pem.encode() if isinstance(pem, str) else pem
        key = serialization.load_pem_private_key(data, password=password)
        if not isinstance(key, rsa.RSAPrivateKey):
            raise TypeError("PEM does not contain an RSA private key")
        return cls(key)

    def sign(self, payload: bytes) -> bytes:
        return self._private_key.sign(payload, padding.PKCS1v15(), hashes.SHA256())

    def verifier(self) -> RsaSignatureVerifier:
        return RsaSignatureVerifier(self._private_key.public_key())


# ── HMAC helpers (no extra deps) ───────────────────────────────────────────

def hmac_sign(key: str | bytes, data: bytes) -> bytes:
    """Return the raw HMAC-SHA256 digest of *data* under *key*."""
    k = key.encode() if isinstance(key, str) else key
    return hmac.new(k, data, hashlib.sha256).digest()


class HmacSignatureVerifier:
    """Shared-secret verifier. Comparison is constant time."""

    def __init__(self, key: str | bytes) -> None:
        self._key = key

    async def verify(self, signature: bytes, payload: bytes) -> bool:
        return hmac.compare_digest(hmac_sign(self._key, payload), signature)


class HmacTokenSigner:
    def __init__(self, key: str | bytes) -> None:
        self._key = key

    def sign(self, payload: bytes) -> bytes:
        return hmac_sign(self._key, payload)

    def verifier(self) -> HmacSignatureVerifier:
        return HmacSignatureVerifier(self._key)


__all__ = [
    "SignatureVerifier", "TokenSigner",
    "RsaSignatureVerifier", "RsaTokenSigner",
    "HmacSignatureVerifier", "HmacTokenSigner",
    "hmac_sign",
]
