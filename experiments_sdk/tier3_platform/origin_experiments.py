"""
experiments_sdk.tier3_platform.origin_experiments
──────────────────────────────────────────────────
Origin experiments: a site enables an experiment for its own origin by
embedding a signed token in

    <meta name="amp-experiment-token" content="...">

Token envelope (standard base64):

    version   1 byte, must be 0
    length    uint32, big-endian, byte length of the config
    config    UTF-8 JSON {"origin": ..., "experiment": ..., "expiration": ms}
    signature the remaining bytes, over version + length + config

Validation is fail-closed: any missing capability, malformed token, bad
signature, origin or name mismatch, or expired token resolves to False.
"""
from __future__ import annotations

import base64
import binascii
import json
import struct
from dataclasses import dataclass
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from experiments_sdk.tier0_core.errors import ExperimentsError, TokenError, VerificationError
from experiments_sdk.tier0_core.logging import get_logger
from experiments_sdk.tier1_runtime.session import PageSession
from experiments_sdk.tier2_reliability.crypto import SignatureVerifier, TokenSigner

logger = get_logger(__name__)

TOKEN_META_NAME = "amp-experiment-token"
TOKEN_VERSION = 0

_HEADER = struct.Struct(">BI")


# ── Domain model ─────────────────────────────────────────────────────────────

class OriginExperimentToken(BaseModel):
    """Decoded token config."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    origin: str
    experiment: str
    expiration: float = Field(allow_inf_nan=False)  # milliseconds since the Unix epoch


@dataclass(frozen=True)
class SignedToken:
    signed_data: bytes
    signature: bytes
    config: bytes


# ── Envelope codec ───────────────────────────────────────────────────────────

def decode_token(token: str) -> SignedToken:
    """Split a base64 token into its signed bytes, signature and config. Raises TokenError."""
    try:
        raw = base64.b64decode(token.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise TokenError(detail="Token is not valid base64") from exc

    if len(raw) < _HEADER.size:
        raise TokenError(detail="Token is shorter than its header", length=len(raw))
    version, config_length = _HEADER.unpack_from(raw)
    if version != TOKEN_VERSION:
        raise TokenError("unsupported_token_version", "Unsupported token version", version=version)

    config_end = _HEADER.size + config_length
    if config_end > len(raw):
        raise TokenError(detail="Token config length exceeds token size", config_length=config_length)
    signature = raw[config_end:]
    if not signature:
        raise TokenError(detail="Token carries no signature")
    return SignedToken(
        signed_data=raw[:config_end],
        signature=signature,
        config=raw[_HEADER.size:config_end],
    )


def parse_token_config(config: bytes) -> OriginExperimentToken:
    """Validate the JSON config. Raises TokenError on bad JSON or missing fields."""
    try:
        return OriginExperimentToken.model_validate_json(config)
    except PydanticValidationError as exc:
        raise TokenError(detail="Token config is invalid", errors=exc.error_count()) from exc


def encode_token(signer: TokenSigner, config: OriginExperimentToken | Mapping[str, Any]) -> str:
    """
    Build a signed token. Used by tooling that issues tokens, and by tests.

    Usage:
        token = encode_token(signer, {
            "origin": "https://example.com",
            "experiment": "amp-foo",
            "expiration": 1893456000000,
        })
    """
    if isinstance(config, OriginExperimentToken):
        config = config.model_dump()
    config_bytes = json.dumps(dict(config), separators=(",", ":")).encode()
    signed_data = _HEADER.pack(TOKEN_VERSION, len(config_bytes)) + config_bytes
    return base64.b64encode(signed_data + signer.sign(signed_data)).decode("ascii")


async def verify_token(verifier: SignatureVerifier, token: str) -> OriginExperimentToken:
    """Decode, verify and parse *token*. Raises TokenError or VerificationError."""
    signed = decode_token(token)
    try:
        valid = await verifier.verify(signed.signature, signed.signed_data)
    except Exception as exc:
        raise VerificationError(detail="Signature verifier failed", error=type(exc).__name__) from exc
    if not valid:
        raise VerificationError()
    return parse_token_config(signed.config)


# ── Public API ───────────────────────────────────────────────────────────────

async def _enabled_origin_experiments(session: PageSession) -> frozenset[str]:
    enabled: set[str] = set()
    origin = session.location.origin
    for token in session.document.meta_contents(TOKEN_META_NAME):
        if not token or not token.strip():
            continue
        try:
            config = await verify_token(session.verifier, token)
        except ExperimentsError as exc:
            logger.warning("origin_experiment.rejected", reason=exc.code)
            continue
        if config.origin != origin:
            logger.warning(
                "origin_experiment.rejected",
                reason="origin_mismatch",
                token_origin=config.origin,
                page_origin=origin,
            )
            continue
        if config.expiration < session.clock.timestamp_ms():
            logger.warning("origin_experiment.rejected", reason="expired", experiment=config.experiment)
            continue
        enabled.add(config.experiment)
    return frozenset(enabled)


async def is_origin_experiment_on(
    session: PageSession,
    experiment_name: str,
    refresh_token: bool = False,
) -> bool:
    """
    True iff a valid token on the page enables *experiment_name* for the
    page's origin. Verified tokens are cached on the session; pass
    refresh_token=True to re-read and re-verify them.
    """
    if session.verifier is None:
        logger.debug("origin_experiment.unavailable", experiment=experiment_name)
        return False
    if session.origin_experiments is None or refresh_token:
        session.origin_experiments = await _enabled_origin_experiments(session)
    return experiment_name in session.origin_experiments


__all__ = [
    "TOKEN_META_NAME",
    "OriginExperimentToken",
    "SignedToken",
    "decode_token",
    "parse_token_config",
    "encode_token",
    "verify_token",
    "is_origin_experiment_on",
]
