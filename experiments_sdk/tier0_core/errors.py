"""
experiments_sdk.tier0_core.errors
──────────────────────────────────
Error taxonomy for the experiments SDK. Every error carries a stable,
machine-readable code plus internal detail.

Public resolution APIs never let these escape on malformed input: they are
raised inside parsing/verification helpers and converted to a fail-closed
result at the module boundary.
"""
from __future__ import annotations

from typing import Any


# ── Base error ────────────────────────────────────────────────────────────────

class ExperimentsError(Exception):
    """
    Base class for all experiments SDK errors. Every error has:
    - code: stable machine-readable string (snake_case)
    - detail: internal context, safe to log
    - metadata: structured fields for log records
    """

    code: str = "experiments_error"

    def __init__(
        self,
        code: str | None = None,
        detail: str = "Experiment evaluation failed.",
        **metadata: Any,
    ) -> None:
        self.code = code or self.__class__.code
        self.detail = detail
        self.metadata = metadata
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.detail,
                **self.metadata,
            }
        }


# ── Typed error classes ───────────────────────────────────────────────────────

class ConfigurationError(ExperimentsError):
    """Misconfiguration detected while building settings or a session."""
    code = "configuration_error"


class TokenError(ExperimentsError):
    """Origin experiment token is malformed, truncated or carries a bad payload."""
    code = "malformed_token"


class VerificationError(ExperimentsError):
    """Token signature did not verify against the configured key."""
    code = "signature_invalid"


__all__ = [
    "ExperimentsError",
    "ConfigurationError",
    "TokenError",
    "VerificationError",
]
