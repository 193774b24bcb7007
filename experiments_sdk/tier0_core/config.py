"""
experiments_sdk.tier0_core.config
──────────────────────────────────
Two layers of configuration:

- ExperimentsConfig: typed SDK settings with env layering (.env → env vars),
  via pydantic-settings. Cached; call _reset_config() in tests.
- HostConfig: the structured form of the host-supplied AMP_CONFIG mapping.
  Reserved control keys (allow-lists, canary, binary type, version) are split
  away from experiment frequencies so an experiment can never collide with
  a control key.

Minimal stack: pydantic-settings + python-dotenv
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ExperimentsConfig(BaseSettings):
    """
    Typed SDK configuration. All env vars are prefixed with EXPERIMENTS_.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ───────────────────────────────────────────────────────────
    environment: str = Field(default="development", alias="EXPERIMENTS_ENV")

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="EXPERIMENTS_LOG_LEVEL")
    log_format: str = Field(default="json", alias="EXPERIMENTS_LOG_FORMAT")

    # ── Cookie persistence ────────────────────────────────────────────────────
    cookie_max_age_days: int = Field(default=180, alias="EXPERIMENTS_COOKIE_MAX_AGE_DAYS")

    # ── Randomness ────────────────────────────────────────────────────────────
    random_backend: str = Field(default="system", alias="EXPERIMENTS_RANDOM_BACKEND")
    random_seed: int | None = Field(default=None, alias="EXPERIMENTS_RANDOM_SEED")

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if v.lower() not in allowed:
            raise ValueError(f"environment must be one of {allowed}, got {v!r}")
        return v.lower()

    @field_validator("cookie_max_age_days")
    @classmethod
    def validate_max_age(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"cookie_max_age_days must be positive, got {v}")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_test(self) -> bool:
        return self.environment == "test"


@lru_cache(maxsize=1)
def get_config() -> ExperimentsConfig:
    """
    Return the singleton SDK config. Cached after first call.
    Call _reset_config() in tests to pick up new env vars.
    """
    return ExperimentsConfig()


def _reset_config() -> None:
    """For tests: clear the config cache."""
    get_config.cache_clear()


# ── Host configuration (AMP_CONFIG) ──────────────────────────────────────────

ALLOW_DOC_OPT_IN_KEY = "allow-doc-opt-in"
ALLOW_URL_OPT_IN_KEY = "allow-url-opt-in"
CANARY_KEY = "canary"
BINARY_TYPE_KEY = "type"
VERSION_KEY = "v"

RESERVED_KEYS = frozenset({
    ALLOW_DOC_OPT_IN_KEY,
    ALLOW_URL_OPT_IN_KEY,
    CANARY_KEY,
    BINARY_TYPE_KEY,
    VERSION_KEY,
})

_TRUE_STRINGS = frozenset({"1", "true"})
_FALSE_STRINGS = frozenset({"0", "false"})


def coerce_frequency(value: Any) -> bool | float | None:
    """
    Normalize a raw config value into a frequency.

    Booleans and the boolean-like values 1/0/"1"/"0"/"true"/"false" become
    deterministic bools. Numbers strictly between 0 and 1 stay floats.
    Anything else is not an experiment setting and yields None.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
        if 0 < value < 1:
            return float(value)
        return None
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def _name_list(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(v for v in value if isinstance(v, str) and v)


class HostConfig(BaseModel):
    """Host-supplied static settings: per-experiment frequency plus control keys."""

    model_config = ConfigDict(frozen=True)

    frequencies: dict[str, bool | float] = Field(default_factory=dict)
    allow_doc_opt_in: tuple[str, ...] = ()
    allow_url_opt_in: tuple[str, ...] = ()
    canary: bool = False
    binary_type: str = "unknown"
    version: str | None = None

    @field_validator("frequencies", mode="before")
    @classmethod
    def validate_frequencies(cls, v: Any) -> dict[str, bool | float]:
        if not isinstance(v, Mapping):
            raise ValueError("frequencies must be a mapping")
        normalized: dict[str, bool | float] = {}
        for name, raw in v.items():
            if name in RESERVED_KEYS:
                raise ValueError(f"{name!r} is a reserved key, not an experiment")
            frequency = coerce_frequency(raw)
            if frequency is None:
                raise ValueError(f"invalid frequency for {name!r}: {raw!r}")
            normalized[name] = frequency
        return normalized

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "HostConfig":
        """
        Build a HostConfig from a flat AMP_CONFIG-style mapping.

        Reserved keys are routed to their dedicated fields; values that are
        neither boolean-like nor a frequency in [0, 1] are dropped.
        """
        if not raw:
            return cls()
        frequencies: dict[str, bool | float] = {}
        for name, value in raw.items():
            if name in RESERVED_KEYS:
                continue
            frequency = coerce_frequency(value)
            if frequency is not None:
                frequencies[name] = frequency
        binary_type = raw.get(BINARY_TYPE_KEY)
        version = raw.get(VERSION_KEY)
        return cls(
            frequencies=frequencies,
            allow_doc_opt_in=_name_list(raw.get(ALLOW_DOC_OPT_IN_KEY)),
            allow_url_opt_in=_name_list(raw.get(ALLOW_URL_OPT_IN_KEY)),
            canary=bool(raw.get(CANARY_KEY)),
            binary_type=binary_type if isinstance(binary_type, str) and binary_type else "unknown",
            version=str(version) if version is not None else None,
        )


__all__ = [
    "ExperimentsConfig",
    "get_config",
    "HostConfig",
    "coerce_frequency",
    "RESERVED_KEYS",
    "ALLOW_DOC_OPT_IN_KEY",
    "ALLOW_URL_OPT_IN_KEY",
]
