"""
experiments_sdk.tier1_runtime.rng
──────────────────────────────────
Injectable pseudo-random source. Every frequency draw and branch draw for a
page session comes from the single RandomSource held by that session, so a
test can script successive draws (first call, second call, ...) and count
how many were consumed.

Select the production source via: EXPERIMENTS_RANDOM_BACKEND=system|seeded
"""
from __future__ import annotations

import random as _random
from typing import Iterable, Protocol, runtime_checkable

from experiments_sdk.tier0_core.errors import ConfigurationError


# ── Protocol ───────────────────────────────────────────────────────────────

@runtime_checkable
class RandomSource(Protocol):
    """Uniform draws in [0, 1)."""

    def random(self) -> float: ...


# ── Implementations ────────────────────────────────────────────────────────

class SystemRandomSource:
    """OS-entropy backed draws (the accurate PRNG for production pages)."""

    def __init__(self) -> None:
        self._rng = _random.SystemRandom()

    def random(self) -> float:
        return self._rng.random()


class SeededRandomSource:
    """Reproducible Mersenne Twister draws, useful for simulations."""

    def __init__(self, seed: int | None = None) -> None:
        self._rng = _random.Random(seed)

    def random(self) -> float:
        return self._rng.random()


class ScriptedRandomSource:
    """
    Returns scripted values in order, then *default* forever.

        rng = ScriptedRandomSource([0.7, 0.3])
        rng.random()  # 0.7 (first call)
        rng.random()  # 0.3 (second call)
        rng.calls     # 2
    """

    def __init__(self, values: Iterable[float] = (), default: float = 0.0) -> None:
        self._values = list(values)
        self.default = default
        self.calls = 0

    def push(self, *values: float) -> None:
        """Queue more scripted values after the current ones."""
        self._values.extend(values)

    def random(self) -> float:
        self.calls += 1
        if self._values:
            return self._values.pop(0)
        return self.default


# ── Factory ────────────────────────────────────────────────────────────────

def get_random_source(backend: str | None = None, seed: int | None = None) -> RandomSource:
    """
    Build a RandomSource for a new page session from config.
    Each session gets its own instance; there is no process-wide generator.
    """
    if backend is None:
        from experiments_sdk.tier0_core.config import get_config
        cfg = get_config()
        backend = cfg.random_backend
        seed = cfg.random_seed if seed is None else seed

    backend = backend.lower()
    if backend == "system":
        return SystemRandomSource()
    if backend == "seeded":
        return SeededRandomSource(seed)
    raise ConfigurationError(
        detail=f"Unknown EXPERIMENTS_RANDOM_BACKEND: {backend!r}. Supported: system, seeded",
        backend=backend,
    )


__all__ = [
    "RandomSource",
    "SystemRandomSource",
    "SeededRandomSource",
    "ScriptedRandomSource",
    "get_random_source",
]
