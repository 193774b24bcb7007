"""
experiments_sdk test configuration.

All tests run against in-memory page primitives and scripted randomness,
no browser or network required.
"""
from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

import pytest

# ── Force deterministic settings for all tests ────────────────────────────
# These must be set before any experiments_sdk modules are imported.

os.environ.setdefault("EXPERIMENTS_ENV", "test")
os.environ.setdefault("EXPERIMENTS_LOG_LEVEL", "WARNING")
os.environ.setdefault("EXPERIMENTS_RANDOM_BACKEND", "seeded")
os.environ.setdefault("EXPERIMENTS_RANDOM_SEED", "1234")


EPOCH_PLUS_1MS = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=1)


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def reset_config_cache():
    """Each test sees the env as it stands, never a config cached by another test."""
    from experiments_sdk.tier0_core.config import _reset_config

    _reset_config()
    yield
    _reset_config()


@pytest.fixture(autouse=True)
def clear_log_context():
    """Log fields bound by one test's sessions never leak into the next."""
    from experiments_sdk.tier0_core.logging import clear_context

    clear_context()
    yield
    clear_context()


@pytest.fixture
def scripted_rng():
    """A ScriptedRandomSource that returns -1 unless a test scripts draws."""
    from experiments_sdk.tier1_runtime.rng import ScriptedRandomSource
    return ScriptedRandomSource(default=-1.0)


@pytest.fixture
def frozen_clock():
    """Clock frozen one millisecond after the Unix epoch."""
    from experiments_sdk.tier1_runtime.clock import Clock
    return Clock().freeze(EPOCH_PLUS_1MS)


@pytest.fixture
def make_session(scripted_rng):
    """Factory for PageSessions wired to the scripted random source."""
    from experiments_sdk.tier1_runtime.session import new_session

    def _make(href: str = "https://test.test/test.html", **kwargs):
        kwargs.setdefault("rng", scripted_rng)
        return new_session(href, **kwargs)

    return _make


@pytest.fixture(scope="session")
def rsa_signer():
    """One 2048-bit RSA key pair shared across the run (generation is slow)."""
    from experiments_sdk.tier2_reliability.crypto import RsaTokenSigner
    return RsaTokenSigner.generate()
