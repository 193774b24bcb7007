"""
experiments_sdk.tier1_runtime.session
──────────────────────────────────────
PageSession: everything one page view needs to resolve experiments, passed
explicitly to every resolver call. The session owns the decision cache, the
branch map and the verified origin-token cache; nothing outside
experiments_sdk.tier3_platform mutates them.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from experiments_sdk.tier0_core.config import HostConfig, get_config
from experiments_sdk.tier0_core.logging import bind_context
from experiments_sdk.tier1_runtime.clock import Clock
from experiments_sdk.tier1_runtime.page import CookieJar, Document, Location
from experiments_sdk.tier1_runtime.rng import RandomSource, get_random_source

if TYPE_CHECKING:
    from experiments_sdk.tier2_reliability.crypto import SignatureVerifier


@dataclass
class PageSession:
    """Per-page state plus the injected collaborators."""
    location: Location = field(default_factory=lambda: Location(""))
    document: Document = field(default_factory=Document)
    host_config: HostConfig = field(default_factory=HostConfig)
    rng: RandomSource = field(default_factory=lambda: get_random_source())
    clock: Clock = field(default_factory=Clock)
    verifier: "SignatureVerifier | None" = None
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    cookie_max_age_days: int = field(default_factory=lambda: get_config().cookie_max_age_days)
    metadata: dict[str, Any] = field(default_factory=dict)

    # Owned state. None means "not built yet"; see tier3_platform.experiments.
    toggles: dict[str, bool] | None = field(default=None, repr=False)
    branches: dict[str, str | None] = field(default_factory=dict, repr=False)
    origin_experiments: frozenset[str] | None = field(default=None, repr=False)

    @property
    def cookies(self) -> CookieJar:
        return self.document.cookies


def new_session(
    href: str = "",
    *,
    cookie: str | None = None,
    amp_config: Mapping[str, Any] | None = None,
    meta: Mapping[str, str | list[str]] | None = None,
    rng: RandomSource | None = None,
    clock: Clock | None = None,
    verifier: "SignatureVerifier | None" = None,
    original_hash: str | None = None,
    **metadata: Any,
) -> PageSession:
    """
    Build a PageSession from raw request material and bind its session id
    and host to the structlog context for the current scope.

    Usage:
        session = new_session(
            "https://example.com/article.html",
            cookie="AMP_EXP=-exp3,exp4",
            amp_config={"exp1": 1, "exp2": 0.25, "allow-url-opt-in": ["exp2"]},
            meta={"amp-experiments-opt-in": "exp1,exp2"},
        )
    """
    clock = clock or Clock()
    document = Document(cookies=CookieJar.from_header(cookie, clock=clock))
    for name, content in (meta or {}).items():
        for value in [content] if isinstance(content, str) else content:
            document.add_meta(name, value)
    session = PageSession(
        location=Location(href, original_hash=original_hash),
        document=document,
        host_config=HostConfig.from_mapping(amp_config),
        rng=rng or get_random_source(),
        clock=clock,
        verifier=verifier,
        metadata=metadata,
    )
    bind_context(session_id=session.session_id, page_host=session.location.hostname)
    return session


__all__ = ["PageSession", "new_session"]
