"""
experiments_sdk.tier3_platform.experiments
───────────────────────────────────────────
Per-page experiment resolution: is a named experiment on for this page
session, and which branch does the visitor fall into?

Sources, highest precedence first:
  1. The session's decision cache (every answer is cached once derived)
  2. URL hash override  #e-<name>=1|0   (names in allow-url-opt-in only)
  3. <meta name="amp-experiments-opt-in" content="a,b">  (allow-doc-opt-in only)
  4. The AMP_EXP cookie override list  "a,-b,c"
  5. Host config frequency: deterministic bool, or one random draw
  6. Off

Toggles write the decision cache immediately and, unless transient, persist
the override list back to the AMP_EXP cookie. Branch selection draws at most
once per experiment per session.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence

from experiments_sdk.tier0_core.logging import get_logger
from experiments_sdk.tier1_runtime.rng import RandomSource
from experiments_sdk.tier1_runtime.session import PageSession

logger = get_logger(__name__)

COOKIE_NAME = "AMP_EXP"
DOC_OPT_IN_META_NAME = "amp-experiments-opt-in"
URL_PARAM_PREFIX = "e-"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ── Override list (cookie value) ─────────────────────────────────────────────

def parse_experiment_overrides(text: str | None) -> dict[str, bool]:
    """
    Parse 'a, -b ,c' into {'a': True, 'b': False, 'c': True}.
    Empty or malformed input yields {}; later duplicates win.
    """
    overrides: dict[str, bool] = {}
    if not text:
        return overrides
    for token in text.split(","):
        token = token.strip()
        if token.startswith("-"):
            name, on = token[1:].strip(), False
        else:
            name, on = token, True
        if name:
            overrides[name] = on
    return overrides


def serialize_experiment_overrides(overrides: Mapping[str, bool]) -> str:
    return ",".join(("" if on else "-") + name for name, on in overrides.items())


def get_experiment_toggles_from_cookie(session: PageSession) -> dict[str, bool]:
    """Override list as currently stored in the session's cookie jar."""
    return parse_experiment_overrides(session.cookies.get(COOKIE_NAME))


def _save_experiment_toggles_to_cookie(session: PageSession, overrides: Mapping[str, bool]) -> None:
    session.cookies.set(
        COOKIE_NAME,
        serialize_experiment_overrides(overrides),
        session.clock.after(days=session.cookie_max_age_days),
        path="/",
        domain=session.location.hostname or None,
    )


# ── Frequency resolver ───────────────────────────────────────────────────────

def resolve_frequency(frequency: bool | float, rng: RandomSource) -> bool:
    """
    Booleans are deterministic and consume no draw. A float f turns the
    experiment on with probability f: on iff the draw is strictly below f.
    """
    if isinstance(frequency, bool):
        return frequency
    return rng.random() < frequency


# ── Decision sources ─────────────────────────────────────────────────────────

def _url_override(session: PageSession, name: str) -> bool | None:
    if name not in session.host_config.allow_url_opt_in:
        return None
    value = session.location.hash_params().get(URL_PARAM_PREFIX + name)
    if value == "1":
        return True
    if value == "0":
        return False
    return None


def _doc_opt_in(session: PageSession, name: str) -> bool | None:
    if name not in session.host_config.allow_doc_opt_in:
        return None
    content = session.document.meta_content(DOC_OPT_IN_META_NAME)
    if not content:
        return None
    opted_in = {entry.strip() for entry in content.split(",")}
    return True if name in opted_in else None


def _cookie_override(session: PageSession, name: str) -> bool | None:
    return get_experiment_toggles_from_cookie(session).get(name)


def _host_frequency(session: PageSession, name: str) -> bool | None:
    frequency = session.host_config.frequencies.get(name)
    if frequency is None:
        return None
    return resolve_frequency(frequency, session.rng)


_SOURCES: tuple[tuple[str, Callable[[PageSession, str], bool | None]], ...] = (
    ("url", _url_override),
    ("meta", _doc_opt_in),
    ("cookie", _cookie_override),
    ("config", _host_frequency),
)


def _decision_cache(session: PageSession) -> dict[str, bool]:
    if session.toggles is None:
        session.toggles = {}
    return session.toggles


# ── Public API ───────────────────────────────────────────────────────────────

def is_experiment_on(session: PageSession, name: str) -> bool:
    """Resolve *name* for this session. Sources are consulted at most once."""
    cache = _decision_cache(session)
    if name in cache:
        return cache[name]

    on, source = False, "default"
    for source_name, read in _SOURCES:
        value = read(session, name)
        if value is not None:
            on, source = value, source_name
            break

    cache[name] = on
    logger.debug("experiment.resolved", experiment=name, on=on, source=source)
    return on


def experiment_toggles(session: PageSession) -> dict[str, bool]:
    """
    Resolve every experiment the session knows about (host frequencies,
    cookie overrides, whitelisted meta/URL overrides) and return a copy of
    the decision cache.
    """
    config = session.host_config
    names: dict[str, None] = dict.fromkeys(config.frequencies)
    names.update(dict.fromkeys(get_experiment_toggles_from_cookie(session)))
    names.update(dict.fromkeys(n for n in config.allow_doc_opt_in if _doc_opt_in(session, n)))
    names.update(dict.fromkeys(n for n in config.allow_url_opt_in if _url_override(session, n) is not None))
    for name in names:
        is_experiment_on(session, name)
    return dict(_decision_cache(session))


def toggle_experiment(
    session: PageSession,
    name: str,
    force: bool | None = None,
    transient: bool = False,
) -> bool:
    """
    Flip (or force) *name* and return the new state.

    The decision cache is updated immediately. Unless *transient*, the
    AMP_EXP cookie is rewritten with *name* set to the new state; all other
    entries keep their value and position.
    """
    currently_on = is_experiment_on(session, name)
    on = (not currently_on) if force is None else bool(force)

    if on != currently_on:
        _decision_cache(session)[name] = on

    if not transient:
        overrides = get_experiment_toggles_from_cookie(session)
        if on != currently_on or overrides.get(name, on) != on:
            overrides[name] = on
            _save_experiment_toggles_to_cookie(session, overrides)

    logger.info(
        "experiment.toggled",
        experiment=name,
        on=on,
        changed=on != currently_on,
        transient=transient,
    )
    return on


def reset_experiment_toggles(session: PageSession) -> None:
    """
    Test/debug affordance: forget every cached decision and expire the
    AMP_EXP cookie, so the next evaluation re-derives from live sources.
    """
    session.toggles = None
    session.cookies.set(
        COOKIE_NAME,
        "",
        _EPOCH,
        path="/",
        domain=session.location.hostname or None,
    )


def is_canary(session: PageSession) -> bool:
    return session.host_config.canary


def get_binary_type(session: PageSession) -> str:
    return session.host_config.binary_type or "unknown"


# ── Branch selection ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExperimentInfo:
    """
    Describes a branched experiment.

    is_traffic_eligible must be supplied for a branch to ever be chosen;
    pass ``lambda session: True`` for unconditional eligibility.
    """
    branches: Sequence[str]
    is_traffic_eligible: Callable[[PageSession], bool] | None = None

    def __post_init__(self) -> None:
        if not self.branches:
            raise ValueError("ExperimentInfo.branches must not be empty")
        object.__setattr__(self, "branches", tuple(self.branches))


def _as_experiment_info(descriptor: ExperimentInfo | Mapping[str, Any]) -> ExperimentInfo | None:
    if isinstance(descriptor, ExperimentInfo):
        return descriptor
    if not isinstance(descriptor, Mapping):
        return None
    branches = descriptor.get("branches")
    if not branches or not isinstance(branches, (list, tuple)):
        return None
    eligible = descriptor.get("is_traffic_eligible", descriptor.get("isTrafficEligible"))
    return ExperimentInfo(branches=tuple(branches), is_traffic_eligible=eligible)


def _is_traffic_eligible(session: PageSession, name: str, info: ExperimentInfo) -> bool:
    if info.is_traffic_eligible is None:
        return False
    try:
        return bool(info.is_traffic_eligible(session))
    except Exception as exc:
        logger.warning(
            "experiment.eligibility_failed",
            experiment=name,
            error=type(exc).__name__,
        )
        return False


def bucket_index(draw: float, count: int) -> int:
    """
    Map a draw in [0, 1) onto *count* equal-width buckets. A draw sitting
    exactly on an inner boundary k/count belongs to the lower bucket.
    """
    return sum(1 for k in range(1, count) if draw > k / count)


def randomly_select_unset_experiments(
    session: PageSession,
    experiments: Mapping[str, ExperimentInfo | Mapping[str, Any]],
) -> dict[str, str | None]:
    """
    Choose a branch for every experiment in *experiments* that has no branch
    decision yet in this session, and return the decisions for all of them.

    An experiment that is ineligible, inactive or malformed is recorded as
    None and never reconsidered. Each decided experiment costs one draw.
    """
    for name, descriptor in experiments.items():
        if name in session.branches:
            continue

        info = _as_experiment_info(descriptor)
        if info is None or not _is_traffic_eligible(session, name, info):
            session.branches[name] = None
            continue
        if not is_experiment_on(session, name):
            session.branches[name] = None
            continue

        branch = info.branches[bucket_index(session.rng.random(), len(info.branches))]
        session.branches[name] = branch
        logger.info("experiment.branch_selected", experiment=name, branch=branch)

    return {name: session.branches[name] for name in experiments}


def get_experiment_branch(session: PageSession, name: str) -> str | None:
    return session.branches.get(name)


def force_experiment_branch(session: PageSession, name: str, branch_id: str | None) -> None:
    """
    Debug affordance: transiently turn *name* on (off when branch_id is None)
    and record *branch_id*, replacing any earlier decision.
    """
    toggle_experiment(session, name, branch_id is not None, transient=True)
    session.branches[name] = branch_id


__all__ = [
    "COOKIE_NAME",
    "DOC_OPT_IN_META_NAME",
    "parse_experiment_overrides",
    "serialize_experiment_overrides",
    "get_experiment_toggles_from_cookie",
    "resolve_frequency",
    "is_experiment_on",
    "experiment_toggles",
    "toggle_experiment",
    "reset_experiment_toggles",
    "is_canary",
    "get_binary_type",
    "ExperimentInfo",
    "bucket_index",
    "randomly_select_unset_experiments",
    "get_experiment_branch",
    "force_experiment_branch",
]
