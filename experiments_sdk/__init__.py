"""
experiments_sdk
───────────────
Stable top-level exports. Import from here, not from sub-modules directly.
Every name exported here is part of the public API and subject to semver.
"""
from experiments_sdk.tier0_core.logging import get_logger
from experiments_sdk.tier0_core.errors import (
    ExperimentsError,
    ConfigurationError,
    TokenError,
    VerificationError,
)
from experiments_sdk.tier0_core.config import get_config, ExperimentsConfig, HostConfig

from experiments_sdk.tier1_runtime.clock import Clock
from experiments_sdk.tier1_runtime.rng import (
    RandomSource,
    SystemRandomSource,
    SeededRandomSource,
    ScriptedRandomSource,
)
from experiments_sdk.tier1_runtime.page import CookieJar, Document, Location
from experiments_sdk.tier1_runtime.session import PageSession, new_session

from experiments_sdk.tier2_reliability.crypto import (
    SignatureVerifier,
    RsaSignatureVerifier,
    HmacSignatureVerifier,
)

from experiments_sdk.tier3_platform.experiments import (
    is_experiment_on,
    experiment_toggles,
    toggle_experiment,
    reset_experiment_toggles,
    is_canary,
    get_binary_type,
    ExperimentInfo,
    randomly_select_unset_experiments,
    get_experiment_branch,
    force_experiment_branch,
)
from experiments_sdk.tier3_platform.origin_experiments import is_origin_experiment_on

__version__ = "0.1.0"
__all__ = [
    # logging
    "get_logger",
    # errors
    "ExperimentsError", "ConfigurationError", "TokenError", "VerificationError",
    # config
    "get_config", "ExperimentsConfig", "HostConfig",
    # runtime
    "Clock",
    "RandomSource", "SystemRandomSource", "SeededRandomSource", "ScriptedRandomSource",
    "CookieJar", "Document", "Location",
    "PageSession", "new_session",
    # crypto
    "SignatureVerifier", "RsaSignatureVerifier", "HmacSignatureVerifier",
    # experiments
    "is_experiment_on", "experiment_toggles", "toggle_experiment",
    "reset_experiment_toggles", "is_canary", "get_binary_type",
    "ExperimentInfo", "randomly_select_unset_experiments",
    "get_experiment_branch", "force_experiment_branch",
    # origin experiments
    "is_origin_experiment_on",
]
