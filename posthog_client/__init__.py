"""Unofficial PostHog client.

Event capture, feature flags (local and remote evaluation) and exception
capture for PostHog, plus module-level shortcuts over a global client.
"""

import logging

from . import names
from ._version import __version__
from .base import BaseClient
from .client import PostHogClient
from .config import PostHogSettings
from .errors import (
    ClientAlreadyInitializedError,
    ClientClosedError,
    LocalEvaluationNotEnabledError,
    PostHogApiError,
    PostHogError,
)
from .feature_flags import FeatureFlagContext, FeatureFlagState, FeatureFlagStates
from .global_client import (
    alias,
    capture,
    capture_exception,
    flush,
    get_all_feature_flags,
    get_client,
    get_feature_flag,
    get_feature_flag_payload,
    group_identify,
    identify,
    init,
    is_feature_enabled,
    reload_feature_flags,
    set,
    shutdown,
)
from .logging_config import setup_logging
from .noop import NoopPostHogClient

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BaseClient",
    "ClientAlreadyInitializedError",
    "ClientClosedError",
    "FeatureFlagContext",
    "FeatureFlagState",
    "FeatureFlagStates",
    "LocalEvaluationNotEnabledError",
    "NoopPostHogClient",
    "PostHogApiError",
    "PostHogClient",
    "PostHogError",
    "PostHogSettings",
    "__version__",
    "alias",
    "capture",
    "capture_exception",
    "flush",
    "get_all_feature_flags",
    "get_client",
    "get_feature_flag",
    "get_feature_flag_payload",
    "group_identify",
    "identify",
    "init",
    "is_feature_enabled",
    "names",
    "reload_feature_flags",
    "set",
    "setup_logging",
    "shutdown",
]
