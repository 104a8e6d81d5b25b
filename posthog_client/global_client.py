"""Process-wide PostHog client.

Module-level functions forwarding to a single client. Until :func:`init` is
called they forward to a no-op client, so library code can call
``posthog_client.capture(...)`` unconditionally.

Usage:
    import posthog_client

    posthog_client.init("phc_...", personal_api_key="phx_...")
    posthog_client.capture("user-123", "signed_up")
    posthog_client.shutdown(timeout=5)
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from .base import BaseClient
from .client import PostHogClient
from .config import PostHogSettings
from .errors import ClientAlreadyInitializedError
from .feature_flags import FeatureFlagContext, FeatureFlagState, FeatureFlagStates
from .noop import NOOP_CLIENT

logger = logging.getLogger(__name__)

_client: BaseClient = NOOP_CLIENT
_lock = threading.Lock()


def init(
    project_api_key: str,
    configure: Optional[Callable[[PostHogSettings], PostHogSettings]] = None,
    **options: Any,
) -> BaseClient:
    """
    Create the global client.

    Args:
        project_api_key: Project API key.
        configure: Optional hook receiving the settings built from ``options`` and
            returning the settings to use, e.g. ``lambda s: s.model_copy(update={...})``.
        **options: `PostHogSettings` fields plus ``http_client`` / ``json_default``.

    Raises:
        ClientAlreadyInitializedError: If the global client was already initialized.
    """
    global _client
    http_client = options.pop("http_client", None)
    json_default = options.pop("json_default", None)
    with _lock:
        if _client is not NOOP_CLIENT:
            raise ClientAlreadyInitializedError()
        settings = PostHogSettings.from_options(project_api_key, **options)
        if configure is not None:
            settings = configure(settings)
        _client = PostHogClient(settings, http_client=http_client, json_default=json_default)
        logger.debug("Global PostHog client initialized")
        return _client


def get_client() -> BaseClient:
    return _client


def shutdown(timeout: Optional[float] = None) -> None:
    """Shut the global client down and fall back to the no-op client."""
    global _client
    with _lock:
        client = _client
        _client = NOOP_CLIENT
    client.shutdown(timeout)


# Events


def capture(distinct_id: str, event: str, properties: Any = None, **kwargs: Any) -> None:
    _client.capture(distinct_id, event, properties, **kwargs)


def identify(distinct_id: str, properties: Any = None, properties_set_once: Any = None) -> None:
    _client.identify(distinct_id, properties, properties_set_once)


def set(distinct_id: str, properties: Any = None, properties_set_once: Any = None) -> None:
    _client.set(distinct_id, properties, properties_set_once)


def alias(distinct_id: str, alias: str) -> None:
    _client.alias(distinct_id, alias)


def group_identify(group_type: str, group_key: str, properties: Any) -> None:
    _client.group_identify(group_type, group_key, properties)


def flush() -> None:
    _client.flush()


# Feature flags


def is_feature_enabled(key: str, distinct_id: str, context: Optional[FeatureFlagContext] = None) -> bool:
    return _client.is_feature_enabled(key, distinct_id, context)


def get_feature_flag(key: str, distinct_id: str, context: Optional[FeatureFlagContext] = None) -> FeatureFlagState:
    return _client.get_feature_flag(key, distinct_id, context)


def get_feature_flag_payload(key: str, distinct_id: str, context: Optional[FeatureFlagContext] = None) -> Optional[str]:
    return _client.get_feature_flag_payload(key, distinct_id, context)


def get_all_feature_flags(distinct_id: str, context: Optional[FeatureFlagContext] = None) -> FeatureFlagStates:
    return _client.get_all_feature_flags(distinct_id, context)


def reload_feature_flags() -> None:
    _client.reload_feature_flags()


# Exceptions


def capture_exception(exc: BaseException, distinct_id: Optional[str] = None, properties: Any = None) -> None:
    _client.capture_exception(exc, distinct_id, properties)
