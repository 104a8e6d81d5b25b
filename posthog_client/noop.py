from __future__ import annotations

from typing import Any, Optional

from .base import BaseClient
from .feature_flags import FeatureFlagContext, FeatureFlagState, FeatureFlagStates


class NoopPostHogClient(BaseClient):
    """Client that accepts every call and does nothing.

    Used by the module-level API until :func:`posthog_client.init` is called,
    and handy in tests or environments where analytics are switched off.
    Flags always read as disabled.
    """

    def shutdown(self, timeout: Optional[float] = None) -> None:
        pass

    def flush(self) -> None:
        pass

    def capture(
        self,
        distinct_id: str,
        event: str,
        properties: Any = None,
        *,
        timestamp: Optional[Any] = None,
        uuid: Optional[str] = None,
    ) -> None:
        pass

    def get_feature_flag(
        self, key: str, distinct_id: str, context: Optional[FeatureFlagContext] = None
    ) -> FeatureFlagState:
        return FeatureFlagState.DISABLED

    def get_all_feature_flags(
        self, distinct_id: str, context: Optional[FeatureFlagContext] = None
    ) -> FeatureFlagStates:
        return FeatureFlagStates.EMPTY

    def reload_feature_flags(self) -> None:
        pass

    def capture_exception(
        self,
        exc: BaseException,
        distinct_id: Optional[str] = None,
        properties: Any = None,
    ) -> None:
        pass


NOOP_CLIENT = NoopPostHogClient()
