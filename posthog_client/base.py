"""Base interface for PostHog clients.

``BaseClient`` defines the public API shared by the real client and the no-op
client. Convenience operations (identify, alias, group identify, payload
lookup...) are implemented here once on top of the abstract primitives.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from . import names
from .feature_flags import FeatureFlagContext, FeatureFlagState, FeatureFlagStates


class BaseClient(ABC):
    """Base interface for PostHog clients.

    Clients are context managers; leaving the ``with`` block shuts the client
    down, sending anything still queued.
    """

    # =====================================================================
    # Lifecycle
    # =====================================================================

    @abstractmethod
    def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Flush pending events and release background threads and connections.

        Blocks until the final flush completes or ``timeout`` seconds pass.

        Raises:
            ClientClosedError: If the client has already been shut down.
        """

    @abstractmethod
    def flush(self) -> None:
        """Ask the event queue to send everything pending. Does not block."""

    def __enter__(self) -> "BaseClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    # =====================================================================
    # Events
    # =====================================================================

    @abstractmethod
    def capture(
        self,
        distinct_id: str,
        event: str,
        properties: Any = None,
        *,
        timestamp: Optional[Any] = None,
        uuid: Optional[str] = None,
    ) -> None:
        """
        Queue an event.

        Args:
            distinct_id: Person (or group) the event belongs to. Must not be empty.
            event: Event name. Must not be empty.
            properties: Mapping or any object that serializes to a JSON object.
            timestamp: When the event happened (datetime or ISO-8601 string); now if omitted.
            uuid: Event id used by PostHog for deduplication; random if omitted.

        Raises:
            ValueError: On an empty id/event or properties that are not a JSON object.
        """

    def identify(self, distinct_id: str, properties: Any = None, properties_set_once: Any = None) -> None:
        """Capture an ``$identify`` event setting person properties."""
        self.capture(distinct_id, names.IDENTIFY, _person_properties(properties, properties_set_once))

    def set(self, distinct_id: str, properties: Any = None, properties_set_once: Any = None) -> None:
        """Capture a ``$set`` event updating person properties."""
        self.capture(distinct_id, names.SET, _person_properties(properties, properties_set_once))

    def alias(self, distinct_id: str, alias: str) -> None:
        """Link ``alias`` to ``distinct_id`` with a ``$create_alias`` event."""
        if distinct_id is None or alias is None:
            raise ValueError("distinct_id and alias are required")
        self.capture(distinct_id, names.CREATE_ALIAS, {"distinct_id": distinct_id, "alias": alias})

    def group_identify(self, group_type: str, group_key: str, properties: Any) -> None:
        """Set properties on a group.

        The event is sent with the distinct id ``"<type>_<key>"``.
        """
        if properties is None:
            raise ValueError("properties may not be null")
        event_properties = {
            names.GROUP_TYPE: names.require_non_empty("type", group_type),
            names.GROUP_KEY: names.require_non_empty("key", group_key),
            names.GROUP_SET: properties,
        }
        self.capture(f"{group_type}_{group_key}", names.GROUP_IDENTIFY, event_properties)

    # =====================================================================
    # Feature flags
    # =====================================================================

    def is_feature_enabled(self, key: str, distinct_id: str, context: Optional[FeatureFlagContext] = None) -> bool:
        return self.get_feature_flag(key, distinct_id, context).enabled

    @abstractmethod
    def get_feature_flag(
        self, key: str, distinct_id: str, context: Optional[FeatureFlagContext] = None
    ) -> FeatureFlagState:
        """
        Evaluate a single feature flag for a person.

        Returns:
            FeatureFlagState: Never raises for network failures; those resolve to a disabled state.
        """

    def get_feature_flag_payload(
        self, key: str, distinct_id: str, context: Optional[FeatureFlagContext] = None
    ) -> Optional[str]:
        return self.get_feature_flag(key, distinct_id, context).payload

    @abstractmethod
    def get_all_feature_flags(
        self, distinct_id: str, context: Optional[FeatureFlagContext] = None
    ) -> FeatureFlagStates:
        """Evaluate every known feature flag for a person."""

    @abstractmethod
    def reload_feature_flags(self) -> None:
        """
        Reload local feature flag definitions now instead of waiting for the next poll.

        Raises:
            LocalEvaluationNotEnabledError: If no personal API key is configured.
        """

    # =====================================================================
    # Exceptions
    # =====================================================================

    @abstractmethod
    def capture_exception(
        self,
        exc: BaseException,
        distinct_id: Optional[str] = None,
        properties: Any = None,
    ) -> None:
        """
        Capture an ``$exception`` event for ``exc``.

        Never raises; failures are logged. Without a distinct id the event is
        sent for a random id without creating a person profile.
        """


def _person_properties(properties: Any, properties_set_once: Any) -> Dict[str, Any]:
    event_properties: Dict[str, Any] = {}
    if properties is not None:
        event_properties[names.SET] = properties
    if properties_set_once is not None:
        event_properties[names.SET_ONCE] = properties_set_once
    return event_properties
