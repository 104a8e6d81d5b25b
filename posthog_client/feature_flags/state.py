"""Result types for feature flag lookups."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterator, Optional

from posthog_client.serialization import encode_payload


@dataclass(frozen=True)
class FeatureFlagState:
    """State of one feature flag for one distinct id.

    - ``enabled``: True when the flag is on. A variant response is enabled.
    - ``variant``: Variant key for multivariate flags, otherwise None. A flag
      that is enabled without being multivariate has no variant.
    - ``payload``: JSON text configured for the flag (or variant), if any.
    - ``inconclusive_reason``: Set when local evaluation could not decide.
    """

    enabled: bool
    variant: Optional[str] = None
    inconclusive_reason: Optional[str] = None
    payload: Optional[str] = None

    ENABLED: ClassVar["FeatureFlagState"]
    DISABLED: ClassVar["FeatureFlagState"]
    REMOTE_EVAL_NOT_ALLOWED: ClassVar["FeatureFlagState"]

    @property
    def is_enabled(self) -> bool:
        return self.enabled

    @property
    def is_inconclusive(self) -> bool:
        return self.inconclusive_reason is not None

    @classmethod
    def inconclusive(cls, reason: str) -> "FeatureFlagState":
        return cls(False, None, reason)

    @classmethod
    def from_decide(
        cls,
        feature_flags: Optional[Mapping[str, Any]],
        payloads: Optional[Mapping[str, Any]],
        key: str,
    ) -> "FeatureFlagState":
        """Build a state from ``/decide`` maps.

        ``true``/``false`` map to enabled/disabled, a string is an enabled
        variant, anything else (missing, numbers, objects, arrays, null) is
        disabled.
        """
        if not feature_flags or key not in feature_flags:
            return cls.DISABLED

        value = feature_flags[key]
        if isinstance(value, bool):
            enabled, variant = value, None
        elif isinstance(value, str):
            enabled, variant = True, value
        else:
            return cls.DISABLED

        payload = None
        if enabled and payloads:
            payload = encode_payload(payloads.get(key))
        return cls(enabled, variant, None, payload)

    def __str__(self) -> str:
        if self.inconclusive_reason is not None:
            return f"inconclusive({self.inconclusive_reason})"
        if self.variant is not None:
            return self.variant
        return "true" if self.enabled else "false"


FeatureFlagState.ENABLED = FeatureFlagState(True)
FeatureFlagState.DISABLED = FeatureFlagState(False)
FeatureFlagState.REMOTE_EVAL_NOT_ALLOWED = FeatureFlagState.inconclusive("remote evaluation is not allowed")


@dataclass(frozen=True)
class FeatureFlagStates(Mapping[str, FeatureFlagState]):
    """Read-only view of several flag states; unknown keys read as disabled."""

    states: Dict[str, FeatureFlagState] = field(default_factory=dict)

    EMPTY: ClassVar["FeatureFlagStates"]

    def __getitem__(self, key: str) -> FeatureFlagState:
        return self.states[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.states)

    def __len__(self) -> int:
        return len(self.states)

    def get(self, key: str, default: Optional[FeatureFlagState] = None) -> FeatureFlagState:  # type: ignore[override]
        return self.states.get(key, default if default is not None else FeatureFlagState.DISABLED)

    def is_enabled(self, key: str) -> bool:
        return self.get(key).enabled

    def get_variant(self, key: str) -> Optional[str]:
        return self.get(key).variant

    def get_payload(self, key: str) -> Optional[str]:
        return self.get(key).payload

    def __str__(self) -> str:
        return "{" + ", ".join(f"{k}={v}" for k, v in self.states.items()) + "}"


FeatureFlagStates.EMPTY = FeatureFlagStates({})
