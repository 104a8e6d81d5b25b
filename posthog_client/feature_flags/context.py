from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Mapping, Optional


@dataclass(frozen=True)
class FeatureFlagContext:
    """Extra inputs for a feature flag lookup.

    - ``groups``: group type -> group key the person belongs to, e.g. ``{"company": "acme"}``.
    - ``person_properties``: properties used for local evaluation (mapping, Pydantic
      model, dataclass...). Must serialize to a JSON object.
    - ``group_properties``: group type -> properties of that group.
    - ``send_feature_flag_events`` / ``allow_remote_evaluation``: per call
      overrides; None defers to the client settings.
    """

    groups: Optional[Mapping[str, Any]] = None
    person_properties: Any = None
    group_properties: Optional[Mapping[str, Any]] = None
    send_feature_flag_events: Optional[bool] = None
    allow_remote_evaluation: Optional[bool] = None

    EMPTY: ClassVar["FeatureFlagContext"]


FeatureFlagContext.EMPTY = FeatureFlagContext()
