"""DTOs for remote feature flag evaluation (``POST /decide?v=3``)."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import Field, field_validator

from .base import BaseSchema


class DecideRequest(BaseSchema):
    """Body of ``POST /decide?v=3``. None fields are left out of the payload."""

    api_key: str = Field(..., min_length=1, description="Project API key.")
    distinct_id: str = Field(..., min_length=1, description="Person to evaluate flags for.")
    groups: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Group type -> group key the person belongs to.",
        examples=[{"company": "acme"}],
    )
    person_properties: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Person properties to use instead of the stored ones.",
    )
    group_properties: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Group type -> properties of that group.",
    )

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class DecideResponse(BaseSchema):
    """Subset of the ``/decide`` response used by the client.

    ``featureFlags`` maps a flag key to ``true``/``false`` or a variant name;
    ``featureFlagPayloads`` maps a flag key to its (usually JSON encoded) payload.
    """

    feature_flags: Dict[str, Any] = Field(default_factory=dict, alias="featureFlags")
    feature_flag_payloads: Dict[str, Any] = Field(default_factory=dict, alias="featureFlagPayloads")

    @field_validator("feature_flags", "feature_flag_payloads", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value
