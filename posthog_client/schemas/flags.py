"""Feature flag definitions returned by ``/api/feature_flag/local_evaluation``.

Only the fields needed for local evaluation are modelled; everything else in
the payload (ids, team, names, deleted markers...) is ignored.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import Field, ValidationInfo, field_validator

from .base import BaseSchema


class Property(BaseSchema):
    """A single property filter inside a release condition or cohort."""

    key: str = Field(..., description="Property name to compare against.", examples=["email"])
    operator: str = Field(
        default="exact",
        description="Comparison operator, e.g. exact, is_not, icontains, regex, gt.",
        examples=["exact", "icontains"],
    )
    value: Any = Field(default=None, description="Value (or list of values) to compare with.")
    type: str = Field(default="person", description="Property kind: person, group or cohort.")
    negation: bool = Field(default=False, description="Invert the match (used inside cohorts).")

    @field_validator("operator", mode="before")
    @classmethod
    def _default_operator(cls, value: Any) -> Any:
        return "exact" if value is None else value

    @field_validator("negation", mode="before")
    @classmethod
    def _default_negation(cls, value: Any) -> Any:
        return False if value is None else value


class Condition(BaseSchema):
    """A release condition: every property must match, then the rollout applies."""

    properties: Optional[List[Property]] = Field(default=None)
    rollout_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    variant: Optional[str] = Field(default=None, description="Variant override for matching users.")


class Variant(BaseSchema):
    key: str
    name: Optional[str] = None
    rollout_percentage: Optional[float] = Field(default=None, ge=0, le=100)


class Variants(BaseSchema):
    variants: Optional[List[Variant]] = None


class Filters(BaseSchema):
    aggregation_group_type_index: Optional[int] = Field(
        default=None,
        description="Set for group flags; index into the response's group_type_mapping.",
    )
    groups: List[Condition] = Field(default_factory=list, description="Release conditions.")
    multivariate: Optional[Variants] = None
    payloads: Dict[str, Any] = Field(
        default_factory=dict,
        description="Payload per variant key, or under 'true' for boolean flags.",
    )

    @field_validator("groups", "payloads", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return [] if info.field_name == "groups" else {}
        return value


class Flag(BaseSchema):
    key: str = Field(..., min_length=1)
    is_simple_flag: bool = False
    rollout_percentage: Optional[float] = None
    active: bool = True
    filters: Filters = Field(default_factory=Filters)
    ensure_experience_continuity: Optional[bool] = None


class FeatureFlagsResponse(BaseSchema):
    flags: List[Flag] = Field(default_factory=list)
    group_type_mapping: Optional[Dict[str, str]] = Field(
        default=None,
        description="Group type index (as a string) -> group type name.",
        examples=[{"0": "company", "1": "project"}],
    )
    cohorts: Dict[str, Any] = Field(
        default_factory=dict,
        description="Cohort id -> property group definition ({'type': 'AND'|'OR', 'values': [...]}).",
    )

    @field_validator("flags", "cohorts", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return [] if info.field_name == "flags" else {}
        return value
