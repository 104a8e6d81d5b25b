"""Local feature flag evaluation.

Evaluates flag definitions fetched from ``/api/feature_flag/local_evaluation``
without a network round trip, following the rules PostHog's server SDKs use:

- release conditions are checked in order, variant overrides first
- rollouts and variants are picked from a stable sha1 hash of the flag key and
  the distinct id (or group key for group flags)
- anything that cannot be decided locally yields an *inconclusive* state so
  the caller can fall back to ``/decide``
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import replace
from typing import Any, Dict, FrozenSet, Mapping, Optional

from pydantic import ValidationError

from posthog_client.schemas.flags import Condition, Flag, Property, Variant
from posthog_client.serialization import JsonDefault, encode_payload, to_json_object

from .context import FeatureFlagContext
from .state import FeatureFlagState

logger = logging.getLogger(__name__)

LONG_SCALE = float(0xFFFFFFFFFFFFFFF)


def evaluate_feature_flag(
    flag: Flag,
    distinct_id: str,
    context: FeatureFlagContext,
    *,
    group_type_mapping: Optional[Mapping[str, str]] = None,
    cohorts: Optional[Mapping[str, Any]] = None,
    json_default: Optional[JsonDefault] = None,
) -> FeatureFlagState:
    """Evaluate one flag definition for ``distinct_id``.

    Args:
        flag: Flag definition from the local evaluation endpoint.
        distinct_id: Person being evaluated.
        context: Groups and properties supplied by the caller.
        group_type_mapping: Group type index (as string) -> group type name.
        cohorts: Cohort id -> property group definition.
        json_default: Serializer for custom types inside the context properties.

    Returns:
        The resulting state; inconclusive when it cannot be decided locally.
    """
    if flag.ensure_experience_continuity:
        return FeatureFlagState.inconclusive(
            f"Feature flag {flag.key} requires experience continuity, cannot be evaluated locally"
        )
    if not flag.active:
        return FeatureFlagState.DISABLED

    cohorts = cohorts or {}
    group_type_index = flag.filters.aggregation_group_type_index
    if group_type_index is not None:
        group_type = (group_type_mapping or {}).get(str(group_type_index))
        if group_type is None:
            return FeatureFlagState.inconclusive(f"Unknown group type index {group_type_index} for flag {flag.key}")

        groups = _json_object_or_empty(context.groups, json_default, "Groups")
        if group_type not in groups:
            logger.debug("Flag %s needs group %s which was not passed; treating as disabled", flag.key, group_type)
            return FeatureFlagState.DISABLED

        all_group_properties = _json_object_or_empty(context.group_properties, json_default, "Group properties")
        group_properties = all_group_properties.get(group_type) or {}
        if not isinstance(group_properties, dict):
            return FeatureFlagState.inconclusive(f"Properties for group {group_type} must be a JSON object")
        return _match_feature_flag_properties(flag, str(groups[group_type]), group_properties, cohorts)

    person_properties = _json_object_or_empty(context.person_properties, json_default, "Person properties")
    return _match_feature_flag_properties(flag, distinct_id, person_properties, cohorts)


def _json_object_or_empty(value: Any, json_default: Optional[JsonDefault], what: str) -> Dict[str, Any]:
    if value is None:
        return {}
    return to_json_object(value, json_default, what=what)


def _match_feature_flag_properties(
    flag: Flag,
    distinct_id: str,
    properties: Mapping[str, Any],
    cohorts: Mapping[str, Any],
) -> FeatureFlagState:
    # Stable sort: conditions with a variant override go first so that the
    # override applies to the first matching condition.
    conditions = sorted(flag.filters.groups, key=lambda c: 0 if c.variant is not None else 1)

    fallthrough = FeatureFlagState.DISABLED
    for condition in conditions:
        match = _is_condition_match(flag, distinct_id, condition, properties, cohorts)
        if match.is_inconclusive:
            fallthrough = match

        if match.enabled:
            override = condition.variant
            if override is not None and _contains_variant(flag, override):
                return _with_payload(flag, FeatureFlagState(True, override))
            return _with_payload(flag, _get_matching_variant(flag, distinct_id))

    return fallthrough


def _is_condition_match(
    flag: Flag,
    distinct_id: str,
    condition: Condition,
    properties: Mapping[str, Any],
    cohorts: Mapping[str, Any],
) -> FeatureFlagState:
    for prop in condition.properties or []:
        if prop.type == "cohort":
            match = _match_cohort(prop, properties, cohorts, frozenset())
        else:
            match = match_property(prop, properties)
        if not match.enabled:
            return match

    # A rollout percentage is always honoured, also for conditions that have
    # properties; 100% and no rollout both mean "everyone matching".
    if condition.rollout_percentage is not None:
        return _check_if_simple_flag_enabled(flag.key, distinct_id, condition.rollout_percentage)

    return FeatureFlagState.ENABLED


def match_property(prop: Property, properties: Mapping[str, Any]) -> FeatureFlagState:
    """Match a single person/group property filter against known properties."""
    if prop.key not in properties:
        return FeatureFlagState.inconclusive(f"Cannot match against property without a given value ({prop.key})")

    expected = prop.value
    actual = properties[prop.key]
    operator = prop.operator
    try:
        if operator == "is_not_set":
            return FeatureFlagState.inconclusive("Cannot match is_not_set operator")
        if operator == "exact":
            return _state(_contains(expected, actual) if isinstance(expected, list) else _json_equals(expected, actual))
        if operator == "is_not":
            return _state(
                not _contains(expected, actual) if isinstance(expected, list) else not _json_equals(expected, actual)
            )
        if operator == "is_set":
            return FeatureFlagState.ENABLED
        if operator == "icontains":
            return _state(_as_string(expected).lower() in _as_string(actual).lower())
        if operator == "not_icontains":
            return _state(_as_string(expected).lower() not in _as_string(actual).lower())
        if operator in ("regex", "not_regex"):
            try:
                matched = re.fullmatch(_as_string(expected), _as_string(actual)) is not None
            except re.error:
                return FeatureFlagState.DISABLED
            return _state(matched if operator == "regex" else not matched)
        if operator == "gt":
            return _state(_as_number(actual) > _as_number(expected))
        if operator == "lt":
            return _state(_as_number(actual) < _as_number(expected))
        if operator == "gte":
            return _state(_as_number(actual) >= _as_number(expected))
        if operator == "lte":
            return _state(_as_number(actual) <= _as_number(expected))
    except (TypeError, ValueError) as e:
        return FeatureFlagState.inconclusive(f"Cannot apply operator {operator} to property {prop.key}: {e}")

    return FeatureFlagState.inconclusive(f"Unknown operator: {operator}")


def _match_cohort(
    prop: Property,
    properties: Mapping[str, Any],
    cohorts: Mapping[str, Any],
    visiting: FrozenSet[str],
) -> FeatureFlagState:
    cohort_id = str(prop.value)
    if cohort_id in visiting:
        return FeatureFlagState.inconclusive(f"Cohort {cohort_id} references itself")
    group = cohorts.get(cohort_id)
    if group is None:
        return FeatureFlagState.inconclusive(f"Cannot match cohort without a definition for it ({cohort_id})")
    return _match_property_group(group, properties, cohorts, visiting | {cohort_id})


def _match_property_group(
    group: Any,
    properties: Mapping[str, Any],
    cohorts: Mapping[str, Any],
    visiting: FrozenSet[str],
) -> FeatureFlagState:
    """Match a cohort property group: ``{"type": "AND" | "OR", "values": [...]}``.

    Values are either nested property groups or property filters. Filters may
    be negated. Inconclusive entries only decide the result when no other
    entry short-circuits it.
    """
    if not isinstance(group, Mapping):
        return FeatureFlagState.inconclusive("Malformed cohort definition")
    values = group.get("values") or []
    if not values:
        return FeatureFlagState.ENABLED
    is_and = str(group.get("type", "AND")).upper() == "AND"

    inconclusive: Optional[FeatureFlagState] = None
    for value in values:
        if isinstance(value, Mapping) and "values" in value:
            match = _match_property_group(value, properties, cohorts, visiting)
            negated = False
        else:
            try:
                prop = Property.model_validate(value)
            except ValidationError:
                return FeatureFlagState.inconclusive(f"Malformed cohort property: {value!r}")
            if prop.type == "cohort":
                match = _match_cohort(prop, properties, cohorts, visiting)
            else:
                match = match_property(prop, properties)
            negated = prop.negation

        if match.is_inconclusive:
            inconclusive = match
            continue

        matched = match.enabled != negated
        if is_and and not matched:
            return FeatureFlagState.DISABLED
        if not is_and and matched:
            return FeatureFlagState.ENABLED

    if inconclusive is not None:
        return inconclusive
    return FeatureFlagState.ENABLED if is_and else FeatureFlagState.DISABLED


def _get_matching_variant(flag: Flag, distinct_id: str) -> FeatureFlagState:
    variants = _variants(flag)
    if not variants:
        return FeatureFlagState.ENABLED

    value = _hash(flag.key, distinct_id, "variant")
    lower = 0.0
    for variant in variants:
        if variant.rollout_percentage is None:
            continue
        upper = lower + variant.rollout_percentage / 100.0
        if lower <= value < upper:
            return FeatureFlagState(True, variant.key)
        lower = upper

    return FeatureFlagState.ENABLED


def _variants(flag: Flag) -> list[Variant]:
    multivariate = flag.filters.multivariate
    if multivariate is None or multivariate.variants is None:
        return []
    return multivariate.variants


def _contains_variant(flag: Flag, variant_key: str) -> bool:
    return any(v.key == variant_key for v in _variants(flag))


def _with_payload(flag: Flag, state: FeatureFlagState) -> FeatureFlagState:
    payload = flag.filters.payloads.get(state.variant or "true")
    if payload is None:
        return state
    return replace(state, payload=encode_payload(payload))


def _check_if_simple_flag_enabled(key: str, distinct_id: str, rollout_percentage: float) -> FeatureFlagState:
    return _state(_hash(key, distinct_id) <= rollout_percentage / 100.0)


# https://github.com/PostHog/posthog-go/blob/master/featureflags.go#L842
def _hash(key: str, distinct_id: str, salt: str = "") -> float:
    digest = hashlib.sha1(f"{key}.{distinct_id}{salt}".encode("utf-8")).hexdigest()
    return int(digest[:15], 16) / LONG_SCALE


def _state(enabled: bool) -> FeatureFlagState:
    return FeatureFlagState.ENABLED if enabled else FeatureFlagState.DISABLED


def _json_equals(left: Any, right: Any) -> bool:
    # JSON booleans are never equal to numbers, unlike Python's True == 1.
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    return left == right


def _contains(values: list[Any], value: Any) -> bool:
    return any(_json_equals(v, value) for v in values)


def _as_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise TypeError(f"Cannot convert {value!r} to string")


def _as_number(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError(f"Cannot convert {value!r} to number")
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return float(value)
    raise TypeError(f"Cannot convert {value!r} to number")
