from __future__ import annotations

import json
from typing import Any, Dict, Optional

import pytest

from posthog_client.feature_flags import FeatureFlagContext, FeatureFlagState, evaluate_feature_flag, match_property
from posthog_client.schemas import Flag, Property

PAYLOAD_TEST_FLAG = (
    '{"id":107924,"team_id":72878,"name":"","key":"payload-test","filters":{"groups":[{"variant":null,'
    '"properties":[],"rollout_percentage":100}],"payloads":{},"multivariate":null},"deleted":false,'
    '"active":true,"ensure_experience_continuity":false}'
)

MULTIVARIATE_FLAG = (
    '{"id":107923,"team_id":72878,"name":"","key":"multivariant-test","filters":{"groups":[{"variant":null,'
    '"properties":[],"rollout_percentage":100}],"payloads":{"variant-a":"{\\"a\\": \\"has_a_payload\\"}"},'
    '"multivariate":{"variants":[{"key":"variant-a","name":"","rollout_percentage":50},'
    '{"key":"variant-b","name":"","rollout_percentage":50}]}},"deleted":false,"active":true,'
    '"ensure_experience_continuity":false}'
)

USERNAME_FLAG = (
    '{"id":107198,"team_id":72878,"name":"","key":"test","filters":{"groups":[{"variant":null,"properties":'
    '[{"key":"username","type":"person","value":["person-a","person-b"],"operator":"exact"}],'
    '"rollout_percentage":100}],"payloads":{},"multivariate":null},"deleted":false,"active":true,'
    '"ensure_experience_continuity":false}'
)


def _flag(raw: str, **overrides: Any) -> Flag:
    data = json.loads(raw)
    data.update(overrides)
    return Flag.model_validate(data)


def _eval(
    flag: Flag,
    distinct_id: str,
    context: Optional[FeatureFlagContext] = None,
    **kwargs: Any,
) -> FeatureFlagState:
    return evaluate_feature_flag(flag, distinct_id, context or FeatureFlagContext.EMPTY, **kwargs)


def _person(**properties: Any) -> FeatureFlagContext:
    return FeatureFlagContext(person_properties=properties)


def _rollout_flag(key: str, rollout: float, properties: Optional[list] = None, **filters: Any) -> Flag:
    return Flag.model_validate(
        {
            "key": key,
            "active": True,
            "filters": {"groups": [{"properties": properties or [], "rollout_percentage": rollout}], **filters},
        }
    )


class TestEvaluateFeatureFlag:
    def test_experience_continuity_is_inconclusive(self) -> None:
        result = _eval(_flag(PAYLOAD_TEST_FLAG, ensure_experience_continuity=True), "person-a")
        assert result.is_inconclusive
        assert "experience continuity" in (result.inconclusive_reason or "")

    def test_inactive_flag_always_disabled(self) -> None:
        result = _eval(_flag(PAYLOAD_TEST_FLAG, active=False), "person-a")
        assert result == FeatureFlagState.DISABLED

    def test_no_conditions_full_rollout(self) -> None:
        result = _eval(_flag(PAYLOAD_TEST_FLAG), "person-a")
        assert result.enabled
        assert result.variant is None
        assert result.payload is None

    def test_boolean_flag_payload(self) -> None:
        raw = json.loads(PAYLOAD_TEST_FLAG)
        raw["filters"]["payloads"] = {"true": '{"i am": "a payload yay!"}'}
        result = _eval(Flag.model_validate(raw), "person-a")
        assert result.enabled
        assert result.payload == '{"i am": "a payload yay!"}'

    def test_structured_payload_is_json_encoded(self) -> None:
        raw = json.loads(PAYLOAD_TEST_FLAG)
        raw["filters"]["payloads"] = {"true": {"x": 1}}
        assert _eval(Flag.model_validate(raw), "person-a").payload == '{"x":1}'

    def test_multivariate_hashes_into_variants(self) -> None:
        flag = _flag(MULTIVARIATE_FLAG)

        result_a = _eval(flag, "variant-a-user-r")
        assert result_a.enabled
        assert result_a.variant == "variant-a"
        assert result_a.payload == '{"a": "has_a_payload"}'

        result_b = _eval(flag, "variant-b-user-b")
        assert result_b.enabled
        assert result_b.variant == "variant-b"
        assert result_b.payload is None

    def test_string_property_match(self) -> None:
        flag = _flag(USERNAME_FLAG)
        assert _eval(flag, "person-a", _person(username="person-a")).enabled
        assert not _eval(flag, "person-c", _person(username="person-c")).enabled
        assert not _eval(flag, "person-a", _person(something="else")).enabled
        assert not _eval(flag, "person-c").enabled

    def test_missing_property_falls_through_as_inconclusive(self) -> None:
        result = _eval(_flag(USERNAME_FLAG), "person-a", _person(something="else"))
        assert result.is_inconclusive

    def test_person_properties_accept_pydantic_models(self) -> None:
        from pydantic import BaseModel

        class Person(BaseModel):
            username: str

        context = FeatureFlagContext(person_properties=Person(username="person-b"))
        assert _eval(_flag(USERNAME_FLAG), "person-b", context).enabled

    def test_person_properties_must_be_an_object(self) -> None:
        context = FeatureFlagContext(person_properties=["not", "an", "object"])
        with pytest.raises(ValueError, match="must be a JSON object"):
            _eval(_flag(USERNAME_FLAG), "person-a", context)

    def test_rollout_percentage_uses_stable_hash(self) -> None:
        flag = _rollout_flag("rollout-test", 50)
        assert _eval(flag, "user-3").enabled
        assert not _eval(flag, "user-1").enabled
        # Same input, same answer
        assert _eval(flag, "user-3") == _eval(flag, "user-3")

    def test_rollout_applies_after_matching_properties(self) -> None:
        flag = _rollout_flag("rollout-test", 50, [{"key": "plan", "value": "pro", "operator": "exact"}])
        assert _eval(flag, "user-3", _person(plan="pro")).enabled
        assert not _eval(flag, "user-1", _person(plan="pro")).enabled
        assert not _eval(flag, "user-3", _person(plan="free")).enabled

    def test_zero_rollout_disables(self) -> None:
        assert not _eval(_rollout_flag("rollout-test", 0), "user-3").enabled

    def test_variant_override_conditions_are_checked_first(self) -> None:
        raw = json.loads(MULTIVARIATE_FLAG)
        raw["filters"]["groups"].append(
            {
                "variant": "variant-b",
                "properties": [{"key": "email", "value": "vip@example.com", "operator": "exact"}],
                "rollout_percentage": 100,
            }
        )
        flag = Flag.model_validate(raw)

        overridden = _eval(flag, "variant-a-user-r", _person(email="vip@example.com"))
        assert overridden.variant == "variant-b"

        # No email: the override condition is inconclusive, the catch-all condition hashes
        hashed = _eval(flag, "variant-a-user-r")
        assert hashed.variant == "variant-a"

    def test_unknown_override_variant_uses_hash(self) -> None:
        raw = json.loads(MULTIVARIATE_FLAG)
        raw["filters"]["groups"][0]["variant"] = "does-not-exist"
        assert _eval(Flag.model_validate(raw), "variant-b-user-b").variant == "variant-b"


class TestGroupFlags:
    MAPPING: Dict[str, str] = {"0": "company"}

    def test_group_key_is_the_hashing_identity(self) -> None:
        flag = _rollout_flag("rollout-test", 50, aggregation_group_type_index=0)
        enabled = _eval(flag, "user-1", FeatureFlagContext(groups={"company": "acme"}), group_type_mapping=self.MAPPING)
        disabled = _eval(
            flag, "user-3", FeatureFlagContext(groups={"company": "globex"}), group_type_mapping=self.MAPPING
        )
        assert enabled.enabled
        assert not disabled.enabled

    def test_missing_group_is_disabled(self) -> None:
        flag = _rollout_flag("rollout-test", 100, aggregation_group_type_index=0)
        result = _eval(flag, "user-1", group_type_mapping=self.MAPPING)
        assert result == FeatureFlagState.DISABLED

    def test_unknown_group_type_index_is_inconclusive(self) -> None:
        flag = _rollout_flag("rollout-test", 100, aggregation_group_type_index=3)
        result = _eval(flag, "user-1", FeatureFlagContext(groups={"company": "acme"}), group_type_mapping=self.MAPPING)
        assert result.is_inconclusive

    def test_group_properties_are_matched(self) -> None:
        flag = _rollout_flag(
            "rollout-test",
            100,
            [{"key": "plan", "value": "enterprise", "operator": "exact", "type": "group"}],
            aggregation_group_type_index=0,
        )
        context = FeatureFlagContext(
            groups={"company": "acme"},
            person_properties={"plan": "free"},
            group_properties={"company": {"plan": "enterprise"}},
        )
        assert _eval(flag, "user-1", context, group_type_mapping=self.MAPPING).enabled


class TestCohorts:
    COHORTS: Dict[str, Any] = {
        "42": {
            "type": "OR",
            "values": [
                {
                    "type": "AND",
                    "values": [
                        {"key": "email", "operator": "icontains", "value": "@example.com", "type": "person"},
                        {"key": "country", "operator": "exact", "value": "US", "type": "person", "negation": True},
                    ],
                }
            ],
        },
        "7": {"type": "AND", "values": [{"key": "id", "type": "cohort", "value": 7}]},
    }

    def _cohort_flag(self, cohort_id: int) -> Flag:
        return _rollout_flag("cohort-test", 100, [{"key": "id", "type": "cohort", "value": cohort_id}])

    def test_member_matches(self) -> None:
        result = _eval(self._cohort_flag(42), "user-1", _person(email="a@Example.com", country="DE"), cohorts=self.COHORTS)
        assert result.enabled

    def test_non_member_does_not_match(self) -> None:
        result = _eval(self._cohort_flag(42), "user-1", _person(email="a@other.com", country="DE"), cohorts=self.COHORTS)
        assert result == FeatureFlagState.DISABLED

    def test_negated_property(self) -> None:
        result = _eval(self._cohort_flag(42), "user-1", _person(email="a@example.com", country="US"), cohorts=self.COHORTS)
        assert not result.enabled

    def test_unknown_cohort_is_inconclusive(self) -> None:
        assert _eval(self._cohort_flag(99), "user-1", _person(email="a@example.com"), cohorts=self.COHORTS).is_inconclusive

    def test_self_referencing_cohort_is_inconclusive(self) -> None:
        assert _eval(self._cohort_flag(7), "user-1", _person(email="a@example.com"), cohorts=self.COHORTS).is_inconclusive

    def test_malformed_cohort_property_is_inconclusive(self) -> None:
        cohorts = {"5": {"type": "OR", "values": [{"type": "behavioral", "value": "performed_event"}]}}

        result = _eval(self._cohort_flag(5), "user-1", _person(email="a@example.com"), cohorts=cohorts)

        assert result.is_inconclusive
        assert "Malformed cohort property" in (result.inconclusive_reason or "")


class TestMatchProperty:
    @staticmethod
    def _match(prop: Dict[str, Any], person: Dict[str, Any]) -> FeatureFlagState:
        return match_property(Property.model_validate({"key": "username", "type": "person", **prop}), person)

    def test_exact_string_array_present(self) -> None:
        assert self._match({"value": ["person-a", "person-b"], "operator": "exact"}, {"username": "person-a"}).enabled

    def test_exact_string_array_missing(self) -> None:
        assert not self._match({"value": ["person-a", "person-b"], "operator": "exact"}, {"username": "person-z"}).enabled

    def test_exact_string_present(self) -> None:
        assert self._match({"value": "person-a", "operator": "exact"}, {"username": "person-a"}).enabled

    def test_exact_number_present(self) -> None:
        assert self._match({"value": 12, "operator": "exact"}, {"username": 12}).enabled

    def test_exact_never_treats_booleans_as_numbers(self) -> None:
        assert not self._match({"value": 1, "operator": "exact"}, {"username": True}).enabled
        assert self._match({"value": True, "operator": "exact"}, {"username": True}).enabled

    def test_default_operator_is_exact(self) -> None:
        assert self._match({"value": "person-a", "operator": None}, {"username": "person-a"}).enabled

    def test_is_not(self) -> None:
        assert self._match({"value": ["person-a"], "operator": "is_not"}, {"username": "person-z"}).enabled
        assert not self._match({"value": "person-a", "operator": "is_not"}, {"username": "person-a"}).enabled

    def test_is_set(self) -> None:
        assert self._match({"value": "is_set", "operator": "is_set"}, {"username": None}).enabled

    def test_icontains_string(self) -> None:
        assert self._match({"value": "AAAA", "operator": "icontains"}, {"username": "aaaaaaaaaa"}).enabled
        assert self._match({"value": "zz", "operator": "not_icontains"}, {"username": "aaaaaaaaaa"}).enabled

    def test_regex_string(self) -> None:
        prop = {"value": "te.+st", "operator": "regex"}
        assert self._match(prop, {"username": "teaaast"}).enabled
        assert not self._match(prop, {"username": "test"}).enabled
        assert self._match({"value": "te.+st", "operator": "not_regex"}, {"username": "test"}).enabled

    def test_invalid_regex_is_disabled(self) -> None:
        result = self._match({"value": "(unclosed", "operator": "regex"}, {"username": "x"})
        assert result == FeatureFlagState.DISABLED

    def test_ordering(self) -> None:
        prop = {"value": 12, "operator": "gt"}
        assert self._match(prop, {"username": 33}).enabled
        assert not self._match(prop, {"username": 11}).enabled
        assert self._match({"value": "10", "operator": "lte"}, {"username": 10}).enabled
        assert self._match({"value": 10, "operator": "gte"}, {"username": "15"}).enabled
        assert self._match({"value": 10, "operator": "lt"}, {"username": 9.5}).enabled

    def test_ordering_non_numeric_is_inconclusive(self) -> None:
        assert self._match({"value": 12, "operator": "gt"}, {"username": "abc"}).is_inconclusive
        assert self._match({"value": 12, "operator": "gt"}, {"username": True}).is_inconclusive

    def test_is_not_set_inconclusive(self) -> None:
        result = self._match({"value": ["person-a", "person-b"], "operator": "is_not_set"}, {"username": "person-z"})
        assert result.is_inconclusive

    def test_missing_property_inconclusive(self) -> None:
        assert self._match({"value": "a", "operator": "exact"}, {"other": "a"}).is_inconclusive

    def test_unknown_operator_inconclusive(self) -> None:
        result = self._match({"value": "a", "operator": "is_date_after"}, {"username": "a"})
        assert result.is_inconclusive
        assert "is_date_after" in (result.inconclusive_reason or "")
