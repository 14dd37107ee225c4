"""Tests for core data models."""

import json
from dataclasses import FrozenInstanceError

import pytest

from datalens.models import (
    ActionOutcome,
    CleaningAction,
    CleaningActionType,
    CleaningPlan,
    ColumnStats,
    ColumnType,
    InsufficientDataError,
    OutcomeStatus,
    TestParams,
    TestResult,
    TestType,
)
from datalens.tools.inspection import build_dataset


class TestColumnType:
    def test_closed_set_of_members(self):
        assert {t.value for t in ColumnType} == {
            "Number", "String", "Date", "Boolean", "Mixed", "Unknown",
        }

    def test_members_compare_as_strings(self):
        assert ColumnType.NUMBER == "Number"
        assert ColumnType("Date") is ColumnType.DATE


class TestDataset:
    def test_is_frozen(self):
        ds = build_dataset([{"a": 1}])
        with pytest.raises(FrozenInstanceError):
            ds.total_rows = 5

    def test_to_dict_is_json_serializable(self):
        ds = build_dataset([{"a": 1, "b": "x"}, {"a": None, "b": True}], "f.csv", 10)
        payload = json.loads(json.dumps(ds.to_dict()))
        assert payload["total_rows"] == 2
        assert payload["headers"] == ["a", "b"]
        assert payload["column_profiles"][0]["type"] == "Number"

    def test_column_values_fills_absent_keys_with_none(self):
        ds = build_dataset([{"a": 1}, {"b": 2}])
        assert ds.column_values("a") == [1, None]

    def test_profile_lookup(self):
        ds = build_dataset([{"a": 1}])
        assert ds.profile("a").name == "a"
        assert ds.profile("missing") is None


class TestCleaningActionFromDict:
    def test_parses_advisory_shape(self):
        action = CleaningAction.from_dict(
            {
                "type": "cast_type",
                "column": "age",
                "parameters": {"targetType": "Number"},
                "description": "age looks numeric",
            }
        )
        assert action.type is CleaningActionType.CAST_TYPE
        assert action.column == "age"
        assert action.target_type == "Number"
        assert action.description == "age looks numeric"

    def test_strategy_parameter(self):
        action = CleaningAction.from_dict(
            {"type": "impute", "column": "x", "parameters": {"strategy": "median"}}
        )
        assert action.strategy == "median"

    def test_dataset_wide_action_has_no_column(self):
        action = CleaningAction.from_dict({"type": "remove_duplicates", "description": ""})
        assert action.column is None
        assert action.parameters == {}

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError, match="Unknown cleaning action type"):
            CleaningAction.from_dict({"type": "explode"})

    def test_plain_string_type_coerced(self):
        action = CleaningAction(type="drop_column", column="a")
        assert action.type is CleaningActionType.DROP_COLUMN

    def test_unknown_type_raises_on_construction(self):
        with pytest.raises(ValueError, match="Unknown cleaning action type"):
            CleaningAction(type="explode")


class TestCleaningPlan:
    def test_from_dict_keeps_order(self):
        plan = CleaningPlan.from_dict(
            {
                "actions": [
                    {"type": "normalize_headers"},
                    {"type": "drop_column", "column": "id"},
                ],
                "summary": "tidy",
            }
        )
        assert [a.type for a in plan.actions] == [
            CleaningActionType.NORMALIZE_HEADERS,
            CleaningActionType.DROP_COLUMN,
        ]
        assert plan.summary == "tidy"

    def test_default_is_empty(self):
        assert CleaningPlan().actions == []


class TestActionOutcome:
    def test_applied_property(self):
        outcome = ActionOutcome("impute", "x", OutcomeStatus.APPLIED, 3, 3)
        assert outcome.applied
        skipped = ActionOutcome("impute", "x", OutcomeStatus.SKIPPED, 3, 3, reason="no column")
        assert not skipped.applied


class TestValueTypes:
    def test_column_stats_defaults_are_zero(self):
        stats = ColumnStats(column="x")
        assert stats.count == 0
        assert stats.mean == 0.0
        assert stats.mode is None

    def test_test_result_to_dict(self):
        result = TestResult("ANOVA", 1.5, "F", 2, 3.0, False, "details", ["a", "b"], 0.2)
        data = result.to_dict()
        assert data["statistic_name"] == "F"
        assert data["insights"] == ["a", "b"]

    def test_test_params_to_dict(self):
        params = TestParams(TestType.ANOVA, "score", group_column="team")
        assert params.to_dict() == {
            "type": "anova",
            "target_column": "score",
            "group_column": "team",
            "second_column": None,
        }

    def test_insufficient_data_error_carries_context(self):
        err = InsufficientDataError("too few", column="x", operation="t-test")
        assert isinstance(err, ValueError)
        assert err.column == "x"
        assert err.operation == "t-test"
