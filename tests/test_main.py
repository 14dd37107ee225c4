"""Tests for the CLI entry point (datalens/main.py)."""

from __future__ import annotations

import argparse
import json
import os
from unittest.mock import MagicMock, patch

import pytest

from datalens.main import load_plan, main, parse_args, parse_test, parse_transform
from datalens.models import (
    CleaningActionType,
    CleaningPlan,
    QualityAssessment,
    TestType,
    TransformationMethod,
)


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "people.csv"
    path.write_text(
        "First Name,Age,Group,Score\n"
        "Ann,30,a,1\n"
        "Bob,,b,5\n"
        "Ann,30,a,1\n"
        "Cid,40,b,6\n"
        "Dee,50,a,2\n",
        encoding="utf-8",
    )
    return str(path)


@pytest.fixture
def plan_path(tmp_path):
    path = tmp_path / "plan.json"
    path.write_text(
        json.dumps(
            {
                "actions": [
                    {"type": "remove_duplicates"},
                    {"type": "impute", "column": "Age", "parameters": {"strategy": "mean"}},
                    {"type": "normalize_headers"},
                ],
                "summary": "basic tidy",
            }
        ),
        encoding="utf-8",
    )
    return str(path)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


class TestParseArgs:
    def test_positional_csv_file(self):
        args = parse_args(["data.csv"])
        assert args.csv_file == "data.csv"

    def test_defaults(self):
        args = parse_args(["data.csv"])
        assert args.plan is None
        assert args.advise is False
        assert args.provider == "google"
        assert args.model is None
        assert args.transform == []
        assert args.test == []
        assert args.output_dir == "output"
        assert args.bins == 10
        assert args.no_plots is False
        assert args.log_level == "WARNING"

    def test_repeatable_transforms_and_tests(self):
        args = parse_args(
            [
                "data.csv",
                "--transform", "city:one_hot",
                "--transform", "age:z_score",
                "--test", "anova:age:city",
            ]
        )
        assert [t.method for t in args.transform] == [
            TransformationMethod.ONE_HOT,
            TransformationMethod.Z_SCORE,
        ]
        assert args.test[0].group_column == "city"

    def test_invalid_provider_rejected(self):
        with pytest.raises(SystemExit):
            parse_args(["data.csv", "--provider", "invalid"])

    def test_invalid_transform_rejected(self):
        with pytest.raises(SystemExit):
            parse_args(["data.csv", "--transform", "age:cube"])

    def test_missing_csv_file_rejected(self):
        with pytest.raises(SystemExit):
            parse_args([])


class TestParseTransform:
    def test_column_with_colon(self):
        action = parse_transform("time:of:day:label")
        assert action.column == "time:of:day"
        assert action.method is TransformationMethod.LABEL

    @pytest.mark.parametrize("text", ["age", ":log", "age:cube"])
    def test_invalid(self, text):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_transform(text)


class TestParseTest:
    def test_two_sample(self):
        params = parse_test("t-test:a:b")
        assert params.type is TestType.T_TEST
        assert params.target_column == "a"
        assert params.second_column == "b"
        assert params.group_column is None

    def test_anova_uses_group_column(self):
        params = parse_test("anova:score:team")
        assert params.group_column == "team"
        assert params.second_column is None

    @pytest.mark.parametrize("text", ["t-test", "t-test:", "f-test:a:b"])
    def test_invalid(self, text):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_test(text)


class TestLoadPlan:
    def test_reads_json(self, plan_path):
        plan = load_plan(plan_path)
        assert isinstance(plan, CleaningPlan)
        assert plan.actions[1].type is CleaningActionType.IMPUTE
        assert plan.summary == "basic tidy"


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------


class TestMain:
    def test_nonexistent_file_exits(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["/nonexistent/file.csv"])
        assert exc_info.value.code == 1
        assert "file not found" in capsys.readouterr().err

    def test_run_with_plan_and_tests(self, csv_path, plan_path, tmp_path, capsys):
        out_dir = str(tmp_path / "out")
        main(
            [
                csv_path,
                "--plan", plan_path,
                "--transform", "group:label",
                "--test", "t-test:age:score",
                "--test", "anova:score:group",
                "--output-dir", out_dir,
                "--no-plots",
            ]
        )
        report_path = os.path.join(out_dir, "report.md")
        assert f"Report saved to: {report_path}" in capsys.readouterr().out
        with open(report_path, encoding="utf-8") as f:
            content = f.read()
        assert "# Data Analysis Report: people.csv" in content
        assert "**Processed shape**: 4 rows × 5 columns" in content
        assert "**remove_duplicates**" in content
        assert "**label**" in content
        assert "### T-TEST" in content
        assert "### ANOVA" in content
        assert not os.path.isdir(os.path.join(out_dir, "figures"))

    def test_plots_written_under_figures(self, csv_path, tmp_path):
        out_dir = str(tmp_path / "out")
        main([csv_path, "--output-dir", out_dir])
        figures = os.listdir(os.path.join(out_dir, "figures"))
        assert "hist_Age.png" in figures
        with open(os.path.join(out_dir, "report.md"), encoding="utf-8") as f:
            assert "(figures/hist_Age.png)" in f.read()

    def test_insufficient_data_is_a_warning(self, csv_path, tmp_path, capsys):
        out_dir = str(tmp_path / "out")
        main([csv_path, "--test", "t-test:Age:Nope", "--output-dir", out_dir, "--no-plots"])
        captured = capsys.readouterr()
        assert "Warning: t-test skipped" in captured.err
        assert "Report saved to" in captured.out

    def test_advise_uses_model_for_plan_and_quality(self, csv_path, tmp_path):
        mock_llm = MagicMock()
        plan = CleaningPlan.from_dict({"actions": [{"type": "remove_duplicates"}]})
        quality = QualityAssessment("Fine.", 80, ["dupes"], ["dedupe"])
        out_dir = str(tmp_path / "out")

        with (
            patch("datalens.advisor.get_llm", return_value=mock_llm) as mock_get_llm,
            patch("datalens.advisor.generate_cleaning_plan", return_value=plan) as mock_plan,
            patch("datalens.advisor.analyze_data_quality", return_value=quality),
        ):
            main([csv_path, "--advise", "--provider", "openai", "--output-dir", out_dir, "--no-plots"])

        mock_get_llm.assert_called_once_with(provider="openai", model=None)
        mock_plan.assert_called_once()
        with open(os.path.join(out_dir, "report.md"), encoding="utf-8") as f:
            content = f.read()
        assert "## Quality Assessment" in content
        assert "**Score**: 80/100" in content

    def test_plan_file_wins_over_advisor(self, csv_path, plan_path, tmp_path):
        with (
            patch("datalens.advisor.get_llm", return_value=MagicMock()),
            patch("datalens.advisor.generate_cleaning_plan") as mock_plan,
            patch(
                "datalens.advisor.analyze_data_quality",
                return_value=QualityAssessment("x", 50),
            ),
        ):
            main(
                [csv_path, "--plan", plan_path, "--advise",
                 "--output-dir", str(tmp_path / "out"), "--no-plots"]
            )
        mock_plan.assert_not_called()

    def test_load_error_exits(self, tmp_path, capsys):
        path = tmp_path / "empty.csv"
        path.write_bytes(b"")
        with pytest.raises(SystemExit) as exc_info:
            main([str(path), "--output-dir", str(tmp_path / "out")])
        assert exc_info.value.code == 1
        assert "File is empty" in capsys.readouterr().err

    def test_exception_in_pipeline_exits(self, csv_path, tmp_path, capsys):
        with patch("datalens.csv_loader.load_csv", side_effect=RuntimeError("boom")):
            with pytest.raises(SystemExit) as exc_info:
                main([csv_path, "--output-dir", str(tmp_path / "out")])
        assert exc_info.value.code == 1
        assert "boom" in capsys.readouterr().err
