"""CLI entry point for datalens.

Loads a CSV, applies an optional cleaning plan and transformations, computes
statistics, correlations and hypothesis tests, and writes a Markdown report.
"""

from __future__ import annotations

import argparse
import json
import os
import sys

from datalens.models import (
    CleaningPlan,
    TestParams,
    TestType,
    TransformationAction,
    TransformationMethod,
)

PROVIDERS = ["google", "openai", "anthropic", "groq", "bedrock"]


def parse_transform(text: str) -> TransformationAction:
    """Parse ``COLUMN:METHOD`` into a transformation action."""
    column, sep, method = text.rpartition(":")
    if not sep or not column:
        raise argparse.ArgumentTypeError(
            f"Invalid transform '{text}'. Expected COLUMN:METHOD."
        )
    try:
        return TransformationAction(column=column, method=TransformationMethod(method))
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid transform method '{method}'. "
            f"Must be one of {[m.value for m in TransformationMethod]}."
        ) from None


def parse_test(text: str) -> TestParams:
    """Parse ``KIND:TARGET[:OTHER]`` into test parameters.

    OTHER is the group column for ANOVA and the second column otherwise.
    """
    parts = text.split(":", 2)
    if len(parts) < 2 or not parts[1]:
        raise argparse.ArgumentTypeError(
            f"Invalid test '{text}'. Expected KIND:TARGET[:OTHER]."
        )
    try:
        kind = TestType(parts[0])
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid test kind '{parts[0]}'. "
            f"Must be one of {[t.value for t in TestType]}."
        ) from None
    other = parts[2] if len(parts) == 3 and parts[2] else None
    if kind is TestType.ANOVA:
        return TestParams(type=kind, target_column=parts[1], group_column=other)
    return TestParams(type=kind, target_column=parts[1], second_column=other)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:] when None).

    Returns:
        Parsed namespace.
    """
    parser = argparse.ArgumentParser(
        prog="datalens",
        description="Profile, clean, transform and analyze a CSV dataset, "
        "then write a Markdown report.",
    )
    parser.add_argument("csv_file", help="Path to the CSV file to process.")
    parser.add_argument(
        "--plan",
        default=None,
        help="JSON file holding a cleaning plan ({\"actions\": [...], \"summary\": ...}).",
    )
    parser.add_argument(
        "--advise",
        action="store_true",
        help="Ask an LLM for a quality assessment, and for a cleaning plan "
        "when --plan is not given.",
    )
    parser.add_argument(
        "--provider",
        default="google",
        choices=PROVIDERS,
        help="LLM provider for --advise (default: google).",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Model name override (uses provider default when omitted).",
    )
    parser.add_argument(
        "--transform",
        action="append",
        default=[],
        type=parse_transform,
        metavar="COLUMN:METHOD",
        help="Transformation to apply after cleaning; repeatable.",
    )
    parser.add_argument(
        "--test",
        action="append",
        default=[],
        type=parse_test,
        metavar="KIND:TARGET[:OTHER]",
        help="Hypothesis test to run (t-test, z-test, chi-square, anova); repeatable.",
    )
    parser.add_argument(
        "--output-dir",
        default="output",
        help="Output directory for report and figures (default: output).",
    )
    parser.add_argument(
        "--bins",
        type=int,
        default=10,
        help="Histogram bins per numeric column (default: 10).",
    )
    parser.add_argument(
        "--no-plots",
        action="store_true",
        help="Skip figure generation.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING).",
    )
    return parser.parse_args(argv)


def load_plan(path: str) -> CleaningPlan:
    """Read a cleaning plan from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return CleaningPlan.from_dict(json.load(f))


def main(argv: list[str] | None = None) -> None:
    """Run the datalens pipeline.

    Args:
        argv: Optional argument list for testing; uses sys.argv when None.
    """
    args = parse_args(argv)

    if not os.path.isfile(args.csv_file):
        print(f"Error: file not found — {args.csv_file}", file=sys.stderr)
        sys.exit(1)

    try:
        from datalens.csv_loader import load_csv
        from datalens.logging_config import setup_logging
        from datalens.models import ActionOutcome, InsufficientDataError
        from datalens.report_generator import generate_report
        from datalens.tools.cleaning import execute_cleaning_plan
        from datalens.tools.eda import (
            calculate_correlations,
            generate_plots,
            generate_statistics,
        )
        from datalens.tools.hypothesis_tests import run_hypothesis_test
        from datalens.tools.transformation import execute_transformations

        setup_logging(args.log_level)

        # 1. Load
        loaded = load_csv(args.csv_file)
        if loaded["error"]:
            print(f"Error: {loaded['error']}", file=sys.stderr)
            sys.exit(1)
        original = loaded["dataset"]

        # 2. Plan (file first, advisory model second)
        llm = None
        if args.advise:
            from datalens.advisor import get_llm

            llm = get_llm(provider=args.provider, model=args.model)

        plan = CleaningPlan()
        if args.plan:
            plan = load_plan(args.plan)
        elif llm is not None:
            from datalens.advisor import generate_cleaning_plan

            plan = generate_cleaning_plan(original, llm)

        # 3. Clean and transform
        outcomes: list[ActionOutcome] = []
        dataset = original
        if plan.actions:
            dataset, cleaning_outcomes = execute_cleaning_plan(dataset, plan)
            outcomes.extend(cleaning_outcomes)
        if args.transform:
            dataset, transform_outcomes = execute_transformations(dataset, args.transform)
            outcomes.extend(transform_outcomes)

        # 4. Analyze
        stats = generate_statistics(dataset)
        correlations = calculate_correlations(dataset)
        test_results = []
        for params in args.test:
            try:
                test_results.append(run_hypothesis_test(dataset, params))
            except InsufficientDataError as exc:
                print(f"Warning: {params.type.value} skipped — {exc}", file=sys.stderr)

        quality = None
        if llm is not None:
            from datalens.advisor import analyze_data_quality

            quality = analyze_data_quality(dataset, llm)

        figure_paths: list[str] = []
        if not args.no_plots:
            figure_paths = generate_plots(
                dataset, os.path.join(args.output_dir, "figures"), bins=args.bins
            )

        # 5. Report
        report_path = generate_report(
            original=original,
            processed=dataset,
            outcomes=outcomes,
            stats=stats,
            correlations=correlations,
            test_results=test_results,
            figure_paths=figure_paths,
            output_dir=args.output_dir,
            quality=quality,
        )
        print(f"Report saved to: {report_path}")

    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        sys.exit(130)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
