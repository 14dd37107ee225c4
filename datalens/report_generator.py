"""Report generator that compiles a datalens session into a Markdown report."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Sequence

from datalens.models import (
    ActionOutcome,
    ColumnStats,
    CorrelationResult,
    Dataset,
    QualityAssessment,
    TestResult,
)

# Correlations beyond this many pairs are left out of the report.
MAX_REPORTED_CORRELATIONS = 10


def _format_profiles(dataset: Dataset) -> str:
    """Format the column profiles as a Markdown table."""
    if not dataset.column_profiles:
        return "No columns.\n"
    lines = [
        "| Column | Type | Missing | Missing % | Unique | Example |",
        "|--------|------|---------|-----------|--------|---------|",
    ]
    for p in dataset.column_profiles:
        lines.append(
            f"| {p.name} | {p.type.value} | {p.missing_count} | "
            f"{p.missing_percentage:.1f}% | {p.unique_count} | {p.example} |"
        )
    lines.append("")
    return "\n".join(lines)


def _format_outcome(outcome: ActionOutcome) -> str:
    """Format a single action outcome as a Markdown list item."""
    parts = [f"**{outcome.action}**", outcome.status.value]
    if outcome.column:
        parts.append(f"column: {outcome.column}")
    parts.append(f"rows: {outcome.rows_before} → {outcome.rows_after}")
    if outcome.description:
        parts.append(outcome.description)
    return "- " + " | ".join(parts)


def _format_stats(stats: Sequence[ColumnStats]) -> str:
    if not stats:
        return "No numeric columns found.\n"
    lines = [
        "| Column | Count | Mean | Median | Mode | Std Dev | Min | Q1 | Q3 | Max |",
        "|--------|-------|------|--------|------|---------|-----|----|----|-----|",
    ]
    for s in stats:
        lines.append(
            f"| {s.column} | {s.count} | {s.mean:.4g} | {s.median:.4g} | {s.mode} | "
            f"{s.std_dev:.4g} | {s.min:.4g} | {s.q1:.4g} | {s.q3:.4g} | {s.max:.4g} |"
        )
    lines.append("")
    return "\n".join(lines)


def _format_correlations(correlations: Sequence[CorrelationResult]) -> str:
    if not correlations:
        return "Fewer than 2 numeric columns — no correlations computed.\n"
    lines = ["| Column 1 | Column 2 | r |", "|----------|----------|---|"]
    for c in correlations[:MAX_REPORTED_CORRELATIONS]:
        lines.append(f"| {c.column1} | {c.column2} | {c.value:.3f} |")
    lines.append("")
    return "\n".join(lines)


def _format_test(result: TestResult) -> str:
    lines = [
        f"### {result.test_name}\n",
        f"- **{result.statistic_name}** = {result.statistic:.4f} "
        f"(df={result.degrees_of_freedom}, critical value={result.critical_value:.2f})",
        f"- **Significant at 0.05**: {'yes' if result.is_significant else 'no'}",
        f"- {result.details}",
    ]
    lines.extend(f"- {insight}" for insight in result.insights)
    lines.append("")
    return "\n".join(lines)


def generate_report(
    original: Dataset,
    processed: Dataset,
    outcomes: Sequence[ActionOutcome],
    stats: Sequence[ColumnStats],
    correlations: Sequence[CorrelationResult],
    test_results: Sequence[TestResult],
    figure_paths: Sequence[str],
    output_dir: str,
    quality: Optional[QualityAssessment] = None,
) -> str:
    """Generate a Markdown report and save to output_dir/report.md.

    Args:
        original: Dataset as loaded.
        processed: Dataset after cleaning and transformation.
        outcomes: Outcomes of every cleaning/transformation action run.
        stats: Descriptive statistics of the processed dataset.
        correlations: Correlations of the processed dataset.
        test_results: Hypothesis test results.
        figure_paths: List of paths to generated figure files.
        output_dir: Directory to save the report.
        quality: Optional advisory quality assessment.

    Returns:
        The path to the saved report file.
    """
    os.makedirs(output_dir, exist_ok=True)

    sections: list[str] = []

    sections.append(f"# Data Analysis Report: {original.file_name or 'dataset'}\n")

    # Dataset Overview
    sections.append("## Dataset Overview\n")
    sections.append(
        f"- **Original shape**: {original.total_rows} rows × {len(original.headers)} columns"
    )
    sections.append(
        f"- **Processed shape**: {processed.total_rows} rows × {len(processed.headers)} columns"
    )
    sections.append(f"- **Rows removed**: {original.total_rows - processed.total_rows}")
    sections.append(
        f"- **Columns added/removed**: {len(processed.headers) - len(original.headers):+d}\n"
    )

    if quality is not None:
        sections.append("## Quality Assessment\n")
        sections.append(f"- **Score**: {quality.data_quality_score:g}/100")
        sections.append(f"- {quality.summary}")
        for issue in quality.issues:
            sections.append(f"- Issue: {issue}")
        for rec in quality.recommendations:
            sections.append(f"- Recommendation: {rec}")
        sections.append("")

    sections.append("## Column Profiles\n")
    sections.append(_format_profiles(processed))

    sections.append("## Actions\n")
    if outcomes:
        for outcome in outcomes:
            sections.append(_format_outcome(outcome))
    else:
        sections.append("No cleaning or transformation actions were performed.\n")
    sections.append("")

    sections.append("## Numeric Statistics\n")
    sections.append(_format_stats(stats))

    sections.append("## Correlations\n")
    sections.append(_format_correlations(correlations))

    if test_results:
        sections.append("## Hypothesis Tests\n")
        for result in test_results:
            sections.append(_format_test(result))

    if figure_paths:
        sections.append("## Figures\n")
        report_dir = Path(output_dir)
        for fig_path in figure_paths:
            fig = Path(fig_path)
            try:
                rel_path = fig.relative_to(report_dir)
            except ValueError:
                rel_path = fig
            fig_name = fig.stem.replace("_", " ").title()
            sections.append(f"![{fig_name}]({rel_path})\n")

    report_content = "\n".join(sections)
    report_path = os.path.join(output_dir, "report.md")
    with open(report_path, "w", encoding="utf-8") as f:
        f.write(report_content)

    return report_path
