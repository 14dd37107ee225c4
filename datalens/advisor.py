"""LLM advisory service: proposes cleaning plans and rates data quality.

Nothing in the engine depends on this module. A plan it returns is an
ordinary ``CleaningPlan`` that could equally have been written by hand.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from datalens.models import (
    CleaningAction,
    CleaningPlan,
    Dataset,
    QualityAssessment,
)
from datalens.tools.inspection import detect_issues

logger = logging.getLogger(__name__)

# Default models per provider
DEFAULT_MODELS = {
    "google": "gemini-2.5-flash",
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-20241022",
    "groq": "llama-3.1-70b-versatile",
    "bedrock": "eu.amazon.nova-pro-v1:0",
}

SUPPORTED_PROVIDERS = set(DEFAULT_MODELS.keys())

# Only this many column profiles go into a prompt.
MAX_PROMPT_COLUMNS = 50

EMPTY_PLAN_SUMMARY = "Could not generate cleaning plan."

PLAN_RULES = """\
Rules:
1. If headers contain spaces or special chars, suggest 'normalize_headers'.
2. If a Number column has missing values, suggest 'impute' with 'mean' or 'median'.
3. If a String column has missing values, suggest 'impute' with 'mode', or 'remove_row' if critical.
4. If a column looks Mixed but should hold Numbers/Dates, suggest 'cast_type'.
5. Always check for 'remove_duplicates'.
6. Suggest 'drop_column' only for columns that are almost entirely missing.

Respond with a single JSON object:
{"actions": [{"type": "impute" | "remove_duplicates" | "normalize_headers" | "cast_type" | "drop_column",
              "column": "<name, omitted for dataset-wide actions>",
              "parameters": {"strategy": "mean" | "median" | "mode" | "remove_row" | "fill_zero",
                             "targetType": "Number" | "String" | "Date" | "Boolean"},
              "description": "<why>"}],
 "summary": "<one paragraph>"}"""

QUALITY_INSTRUCTIONS = """\
Respond with a single JSON object:
{"summary": "<summary of the data>", "dataQualityScore": <0-100>,
 "issues": ["..."], "recommendations": ["..."]}"""


def get_llm(provider: str = "google", model: str | None = None, **kwargs) -> BaseChatModel:
    """Initialize and return a chat model for the advisory prompts.

    Args:
        provider: "google" | "openai" | "anthropic" | "groq" | "bedrock"
        model: Model name override. If None, uses the default for the provider.
        **kwargs: Additional keyword arguments passed to the chat model constructor.

    Returns:
        Configured LangChain chat model.

    Raises:
        ValueError: If the provider is not supported.
    """
    provider = provider.lower()

    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unsupported LLM provider: '{provider}'. "
            f"Supported providers: {sorted(SUPPORTED_PROVIDERS)}"
        )

    model_name = model or DEFAULT_MODELS[provider]

    if provider == "google":
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(model=model_name, **kwargs)

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(model=model_name, **kwargs)

    if provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(model=model_name, **kwargs)

    if provider == "groq":
        from langchain_groq import ChatGroq

        return ChatGroq(model=model_name, **kwargs)

    # provider == "bedrock"
    from langchain_aws import ChatBedrock

    return ChatBedrock(model_id=model_name, **kwargs)


def _profile_summary(dataset: Dataset, with_examples: bool) -> str:
    lines = []
    for p in dataset.column_profiles[:MAX_PROMPT_COLUMNS]:
        line = (
            f'- Column "{p.name}": {p.type.value}, Missing {p.missing_count} '
            f"({p.missing_percentage:.1f}%), Unique {p.unique_count}"
        )
        if with_examples:
            line += f", Ex: {p.example}"
        lines.append(line)
    return "\n".join(lines)


def build_plan_prompt(dataset: Dataset) -> str:
    """Return the user prompt asking for a cleaning plan."""
    issues = detect_issues(dataset)
    return (
        f"Metadata (first {MAX_PROMPT_COLUMNS} columns):\n"
        f"{_profile_summary(dataset, with_examples=True)}\n"
        f"Total Rows: {dataset.total_rows}\n"
        f"Duplicate rows: {issues['duplicate_count']}\n"
        f"Mixed-type columns: {', '.join(issues['inconsistent_types']) or 'none'}\n\n"
        f"{PLAN_RULES}"
    )


def build_quality_prompt(dataset: Dataset) -> str:
    """Return the user prompt asking for a data quality assessment."""
    return (
        f"Dataset: {dataset.file_name} ({dataset.total_rows} rows)\n"
        f"Columns (first {MAX_PROMPT_COLUMNS}):\n"
        f"{_profile_summary(dataset, with_examples=False)}\n\n"
        f"{QUALITY_INSTRUCTIONS}"
    )


def extract_json(text: str) -> dict:
    """Pull the outermost JSON object out of an LLM response.

    Raises:
        ValueError: If no JSON object can be decoded.
    """
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        raise ValueError("No JSON object found in model response.")
    try:
        data = json.loads(match.group())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Malformed JSON in model response: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Model response JSON is not an object.")
    return data


def parse_cleaning_plan(data: dict) -> CleaningPlan:
    """Build a plan from decoded JSON, dropping actions of unknown type."""
    actions: list[CleaningAction] = []
    for raw in data.get("actions") or []:
        if not isinstance(raw, dict):
            logger.warning("Ignoring non-object plan action: %r", raw)
            continue
        try:
            actions.append(CleaningAction.from_dict(raw))
        except ValueError as exc:
            logger.warning("Ignoring plan action: %s", exc)
    return CleaningPlan(actions=actions, summary=str(data.get("summary", "")))


def _invoke(llm: Any, system: str, prompt: str) -> str:
    response = llm.invoke([SystemMessage(content=system), HumanMessage(content=prompt)])
    content = response.content
    return content if isinstance(content, str) else str(content)


def generate_cleaning_plan(dataset: Dataset, llm: Any) -> CleaningPlan:
    """Ask the model for a cleaning plan for *dataset*.

    Any failure (model error, unparseable answer) yields an empty plan.
    """
    try:
        text = _invoke(
            llm,
            "You are an expert Data Engineer. Create a cleaning plan for this dataset.",
            build_plan_prompt(dataset),
        )
        plan = parse_cleaning_plan(extract_json(text))
    except Exception as exc:
        logger.warning("Error generating cleaning plan: %s", exc)
        return CleaningPlan(actions=[], summary=EMPTY_PLAN_SUMMARY)

    logger.info("Model proposed %d cleaning actions", len(plan.actions))
    return plan


def analyze_data_quality(dataset: Dataset, llm: Any) -> QualityAssessment:
    """Ask the model to rate the quality of *dataset*.

    Any failure yields the "Analysis unavailable." assessment.
    """
    try:
        data = extract_json(
            _invoke(
                llm,
                "You are a data quality analyst. Analyze the quality of the dataset.",
                build_quality_prompt(dataset),
            )
        )
        return QualityAssessment(
            summary=str(data.get("summary", "")),
            data_quality_score=float(data.get("dataQualityScore", 0)),
            issues=[str(i) for i in data.get("issues") or []],
            recommendations=[str(r) for r in data.get("recommendations") or []],
        )
    except Exception as exc:
        logger.warning("Error analyzing data quality: %s", exc)
        return QualityAssessment(
            summary="Analysis unavailable.",
            data_quality_score=0,
            issues=["Error connecting to AI service"],
            recommendations=[],
        )
