"""Core data models for the datalens tabular analysis engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from typing_extensions import TypedDict

Scalar = Union[str, int, float, bool, None]
Row = dict[str, Scalar]


class ColumnType(str, Enum):
    """Inferred type of a column's non-missing values."""

    NUMBER = "Number"
    STRING = "String"
    DATE = "Date"
    BOOLEAN = "Boolean"
    MIXED = "Mixed"
    UNKNOWN = "Unknown"


CAST_TARGETS = frozenset(
    {ColumnType.NUMBER, ColumnType.STRING, ColumnType.DATE, ColumnType.BOOLEAN}
)


class CleaningActionType(str, Enum):
    IMPUTE = "impute"
    REMOVE_DUPLICATES = "remove_duplicates"
    NORMALIZE_HEADERS = "normalize_headers"
    CAST_TYPE = "cast_type"
    DROP_COLUMN = "drop_column"


class ImputationStrategy(str, Enum):
    MEAN = "mean"
    MEDIAN = "median"
    MODE = "mode"
    FILL_ZERO = "fill_zero"
    REMOVE_ROW = "remove_row"


class TransformationMethod(str, Enum):
    LABEL = "label"
    ONE_HOT = "one_hot"
    MIN_MAX = "min_max"
    Z_SCORE = "z_score"
    LOG = "log"


class TestType(str, Enum):
    Z_TEST = "z-test"
    T_TEST = "t-test"
    CHI_SQUARE = "chi-square"
    ANOVA = "anova"

    # Keep pytest from collecting this enum as a test class.
    __test__ = False


class OutcomeStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"


class InsufficientDataError(ValueError):
    """Raised when a computation lacks the data it needs.

    Carries the offending column and the attempted operation so callers can
    report the failure without parsing the message.
    """

    def __init__(self, message: str, column: Optional[str] = None, operation: str = ""):
        super().__init__(message)
        self.column = column
        self.operation = operation


@dataclass(frozen=True)
class ColumnProfile:
    """Derived per-column metadata. Never edited by hand."""

    name: str
    type: ColumnType
    missing_count: int
    missing_percentage: float
    unique_count: int
    example: Scalar = None


@dataclass(frozen=True)
class Dataset:
    """An immutable table of rows with headers and column profiles.

    Build instances with ``datalens.tools.inspection.build_dataset`` so the
    profiles always describe the rows they are attached to.
    """

    file_name: str
    file_size: int
    total_rows: int
    headers: tuple[str, ...]
    rows: tuple[Row, ...]
    column_profiles: tuple[ColumnProfile, ...]

    def column_values(self, column: str) -> list[Scalar]:
        """Return the column's cell values in row order (absent keys as None)."""
        return [row.get(column) for row in self.rows]

    def profile(self, column: str) -> Optional[ColumnProfile]:
        for p in self.column_profiles:
            if p.name == column:
                return p
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_name": self.file_name,
            "file_size": self.file_size,
            "total_rows": self.total_rows,
            "headers": list(self.headers),
            "rows": [dict(r) for r in self.rows],
            "column_profiles": [
                {**asdict(p), "type": p.type.value} for p in self.column_profiles
            ],
        }


@dataclass
class CleaningAction:
    """A single step of a cleaning plan."""

    type: CleaningActionType
    column: Optional[str] = None
    parameters: dict[str, Any] = field(default_factory=dict)
    description: str = ""

    def __post_init__(self):
        try:
            self.type = CleaningActionType(self.type)
        except ValueError:
            raise ValueError(
                f"Unknown cleaning action type '{self.type}'. "
                f"Must be one of {[t.value for t in CleaningActionType]}."
            ) from None

    @property
    def strategy(self) -> Optional[str]:
        value = self.parameters.get("strategy")
        return value.value if isinstance(value, Enum) else value

    @property
    def target_type(self) -> Optional[str]:
        value = self.parameters.get("target_type")
        return value.value if isinstance(value, Enum) else value

    @classmethod
    def from_dict(cls, data: dict) -> "CleaningAction":
        """Build an action from the advisory service's JSON shape.

        Raises:
            ValueError: If ``type`` is not a recognised action type.
        """
        raw_params = data.get("parameters") or {}
        parameters: dict[str, Any] = {}
        if raw_params.get("strategy"):
            parameters["strategy"] = raw_params["strategy"]
        target = raw_params.get("targetType") or raw_params.get("target_type")
        if target:
            parameters["target_type"] = target

        return cls(
            type=data.get("type"),
            column=data.get("column") or None,
            parameters=parameters,
            description=data.get("description", ""),
        )


@dataclass
class CleaningPlan:
    """Ordered cleaning actions plus a human-readable summary."""

    actions: list[CleaningAction] = field(default_factory=list)
    summary: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "CleaningPlan":
        return cls(
            actions=[CleaningAction.from_dict(a) for a in data.get("actions", [])],
            summary=data.get("summary", ""),
        )


@dataclass
class TransformationAction:
    column: str
    method: TransformationMethod


@dataclass
class ActionOutcome:
    """Record of what a single cleaning or transformation action did."""

    action: str
    column: Optional[str]
    status: OutcomeStatus
    rows_before: int
    rows_after: int
    description: str = ""
    reason: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.status is OutcomeStatus.APPLIED


@dataclass
class ColumnStats:
    """Descriptive statistics snapshot for one numeric column."""

    column: str
    count: int = 0
    mean: float = 0.0
    median: float = 0.0
    mode: Optional[float] = None
    std_dev: float = 0.0
    min: float = 0.0
    max: float = 0.0
    q1: float = 0.0
    q3: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CorrelationResult:
    column1: str
    column2: str
    value: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TestParams:
    """Selects a hypothesis test and the columns it runs over."""

    type: TestType
    target_column: str
    group_column: Optional[str] = None
    second_column: Optional[str] = None

    __test__ = False

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = TestType(self.type).value
        return data


@dataclass
class TestResult:
    """Outcome of a hypothesis test at alpha = 0.05."""

    test_name: str
    statistic: float
    statistic_name: str
    degrees_of_freedom: int
    critical_value: float
    is_significant: bool
    details: str
    insights: list[str] = field(default_factory=list)
    p_value: Optional[float] = None

    __test__ = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class QualityAssessment:
    """Data quality summary returned by the advisory service."""

    summary: str
    data_quality_score: float
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


class HistogramBin(TypedDict):
    name: str
    count: int


class CategoryCount(TypedDict):
    name: str
    value: int


class ScatterPoint(TypedDict):
    x: float
    y: float


class GroupMean(TypedDict):
    name: str
    value: float
