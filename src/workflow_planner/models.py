# models.py
# Data contracts for the workflow planner.
# No business logic lives here. Pure schema and envelope constructors.

import time
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

Scalar = str | int | float | bool


def now_ms() -> int:
    return int(time.time() * 1000)


class IntentVerdict(BaseModel):
    """Classifier decision on whether a description is an automatable workflow."""

    model_config = ConfigDict(frozen=True)

    is_intent: bool = Field(..., description="Gated claim: raw claim AND confidence >= threshold.")
    confidence: float = Field(..., description="Confidence as reported by the model.")
    category: str
    rationale: str
    correlation_id: str
    produced_at: int = Field(default_factory=now_ms)


class Variable(BaseModel):
    """A typed variable the plan reads or writes. Names are not unique."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str = Field(..., description="Free-form type tag, e.g. double, boolean, String.")
    description: str
    default_value: str
    required: bool
    constraints: str


class Step(BaseModel):
    """A single atomic node in a decomposed plan."""

    model_config = ConfigDict(frozen=True)

    step_number: int
    name: str
    description: str
    step_type: str = Field(..., description="action / condition / loop / ...")
    action: str
    condition: str | None = None
    involved_variables: list[str] = Field(default_factory=list)
    parameters: dict[str, Scalar] = Field(default_factory=dict)
    prerequisites: list[int] = Field(default_factory=list, description="Step numbers, unvalidated.")
    is_loop: bool = False
    loop_condition: str | None = None


class Plan(BaseModel):
    """Structured decomposition: variables, ordered steps and narrative metadata."""

    model_config = ConfigDict(frozen=True)

    plan_summary: str
    variables: list[Variable] = Field(default_factory=list)
    steps: list[Step] = Field(default_factory=list)
    logic_description: str
    execution_order: str
    estimated_duration_seconds: int
    complexity_level: int = Field(..., description="Conventionally 1..5, unenforced.")
    correlation_id: str
    produced_at: int = Field(default_factory=now_ms)


class ResponseEnvelope(BaseModel, Generic[T]):
    """Uniform wrapper for every outward-facing result. code == 200 is success."""

    code: int
    message: str
    data: T | None = None
    correlation_id: str | None = None
    timestamp: int = Field(default_factory=now_ms)

    @property
    def ok(self) -> bool:
        return self.code == 200

    @classmethod
    def success(cls, data: Any, correlation_id: str | None = None) -> "ResponseEnvelope":
        return cls(code=200, message="成功", data=data, correlation_id=correlation_id)

    @classmethod
    def error(cls, code: int, message: str, correlation_id: str | None = None) -> "ResponseEnvelope":
        return cls(code=code, message=message, correlation_id=correlation_id)


# ---------------------------------------------------------------------------
# Stage outcomes
# ---------------------------------------------------------------------------


class FailureKind(str, Enum):
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    UPSTREAM_ERROR = "upstream_error"
    UPSTREAM_MALFORMED = "upstream_malformed"
    MODEL_OUTPUT_UNPARSEABLE = "model_output_unparseable"
    INTERNAL_ERROR = "internal_error"


class StageFailure(BaseModel):
    """Why a stage fell back to a synthesized result. Used for logs and tests only."""

    model_config = ConfigDict(frozen=True)

    kind: FailureKind
    detail: str


class StageOutcome(BaseModel, Generic[T]):
    """
    Result/error union returned by each stage.

    `result` is always a well-typed value, synthesized defaults when the
    stage failed. `failure` is None on the clean path.
    """

    model_config = ConfigDict(frozen=True)

    result: T
    failure: StageFailure | None = None

    @property
    def failed(self) -> bool:
        return self.failure is not None
