"""Value types shared across the calculation pipeline."""

import ast
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field

from .errors import ParseFailure


class AngleMode(str, Enum):
    """How trig arguments without explicit units are interpreted."""

    RAD = "RAD"
    DEG = "DEG"

    @classmethod
    def parse(cls, value: "str | AngleMode | None") -> "AngleMode":
        """Parse an angle mode, case-insensitively. ``None`` means RAD."""
        if value is None:
            return cls.RAD
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Invalid angle mode: {value!r} (expected RAD or DEG)")


class ResultKind(Enum):
    """Tag for an evaluation result."""

    NUMERIC = "numeric"
    FORMATTED = "formatted"


class PipelineStage(Enum):
    """Pipeline path that produced a result."""

    LOCAL = "local"
    STRIPPED = "stripped"
    REMOTE = "remote"


@dataclass(frozen=True)
class RawInput:
    """Trimmed user input plus the angle mode it should be evaluated under."""

    text: str
    angle_mode: AngleMode = AngleMode.RAD

    @classmethod
    def create(cls, text: str | None, angle_mode: "str | AngleMode | None" = None) -> "RawInput":
        trimmed = (text or "").strip()
        if not trimmed:
            raise ParseFailure("Expression is empty")
        return cls(text=trimmed, angle_mode=AngleMode.parse(angle_mode))


@dataclass(frozen=True)
class CanonicalExpression:
    """An expression rewritten into the strict grammar.

    ``tree`` is the parsed form ``text`` was rendered from.
    """

    text: str
    tree: ast.expr

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of a successful strict evaluation."""

    kind: ResultKind
    value: float | str
    canonical: str

    @property
    def is_numeric(self) -> bool:
        return self.kind is ResultKind.NUMERIC

    def to_json(self) -> float | int | str:
        """Value suitable for a JSON response body."""
        if self.kind is ResultKind.NUMERIC:
            return format_number(self.value, as_json=True)
        return self.value

    def __str__(self) -> str:
        if self.kind is ResultKind.NUMERIC:
            return str(format_number(self.value))
        return self.value


def format_number(value: float, as_json: bool = False) -> float | int | str:
    """Render a finite float, dropping the fractional part of integral values."""
    if value.is_integer() and abs(value) < 2**53:
        return int(value)
    if as_json:
        return value
    return repr(value)


@dataclass(frozen=True)
class NormalizationRequest:
    """Natural-language text to be converted into an expression."""

    text: str
    angle_mode: AngleMode = AngleMode.RAD


class NormalizationResponse(BaseModel):
    """Shape the remote normalizer must answer with."""

    expression: str = Field(..., min_length=1, description="Expression in calculator grammar")


@dataclass(frozen=True)
class PipelineOutcome:
    """A successful pipeline run."""

    input: RawInput
    result: EvaluationResult
    stage: PipelineStage
    normalized: str | None = None

    @property
    def output(self) -> str:
        return str(self.result)


@dataclass(frozen=True)
class HistoryEntry:
    """One successful calculation as shown to the user."""

    input: str
    output: str

    def __str__(self) -> str:
        return f"{self.input} = {self.output}"

