"""Calculator that evaluates strict expressions and natural-language math."""

from .errors import (
    CalculatorError,
    ConfigurationError,
    DisallowedToken,
    IncompleteFunctionCall,
    NonFiniteResult,
    NormalizationFailed,
    ParseFailure,
    UnsupportedResultType,
)
from .evaluator import StrictEvaluator, evaluate_local
from .models import AngleMode, EvaluationResult, ResultKind
from .pipeline import CalculationPipeline, build_pipeline

__all__ = [
    "AngleMode",
    "CalculationPipeline",
    "CalculatorError",
    "ConfigurationError",
    "DisallowedToken",
    "EvaluationResult",
    "IncompleteFunctionCall",
    "NonFiniteResult",
    "NormalizationFailed",
    "ParseFailure",
    "ResultKind",
    "StrictEvaluator",
    "UnsupportedResultType",
    "build_pipeline",
    "evaluate_local",
]
