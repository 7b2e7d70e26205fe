"""Strict evaluation of canonical expressions with numeric-safety guards."""

import ast
import logging
import math
import operator
from typing import Any, Callable

from .canonicalizer import canonicalize
from .errors import (
    IncompleteFunctionCall,
    NonFiniteResult,
    ParseFailure,
    UnsupportedResultType,
)
from .models import AngleMode, CanonicalExpression, EvaluationResult, ResultKind, format_number

logger = logging.getLogger(__name__)

# name -> (implementation, accepted argument counts)
FUNCTIONS: dict[str, tuple[Callable[..., float], tuple[int, ...]]] = {
    "sin": (math.sin, (1,)),
    "cos": (math.cos, (1,)),
    "tan": (math.tan, (1,)),
    "log10": (math.log10, (1,)),
    "log": (math.log, (1, 2)),
    "ln": (math.log, (1,)),
    "exp": (math.exp, (1,)),
    "sqrt": (math.sqrt, (1,)),
}

CONSTANTS = {"pi": math.pi, "e": math.e}

_LOGARITHMS = ("log", "log10", "ln")

_BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
}

_UNARY_OPERATORS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


class _FunctionRef:
    """Value of a function name that was never called."""

    def __init__(self, name: str) -> None:
        self.name = name


class StrictEvaluator:
    """Evaluate expressions in the closed calculator grammar.

    Every pipeline stage evaluates through this class, so canonicalization and
    guards are identical whether the expression came from the user or from the
    remote normalizer.

    Args:
        round_digits: Decimal places numeric results are rounded to, or None
            to return the raw float.
    """

    def __init__(self, round_digits: int | None = 14) -> None:
        self.round_digits = round_digits

    def evaluate(self, expression: str, angle_mode: AngleMode = AngleMode.RAD) -> EvaluationResult:
        """Canonicalize and evaluate an expression.

        Raises:
            DisallowedToken: Input contains anything outside the grammar.
            ParseFailure: Input is malformed or a function has the wrong arity.
            IncompleteFunctionCall: A function name was used without arguments.
            NonFiniteResult: The result is NaN or infinite.
            UnsupportedResultType: The result is not a real number.
        """
        return self.evaluate_canonical(canonicalize(expression, angle_mode))

    def evaluate_canonical(self, canonical: CanonicalExpression) -> EvaluationResult:
        tree = canonical.tree
        if isinstance(tree, ast.Tuple):
            values = [self._finish(self._visit(item)) for item in tree.elts]
            text = "[" + ", ".join(str(format_number(value)) for value in values) + "]"
            logger.debug("Evaluated %r -> %s", canonical.text, text)
            return EvaluationResult(kind=ResultKind.FORMATTED, value=text, canonical=canonical.text)

        value = self._finish(self._visit(tree))
        logger.debug("Evaluated %r -> %r", canonical.text, value)
        return EvaluationResult(kind=ResultKind.NUMERIC, value=value, canonical=canonical.text)

    def _finish(self, value: Any) -> float:
        if isinstance(value, _FunctionRef):
            raise _incomplete(value)
        if isinstance(value, complex):
            raise UnsupportedResultType("Result is not a real number")
        if not math.isfinite(value):
            raise NonFiniteResult("Result is not finite")
        if self.round_digits is not None:
            value = round(value, self.round_digits)
        # normalizes -0.0 to 0.0
        return float(value) + 0.0

    def _visit(self, node: ast.AST) -> Any:
        if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
            try:
                return float(node.value)
            except OverflowError:
                raise NonFiniteResult("Number is too large")

        if isinstance(node, ast.Name):
            if node.id in CONSTANTS:
                return CONSTANTS[node.id]
            if node.id in FUNCTIONS:
                return _FunctionRef(node.id)
            raise ParseFailure(f"Unknown name {node.id!r}")

        if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
            operand = self._operand(self._visit(node.operand))
            return _UNARY_OPERATORS[type(node.op)](operand)

        if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
            left = self._operand(self._visit(node.left))
            right = self._operand(self._visit(node.right))
            return self._binary(type(node.op), left, right)

        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name):
            return self._call(node.func.id, [self._operand(self._visit(arg)) for arg in node.args])

        raise ParseFailure("Unsupported expression")

    def _operand(self, value: Any) -> float:
        if isinstance(value, _FunctionRef):
            raise _incomplete(value)
        return value

    def _binary(self, op_type: type, left: float, right: float) -> float:
        try:
            value = _BINARY_OPERATORS[op_type](left, right)
        except ZeroDivisionError:
            raise NonFiniteResult("Division by zero")
        except OverflowError:
            raise NonFiniteResult("Result is too large")
        if isinstance(value, complex):
            raise UnsupportedResultType("Result is not a real number")
        return value

    def _call(self, name: str, args: list[float]) -> float:
        if name not in FUNCTIONS:
            raise ParseFailure(f"Unknown function {name!r}")

        func, arities = FUNCTIONS[name]
        if len(args) not in arities:
            expected = " or ".join(str(count) for count in arities)
            raise ParseFailure(f"{name}() takes {expected} argument(s), got {len(args)}")
        if not all(math.isfinite(arg) for arg in args):
            raise NonFiniteResult(f"{name}() received a non-finite argument")

        try:
            return func(*args)
        except ZeroDivisionError:
            raise NonFiniteResult(f"{name}() is undefined for base 1")
        except OverflowError:
            raise NonFiniteResult(f"{name}() result is too large")
        except ValueError:
            if name in _LOGARITHMS and args[0] == 0:
                raise NonFiniteResult(f"{name}(0) is negative infinity")
            raise UnsupportedResultType(f"{name}() has no real result for these arguments")


def _incomplete(ref: _FunctionRef) -> IncompleteFunctionCall:
    return IncompleteFunctionCall(
        f"'{ref.name}' is a function; call it with an argument, e.g. {ref.name}(2)"
    )


def evaluate_local(
    expression: str,
    angle_mode: "AngleMode | str" = AngleMode.RAD,
    round_digits: int | None = 14,
) -> EvaluationResult:
    """Canonicalize and evaluate without any network access.

    Args:
        expression: Expression text in the calculator grammar.
        angle_mode: ``RAD`` or ``DEG``.
        round_digits: Decimal places to round numeric results to.

    Returns:
        The evaluation result.

    Raises:
        CalculatorError: With a human-readable message if evaluation fails.
    """
    return StrictEvaluator(round_digits).evaluate(expression, AngleMode.parse(angle_mode))
