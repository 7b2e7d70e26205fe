"""Cheap predicates deciding whether text already looks like strict math."""

import ast
import re

from .errors import CalculatorError
from .grammar import UNITS, call_name, parse

# Longest names first so ``log10`` and ``exp`` are not eaten by ``log`` or ``e``.
_VOCABULARY_RE = re.compile(r"sin|cos|tan|log10|log|ln|exp|sqrt|pi|deg|rad|e", re.IGNORECASE)
_STRICT_CHARS_RE = re.compile(r"^[\s0-9+\-*/^().,eE]+$")
_OP_OR_FUNC_RE = re.compile(
    r"[+\-*/^]|(?<![a-z])(?:sin|cos|tan|log10|log|ln|exp|sqrt)\s*\(", re.IGNORECASE
)
_DIGIT_OR_CONST_RE = re.compile(r"[0-9]|(?<![a-z])(?:pi|e)(?![a-z])", re.IGNORECASE)


def has_op_or_func(text: str) -> bool:
    """True if text contains an arithmetic operator or a function call."""
    return _OP_OR_FUNC_RE.search(text) is not None


def has_digit_or_const(text: str) -> bool:
    """True if text contains a digit or a named constant."""
    return _DIGIT_OR_CONST_RE.search(text) is not None


def is_likely_math(text: str) -> bool:
    """Whether text can go straight to the strict evaluator.

    Requires all three of: only grammar characters once the function, unit and
    constant words are removed; an operator or function call; a digit or
    named constant.

    Examples:
        >>> is_likely_math("sin(30 deg) + 1")
        True
        >>> is_likely_math("e")
        False
        >>> is_likely_math("what is 2 + 2")
        False
    """
    if not text:
        return False
    remainder = _VOCABULARY_RE.sub("", text)
    if not _STRICT_CHARS_RE.match(remainder):
        return False
    return has_op_or_func(text) and has_digit_or_const(text)


def is_bare_value(text: str) -> bool:
    """True if text parses to a single value with no operation applied.

    A number, constant or name counts, signed or followed by a unit, and so
    does a list of them.

    Text that does not parse is not a bare value; evaluating it reports why.

    Examples:
        >>> is_bare_value("-3")
        True
        >>> is_bare_value("5e-3")
        True
        >>> is_bare_value("5 - 3")
        False
    """
    try:
        tree = parse(text)
    except CalculatorError:
        return False
    return _is_value_node(tree)


def _is_value_node(node: ast.AST) -> bool:
    if isinstance(node, ast.Tuple):
        return all(_is_value_node(item) for item in node.elts)
    if isinstance(node, ast.UnaryOp):
        return _is_value_node(node.operand)
    if call_name(node) in UNITS:
        return _is_value_node(node.args[0])
    return isinstance(node, (ast.Constant, ast.Name))
