"""Rewrite parsed expressions into canonical strict form.

All rewrites are ``ast.NodeTransformer`` passes keyed on callee name and
argument count:

1. In DEG mode, ``sin``/``cos``/``tan`` arguments without an explicit unit are
   marked as degrees.
2. Single-argument ``log(x)`` becomes ``log10(x)``; ``log(x, base)`` is kept.
3. Unit markers are expanded: ``x deg`` -> ``x * pi / 180``, ``x rad`` -> ``x``.
"""

import ast
import logging

from .grammar import TRIG_FUNCTIONS, UNITS, call_name, make_call, parse, render
from .models import AngleMode, CanonicalExpression

logger = logging.getLogger(__name__)


def _has_unit(node: ast.AST) -> bool:
    """Whether an argument carries an explicit unit outside nested calls."""
    name = call_name(node)
    if name in UNITS:
        return True
    if name is not None:
        return False
    return any(_has_unit(child) for child in ast.iter_child_nodes(node))


class DegreeArguments(ast.NodeTransformer):
    """Wrap unit-less trig arguments in a ``deg`` marker."""

    def visit_Call(self, node: ast.Call) -> ast.AST:
        wrap = (
            call_name(node) in TRIG_FUNCTIONS
            and len(node.args) == 1
            and not _has_unit(node.args[0])
        )
        self.generic_visit(node)
        if wrap:
            node.args = [make_call("deg", [node.args[0]])]
        return node


class LogarithmBase(ast.NodeTransformer):
    """``log(x)`` is base 10; ``log(x, base)`` is an explicit-base call."""

    def visit_Call(self, node: ast.Call) -> ast.AST:
        self.generic_visit(node)
        if call_name(node) == "log" and len(node.args) == 1:
            return make_call("log10", node.args)
        return node


class UnitExpansion(ast.NodeTransformer):
    """Replace unit markers with the radian value they stand for."""

    def visit_Call(self, node: ast.Call) -> ast.AST:
        self.generic_visit(node)
        name = call_name(node)
        if name == "deg":
            return ast.BinOp(
                left=ast.BinOp(left=node.args[0], op=ast.Mult(), right=ast.Name(id="pi", ctx=ast.Load())),
                op=ast.Div(),
                right=ast.Constant(value=180),
            )
        if name == "rad":
            return node.args[0]
        return node


def canonicalize_tree(tree: ast.expr, angle_mode: AngleMode = AngleMode.RAD) -> CanonicalExpression:
    """Apply the canonical rewrites to an already parsed tree."""
    if angle_mode is AngleMode.DEG:
        tree = DegreeArguments().visit(tree)
    tree = LogarithmBase().visit(tree)
    tree = UnitExpansion().visit(tree)
    return CanonicalExpression(text=render(tree), tree=tree)


def canonicalize(expression: str, angle_mode: AngleMode = AngleMode.RAD) -> CanonicalExpression:
    """Parse an expression and rewrite it into canonical strict form.

    Args:
        expression: Expression text in the calculator grammar.
        angle_mode: How unit-less trig arguments are interpreted.

    Returns:
        The canonical expression and its tree.

    Raises:
        DisallowedToken: If the input contains anything outside the grammar.
        ParseFailure: If the input is not a well-formed expression.
    """
    canonical = canonicalize_tree(parse(expression), angle_mode)
    logger.debug("Canonicalized %r (%s) -> %r", expression, angle_mode.value, canonical.text)
    return canonical
