"""Tokenizer and parser for the strict calculator grammar.

The grammar is closed: numbers, the constants ``pi`` and ``e``, the functions
``sin cos tan log10 log ln exp sqrt``, the operators ``+ - * / ^``,
parentheses, commas and the postfix unit words ``deg`` and ``rad``. Input is
lower-cased before tokenizing. Parsing produces a Python ``ast`` expression so
rewrites can be done as tree transformations.

Precedence, loosest first::

    list     := sum (',' sum)*
    sum      := product (('+' | '-') product)*
    product  := unary (('*' | '/') unary | <implicit> unary)*
    unary    := ('+' | '-') unary | power
    power    := postfix ('^' unary)?          # right-associative
    postfix  := primary ('deg' | 'rad')*
    primary  := NUMBER | CONSTANT | FUNCTION ['(' sum (',' sum)* ')'] | '(' sum ')'

Implicit multiplication applies when a value is directly followed by a name or
an opening parenthesis (``2pi``, ``3(4 + 1)``).
"""

import ast
import re
from dataclasses import dataclass

from .errors import DisallowedToken, NonFiniteResult, ParseFailure

FUNCTIONS = ("sin", "cos", "tan", "log10", "log", "ln", "exp", "sqrt")
TRIG_FUNCTIONS = ("sin", "cos", "tan")
CONSTANTS = ("pi", "e")
UNITS = ("deg", "rad")
VOCABULARY = frozenset(FUNCTIONS + CONSTANTS + UNITS)

_TOKEN_RE = re.compile(
    r"""
    (?P<space>\s+)
    | (?P<number>(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:e[+-]?[0-9]+)?)
    | (?P<name>[a-z][a-z0-9]*)
    | (?P<op>[-+*/^])
    | (?P<lparen>\()
    | (?P<rparen>\))
    | (?P<comma>,)
    """,
    re.VERBOSE | re.ASCII,
)

_ADDITIVE = {"+": ast.Add, "-": ast.Sub}
_MULTIPLICATIVE = {"*": ast.Mult, "/": ast.Div}
_UNARY = {"+": ast.UAdd, "-": ast.USub}


@dataclass(frozen=True)
class Token:
    """A lexical token and its zero-based position in the input."""

    kind: str
    text: str
    pos: int


def tokenize(expression: str) -> list[Token]:
    """Split an expression into grammar tokens.

    Raises:
        DisallowedToken: If any character or word is outside the grammar.
    """
    text = expression.lower()
    tokens: list[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise DisallowedToken(f"Disallowed character {text[pos]!r} at position {pos + 1}")
        kind = match.lastgroup
        value = match.group()
        if kind == "name" and value not in VOCABULARY:
            raise DisallowedToken(f"Unknown name {value!r} at position {pos + 1}")
        if kind != "space":
            tokens.append(Token(kind, value, pos))
        pos = match.end()
    return tokens


def parse(expression: str) -> ast.expr:
    """Tokenize and parse an expression into an ``ast`` tree.

    A top-level comma-separated list becomes an ``ast.Tuple``.

    Raises:
        DisallowedToken: If the input contains anything outside the grammar.
        ParseFailure: If the tokens do not form a valid expression.
    """
    return _Parser(tokenize(expression)).parse()


def render(tree: ast.expr) -> str:
    """Render a tree back to grammar text (``^`` for powers)."""
    if isinstance(tree, ast.Tuple):
        return ", ".join(render(item) for item in tree.elts)
    return ast.unparse(tree).replace("**", "^")


def call_name(node: ast.AST) -> str | None:
    """Return the callee name of a call node, or None for anything else."""
    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name):
        return node.func.id
    return None


def make_call(name: str, args: list[ast.expr]) -> ast.Call:
    return ast.Call(func=ast.Name(id=name, ctx=ast.Load()), args=args, keywords=[])


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.index = 0

    def parse(self) -> ast.expr:
        if not self.tokens:
            raise ParseFailure("Expression is empty")

        items = [self._sum()]
        while self._accept("comma"):
            items.append(self._sum())

        token = self._peek()
        if token is not None:
            raise ParseFailure(f"Unexpected {token.text!r} at position {token.pos + 1}")

        if len(items) == 1:
            return items[0]
        return ast.Tuple(elts=items, ctx=ast.Load())

    def _peek(self) -> Token | None:
        if self.index < len(self.tokens):
            return self.tokens[self.index]
        return None

    def _accept(self, kind: str, text: str | None = None) -> Token | None:
        token = self._peek()
        if token is not None and token.kind == kind and (text is None or token.text == text):
            self.index += 1
            return token
        return None

    def _expect(self, kind: str, description: str) -> Token:
        token = self._accept(kind)
        if token is None:
            found = self._peek()
            if found is None:
                raise ParseFailure(f"Expected {description} but the expression ended")
            raise ParseFailure(
                f"Expected {description} but found {found.text!r} at position {found.pos + 1}"
            )
        return token

    def _sum(self) -> ast.expr:
        node = self._product()
        while True:
            token = self._peek()
            if token is None or token.kind != "op" or token.text not in _ADDITIVE:
                return node
            self.index += 1
            node = ast.BinOp(left=node, op=_ADDITIVE[token.text](), right=self._product())

    def _product(self) -> ast.expr:
        node = self._unary()
        while True:
            token = self._peek()
            if token is None:
                return node
            if token.kind == "op" and token.text in _MULTIPLICATIVE:
                self.index += 1
                node = ast.BinOp(left=node, op=_MULTIPLICATIVE[token.text](), right=self._unary())
            elif token.kind == "lparen" or (token.kind == "name" and token.text not in UNITS):
                node = ast.BinOp(left=node, op=ast.Mult(), right=self._unary())
            else:
                return node

    def _unary(self) -> ast.expr:
        token = self._peek()
        if token is not None and token.kind == "op" and token.text in _UNARY:
            self.index += 1
            return ast.UnaryOp(op=_UNARY[token.text](), operand=self._unary())
        return self._power()

    def _power(self) -> ast.expr:
        base = self._postfix()
        if self._accept("op", "^"):
            return ast.BinOp(left=base, op=ast.Pow(), right=self._unary())
        return base

    def _postfix(self) -> ast.expr:
        node = self._primary()
        while True:
            token = self._peek()
            if token is None or token.kind != "name" or token.text not in UNITS:
                return node
            self.index += 1
            node = make_call(token.text, [node])

    def _primary(self) -> ast.expr:
        token = self._peek()
        if token is None:
            raise ParseFailure("Unexpected end of expression")

        if token.kind == "number":
            self.index += 1
            return ast.Constant(value=_number(token.text))

        if token.kind == "lparen":
            self.index += 1
            node = self._sum()
            self._expect("rparen", "')'")
            return node

        if token.kind == "name":
            if token.text in UNITS:
                raise ParseFailure(f"Unit {token.text!r} must follow a value")
            self.index += 1
            if token.text in CONSTANTS or not self._accept("lparen"):
                # A function name without '(' stays a bare name; the evaluator reports it.
                return ast.Name(id=token.text, ctx=ast.Load())
            args: list[ast.expr] = []
            if not self._accept("rparen"):
                args.append(self._sum())
                while self._accept("comma"):
                    args.append(self._sum())
                self._expect("rparen", f"')' to close {token.text}(")
            return make_call(token.text, args)

        raise ParseFailure(f"Unexpected {token.text!r} at position {token.pos + 1}")


def _number(text: str) -> int | float:
    if text.isdigit():
        try:
            return int(text)
        except ValueError:
            # digit limit for int() conversion
            raise NonFiniteResult("Number is too large")
    return float(text)
