"""Filter expressions for ``--where`` targeting and saved dashboards.

Grammar (lowest to highest precedence)::

    expr       := and_expr (("or" | "||") and_expr)*
    and_expr   := unary (("and" | "&&") unary)*
    unary      := ("not" | "!") unary | primary
    primary    := "(" expr ")" | call | comparison
    call       := NAME "(" IDENT ("," literal)* ")"
    comparison := IDENT OP literal
    OP         := "==" | "=" | "!=" | "<" | "<=" | ">" | ">="

Identifiers may contain hyphens (``objective-type``) and dots
(``file.mtime``). Literals are quoted strings, numbers, ``true`` /
``false``, ``null``, or bare words (``status=in-flight``).

Semantics: a comparison against a missing attribute is false; ``== null``
is the one way to test for absence. List values match if any element
matches. Numbers, booleans, and dates are coerced from the literal when
the attribute carries that type; mismatched types never match.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Any

from notectl.domain.errors import ExpressionSyntaxError

logger = logging.getLogger(__name__)

FILE_PREFIX = "file."
FILE_FIELDS = frozenset({"name", "path", "folder", "ext", "size", "ctime", "mtime"})

FUNCTIONS: dict[str, int] = {
    "contains": 2,
    "startsWith": 2,
    "endsWith": 2,
    "isEmpty": 1,
    "exists": 1,
}


# ---------------------------------------------------------------------------
# Lexer
# ---------------------------------------------------------------------------


class TokenType(Enum):
    LPAREN = auto()
    RPAREN = auto()
    COMMA = auto()
    AND = auto()
    OR = auto()
    NOT = auto()
    OP = auto()
    STRING = auto()
    NUMBER = auto()
    BOOLEAN = auto()
    NULL = auto()
    IDENTIFIER = auto()
    EOF = auto()


@dataclass
class Token:
    type: TokenType
    value: Any
    position: int


_WORD = re.compile(r"-?\w[\w\-./:+]*")
_NUMBER = re.compile(r"-?\d+(\.\d+)?")
_OPERATORS = ("==", "!=", "<=", ">=", "&&", "||", "=", "<", ">", "!")
_KEYWORDS = {
    "and": TokenType.AND,
    "or": TokenType.OR,
    "not": TokenType.NOT,
    "true": TokenType.BOOLEAN,
    "false": TokenType.BOOLEAN,
    "null": TokenType.NULL,
}


class Lexer:
    """Tokenizer for filter expressions."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def tokenize(self) -> list[Token]:
        tokens: list[Token] = []
        while True:
            self._skip_whitespace()
            if self.pos >= len(self.text):
                tokens.append(Token(TokenType.EOF, None, self.pos))
                return tokens
            tokens.append(self._next_token())

    def _skip_whitespace(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _next_token(self) -> Token:
        start = self.pos
        char = self.text[start]

        if char in "\"'":
            return self._string(char)
        if char == "(":
            self.pos += 1
            return Token(TokenType.LPAREN, "(", start)
        if char == ")":
            self.pos += 1
            return Token(TokenType.RPAREN, ")", start)
        if char == ",":
            self.pos += 1
            return Token(TokenType.COMMA, ",", start)

        for op in _OPERATORS:
            if self.text.startswith(op, start):
                self.pos += len(op)
                if op == "&&":
                    return Token(TokenType.AND, op, start)
                if op == "||":
                    return Token(TokenType.OR, op, start)
                if op == "!":
                    return Token(TokenType.NOT, op, start)
                return Token(TokenType.OP, "==" if op == "=" else op, start)

        match = _WORD.match(self.text, start)
        if match is None:
            raise ExpressionSyntaxError(
                f"Unexpected character '{char}'", expression=self.text, position=start
            )
        word = match.group(0)
        self.pos = match.end()

        if _NUMBER.fullmatch(word):
            value: Any = float(word) if "." in word else int(word)
            return Token(TokenType.NUMBER, value, start)
        keyword = _KEYWORDS.get(word.lower())
        if keyword is TokenType.BOOLEAN:
            return Token(keyword, word.lower() == "true", start)
        if keyword is not None:
            return Token(keyword, None if keyword is TokenType.NULL else word, start)
        return Token(TokenType.IDENTIFIER, word, start)

    def _string(self, quote: str) -> Token:
        start = self.pos
        self.pos += 1
        chars: list[str] = []
        while self.pos < len(self.text) and self.text[self.pos] != quote:
            if self.text[self.pos] == "\\" and self.pos + 1 < len(self.text):
                self.pos += 1
            chars.append(self.text[self.pos])
            self.pos += 1
        if self.pos >= len(self.text):
            raise ExpressionSyntaxError("Unterminated string", expression=self.text, position=start)
        self.pos += 1
        return Token(TokenType.STRING, "".join(chars), start)


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Comparison:
    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class FunctionCall:
    name: str
    field: str
    args: tuple[Any, ...] = ()


@dataclass(frozen=True)
class Not:
    operand: Expression


@dataclass(frozen=True)
class BoolOp:
    op: str  # "and" | "or"
    left: Expression
    right: Expression


Expression = Comparison | FunctionCall | Not | BoolOp


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class Parser:
    """Recursive-descent parser producing an :data:`Expression` tree."""

    _LITERALS = frozenset(
        {TokenType.STRING, TokenType.NUMBER, TokenType.BOOLEAN, TokenType.NULL, TokenType.IDENTIFIER}
    )

    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = Lexer(text).tokenize()
        self.index = 0

    def parse(self) -> Expression:
        if self._check(TokenType.EOF):
            raise self._error("Empty expression")
        expr = self._parse_or()
        if not self._check(TokenType.EOF):
            raise self._error(f"Unexpected '{self._current().value}'")
        return expr

    def _parse_or(self) -> Expression:
        left = self._parse_and()
        while self._check(TokenType.OR):
            self._advance()
            left = BoolOp("or", left, self._parse_and())
        return left

    def _parse_and(self) -> Expression:
        left = self._parse_unary()
        while self._check(TokenType.AND):
            self._advance()
            left = BoolOp("and", left, self._parse_unary())
        return left

    def _parse_unary(self) -> Expression:
        if self._check(TokenType.NOT):
            self._advance()
            return Not(self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self) -> Expression:
        if self._check(TokenType.LPAREN):
            self._advance()
            expr = self._parse_or()
            self._expect(TokenType.RPAREN, "Expected ')'")
            return expr

        name = self._expect(TokenType.IDENTIFIER, "Expected field name").value
        if self._check(TokenType.LPAREN):
            return self._parse_call(name)
        op = self._expect(TokenType.OP, f"Expected comparison operator after '{name}'").value
        return Comparison(name, op, self._parse_literal())

    def _parse_call(self, name: str) -> FunctionCall:
        arity = FUNCTIONS.get(name)
        if arity is None:
            raise self._error(f"Unknown function '{name}'")
        self._advance()
        field = self._expect(TokenType.IDENTIFIER, f"Expected field name in {name}()").value
        args: list[Any] = []
        while self._check(TokenType.COMMA):
            self._advance()
            args.append(self._parse_literal())
        self._expect(TokenType.RPAREN, "Expected ')'")
        if len(args) + 1 != arity:
            raise self._error(f"{name}() takes {arity} argument(s)")
        return FunctionCall(name, field, tuple(args))

    def _parse_literal(self) -> Any:
        token = self._current()
        if token.type not in self._LITERALS:
            raise self._error("Expected a value")
        self._advance()
        return token.value

    # -- token helpers -----------------------------------------------------

    def _current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        if token.type is not TokenType.EOF:
            self.index += 1
        return token

    def _check(self, token_type: TokenType) -> bool:
        return self._current().type is token_type

    def _expect(self, token_type: TokenType, message: str) -> Token:
        if not self._check(token_type):
            raise self._error(message)
        return self._advance()

    def _error(self, message: str) -> ExpressionSyntaxError:
        return ExpressionSyntaxError(message, expression=self.text, position=self._current().position)


def parse(text: str) -> Expression:
    """Parse *text* into an expression tree.

    Raises:
        ExpressionSyntaxError: If *text* is not a valid expression.
    """
    return Parser(text).parse()


def referenced_fields(expr: Expression | str) -> list[str]:
    """Attribute names referenced by *expr*, in first-seen order."""
    if isinstance(expr, str):
        expr = parse(expr)
    seen: dict[str, None] = {}

    def visit(node: Expression) -> None:
        if isinstance(node, (Comparison, FunctionCall)):
            seen.setdefault(node.field, None)
        elif isinstance(node, Not):
            visit(node.operand)
        else:
            visit(node.left)
            visit(node.right)

    visit(expr)
    return list(seen)


# ---------------------------------------------------------------------------
# Evaluation context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileInfo:
    """``file.*`` attributes of a record; stat-derived values may be None."""

    name: str
    path: str
    folder: str
    ext: str
    size: int | None = None
    ctime: dt.datetime | None = None
    mtime: dt.datetime | None = None


@dataclass(frozen=True)
class EvalContext:
    attrs: Mapping[str, Any]
    file: FileInfo


def build_eval_context(path: Path, vault_root: Path, attrs: Mapping[str, Any]) -> EvalContext:
    """Build the context for one record; stat failures leave file times unset."""
    rel = path.relative_to(vault_root).as_posix() if path.is_absolute() else path.as_posix()
    folder = Path(rel).parent.as_posix()
    size = ctime = mtime = None
    try:
        stat = path.stat() if path.is_absolute() else (vault_root / path).stat()
    except OSError:
        logger.debug("stat failed for %s", rel)
    else:
        size = stat.st_size
        ctime = dt.datetime.fromtimestamp(stat.st_ctime)
        mtime = dt.datetime.fromtimestamp(stat.st_mtime)
    info = FileInfo(
        name=Path(rel).stem,
        path=rel,
        folder="" if folder == "." else folder,
        ext=Path(rel).suffix.lstrip("."),
        size=size,
        ctime=ctime,
        mtime=mtime,
    )
    return EvalContext(attrs=attrs, file=info)


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------

_MISSING = object()


class Evaluator:
    """Evaluates expression trees against one record's context."""

    def __init__(self, context: EvalContext) -> None:
        self.context = context

    def evaluate(self, expr: Expression) -> bool:
        if isinstance(expr, BoolOp):
            if expr.op == "and":
                return self.evaluate(expr.left) and self.evaluate(expr.right)
            return self.evaluate(expr.left) or self.evaluate(expr.right)
        if isinstance(expr, Not):
            return not self.evaluate(expr.operand)
        if isinstance(expr, FunctionCall):
            return self._call(expr)
        return self._compare(expr)

    def lookup(self, field: str) -> Any:
        """Value of *field*, or the ``_MISSING`` sentinel."""
        if field.startswith(FILE_PREFIX) and field[len(FILE_PREFIX) :] in FILE_FIELDS:
            value = getattr(self.context.file, field[len(FILE_PREFIX) :])
            return _MISSING if value is None else value
        return self.context.attrs.get(field, _MISSING)

    def _compare(self, expr: Comparison) -> bool:
        value = self.lookup(expr.field)
        if expr.value is None:
            absent = value is _MISSING or value is None
            if expr.op == "==":
                return absent
            if expr.op == "!=":
                return not absent
            return False
        if value is _MISSING or value is None:
            return False
        if isinstance(value, list):
            items = [item for item in value if _coerce(item, expr.value) is not None]
            if value and not items:
                return False
            if expr.op == "!=":
                return not any(_compare_scalar(item, "==", expr.value) for item in items)
            return any(_compare_scalar(item, expr.op, expr.value) for item in items)
        return _compare_scalar(value, expr.op, expr.value)

    def _call(self, expr: FunctionCall) -> bool:
        value = self.lookup(expr.field)
        if expr.name == "exists":
            return value is not _MISSING
        if expr.name == "isEmpty":
            return value is _MISSING or value is None or value == "" or value == [] or value == {}
        if value is _MISSING or value is None:
            return False

        needle = _as_text(expr.args[0])
        if expr.name == "contains":
            if isinstance(value, list):
                return any(_compare_scalar(item, "==", expr.args[0]) for item in value)
            return needle in _as_text(value)

        items = value if isinstance(value, list) else [value]
        if expr.name == "startsWith":
            return any(_as_text(item).startswith(needle) for item in items)
        return any(_as_text(item).endswith(needle) for item in items)


def evaluate(expr: Expression | str, context: EvalContext) -> bool:
    """Evaluate *expr* against *context*.

    Raises:
        ExpressionSyntaxError: If *expr* is a string that fails to parse.
    """
    if isinstance(expr, str):
        expr = parse(expr)
    return Evaluator(context).evaluate(expr)


def evaluate_all(expressions: Sequence[Expression | str], context: EvalContext) -> bool:
    """True when every expression matches (repeated ``--where`` is AND)."""
    return all(evaluate(expr, context) for expr in expressions)


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return str(value)


def _parse_temporal(text: str) -> dt.date | dt.datetime | None:
    try:
        if "T" in text or " " in text or ":" in text:
            return dt.datetime.fromisoformat(text)
        return dt.date.fromisoformat(text)
    except ValueError:
        return None


def _coerce(value: Any, literal: Any) -> tuple[Any, Any] | None:
    """Bring *literal* onto *value*'s type; None when they cannot be compared."""
    if isinstance(value, bool):
        if isinstance(literal, bool):
            return value, literal
        if isinstance(literal, str) and literal.lower() in ("true", "false"):
            return value, literal.lower() == "true"
        return None

    if isinstance(value, (int, float)):
        if isinstance(literal, bool):
            return None
        if isinstance(literal, (int, float)):
            return value, literal
        try:
            return value, float(literal)
        except (TypeError, ValueError):
            return None

    if isinstance(value, (dt.date, dt.datetime)):
        target = literal if isinstance(literal, (dt.date, dt.datetime)) else _parse_temporal(str(literal))
        if target is None:
            return None
        return _align_temporal(value, target)

    if isinstance(value, str):
        if isinstance(literal, (int, float)) and not isinstance(literal, bool):
            try:
                return float(value), literal
            except ValueError:
                return None
        return value, _as_text(literal)

    return _as_text(value), _as_text(literal)


def _align_temporal(left: dt.date, right: dt.date) -> tuple[Any, Any]:
    left_dt = isinstance(left, dt.datetime)
    right_dt = isinstance(right, dt.datetime)
    if left_dt and not right_dt:
        return left.date(), right  # type: ignore[union-attr]
    if right_dt and not left_dt:
        return left, right.date()  # type: ignore[union-attr]
    if left_dt and right_dt and (left.tzinfo is None) != (right.tzinfo is None):  # type: ignore[union-attr]
        return left.replace(tzinfo=None), right.replace(tzinfo=None)  # type: ignore[call-arg]
    return left, right


def _compare_scalar(value: Any, op: str, literal: Any) -> bool:
    pair = _coerce(value, literal)
    if pair is None:
        return False
    left, right = pair
    try:
        if op == "==":
            return left == right
        if op == "!=":
            return left != right
        if op == "<":
            return left < right
        if op == "<=":
            return left <= right
        if op == ">":
            return left > right
        if op == ">=":
            return left >= right
    except TypeError:
        return False
    return False
