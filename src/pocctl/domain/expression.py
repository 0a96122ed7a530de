"""Embedded expression language — a statically checked subset of CEL.

Source text uses CEL operators (``&&``, ``||``, ``!``) and literals
(``true``, ``false``, ``null``, ``b"..."``).  Compilation happens in three
steps:

1. ``translate()`` rewrites the CEL operators into Python expression syntax
   (``&&`` -> ``and``, ``||`` -> ``or``, ``!`` -> ``~``, ``c ? a : b`` ->
   ``a if c else b``) while leaving string literals untouched.
2. :func:`ast.parse` builds the tree.
3. ``_Checker`` walks the tree against the declared variables and functions
   of an :class:`Environment`, rejecting unknown identifiers, arity and type
   mismatches, and any Python-only syntax.

The resulting :class:`Program` is evaluated by ``_Evaluator``, a plain tree
walker.  ``!`` is carried as ``ast.Invert`` so that it keeps CEL's unary
precedence (``!a == b`` is ``(!a) == b``).

INVARIANT: ``&&`` and ``||`` evaluate their operands strictly left to right and
stop as soon as the result is known, and ``c ? a : b`` evaluates only the
branch ``c`` selects.  Host functions may perform I/O (rule
functions send HTTP requests), so this ordering is part of the contract.
"""

from __future__ import annotations

import ast
import keyword
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExprType:
    """A type in the expression language.

    Object types carry their selectable fields; scalar types have none.
    Parameter unions (see :func:`one_of`) list their accepted members.
    """

    name: str
    fields: tuple[tuple[str, ExprType], ...] = ()
    members: tuple[ExprType, ...] = ()

    def field(self, name: str) -> ExprType | None:
        for field_name, field_type in self.fields:
            if field_name == name:
                return field_type
        return None

    def __str__(self) -> str:
        return self.name


BOOL = ExprType("bool")
INT = ExprType("int")
DOUBLE = ExprType("double")
STRING = ExprType("string")
BYTES = ExprType("bytes")
NULL = ExprType("null_type")
LIST = ExprType("list")
DYN = ExprType("dyn")

_NUMERIC = (INT, DOUBLE)
_ORDERED = (INT, DOUBLE, STRING, BYTES)
_CONCATENABLE = (INT, DOUBLE, STRING, BYTES, LIST)


def object_type(name: str, **fields: ExprType) -> ExprType:
    """Declare a structured type whose fields are selectable with ``a.b``."""
    return ExprType(name, tuple(fields.items()))


def one_of(*members: ExprType) -> ExprType:
    """A parameter type accepting any of *members*."""
    return ExprType("|".join(m.name for m in members), members=members)


def is_assignable(expected: ExprType, actual: ExprType) -> bool:
    """``dyn`` on either side matches anything; otherwise types must be equal."""
    if expected.members and actual != DYN:
        return actual in expected.members
    return expected == DYN or actual == DYN or expected == actual


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FunctionDecl:
    """A host function visible to expressions.

    Attributes:
        name: Identifier used in expressions.
        params: Parameter types; the arity is fixed.
        result: Return type.
        impl: Python callable receiving the evaluated arguments.
        receiver: Also callable member-style, ``arg0.name(arg1, ...)``.
    """

    name: str
    params: tuple[ExprType, ...]
    result: ExprType
    impl: Callable[..., Any]
    receiver: bool = False


@dataclass(frozen=True)
class VariableDecl:
    """A variable bound at evaluation time."""

    name: str
    type: ExprType


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ExpressionError(Exception):
    """Base class for compile and evaluation failures.

    Attributes:
        message: What went wrong.
        expression: The offending source text (filled in by the program
            when a host function raises without it).
        origin: Where the expression came from, e.g. ``"rule r1"``.
    """

    def __init__(self, message: str, expression: str = "", *, origin: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.expression = expression
        self.origin = origin

    def __str__(self) -> str:
        text = f"{self.origin}: {self.message}" if self.origin else self.message
        if self.expression:
            text += f" (in expression {self.expression!r})"
        return text


class ExpressionSyntaxError(ExpressionError):
    """Source text is not a valid expression."""


class UnknownIdentifierError(ExpressionError):
    """Expression references an undeclared variable or function."""


class ExpressionTypeError(ExpressionError):
    """Static type check failed (arity, argument, operator, or result type)."""


class ExpressionEvaluationError(ExpressionError):
    """Evaluation failed at run time."""


# ---------------------------------------------------------------------------
# Source translation
# ---------------------------------------------------------------------------

# ``in`` is shared by both languages; every other Python keyword is reserved.
RESERVED_WORDS: frozenset[str] = frozenset(keyword.kwlist) - {"in"} | {"true", "false", "null"}

_LITERAL_WORDS = {"true": "True", "false": "False", "null": "None"}
_STRING_PREFIXES = frozenset({"b", "r", "br", "rb"})
_FORBIDDEN_CHARS = frozenset("~#;\\@`$")


def is_identifier(name: str) -> bool:
    """True if *name* can be declared as a variable or function."""
    return (
        name.isascii()
        and name.isidentifier()
        and not keyword.iskeyword(name)
        and name not in RESERVED_WORDS
    )


def _string_end(source: str, start: int) -> int:
    """Index just past the string literal whose opening quote is at *start*."""
    quote = source[start]
    if source.startswith(quote * 3, start):
        delimiter = quote * 3
        i = start + 3
    else:
        delimiter = quote
        i = start + 1
    while i < len(source):
        if source[i] == "\\":
            i += 2
            continue
        if source.startswith(delimiter, i):
            return i + len(delimiter)
        if source[i] == "\n" and len(delimiter) == 1:
            break
        i += 1
    raise ExpressionSyntaxError("unterminated string literal", source)


def _tokens(source: str) -> list[str]:
    """Split *source* into Python-syntax tokens, rewriting CEL operators and literals.

    String literals and identifiers are single tokens; every other character
    is its own token, so joining the tokens gives the translated text.
    """
    out: list[str] = []
    i = 0
    n = len(source)
    while i < n:
        ch = source[i]
        if ch in "\"'":
            end = _string_end(source, i)
            out.append(source[i:end])
            i = end
        elif ch.isalpha() or ch == "_":
            j = i
            while j < n and (source[j].isalnum() or source[j] == "_"):
                j += 1
            word = source[i:j]
            if j < n and source[j] in "\"'":
                if word.lower() not in _STRING_PREFIXES:
                    raise ExpressionSyntaxError(f"unsupported string prefix {word!r}", source)
                end = _string_end(source, j)
                out.append(source[i:end])
                i = end
                continue
            if word in _LITERAL_WORDS:
                out.append(_LITERAL_WORDS[word])
            elif word in RESERVED_WORDS:
                raise ExpressionSyntaxError(f"reserved word {word!r}", source)
            else:
                out.append(word)
            i = j
        elif source.startswith("&&", i):
            out.append(" and ")
            i += 2
        elif source.startswith("||", i):
            out.append(" or ")
            i += 2
        elif source.startswith("!=", i):
            out.append("!=")
            i += 2
        elif ch == "!":
            out.append(" ~")
            i += 1
        elif ch in _FORBIDDEN_CHARS:
            raise ExpressionSyntaxError(f"unexpected character {ch!r}", source)
        else:
            out.append(ch)
            i += 1
    return out


_CLOSERS = {"(": ")", "[": "]"}


def _conditional(tokens: list[str], source: str) -> str:
    """Rewrite ``c ? a : b`` (right-associative) as ``((a) if (c) else (b))``."""
    if "?" not in tokens:
        if ":" in tokens:
            raise ExpressionSyntaxError("unexpected ':'", source)
        return "".join(tokens)
    mark = tokens.index("?")
    depth = 0
    for colon in range(mark + 1, len(tokens)):
        if tokens[colon] == "?":
            depth += 1
        elif tokens[colon] == ":":
            if depth == 0:
                break
            depth -= 1
    else:
        raise ExpressionSyntaxError("conditional is missing ':'", source)
    parts = (tokens[:mark], tokens[mark + 1 : colon], tokens[colon + 1 :])
    if any(not "".join(part).strip() for part in parts):
        raise ExpressionSyntaxError("incomplete conditional", source)
    test = "".join(parts[0])
    then = _conditional(parts[1], source)
    orelse = _conditional(parts[2], source)
    return f"(({then}) if ({test}) else ({orelse}))"


def _group(tokens: list[str], start: int, closer: str | None, source: str) -> tuple[str, int]:
    """Translate tokens up to *closer*, one comma-separated item at a time."""
    items: list[str] = []
    current: list[str] = []
    i = start
    while i < len(tokens):
        token = tokens[i]
        if token in _CLOSERS:
            inner, i = _group(tokens, i + 1, _CLOSERS[token], source)
            current.append(f"{token}{inner}{_CLOSERS[token]}")
            continue
        if token in (")", "]"):
            if token != closer:
                raise ExpressionSyntaxError(f"unbalanced {token!r}", source)
            items.append(_conditional(current, source))
            return ",".join(items), i + 1
        if token == ",":
            items.append(_conditional(current, source))
            current = []
        else:
            current.append(token)
        i += 1
    if closer is not None:
        raise ExpressionSyntaxError(f"missing {closer!r}", source)
    items.append(_conditional(current, source))
    return ",".join(items), i


def translate(source: str) -> str:
    """Rewrite CEL operators, literals and conditionals into Python expression syntax."""
    text, _ = _group(_tokens(source), 0, None, source)
    return text


# ---------------------------------------------------------------------------
# Static checker
# ---------------------------------------------------------------------------


class _Checker:
    """Infer the type of every node, rejecting anything outside the language."""

    def __init__(self, env: Environment, source: str) -> None:
        self._env = env
        self._source = source

    def check(self, node: ast.AST) -> ExprType:
        method = getattr(self, f"_check_{type(node).__name__}", None)
        if method is None:
            raise ExpressionSyntaxError(f"unsupported syntax: {type(node).__name__}", self._source)
        return method(node)

    def _type_error(self, message: str) -> ExpressionTypeError:
        return ExpressionTypeError(message, self._source)

    def _check_Constant(self, node: ast.Constant) -> ExprType:
        value = node.value
        if isinstance(value, bool):
            return BOOL
        if value is None:
            return NULL
        if isinstance(value, int):
            return INT
        if isinstance(value, float):
            return DOUBLE
        if isinstance(value, str):
            return STRING
        if isinstance(value, bytes):
            return BYTES
        raise ExpressionSyntaxError(f"unsupported literal {value!r}", self._source)

    def _check_Name(self, node: ast.Name) -> ExprType:
        decl = self._env.variables.get(node.id)
        if decl is not None:
            return decl.type
        function = self._env.functions.get(node.id)
        if function is not None:
            # Zero-argument functions may be referenced without parentheses.
            if function.params:
                raise self._type_error(f"function '{node.id}' must be called")
            return function.result
        raise UnknownIdentifierError(f"undeclared reference to '{node.id}'", self._source)

    def _check_Attribute(self, node: ast.Attribute) -> ExprType:
        base = self.check(node.value)
        if base == DYN:
            return DYN
        field_type = base.field(node.attr)
        if field_type is None:
            raise self._type_error(f"type '{base}' has no field '{node.attr}'")
        return field_type

    def _check_Call(self, node: ast.Call) -> ExprType:
        if node.keywords:
            raise ExpressionSyntaxError("keyword arguments are not supported", self._source)
        if any(isinstance(arg, ast.Starred) for arg in node.args):
            raise ExpressionSyntaxError("argument unpacking is not supported", self._source)

        decl, args = _resolve_call(self._env, node)
        if decl is None:
            func = node.func
            name = func.attr if isinstance(func, ast.Attribute) else getattr(func, "id", "?")
            raise UnknownIdentifierError(f"undeclared reference to '{name}'", self._source)

        if len(args) != len(decl.params):
            raise self._type_error(
                f"'{decl.name}' expects {len(decl.params)} argument(s), got {len(args)}"
            )
        for position, (param, arg) in enumerate(zip(decl.params, args, strict=True), start=1):
            actual = self.check(arg)
            if not is_assignable(param, actual):
                raise self._type_error(
                    f"argument {position} of '{decl.name}' must be {param}, got {actual}"
                )
        return decl.result

    def _check_BoolOp(self, node: ast.BoolOp) -> ExprType:
        symbol = "&&" if isinstance(node.op, ast.And) else "||"
        for value in node.values:
            operand = self.check(value)
            if not is_assignable(BOOL, operand):
                raise self._type_error(f"operands of '{symbol}' must be bool, got {operand}")
        return BOOL

    def _check_UnaryOp(self, node: ast.UnaryOp) -> ExprType:
        operand = self.check(node.operand)
        if isinstance(node.op, ast.Invert):
            if not is_assignable(BOOL, operand):
                raise self._type_error(f"operand of '!' must be bool, got {operand}")
            return BOOL
        if isinstance(node.op, ast.USub):
            if operand != DYN and operand not in _NUMERIC:
                raise self._type_error(f"operand of unary '-' must be numeric, got {operand}")
            return operand
        raise ExpressionSyntaxError(f"unsupported operator {type(node.op).__name__}", self._source)

    def _check_BinOp(self, node: ast.BinOp) -> ExprType:
        symbol = _BINARY_SYMBOLS.get(type(node.op))
        if symbol is None:
            raise ExpressionSyntaxError(
                f"unsupported operator {type(node.op).__name__}", self._source
            )
        left = self.check(node.left)
        right = self.check(node.right)
        if DYN in (left, right):
            return DYN
        allowed = _CONCATENABLE if symbol == "+" else (INT,) if symbol == "%" else _NUMERIC
        if left != right or left not in allowed:
            raise self._type_error(f"no matching overload for '{symbol}' on ({left}, {right})")
        return left

    def _check_Compare(self, node: ast.Compare) -> ExprType:
        if len(node.ops) != 1:
            raise ExpressionSyntaxError("chained comparisons are not supported", self._source)
        op = node.ops[0]
        symbol = _COMPARE_SYMBOLS.get(type(op))
        if symbol is None:
            raise ExpressionSyntaxError(f"unsupported operator {type(op).__name__}", self._source)
        left = self.check(node.left)
        right = self.check(node.comparators[0])
        if DYN in (left, right):
            return BOOL
        if symbol in ("==", "!="):
            ok = left == right or NULL in (left, right)
        elif symbol == "in":
            ok = right == LIST
        else:
            ok = left == right and left in _ORDERED
        if not ok:
            raise self._type_error(f"no matching overload for '{symbol}' on ({left}, {right})")
        return BOOL

    def _check_IfExp(self, node: ast.IfExp) -> ExprType:
        test = self.check(node.test)
        if not is_assignable(BOOL, test):
            raise self._type_error(f"condition of '?:' must be bool, got {test}")
        then = self.check(node.body)
        orelse = self.check(node.orelse)
        if then == orelse:
            return then
        if DYN in (then, orelse):
            return DYN
        raise self._type_error(f"branches of '?:' differ in type: ({then}, {orelse})")

    def _check_List(self, node: ast.List) -> ExprType:
        for element in node.elts:
            self.check(element)
        return LIST


_BINARY_SYMBOLS: dict[type[ast.operator], str] = {
    ast.Add: "+",
    ast.Sub: "-",
    ast.Mult: "*",
    ast.Div: "/",
    ast.Mod: "%",
}

_COMPARE_SYMBOLS: dict[type[ast.cmpop], str] = {
    ast.Eq: "==",
    ast.NotEq: "!=",
    ast.Lt: "<",
    ast.LtE: "<=",
    ast.Gt: ">",
    ast.GtE: ">=",
    ast.In: "in",
}


def _resolve_call(env: Environment, node: ast.Call) -> tuple[FunctionDecl | None, list[ast.expr]]:
    """Map a call node to its declaration and full argument list.

    Member-style calls (``x.f(y)``) pass the receiver as the first argument.
    """
    if isinstance(node.func, ast.Name):
        return env.functions.get(node.func.id), list(node.args)
    if isinstance(node.func, ast.Attribute):
        decl = env.functions.get(node.func.attr)
        if decl is not None and not decl.receiver:
            decl = None
        return decl, [node.func.value, *node.args]
    raise ExpressionSyntaxError("only named functions can be called", "")


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


def _truncated_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b >= 0) else -quotient


class _Evaluator:
    """Tree-walking evaluator over a checked tree."""

    def __init__(self, env: Environment, source: str, bindings: Mapping[str, Any]) -> None:
        self._env = env
        self._source = source
        self._bindings = bindings

    def _error(self, message: str) -> ExpressionEvaluationError:
        return ExpressionEvaluationError(message, self._source)

    def eval(self, node: ast.AST) -> Any:
        return getattr(self, f"_eval_{type(node).__name__}")(node)

    def _require_bool(self, value: Any, symbol: str) -> bool:
        if not isinstance(value, bool):
            raise self._error(f"operand of '{symbol}' must be bool, got {type(value).__name__}")
        return value

    def _eval_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def _eval_Name(self, node: ast.Name) -> Any:
        if node.id not in self._env.variables:
            return self._invoke(self._env.functions[node.id], [])
        try:
            return self._bindings[node.id]
        except KeyError:
            raise self._error(f"no value bound for variable '{node.id}'") from None

    def _eval_Attribute(self, node: ast.Attribute) -> Any:
        base = self.eval(node.value)
        if isinstance(base, Mapping):
            if node.attr not in base:
                raise self._error(f"no such key: '{node.attr}'")
            return base[node.attr]
        if node.attr.startswith("_") or not hasattr(base, node.attr):
            raise self._error(f"{type(base).__name__} has no field '{node.attr}'")
        return getattr(base, node.attr)

    def _eval_Call(self, node: ast.Call) -> Any:
        decl, arg_nodes = _resolve_call(self._env, node)
        assert decl is not None  # guaranteed by the checker
        return self._invoke(decl, [self.eval(arg) for arg in arg_nodes])

    def _invoke(self, decl: FunctionDecl, args: list[Any]) -> Any:
        try:
            return decl.impl(*args)
        except ExpressionError:
            raise
        except (TypeError, ValueError, ZeroDivisionError, OverflowError) as exc:
            raise self._error(f"{decl.name}: {exc}") from exc

    def _eval_BoolOp(self, node: ast.BoolOp) -> bool:
        if isinstance(node.op, ast.And):
            for value in node.values:
                if not self._require_bool(self.eval(value), "&&"):
                    return False
            return True
        for value in node.values:
            if self._require_bool(self.eval(value), "||"):
                return True
        return False

    def _eval_UnaryOp(self, node: ast.UnaryOp) -> Any:
        operand = self.eval(node.operand)
        if isinstance(node.op, ast.Invert):
            return not self._require_bool(operand, "!")
        if isinstance(operand, bool) or not isinstance(operand, (int, float)):
            kind = type(operand).__name__
            raise self._error(f"operand of unary '-' must be numeric, got {kind}")
        return -operand

    def _eval_BinOp(self, node: ast.BinOp) -> Any:
        left = self.eval(node.left)
        right = self.eval(node.right)
        symbol = _BINARY_SYMBOLS[type(node.op)]
        if type(left) is not type(right) or isinstance(left, bool):
            raise self._error(
                f"no matching overload for '{symbol}' on "
                f"({type(left).__name__}, {type(right).__name__})"
            )
        try:
            if symbol == "+":
                return left + right
            if symbol == "-":
                return left - right
            if symbol == "*":
                return left * right
            if symbol == "/":
                if isinstance(left, int):
                    return _truncated_div(left, right)
                return left / right
            return left - right * _truncated_div(left, right)
        except ZeroDivisionError:
            raise self._error("division by zero") from None
        except TypeError as exc:
            raise self._error(f"no matching overload for '{symbol}': {exc}") from exc

    def _eval_Compare(self, node: ast.Compare) -> bool:
        left = self.eval(node.left)
        right = self.eval(node.comparators[0])
        op = node.ops[0]
        try:
            if isinstance(op, ast.Eq):
                return bool(left == right)
            if isinstance(op, ast.NotEq):
                return bool(left != right)
            if isinstance(op, ast.In):
                if not isinstance(right, list):
                    kind = type(right).__name__
                    raise self._error(f"right operand of 'in' must be a list, got {kind}")
                return left in right
            if isinstance(op, ast.Lt):
                return bool(left < right)
            if isinstance(op, ast.LtE):
                return bool(left <= right)
            if isinstance(op, ast.Gt):
                return bool(left > right)
            return bool(left >= right)
        except TypeError as exc:
            raise self._error(f"cannot compare: {exc}") from exc

    def _eval_IfExp(self, node: ast.IfExp) -> Any:
        if self._require_bool(self.eval(node.test), "?:"):
            return self.eval(node.body)
        return self.eval(node.orelse)

    def _eval_List(self, node: ast.List) -> list[Any]:
        return [self.eval(element) for element in node.elts]


# ---------------------------------------------------------------------------
# Standard functions
# ---------------------------------------------------------------------------

_INT_LITERAL = re.compile(r"[+-]?[0-9]+")


def _require_strings(function: str, *values: Any) -> None:
    for value in values:
        if not isinstance(value, str):
            raise TypeError(f"unexpected type '{type(value).__name__}' passed to {function}")


def _size(value: Any) -> int:
    if isinstance(value, (str, bytes, list)):
        return len(value)
    raise TypeError(f"unexpected type '{type(value).__name__}' passed to size")


def _contains(text: Any, sub: Any) -> bool:
    _require_strings("contains", text, sub)
    return sub in text


def _starts_with(text: Any, prefix: Any) -> bool:
    _require_strings("startsWith", text, prefix)
    return text.startswith(prefix)


def _ends_with(text: Any, suffix: Any) -> bool:
    _require_strings("endsWith", text, suffix)
    return text.endswith(suffix)


def _matches(text: Any, pattern: Any) -> bool:
    """True if *pattern* matches anywhere in *text* (unanchored, like RE2)."""
    _require_strings("matches", text, pattern)
    try:
        return re.search(pattern, text) is not None
    except re.error as exc:
        raise ValueError(f"invalid regular expression {pattern!r}: {exc}") from exc


def _to_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8")
    if isinstance(value, (str, int, float)):
        return str(value)
    raise TypeError(f"cannot convert {type(value).__name__} to string")


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    raise TypeError(f"cannot convert {type(value).__name__} to bytes")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise TypeError("cannot convert bool to int")
    if isinstance(value, str):
        if not _INT_LITERAL.fullmatch(value):
            raise ValueError(f"invalid int literal {value!r}")
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    raise TypeError(f"cannot convert {type(value).__name__} to int")


def _to_double(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("cannot convert bool to double")
    if isinstance(value, (str, int, float)):
        return float(value)
    raise TypeError(f"cannot convert {type(value).__name__} to double")


_NUMBER_OR_STRING = one_of(INT, DOUBLE, STRING)

# Available in every environment; a declaration with the same name shadows one.
STANDARD_FUNCTIONS: tuple[FunctionDecl, ...] = (
    FunctionDecl("size", (one_of(STRING, BYTES, LIST),), INT, _size, receiver=True),
    FunctionDecl("contains", (STRING, STRING), BOOL, _contains, receiver=True),
    FunctionDecl("startsWith", (STRING, STRING), BOOL, _starts_with, receiver=True),
    FunctionDecl("endsWith", (STRING, STRING), BOOL, _ends_with, receiver=True),
    FunctionDecl("matches", (STRING, STRING), BOOL, _matches, receiver=True),
    FunctionDecl("string", (one_of(STRING, BYTES, INT, DOUBLE, BOOL),), STRING, _to_string),
    FunctionDecl("bytes", (one_of(STRING, BYTES),), BYTES, _to_bytes),
    FunctionDecl("int", (_NUMBER_OR_STRING,), INT, _to_int),
    FunctionDecl("double", (_NUMBER_OR_STRING,), DOUBLE, _to_double),
)


# ---------------------------------------------------------------------------
# Environment and Program
# ---------------------------------------------------------------------------


class Program:
    """A compiled, checked expression bound to its environment.

    Programs hold no state between evaluations; any side effects come from
    the host functions they call.
    """

    def __init__(
        self, env: Environment, source: str, tree: ast.Expression, result_type: ExprType
    ) -> None:
        self._env = env
        self._tree = tree
        self.source = source
        self.result_type = result_type

    def evaluate(self, bindings: Mapping[str, Any] | None = None) -> Any:
        """Evaluate against *bindings* (declared variable name -> value).

        Raises:
            ExpressionEvaluationError: On any run-time failure.  Errors from
                host functions that already carry their own expression (for
                example a nested rule) propagate unchanged.
        """
        evaluator = _Evaluator(self._env, self.source, bindings or {})
        try:
            value = evaluator.eval(self._tree.body)
        except RecursionError:
            raise ExpressionEvaluationError(
                "expression is nested too deeply", self.source
            ) from None
        except ExpressionError as exc:
            if not exc.expression:
                exc.expression = self.source
            raise
        if self.result_type == BOOL and not isinstance(value, bool):
            raise ExpressionEvaluationError(
                f"expected bool result, got {type(value).__name__}", self.source
            )
        return value


class Environment:
    """A typed evaluation context: declared functions and variables.

    Usage::

        env = Environment(functions=[FunctionDecl("ok", (), BOOL, lambda: True)])
        program = env.compile("ok() && !false", result=BOOL)
        program.evaluate()
    """

    def __init__(
        self,
        functions: Iterable[FunctionDecl] = (),
        variables: Iterable[VariableDecl] = (),
    ) -> None:
        self.functions: dict[str, FunctionDecl] = {
            decl.name: decl for decl in STANDARD_FUNCTIONS
        }
        self.variables: dict[str, VariableDecl] = {}
        self._declared: set[str] = set()
        for decl in functions:
            self._claim(decl.name)
            self.functions[decl.name] = decl
        for var in variables:
            self._claim(var.name)
            self.variables[var.name] = var

    def _claim(self, name: str) -> None:
        if not is_identifier(name):
            raise ValueError(f"invalid identifier: {name!r}")
        if name in self._declared:
            raise ValueError(f"duplicate declaration: {name!r}")
        self._declared.add(name)

    def compile(self, source: str, *, result: ExprType | None = None) -> Program:
        """Parse and check *source*; optionally require its result type.

        Raises:
            ExpressionSyntaxError: Malformed source or unsupported syntax.
            UnknownIdentifierError: Undeclared variable or function.
            ExpressionTypeError: Arity, operand, argument, or result mismatch.
        """
        if not source.strip():
            raise ExpressionSyntaxError("empty expression", source)
        try:
            translated = translate(source)
            # Parenthesized so that multi-line sources parse as one expression.
            tree = ast.parse(f"({translated}\n)", mode="eval")
            inferred = _Checker(self, source).check(tree.body)
        except SyntaxError as exc:
            raise ExpressionSyntaxError(f"syntax error: {exc.msg}", source) from None
        except (RecursionError, MemoryError):
            raise ExpressionSyntaxError("expression is nested too deeply", source) from None
        except ExpressionError as exc:
            if not exc.expression:
                exc.expression = source
            raise
        if result is not None and not is_assignable(result, inferred):
            raise ExpressionTypeError(f"expected {result} result, got {inferred}", source)
        return Program(self, source, tree, result or inferred)
