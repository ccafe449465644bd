# ============================================================================
# EXPRESSION EVALUATOR
# ============================================================================
# EPOCH: 1 - WORKFLOW PLANNING
# STATUS: Core - `if:` condition language
# PURPOSE: Parse and evaluate job gating expressions against a snapshot
# CREATED: 13 OCT 2026
# ============================================================================
"""
Expression Evaluator

Parses `if:` expressions into a small closed AST and evaluates them against a
ContextSnapshot plus an environment of named contexts (github, inputs, env,
matrix, needs).

Grammar (precedence high -> low):
    grouping ( ), calls f(...), property a.b, index a['b']
    !
    <  <=  >  >=
    ==  !=
    &&
    ||

Literals: null, true, false, numbers (42, -1.5, 0xff, 1e3),
single-quoted strings ('it''s' escapes a quote).
An optional ${{ ... }} wrapper is stripped.

Coercion rules:
- Unresolvable context lookups evaluate to null, never an error.
- Falsy values: null, false, 0, NaN, ''. Everything else is truthy.
- && and || short-circuit and return the deciding operand.
- == / != compare same-typed operands; strings compare case-insensitively.
  Operands of different types are unequal. null == null is true.
- < <= > >= need two numbers or two strings; any other pairing
  (null included) is false.
- Where values are turned into text (format, join, contains, startsWith,
  endsWith) null becomes '' and booleans/numbers use their JSON spelling.

Malformed expressions and unknown functions raise EvaluationError.
"""

import json
import logging
import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from core.contracts import InstanceStatus
from engine.context import ContextSnapshot

logger = logging.getLogger(__name__)

Value = Union[None, bool, int, float, str, Dict[str, Any], List[Any]]


class EvaluationError(Exception):
    """Raised when an expression cannot be parsed or evaluated."""

    def __init__(self, message: str, expression: Optional[str] = None, position: Optional[int] = None):
        self.message = message
        self.expression = expression
        self.position = position
        detail = message
        if expression is not None:
            detail = f"{message} in expression {expression!r}"
            if position is not None:
                detail += f" at position {position}"
        super().__init__(detail)


# ============================================================================
# AST
# ============================================================================

@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class ContextRef:
    name: str


@dataclass(frozen=True)
class Property:
    target: "Node"
    name: str


@dataclass(frozen=True)
class Index:
    target: "Node"
    index: "Node"


@dataclass(frozen=True)
class Not:
    operand: "Node"


@dataclass(frozen=True)
class Compare:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Logical:
    op: str
    left: "Node"
    right: "Node"


@dataclass(frozen=True)
class Call:
    name: str
    args: Tuple["Node", ...]


Node = Union[Literal, ContextRef, Property, Index, Not, Compare, Logical, Call]


# ============================================================================
# TOKENIZER
# ============================================================================

@dataclass(frozen=True)
class Token:
    kind: str
    value: Any
    pos: int


_TOKEN_SPEC = [
    ("WS", r"\s+"),
    ("NUMBER", r"-?(?:0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"),
    ("STRING", r"'(?:[^']|'')*'"),
    ("IDENT", r"[A-Za-z_][A-Za-z0-9_-]*"),
    ("OP", r"==|!=|<=|>=|&&|\|\||[<>!]"),
    ("PUNCT", r"[()\[\].,]"),
]
_TOKEN_RE = re.compile("|".join(f"(?P<{name}>{pattern})" for name, pattern in _TOKEN_SPEC))

_KEYWORDS = {"null": None, "true": True, "false": False}


def _parse_number(text: str) -> Union[int, float]:
    sign = -1 if text.startswith("-") else 1
    body = text.lstrip("-")
    if body.lower().startswith("0x"):
        return sign * int(body, 16)
    if any(c in body for c in ".eE"):
        return sign * float(body)
    return sign * int(body)


def tokenize(expression: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(expression):
        match = _TOKEN_RE.match(expression, pos)
        if match is None:
            raise EvaluationError(
                f"Unexpected character {expression[pos]!r}", expression, pos
            )
        kind = match.lastgroup
        text = match.group()
        if kind == "NUMBER":
            tokens.append(Token("NUMBER", _parse_number(text), pos))
        elif kind == "STRING":
            tokens.append(Token("STRING", text[1:-1].replace("''", "'"), pos))
        elif kind != "WS":
            tokens.append(Token(kind, text, pos))
        pos = match.end()
    tokens.append(Token("EOF", None, pos))
    return tokens


# ============================================================================
# PARSER
# ============================================================================

class _Parser:
    """Recursive-descent parser producing the closed AST above."""

    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = tokenize(expression)
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _accept(self, kind: str, *values: str) -> Optional[Token]:
        token = self.current
        if token.kind == kind and (not values or token.value in values):
            return self._advance()
        return None

    def _expect(self, kind: str, value: str) -> Token:
        token = self._accept(kind, value)
        if token is None:
            found = self.current.value if self.current.kind != "EOF" else "end of expression"
            raise EvaluationError(
                f"Expected {value!r} but found {found!r}", self.expression, self.current.pos
            )
        return token

    def parse(self) -> Node:
        if self.current.kind == "EOF":
            raise EvaluationError("Empty expression", self.expression, 0)
        node = self._or()
        if self.current.kind != "EOF":
            raise EvaluationError(
                f"Unexpected token {self.current.value!r}", self.expression, self.current.pos
            )
        return node

    def _or(self) -> Node:
        node = self._and()
        while self._accept("OP", "||"):
            node = Logical("||", node, self._and())
        return node

    def _and(self) -> Node:
        node = self._equality()
        while self._accept("OP", "&&"):
            node = Logical("&&", node, self._equality())
        return node

    def _equality(self) -> Node:
        node = self._comparison()
        while True:
            token = self._accept("OP", "==", "!=")
            if token is None:
                return node
            node = Compare(token.value, node, self._comparison())

    def _comparison(self) -> Node:
        node = self._unary()
        while True:
            token = self._accept("OP", "<", "<=", ">", ">=")
            if token is None:
                return node
            node = Compare(token.value, node, self._unary())

    def _unary(self) -> Node:
        if self._accept("OP", "!"):
            return Not(self._unary())
        return self._postfix()

    def _postfix(self) -> Node:
        node = self._primary()
        while True:
            if self._accept("PUNCT", "."):
                token = self.current
                if token.kind != "IDENT":
                    raise EvaluationError(
                        "Expected property name after '.'", self.expression, token.pos
                    )
                self._advance()
                node = Property(node, token.value)
            elif self._accept("PUNCT", "["):
                index = self._or()
                self._expect("PUNCT", "]")
                node = Index(node, index)
            else:
                return node

    def _primary(self) -> Node:
        token = self.current
        if token.kind in ("NUMBER", "STRING"):
            self._advance()
            return Literal(token.value)
        if token.kind == "IDENT":
            self._advance()
            if self._accept("PUNCT", "("):
                return self._call(token)
            if token.value in _KEYWORDS:
                return Literal(_KEYWORDS[token.value])
            return ContextRef(token.value)
        if self._accept("PUNCT", "("):
            node = self._or()
            self._expect("PUNCT", ")")
            return node
        if token.kind == "EOF":
            raise EvaluationError("Unexpected end of expression", self.expression, token.pos)
        raise EvaluationError(f"Unexpected token {token.value!r}", self.expression, token.pos)

    def _call(self, name_token: Token) -> Node:
        key = name_token.value.lower()
        if key not in BUILTINS:
            raise EvaluationError(
                f"Unknown function {name_token.value!r}", self.expression, name_token.pos
            )
        args: List[Node] = []
        if not self._accept("PUNCT", ")"):
            args.append(self._or())
            while self._accept("PUNCT", ","):
                args.append(self._or())
            self._expect("PUNCT", ")")
        builtin = BUILTINS[key]
        if not builtin.min_args <= len(args) <= builtin.max_args:
            raise EvaluationError(
                f"Function {name_token.value!r} takes {builtin.arity_text()} argument(s), got {len(args)}",
                self.expression,
                name_token.pos,
            )
        return Call(key, tuple(args))


def strip_wrapper(expression: str) -> str:
    """Remove an enclosing ${{ ... }} if present."""
    text = expression.strip()
    if text.startswith("${{") and text.endswith("}}"):
        return text[3:-2].strip()
    return text


@lru_cache(maxsize=512)
def parse(expression: str) -> Node:
    """
    Parse an expression into its AST.

    Raises:
        EvaluationError: on syntax errors, unknown functions or bad arity
    """
    return _Parser(strip_wrapper(expression)).parse()


# ============================================================================
# COERCION
# ============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_truthy(value: Any) -> bool:
    """Falsy: null, false, 0, NaN, ''. Everything else is truthy."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if _is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def to_text(value: Any) -> str:
    """String rendering used by format/join and the search functions."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if _is_number(value):
        return str(value)
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True)


def values_equal(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if _is_number(left) and _is_number(right):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left.casefold() == right.casefold()
    # Objects and arrays compare by identity
    return left is right


_ORDERING: Dict[str, Callable[[Any, Any], bool]] = {
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}


def _compare(op: str, left: Any, right: Any) -> bool:
    if op == "==":
        return values_equal(left, right)
    if op == "!=":
        return not values_equal(left, right)
    if _is_number(left) and _is_number(right):
        return _ORDERING[op](left, right)
    if isinstance(left, str) and isinstance(right, str):
        return _ORDERING[op](left.casefold(), right.casefold())
    return False


def _lookup(container: Any, key: Any) -> Any:
    """Case-insensitive mapping lookup; integer indexing into arrays."""
    if isinstance(container, Mapping):
        if not isinstance(key, str):
            return None
        if key in container:
            return container[key]
        folded = key.casefold()
        for name, value in container.items():
            if isinstance(name, str) and name.casefold() == folded:
                return value
        return None
    if isinstance(container, (list, tuple)) and _is_number(key):
        if isinstance(key, float) and not key.is_integer():
            return None
        position = int(key)
        if 0 <= position < len(container):
            return container[position]
    return None


# ============================================================================
# BUILTINS
# ============================================================================

@dataclass(frozen=True)
class _Scope:
    snapshot: ContextSnapshot
    env: Mapping[str, Any]
    expression: str


@dataclass(frozen=True)
class Builtin:
    min_args: int
    max_args: int
    func: Callable[[_Scope, List[Any]], Any]
    status_function: bool = False

    def arity_text(self) -> str:
        if self.min_args == self.max_args:
            return str(self.min_args)
        if self.max_args > 1000:
            return f"at least {self.min_args}"
        return f"{self.min_args}-{self.max_args}"


def _fn_success(scope: _Scope, args: List[Any]) -> bool:
    return all(status == InstanceStatus.SUCCESS for status in scope.snapshot.dependency_statuses())


def _fn_failure(scope: _Scope, args: List[Any]) -> bool:
    return any(status == InstanceStatus.FAILURE for status in scope.snapshot.dependency_statuses())


def _fn_cancelled(scope: _Scope, args: List[Any]) -> bool:
    return any(status == InstanceStatus.CANCELLED for status in scope.snapshot.dependency_statuses())


def _fn_always(scope: _Scope, args: List[Any]) -> bool:
    return True


def _fn_contains(scope: _Scope, args: List[Any]) -> bool:
    search, item = args
    if isinstance(search, (list, tuple)):
        return any(values_equal(element, item) for element in search)
    return to_text(item).casefold() in to_text(search).casefold()


def _fn_starts_with(scope: _Scope, args: List[Any]) -> bool:
    return to_text(args[0]).casefold().startswith(to_text(args[1]).casefold())


def _fn_ends_with(scope: _Scope, args: List[Any]) -> bool:
    return to_text(args[0]).casefold().endswith(to_text(args[1]).casefold())


_FORMAT_RE = re.compile(r"\{\{|\}\}|\{(\d+)\}|[{}]")


def _fn_format(scope: _Scope, args: List[Any]) -> str:
    template, values = to_text(args[0]), args[1:]

    def substitute(match: "re.Match[str]") -> str:
        text = match.group()
        if text == "{{":
            return "{"
        if text == "}}":
            return "}"
        if match.group(1) is None:
            raise EvaluationError(f"Unbalanced brace in format string {template!r}", scope.expression)
        position = int(match.group(1))
        if position >= len(values):
            raise EvaluationError(
                f"format() index {position} out of range for {len(values)} argument(s)",
                scope.expression,
            )
        return to_text(values[position])

    return _FORMAT_RE.sub(substitute, template)


def _fn_join(scope: _Scope, args: List[Any]) -> str:
    items = args[0]
    separator = to_text(args[1]) if len(args) > 1 else ","
    if isinstance(items, (list, tuple)):
        return separator.join(to_text(item) for item in items)
    return to_text(items)


def _fn_to_json(scope: _Scope, args: List[Any]) -> str:
    return json.dumps(args[0], indent=2, default=str)


def _fn_from_json(scope: _Scope, args: List[Any]) -> Any:
    try:
        return json.loads(to_text(args[0]))
    except json.JSONDecodeError as e:
        raise EvaluationError(f"fromJSON() received invalid JSON: {e.msg}", scope.expression) from e


_VARIADIC = 10_000

BUILTINS: Dict[str, Builtin] = {
    "success": Builtin(0, 0, _fn_success, status_function=True),
    "failure": Builtin(0, 0, _fn_failure, status_function=True),
    "cancelled": Builtin(0, 0, _fn_cancelled, status_function=True),
    "always": Builtin(0, 0, _fn_always, status_function=True),
    "contains": Builtin(2, 2, _fn_contains),
    "startswith": Builtin(2, 2, _fn_starts_with),
    "endswith": Builtin(2, 2, _fn_ends_with),
    "format": Builtin(1, _VARIADIC, _fn_format),
    "join": Builtin(1, 2, _fn_join),
    "tojson": Builtin(1, 1, _fn_to_json),
    "fromjson": Builtin(1, 1, _fn_from_json),
}


# ============================================================================
# EVALUATION
# ============================================================================

def _evaluate_node(node: Node, scope: _Scope) -> Any:
    if isinstance(node, Literal):
        return node.value
    if isinstance(node, ContextRef):
        return _lookup(scope.env, node.name)
    if isinstance(node, Property):
        return _lookup(_evaluate_node(node.target, scope), node.name)
    if isinstance(node, Index):
        target = _evaluate_node(node.target, scope)
        return _lookup(target, _evaluate_node(node.index, scope))
    if isinstance(node, Not):
        return not is_truthy(_evaluate_node(node.operand, scope))
    if isinstance(node, Logical):
        left = _evaluate_node(node.left, scope)
        if node.op == "&&":
            return _evaluate_node(node.right, scope) if is_truthy(left) else left
        return left if is_truthy(left) else _evaluate_node(node.right, scope)
    if isinstance(node, Compare):
        return _compare(node.op, _evaluate_node(node.left, scope), _evaluate_node(node.right, scope))
    if isinstance(node, Call):
        args = [_evaluate_node(arg, scope) for arg in node.args]
        return BUILTINS[node.name].func(scope, args)
    raise EvaluationError(f"Unsupported node {type(node).__name__}", scope.expression)


def evaluate(
    expression: str,
    context: Optional[ContextSnapshot] = None,
    env: Optional[Mapping[str, Any]] = None,
) -> Value:
    """
    Evaluate an expression.

    Args:
        expression: Expression text, with or without ${{ }}
        context: Snapshot of instance outcomes plus the direct dependencies
            of the instance being gated
        env: Named contexts (github, inputs, env, matrix, needs)

    Returns:
        bool, str, number, null (or an object/array from fromJSON)

    Raises:
        EvaluationError: malformed expression, unknown function, bad format()
    """
    node = parse(expression)
    scope = _Scope(
        snapshot=context if context is not None else ContextSnapshot(),
        env=env or {},
        expression=expression,
    )
    return _evaluate_node(node, scope)


def evaluate_condition(
    expression: str,
    context: Optional[ContextSnapshot] = None,
    env: Optional[Mapping[str, Any]] = None,
) -> bool:
    """Evaluate and coerce to a gating decision."""
    return is_truthy(evaluate(expression, context, env))


def _walk(node: Node):
    yield node
    if isinstance(node, (Property, Not)):
        yield from _walk(node.target if isinstance(node, Property) else node.operand)
    elif isinstance(node, Index):
        yield from _walk(node.target)
        yield from _walk(node.index)
    elif isinstance(node, (Compare, Logical)):
        yield from _walk(node.left)
        yield from _walk(node.right)
    elif isinstance(node, Call):
        for arg in node.args:
            yield from _walk(arg)


def uses_status_function(expression: str) -> bool:
    """True if the expression calls success(), failure(), always() or cancelled()."""
    return any(
        isinstance(node, Call) and BUILTINS[node.name].status_function
        for node in _walk(parse(expression))
    )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "EvaluationError",
    "Literal",
    "ContextRef",
    "Property",
    "Index",
    "Not",
    "Compare",
    "Logical",
    "Call",
    "Node",
    "BUILTINS",
    "tokenize",
    "parse",
    "strip_wrapper",
    "is_truthy",
    "to_text",
    "values_equal",
    "evaluate",
    "evaluate_condition",
    "uses_status_function",
]
