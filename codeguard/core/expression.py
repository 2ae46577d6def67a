"""
Tag Expression Evaluator — Recursive-descent parser for rule tag conditions.

Grammar (lowest to highest precedence):

    or_expr  := and_expr ('||' and_expr)*
    and_expr := not_expr ('&&' not_expr)*
    not_expr := '!' not_expr | primary
    primary  := TAG | '(' or_expr ')'

Tag tokens match ``[A-Z_][A-Z0-9_]*``. Expressions are parsed into an
explicit tree and evaluated by walking it; they are never handed to eval().
"""

from __future__ import annotations

import logging
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import AbstractSet, Iterable

from codeguard.errors import ExpressionParseError

logger = logging.getLogger("codeguard.expression")

TAG_PATTERN = re.compile(r"[A-Z_][A-Z0-9_]*")
_TAG_START = re.compile(r"[A-Z_]")

# Nesting limit for "!" and "(" levels
MAX_NESTING = 100


class TokenType(str, Enum):
    TAG = "TAG"
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    LPAREN = "LPAREN"
    RPAREN = "RPAREN"


class NodeType(str, Enum):
    TAG = "TAG"
    AND = "AND"
    OR = "OR"
    NOT = "NOT"


@dataclass(frozen=True)
class Token:
    type: TokenType
    value: str
    position: int


@dataclass(frozen=True)
class Node:
    type: NodeType
    name: str | None = None
    left: Node | None = None
    right: Node | None = None
    operand: Node | None = None


@dataclass
class EvaluationResult:
    result: bool
    matched_tags: list[str] = field(default_factory=list)
    unmatched_tags: list[str] = field(default_factory=list)
    expression: str = ""
    error: str | None = None


@dataclass
class ValidationResult:
    valid: bool
    error: str | None = None


@dataclass
class ExpressionComplexity:
    operators: int = 0
    tags: int = 0
    depth: int = 0


def tokenize(expression: str) -> list[Token]:
    """Split an expression into tokens. Raises ExpressionParseError on unknown characters."""
    tokens: list[Token] = []
    i = 0
    n = len(expression)

    while i < n:
        ch = expression[i]

        if ch.isspace():
            i += 1
            continue

        if expression.startswith("&&", i):
            tokens.append(Token(TokenType.AND, "&&", i))
            i += 2
            continue

        if expression.startswith("||", i):
            tokens.append(Token(TokenType.OR, "||", i))
            i += 2
            continue

        if ch == "!":
            tokens.append(Token(TokenType.NOT, "!", i))
            i += 1
            continue

        if ch == "(":
            tokens.append(Token(TokenType.LPAREN, "(", i))
            i += 1
            continue

        if ch == ")":
            tokens.append(Token(TokenType.RPAREN, ")", i))
            i += 1
            continue

        if _TAG_START.match(ch):
            m = TAG_PATTERN.match(expression, i)
            tokens.append(Token(TokenType.TAG, m.group(0), i))
            i = m.end()
            continue

        raise ExpressionParseError(
            f"Unexpected character '{ch}' at position {i}", char=ch, position=i
        )

    return tokens


class _Parser:
    """Single-use recursive-descent parser over a token list."""

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0
        self._depth = 0

    def parse(self) -> Node:
        if not self._tokens:
            raise ExpressionParseError("Empty expression")

        node = self._or_expr()

        if self._pos < len(self._tokens):
            extra = self._tokens[self._pos]
            raise ExpressionParseError(
                f"Unexpected token '{extra.value}' at position {extra.position} (excess tokens)",
                char=extra.value,
                position=extra.position,
            )
        return node

    def _peek(self) -> Token | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _accept(self, token_type: TokenType) -> bool:
        tok = self._peek()
        if tok is not None and tok.type == token_type:
            self._pos += 1
            return True
        return False

    def _or_expr(self) -> Node:
        left = self._and_expr()
        while self._accept(TokenType.OR):
            right = self._and_expr()
            left = Node(NodeType.OR, left=left, right=right)
        return left

    def _and_expr(self) -> Node:
        left = self._not_expr()
        while self._accept(TokenType.AND):
            right = self._not_expr()
            left = Node(NodeType.AND, left=left, right=right)
        return left

    def _not_expr(self) -> Node:
        if self._accept(TokenType.NOT):
            self._enter()
            operand = self._not_expr()
            self._depth -= 1
            return Node(NodeType.NOT, operand=operand)
        return self._primary()

    def _enter(self) -> None:
        self._depth += 1
        if self._depth > MAX_NESTING:
            raise ExpressionParseError(f"Expression nested too deeply (limit {MAX_NESTING})")

    def _primary(self) -> Node:
        tok = self._peek()
        if tok is None:
            raise ExpressionParseError("Unexpected end of expression")

        if tok.type == TokenType.TAG:
            self._pos += 1
            return Node(NodeType.TAG, name=tok.value)

        if tok.type == TokenType.LPAREN:
            self._pos += 1
            self._enter()
            node = self._or_expr()
            self._depth -= 1
            if not self._accept(TokenType.RPAREN):
                closing = self._peek()
                where = closing.position if closing else "end of expression"
                raise ExpressionParseError(f"Expected ')' at {where}")
            return node

        raise ExpressionParseError(
            f"Unexpected token '{tok.value}' at position {tok.position}",
            char=tok.value,
            position=tok.position,
        )


def parse(tokens: list[Token]) -> Node:
    return _Parser(tokens).parse()


def evaluate_node(node: Node, tags: AbstractSet[str]) -> bool:
    if node.type == NodeType.TAG:
        return node.name in tags
    if node.type == NodeType.AND:
        return evaluate_node(node.left, tags) and evaluate_node(node.right, tags)
    if node.type == NodeType.OR:
        return evaluate_node(node.left, tags) or evaluate_node(node.right, tags)
    if node.type == NodeType.NOT:
        return not evaluate_node(node.operand, tags)
    raise ExpressionParseError(f"Unknown node type: {node.type}")


def extract_tag_tokens(expression: str) -> list[str]:
    """Distinct tag-looking tokens of the raw expression, in order of appearance."""
    seen: dict[str, None] = {}
    for m in TAG_PATTERN.finditer(expression or ""):
        seen.setdefault(m.group(0), None)
    return list(seen)


class TagExpressionEvaluator:
    """
    Evaluates boolean tag expressions against a tag set.

    Results are memoized in a bounded FIFO cache keyed by the expression and
    the sorted tag set. Malformed expressions evaluate to False with an
    error message; evaluate() never raises.
    """

    def __init__(self, cache_size: int = 1000) -> None:
        self._cache: OrderedDict[tuple[str, tuple[str, ...]], EvaluationResult] = OrderedDict()
        self._cache_size = max(0, cache_size)

    # ─── Evaluation ───

    def evaluate(self, expression: str, tags: Iterable[str]) -> EvaluationResult:
        tag_set = tags if isinstance(tags, (set, frozenset)) else set(tags)
        cache_key = (expression, tuple(sorted(tag_set)))

        cached = self._cache.get(cache_key)
        if cached is not None:
            return _copy_result(cached)

        try:
            tree = parse(tokenize(expression))
            outcome = evaluate_node(tree, tag_set)
        except (ExpressionParseError, RecursionError) as e:
            logger.warning(f"Tag expression '{expression}' rejected: {e}")
            return EvaluationResult(result=False, expression=expression, error=str(e))

        tokens = extract_tag_tokens(expression)
        result = EvaluationResult(
            result=outcome,
            matched_tags=[t for t in tokens if t in tag_set],
            unmatched_tags=[t for t in tokens if t not in tag_set],
            expression=expression,
        )

        if self._cache_size:
            if len(self._cache) >= self._cache_size:
                self._cache.popitem(last=False)
            self._cache[cache_key] = result

        return _copy_result(result)

    def clear_cache(self) -> None:
        self._cache.clear()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    # ─── Static analysis ───

    def validate(self, expression: str) -> ValidationResult:
        try:
            parse(tokenize(expression))
            return ValidationResult(valid=True)
        except (ExpressionParseError, RecursionError) as e:
            return ValidationResult(valid=False, error=str(e))

    def get_required_tags(self, expression: str) -> list[str]:
        """
        Tags that must be present for the expression to hold.

        Best effort: only conjunctions are descended (and disjunctions under
        negation, by De Morgan). A plain ``A || B`` yields nothing because no
        single tag is provably required. Invalid expressions yield nothing.
        """
        required: dict[str, None] = {}
        try:
            tree = parse(tokenize(expression))
            for name in _required(tree, negated=False):
                required.setdefault(name, None)
        except (ExpressionParseError, RecursionError):
            return []
        return list(required)

    def depends_on(self, expression: str, tag_name: str) -> bool:
        return tag_name in extract_tag_tokens(expression)

    def complexity(self, expression: str) -> ExpressionComplexity:
        try:
            tokens = tokenize(expression)
        except ExpressionParseError:
            return ExpressionComplexity()

        operators = sum(
            1 for t in tokens if t.type in (TokenType.AND, TokenType.OR, TokenType.NOT)
        )
        depth = max_depth = 0
        for t in tokens:
            if t.type == TokenType.LPAREN:
                depth += 1
                max_depth = max(max_depth, depth)
            elif t.type == TokenType.RPAREN:
                depth -= 1

        return ExpressionComplexity(
            operators=operators,
            tags=len(extract_tag_tokens(expression)),
            depth=max_depth,
        )


def _required(node: Node, negated: bool) -> list[str]:
    if node.type == NodeType.TAG:
        return [] if negated else [node.name]
    if node.type == NodeType.NOT:
        return _required(node.operand, not negated)
    if node.type == NodeType.AND and not negated:
        return _required(node.left, False) + _required(node.right, False)
    if node.type == NodeType.OR and negated:
        return _required(node.left, True) + _required(node.right, True)
    return []


def _copy_result(result: EvaluationResult) -> EvaluationResult:
    return EvaluationResult(
        result=result.result,
        matched_tags=list(result.matched_tags),
        unmatched_tags=list(result.unmatched_tags),
        expression=result.expression,
        error=result.error,
    )
