"""
Tests for Tag Expression Evaluator — parsing, evaluation, static analysis.
"""

import itertools

import pytest

from codeguard.core.expression import TagExpressionEvaluator, parse, tokenize
from codeguard.errors import ExpressionParseError


@pytest.mark.parametrize(
    "expression,tags,expected",
    [
        ("A && !B", {"A"}, True),
        ("A && !B", {"A", "B"}, False),
        ("(A || B) && C", {"B", "C"}, True),
        ("(A || B) && C", {"A"}, False),
        ("A || B && C", {"A"}, True),
        ("!A || B", set(), True),
        ("!!A", {"A"}, True),
        ("IS_CONTROLLER && HAS_2FA", {"IS_CONTROLLER", "HAS_2FA"}, True),
    ],
)
def test_evaluate_examples(evaluator, expression, tags, expected):
    assert evaluator.evaluate(expression, tags).result is expected


def test_and_binds_tighter_than_or(evaluator):
    # A || (B && C), not (A || B) && C
    assert evaluator.evaluate("A || B && C", {"A"}).result is True
    assert evaluator.evaluate("A || B && C", {"B"}).result is False


def test_matches_reference_boolean_semantics(evaluator):
    expression = "(A && !B) || (C && !(A || D))"

    def reference(a, b, c, d):
        return (a and not b) or (c and not (a or d))

    for bits in itertools.product([False, True], repeat=4):
        tags = {name for name, on in zip("ABCD", bits) if on}
        assert evaluator.evaluate(expression, tags).result is reference(*bits), tags


def test_matched_and_unmatched_tags(evaluator):
    result = evaluator.evaluate("A && (B || !C)", {"A", "C"})
    assert result.matched_tags == ["A", "C"]
    assert result.unmatched_tags == ["B"]
    assert result.expression == "A && (B || !C)"
    assert result.error is None


@pytest.mark.parametrize(
    "expression",
    ["", "   ", "A &&", "&& A", "(A || B", "A B", "A & B", "a && B", "A || ()", "A)"],
)
def test_malformed_expression_is_false_with_error(evaluator, expression):
    result = evaluator.evaluate(expression, {"A", "B"})
    assert result.result is False
    assert result.error


def test_excess_tokens_reported():
    with pytest.raises(ExpressionParseError, match="excess tokens"):
        parse(tokenize("A B"))


def test_unknown_character_position():
    with pytest.raises(ExpressionParseError) as exc_info:
        tokenize("A && $B")
    assert exc_info.value.char == "$"
    assert exc_info.value.position == 5


@pytest.mark.parametrize("expression", ["A", "!A", "A && B", "(A || B) && !C", "A &&", "(A", "x"])
def test_validate_agrees_with_evaluate(evaluator, expression):
    valid = evaluator.validate(expression).valid
    assert valid is (evaluator.evaluate(expression, set()).error is None)


def test_required_tags_examples(evaluator):
    assert evaluator.get_required_tags("A && B") == ["A", "B"]
    assert evaluator.get_required_tags("A || B") == []
    assert evaluator.get_required_tags("A && !B") == ["A"]
    assert evaluator.get_required_tags("A && (B || C)") == ["A"]
    assert evaluator.get_required_tags("!(!A || !B)") == ["A", "B"]
    assert evaluator.get_required_tags("A &&") == []


@pytest.mark.parametrize("expression", ["A && B", "A && !B && C", "!(!A || B) && D", "A && (B || C)"])
def test_required_tags_are_sound(evaluator, expression):
    universe = {"A", "B", "C", "D"}
    for required in evaluator.get_required_tags(expression):
        for size in range(len(universe) + 1):
            for tags in itertools.combinations(sorted(universe - {required}), size):
                assert evaluator.evaluate(expression, set(tags)).result is False


def test_depends_on_is_lexical(evaluator):
    assert evaluator.depends_on("A && !B", "B")
    assert evaluator.depends_on("A || (A && C)", "C")
    assert not evaluator.depends_on("A && B", "AB")


def test_complexity(evaluator):
    c = evaluator.complexity("(A && !B) || ((C))")
    assert c.operators == 3
    assert c.tags == 3
    assert c.depth == 2


def test_cache_is_bounded_and_results_are_copies():
    evaluator = TagExpressionEvaluator(cache_size=2)
    first = evaluator.evaluate("A", {"A"})
    first.matched_tags.append("MUTATED")

    again = evaluator.evaluate("A", {"A"})
    assert again.matched_tags == ["A"]

    evaluator.evaluate("B", {"A"})
    evaluator.evaluate("C", {"A"})
    assert evaluator.cache_size == 2

    evaluator.clear_cache()
    assert evaluator.cache_size == 0


def test_cache_key_ignores_tag_order():
    evaluator = TagExpressionEvaluator(cache_size=10)
    evaluator.evaluate("A && B", ["B", "A"])
    evaluator.evaluate("A && B", ["A", "B"])
    assert evaluator.cache_size == 1


@pytest.mark.parametrize(
    "expression",
    ["!" * 2000 + "A", "(" * 1500 + "A" + ")" * 1500],
)
def test_deep_nesting_is_rejected_not_raised(evaluator, expression):
    result = evaluator.evaluate(expression, {"A"})
    assert result.result is False
    assert "nested too deeply" in result.error

    assert evaluator.validate(expression).valid is False
    assert evaluator.get_required_tags(expression) == []


def test_nesting_within_limit_still_parses(evaluator):
    assert evaluator.evaluate("!" * 100 + "A", {"A"}).result is True
    assert evaluator.evaluate("(" * 100 + "A" + ")" * 100, {"A"}).result is True


def test_long_chains_never_raise(evaluator):
    expression = " && ".join(["A"] * 5000)
    result = evaluator.evaluate(expression, {"A"})
    assert result.result is True or result.error is not None
    assert isinstance(evaluator.get_required_tags(expression), list)


def test_cache_key_separates_tag_names_with_delimiters():
    evaluator = TagExpressionEvaluator(cache_size=10)
    assert evaluator.evaluate("A", {"A,B"}).result is False
    assert evaluator.evaluate("A", {"A", "B"}).result is True
    assert evaluator.cache_size == 2
