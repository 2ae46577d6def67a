"""
Tests for Tag Extractor — Tier 1 regex, AST and context detectors.
"""

import pytest

from codeguard.core.tag_extractor import TagExtractor
from codeguard.models.ast_models import AstAnalysis


@pytest.fixture
def extractor(definitions):
    return TagExtractor(definitions)


def test_jdbc_controller_tags(extractor, parser, jdbc_controller_code):
    analysis = parser.parse(jdbc_controller_code).analysis
    result = extractor.extract_tags(jdbc_controller_code, analysis)

    for tag in (
        "IS_CONTROLLER",
        "USES_CONNECTION",
        "USES_STATEMENT",
        "USES_RESULTSET",
        "HAS_SQL_CONCATENATION",
        "HAS_SYSTEM_OUT",
        "HAS_AUTOWIRED_FIELD",
    ):
        assert tag in result.tags, tag
    assert "HAS_TRY_WITH_RESOURCES" not in result.tags
    assert "IS_SERVICE" not in result.tags

    detail = result.details["HAS_SQL_CONCATENATION"]
    assert detail.detector == "regex"
    assert detail.samples
    assert result.stats["ast_available"] is True


def test_comments_do_not_produce_tags(extractor):
    code = """// @Service was removed
/* @Controller */
public class Helper {
}
"""
    result = extractor.extract_tags(code)
    assert "IS_SERVICE" not in result.tags
    assert "IS_CONTROLLER" not in result.tags


def test_hardcoded_password_matches_string_literal(extractor):
    code = """public class Config {
    private String password = "hunter2";
}
"""
    assert "HAS_HARDCODED_PASSWORD" in extractor.extract_tags(code).tags


def test_empty_catch_uses_ast_when_available(extractor, parser, empty_catch_code):
    analysis = parser.parse(empty_catch_code).analysis
    result = extractor.extract_tags(empty_catch_code, analysis)
    assert "HAS_EMPTY_CATCH" in result.tags
    assert result.details["HAS_EMPTY_CATCH"].detector == "ast"
    assert "HAS_GENERIC_CATCH" in result.tags


def test_empty_catch_falls_back_to_regex_without_ast(extractor, empty_catch_code):
    result = extractor.extract_tags(empty_catch_code)
    assert "HAS_EMPTY_CATCH" in result.tags
    assert result.details["HAS_EMPTY_CATCH"].detector == "regex"
    assert result.stats["ast_available"] is False


def test_logged_catch_is_not_empty(extractor, parser, logged_catch_code):
    analysis = parser.parse(logged_catch_code).analysis
    assert "HAS_EMPTY_CATCH" not in extractor.extract_tags(logged_catch_code, analysis).tags
    assert "HAS_EMPTY_CATCH" not in extractor.extract_tags(logged_catch_code).tags


def test_close_in_finally_context(extractor):
    code = """public class Dao {
    void load() throws Exception {
        Connection conn = null;
        try {
            conn = ds.getConnection();
        } finally {
            conn.close();
        }
    }
}
"""
    result = extractor.extract_tags(code)
    assert "HAS_CLOSE_IN_FINALLY" in result.tags
    assert result.details["HAS_CLOSE_IN_FINALLY"].detector == "ast_context"


def test_db_call_in_loop_and_nested_loops(extractor, parser, nested_loop_code):
    analysis = parser.parse(nested_loop_code).analysis
    result = extractor.extract_tags(nested_loop_code, analysis)
    assert {"HAS_DB_CALL_IN_LOOP", "HAS_LOOP", "HAS_NESTED_LOOP"} <= result.tags


def test_nested_loop_estimated_without_ast(extractor, nested_loop_code):
    result = extractor.extract_tags(nested_loop_code)
    assert "HAS_NESTED_LOOP" in result.tags
    assert result.details["HAS_NESTED_LOOP"].detector == "regex"


def test_metric_from_ast(extractor):
    analysis = AstAnalysis(cyclomatic_complexity=12, max_nesting_depth=1, line_count=20)
    result = extractor.extract_tags("class A {}", analysis)
    detail = result.details["COMPLEXITY_HIGH"]
    assert detail.metric_value == 12
    assert detail.threshold == 10
    assert detail.detector == "ast"
    assert "NESTING_DEEP" not in result.tags


def test_metric_estimated_without_ast(extractor):
    code = "\n".join(["// filler"] * 310)
    result = extractor.extract_tags(code)
    detail = result.details["LINE_COUNT_HIGH"]
    assert detail.detector == "metric"
    assert detail.confidence == 0.9


def test_stats_count_detectors(extractor, jdbc_controller_code):
    result = extractor.extract_tags(jdbc_controller_code)
    assert result.stats["total_tags"] == len(result.tags)
    assert sum(result.stats["by_detector"].values()) == len(result.tags)
