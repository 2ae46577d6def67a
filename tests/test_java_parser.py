"""
Tests for Java Parser — tree-sitter structural analysis.
"""

from codeguard.core.java_parser import node_type_name


def test_parse_collects_declarations(parser, jdbc_controller_code):
    result = parser.parse(jdbc_controller_code)
    assert result.success
    analysis = result.analysis

    assert [c.name for c in analysis.class_declarations] == ["OrderController"]
    assert analysis.class_declarations[0].annotations == ["RestController"]

    method = analysis.method_declarations[0]
    assert method.name == "find"
    assert method.class_name == "OrderController"
    assert method.parameter_count == 1
    assert method.annotations == ["GetMapping"]
    assert "public" in method.modifiers

    names = {(a.name, a.target) for a in analysis.annotations}
    assert ("RestController", "OrderController") in names
    assert ("GetMapping", "find") in names
    assert ("Autowired", "OrderController") in names


def test_empty_catch_detected(parser, empty_catch_code):
    analysis = parser.parse(empty_catch_code).analysis
    assert len(analysis.exception_handling) == 1
    try_info = analysis.exception_handling[0]
    assert try_info.catch_count == 1
    assert try_info.caught_types == ["Exception"]
    assert try_info.empty_catch_lines == [11]
    assert try_info.enclosing_method == "pay"
    assert "CatchClause" in analysis.node_types


def test_catch_with_statement_is_not_empty(parser, logged_catch_code):
    analysis = parser.parse(logged_catch_code).analysis
    assert analysis.exception_handling[0].empty_catch_lines == []


def test_catch_with_only_comment_is_empty(parser):
    code = """class A {
    void run() {
        try { work(); } catch (RuntimeException e) {
            // ignored on purpose
        }
    }
}
"""
    analysis = parser.parse(code).analysis
    assert analysis.exception_handling[0].empty_catch_lines == [3]


def test_try_with_resources(parser):
    code = """class A {
    void run() throws Exception {
        try (Connection c = ds.getConnection()) {
            c.commit();
        }
    }
}
"""
    analysis = parser.parse(code).analysis
    assert analysis.exception_handling[0].has_resources


def test_nested_loops_and_depth(parser, nested_loop_code):
    analysis = parser.parse(nested_loop_code).analysis
    assert [loop.depth for loop in analysis.loops] == [1, 2]
    assert analysis.loops[0].type == "ForEachStatement"
    assert analysis.has_nested_loops
    assert analysis.max_nesting_depth == 2


def test_cyclomatic_complexity_counts_decisions(parser):
    code = """class A {
    int f(int a, int b) {
        if (a > 0 && b > 0) {
            return 1;
        } else if (a < 0) {
            return 2;
        }
        for (int i = 0; i < a; i++) {
            b = b > 3 ? b : 3;
        }
        return b;
    }
}
"""
    analysis = parser.parse(code).analysis
    # if, &&, else-if, for, ternary
    assert analysis.cyclomatic_complexity == 6
    # else-if does not deepen nesting
    assert analysis.max_nesting_depth == 1


def test_syntax_error_reports_failure(parser):
    result = parser.parse("public class Broken { void f( { }")
    assert not result.success
    assert result.error.startswith("Syntax error")


def test_line_count(parser, plain_code):
    analysis = parser.parse(plain_code).analysis
    assert analysis.line_count == len(plain_code.split("\n"))


def test_node_type_names():
    assert node_type_name("catch_clause") == "CatchClause"
    assert node_type_name("if_statement") == "IfStatement"
    assert node_type_name("class_declaration") == "ClassOrInterfaceDeclaration"
    assert node_type_name("enhanced_for_statement") == "ForEachStatement"
