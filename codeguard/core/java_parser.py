"""
Java Parser — Structural analysis of Java source using tree-sitter.

Walks the tree-sitter-java syntax tree once and collects the facts the tag
extractor and the violation verifier read: declarations, annotations, loops,
exception handling, nesting depth and whole-file cyclomatic complexity.

Node types are reported in JavaParser vocabulary (``CatchClause``,
``IfStatement``, ``MethodDeclaration`` ...) so rule hints stay portable.
"""

from __future__ import annotations

import logging

import tree_sitter_java as tsjava
from tree_sitter import Language, Node, Parser

from codeguard.models.ast_models import (
    AnnotationUsage,
    AstAnalysis,
    ClassDeclaration,
    LoopInfo,
    MethodDeclaration,
    ParseResult,
    TryInfo,
)

logger = logging.getLogger("codeguard.java_parser")

JAVA_LANGUAGE = Language(tsjava.language())

_NODE_NAMES = {
    "class_declaration": "ClassOrInterfaceDeclaration",
    "interface_declaration": "ClassOrInterfaceDeclaration",
    "enhanced_for_statement": "ForEachStatement",
    "try_with_resources_statement": "TryStatement",
    "switch_expression": "SwitchStatement",
    "switch_statement": "SwitchStatement",
    "ternary_expression": "ConditionalExpr",
    "method_invocation": "MethodCallExpr",
    "binary_expression": "BinaryExpr",
    "marker_annotation": "MarkerAnnotationExpr",
    "annotation": "NormalAnnotationExpr",
}

_TYPE_DECLARATIONS = {
    "class_declaration": "class",
    "interface_declaration": "interface",
    "enum_declaration": "enum",
    "record_declaration": "record",
}

_LOOPS = {
    "for_statement": "ForStatement",
    "enhanced_for_statement": "ForEachStatement",
    "while_statement": "WhileStatement",
    "do_statement": "DoStatement",
}

_NESTING = {
    "if_statement",
    "for_statement",
    "enhanced_for_statement",
    "while_statement",
    "do_statement",
    "switch_expression",
    "switch_statement",
    "try_statement",
    "try_with_resources_statement",
    "synchronized_statement",
}

_DECISIONS = {
    "if_statement",
    "for_statement",
    "enhanced_for_statement",
    "while_statement",
    "do_statement",
    "catch_clause",
    "ternary_expression",
}

_COMMENTS = {"line_comment", "block_comment"}


def node_type_name(ts_type: str) -> str:
    """Map a tree-sitter node type to its JavaParser name."""
    if ts_type in _NODE_NAMES:
        return _NODE_NAMES[ts_type]
    return "".join(part.capitalize() for part in ts_type.split("_"))


def is_empty_block(block: Node | None) -> bool:
    """True when a block has no statements (comments do not count)."""
    if block is None:
        return False
    return not any(c.type not in _COMMENTS for c in block.named_children)


class JavaParser:
    """Thin wrapper around tree-sitter for Java source code."""

    def __init__(self) -> None:
        self._parser = Parser(JAVA_LANGUAGE)

    def parse(self, code: str) -> ParseResult:
        """Parse Java source into an AstAnalysis. Never raises."""
        try:
            source_bytes = code.encode("utf-8")
            tree = self._parser.parse(source_bytes)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Java parse failed: {e}")
            return ParseResult(success=False, error=str(e))

        walker = _Walker(source_bytes)
        analysis = walker.walk(tree.root_node)
        analysis.line_count = len(code.split("\n")) if code else 0

        if tree.root_node.has_error:
            line = _first_error_line(tree.root_node)
            message = f"Syntax error near line {line}" if line else "Syntax error"
            logger.info(f"Java source has syntax errors: {message}")
            return ParseResult(success=False, analysis=analysis, error=message)

        return ParseResult(success=True, analysis=analysis)


class _Walker:
    """Single pass over a syntax tree, accumulating an AstAnalysis."""

    def __init__(self, source_bytes: bytes) -> None:
        self._src = source_bytes
        self._node_types: dict[str, None] = {}
        self._node_count = 0
        self._max_depth = 0
        self._max_nesting = 0
        self._decisions = 0
        self._classes: list[ClassDeclaration] = []
        self._methods: list[MethodDeclaration] = []
        self._annotations: list[AnnotationUsage] = []
        self._loops: list[LoopInfo] = []
        self._tries: list[TryInfo] = []

    def _text(self, node: Node | None) -> str:
        if node is None:
            return ""
        return self._src[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    def walk(self, root: Node) -> AstAnalysis:
        # (node, tree depth, control nesting, loop depth, class name, method name)
        stack: list[tuple[Node, int, int, int, str, str]] = [(root, 0, 0, 0, "", "")]

        while stack:
            node, depth, nesting, loop_depth, cls, method = stack.pop()
            if not node.is_named or node.type in _COMMENTS:
                continue

            self._node_count += 1
            self._node_types.setdefault(node_type_name(node.type), None)
            self._max_depth = max(self._max_depth, depth)

            t = node.type
            if t in _TYPE_DECLARATIONS:
                cls = self._class(node)
            elif t in ("method_declaration", "constructor_declaration"):
                method = self._method(node, cls)
            elif t in ("marker_annotation", "annotation"):
                self._annotation(node, method or cls)
            elif t in ("try_statement", "try_with_resources_statement"):
                self._try(node, method)
            elif t == "switch_label" and self._text(node).strip() != "default":
                self._decisions += 1
            elif t == "binary_expression":
                op = node.child_by_field_name("operator")
                if op is not None and op.type in ("&&", "||"):
                    self._decisions += 1

            if t in _DECISIONS:
                self._decisions += 1

            if t in _NESTING and not _is_else_if(node):
                nesting += 1
                self._max_nesting = max(self._max_nesting, nesting)

            if t in _LOOPS:
                loop_depth += 1
                self._loops.append(
                    LoopInfo(
                        type=_LOOPS[t],
                        line=node.start_point[0] + 1,
                        end_line=node.end_point[0] + 1,
                        depth=loop_depth,
                        enclosing_method=method,
                    )
                )

            for child in reversed(node.children):
                stack.append((child, depth + 1, nesting, loop_depth, cls, method))

        self._loops.sort(key=lambda loop: loop.line)
        self._annotations.sort(key=lambda a: a.line)

        return AstAnalysis(
            node_types=list(self._node_types),
            node_count=self._node_count,
            max_depth=self._max_depth,
            max_nesting_depth=self._max_nesting,
            cyclomatic_complexity=1 + self._decisions,
            class_declarations=self._classes,
            method_declarations=self._methods,
            annotations=self._annotations,
            loops=self._loops,
            has_nested_loops=any(loop.depth > 1 for loop in self._loops),
            exception_handling=self._tries,
        )

    # ─── Collectors ───

    def _modifiers(self, node: Node) -> tuple[list[str], list[str]]:
        modifiers: list[str] = []
        annotations: list[str] = []
        for child in node.children:
            if child.type != "modifiers":
                continue
            for m in child.children:
                if m.type in ("marker_annotation", "annotation"):
                    annotations.append(_simple_name(self._text(m.child_by_field_name("name"))))
                elif m.type not in _COMMENTS:
                    modifiers.append(self._text(m))
        return modifiers, annotations

    def _class(self, node: Node) -> str:
        name = self._text(node.child_by_field_name("name"))
        _, annotations = self._modifiers(node)

        superclass = node.child_by_field_name("superclass")
        super_name = None
        if superclass is not None and superclass.named_child_count:
            super_name = self._text(superclass.named_children[0])

        interfaces: list[str] = []
        iface_node = node.child_by_field_name("interfaces")
        if iface_node is None:
            iface_node = next(
                (c for c in node.children if c.type == "extends_interfaces"), None
            )
        if iface_node is not None:
            for type_list in iface_node.named_children:
                interfaces.extend(self._text(t) for t in type_list.named_children)

        self._classes.append(
            ClassDeclaration(
                name=name,
                kind=_TYPE_DECLARATIONS[node.type],
                line=node.start_point[0] + 1,
                end_line=node.end_point[0] + 1,
                superclass=super_name,
                interfaces=interfaces,
                annotations=annotations,
            )
        )
        return name

    def _method(self, node: Node, cls: str) -> str:
        name = self._text(node.child_by_field_name("name"))
        modifiers, annotations = self._modifiers(node)
        params = node.child_by_field_name("parameters")
        param_count = 0
        if params is not None:
            param_count = sum(
                1 for p in params.named_children
                if p.type in ("formal_parameter", "spread_parameter")
            )

        is_ctor = node.type == "constructor_declaration"
        return_type = "" if is_ctor else self._text(node.child_by_field_name("type"))

        self._methods.append(
            MethodDeclaration(
                name=name,
                class_name=cls,
                line=node.start_point[0] + 1,
                end_line=node.end_point[0] + 1,
                return_type=return_type,
                parameter_count=param_count,
                modifiers=modifiers,
                annotations=annotations,
                is_constructor=is_ctor,
            )
        )
        return name

    def _annotation(self, node: Node, target: str) -> None:
        self._annotations.append(
            AnnotationUsage(
                name=_simple_name(self._text(node.child_by_field_name("name"))),
                line=node.start_point[0] + 1,
                target=target,
            )
        )

    def _try(self, node: Node, method: str) -> None:
        catches = [c for c in node.children if c.type == "catch_clause"]
        caught: list[str] = []
        empty_lines: list[int] = []

        for clause in catches:
            param = next(
                (c for c in clause.named_children if c.type == "catch_formal_parameter"), None
            )
            if param is not None:
                catch_type = next(
                    (c for c in param.named_children if c.type == "catch_type"), None
                )
                if catch_type is not None:
                    caught.extend(self._text(t) for t in catch_type.named_children)
            if is_empty_block(clause.child_by_field_name("body")):
                empty_lines.append(clause.start_point[0] + 1)

        self._tries.append(
            TryInfo(
                line=node.start_point[0] + 1,
                end_line=node.end_point[0] + 1,
                has_resources=node.type == "try_with_resources_statement",
                catch_count=len(catches),
                has_finally=any(c.type == "finally_clause" for c in node.children),
                caught_types=caught,
                empty_catch_lines=empty_lines,
                enclosing_method=method,
            )
        )


def _simple_name(name: str) -> str:
    return name.rsplit(".", 1)[-1].lstrip("@")


def _is_else_if(node: Node) -> bool:
    parent = node.parent
    return (
        node.type == "if_statement"
        and parent is not None
        and parent.type == "if_statement"
        and parent.child_by_field_name("alternative") == node
    )


def _first_error_line(root: Node) -> int | None:
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "ERROR" or node.is_missing:
            return node.start_point[0] + 1
        if node.has_error:
            stack.extend(reversed(node.children))
    return None
