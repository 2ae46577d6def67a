"""
Source Utilities — Text-level helpers for Java source.

Comment/string stripping keeps every newline and replaces removed characters
with spaces, so offsets and line numbers computed on the stripped text are
valid for the original.
"""

from __future__ import annotations

import re

_CONTROL_HEAD = re.compile(
    r"(?:\b(?:if|for|while|switch|catch|synchronized|try)\s*\([^{}]*\)"
    r"|\b(?:else|do|try|finally))\s*$"
)

_COMPLEXITY_PATTERNS = [
    re.compile(r"\bif\s*\("),
    re.compile(r"\bfor\s*\("),
    re.compile(r"\bwhile\s*\("),
    re.compile(r"\bcase\s+"),
    re.compile(r"\bcatch\s*\("),
    re.compile(r"\?\s*[^:;]+\s*:"),
    re.compile(r"&&"),
    re.compile(r"\|\|"),
]


def _blank(text: str) -> str:
    return "".join("\n" if c == "\n" else " " for c in text)


def strip_comments(source: str, strip_strings: bool = False) -> str:
    """
    Blank out comments (and optionally string/char literal contents).

    Quotes of blanked literals are kept so ``"a" + x`` still reads as a
    concatenation of a literal.
    """
    out: list[str] = []
    i = 0
    n = len(source)

    while i < n:
        ch = source[i]
        nxt = source[i + 1] if i + 1 < n else ""

        if ch == "/" and nxt == "/":
            end = source.find("\n", i)
            end = n if end == -1 else end
            out.append(_blank(source[i:end]))
            i = end
            continue

        if ch == "/" and nxt == "*":
            end = source.find("*/", i + 2)
            end = n if end == -1 else end + 2
            out.append(_blank(source[i:end]))
            i = end
            continue

        if source.startswith('"""', i):
            end = source.find('"""', i + 3)
            end = n if end == -1 else end + 3
            literal = source[i:end]
            out.append(_blank_literal(literal, 3) if strip_strings else literal)
            i = end
            continue

        if ch in ('"', "'"):
            j = i + 1
            while j < n and source[j] != ch and source[j] != "\n":
                j += 2 if source[j] == "\\" else 1
            end = min(j + 1, n)
            literal = source[i:end]
            out.append(_blank_literal(literal, 1) if strip_strings else literal)
            i = end
            continue

        out.append(ch)
        i += 1

    return "".join(out)


def _blank_literal(literal: str, quote_len: int) -> str:
    if len(literal) < 2 * quote_len:
        return literal
    return literal[:quote_len] + _blank(literal[quote_len:-quote_len]) + literal[-quote_len:]


def strip_comments_and_strings(source: str) -> str:
    return strip_comments(source, strip_strings=True)


def find_matching_brace(text: str, open_index: int) -> int:
    """Index of the '}' closing the '{' at open_index, or -1. Expects stripped text."""
    depth = 0
    for i in range(open_index, len(text)):
        c = text[i]
        if c == "{":
            depth += 1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1


def find_matching_paren(text: str, open_index: int) -> int:
    """Index of the ')' closing the '(' at open_index, or -1. Expects stripped text."""
    depth = 0
    for i in range(open_index, len(text)):
        c = text[i]
        if c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def extract_block(text: str, start: int) -> tuple[int, int] | None:
    """(open, close) brace offsets of the first block at or after start."""
    open_index = text.find("{", start)
    if open_index == -1:
        return None
    close_index = find_matching_brace(text, open_index)
    if close_index == -1:
        return None
    return open_index, close_index


def line_of(text: str, offset: int) -> int:
    """1-based line number of a character offset."""
    return text.count("\n", 0, offset) + 1


def line_offsets(text: str) -> list[int]:
    """Start offset of every line; index 0 is line 1."""
    offsets = [0]
    for m in re.finditer(r"\n", text):
        offsets.append(m.end())
    return offsets


def count_lines(source: str) -> int:
    return len(source.split("\n")) if source else 0


def estimate_complexity(source: str) -> int:
    """McCabe estimate from keywords and boolean operators."""
    code = strip_comments_and_strings(source)
    return 1 + sum(len(p.findall(code)) for p in _COMPLEXITY_PATTERNS)


def estimate_nesting(source: str) -> int:
    """Deepest nesting of control-statement blocks, ignoring class/method braces."""
    code = strip_comments_and_strings(source)
    stack: list[bool] = []
    depth = max_depth = 0

    for i, c in enumerate(code):
        if c == "{":
            head = code[max(0, i - 80):i]
            is_control = bool(_CONTROL_HEAD.search(head))
            stack.append(is_control)
            if is_control:
                depth += 1
                max_depth = max(max_depth, depth)
        elif c == "}" and stack:
            if stack.pop():
                depth -= 1

    return max_depth
