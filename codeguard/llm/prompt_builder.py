"""
Prompt Builder — Tier 2 tagging and rule verification prompts.

Both prompts ask for strict JSON. Source code is truncated with a marker at
a fixed character cap; the verification prompt numbers the lines so that
reported line numbers can be checked against the AST afterwards.
"""

from __future__ import annotations

from typing import Iterable

from codeguard.models.ast_models import AstAnalysis
from codeguard.models.rule_models import Rule, VerificationCandidate
from codeguard.models.tag_models import TagDefinition

TRUNCATION_MARKER = "\n// ... (truncated)"

TIER2_SYSTEM_PROMPT = """\
You are an expert reviewer of enterprise (financial-sector) Java code.

Decide, for each tag listed below, whether it applies to the given code.

Principles:
1. Be conservative: if you are not sure, answer false.
2. Judge only from the code shown. Do not speculate.
3. Judge each tag independently of the others.

Vocabulary:
- DAO: Data Access Object, owns database access (*DAO, *Dao classes)
- Service: owns business logic (*Service, *Svc classes)
- Method prefixes: select (sel*/get*), register (reg*/add*), modify (mod*/upd*), delete (del*/remove*)
"""

VERIFICATION_SYSTEM_PROMPT = """\
You are an expert reviewer of enterprise (financial-sector) Java code.

Check the code below against the listed guidelines and report violations.

Instructions:
1. Review the code against each guideline.
2. Report a violation only when the code actually breaks the guideline.
3. Give the exact line number, using the numbers shown in the left margin.
4. Give a concrete fix for each violation.
5. Use only the rule IDs listed below. Never invent new rule IDs.
"""


def truncate_code(source: str, max_chars: int) -> str:
    if len(source) <= max_chars:
        return source
    return source[:max_chars] + TRUNCATION_MARKER


def number_lines(source: str) -> str:
    lines = source.split("\n")
    width = len(str(len(lines)))
    return "\n".join(f"{i:>{width}} | {line}" for i, line in enumerate(lines, start=1))


def build_tier2_prompt(
    source_code: str,
    tier1_tags: Iterable[str],
    candidates: dict[str, TagDefinition],
    max_code_chars: int = 3000,
) -> str:
    """Build the single Tier 2 prompt for a batch of candidate tags."""
    known = ", ".join(sorted(tier1_tags)) or "none"

    descriptions = []
    for i, (name, definition) in enumerate(candidates.items(), start=1):
        criteria = definition.detection.criteria or definition.description
        descriptions.append(
            f"{i}. {name}\n   - Description: {definition.description}\n   - Criteria: {criteria}"
        )
    tag_text = "\n\n".join(descriptions)

    return f"""{TIER2_SYSTEM_PROMPT}
## Code

```java
{truncate_code(source_code, max_code_chars)}
```

## Already known (Tier 1)
{known}

## Tags to decide

{tag_text}

## Response format (JSON only)

```json
{{
  "evaluatedTags": [
    {{
      "tagName": "TAG_NAME",
      "value": true,
      "confidence": 0.0,
      "evidence": "why"
    }}
  ]
}}
```

Output JSON only."""


def summarize_ast(ast_analysis: AstAnalysis | None) -> str:
    if ast_analysis is None:
        return ""
    classes = ", ".join(c.name for c in ast_analysis.class_declarations) or "N/A"
    annotations = ", ".join(dict.fromkeys(a.name for a in ast_analysis.annotations[:10])) or "N/A"
    return (
        "\n## Code structure\n"
        f"- Classes: {classes}\n"
        f"- Methods: {len(ast_analysis.method_declarations)}\n"
        f"- Annotations: {annotations}\n"
        f"- Cyclomatic complexity: {ast_analysis.cyclomatic_complexity}\n"
    )


def build_verification_prompt(
    source_code: str,
    candidates: list[VerificationCandidate],
    rules: dict[str, Rule],
    ast_analysis: AstAnalysis | None = None,
    max_code_chars: int = 6000,
) -> str:
    """
    Build the single verification prompt for all matched rules.

    Args:
        source_code: Java source under analysis.
        candidates: Output of RuleMatcher.format_for_llm_verification().
        rules: Rule records by id, for examples and suggestions.
        ast_analysis: Optional structure summary.
        max_code_chars: Source character cap before truncation.
    """
    sections = []
    for i, c in enumerate(candidates, start=1):
        rule = rules.get(c.rule_id)
        lines = [
            f"### {i}. {c.title} [{c.rule_id}]",
            f"- Severity: {c.severity}",
            f"- Description: {c.description}",
            f"- Matched because: {c.matched_condition} ({', '.join(c.matched_tags) or 'no tags'})",
        ]
        if c.needs_verification:
            lines.append("- Note: matched on LLM-derived tags; confirm carefully")
        if rule is not None and rule.examples.good:
            lines.append(f"- Good example: `{rule.examples.good[0]}`")
        if rule is not None and rule.examples.bad:
            lines.append(f"- Bad example: `{rule.examples.bad[0]}`")
        sections.append("\n".join(lines))

    code = number_lines(truncate_code(source_code, max_code_chars))
    guideline_text = "\n\n".join(sections)

    return f"""{VERIFICATION_SYSTEM_PROMPT}
## Code

```java
{code}
```
{summarize_ast(ast_analysis)}
## Guidelines ({len(candidates)})

{guideline_text}

## Response format (JSON only)

```json
{{
  "violations": [
    {{
      "ruleId": "RULE-ID from the list above",
      "line": 1,
      "column": 0,
      "severity": "CRITICAL|HIGH|MEDIUM|LOW",
      "description": "what is wrong",
      "suggestion": "how to fix it"
    }}
  ]
}}
```

If nothing is violated, return an empty violations array.
Output JSON only."""
