"""
Rule Catalog — Built-in guideline rules and the static rule source.

Rules are declared as camelCase records (the same shape a rules JSON file
uses) and validated into Rule models once at load time.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from codeguard.config import settings
from codeguard.errors import CodeGuardError
from codeguard.models.rule_models import CheckType, Rule

logger = logging.getLogger("codeguard.rules")


DEFAULT_RULES: list[dict[str, Any]] = [
    {
        "ruleId": "CTX-001",
        "title": "LData naming convention",
        "category": "naming_convention",
        "description": "LData variable names must carry business meaning and be paired with a descriptive comment.",
        "severity": "MEDIUM",
        "checkType": "llm_contextual",
        "tagCondition": "(USES_LDATA || USES_LMULTIDATA) && NAMING_MEANINGLESS",
        "keywords": ["LData", "LMultiData", "variable"],
        "examples": {
            "good": ["LData custInfo = new LData(); // customer info"],
            "bad": ["LData data1 = new LData();"],
        },
        "suggestion": "Rename the variable after the business entity it holds.",
    },
    {
        "ruleId": "CTX-002",
        "title": "Business logic separation",
        "category": "architecture",
        "description": "Controllers must not contain business logic; move it into the service layer.",
        "severity": "HIGH",
        "checkType": "llm_contextual",
        "tagCondition": "IS_CONTROLLER && (HAS_BUSINESS_LOGIC || CALLS_DAO_DIRECTLY || USES_CONNECTION)",
        "keywords": ["Controller", "Service", "@RequestMapping", "@GetMapping", "@PostMapping"],
        "examples": {
            "good": ["service.processOrder(orderId)"],
            "bad": ["// query executed directly in the controller"],
        },
        "suggestion": "Delegate to a @Service class and keep the controller to request mapping.",
    },
    {
        "ruleId": "CTX-003",
        "title": "Transaction boundary management",
        "category": "transaction_management",
        "description": "@Transactional belongs on the service layer with an explicit propagation setting.",
        "severity": "HIGH",
        "checkType": "llm_contextual",
        "tagCondition": "HAS_TRANSACTIONAL && !IS_SERVICE",
        "keywords": ["@Transactional", "Transaction", "Service"],
        "examples": {
            "good": ["@Transactional(propagation = Propagation.REQUIRED)"],
            "bad": ["@Transactional // on a controller"],
        },
        "suggestion": "Move @Transactional to the service method that owns the unit of work.",
    },
    {
        "ruleId": "CTX-004",
        "title": "Empty catch block",
        "category": "exception_handling",
        "description": "Exceptions must not be silently swallowed by an empty catch block.",
        "severity": "HIGH",
        "checkType": "llm_with_ast",
        "tagCondition": "HAS_EMPTY_CATCH",
        "keywords": ["catch", "exception"],
        "astHints": {"nodeTypes": ["CatchClause"], "checkEmpty": True},
        "examples": {
            "good": ["catch (IOException e) { log.error(\"read failed\", e); }"],
            "bad": ["catch (IOException e) { }"],
        },
        "suggestion": "Log the exception or rethrow it wrapped in a domain exception.",
    },
    {
        "ruleId": "RES-001",
        "title": "JDBC resources must be closed",
        "category": "resource_management",
        "description": "Connections, statements and result sets must be closed, preferably with try-with-resources.",
        "severity": "CRITICAL",
        "checkType": "llm_contextual",
        "tagCondition": "RESOURCE_LEAK_RISK",
        "keywords": ["Connection", "PreparedStatement", "ResultSet", "close"],
        "examples": {
            "good": ["try (Connection conn = ds.getConnection()) { ... }"],
            "bad": ["Connection conn = ds.getConnection(); conn.prepareStatement(sql);"],
        },
        "suggestion": "Wrap JDBC resources in try-with-resources.",
    },
    {
        "ruleId": "SEC-001",
        "title": "SQL built by string concatenation",
        "category": "security",
        "description": "SQL statements must use bind parameters, never string concatenation of inputs.",
        "severity": "CRITICAL",
        "checkType": "llm_with_regex",
        "tagCondition": "SQL_INJECTION_RISK",
        "keywords": ["SQL", "injection", "PreparedStatement"],
        "examples": {
            "good": ["ps = conn.prepareStatement(\"SELECT * FROM t WHERE id = ?\");"],
            "bad": ["stmt.executeQuery(\"SELECT * FROM t WHERE id = \" + id);"],
        },
        "suggestion": "Use PreparedStatement placeholders for every variable part of the query.",
    },
    {
        "ruleId": "SEC-002",
        "title": "Hardcoded credential",
        "category": "security",
        "description": "Passwords and secrets must not be embedded in source code.",
        "severity": "CRITICAL",
        "checkType": "pure_regex",
        "tagCondition": "HAS_HARDCODED_PASSWORD",
        "keywords": ["password", "secret", "credential"],
        "suggestion": "Read the secret from configuration or a secret store.",
    },
    {
        "ruleId": "PERF-001",
        "title": "Database call inside a loop",
        "category": "performance",
        "description": "Queries issued per loop iteration cause N+1 round trips.",
        "severity": "HIGH",
        "checkType": "llm_contextual",
        "tagCondition": "N_PLUS_ONE_RISK || HAS_DB_CALL_IN_LOOP",
        "keywords": ["loop", "query", "N+1"],
        "suggestion": "Batch the lookups or fetch the data with a single query before the loop.",
    },
    {
        "ruleId": "EXC-001",
        "title": "Generic exception catch",
        "category": "exception_handling",
        "description": "Catching Exception or Throwable hides the failure mode; catch specific types.",
        "severity": "MEDIUM",
        "checkType": "llm_contextual",
        "tagCondition": "HAS_GENERIC_CATCH && !HAS_EMPTY_CATCH",
        "keywords": ["catch", "Exception", "Throwable"],
        "suggestion": "Catch the specific checked exceptions the block can throw.",
    },
    {
        "ruleId": "EXC-002",
        "title": "printStackTrace used for error handling",
        "category": "exception_handling",
        "description": "printStackTrace writes to stderr and bypasses the logging framework.",
        "severity": "LOW",
        "checkType": "pure_regex",
        "tagCondition": "HAS_PRINT_STACK_TRACE",
        "keywords": ["printStackTrace", "logging"],
        "suggestion": "Log through the application logger with the exception as the last argument.",
    },
    {
        "ruleId": "LOG-001",
        "title": "Console output in production code",
        "category": "code_smell",
        "description": "System.out / System.err must not be used for application logging.",
        "severity": "LOW",
        "checkType": "pure_regex",
        "tagCondition": "HAS_SYSTEM_OUT",
        "keywords": ["System.out", "println"],
        "suggestion": "Replace console output with an SLF4J logger.",
    },
    {
        "ruleId": "STR-001",
        "title": "Method too long",
        "category": "code_smell",
        "description": "Methods longer than 50 lines are hard to read and test.",
        "severity": "MEDIUM",
        "checkType": "llm_with_ast",
        "tagCondition": "LINE_COUNT_HIGH || COMPLEX_SERVICE || FAT_CONTROLLER",
        "keywords": ["method", "length", "refactor"],
        "astHints": {"nodeTypes": ["MethodDeclaration"], "maxLineCount": 50},
        "suggestion": "Extract cohesive steps into private methods.",
    },
    {
        "ruleId": "STR-002",
        "title": "Excessive cyclomatic complexity",
        "category": "code_smell",
        "description": "Deeply branched code should be simplified below a complexity of 10.",
        "severity": "MEDIUM",
        "checkType": "llm_with_ast",
        "tagCondition": "COMPLEXITY_HIGH || NESTING_DEEP",
        "keywords": ["complexity", "branching", "nesting"],
        "astHints": {"nodeTypes": ["MethodDeclaration"], "maxCyclomaticComplexity": 10},
        "suggestion": "Use guard clauses and extract branches into well-named methods.",
    },
    {
        "ruleId": "ARC-001",
        "title": "Service class must declare a stereotype annotation",
        "category": "architecture",
        "description": "Service-layer classes must be annotated with @Service so they are managed by the container.",
        "severity": "LOW",
        "checkType": "llm_with_ast",
        "tagCondition": "HAS_TRANSACTIONAL && !IS_CONTROLLER && !IS_REPOSITORY",
        "keywords": ["@Service", "annotation", "stereotype"],
        "astHints": {"nodeTypes": ["ClassOrInterfaceDeclaration"], "requiredAnnotations": ["Service"]},
        "suggestion": "Annotate the class with @Service.",
    },
    {
        "ruleId": "ARC-002",
        "title": "Field injection",
        "category": "architecture",
        "description": "Prefer constructor injection over @Autowired fields.",
        "severity": "LOW",
        "checkType": "llm_contextual",
        "tagCondition": "HAS_AUTOWIRED_FIELD",
        "keywords": ["@Autowired", "injection", "constructor"],
        "suggestion": "Declare dependencies as final fields set through the constructor.",
    },
    {
        "ruleId": "NAM-001",
        "title": "Constant naming",
        "category": "naming",
        "description": "static final constants must use UPPER_SNAKE_CASE.",
        "severity": "LOW",
        "checkType": "llm_with_ast",
        "tagCondition": "NAMING_MEANINGLESS",
        "keywords": ["constant", "naming", "static final"],
        "astHints": {"nodeTypes": ["FieldDeclaration"], "namingPattern": "UPPER_SNAKE_CASE"},
        "suggestion": "Rename the constant in UPPER_SNAKE_CASE.",
    },
]


class RuleFilters(BaseModel):
    """Filters accepted by StaticRuleSource.search_guidelines()."""

    category: str | None = None
    severity: str | None = None
    check_type: CheckType | None = None
    keywords: list[str] = Field(default_factory=list)
    limit: int | None = Field(default=None, ge=1)


class StaticRuleSource:
    """Rule source over the built-in catalog or a JSON rules file."""

    def __init__(self, rules: list[Rule] | None = None) -> None:
        self.rules = rules if rules is not None else load_rules()

    def search_guidelines(self, filters: RuleFilters | None = None) -> list[Rule]:
        f = filters or RuleFilters()
        results: list[Rule] = []
        for rule in self.rules:
            if f.category and rule.category.lower() != f.category.lower():
                continue
            if f.severity and rule.severity != f.severity.upper():
                continue
            if f.check_type and rule.check_type != f.check_type:
                continue
            if f.keywords and not _matches_keywords(rule, f.keywords):
                continue
            results.append(rule)
        if f.limit is not None:
            results = results[: f.limit]
        return results

    def get_rule(self, rule_id: str) -> Rule | None:
        for rule in self.rules:
            if rule.rule_id == rule_id:
                return rule
        return None


def _matches_keywords(rule: Rule, keywords: list[str]) -> bool:
    haystack = " ".join([rule.title, rule.description, *rule.keywords]).lower()
    return any(k.lower() in haystack for k in keywords)


def parse_rules(records: list[dict[str, Any]]) -> list[Rule]:
    """Validate raw rule records, skipping (and logging) invalid ones."""
    rules: list[Rule] = []
    seen: set[str] = set()
    for record in records:
        try:
            rule = Rule.model_validate(record)
        except ValidationError as e:
            logger.warning(f"Skipping invalid rule record {record.get('ruleId', '?')}: {e.error_count()} error(s)")
            continue
        if rule.rule_id in seen:
            logger.warning(f"Duplicate rule id {rule.rule_id}; keeping the first definition")
            continue
        seen.add(rule.rule_id)
        rules.append(rule)
    return rules


def load_rules(path: str | None = None) -> list[Rule]:
    """
    Load the rule catalog.

    Args:
        path: JSON file holding a list of rules (or ``{"rules": [...]}``).
              Falls back to ``settings.rules_path``, then the built-in rules.

    Raises:
        CodeGuardError: If the file cannot be read or is not a rule list.
    """
    source = path or settings.rules_path
    if not source:
        return parse_rules(DEFAULT_RULES)

    try:
        data = json.loads(Path(source).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CodeGuardError(f"Cannot load rules from {source}: {e}") from e

    if isinstance(data, dict):
        data = data.get("rules")
    if not isinstance(data, list):
        raise CodeGuardError(f"Rules file {source} must contain a list of rules")

    rules = parse_rules(data)
    logger.info(f"Loaded {len(rules)} rule(s) from {source}")
    return rules
