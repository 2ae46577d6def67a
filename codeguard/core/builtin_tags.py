"""
Built-in tag definition table.

Same shape as a tag definition JSON file, so both go through the same
validation in TagDefinitionLoader.
"""

BUILTIN_TAG_DEFINITIONS: dict = {
    "_metadata": {"version": "1.0.0", "description": "Built-in Java tag definitions"},
    "tags": {
        # ── Structure ──
        "IS_CONTROLLER": {
            "category": "structure",
            "description": "Spring MVC / REST controller class",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {"type": "regex", "patterns": [r"@Controller\b", r"@RestController\b"]},
        },
        "IS_SERVICE": {
            "category": "structure",
            "description": "Spring service class",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {"type": "regex", "patterns": [r"@Service\b"]},
        },
        "IS_REPOSITORY": {
            "category": "structure",
            "description": "Spring repository or Spring Data interface",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {
                "type": "regex",
                "patterns": [
                    r"@Repository\b",
                    r"\binterface\s+\w+\s+extends\s+(?:Jpa|Crud|PagingAndSorting)Repository\b",
                ],
            },
        },
        "IS_DAO": {
            "category": "structure",
            "description": "Data access object class",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {
                "type": "regex",
                "patterns": [r"\bclass\s+\w*(?:Dao|DAO)(?:Impl)?\b"],
            },
        },
        "IS_ENTITY": {
            "category": "structure",
            "description": "JPA entity class",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {"type": "regex", "patterns": [r"@Entity\b"]},
        },
        # ── Resources ──
        "USES_CONNECTION": {
            "category": "resource",
            "description": "Uses a JDBC Connection",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {
                "type": "regex",
                "patterns": [r"\bConnection\s+\w+", r"\.getConnection\s*\("],
            },
        },
        "USES_STATEMENT": {
            "category": "resource",
            "description": "Uses a JDBC Statement / PreparedStatement",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {
                "type": "regex",
                "patterns": [
                    r"\b(?:Prepared|Callable)?Statement\s+\w+",
                    r"\.(?:prepareStatement|createStatement|prepareCall)\s*\(",
                ],
            },
        },
        "USES_RESULTSET": {
            "category": "resource",
            "description": "Uses a JDBC ResultSet",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {
                "type": "regex",
                "patterns": [r"\bResultSet\s+\w+", r"\.executeQuery\s*\("],
            },
        },
        "USES_STREAM": {
            "category": "resource",
            "description": "Opens an I/O stream, reader or writer",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {
                "type": "regex",
                "patterns": [
                    r"\b\w*(?:InputStream|OutputStream)\s+\w+\s*=",
                    r"\bnew\s+\w*(?:Reader|Writer|InputStream|OutputStream)\s*\(",
                ],
            },
        },
        "HAS_TRY_WITH_RESOURCES": {
            "category": "resource",
            "description": "Uses try-with-resources",
            "extractionMethod": "ast",
            "tier": 1,
            "detection": {"type": "ast", "nodeType": "try_with_resources"},
        },
        "HAS_CLOSE_IN_FINALLY": {
            "category": "resource",
            "description": "Closes a resource inside a finally block",
            "extractionMethod": "ast_context",
            "tier": 1,
            "detection": {
                "type": "ast_context",
                "context": "finally",
                "patterns": [r"\.close\s*\(\s*\)"],
            },
        },
        # ── Data access ──
        "USES_JPA_REPOSITORY": {
            "category": "data_access",
            "description": "Uses Spring Data JPA repositories",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {
                "type": "regex",
                "patterns": [
                    r"\bextends\s+(?:Jpa|Crud|PagingAndSorting)Repository\s*<",
                    r"\b\w+Repository\s+\w+\s*;",
                ],
            },
        },
        "HAS_TRANSACTIONAL": {
            "category": "data_access",
            "description": "Declares @Transactional boundaries",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {"type": "regex", "patterns": [r"@Transactional\b"]},
        },
        "HAS_DB_CALL_IN_LOOP": {
            "category": "performance",
            "description": "Database call inside a loop body",
            "extractionMethod": "ast_context",
            "tier": 1,
            "detection": {
                "type": "ast_context",
                "context": ["ForStatement", "WhileStatement", "DoStatement"],
                "patterns": [
                    r"\.(?:executeQuery|executeUpdate|prepareStatement)\s*\(",
                    r"\b\w*(?:Dao|DAO|dao|Repository|repository)\s*\.\s*\w+\s*\(",
                ],
            },
        },
        # ── Financial framework ──
        "USES_LDATA": {
            "category": "framework",
            "description": "Uses the LData value container",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {"type": "regex", "patterns": [r"\bLData\b"]},
        },
        "USES_LMULTIDATA": {
            "category": "framework",
            "description": "Uses the LMultiData collection container",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {"type": "regex", "patterns": [r"\bLMultiData\b"]},
        },
        # ── Security ──
        "HAS_SQL_CONCATENATION": {
            "category": "security",
            "description": "Builds SQL by string concatenation",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {
                "type": "regex",
                "excludeInComments": False,
                "caseSensitive": False,
                "patterns": [
                    r"\"\s*(?:SELECT|INSERT|UPDATE|DELETE)\b[^\"]*\"\s*\+\s*\w+",
                    r"\b(?:executeQuery|executeUpdate|execute|prepareStatement)\s*\(\s*\"[^\"]*\"\s*\+",
                ],
            },
        },
        "HAS_HARDCODED_PASSWORD": {
            "category": "security",
            "description": "Password or secret assigned from a string literal",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {
                "type": "regex",
                "excludeInComments": False,
                "caseSensitive": False,
                "patterns": [r"\b(?:password|passwd|pwd|secret)\w*\s*=\s*\"[^\"]+\""],
            },
        },
        # ── Exception handling ──
        "HAS_EMPTY_CATCH": {
            "category": "exception",
            "description": "Catch block with no statements",
            "extractionMethod": "ast",
            "tier": 1,
            "detection": {"type": "ast", "nodeType": "empty_catch"},
        },
        "HAS_GENERIC_CATCH": {
            "category": "exception",
            "description": "Catches Exception, RuntimeException or Throwable",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {
                "type": "regex",
                "patterns": [
                    r"catch\s*\(\s*(?:final\s+)?(?:Exception|RuntimeException|Throwable)\s+\w+\s*\)"
                ],
            },
        },
        "HAS_PRINT_STACK_TRACE": {
            "category": "exception",
            "description": "Calls printStackTrace()",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {"type": "regex", "patterns": [r"\.printStackTrace\s*\(\s*\)"]},
        },
        # ── Code quality ──
        "HAS_SYSTEM_OUT": {
            "category": "logging",
            "description": "Writes to System.out / System.err",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {"type": "regex", "patterns": [r"System\.(?:out|err)\.print"]},
        },
        "HAS_AUTOWIRED_FIELD": {
            "category": "structure",
            "description": "Field injection with @Autowired",
            "extractionMethod": "regex",
            "tier": 1,
            "detection": {
                "type": "regex",
                "patterns": [r"@Autowired\s+(?:(?:private|protected|public|final)\s+)*[\w<>,\s]+?\s+\w+\s*;"],
            },
        },
        "HAS_LOOP": {
            "category": "control_flow",
            "description": "Contains at least one loop",
            "extractionMethod": "ast",
            "tier": 1,
            "detection": {"type": "ast", "nodeType": "loop"},
        },
        "HAS_NESTED_LOOP": {
            "category": "control_flow",
            "description": "Contains a loop nested inside another loop",
            "extractionMethod": "ast",
            "tier": 1,
            "detection": {"type": "ast", "nodeType": "loop", "condition": "nested"},
        },
        # ── Metrics ──
        "LINE_COUNT_HIGH": {
            "category": "metric",
            "description": "File has 300 or more lines",
            "extractionMethod": "ast",
            "tier": 1,
            "detection": {"type": "ast", "metric": "line_count", "operator": ">=", "threshold": 300},
        },
        "METHOD_COUNT_HIGH": {
            "category": "metric",
            "description": "Class declares 10 or more methods",
            "extractionMethod": "ast",
            "tier": 1,
            "detection": {"type": "ast", "metric": "method_count", "operator": ">=", "threshold": 10},
        },
        "COMPLEXITY_HIGH": {
            "category": "metric",
            "description": "Cyclomatic complexity of 10 or more",
            "extractionMethod": "ast",
            "tier": 1,
            "detection": {
                "type": "ast",
                "metric": "cyclomatic_complexity",
                "operator": ">=",
                "threshold": 10,
            },
        },
        "NESTING_DEEP": {
            "category": "metric",
            "description": "Control statements nested 4 or more levels deep",
            "extractionMethod": "ast",
            "tier": 1,
            "detection": {
                "type": "ast",
                "metric": "max_nesting_depth",
                "operator": ">=",
                "threshold": 4,
            },
        },
        # ── Tier 2 (LLM) ──
        "LAYER_VIOLATION": {
            "category": "architecture",
            "description": "Bypasses the layered architecture",
            "extractionMethod": "llm",
            "tier": 2,
            "detection": {
                "type": "llm",
                "criteria": "A service or controller reaches past its neighbouring layer, "
                "e.g. a service building SQL itself or a controller using JDBC.",
            },
        },
        "CALLS_DAO_DIRECTLY": {
            "category": "architecture",
            "description": "Controller calls a DAO/repository without a service",
            "extractionMethod": "llm",
            "tier": 2,
            "detection": {
                "type": "llm",
                "criteria": "A controller method invokes a DAO or repository object directly "
                "instead of delegating to a service.",
            },
        },
        "HAS_BUSINESS_LOGIC": {
            "category": "architecture",
            "description": "Contains business rules beyond request mapping",
            "extractionMethod": "llm",
            "tier": 2,
            "detection": {
                "type": "llm",
                "criteria": "The class computes, validates or decides business outcomes "
                "(calculations, state transitions, policy checks) rather than only "
                "translating requests and delegating.",
            },
        },
        "NAMING_MEANINGLESS": {
            "category": "naming",
            "description": "Identifiers that carry no domain meaning",
            "extractionMethod": "llm",
            "tier": 2,
            "detection": {
                "type": "llm",
                "criteria": "Variables or keys of LData/LMultiData are named like data1, tmp, "
                "obj, map2 or single letters outside loop counters.",
            },
        },
    },
    "compoundTags": {
        "RESOURCE_LEAK_RISK": {
            "expression": "(USES_CONNECTION || USES_STATEMENT || USES_RESULTSET) "
            "&& !HAS_TRY_WITH_RESOURCES && !HAS_CLOSE_IN_FINALLY",
            "description": "JDBC resources acquired without guaranteed release",
            "severity": "CRITICAL",
        },
        "SQL_INJECTION_RISK": {
            "expression": "HAS_SQL_CONCATENATION && (USES_STATEMENT || USES_CONNECTION)",
            "description": "Concatenated SQL executed through JDBC",
            "severity": "CRITICAL",
        },
        "SWALLOWED_EXCEPTION": {
            "expression": "HAS_EMPTY_CATCH || (HAS_GENERIC_CATCH && HAS_PRINT_STACK_TRACE)",
            "description": "Exceptions are silently dropped or only printed",
            "severity": "HIGH",
        },
        "N_PLUS_ONE_RISK": {
            "expression": "HAS_DB_CALL_IN_LOOP && (IS_SERVICE || IS_DAO || IS_REPOSITORY)",
            "description": "Database round trip per loop iteration",
            "severity": "HIGH",
        },
        "FAT_CONTROLLER": {
            "expression": "IS_CONTROLLER && (HAS_BUSINESS_LOGIC || CALLS_DAO_DIRECTLY || METHOD_COUNT_HIGH)",
            "description": "Controller doing more than request handling",
            "severity": "HIGH",
        },
        "COMPLEX_SERVICE": {
            "expression": "IS_SERVICE && (COMPLEXITY_HIGH || NESTING_DEEP)",
            "description": "Service logic that is hard to follow",
            "severity": "MEDIUM",
        },
        "TRANSACTION_IN_CONTROLLER": {
            "expression": "IS_CONTROLLER && HAS_TRANSACTIONAL",
            "description": "Transaction boundary declared on the web layer",
            "severity": "MEDIUM",
        },
        "DEBUG_OUTPUT": {
            "expression": "HAS_SYSTEM_OUT || HAS_PRINT_STACK_TRACE",
            "description": "Console output instead of a logger",
            "severity": "LOW",
        },
    },
    "triggerConditions": {
        "controllerLayer": {
            "tier1Tags": ["IS_CONTROLLER"],
            "tier2Tags": ["HAS_BUSINESS_LOGIC", "CALLS_DAO_DIRECTLY"],
            "description": "Controllers are checked for leaked business and data access logic",
        },
        "serviceLayer": {
            "tier1Tags": ["IS_SERVICE"],
            "tier2Tags": ["LAYER_VIOLATION"],
            "description": "Services are checked for layer bypasses",
        },
        "financialData": {
            "tier1Tags": ["USES_LDATA", "USES_LMULTIDATA"],
            "tier2Tags": ["NAMING_MEANINGLESS"],
            "description": "LData keys are checked for meaningful names",
        },
    },
}
