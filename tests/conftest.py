"""
Test fixtures shared across all CodeGuard tests.
"""

import pytest

from codeguard.core.expression import TagExpressionEvaluator
from codeguard.core.java_parser import JavaParser
from codeguard.core.profiler import CodeProfiler
from codeguard.core.rule_matcher import RuleMatcher
from codeguard.core.tag_definitions import TagDefinitionLoader


class FakeLLM:
    """CompletionClient double. Routes Tier 2 and verification prompts separately."""

    def __init__(self, tier2_response="{}", verification_response="{}", error=None):
        self.tier2_response = tier2_response
        self.verification_response = verification_response
        self.error = error
        self.prompts = []
        self.total_tokens_used = 0

    @property
    def call_count(self):
        return len(self.prompts)

    async def generate_completion(self, prompt, options=None):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        self.total_tokens_used += 100
        if '"evaluatedTags"' in prompt:
            return self.tier2_response
        return self.verification_response


def line_containing(source, fragment):
    """1-based line number of the first line containing fragment."""
    for number, line in enumerate(source.split("\n"), start=1):
        if fragment in line:
            return number
    raise AssertionError(f"{fragment!r} not in source")


@pytest.fixture
def definitions():
    return TagDefinitionLoader().load()


@pytest.fixture
def evaluator():
    return TagExpressionEvaluator(cache_size=100)


@pytest.fixture
def parser():
    return JavaParser()


@pytest.fixture
def matcher(evaluator):
    return RuleMatcher(evaluator=evaluator)


@pytest.fixture
def make_profiler(definitions, evaluator, parser):
    def _make(llm=None, tier2_enabled=True):
        return CodeProfiler(
            definitions,
            evaluator=evaluator,
            llm_client=llm,
            parser=parser,
            tier2_enabled=tier2_enabled,
        )

    return _make


@pytest.fixture
def jdbc_controller_code():
    """Controller doing raw JDBC with concatenated SQL and console output."""
    return """package com.example.web;

import java.sql.Connection;
import java.sql.ResultSet;
import java.sql.Statement;

@RestController
public class OrderController {

    @Autowired
    private DataSource dataSource;

    @GetMapping("/orders")
    public String find(String id) throws Exception {
        Connection conn = dataSource.getConnection();
        Statement stmt = conn.createStatement();
        ResultSet rs = stmt.executeQuery("SELECT * FROM orders WHERE id = " + id);
        System.out.println("loaded order");
        return rs.getString(1);
    }
}
"""


@pytest.fixture
def empty_catch_code():
    """Service that swallows an exception in an empty catch block."""
    return """package com.example.service;

@Service
public class PaymentService {

    private final PaymentGateway gateway;

    public void pay(String account) {
        try {
            gateway.charge(account);
        } catch (Exception e) {
        }
    }
}
"""


@pytest.fixture
def logged_catch_code():
    """Same service, but the exception is logged."""
    return """package com.example.service;

@Service
public class PaymentService {

    private final PaymentGateway gateway;

    public void pay(String account) {
        try {
            gateway.charge(account);
        } catch (Exception e) { logger.error(e); }
    }
}
"""


@pytest.fixture
def plain_code():
    """Plain class: no Spring stereotypes, no resources, no triggers."""
    return """package com.example.util;

public class Strings {

    public static String greet(String name) {
        if (name == null) {
            return "Hello";
        }
        return "Hello, " + name;
    }
}
"""


@pytest.fixture
def nested_loop_code():
    """Service issuing a query per iteration of a nested loop."""
    return """package com.example.service;

@Service
public class ReportService {

    public void build(List<String> ids, List<String> regions) {
        for (String region : regions) {
            for (String id : ids) {
                orderDao.findById(id);
            }
        }
    }
}
"""
