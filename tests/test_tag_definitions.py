"""
Tests for Tag Definitions — built-in table, JSON loading, invariants.
"""

import copy
import json

import pytest

from codeguard.core.builtin_tags import BUILTIN_TAG_DEFINITIONS
from codeguard.core.tag_definitions import TagDefinitionLoader, validate_definitions
from codeguard.errors import TagDefinitionError


def test_builtin_definitions_load(definitions):
    stats = definitions.get_stats()
    assert definitions.version == "1.0.0"
    assert stats["tier2_count"] == 4
    assert stats["compound_count"] == 8
    assert "IS_CONTROLLER" in definitions.get_tier1_tags()
    assert "HAS_BUSINESS_LOGIC" in definitions.get_tier2_tags()
    assert definitions.get_compound_tag("RESOURCE_LEAK_RISK").severity == "CRITICAL"


def test_builtin_definitions_have_no_warnings():
    assert validate_definitions(BUILTIN_TAG_DEFINITIONS) == []


def test_lookups(definitions):
    assert definitions.get_tag_definition("NOPE") is None
    assert definitions.get_detection_info("HAS_EMPTY_CATCH").node_type == "empty_catch"
    assert "IS_SERVICE" in definitions.get_tags_by_category("structure")
    assert "HAS_SQL_CONCATENATION" in definitions.get_regex_based_tags()
    assert "HAS_DB_CALL_IN_LOOP" in definitions.get_ast_based_tags()
    assert set(definitions.get_tags_by_tier(2)) == set(definitions.get_tier2_tags())


def test_required_tier2_tags_follow_triggers(definitions):
    assert definitions.get_required_tier2_tags({"IS_CONTROLLER"}) == [
        "HAS_BUSINESS_LOGIC",
        "CALLS_DAO_DIRECTLY",
    ]
    assert definitions.get_required_tier2_tags({"USES_LMULTIDATA"}) == ["NAMING_MEANINGLESS"]
    assert definitions.get_required_tier2_tags(set()) == []


def test_compound_name_collision_raises(tmp_path):
    raw = copy.deepcopy(BUILTIN_TAG_DEFINITIONS)
    raw["compoundTags"]["IS_SERVICE"] = {"expression": "IS_CONTROLLER", "severity": "LOW"}
    path = tmp_path / "tags.json"
    path.write_text(json.dumps(raw))

    with pytest.raises(TagDefinitionError, match="IS_SERVICE"):
        TagDefinitionLoader().load(path)


def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(TagDefinitionError):
        TagDefinitionLoader().load(tmp_path / "missing.json")


def test_settings_path_failure_falls_back_to_builtin(tmp_path, monkeypatch):
    from codeguard.config import settings

    monkeypatch.setattr(settings, "tag_definitions_path", str(tmp_path / "missing.json"))
    definitions = TagDefinitionLoader().load()
    assert definitions.version == "1.0.0"


def test_custom_file_loads(tmp_path):
    raw = {
        "_metadata": {"version": "2.1"},
        "tags": {
            "USES_FOO": {
                "category": "custom",
                "description": "Uses Foo",
                "extractionMethod": "regex",
                "tier": 1,
                "detection": {"type": "regex", "patterns": ["\\bFoo\\b"]},
            }
        },
        "compoundTags": {"FOO_RISK": {"expression": "USES_FOO", "severity": "high"}},
    }
    path = tmp_path / "tags.json"
    path.write_text(json.dumps(raw))

    definitions = TagDefinitionLoader().load(path)
    assert definitions.version == "2.1"
    assert definitions.get_all_tag_names() == ["USES_FOO"]
    assert definitions.get_compound_tag("FOO_RISK").severity == "HIGH"
    assert definitions.get_trigger_conditions() == {}


def test_validation_warnings():
    raw = {
        "tags": {
            "bad_name": {"category": "x", "description": "x", "tier": 3, "detection": {"type": "magic"}},
        },
        "compoundTags": {
            "BROKEN": {"expression": "A &&"},
            "UNKNOWN_REF": {"expression": "NOT_DEFINED"},
        },
    }
    warnings = validate_definitions(raw)
    joined = "\n".join(warnings)
    assert "bad_name: tag name" in joined
    assert "tier must be 1 or 2" in joined
    assert "detection.type" in joined
    assert "BROKEN: invalid compound expression" in joined
    assert "UNKNOWN_REF: compound expression references unknown tags" in joined


def _compound_table(compounds):
    return {
        "tags": {
            "USES_FOO": {
                "category": "custom",
                "description": "Uses Foo",
                "extractionMethod": "regex",
                "tier": 1,
                "detection": {"type": "regex", "patterns": ["\\bFoo\\b"]},
            }
        },
        "compoundTags": compounds,
    }


def test_compound_references_are_ordered_first(tmp_path):
    raw = _compound_table(
        {
            "DOUBLE_FOO": {"expression": "FOO_RISK && USES_FOO"},
            "FOO_RISK": {"expression": "USES_FOO"},
        }
    )
    assert validate_definitions(raw) == []

    path = tmp_path / "tags.json"
    path.write_text(json.dumps(raw))
    definitions = TagDefinitionLoader().load(path)
    assert definitions.get_compound_evaluation_order() == ["FOO_RISK", "DOUBLE_FOO"]


def test_compound_cycle_is_reported():
    raw = _compound_table(
        {
            "LOOP_A": {"expression": "LOOP_B || USES_FOO"},
            "LOOP_B": {"expression": "LOOP_A"},
        }
    )
    warnings = validate_definitions(raw)
    assert any("reference cycle" in w for w in warnings)
