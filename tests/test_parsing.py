import pytest

from workflow_planner.parsing import (
    ModelOutputUnparseable,
    as_bool,
    as_int,
    as_int_list,
    as_parameters,
    as_text,
    missing_text,
    parse_object,
    parse_tree,
    scan_int,
    scan_string,
    strip_fences,
)

BODY = '{"isWorkflowIntent": true, "confidence": 0.9}'

# ---------------------------------------------------------------------------
# Fence stripping
# ---------------------------------------------------------------------------

def test_strip_fences_json_marker():
    assert strip_fences(f"```json\n{BODY}\n```") == BODY

def test_strip_fences_plain_marker():
    assert strip_fences(f"```\n{BODY}\n```") == BODY

def test_strip_fences_unfenced_is_noop():
    assert strip_fences(BODY) == BODY
    assert strip_fences(f"  {BODY}\n") == BODY

def test_strip_fences_is_idempotent():
    once = strip_fences(f"```json\n{BODY}\n```")
    assert strip_fences(once) == once

def test_strip_fences_none_is_empty_object():
    assert strip_fences(None) == "{}"

def test_fenced_and_unfenced_parse_identically():
    assert parse_object(strip_fences(f"```json\n{BODY}\n```")) == parse_object(strip_fences(BODY))

# ---------------------------------------------------------------------------
# Tree parsing
# ---------------------------------------------------------------------------

def test_parse_object_malformed():
    with pytest.raises(ModelOutputUnparseable):
        parse_object("{ broken json }")

def test_parse_object_rejects_non_object():
    with pytest.raises(ModelOutputUnparseable, match="expected a JSON object"):
        parse_object("[1, 2, 3]")

def test_parse_object_tolerates_literal_newline_in_string():
    assert parse_object('{"plan": "line one\nline two"}') == {"plan": "line one\nline two"}

def test_field_coercion():
    assert as_text(None, "fallback") == "fallback"
    assert as_text(42, "x") == "42"
    assert as_text(True, "x") == "true"
    assert as_bool("TRUE", False) is True
    assert as_bool(None, True) is True
    assert as_int("7", 0) == 7
    assert as_int("seven", 3) == 3
    assert as_int(2.9, 0) == 2

def test_int_list_drops_non_numeric_entries():
    assert as_int_list(["1", 2, "three", 4.0]) == [1, 2, 4]
    assert as_int_list("1,2") == []

def test_parameters_keep_strings_and_booleans():
    params = as_parameters({"target": "1.5m", "open": True, "level": 1.5, "nested": {"a": 1}})
    assert params == {"target": "1.5m", "open": True, "level": "1.5", "nested": '{"a": 1}'}

# ---------------------------------------------------------------------------
# String scanning
# ---------------------------------------------------------------------------

BROKEN = """{
    "plan": "打开阀门放水",
    "variables": [ {"name": "waterLevel", BROKEN
    "logicDescription": "while 循环监测水位",
    "estimatedDuration": 120,
    "complexityLevel": 4
"""

def test_scan_string_found_in_broken_body():
    assert scan_string(BROKEN, "plan") == "打开阀门放水"
    assert scan_string(BROKEN, "logicDescription") == "while 循环监测水位"

def test_scan_string_missing_key_gives_sentinel():
    assert scan_string(BROKEN, "executionOrder") == missing_text("executionOrder")
    assert missing_text("executionOrder") == "未能解析executionOrder"

def test_scan_string_handles_escaped_quote_and_compact_colon():
    assert scan_string('{"plan":"say \\"hi\\" twice"', "plan") == 'say "hi" twice'

def test_scan_int_found_and_defaults():
    assert scan_int(BROKEN, "estimatedDuration", 60) == 120
    assert scan_int(BROKEN, "complexityLevel", 3) == 4
    assert scan_int(BROKEN, "missing", 60) == 60
    assert scan_int('"estimatedDuration": "soon",', "estimatedDuration", 60) == 60

def test_scan_int_truncates_fractions_like_tree_reader():
    body = '{"estimatedDuration": 120.5, "plan": broken'
    assert scan_int(body, "estimatedDuration", 60) == 120
    assert scan_int(body, "estimatedDuration", 60) == as_int(120.5, 60)

def test_non_finite_numbers_fall_back_to_default():
    data = parse_object('{"estimatedDuration": 1e999, "complexityLevel": NaN}')
    assert as_int(data["estimatedDuration"], 60) == 60
    assert as_int(data["complexityLevel"], 3) == 3
    assert as_int("inf", 60) == 60
    assert as_int("1e999", 60) == 60
    assert as_int_list(["inf", 2, float("nan"), "3"]) == [2, 3]
    assert scan_int('"estimatedDuration": 1e999,', "estimatedDuration", 60) == 60

def test_parse_tree_accepts_any_json_value():
    assert parse_tree('["a", "b"]') == ["a", "b"]
    assert parse_tree('"抱歉"') == "抱歉"
    with pytest.raises(ModelOutputUnparseable):
        parse_tree("抱歉，我无法完成")
