import json
import uuid
from unittest.mock import MagicMock

import pytest

from workflow_planner.classifier import IntentClassifier
from workflow_planner.config import Settings
from workflow_planner.decomposer import PlanDecomposer
from workflow_planner.gateway import CompletionGateway
from workflow_planner.models import IntentVerdict, Plan
from workflow_planner.pipeline import (
    DescriptionValidationError,
    WorkflowPipeline,
    resolve_correlation_id,
    validate_description,
)

POSITIVE = json.dumps({"isWorkflowIntent": True, "confidence": 0.92, "intentCategory": "工作流生成", "reason": "包含条件和循环"})
NEGATIVE = json.dumps({"isWorkflowIntent": False, "confidence": 0.95, "intentCategory": "其他", "reason": "信息查询"})
WEAK = json.dumps({"isWorkflowIntent": True, "confidence": 0.5, "intentCategory": "工作流生成", "reason": "不确定"})
PLAN = json.dumps(
    {
        "plan": "检查湿度并浇水",
        "variables": [{"name": "湿度", "type": "double"}],
        "steps": [
            {"stepNumber": 1, "stepName": "读取湿度", "stepType": "action", "action": "read"},
            {"stepNumber": 2, "stepName": "浇水", "stepType": "condition", "condition": "湿度 < 30", "prerequisites": [1]},
        ],
        "logicDescription": "读取后判断",
        "executionOrder": "顺序执行",
        "estimatedDuration": 90,
        "complexityLevel": 2,
    },
    ensure_ascii=False,
)


def _pipeline(*replies):
    gateway = MagicMock(spec=CompletionGateway)
    gateway.complete.side_effect = list(replies)
    pipeline = WorkflowPipeline(IntentClassifier(gateway, threshold=0.8), PlanDecomposer(gateway))
    return pipeline, gateway

# ---------------------------------------------------------------------------
# Two-stage flow
# ---------------------------------------------------------------------------

def test_negative_intent_returns_verdict():
    pipeline, gateway = _pipeline(NEGATIVE)
    envelope = pipeline.process("帮我判断今天天气")
    assert envelope.code == 200
    assert isinstance(envelope.data, IntentVerdict)
    assert envelope.data.is_intent is False
    assert gateway.complete.call_count == 1

def test_positive_intent_returns_plan():
    pipeline, gateway = _pipeline(POSITIVE, PLAN)
    envelope = pipeline.process("每天早上八点检查土壤湿度，低于30%就浇水", "req-42")
    assert envelope.code == 200
    assert isinstance(envelope.data, Plan)
    assert len(envelope.data.steps) >= 1
    assert envelope.correlation_id == "req-42"
    assert envelope.data.correlation_id == "req-42"
    assert gateway.complete.call_count == 2

def test_sub_threshold_claim_skips_decomposition():
    pipeline, gateway = _pipeline(WEAK)
    envelope = pipeline.process("也许是个流程")
    assert envelope.data.is_intent is False
    assert gateway.complete.call_count == 1

def test_missing_credential_degrades_without_network():
    gateway = CompletionGateway(Settings(api_key=None), client=MagicMock())
    pipeline = WorkflowPipeline.from_settings(Settings(api_key=None), gateway=gateway)

    envelope = pipeline.process("每天八点浇水")
    assert envelope.code == 200
    assert envelope.data.is_intent is False
    assert envelope.data.category == "error"

    decomposed = pipeline.decompose_only("每天八点浇水")
    assert decomposed.code == 200
    assert decomposed.data.steps == []
    assert decomposed.data.complexity_level == 0

def test_escaping_exception_becomes_500_envelope():
    classifier = MagicMock(spec=IntentClassifier)
    classifier.classify.side_effect = RuntimeError("wiring bug")
    pipeline = WorkflowPipeline(classifier, MagicMock(spec=PlanDecomposer))
    envelope = pipeline.process("浇水", "req-9")
    assert envelope.code == 500
    assert "wiring bug" in envelope.message
    assert envelope.correlation_id == "req-9"
    assert envelope.data is None

# ---------------------------------------------------------------------------
# Correlation ids
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("supplied", [None, "", "   "])
def test_blank_correlation_id_is_generated(supplied):
    generated = resolve_correlation_id(supplied)
    assert uuid.UUID(generated)

def test_supplied_correlation_id_is_kept():
    assert resolve_correlation_id("abc-123") == "abc-123"

def test_single_stage_entry_points_use_fresh_ids():
    pipeline, _ = _pipeline(NEGATIVE, NEGATIVE, PLAN)
    first = pipeline.classify_only("天气")
    second = pipeline.classify_only("天气")
    plan = pipeline.decompose_only("浇水")
    assert first.correlation_id != second.correlation_id
    assert isinstance(plan.data, Plan)
    assert plan.data.correlation_id == plan.correlation_id

def test_decompose_only_skips_intent_gate():
    pipeline, gateway = _pipeline(PLAN)
    envelope = pipeline.decompose_only("浇水")
    assert envelope.code == 200
    assert [s.name for s in envelope.data.steps] == ["读取湿度", "浇水"]
    assert gateway.complete.call_count == 1

def test_single_stage_guard_returns_500():
    decomposer = MagicMock(spec=PlanDecomposer)
    decomposer.decompose.side_effect = RuntimeError("oops")
    pipeline = WorkflowPipeline(MagicMock(spec=IntentClassifier), decomposer)
    envelope = pipeline.decompose_only("浇水")
    assert envelope.code == 500
    assert envelope.message == "任务分解失败: oops"

def test_health():
    pipeline, _ = _pipeline()
    envelope = pipeline.health()
    assert envelope.code == 200
    assert envelope.data == "工作流生成服务运行正常"

# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("description", [None, "", "   \n"])
def test_blank_description_is_rejected(description):
    with pytest.raises(DescriptionValidationError):
        validate_description(description)

def test_long_description_is_rejected():
    assert validate_description("a" * 2000) == "a" * 2000
    with pytest.raises(DescriptionValidationError):
        validate_description("a" * 2001)
