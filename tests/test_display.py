import pytest
from rich.console import Console

from workflow_planner import display
from workflow_planner.decomposer import default_plan, error_plan
from workflow_planner.models import IntentVerdict, ResponseEnvelope


@pytest.fixture
def console(monkeypatch):
    recorder = Console(record=True, width=140)
    monkeypatch.setattr(display, "console", recorder)
    return recorder


def test_verdict_envelope(console):
    verdict = IntentVerdict(
        is_intent=False, confidence=0.95, category="其他", rationale="信息查询", correlation_id="req-1"
    )
    display.envelope(ResponseEnvelope.success(verdict, "req-1"))
    text = console.export_text()
    assert "Not a workflow intent." in text
    assert "0.95" in text
    assert "信息查询" in text

def test_plan_envelope(console):
    display.envelope(ResponseEnvelope.success(default_plan("req-2"), "req-2"))
    text = console.export_text()
    assert "defaultVariable" in text
    assert "默认步骤" in text
    assert "60s" in text

def test_empty_plan_renders(console):
    display.plan(error_plan("req-3", "no key"))
    assert "任务分解失败: no key" in console.export_text()

def test_error_envelope(console):
    display.envelope(ResponseEnvelope.error(500, "工作流生成失败: boom", "req-4"))
    text = console.export_text()
    assert "ERROR 500" in text
    assert "工作流生成失败: boom" in text

def test_bracketed_text_is_printed_literally(console):
    display.request_received("intent", "把数组 items[/] 里的值求和 [i]")
    verdict = IntentVerdict(
        is_intent=True, confidence=0.9, category="[bold]流程", rationale="用到 [/white] 标记", correlation_id="req-5"
    )
    display.verdict(verdict)
    text = console.export_text()
    assert "items[/] 里的值求和 [i]" in text
    assert "[bold]流程" in text
    assert "用到 [/white] 标记" in text

def test_bracketed_plan_fields_are_printed_literally(console):
    plan = default_plan("req-6").model_copy(
        update={"plan_summary": "检查 [/] 阀门", "logic_description": "while [x] < 1", "execution_order": "[1] → [2]"}
    )
    display.plan(plan)
    text = console.export_text()
    assert "检查 [/] 阀门" in text
    assert "while [x] < 1" in text
    assert "[1] → [2]" in text

def test_bracketed_error_message_is_printed_literally(console):
    display.error(ResponseEnvelope.error(400, "参数校验失败: [/bad]", "req-7"))
    assert "参数校验失败: [/bad]" in console.export_text()
