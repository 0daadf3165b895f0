# classifier.py
# Intent Classifier: decides whether a description asks for a workflow.
#
# Control flow:
#   prompt → gateway → fence strip → tree parse → confidence gate
#
# Never raises. Gateway failures become category "error", unreadable
# replies become category "parse-error"; both carry is_intent=False and
# confidence 0.0.

import logging

from workflow_planner.config import DEFAULT_CONFIDENCE_THRESHOLD
from workflow_planner.gateway import CompletionGateway, GatewayError, failure_kind
from workflow_planner.models import FailureKind, IntentVerdict, StageFailure, StageOutcome
from workflow_planner.parsing import as_bool, as_float, as_text, parse_object, strip_fences

logger = logging.getLogger(__name__)

UNKNOWN_CATEGORY = "未知"
MISSING_RATIONALE = "无法获取判断理由"
ERROR_CATEGORY = "error"
PARSE_ERROR_CATEGORY = "parse-error"


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

INTENT_PROMPT = """\
你是一个专业的意图识别助手，专门用于判断用户的自然语言描述是否表达了生成工作流的意图。

工作流生成意图的特征包括但不限于：
1. 描述了一系列需要按顺序执行的操作步骤
2. 包含条件判断、循环控制等逻辑结构
3. 涉及变量创建、状态监控、自动化控制等
4. 描述了业务流程、操作流程或控制流程
5. 使用了"流程"、"步骤"、"自动化"、"控制"等关键词

非工作流生成意图的例子：
1. 简单的问答或咨询
2. 单一的操作指令
3. 纯粹的信息查询
4. 闲聊或无关内容

请分析以下用户输入，判断是否为工作流生成意图：

用户输入："{{userInput}}"

请按照以下JSON格式返回结果：
{
    "isWorkflowIntent": true/false,
    "confidence": 0.0-1.0,
    "intentCategory": "工作流生成" 或 "其他",
    "reason": "判断理由的详细说明"
}

注意：
1. confidence表示判断的置信度，范围0.0-1.0
2. 只有当confidence >= {{threshold}}时，才认为是明确的工作流生成意图
3. reason要详细说明判断的依据\
"""


def build_intent_prompt(user_text: str, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD) -> str:
    return INTENT_PROMPT.replace("{{threshold}}", str(threshold)).replace("{{userInput}}", user_text)


def gate(raw_claim: bool, confidence: float, threshold: float) -> bool:
    """Final intent: the model's claim AND confidence at or above the threshold."""
    return raw_claim and confidence >= threshold


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class IntentClassifier:
    def __init__(self, gateway: CompletionGateway, threshold: float = DEFAULT_CONFIDENCE_THRESHOLD) -> None:
        self._gateway = gateway
        self._threshold = threshold

    @property
    def threshold(self) -> float:
        return self._threshold

    def parse_response(self, response: str | None, correlation_id: str) -> StageOutcome[IntentVerdict]:
        """
        Turn a raw model reply into a gated verdict.

        Missing fields take their named defaults; a reply that is not a JSON
        object yields a parse-error verdict.
        """
        try:
            cleaned = strip_fences(response)
            logger.debug("Cleaned intent reply: %s", cleaned)
            data = parse_object(cleaned)

            raw_claim = as_bool(data.get("isWorkflowIntent"), False)
            confidence = as_float(data.get("confidence"), 0.0)
            is_intent = gate(raw_claim, confidence, self._threshold)

            logger.debug(
                "Intent parsed [%s]: claim=%s confidence=%s threshold=%s final=%s",
                correlation_id,
                raw_claim,
                confidence,
                self._threshold,
                is_intent,
            )

            verdict = IntentVerdict(
                is_intent=is_intent,
                confidence=confidence,
                category=as_text(data.get("intentCategory"), UNKNOWN_CATEGORY),
                rationale=as_text(data.get("reason"), MISSING_RATIONALE),
                correlation_id=correlation_id,
            )
        except Exception as exc:
            logger.error("Could not parse intent reply [%s]: %s", correlation_id, exc)
            verdict = IntentVerdict(
                is_intent=False,
                confidence=0.0,
                category=PARSE_ERROR_CATEGORY,
                rationale=f"JSON解析失败: {exc}",
                correlation_id=correlation_id,
            )
            return StageOutcome(
                result=verdict,
                failure=StageFailure(kind=FailureKind.MODEL_OUTPUT_UNPARSEABLE, detail=str(exc)),
            )

        return StageOutcome(result=verdict)

    def run(self, user_text: str, correlation_id: str) -> StageOutcome[IntentVerdict]:
        logger.info("Classifying intent [%s]: %s", correlation_id, user_text)

        try:
            response = self._gateway.complete(build_intent_prompt(user_text, self._threshold))
        except Exception as exc:
            if isinstance(exc, GatewayError):
                logger.error("Intent classification failed [%s]: %s", correlation_id, exc)
            else:
                logger.exception("Unexpected error while classifying [%s]", correlation_id)
            verdict = IntentVerdict(
                is_intent=False,
                confidence=0.0,
                category=ERROR_CATEGORY,
                rationale=f"意图识别过程中发生错误: {exc}",
                correlation_id=correlation_id,
            )
            return StageOutcome(result=verdict, failure=StageFailure(kind=failure_kind(exc), detail=str(exc)))

        outcome = self.parse_response(response, correlation_id)
        logger.info(
            "Intent classified [%s]: is_intent=%s confidence=%s",
            correlation_id,
            outcome.result.is_intent,
            outcome.result.confidence,
        )
        return outcome

    def classify(self, user_text: str, correlation_id: str) -> IntentVerdict:
        return self.run(user_text, correlation_id).result
