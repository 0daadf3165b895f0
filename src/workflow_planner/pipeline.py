# pipeline.py
# Orchestrator. Sequences the classifier and the decomposer and shapes the
# outward envelope. Owns correlation ids; owns no parsing.
#
# Control flow:
#   classify → negative? return verdict
#            → positive? decompose → return plan

import logging
import uuid

from workflow_planner.classifier import IntentClassifier
from workflow_planner.config import Settings, load_settings
from workflow_planner.decomposer import PlanDecomposer
from workflow_planner.gateway import CompletionGateway
from workflow_planner.models import IntentVerdict, Plan, ResponseEnvelope

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 2000
HEALTH_MESSAGE = "工作流生成服务运行正常"


class DescriptionValidationError(ValueError):
    """Raised when a caller-supplied description is blank or too long."""


def validate_description(description: str | None) -> str:
    """Reject blank or over-long descriptions before they reach the pipeline."""
    if description is None or not description.strip():
        raise DescriptionValidationError("描述不能为空")
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise DescriptionValidationError(f"描述长度不能超过{MAX_DESCRIPTION_LENGTH}字符")
    return description


def new_correlation_id() -> str:
    return str(uuid.uuid4())


def resolve_correlation_id(supplied: str | None) -> str:
    if supplied is not None and supplied.strip():
        return supplied
    return new_correlation_id()


class WorkflowPipeline:
    """
    Two-stage entry point: intent gate, then decomposition.

    Example:
        pipeline = WorkflowPipeline.from_settings(load_settings())
        envelope = pipeline.process("每天早上八点检查土壤湿度，低于30%就浇水")
    """

    def __init__(self, classifier: IntentClassifier, decomposer: PlanDecomposer) -> None:
        self._classifier = classifier
        self._decomposer = decomposer

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        gateway: CompletionGateway | None = None,
    ) -> "WorkflowPipeline":
        if settings is None:
            settings = load_settings()
        if gateway is None:
            gateway = CompletionGateway(settings)
        return cls(
            classifier=IntentClassifier(gateway, threshold=settings.confidence_threshold),
            decomposer=PlanDecomposer(gateway, max_steps=settings.max_steps, variable_limit=settings.variable_limit),
        )

    def process(
        self,
        description: str,
        correlation_id: str | None = None,
        user_id: str | None = None,
    ) -> ResponseEnvelope[IntentVerdict | Plan]:
        correlation_id = resolve_correlation_id(correlation_id)
        logger.info("Processing workflow request [%s] user=%s: %s", correlation_id, user_id, description)

        try:
            verdict = self._classifier.classify(description, correlation_id)

            if not verdict.is_intent:
                logger.info(
                    "Not a workflow intent [%s], confidence=%s",
                    correlation_id,
                    verdict.confidence,
                )
                return ResponseEnvelope.success(verdict, correlation_id)

            logger.info("Workflow intent confirmed [%s], confidence=%s", correlation_id, verdict.confidence)
            plan = self._decomposer.decompose(description, correlation_id)

            logger.info(
                "Workflow generated [%s]: %d variable(s), %d step(s)",
                correlation_id,
                len(plan.variables),
                len(plan.steps),
            )
            return ResponseEnvelope.success(plan, correlation_id)
        except Exception as exc:
            logger.exception("Workflow request failed [%s]", correlation_id)
            return ResponseEnvelope.error(500, f"工作流生成失败: {exc}", correlation_id)

    def classify_only(self, description: str) -> ResponseEnvelope[IntentVerdict]:
        correlation_id = new_correlation_id()
        logger.info("Intent-only request [%s]: %s", correlation_id, description)
        try:
            return ResponseEnvelope.success(self._classifier.classify(description, correlation_id), correlation_id)
        except Exception as exc:
            logger.exception("Intent-only request failed [%s]", correlation_id)
            return ResponseEnvelope.error(500, f"意图识别失败: {exc}", correlation_id)

    def decompose_only(self, description: str) -> ResponseEnvelope[Plan]:
        correlation_id = new_correlation_id()
        logger.info("Decompose-only request [%s]: %s", correlation_id, description)
        try:
            return ResponseEnvelope.success(self._decomposer.decompose(description, correlation_id), correlation_id)
        except Exception as exc:
            logger.exception("Decompose-only request failed [%s]", correlation_id)
            return ResponseEnvelope.error(500, f"任务分解失败: {exc}", correlation_id)

    def health(self) -> ResponseEnvelope[str]:
        logger.debug("Health check")
        return ResponseEnvelope.success(HEALTH_MESSAGE)
