# decomposer.py
# Plan Decomposer: turns a workflow description into variables and steps.
#
# Control flow:
#   prompt → gateway → fence strip → dual extraction → Plan
#
# Three distinct results, never an exception:
#   clean parse      : fields from the reply, per-field defaults for gaps
#   broken reply     : scanned scalars plus one default variable and step;
#                      any unexpected parse error gives the full default plan
#   gateway failure  : error plan with empty lists, duration 0, complexity 0

import logging
from typing import Any

from workflow_planner.config import DEFAULT_MAX_STEPS, DEFAULT_VARIABLE_LIMIT
from workflow_planner.gateway import CompletionGateway, GatewayError, failure_kind
from workflow_planner.models import FailureKind, Plan, StageFailure, StageOutcome, Step, Variable
from workflow_planner.parsing import (
    ModelOutputUnparseable,
    as_bool,
    as_int,
    as_int_list,
    as_parameters,
    as_str_list,
    as_text,
    missing_text,
    parse_tree,
    scan_int,
    scan_string,
    strip_fences,
)

logger = logging.getLogger(__name__)

DEFAULT_DURATION = 60
DEFAULT_COMPLEXITY = 3

STRING_KEYS = ("plan", "logicDescription", "executionOrder")


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

DECOMPOSITION_PROMPT = """\
你是一个专业的工作流设计师，擅长将复杂的自然语言描述分解为具体的可执行步骤。

用户描述："{{userInput}}"

请按照以下要求进行任务分解：

1. **任务规划(plan)**：
   - 分析用户需求，制定总体执行计划
   - 识别关键的控制逻辑（循环、判断、顺序执行等）
   - 说明整体的执行流程

2. **变量定义(variables)**：
   - 识别所有需要的变量，确保变量间的关联性和一致性
   - 为每个变量指定合适的类型（如：double, boolean, int, String等）
   - 提供清晰的变量描述，说明变量的业务含义
   - 设置合理的默认值和约束条件
   - 变量数量不超过{{variableLimit}}个

3. **执行步骤(steps)**：
   - 将任务分解为具体的执行步骤，每个步骤必须是原子性的，能在单个节点完成
   - 每个步骤只执行一个明确的操作或判断
   - 标识步骤类型（action, condition, loop等）
   - 定义步骤间的依赖关系
   - 对于循环和判断，要明确条件表达式
   - 确保步骤中使用的变量在variables中已定义
   - 步骤数量不超过{{maxSteps}}个

4. **逻辑描述(logicDescription)**：
   - 详细说明执行逻辑，解释循环、判断的具体实现方式
   - 说明异常处理和边界条件

请按照以下JSON格式返回结果：
{
    "plan": "总体执行计划的描述",
    "variables": [
        {
            "name": "变量名",
            "type": "变量类型",
            "description": "变量描述",
            "defaultValue": "默认值",
            "required": true/false,
            "constraints": "约束条件"
        }
    ],
    "steps": [
        {
            "stepNumber": 1,
            "stepName": "步骤名称",
            "description": "步骤描述",
            "stepType": "action/condition/loop",
            "action": "具体动作",
            "condition": "条件表达式（如果是判断步骤）",
            "involvedVariables": ["相关变量列表"],
            "parameters": {"参数键值对"},
            "prerequisites": ["前置步骤编号"],
            "isLoop": true/false,
            "loopCondition": "循环条件（如果是循环步骤）"
        }
    ],
    "logicDescription": "详细的代码逻辑说明",
    "executionOrder": "执行顺序的说明",
    "estimatedDuration": 预估执行时间秒数,
    "complexityLevel": 复杂度等级1-5
}

示例（放水至水位1.5m）：
- 变量：valveStatus(boolean), waterLevel(double), targetLevel(double)
- 步骤：1.初始化变量 2.打开阀门 3.循环监测水位 4.判断是否达到目标 5.关闭阀门
- 逻辑：使用while循环持续监测，当水位>=目标值时退出循环

注意：
1. 步骤要具体可执行，避免过于抽象
2. 变量类型要准确，约束要合理
3. 循环和判断条件要明确可判断
4. 步骤要用到变量，不要定义无关变量
5. 变量名和步骤要用中文\
"""


def build_decomposition_prompt(
    user_text: str,
    max_steps: int = DEFAULT_MAX_STEPS,
    variable_limit: int = DEFAULT_VARIABLE_LIMIT,
) -> str:
    return (
        DECOMPOSITION_PROMPT.replace("{{maxSteps}}", str(max_steps))
        .replace("{{variableLimit}}", str(variable_limit))
        .replace("{{userInput}}", user_text)
    )


# ---------------------------------------------------------------------------
# Fallback values
# ---------------------------------------------------------------------------


def default_variable() -> Variable:
    return Variable(
        name="defaultVariable",
        type="String",
        description="默认变量",
        default_value="",
        required=False,
        constraints="无约束",
    )


def default_step() -> Step:
    return Step(
        step_number=1,
        name="默认步骤",
        description="默认步骤描述",
        step_type="action",
        action="process",
    )


def default_plan(correlation_id: str) -> Plan:
    """Synthesized plan for a reply that could not be read at all."""
    return Plan(
        plan_summary="基于用户输入生成的基础工作流计划",
        variables=[default_variable()],
        steps=[default_step()],
        logic_description="包含初始化、执行、监测和完成四个主要阶段",
        execution_order="按步骤编号顺序执行，支持循环和条件判断",
        estimated_duration_seconds=DEFAULT_DURATION,
        complexity_level=DEFAULT_COMPLEXITY,
        correlation_id=correlation_id,
    )


def error_plan(correlation_id: str, detail: str) -> Plan:
    """Plan returned when the model could not be reached. Deliberately empty."""
    return Plan(
        plan_summary=f"任务分解失败: {detail}",
        variables=[],
        steps=[],
        logic_description="由于错误无法生成逻辑描述",
        execution_order="无法确定执行顺序",
        estimated_duration_seconds=0,
        complexity_level=0,
        correlation_id=correlation_id,
    )


# ---------------------------------------------------------------------------
# Element readers
# ---------------------------------------------------------------------------


def read_variable(node: Any) -> Variable:
    node = node if isinstance(node, dict) else {}
    return Variable(
        name=as_text(node.get("name"), "unknown"),
        type=as_text(node.get("type"), "String"),
        description=as_text(node.get("description"), "无描述"),
        default_value=as_text(node.get("defaultValue"), ""),
        required=as_bool(node.get("required"), True),
        constraints=as_text(node.get("constraints"), "无约束"),
    )


def read_step(node: Any, position: int) -> Step:
    node = node if isinstance(node, dict) else {}
    return Step(
        step_number=as_int(node.get("stepNumber"), position + 1),
        name=as_text(node.get("stepName"), "未命名步骤"),
        description=as_text(node.get("description"), "无描述"),
        step_type=as_text(node.get("stepType"), "action"),
        action=as_text(node.get("action"), "process"),
        condition=as_text(node.get("condition"), None),
        involved_variables=as_str_list(node.get("involvedVariables")),
        parameters=as_parameters(node.get("parameters")),
        prerequisites=as_int_list(node.get("prerequisites")),
        is_loop=as_bool(node.get("isLoop"), False),
        loop_condition=as_text(node.get("loopCondition"), None),
    )


def read_variables(data: dict[str, Any]) -> list[Variable]:
    nodes = data.get("variables")
    if not isinstance(nodes, list):
        return []
    return [read_variable(node) for node in nodes]


def read_steps(data: dict[str, Any]) -> list[Step]:
    nodes = data.get("steps")
    if not isinstance(nodes, list):
        return []
    return [read_step(node, index) for index, node in enumerate(nodes)]


def dangling_references(plan: Plan) -> list[str]:
    """
    Describe prerequisites and involved variables that point nowhere.

    Informational only: the plan is passed through unchanged.
    """
    step_numbers = {step.step_number for step in plan.steps}
    variable_names = {variable.name for variable in plan.variables}
    problems: list[str] = []
    for step in plan.steps:
        for prerequisite in step.prerequisites:
            if prerequisite not in step_numbers:
                problems.append(f"step {step.step_number} requires missing step {prerequisite}")
        for name in step.involved_variables:
            if name not in variable_names:
                problems.append(f"step {step.step_number} uses undeclared variable {name!r}")
    return problems


# ---------------------------------------------------------------------------
# Decomposer
# ---------------------------------------------------------------------------


class PlanDecomposer:
    def __init__(
        self,
        gateway: CompletionGateway,
        max_steps: int = DEFAULT_MAX_STEPS,
        variable_limit: int = DEFAULT_VARIABLE_LIMIT,
    ) -> None:
        self._gateway = gateway
        self._max_steps = max_steps
        self._variable_limit = variable_limit

    def _extract(self, response: str | None, correlation_id: str) -> StageOutcome[Plan]:
        cleaned = strip_fences(response)

        try:
            tree = parse_tree(cleaned)
        except ModelOutputUnparseable as exc:
            logger.warning("Decomposition reply is not JSON [%s], scanning scalars: %s", correlation_id, exc)
            plan = Plan(
                plan_summary=scan_string(cleaned, "plan"),
                variables=[default_variable()],
                steps=[default_step()],
                logic_description=scan_string(cleaned, "logicDescription"),
                execution_order=scan_string(cleaned, "executionOrder"),
                estimated_duration_seconds=scan_int(cleaned, "estimatedDuration", DEFAULT_DURATION),
                complexity_level=scan_int(cleaned, "complexityLevel", DEFAULT_COMPLEXITY),
                correlation_id=correlation_id,
            )
            return StageOutcome(
                result=plan,
                failure=StageFailure(kind=FailureKind.MODEL_OUTPUT_UNPARSEABLE, detail=str(exc)),
            )

        # a bare array or string is still JSON: every top-level field is absent
        data = tree if isinstance(tree, dict) else {}
        text = {key: as_text(data.get(key), missing_text(key)) for key in STRING_KEYS}
        plan = Plan(
            plan_summary=text["plan"],
            variables=read_variables(data),
            steps=read_steps(data),
            logic_description=text["logicDescription"],
            execution_order=text["executionOrder"],
            estimated_duration_seconds=as_int(data.get("estimatedDuration"), DEFAULT_DURATION),
            complexity_level=as_int(data.get("complexityLevel"), DEFAULT_COMPLEXITY),
            correlation_id=correlation_id,
        )
        return StageOutcome(result=plan)

    def parse_response(self, response: str | None, correlation_id: str) -> StageOutcome[Plan]:
        """
        Read a raw reply into a Plan.

        A reply that is not JSON keeps whatever scalars the scanner can find
        and gets one default variable and step. Any other failure while
        reading yields the fully synthesized default plan.
        """
        try:
            outcome = self._extract(response, correlation_id)
        except Exception as exc:
            logger.warning("Could not read decomposition reply [%s], using default plan: %s", correlation_id, exc)
            return StageOutcome(
                result=default_plan(correlation_id),
                failure=StageFailure(kind=FailureKind.MODEL_OUTPUT_UNPARSEABLE, detail=str(exc)),
            )

        for problem in dangling_references(outcome.result):
            logger.warning("Plan reference issue [%s]: %s", correlation_id, problem)
        return outcome

    def run(self, user_text: str, correlation_id: str) -> StageOutcome[Plan]:
        logger.info("Decomposing task [%s]: %s", correlation_id, user_text)

        try:
            prompt = build_decomposition_prompt(user_text, self._max_steps, self._variable_limit)
            response = self._gateway.complete(prompt)
        except Exception as exc:
            if isinstance(exc, GatewayError):
                logger.error("Task decomposition failed [%s]: %s", correlation_id, exc)
            else:
                logger.exception("Unexpected error while decomposing [%s]", correlation_id)
            return StageOutcome(
                result=error_plan(correlation_id, str(exc)),
                failure=StageFailure(kind=failure_kind(exc), detail=str(exc)),
            )

        outcome = self.parse_response(response, correlation_id)
        logger.info(
            "Task decomposed [%s]: %d variable(s), %d step(s)",
            correlation_id,
            len(outcome.result.variables),
            len(outcome.result.steps),
        )
        return outcome

    def decompose(self, user_text: str, correlation_id: str) -> Plan:
        return self.run(user_text, correlation_id).result
