# api.py
# HTTP surface. Validation, routing and status mapping only. Every decision
# about classification or decomposition lives in the pipeline.
#
# The HTTP status of every reply equals envelope.code.

import logging
import platform
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from workflow_planner.models import ResponseEnvelope
from workflow_planner.pipeline import (
    MAX_DESCRIPTION_LENGTH,
    DescriptionValidationError,
    WorkflowPipeline,
    validate_description,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "workflow-generation-service"
SERVICE_VERSION = "1.0.0"

API_INFO = """\
工作流生成服务 API 说明：

1. POST /workflow/generate
   - 完整的工作流生成，包括意图识别和任务分解
   - 请求体：{"description": "...", "user_id": "...", "request_id": "..."}
   - 如果不是工作流意图，返回意图识别结果
   - 如果是工作流意图，返回任务分解结果

2. POST /workflow/intent?description=用户描述
   - 仅进行意图识别

3. POST /workflow/decompose?description=用户描述
   - 仅进行任务分解（跳过意图识别）

4. GET /workflow/health
   - 健康检查

5. GET /workflow/info
   - 获取API使用说明

注意事项：
- 所有接口都返回统一的响应格式
- 描述长度限制为2000字符
- 需要配置DEEPSEEK_API_KEY环境变量\
"""


class WorkflowRequest(BaseModel):
    """Body of POST /workflow/generate."""

    description: str = Field(..., max_length=MAX_DESCRIPTION_LENGTH)
    user_id: str | None = None
    request_id: str | None = Field(default=None, description="Correlation id supplied by the caller.")

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, value: str) -> str:
        return validate_description(value)


def _reply(envelope: ResponseEnvelope) -> JSONResponse:
    return JSONResponse(status_code=envelope.code, content=envelope.model_dump(mode="json"))


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        ctx_error = error.get("ctx", {}).get("error")
        if isinstance(ctx_error, DescriptionValidationError):
            messages.append(str(ctx_error))
        else:
            location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query"))
            messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return ", ".join(messages)


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(pipeline: WorkflowPipeline | None = None) -> FastAPI:
    """Build the FastAPI application around a pipeline (one is built from the environment if omitted)."""
    if pipeline is None:
        pipeline = WorkflowPipeline.from_settings()

    app = FastAPI(title="Workflow Planner", version=SERVICE_VERSION)
    workflow = APIRouter(prefix="/workflow", tags=["workflow"])
    diagnostics = APIRouter(prefix="/test", tags=["diagnostics"])

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _validation_message(exc)
        logger.warning("Request validation failed on %s: %s", request.url.path, message)
        return _reply(ResponseEnvelope.error(400, f"参数校验失败: {message}"))

    @app.exception_handler(DescriptionValidationError)
    async def handle_description_error(request: Request, exc: DescriptionValidationError) -> JSONResponse:
        logger.warning("Invalid description on %s: %s", request.url.path, exc)
        return _reply(ResponseEnvelope.error(400, f"参数校验失败: {exc}"))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
        return _reply(ResponseEnvelope.error(500, "系统异常，请联系管理员"))

    # ------------------------------------------------------------------
    # Workflow routes
    # ------------------------------------------------------------------

    @workflow.post("/generate")
    def generate(body: WorkflowRequest) -> JSONResponse:
        logger.info("Generate request, user=%s: %s", body.user_id, body.description)
        return _reply(pipeline.process(body.description, body.request_id, user_id=body.user_id))

    @workflow.post("/intent")
    def intent(description: str = Query(..., max_length=MAX_DESCRIPTION_LENGTH)) -> JSONResponse:
        return _reply(pipeline.classify_only(validate_description(description)))

    @workflow.post("/decompose")
    def decompose(description: str = Query(..., max_length=MAX_DESCRIPTION_LENGTH)) -> JSONResponse:
        return _reply(pipeline.decompose_only(validate_description(description)))

    @workflow.get("/health")
    def health() -> JSONResponse:
        return _reply(pipeline.health())

    @workflow.get("/info")
    def info() -> JSONResponse:
        return _reply(ResponseEnvelope.success(API_INFO))

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    @diagnostics.get("/ping")
    def ping() -> JSONResponse:
        return _reply(ResponseEnvelope.success("pong"))

    @diagnostics.get("/status")
    def status() -> JSONResponse:
        return _reply(
            ResponseEnvelope.success(
                {
                    "service": SERVICE_NAME,
                    "status": "running",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "version": SERVICE_VERSION,
                    "python_version": platform.python_version(),
                }
            )
        )

    app.include_router(workflow)
    app.include_router(diagnostics)
    return app
