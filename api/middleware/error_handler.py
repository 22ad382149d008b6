"""
全局错误处理

将领域异常转换为统一响应格式
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import structlog

from alerts.checker import MetricNotFoundError
from alerts.exceptions import AlertingError, InvalidStateTransition
from api.schemas.response import error_response
from core.config import get_settings

logger = structlog.get_logger(__name__)


class ErrorCode:
    """错误码定义"""
    # 通用错误 (40xxx)
    PARAMETER_INVALID = 40002
    METRIC_NOT_FOUND = 40401
    INVALID_STATE_TRANSITION = 40901

    # 服务器错误 (50xxx)
    INTERNAL_ERROR = 50000
    ALERTING_ERROR = 50001


async def metric_not_found_handler(request: Request, exc: MetricNotFoundError):
    """指标不存在"""
    logger.warning("metric_not_found", metric_name=exc.metric_name, path=request.url.path)
    return JSONResponse(
        status_code=404,
        content=error_response(
            message="指标不存在",
            code=ErrorCode.METRIC_NOT_FOUND,
            error_type="MetricNotFoundError",
            detail=str(exc),
        ),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """请求参数校验失败"""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]

    logger.warning("request_validation_failed", path=request.url.path, errors=len(errors))
    return JSONResponse(
        status_code=422,
        content=error_response(
            message="参数校验失败",
            code=ErrorCode.PARAMETER_INVALID,
            error_type="ValidationError",
            detail=first.get("msg", "请求参数无效"),
            field=".".join(loc) or None,
        ),
    )


async def invalid_transition_handler(request: Request, exc: InvalidStateTransition):
    """非法状态转换"""
    logger.warning(
        "invalid_state_transition",
        threshold_id=exc.threshold_id,
        path=request.url.path,
        error=str(exc),
    )
    return JSONResponse(
        status_code=409,
        content=error_response(
            message="阈值状态冲突",
            code=ErrorCode.INVALID_STATE_TRANSITION,
            error_type="InvalidStateTransition",
            detail=str(exc),
        ),
    )


async def alerting_error_handler(request: Request, exc: AlertingError):
    """其他告警错误"""
    logger.error("alerting_error", path=request.url.path, error=str(exc), code=exc.code)
    return JSONResponse(
        status_code=500,
        content=error_response(
            message="告警处理失败",
            code=ErrorCode.ALERTING_ERROR,
            error_type=type(exc).__name__,
            detail=str(exc),
        ),
    )


async def global_exception_handler(request: Request, exc: Exception):
    """全局异常处理器"""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content=error_response(
            message="内部服务器错误",
            code=ErrorCode.INTERNAL_ERROR,
            error_type="InternalError",
            detail=str(exc) if get_settings().debug else "发生未预期的错误，请联系管理员",
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """注册异常处理器"""
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(MetricNotFoundError, metric_not_found_handler)
    app.add_exception_handler(InvalidStateTransition, invalid_transition_handler)
    app.add_exception_handler(AlertingError, alerting_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
