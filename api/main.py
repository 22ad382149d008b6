"""
FastAPI 应用主入口
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routers import alerts, metrics
from api.middleware.logging import LoggingMiddleware
from api.middleware.error_handler import register_exception_handlers
from api.schemas.response import success_response
from core.config import get_settings
from core.runtime import get_runtime
from logging_config import setup_logging, get_logger

# 获取配置
settings = get_settings()

# 配置日志
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    应用生命周期管理

    启动时:
    - 构建告警运行时（渠道、管理器、阈值）
    - 按配置启动指标模拟

    关闭时:
    - 停止检查循环
    """
    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        config=settings.display_config(),
    )

    app.state.start_time = datetime.now(timezone.utc)

    runtime = get_runtime()
    await runtime.start()

    logger.info("application_started", simulator_running=runtime.checker.running)

    yield

    logger.info("application_shutting_down")

    await runtime.stop()

    logger.info("application_stopped")


# 创建 FastAPI 应用
app = FastAPI(
    title=settings.app_name,
    description="AlertPlayground - 指标阈值告警评估与多渠道投递",
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# ===== 中间件 =====

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 请求日志
app.add_middleware(LoggingMiddleware)

# 异常处理
register_exception_handlers(app)


# ===== 路由 =====

# API 版本前缀
API_PREFIX = settings.api_prefix


# 健康检查 (无前缀)
@app.get("/health")
async def health_check_root():
    """根路径健康检查"""
    return success_response(
        data={
            "status": "healthy",
            "version": settings.app_version,
        }
    )


# 带前缀的健康检查
@app.get(f"{API_PREFIX}/health")
async def health_check():
    """API 健康检查"""
    start_time = getattr(app.state, "start_time", None)
    uptime = (datetime.now(timezone.utc) - start_time).total_seconds() if start_time else 0

    runtime = get_runtime()
    return success_response(
        data={
            "status": "healthy",
            "version": settings.app_version,
            "uptime_seconds": round(uptime, 2),
            "environment": settings.environment,
            "checker": runtime.checker.get_stats(),
            "alerts": runtime.get_manager().get_stats(),
        }
    )


# 注册路由
app.include_router(alerts.router, prefix=f"{API_PREFIX}/alerts", tags=["Alerts"])
app.include_router(metrics.router, prefix=f"{API_PREFIX}/metrics", tags=["Metrics"])


# ===== 开发模式入口 =====

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
