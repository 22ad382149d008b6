"""
FastAPI 依赖注入
"""
from core.runtime import AlertRuntime, get_runtime
from alerts.manager import AlertManager


def get_alert_runtime() -> AlertRuntime:
    """
    获取运行时

    使用方式:
    @router.get("/example")
    async def example(runtime: AlertRuntime = Depends(get_alert_runtime)):
        ...
    """
    return get_runtime()


def get_alert_manager() -> AlertManager:
    """获取当前告警管理器（渠道重配置后会变化，不要长期持有）"""
    return get_runtime().get_manager()
