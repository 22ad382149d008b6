"""
运行时装配

根据配置构建投递渠道、告警管理器、指标模拟器和检查器。
修改渠道配置时整体替换管理器（旧注册表丢弃，进行中的投递自然完成）。
"""
from datetime import datetime
from threading import Lock
from typing import Optional, Dict, Any, Iterable, Callable

import structlog

from alerts.alert import utcnow
from alerts.checker import AlertChecker, MetricSimulator
from alerts.dispatch import MultiSinkDispatcher, IncidentIoSink, FireHydrantSink
from alerts.manager import AlertManager
from alerts.rules import MetricConfig, list_metric_configs
from core.config import Settings, IncidentIoSettings, FireHydrantSettings, get_settings

logger = structlog.get_logger(__name__)


def build_dispatcher(settings: Settings) -> MultiSinkDispatcher:
    """按配置构建多渠道投递器（未启用的渠道也注册，投递时跳过）"""
    dispatch = settings.dispatch
    common = {
        "timeout": dispatch.timeout_seconds,
        "max_payload_bytes": dispatch.max_payload_bytes,
        "user_agent": dispatch.user_agent,
    }

    incident_io = settings.incident_io
    firehydrant = settings.firehydrant

    sinks = [
        IncidentIoSink(
            token=incident_io.token,
            alert_source_config_id=incident_io.alert_source_config_id,
            enabled=incident_io.enabled,
            api_base_url=incident_io.api_base_url,
            metadata={"service": incident_io.service, "team": incident_io.team},
            source_url=settings.dashboard_url,
            **common,
        ),
        FireHydrantSink(
            webhook_url=firehydrant.webhook_url,
            enabled=firehydrant.enabled,
            metadata={
                **firehydrant.metadata,
                "service": firehydrant.service,
                "environment": firehydrant.environment,
                "team": firehydrant.team,
            },
            dashboard_url=settings.dashboard_url,
            **common,
        ),
    ]
    return MultiSinkDispatcher(sinks=sinks, timeout=dispatch.timeout_seconds)


def build_manager(
    settings: Settings,
    metric_configs: Optional[Iterable[MetricConfig]] = None,
    dispatcher: Optional[MultiSinkDispatcher] = None,
    clock: Callable[[], datetime] = utcnow,
) -> AlertManager:
    """构建管理器并注册所有指标阈值"""
    manager = AlertManager(dispatcher=dispatcher or build_dispatcher(settings), clock=clock)
    configs = list(metric_configs) if metric_configs is not None else list_metric_configs()
    manager.add_metric_configs(configs)
    return manager


class AlertRuntime:
    """
    运行时容器

    持有当前管理器引用；检查器每个 tick 通过 get_manager 取最新的管理器。
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        metric_configs: Optional[Iterable[MetricConfig]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or get_settings()
        self.metric_configs = (
            list(metric_configs) if metric_configs is not None else list_metric_configs()
        )
        self._clock = clock
        self._lock = Lock()
        self._manager = build_manager(self.settings, self.metric_configs, clock=clock)

        sim = self.settings.simulator
        self.simulator = MetricSimulator(
            self.metric_configs,
            retention_minutes=sim.retention_minutes,
            seed=sim.seed,
            clock=clock,
        )
        self.checker = AlertChecker(
            self.simulator,
            manager_provider=self.get_manager,
            check_interval=sim.tick_interval_seconds,
            clock=clock,
        )

    @property
    def manager(self) -> AlertManager:
        return self.get_manager()

    def get_manager(self) -> AlertManager:
        with self._lock:
            return self._manager

    async def start(self) -> None:
        if self.settings.simulator.enabled:
            await self.checker.start()

    async def stop(self) -> None:
        await self.checker.stop()

    def reconfigure(
        self,
        incident_io: Optional[IncidentIoSettings] = None,
        firehydrant: Optional[FireHydrantSettings] = None,
    ) -> AlertManager:
        """
        替换渠道配置并重建管理器

        Returns:
            新的管理器
        """
        update: Dict[str, Any] = {}
        if incident_io is not None:
            update["incident_io"] = incident_io
        if firehydrant is not None:
            update["firehydrant"] = firehydrant

        settings = self.settings.model_copy(update=update)
        manager = build_manager(settings, self.metric_configs, clock=self._clock)

        with self._lock:
            self.settings = settings
            self._manager = manager

        logger.info("alert_manager_reconfigured", **self._provider_flags(settings))
        return manager

    @staticmethod
    def _provider_flags(settings: Settings) -> Dict[str, bool]:
        return {
            "incident_io_enabled": settings.incident_io.enabled and settings.incident_io.configured,
            "firehydrant_enabled": settings.firehydrant.enabled and settings.firehydrant.configured,
        }

    def provider_status(self) -> Dict[str, Dict[str, Any]]:
        """各渠道启用状态（不含密钥）"""
        with self._lock:
            settings = self.settings
        return {
            "incident_io": {
                "enabled": settings.incident_io.enabled,
                "configured": settings.incident_io.configured,
                "api_base_url": settings.incident_io.api_base_url,
                "team": settings.incident_io.team,
                "service": settings.incident_io.service,
            },
            "firehydrant": {
                "enabled": settings.firehydrant.enabled,
                "configured": settings.firehydrant.configured,
                "team": settings.firehydrant.team,
                "service": settings.firehydrant.service,
                "environment": settings.firehydrant.environment,
            },
        }


# 全局单例
_runtime: Optional[AlertRuntime] = None


def get_runtime() -> AlertRuntime:
    """获取运行时单例"""
    global _runtime
    if _runtime is None:
        _runtime = AlertRuntime()
    return _runtime


def reset_runtime() -> None:
    """丢弃运行时单例（测试用）"""
    global _runtime
    _runtime = None
