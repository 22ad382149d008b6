"""
指标模拟与定时检查

MetricSimulator 按 base ± variance + 手动调整量生成指标值，
AlertChecker 按固定间隔把每个模拟指标送入当前告警管理器评估。
"""
import asyncio
import random
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List, Callable, Deque, Iterable

import structlog

from .alert import utcnow
from .manager import AlertManager
from .rules import MetricConfig, list_metric_configs

logger = structlog.get_logger(__name__)

# 滚动统计窗口（分钟）
ROLLING_WINDOWS = (1, 5, 15)


class MetricNotFoundError(KeyError):
    """未知指标"""

    def __init__(self, metric_name: str):
        super().__init__(metric_name)
        self.metric_name = metric_name

    def __str__(self) -> str:
        return f"指标不存在: {self.metric_name}"


@dataclass
class MetricPoint:
    timestamp: datetime
    value: float


class MetricSeries:
    """单个指标的时间序列（只保留 retention 窗口内的数据）"""

    def __init__(self, metric_name: str, retention: timedelta = timedelta(minutes=15)):
        self.metric_name = metric_name
        self.retention = retention
        self._points: Deque[MetricPoint] = deque()

    def __len__(self) -> int:
        return len(self._points)

    def add(self, value: float, timestamp: datetime) -> None:
        self._points.append(MetricPoint(timestamp=timestamp, value=value))
        self._prune(timestamp)

    def _prune(self, now: datetime) -> None:
        cutoff = now - self.retention
        while self._points and self._points[0].timestamp < cutoff:
            self._points.popleft()

    @property
    def current(self) -> Optional[float]:
        return self._points[-1].value if self._points else None

    def points(self, since: Optional[datetime] = None) -> List[MetricPoint]:
        if since is None:
            return list(self._points)
        return [p for p in self._points if p.timestamp >= since]

    def window_stats(self, now: datetime, minutes: int) -> Optional[Dict[str, float]]:
        values = [p.value for p in self.points(now - timedelta(minutes=minutes))]
        if not values:
            return None
        return {
            "avg": sum(values) / len(values),
            "min": min(values),
            "max": max(values),
        }

    def stats(self, now: datetime) -> Dict[str, Any]:
        """当前值及 1/5/15 分钟滚动统计"""
        return {
            "current": self.current,
            "points": len(self._points),
            **{f"last_{m}m": self.window_stats(now, m) for m in ROLLING_WINDOWS},
        }


class MetricSimulator:
    """
    指标模拟器

    value = base_value + uniform(-variance, variance) + adjustment，下限为 0
    """

    def __init__(
        self,
        metric_configs: Optional[Iterable[MetricConfig]] = None,
        retention_minutes: int = 15,
        seed: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        configs = list(metric_configs) if metric_configs is not None else list_metric_configs()
        self._configs: Dict[str, MetricConfig] = {c.name: c for c in configs}
        self._adjustments: Dict[str, float] = {name: 0.0 for name in self._configs}
        self._series: Dict[str, MetricSeries] = {
            name: MetricSeries(name, timedelta(minutes=retention_minutes))
            for name in self._configs
        }
        self._random = random.Random(seed)
        self._clock = clock

    @property
    def metric_names(self) -> List[str]:
        return list(self._configs)

    def _require(self, metric_name: str) -> MetricConfig:
        config = self._configs.get(metric_name)
        if config is None:
            raise MetricNotFoundError(metric_name)
        return config

    def get_config(self, metric_name: str) -> MetricConfig:
        return self._require(metric_name)

    def get_adjustment(self, metric_name: str) -> float:
        self._require(metric_name)
        return self._adjustments[metric_name]

    def adjust(self, metric_name: str, delta: float) -> float:
        """累加手动调整量，返回调整后的总量"""
        self._require(metric_name)
        self._adjustments[metric_name] += delta
        logger.info(
            "metric_adjusted",
            metric_name=metric_name,
            delta=delta,
            adjustment=self._adjustments[metric_name],
        )
        return self._adjustments[metric_name]

    def set_adjustment(self, metric_name: str, adjustment: float) -> float:
        self._require(metric_name)
        self._adjustments[metric_name] = adjustment
        return adjustment

    def reset_adjustment(self, metric_name: Optional[str] = None) -> None:
        """清零调整量；不传指标时全部清零"""
        names = [metric_name] if metric_name else list(self._adjustments)
        for name in names:
            self._require(name)
            self._adjustments[name] = 0.0

    def generate(self, metric_name: str) -> float:
        config = self._require(metric_name)
        noise = self._random.uniform(-config.variance, config.variance)
        return max(0.0, config.base_value + noise + self._adjustments[metric_name])

    def record(self, metric_name: str, value: float) -> None:
        self._require(metric_name)
        self._series[metric_name].add(value, self._clock())

    def tick(self, metric_name: str) -> float:
        """生成并记录一个新值"""
        value = self.generate(metric_name)
        self.record(metric_name, value)
        return value

    def get_series(self, metric_name: str) -> MetricSeries:
        self._require(metric_name)
        return self._series[metric_name]

    def get_metric_state(self, metric_name: str) -> Dict[str, Any]:
        config = self._require(metric_name)
        return {
            "config": config.to_dict(),
            "adjustment": self._adjustments[metric_name],
            "stats": self._series[metric_name].stats(self._clock()),
        }


class AlertChecker:
    """
    告警检查器

    每个 tick 为所有模拟指标生成新值并交给当前管理器评估，
    最后调用 sweep 处理到期的待解决阈值。暂停时只执行 sweep。
    """

    def __init__(
        self,
        simulator: MetricSimulator,
        manager_provider: Callable[[], AlertManager],
        check_interval: float = 1.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.simulator = simulator
        self.check_interval = check_interval
        self._manager_provider = manager_provider
        self._clock = clock

        self._running = False
        self._paused = False
        self._check_task: Optional[asyncio.Task] = None

        # 统计
        self._check_count = 0
        self._error_count = 0
        self._last_check: Optional[datetime] = None
        self._last_values: Dict[str, float] = {}

    @property
    def running(self) -> bool:
        return self._running

    @property
    def paused(self) -> bool:
        return self._paused

    async def start(self) -> None:
        """启动定时检查"""
        if self._running:
            return

        self._running = True
        self._check_task = asyncio.create_task(self._check_loop())
        logger.info("alert_checker_started", interval=self.check_interval)

    async def stop(self) -> None:
        """停止定时检查"""
        self._running = False
        if self._check_task:
            self._check_task.cancel()
            try:
                await self._check_task
            except asyncio.CancelledError:
                pass
            self._check_task = None
        logger.info("alert_checker_stopped")

    def pause(self) -> None:
        self._paused = True
        logger.info("alert_checker_paused")

    def resume(self) -> None:
        self._paused = False
        logger.info("alert_checker_resumed")

    async def _check_loop(self) -> None:
        while self._running:
            try:
                await self.check_once()
            except Exception as e:
                self._error_count += 1
                logger.error("alert_check_failed", error=str(e))

            await asyncio.sleep(self.check_interval)

    async def check_once(self) -> Dict[str, float]:
        """
        执行一次检查

        Returns:
            本次生成的指标值（暂停时为空）
        """
        manager = self._manager_provider()
        values: Dict[str, float] = {}

        if not self._paused:
            for metric_name in self.simulator.metric_names:
                value = self.simulator.tick(metric_name)
                values[metric_name] = value
                await manager.evaluate_metric(metric_name, value)
            self._last_values = values

        await manager.sweep()

        self._check_count += 1
        self._last_check = self._clock()
        return values

    def get_stats(self) -> Dict[str, Any]:
        """获取检查器统计"""
        return {
            "running": self._running,
            "paused": self._paused,
            "check_interval": self.check_interval,
            "check_count": self._check_count,
            "error_count": self._error_count,
            "last_check": self._last_check.isoformat() if self._last_check else None,
            "last_values": dict(self._last_values),
        }
