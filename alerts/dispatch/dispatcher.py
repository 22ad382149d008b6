"""
多渠道并发投递

一次投递同时发往所有已注册渠道，单个渠道失败或超时不影响其他渠道，
结果以逐渠道的 DispatchOutcome 列表返回，失败只记录日志，不向上抛出。
"""
import asyncio
import time
from threading import Lock
from typing import Optional, List, Dict, Any

import structlog

from ..alert import Alert
from ..exceptions import DispatchFailure
from ..threshold import Threshold

from .base import DispatchSink, DispatchStatus, DispatchOutcome, DEFAULT_TIMEOUT

logger = structlog.get_logger(__name__)


class MultiSinkDispatcher:
    """
    多渠道投递器

    功能:
    - 渠道注册管理
    - 并发投递（每个渠道独立超时）
    - 失败隔离与日志
    - 投递统计
    """

    def __init__(
        self,
        sinks: Optional[List[DispatchSink]] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.timeout = timeout
        self._sinks: List[DispatchSink] = list(sinks or [])
        self._lock = Lock()
        self._stats: Dict[str, Dict[str, int]] = {}

    def add_sink(self, sink: DispatchSink) -> None:
        """注册渠道"""
        with self._lock:
            self._sinks.append(sink)
        logger.info("dispatch_sink_added", sink=sink.name, enabled=sink.enabled)

    def remove_sink(self, sink: DispatchSink) -> bool:
        """移除渠道"""
        with self._lock:
            if sink not in self._sinks:
                return False
            self._sinks.remove(sink)
        logger.info("dispatch_sink_removed", sink=sink.name)
        return True

    def clear_sinks(self) -> None:
        with self._lock:
            self._sinks = []

    def get_sinks(self) -> List[DispatchSink]:
        with self._lock:
            return list(self._sinks)

    async def send(
        self,
        alert: Alert,
        threshold: Threshold,
        status: DispatchStatus,
    ) -> List[DispatchOutcome]:
        """
        向所有渠道并发投递

        Args:
            alert: 告警
            threshold: 所属阈值
            status: firing / resolved

        Returns:
            每个渠道的投递结果（与渠道注册顺序一致）
        """
        sinks = self.get_sinks()
        if not sinks:
            return []

        outcomes = await asyncio.gather(
            *(self._send_one(sink, alert, threshold, status) for sink in sinks)
        )

        for outcome in outcomes:
            self._record(outcome)
            if not outcome.success:
                logger.error(
                    "dispatch_failed",
                    sink=outcome.sink,
                    alert_id=alert.id,
                    metric_name=alert.metric_name,
                    priority=alert.priority.value,
                    status=status.value,
                    status_code=outcome.status_code,
                    error=str(outcome.error),
                )

        return list(outcomes)

    async def _send_one(
        self,
        sink: DispatchSink,
        alert: Alert,
        threshold: Threshold,
        status: DispatchStatus,
    ) -> DispatchOutcome:
        start_time = time.perf_counter()
        try:
            return await asyncio.wait_for(
                sink.send(alert, threshold, status),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            reason = f"Timeout after {self.timeout}s"
        except Exception as e:
            reason = f"Unexpected error: {e}"

        return DispatchOutcome(
            sink=sink.name,
            status=status,
            alert_id=alert.id,
            success=False,
            error=DispatchFailure(sink.name, alert.id, status.value, reason),
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )

    def _record(self, outcome: DispatchOutcome) -> None:
        with self._lock:
            stats = self._stats.setdefault(
                outcome.sink, {"total": 0, "success": 0, "failed": 0, "skipped": 0}
            )
            stats["total"] += 1
            if outcome.skipped:
                stats["skipped"] += 1
            elif outcome.success:
                stats["success"] += 1
            else:
                stats["failed"] += 1

    def get_stats(self) -> Dict[str, Any]:
        """获取投递统计"""
        with self._lock:
            by_sink = {name: dict(s) for name, s in self._stats.items()}

        total = sum(s["total"] for s in by_sink.values())
        failed = sum(s["failed"] for s in by_sink.values())
        return {
            "sinks": [s.name for s in self.get_sinks()],
            "total": total,
            "failed": failed,
            "by_sink": by_sink,
        }
