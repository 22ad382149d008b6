"""
告警管理器

持有所有阈值及活跃告警，按指标逐次评估阈值、驱动状态转换、
投递告警通知并向订阅者发出事件。

每次 evaluate_metric:
1. 评估该指标的所有阈值（触发 / 进入待解决）
2. 处理整个注册表中防抖窗口已结束的阈值（投递 resolved）
3. 清理与阈值不一致的活跃告警
"""
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Optional, List, Dict, Any, Callable, Iterable, Union

import structlog

from .alert import Alert, utcnow
from .dispatch import MultiSinkDispatcher, DispatchStatus, DispatchOutcome
from .exceptions import StaleResolveFailure
from .rules import Priority, ThresholdOperator, ThresholdConfig, MetricConfig
from .threshold import (
    Threshold,
    ThresholdSnapshot,
    ThresholdState,
    FIREABLE_STATES,
)

logger = structlog.get_logger(__name__)


class AlertManagerEvent(str, Enum):
    """管理器事件"""
    THRESHOLD_STATE_CHANGE = "threshold_state_change"
    ALERT_CREATED = "alert_created"
    ALERT_RESOLVED = "alert_resolved"


EventHandler = Callable[[Any], None]


class AlertManager:
    """
    告警管理器

    注册表（阈值、活跃告警）只由管理器修改，由一把锁保护，
    锁不会跨 await 持有。读取方只拿到快照。
    事件订阅者在触发调用返回前被同步通知。
    """

    def __init__(
        self,
        dispatcher: Optional[MultiSinkDispatcher] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._dispatcher = dispatcher or MultiSinkDispatcher()
        self._clock = clock
        self._thresholds: Dict[str, Threshold] = {}
        self._active_alerts: Dict[str, Alert] = {}
        self._handlers: Dict[AlertManagerEvent, List[EventHandler]] = {
            event: [] for event in AlertManagerEvent
        }
        self._lock = Lock()
        self._dispatch_failures = 0

    @property
    def dispatcher(self) -> MultiSinkDispatcher:
        return self._dispatcher

    # ===== 配置 =====

    def add_threshold(
        self,
        metric_name: str,
        priority: Union[Priority, str],
        value: float,
        operator: Union[ThresholdOperator, str],
        description: str,
        resolve_delay_seconds: float = 0,
    ) -> ThresholdSnapshot:
        """
        注册阈值

        相同 ID 的阈值会被替换，旧阈值先强制回到 healthy。
        """
        threshold = Threshold(
            metric_name=metric_name,
            priority=Priority(priority),
            value=value,
            operator=ThresholdOperator(operator),
            description=description,
            resolve_delay_seconds=resolve_delay_seconds,
            clock=self._clock,
        )

        if threshold.id in self._thresholds:
            self.remove_threshold(threshold.id)
            logger.warning("threshold_replaced", threshold_id=threshold.id)

        with self._lock:
            self._thresholds[threshold.id] = threshold

        logger.debug(
            "threshold_added",
            threshold_id=threshold.id,
            metric_name=metric_name,
            resolve_delay_seconds=resolve_delay_seconds,
        )
        return threshold.snapshot()

    def add_thresholds(
        self,
        metric_name: str,
        configs: Iterable[ThresholdConfig],
    ) -> List[ThresholdSnapshot]:
        """批量注册同一指标的阈值"""
        return [
            self.add_threshold(
                metric_name,
                config.priority,
                config.threshold,
                config.operator,
                config.description,
                config.resolve_delay_seconds,
            )
            for config in configs
        ]

    def add_metric_configs(self, metric_configs: Iterable[MetricConfig]) -> int:
        """按指标配置注册全部阈值，返回注册数量"""
        count = 0
        for metric in metric_configs:
            count += len(self.add_thresholds(metric.name, metric.thresholds))
        logger.info("thresholds_loaded", count=count)
        return count

    def remove_threshold(self, threshold_id: str) -> bool:
        """移除阈值，未恢复的阈值先强制回到 healthy"""
        with self._lock:
            threshold = self._thresholds.pop(threshold_id, None)
            if threshold is None:
                return False
            if not threshold.is_healthy:
                alert = threshold.transition_to_healthy()
                if alert is not None:
                    self._active_alerts.pop(alert.id, None)

        logger.info("threshold_removed", threshold_id=threshold_id)
        return True

    # ===== 事件订阅 =====

    def on(self, event: Union[AlertManagerEvent, str], handler: EventHandler) -> None:
        """订阅事件"""
        self._handlers[AlertManagerEvent(event)].append(handler)

    def off(
        self,
        event: Union[AlertManagerEvent, str],
        handler: Optional[EventHandler] = None,
    ) -> None:
        """取消订阅；不传 handler 时移除该事件的所有订阅者"""
        handlers = self._handlers[AlertManagerEvent(event)]
        if handler is None:
            handlers.clear()
        elif handler in handlers:
            handlers.remove(handler)

    def _emit(self, event: AlertManagerEvent, payload: Any) -> None:
        for handler in list(self._handlers[event]):
            try:
                handler(payload)
            except Exception as e:
                logger.error("alert_event_handler_failed", alert_event=event.value, error=str(e))

    # ===== 评估 =====

    async def evaluate_metric(self, metric_name: str, value: float) -> None:
        """
        评估一次指标观测值

        单个阈值的失败只记录日志，不影响其他阈值，也不向调用方抛出。
        """
        for threshold in self._thresholds_for(metric_name):
            await self._evaluate_threshold(threshold, value)

        await self.sweep()

    async def sweep(self) -> None:
        """处理到期的待解决阈值并清理不一致状态"""
        await self.process_pending_resolves()
        self.cleanup_inconsistent_state()

    def _thresholds_for(self, metric_name: str) -> List[Threshold]:
        with self._lock:
            return [t for t in self._thresholds.values() if t.metric_name == metric_name]

    async def _evaluate_threshold(self, threshold: Threshold, value: float) -> None:
        current_state = threshold.state
        try:
            with self._lock:
                should_fire = threshold.evaluate(value)
                current_state = threshold.state
                alert = None
                resolved = None

                if should_fire and current_state in FIREABLE_STATES:
                    previous = threshold.active_alert
                    if previous is not None:
                        self._active_alerts.pop(previous.id, None)
                    alert = threshold.transition_to_firing(value)
                    self._active_alerts[alert.id] = alert
                elif not should_fire and current_state == ThresholdState.FIRING:
                    resolved = threshold.transition_to_pending_resolve()
                    if resolved is not None:
                        self._active_alerts.pop(resolved.id, None)
                else:
                    return

            if alert is not None:
                logger.info(
                    "threshold_firing",
                    threshold_id=threshold.id,
                    alert_id=alert.id,
                    metric_name=threshold.metric_name,
                    value=value,
                    previous_state=current_state.value,
                )
                try:
                    await self._dispatch(alert, threshold, DispatchStatus.FIRING)
                finally:
                    self._emit(AlertManagerEvent.THRESHOLD_STATE_CHANGE, threshold.snapshot())
                    self._emit(AlertManagerEvent.ALERT_CREATED, alert.snapshot())
                return

            logger.info(
                "threshold_pending_resolve",
                threshold_id=threshold.id,
                metric_name=threshold.metric_name,
                value=value,
                resolve_delay_seconds=threshold.resolve_delay_seconds,
            )
            self._emit(AlertManagerEvent.THRESHOLD_STATE_CHANGE, threshold.snapshot())

            if resolved is not None:
                try:
                    await self._dispatch(resolved, threshold, DispatchStatus.RESOLVED)
                finally:
                    self._emit(AlertManagerEvent.ALERT_RESOLVED, resolved.snapshot())

        except Exception as e:
            logger.error(
                "threshold_evaluation_failed",
                threshold_id=threshold.id,
                metric_name=threshold.metric_name,
                current_value=value,
                current_state=current_state.value,
                error=str(e),
            )

    async def process_pending_resolves(self) -> int:
        """
        处理防抖窗口已结束的阈值

        pending_resolve -> resolving -> 投递 resolved -> healthy。
        投递失败时强制回到 healthy，错误只记录日志。

        Returns:
            解决的告警数量
        """
        with self._lock:
            ready = [t for t in self._thresholds.values() if t.should_resolve()]

        resolved_count = 0
        for threshold in ready:
            alert = threshold.active_alert
            try:
                with self._lock:
                    # 前面的 await 期间可能已被重新触发
                    if not threshold.should_resolve() or threshold.active_alert is not alert:
                        continue
                    threshold.transition_to_resolving()

                await self._dispatch(alert, threshold, DispatchStatus.RESOLVED)

                with self._lock:
                    still_owned = threshold.is_resolving and threshold.active_alert is alert
                    if still_owned:
                        threshold.transition_to_healthy()
                    else:
                        # 投递期间重新触发，只结束旧告警，新告警保持不变
                        alert.resolve(self._clock())
                    if self._active_alerts.get(alert.id) is alert:
                        del self._active_alerts[alert.id]

                logger.info(
                    "threshold_resolved",
                    threshold_id=threshold.id,
                    alert_id=alert.id,
                    metric_name=threshold.metric_name,
                    refired=not still_owned,
                )
                if still_owned:
                    self._emit(AlertManagerEvent.THRESHOLD_STATE_CHANGE, threshold.snapshot())
                self._emit(AlertManagerEvent.ALERT_RESOLVED, alert.snapshot())
                resolved_count += 1

            except Exception as e:
                failure = StaleResolveFailure(threshold.id, alert.id if alert else None, e)
                logger.error(
                    "pending_resolve_failed",
                    threshold_id=threshold.id,
                    metric_name=threshold.metric_name,
                    alert_id=alert.id if alert else None,
                    error=str(failure),
                )
                self._force_healthy(threshold, alert)

        return resolved_count

    def _force_healthy(self, threshold: Threshold, alert: Optional[Alert]) -> None:
        """解决失败后强制回到 healthy，避免阈值卡死"""
        changed = False
        with self._lock:
            if not threshold.is_healthy and (alert is None or threshold.active_alert is alert):
                threshold.transition_to_healthy()
                changed = True
            if alert is not None:
                alert.resolve(self._clock())
                if self._active_alerts.get(alert.id) is alert:
                    del self._active_alerts[alert.id]

        if changed:
            logger.warning("threshold_force_reset", threshold_id=threshold.id)
            self._emit(AlertManagerEvent.THRESHOLD_STATE_CHANGE, threshold.snapshot())

    def cleanup_inconsistent_state(self) -> int:
        """
        移除阈值缺失、已 healthy 或不再持有该告警的活跃告警

        Returns:
            移除数量
        """
        with self._lock:
            stale = []
            for alert_id, alert in self._active_alerts.items():
                threshold = self._thresholds.get(alert.threshold_id)
                if (
                    threshold is None
                    or threshold.is_healthy
                    or threshold.active_alert is None
                    or threshold.active_alert.id != alert_id
                ):
                    stale.append(alert_id)

            for alert_id in stale:
                del self._active_alerts[alert_id]

        if stale:
            logger.warning("inconsistent_alerts_removed", alert_ids=stale)
        return len(stale)

    async def _dispatch(
        self,
        alert: Alert,
        threshold: Threshold,
        status: DispatchStatus,
    ) -> List[DispatchOutcome]:
        outcomes = await self._dispatcher.send(alert, threshold, status)
        failures = sum(1 for o in outcomes if not o.success)
        if failures:
            with self._lock:
                self._dispatch_failures += failures
        return outcomes

    # ===== 查询（均返回快照） =====

    def get_threshold(self, threshold_id: str) -> Optional[ThresholdSnapshot]:
        with self._lock:
            threshold = self._thresholds.get(threshold_id)
            return threshold.snapshot() if threshold else None

    def get_all_thresholds(self) -> List[ThresholdSnapshot]:
        with self._lock:
            return [t.snapshot() for t in self._thresholds.values()]

    def get_thresholds_for_metric(self, metric_name: str) -> List[ThresholdSnapshot]:
        with self._lock:
            return [
                t.snapshot() for t in self._thresholds.values()
                if t.metric_name == metric_name
            ]

    def get_all_active_alerts(self) -> List[Alert]:
        with self._lock:
            return [a.snapshot() for a in self._active_alerts.values() if not a.is_resolved]

    def get_active_alerts_for_metric(self, metric_name: str) -> List[Alert]:
        with self._lock:
            return [
                a.snapshot() for a in self._active_alerts.values()
                if a.metric_name == metric_name and not a.is_resolved
            ]

    def get_alert(self, alert_id: str) -> Optional[Alert]:
        with self._lock:
            alert = self._active_alerts.get(alert_id)
            return alert.snapshot() if alert else None

    def is_metric_alerting(self, metric_name: str) -> bool:
        return len(self.get_active_alerts_for_metric(metric_name)) > 0

    def get_highest_priority_alert_for_metric(self, metric_name: str) -> Optional[Alert]:
        """最严重的活跃告警；同优先级按注册顺序取第一个"""
        alerts = self.get_active_alerts_for_metric(metric_name)
        if not alerts:
            return None
        return sorted(alerts, key=lambda a: a.priority.rank)[0]

    def get_stats(self) -> Dict[str, Any]:
        """获取管理器统计"""
        with self._lock:
            by_state = {state.value: 0 for state in ThresholdState}
            for threshold in self._thresholds.values():
                by_state[threshold.state.value] += 1

            return {
                "total_thresholds": len(self._thresholds),
                "active_alerts": len(self._active_alerts),
                "thresholds_by_state": by_state,
                "dispatch_failures": self._dispatch_failures,
            }
