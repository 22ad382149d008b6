"""
阈值状态机

每个 Threshold 绑定一个指标、一个优先级和一个比较值，
持有零或一个活跃告警，并决定何时触发、何时解决。

状态流转:
    healthy -> firing -> pending_resolve -> resolving -> healthy
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Set, Dict, Any, Callable

from .alert import Alert, utcnow
from .exceptions import InvalidStateTransition
from .rules import Priority, ThresholdOperator


class ThresholdState(str, Enum):
    """阈值状态"""
    HEALTHY = "healthy"                  # 未触发
    FIRING = "firing"                    # 已触发
    PENDING_RESOLVE = "pending_resolve"  # 防抖等待中
    RESOLVING = "resolving"              # 正在投递解决通知


# 持有活跃告警的状态
ALERTING_STATES: Set[ThresholdState] = {
    ThresholdState.FIRING,
    ThresholdState.PENDING_RESOLVE,
    ThresholdState.RESOLVING,
}

# 可以重新触发的状态
FIREABLE_STATES: Set[ThresholdState] = {
    ThresholdState.HEALTHY,
    ThresholdState.PENDING_RESOLVE,
    ThresholdState.RESOLVING,
}

VALID_TRANSITIONS: Dict[ThresholdState, Set[ThresholdState]] = {
    ThresholdState.HEALTHY: {ThresholdState.FIRING},
    ThresholdState.FIRING: {ThresholdState.PENDING_RESOLVE, ThresholdState.HEALTHY},
    ThresholdState.PENDING_RESOLVE: {
        ThresholdState.FIRING,
        ThresholdState.RESOLVING,
        ThresholdState.HEALTHY,
    },
    ThresholdState.RESOLVING: {ThresholdState.FIRING, ThresholdState.HEALTHY},
}


@dataclass(frozen=True)
class ThresholdSnapshot:
    """阈值只读快照（供展示层使用）"""
    id: str
    metric_name: str
    priority: Priority
    value: float
    operator: ThresholdOperator
    description: str
    resolve_delay_seconds: float
    state: ThresholdState
    active_alert: Optional[Alert]
    pending_resolve_at: Optional[datetime]
    remaining_resolve_seconds: float

    @property
    def is_healthy(self) -> bool:
        return self.state == ThresholdState.HEALTHY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "metric_name": self.metric_name,
            "priority": self.priority.value,
            "value": self.value,
            "operator": self.operator.value,
            "description": self.description,
            "resolve_delay_seconds": self.resolve_delay_seconds,
            "state": self.state.value,
            "active_alert_id": self.active_alert.id if self.active_alert else None,
            "pending_resolve_at": (
                self.pending_resolve_at.isoformat() if self.pending_resolve_at else None
            ),
            "remaining_resolve_seconds": round(self.remaining_resolve_seconds, 3),
        }


class Threshold:
    """
    告警阈值（配置 + 运行时状态）

    不变量:
    - active_alert 存在 当且仅当 state 属于 ALERTING_STATES
    - pending_resolve_at 存在 当且仅当 state == pending_resolve
    """

    def __init__(
        self,
        metric_name: str,
        priority: Priority,
        value: float,
        operator: ThresholdOperator,
        description: str,
        resolve_delay_seconds: float = 0,
        clock: Callable[[], datetime] = utcnow,
    ):
        if resolve_delay_seconds < 0:
            raise ValueError("resolve_delay_seconds 不能为负数")

        self.id = f"{metric_name}-{priority.value}-{value}"
        self.metric_name = metric_name
        self.priority = priority
        self.value = value
        self.operator = operator
        self.description = description
        self.resolve_delay_seconds = resolve_delay_seconds
        self._clock = clock

        self._state = ThresholdState.HEALTHY
        self._active_alert: Optional[Alert] = None
        self._pending_resolve_at: Optional[datetime] = None

    def __repr__(self) -> str:
        return f"Threshold(id={self.id!r}, state={self._state.value})"

    @property
    def state(self) -> ThresholdState:
        return self._state

    @property
    def active_alert(self) -> Optional[Alert]:
        return self._active_alert

    @property
    def pending_resolve_at(self) -> Optional[datetime]:
        return self._pending_resolve_at

    @property
    def is_healthy(self) -> bool:
        return self._state == ThresholdState.HEALTHY

    @property
    def is_firing(self) -> bool:
        return self._state == ThresholdState.FIRING

    @property
    def is_pending_resolve(self) -> bool:
        return self._state == ThresholdState.PENDING_RESOLVE

    @property
    def is_resolving(self) -> bool:
        return self._state == ThresholdState.RESOLVING

    def evaluate(self, current_value: float) -> bool:
        """评估当前值是否触发阈值"""
        return self.operator.evaluate(current_value, self.value)

    def _check_transition(self, to_state: ThresholdState) -> None:
        if to_state not in VALID_TRANSITIONS[self._state]:
            raise InvalidStateTransition(self.id, self._state.value, to_state.value)

    def transition_to_firing(self, current_value: float) -> Alert:
        """
        触发告警

        Args:
            current_value: 触发时的指标值

        Returns:
            新创建的告警

        Raises:
            InvalidStateTransition: 当前已处于 firing
        """
        self._check_transition(ThresholdState.FIRING)

        self._state = ThresholdState.FIRING
        self._pending_resolve_at = None
        self._active_alert = Alert(
            threshold_id=self.id,
            metric_name=self.metric_name,
            priority=self.priority,
            trigger_value=current_value,
            triggered_at=self._clock(),
        )
        return self._active_alert

    def transition_to_pending_resolve(self) -> Optional[Alert]:
        """
        进入防抖等待

        resolve_delay_seconds 为 0 时直接回到 healthy。

        Returns:
            直接解决时返回已解决的告警，否则返回 None
        """
        self._check_transition(ThresholdState.PENDING_RESOLVE)

        if self.resolve_delay_seconds > 0:
            self._state = ThresholdState.PENDING_RESOLVE
            self._pending_resolve_at = self._clock()
            return None

        return self.transition_to_healthy()

    def transition_to_resolving(self) -> None:
        """投递解决通知前的中间状态，防止重复投递"""
        self._check_transition(ThresholdState.RESOLVING)
        self._state = ThresholdState.RESOLVING

    def transition_to_healthy(self) -> Optional[Alert]:
        """
        回到 healthy，解决持有的告警

        Returns:
            被解决的告警
        """
        self._check_transition(ThresholdState.HEALTHY)

        alert = self._active_alert
        if alert is not None:
            alert.resolve(self._clock())

        self._state = ThresholdState.HEALTHY
        self._active_alert = None
        self._pending_resolve_at = None
        return alert

    def _elapsed_pending_seconds(self) -> float:
        return (self._clock() - self._pending_resolve_at).total_seconds()

    def should_resolve(self) -> bool:
        """防抖窗口是否已结束"""
        if self._state != ThresholdState.PENDING_RESOLVE or self._pending_resolve_at is None:
            return False
        return self._elapsed_pending_seconds() >= self.resolve_delay_seconds

    def remaining_resolve_seconds(self) -> float:
        """距离解决还剩多少秒"""
        if self._state != ThresholdState.PENDING_RESOLVE or self._pending_resolve_at is None:
            return 0.0
        return max(0.0, self.resolve_delay_seconds - self._elapsed_pending_seconds())

    def snapshot(self) -> ThresholdSnapshot:
        return ThresholdSnapshot(
            id=self.id,
            metric_name=self.metric_name,
            priority=self.priority,
            value=self.value,
            operator=self.operator,
            description=self.description,
            resolve_delay_seconds=self.resolve_delay_seconds,
            state=self._state,
            active_alert=self._active_alert.snapshot() if self._active_alert else None,
            pending_resolve_at=self._pending_resolve_at,
            remaining_resolve_seconds=self.remaining_resolve_seconds(),
        )
