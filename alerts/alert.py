"""
告警实例

一个 Alert 对应阈值的一次触发周期。除解决时间和外部 ID 外不可变。
"""
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Callable

from .rules import Priority


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Alert:
    """告警实例"""
    threshold_id: str
    metric_name: str
    priority: Priority
    trigger_value: float
    triggered_at: datetime
    resolved_at: Optional[datetime] = None
    external_id: Optional[str] = None

    @property
    def id(self) -> str:
        """由阈值 ID 和触发时间（微秒）派生"""
        micros = int(self.triggered_at.timestamp() * 1_000_000)
        return f"{self.threshold_id}-{micros}"

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    def resolve(self, at: Optional[datetime] = None) -> bool:
        """
        标记告警已解决

        resolved_at 一旦设置不再改变。

        Returns:
            本次调用是否设置了 resolved_at
        """
        if self.resolved_at is not None:
            return False
        self.resolved_at = at or utcnow()
        return True

    def set_external_id(self, external_id: str) -> bool:
        """设置外部关联 ID（先写者胜）"""
        if self.external_id:
            return False
        self.external_id = external_id
        return True

    def duration(self, now: Optional[datetime] = None) -> timedelta:
        end = self.resolved_at or now or utcnow()
        return end - self.triggered_at

    def snapshot(self) -> "Alert":
        """返回独立副本"""
        return replace(self)

    def to_dict(self, clock: Callable[[], datetime] = utcnow) -> Dict[str, Any]:
        return {
            "id": self.id,
            "threshold_id": self.threshold_id,
            "metric_name": self.metric_name,
            "priority": self.priority.value,
            "trigger_value": self.trigger_value,
            "triggered_at": self.triggered_at.isoformat(),
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "external_id": self.external_id,
            "resolved": self.is_resolved,
            "duration_seconds": round(self.duration(clock()).total_seconds(), 3),
        }
