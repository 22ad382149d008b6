"""
告警实例测试
"""
import pytest
from datetime import datetime, timedelta, timezone

from alerts.alert import Alert
from alerts.rules import Priority


T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_alert(**overrides) -> Alert:
    fields = dict(
        threshold_id="cpu_usage-P1-90",
        metric_name="cpu_usage",
        priority=Priority.P1,
        trigger_value=95.0,
        triggered_at=T0,
    )
    fields.update(overrides)
    return Alert(**fields)


class TestAlert:
    """Alert 测试"""

    def test_id_derived_from_threshold_and_time(self):
        """告警 ID 由阈值 ID 和触发时间派生"""
        alert = make_alert()
        assert alert.id.startswith("cpu_usage-P1-90-")
        assert alert.id == make_alert().id
        assert alert.id != make_alert(triggered_at=T0 + timedelta(seconds=1)).id

    def test_new_alert_is_unresolved(self):
        alert = make_alert()
        assert alert.is_resolved is False
        assert alert.resolved_at is None
        assert alert.external_id is None

    def test_resolve_is_monotonic(self):
        """resolved_at 设置后不再改变"""
        alert = make_alert()
        first = T0 + timedelta(seconds=10)

        assert alert.resolve(first) is True
        assert alert.resolve(first + timedelta(seconds=5)) is False
        assert alert.resolved_at == first
        assert alert.is_resolved is True

    def test_external_id_first_writer_wins(self):
        alert = make_alert()
        assert alert.set_external_id("dedup-1") is True
        assert alert.set_external_id("dedup-2") is False
        assert alert.external_id == "dedup-1"

    def test_duration(self):
        alert = make_alert()
        assert alert.duration(T0 + timedelta(seconds=30)) == timedelta(seconds=30)

        alert.resolve(T0 + timedelta(seconds=10))
        # 已解决的告警按解决时间计算
        assert alert.duration(T0 + timedelta(minutes=5)) == timedelta(seconds=10)

    def test_snapshot_is_independent(self):
        """快照修改不影响原告警"""
        alert = make_alert()
        snapshot = alert.snapshot()
        snapshot.resolve(T0)

        assert snapshot.is_resolved is True
        assert alert.is_resolved is False

    def test_to_dict(self):
        alert = make_alert()
        data = alert.to_dict(clock=lambda: T0 + timedelta(seconds=2))

        assert data["id"] == alert.id
        assert data["priority"] == "P1"
        assert data["trigger_value"] == 95.0
        assert data["resolved"] is False
        assert data["resolved_at"] is None
        assert data["duration_seconds"] == 2.0
