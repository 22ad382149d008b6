"""
pytest 配置
"""
import pytest
import os
from datetime import datetime, timedelta, timezone
from typing import List, Tuple, Optional, Callable, Awaitable

# 测试时不启动模拟循环，不投递真实渠道
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SIMULATOR_ENABLED", "false")
os.environ.setdefault("INCIDENT_IO_ENABLED", "false")
os.environ.setdefault("FIREHYDRANT_ENABLED", "false")


class FakeClock:
    """可手动推进的时钟"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class RecordingDispatcher:
    """
    记录投递调用的假投递器

    - fail: 返回失败结果
    - raise_error: 直接抛出异常
    - during_send: 投递等待期间执行一次的协程
    """

    def __init__(self):
        self.calls: List[Tuple[str, object, str]] = []
        self.fail = False
        self.raise_error: Optional[Exception] = None
        self.during_send: Optional[Callable[[], Awaitable[None]]] = None

    async def send(self, alert, threshold, status):
        from alerts.dispatch import DispatchOutcome

        self.calls.append((status.value, alert.snapshot(), threshold.id))

        if self.during_send is not None:
            hook, self.during_send = self.during_send, None
            await hook()

        if self.raise_error is not None:
            raise self.raise_error

        return [
            DispatchOutcome(
                sink="recording",
                status=status,
                alert_id=alert.id,
                success=not self.fail,
            )
        ]

    @property
    def statuses(self) -> List[str]:
        return [c[0] for c in self.calls]

    def calls_for(self, threshold_id: str) -> List[str]:
        return [c[0] for c in self.calls if c[2] == threshold_id]


@pytest.fixture
def clock():
    """测试时钟"""
    return FakeClock()


@pytest.fixture
def dispatcher():
    """记录投递的假投递器"""
    return RecordingDispatcher()


@pytest.fixture
def manager(dispatcher, clock):
    """使用假投递器和测试时钟的告警管理器"""
    from alerts.manager import AlertManager
    return AlertManager(dispatcher=dispatcher, clock=clock)


@pytest.fixture(scope="session")
def test_settings():
    """测试配置"""
    from core.config import Settings
    return Settings()
