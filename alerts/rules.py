"""
指标与告警阈值配置

定义内置指标（错误率、P95 响应时间、CPU、内存）及其告警阈值，
以及各渠道共用的格式化工具。
"""
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Optional, List, Dict, Any
import re


class Priority(str, Enum):
    """告警优先级（P0 最严重）"""
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"

    @property
    def rank(self) -> int:
        """数值越小越严重"""
        return int(self.value[1:])


class ThresholdOperator(str, Enum):
    """阈值比较运算符"""
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"

    @property
    def symbol(self) -> str:
        return ">" if self is ThresholdOperator.GREATER_THAN else "<"

    def evaluate(self, value: float, threshold: float) -> bool:
        if self is ThresholdOperator.GREATER_THAN:
            return value > threshold
        return value < threshold


@dataclass(frozen=True)
class ThresholdConfig:
    """单条告警阈值配置"""
    priority: Priority
    threshold: float
    operator: ThresholdOperator
    description: str
    resolve_delay_seconds: float = 0

    def __post_init__(self):
        if self.resolve_delay_seconds < 0:
            raise ValueError("resolve_delay_seconds 不能为负数")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "priority": self.priority.value,
            "threshold": self.threshold,
            "operator": self.operator.value,
            "description": self.description,
            "resolve_delay_seconds": self.resolve_delay_seconds,
        }


@dataclass(frozen=True)
class StepSizes:
    """手动调整步长"""
    small: float
    large: float


@dataclass(frozen=True)
class MetricConfig:
    """指标配置"""
    name: str
    display_name: str
    unit: str
    base_value: float
    variance: float
    step_sizes: StepSizes
    description: Optional[str] = None
    thresholds: List[ThresholdConfig] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "unit": self.unit,
            "base_value": self.base_value,
            "variance": self.variance,
            "step_sizes": {"small": self.step_sizes.small, "large": self.step_sizes.large},
            "description": self.description,
            "thresholds": [t.to_dict() for t in self.thresholds],
        }


# 内置指标
BUILTIN_METRICS: List[MetricConfig] = [
    MetricConfig(
        name="error_rate",
        display_name="Error Rate",
        unit="%",
        base_value=2,
        variance=1,
        step_sizes=StepSizes(small=0.5, large=2.0),
        description="Percentage of requests that result in errors",
        thresholds=[
            ThresholdConfig(
                priority=Priority.P1,
                threshold=15,
                operator=ThresholdOperator.GREATER_THAN,
                description="Error rate high",
                resolve_delay_seconds=5,
            ),
            ThresholdConfig(
                priority=Priority.P2,
                threshold=5,
                operator=ThresholdOperator.GREATER_THAN,
                description="Error rate elevated",
                resolve_delay_seconds=5,
            ),
        ],
    ),
    MetricConfig(
        name="p95_response_time",
        display_name="P95 Response Time",
        unit="ms",
        base_value=150,
        variance=50,
        step_sizes=StepSizes(small=10, large=50),
        description="95th percentile of response times",
        thresholds=[
            ThresholdConfig(
                priority=Priority.P1,
                threshold=1000,
                operator=ThresholdOperator.GREATER_THAN,
                description="Response time high",
                resolve_delay_seconds=5,
            ),
            ThresholdConfig(
                priority=Priority.P3,
                threshold=400,
                operator=ThresholdOperator.GREATER_THAN,
                description="Response time elevated",
                resolve_delay_seconds=5,
            ),
        ],
    ),
    MetricConfig(
        name="cpu_usage",
        display_name="CPU Usage",
        unit="%",
        base_value=45,
        variance=15,
        step_sizes=StepSizes(small=5, large=20),
        description="Percentage of CPU resources being used",
        thresholds=[
            ThresholdConfig(
                priority=Priority.P1,
                threshold=90,
                operator=ThresholdOperator.GREATER_THAN,
                description="CPU usage critical",
                resolve_delay_seconds=5,
            ),
            ThresholdConfig(
                priority=Priority.P3,
                threshold=75,
                operator=ThresholdOperator.GREATER_THAN,
                description="CPU usage high",
                resolve_delay_seconds=5,
            ),
        ],
    ),
    MetricConfig(
        name="memory_usage",
        display_name="Memory Usage",
        unit="%",
        base_value=65,
        variance=10,
        step_sizes=StepSizes(small=5, large=15),
        description="Percentage of memory resources being used",
        thresholds=[
            ThresholdConfig(
                priority=Priority.P1,
                threshold=95,
                operator=ThresholdOperator.GREATER_THAN,
                description="Memory usage critical",
                resolve_delay_seconds=5,
            ),
            ThresholdConfig(
                priority=Priority.P2,
                threshold=85,
                operator=ThresholdOperator.GREATER_THAN,
                description="Memory usage high",
                resolve_delay_seconds=5,
            ),
        ],
    ),
]

_METRICS_BY_NAME: Dict[str, MetricConfig] = {m.name: m for m in BUILTIN_METRICS}


def get_metric_config(metric_name: str) -> Optional[MetricConfig]:
    """获取指标配置"""
    return _METRICS_BY_NAME.get(metric_name)


def list_metric_configs() -> List[MetricConfig]:
    """列出所有内置指标"""
    return list(BUILTIN_METRICS)


# ===== 格式化工具 =====

_PERCENT_METRICS = {"error_rate", "cpu_usage", "memory_usage"}
_MILLISECOND_METRICS = {"p95_response_time"}


def format_metric_name(metric_name: str) -> str:
    """camelCase / snake_case 转为小写空格分隔，如 cpuUsage -> cpu usage"""
    snake = re.sub(r"([A-Z])", r"_\1", metric_name).lower().lstrip("_")
    return snake.replace("_", " ")


def format_metric_value(metric_name: str, value: float) -> str:
    """按指标单位格式化数值"""
    snake = re.sub(r"([A-Z])", r"_\1", metric_name).lower().lstrip("_")
    if snake in _PERCENT_METRICS:
        return f"{value:.1f}%"
    if snake in _MILLISECOND_METRICS:
        return f"{value:.0f}ms"
    return f"{value:.1f}"


def format_duration(duration: timedelta) -> str:
    """格式化持续时间，如 2m 5s"""
    seconds = max(0, int(duration.total_seconds()))
    minutes, remaining = divmod(seconds, 60)
    if minutes > 0:
        return f"{minutes}m {remaining}s"
    return f"{remaining}s"
