"""
指标与阈值配置测试
"""
import pytest
from datetime import timedelta

from alerts.rules import (
    Priority,
    ThresholdOperator,
    ThresholdConfig,
    BUILTIN_METRICS,
    get_metric_config,
    list_metric_configs,
    format_metric_name,
    format_metric_value,
    format_duration,
)


class TestPriority:
    """Priority 测试"""

    def test_rank_order(self):
        """P0 最严重"""
        ranks = [p.rank for p in Priority]
        assert ranks == sorted(ranks)
        assert Priority.P0.rank < Priority.P1.rank < Priority.P4.rank

    def test_from_string(self):
        assert Priority("P3") is Priority.P3


class TestThresholdOperator:
    """ThresholdOperator 测试"""

    def test_greater_than_is_strict(self):
        op = ThresholdOperator.GREATER_THAN
        assert op.evaluate(91, 90) is True
        assert op.evaluate(90, 90) is False
        assert op.symbol == ">"

    def test_less_than_is_strict(self):
        op = ThresholdOperator.LESS_THAN
        assert op.evaluate(9, 10) is True
        assert op.evaluate(10, 10) is False
        assert op.symbol == "<"


class TestThresholdConfig:
    """ThresholdConfig 测试"""

    def test_default_delay(self):
        config = ThresholdConfig(Priority.P2, 5, ThresholdOperator.GREATER_THAN, "elevated")
        assert config.resolve_delay_seconds == 0

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            ThresholdConfig(Priority.P2, 5, ThresholdOperator.GREATER_THAN, "x", -1)

    def test_to_dict(self):
        config = ThresholdConfig(Priority.P1, 90, ThresholdOperator.GREATER_THAN, "critical", 5)
        assert config.to_dict() == {
            "priority": "P1",
            "threshold": 90,
            "operator": "greater_than",
            "description": "critical",
            "resolve_delay_seconds": 5,
        }


class TestBuiltinMetrics:
    """内置指标"""

    def test_builtin_names(self):
        names = [m.name for m in BUILTIN_METRICS]
        assert names == ["error_rate", "p95_response_time", "cpu_usage", "memory_usage"]

    def test_every_metric_has_two_thresholds_with_delay(self):
        for metric in BUILTIN_METRICS:
            assert len(metric.thresholds) == 2
            assert all(t.resolve_delay_seconds == 5 for t in metric.thresholds)

    def test_cpu_thresholds(self):
        cpu = get_metric_config("cpu_usage")
        assert cpu is not None
        assert [(t.priority, t.threshold) for t in cpu.thresholds] == [
            (Priority.P1, 90),
            (Priority.P3, 75),
        ]

    def test_unknown_metric(self):
        assert get_metric_config("nonexistent") is None

    def test_list_returns_copy(self):
        configs = list_metric_configs()
        configs.clear()
        assert len(list_metric_configs()) == 4


class TestFormatting:
    """格式化工具"""

    @pytest.mark.parametrize("name,expected", [
        ("cpu_usage", "cpu usage"),
        ("cpuUsage", "cpu usage"),
        ("p95_response_time", "p95 response time"),
        ("errorRate", "error rate"),
    ])
    def test_format_metric_name(self, name, expected):
        assert format_metric_name(name) == expected

    def test_format_metric_value(self):
        assert format_metric_value("cpu_usage", 92.345) == "92.3%"
        assert format_metric_value("errorRate", 5) == "5.0%"
        assert format_metric_value("p95_response_time", 1234.6) == "1235ms"
        assert format_metric_value("queue_depth", 3) == "3.0"

    def test_format_duration(self):
        assert format_duration(timedelta(seconds=42)) == "42s"
        assert format_duration(timedelta(minutes=2, seconds=5)) == "2m 5s"
        assert format_duration(timedelta(seconds=-3)) == "0s"
