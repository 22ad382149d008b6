"""
指标模拟与检查器测试
"""
import asyncio

import pytest

from alerts.checker import AlertChecker, MetricSimulator, MetricSeries, MetricNotFoundError
from alerts.rules import get_metric_config
from alerts.threshold import ThresholdState


class TestMetricSeries:
    """MetricSeries 测试"""

    def test_retention(self, clock):
        series = MetricSeries("cpu_usage")
        series.add(10, clock.now)
        clock.advance(10 * 60)
        series.add(20, clock.now)
        clock.advance(6 * 60)
        series.add(30, clock.now)

        # 第一个点已超过 15 分钟
        assert len(series) == 2
        assert series.current == 30

    def test_window_stats(self, clock):
        series = MetricSeries("cpu_usage")
        series.add(50, clock.now)
        clock.advance(4 * 60)
        series.add(10, clock.now)
        clock.advance(30)
        series.add(30, clock.now)

        stats = series.stats(clock.now)
        assert stats["current"] == 30
        assert stats["last_1m"] == {"avg": 20, "min": 10, "max": 30}
        assert stats["last_5m"]["max"] == 50
        assert stats["last_15m"]["avg"] == 30

    def test_empty_stats(self, clock):
        stats = MetricSeries("cpu_usage").stats(clock.now)
        assert stats["current"] is None
        assert stats["last_1m"] is None


class TestMetricSimulator:
    """MetricSimulator 测试"""

    def test_values_within_variance(self, clock):
        simulator = MetricSimulator(seed=42, clock=clock)
        config = get_metric_config("cpu_usage")

        for _ in range(50):
            value = simulator.generate("cpu_usage")
            assert config.base_value - config.variance <= value <= config.base_value + config.variance

    def test_seed_is_deterministic(self, clock):
        a = MetricSimulator(seed=7, clock=clock)
        b = MetricSimulator(seed=7, clock=clock)
        assert [a.generate("error_rate") for _ in range(5)] == [b.generate("error_rate") for _ in range(5)]

    def test_adjustment_applied(self, clock):
        simulator = MetricSimulator(seed=1, clock=clock)
        simulator.adjust("cpu_usage", 60)
        simulator.adjust("cpu_usage", 10)

        assert simulator.get_adjustment("cpu_usage") == 70
        # base 45 ± 15 + 70
        assert simulator.generate("cpu_usage") >= 100

        simulator.reset_adjustment("cpu_usage")
        assert simulator.get_adjustment("cpu_usage") == 0

    def test_value_clamped_at_zero(self, clock):
        simulator = MetricSimulator(seed=1, clock=clock)
        simulator.set_adjustment("error_rate", -100)
        assert simulator.generate("error_rate") == 0.0

    def test_tick_records_value(self, clock):
        simulator = MetricSimulator(seed=1, clock=clock)
        value = simulator.tick("memory_usage")

        series = simulator.get_series("memory_usage")
        assert series.current == value
        assert simulator.get_metric_state("memory_usage")["stats"]["current"] == value

    def test_unknown_metric(self, clock):
        simulator = MetricSimulator(clock=clock)
        with pytest.raises(MetricNotFoundError) as exc_info:
            simulator.adjust("nonexistent", 1)
        assert exc_info.value.metric_name == "nonexistent"

    def test_reset_all(self, clock):
        simulator = MetricSimulator(clock=clock)
        simulator.adjust("cpu_usage", 5)
        simulator.adjust("error_rate", 5)
        simulator.reset_adjustment()
        assert all(simulator.get_adjustment(n) == 0 for n in simulator.metric_names)


class TestAlertChecker:
    """AlertChecker 测试"""

    @pytest.mark.asyncio
    async def test_check_once_evaluates_all_metrics(self, manager, dispatcher, clock):
        from alerts.rules import BUILTIN_METRICS

        manager.add_metric_configs(BUILTIN_METRICS)
        simulator = MetricSimulator(seed=3, clock=clock)
        simulator.adjust("cpu_usage", 100)
        checker = AlertChecker(simulator, manager_provider=lambda: manager, clock=clock)

        values = await checker.check_once()

        assert set(values) == set(simulator.metric_names)
        assert manager.get_threshold("cpu_usage-P1-90").state == ThresholdState.FIRING
        assert checker.get_stats()["check_count"] == 1

    @pytest.mark.asyncio
    async def test_paused_checker_still_sweeps(self, manager, dispatcher, clock):
        """暂停时不生成新值，但到期的待解决阈值仍被处理"""
        manager.add_threshold("cpu_usage", "P1", 90, "greater_than", "CPU critical", 5)
        await manager.evaluate_metric("cpu_usage", 95)
        await manager.evaluate_metric("cpu_usage", 50)

        simulator = MetricSimulator(seed=3, clock=clock)
        checker = AlertChecker(simulator, manager_provider=lambda: manager, clock=clock)
        checker.pause()
        clock.advance(5)

        values = await checker.check_once()

        assert values == {}
        assert dispatcher.statuses == ["firing", "resolved"]
        assert len(simulator.get_series("cpu_usage")) == 0

        checker.resume()
        assert checker.paused is False

    @pytest.mark.asyncio
    async def test_uses_current_manager(self, clock, dispatcher):
        """每个 tick 重新获取管理器"""
        from alerts.manager import AlertManager

        managers = [AlertManager(dispatcher=dispatcher, clock=clock)]
        simulator = MetricSimulator(seed=3, clock=clock)
        checker = AlertChecker(simulator, manager_provider=lambda: managers[-1], clock=clock)

        await checker.check_once()
        managers.append(AlertManager(dispatcher=dispatcher, clock=clock))
        managers[-1].add_threshold("cpu_usage", "P4", 0, "greater_than", "always")
        await checker.check_once()

        assert managers[-1].get_threshold("cpu_usage-P4-0").state == ThresholdState.FIRING

    @pytest.mark.asyncio
    async def test_start_stop(self, manager, clock):
        simulator = MetricSimulator(seed=3, clock=clock)
        checker = AlertChecker(simulator, manager_provider=lambda: manager, check_interval=0.01, clock=clock)

        await checker.start()
        assert checker.running is True
        await asyncio.sleep(0.05)
        await checker.stop()

        assert checker.running is False
        assert checker.get_stats()["check_count"] >= 1

    @pytest.mark.asyncio
    async def test_loop_survives_errors(self, clock):
        simulator = MetricSimulator(seed=3, clock=clock)

        def broken_provider():
            raise RuntimeError("no manager")

        checker = AlertChecker(simulator, manager_provider=broken_provider, check_interval=0.01, clock=clock)
        await checker.start()
        await asyncio.sleep(0.05)
        await checker.stop()

        assert checker.get_stats()["error_count"] >= 1
