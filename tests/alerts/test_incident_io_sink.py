"""
incident.io 渠道测试
"""
import json

import httpx
import pytest

from alerts.dispatch import IncidentIoSink, DispatchStatus
from alerts.rules import Priority, ThresholdOperator
from alerts.threshold import Threshold


@pytest.fixture
def threshold(clock):
    threshold = Threshold(
        metric_name="cpu_usage",
        priority=Priority.P1,
        value=90,
        operator=ThresholdOperator.GREATER_THAN,
        description="CPU usage critical",
        resolve_delay_seconds=5,
        clock=clock,
    )
    threshold.transition_to_firing(95.5)
    return threshold


def make_sink(handler, **kwargs) -> IncidentIoSink:
    params = dict(
        token="secret-token",
        alert_source_config_id="01ABC",
        metadata={"service": "checkout", "team": "payments"},
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    params.update(kwargs)
    return IncidentIoSink(**params)


class TestIncidentIoSink:
    """IncidentIoSink 测试"""

    def test_enabled_requires_credentials(self):
        assert IncidentIoSink(token="t", alert_source_config_id="c").enabled is True
        assert IncidentIoSink(token="", alert_source_config_id="c").enabled is False
        assert IncidentIoSink(token="t", alert_source_config_id="").enabled is False
        assert IncidentIoSink(token="t", alert_source_config_id="c", enabled=False).enabled is False

    def test_endpoint(self):
        sink = IncidentIoSink(token="t", alert_source_config_id="01ABC", api_base_url="https://api.example.com/")
        assert sink.endpoint == "https://api.example.com/v2/alert_events/http/01ABC"

    def test_build_request(self, threshold):
        sink = make_sink(lambda r: httpx.Response(200), source_url="https://dash.example.com")
        url, headers, payload = sink.build_request(
            threshold.active_alert, threshold, DispatchStatus.FIRING
        )

        assert url.endswith("/v2/alert_events/http/01ABC")
        assert headers == {"Authorization": "Bearer secret-token"}
        assert payload["deduplication_key"] == "cpu_usage-P1-90"
        assert payload["group_key"] == "metric-cpu_usage"
        assert payload["status"] == "firing"
        assert payload["title"] == "[P1] checkout: cpu usage critical"
        assert payload["source_url"] == "https://dash.example.com"

        metadata = payload["metadata"]
        assert metadata["priority"] == "p1"
        assert metadata["team"] == "payments"
        assert metadata["service"] == "checkout"
        assert metadata["current_value"] == 95.5
        assert metadata["alert_id"] == threshold.active_alert.id

    def test_dedup_key_stable_across_episodes(self, threshold, clock):
        """同一阈值的不同告警使用相同去重键"""
        sink = make_sink(lambda r: httpx.Response(200))
        _, _, first = sink.build_request(threshold.active_alert, threshold, DispatchStatus.FIRING)

        threshold.transition_to_pending_resolve()
        clock.advance(1)
        threshold.transition_to_firing(97)
        _, _, second = sink.build_request(threshold.active_alert, threshold, DispatchStatus.FIRING)

        assert first["deduplication_key"] == second["deduplication_key"]
        assert first["metadata"]["alert_id"] != second["metadata"]["alert_id"]

    @pytest.mark.asyncio
    async def test_send_records_external_id(self, threshold):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(202, json={"status": "success", "deduplication_key": "cpu_usage-P1-90"})

        alert = threshold.active_alert
        outcome = await make_sink(handler).send(alert, threshold, DispatchStatus.FIRING)

        assert outcome.success is True
        assert outcome.sink == "incident_io"
        assert alert.external_id == "cpu_usage-P1-90"
        assert requests[0].method == "POST"
        assert requests[0].headers["Authorization"] == "Bearer secret-token"
        body = json.loads(requests[0].content)
        assert body["status"] == "firing"

    @pytest.mark.asyncio
    async def test_resolved_payload(self, threshold, clock):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={})

        alert = threshold.active_alert
        clock.advance(42)
        alert.resolve(clock.now)

        outcome = await make_sink(handler).send(alert, threshold, DispatchStatus.RESOLVED)

        assert outcome.success is True
        assert bodies[0]["status"] == "resolved"
        assert bodies[0]["title"] == "[P1] checkout: cpu usage resolved"
        assert "42s" in bodies[0]["description"]

    @pytest.mark.asyncio
    async def test_unauthorized(self, threshold):
        outcome = await make_sink(lambda r: httpx.Response(401, text="bad token")).send(
            threshold.active_alert, threshold, DispatchStatus.FIRING
        )

        assert outcome.success is False
        assert outcome.status_code == 401
        assert threshold.active_alert.external_id is None
