"""
incident.io 告警渠道

通过 HTTP alert source 接口推送告警事件:
POST {api_base_url}/v2/alert_events/http/{alert_source_config_id}
"""
from typing import Optional, Dict, Any, Tuple

import httpx

from ..alert import Alert
from ..threshold import Threshold

from .base import (
    DispatchSink,
    DispatchStatus,
    DEFAULT_TIMEOUT,
    DEFAULT_MAX_PAYLOAD_BYTES,
    DEFAULT_USER_AGENT,
    build_title,
    build_description,
)

DEFAULT_API_BASE_URL = "https://api.incident.io"
DEFAULT_SERVICE_NAME = "demo-service"


class IncidentIoSink(DispatchSink):
    """
    incident.io 渠道

    去重键按阈值 ID 生成，同一阈值的重复 firing 在接收端合并。
    """

    name = "incident_io"

    def __init__(
        self,
        token: str,
        alert_source_config_id: str,
        enabled: bool = True,
        api_base_url: str = DEFAULT_API_BASE_URL,
        metadata: Optional[Dict[str, Any]] = None,
        source_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(
            timeout=timeout,
            max_payload_bytes=max_payload_bytes,
            user_agent=user_agent,
            client=client,
        )
        self.token = token
        self.alert_source_config_id = alert_source_config_id
        self._enabled = enabled
        self.api_base_url = api_base_url.rstrip("/")
        self.metadata = {k: v for k, v in (metadata or {}).items() if v}
        self.source_url = source_url

    @property
    def enabled(self) -> bool:
        return self._enabled and bool(self.token) and bool(self.alert_source_config_id)

    @property
    def service_name(self) -> str:
        return self.metadata.get("service") or DEFAULT_SERVICE_NAME

    @property
    def endpoint(self) -> str:
        return f"{self.api_base_url}/v2/alert_events/http/{self.alert_source_config_id}"

    @staticmethod
    def deduplication_key(threshold: Threshold) -> str:
        return threshold.id

    @staticmethod
    def group_key(metric_name: str) -> str:
        return f"metric-{metric_name}"

    def build_request(
        self,
        alert: Alert,
        threshold: Threshold,
        status: DispatchStatus,
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        group_key = self.group_key(alert.metric_name)
        service_name = self.service_name

        payload: Dict[str, Any] = {
            "deduplication_key": self.deduplication_key(threshold),
            "group_key": group_key,
            "title": build_title(alert, service_name, status),
            "description": build_description(alert, threshold, service_name, status),
            "status": status.value,
            "metadata": {
                **self.metadata,
                "priority": alert.priority.value.lower(),
                "group_key": group_key,
                "metric_name": alert.metric_name,
                "current_value": alert.trigger_value,
                "threshold_value": threshold.value,
                "threshold_operator": threshold.operator.value,
                "threshold_id": alert.threshold_id,
                "alert_id": alert.id,
                "service": service_name,
            },
        }
        if self.source_url:
            payload["source_url"] = self.source_url

        headers = {"Authorization": f"Bearer {self.token}"}
        return self.endpoint, headers, payload

    def extract_external_id(
        self,
        payload: Dict[str, Any],
        response_data: Dict[str, Any],
    ) -> Optional[str]:
        return response_data.get("deduplication_key")
