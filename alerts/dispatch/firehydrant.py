"""
FireHydrant 告警渠道

通过 FireHydrant 事件 Webhook 推送告警（OPEN / RESOLVED）。
"""
from typing import Optional, Dict, Any, Tuple, List

import httpx

from ..alert import Alert
from ..rules import Priority
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

DEFAULT_SERVICE_NAME = "demo-service"
DEFAULT_ENVIRONMENT = "development"

# 优先级 -> FireHydrant 事件级别
LEVEL_MAP: Dict[Priority, str] = {
    Priority.P0: "FATAL",
    Priority.P1: "FATAL",
    Priority.P2: "ERROR",
    Priority.P3: "WARN",
    Priority.P4: "INFO",
}

_RESERVED_METADATA_KEYS = {"service", "environment", "team"}


class FireHydrantSink(DispatchSink):
    """FireHydrant 事件 Webhook 渠道"""

    name = "firehydrant"

    def __init__(
        self,
        webhook_url: str,
        enabled: bool = True,
        metadata: Optional[Dict[str, Any]] = None,
        dashboard_url: Optional[str] = None,
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
        self.webhook_url = webhook_url
        self._enabled = enabled
        self.metadata = {k: v for k, v in (metadata or {}).items() if v}
        self.dashboard_url = dashboard_url

    @property
    def enabled(self) -> bool:
        return self._enabled and bool(self.webhook_url)

    @staticmethod
    def idempotency_key(threshold: Threshold) -> str:
        return f"alert-playground-{threshold.id}"

    @staticmethod
    def map_priority_to_level(priority: Priority) -> str:
        return LEVEL_MAP.get(priority, "WARN")

    def build_tags(self, alert: Alert) -> List[str]:
        service_name = self.metadata.get("service") or DEFAULT_SERVICE_NAME
        environment = self.metadata.get("environment") or DEFAULT_ENVIRONMENT

        tags = [
            f"service:{service_name}",
            f"environment:{environment}",
            f"metric:{alert.metric_name}",
            f"priority:{alert.priority.value.lower()}",
        ]
        if self.metadata.get("team"):
            tags.append(f"team:{self.metadata['team']}")

        for key, value in self.metadata.items():
            if key not in _RESERVED_METADATA_KEYS:
                tags.append(f"{key}:{value}")
        return tags

    def build_request(
        self,
        alert: Alert,
        threshold: Threshold,
        status: DispatchStatus,
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        service_name = self.metadata.get("service") or DEFAULT_SERVICE_NAME

        payload: Dict[str, Any] = {
            "summary": build_title(alert, service_name, status),
            "body": build_description(alert, threshold, service_name, status),
            "level": self.map_priority_to_level(alert.priority),
            "status": "OPEN" if status == DispatchStatus.FIRING else "RESOLVED",
            "idempotency_key": self.idempotency_key(threshold),
            "annotations": {
                "metric_name": alert.metric_name,
                "threshold_value": str(threshold.value),
                "threshold_operator": threshold.operator.value,
                "alert_id": alert.id,
                "threshold_id": alert.threshold_id,
            },
            "tags": self.build_tags(alert),
        }
        if self.dashboard_url:
            payload["links"] = [
                {"href": self.dashboard_url, "text": "Alert Playground Dashboard"},
            ]

        return self.webhook_url, {}, payload

    def extract_external_id(
        self,
        payload: Dict[str, Any],
        response_data: Dict[str, Any],
    ) -> Optional[str]:
        if response_data.get("success"):
            return payload["idempotency_key"]
        return None
