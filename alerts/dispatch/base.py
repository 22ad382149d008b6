"""
告警投递渠道基类

每个渠道负责自己的请求体构造、去重键和严重级别映射。
渠道内部捕获所有错误，以 DispatchOutcome 返回结果，不向调用方抛出异常。
"""
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, Tuple

import httpx
import structlog

from ..alert import Alert
from ..exceptions import DispatchFailure
from ..rules import format_metric_name, format_metric_value, format_duration
from ..threshold import Threshold

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_PAYLOAD_BYTES = 1000
DEFAULT_USER_AGENT = "AlertPlayground-Dispatch/1.0"


class DispatchStatus(str, Enum):
    """投递状态"""
    FIRING = "firing"
    RESOLVED = "resolved"


@dataclass
class DispatchOutcome:
    """单个渠道的投递结果"""
    sink: str
    status: DispatchStatus
    alert_id: str
    success: bool
    skipped: bool = False
    status_code: Optional[int] = None
    external_id: Optional[str] = None
    error: Optional[DispatchFailure] = None
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sink": self.sink,
            "status": self.status.value,
            "alert_id": self.alert_id,
            "success": self.success,
            "skipped": self.skipped,
            "status_code": self.status_code,
            "external_id": self.external_id,
            "error": str(self.error) if self.error else None,
            "duration_ms": round(self.duration_ms, 2),
        }


class DispatchSink(ABC):
    """
    投递渠道基类

    子类实现:
    - enabled: 是否已启用并完成配置
    - build_request: 构造 (url, headers, payload)
    - extract_external_id: 从响应中提取外部关联 ID
    """

    name: str = "sink"

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout = timeout
        self.max_payload_bytes = max_payload_bytes
        self.user_agent = user_agent
        self._client = client

    @property
    @abstractmethod
    def enabled(self) -> bool:
        ...

    @abstractmethod
    def build_request(
        self,
        alert: Alert,
        threshold: Threshold,
        status: DispatchStatus,
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        ...

    def extract_external_id(
        self,
        payload: Dict[str, Any],
        response_data: Dict[str, Any],
    ) -> Optional[str]:
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(enabled={self.enabled})"

    async def send(
        self,
        alert: Alert,
        threshold: Threshold,
        status: DispatchStatus,
    ) -> DispatchOutcome:
        """
        投递一次告警状态变化

        未启用的渠道直接返回 skipped 成功结果。
        """
        if not self.enabled:
            logger.debug("dispatch_sink_disabled", sink=self.name, alert_id=alert.id)
            return DispatchOutcome(
                sink=self.name,
                status=status,
                alert_id=alert.id,
                success=True,
                skipped=True,
            )

        start_time = time.perf_counter()
        outcome = DispatchOutcome(
            sink=self.name,
            status=status,
            alert_id=alert.id,
            success=False,
        )

        try:
            url, headers, payload = self.build_request(alert, threshold, status)
            body = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
            body_size = len(body.encode("utf-8"))
            if body_size > self.max_payload_bytes:
                raise DispatchFailure(
                    self.name,
                    alert.id,
                    status.value,
                    f"请求体过大 ({body_size} > {self.max_payload_bytes} 字节)",
                )

            response = await self._post(url, body, headers)
            outcome.status_code = response.status_code

            if not response.is_success:
                raise DispatchFailure(
                    self.name,
                    alert.id,
                    status.value,
                    f"HTTP {response.status_code}: {response.text[:200]}",
                    status_code=response.status_code,
                )

            external_id = self.extract_external_id(payload, self._parse_json(response))
            if external_id:
                alert.set_external_id(external_id)
                outcome.external_id = external_id

            outcome.success = True
            logger.info(
                "alert_dispatched",
                sink=self.name,
                alert_id=alert.id,
                metric_name=alert.metric_name,
                priority=alert.priority.value,
                status=status.value,
                status_code=response.status_code,
            )

        except DispatchFailure as e:
            outcome.error = e
        except httpx.TimeoutException as e:
            outcome.error = DispatchFailure(self.name, alert.id, status.value, f"Timeout: {e}")
        except httpx.RequestError as e:
            outcome.error = DispatchFailure(self.name, alert.id, status.value, f"Request error: {e}")
        except Exception as e:
            outcome.error = DispatchFailure(self.name, alert.id, status.value, f"Unexpected error: {e}")
        finally:
            outcome.duration_ms = (time.perf_counter() - start_time) * 1000

        return outcome

    async def _post(self, url: str, body: str, headers: Dict[str, str]) -> httpx.Response:
        request_headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            **headers,
        }
        if self._client is not None:
            return await self._client.post(url, content=body, headers=request_headers)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(url, content=body, headers=request_headers)

    @staticmethod
    def _parse_json(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}


def build_title(alert: Alert, service_name: str, status: DispatchStatus) -> str:
    """[P1] demo-service: cpu usage critical"""
    state_text = "resolved" if status == DispatchStatus.RESOLVED else "critical"
    return f"[{alert.priority.value}] {service_name}: {format_metric_name(alert.metric_name)} {state_text}"


def build_description(
    alert: Alert,
    threshold: Threshold,
    service_name: str,
    status: DispatchStatus,
) -> str:
    """告警正文，firing 时带当前值和阈值，resolved 时带持续时间"""
    metric_text = format_metric_name(alert.metric_name)
    if status == DispatchStatus.FIRING:
        value_text = format_metric_value(alert.metric_name, alert.trigger_value)
        threshold_text = (
            f"{threshold.operator.symbol}"
            f"{format_metric_value(threshold.metric_name, threshold.value)}"
        )
        return (
            f"{metric_text} critical on {service_name}. Current value is {value_text} "
            f"- exceeds {alert.priority.value} threshold of {threshold_text}"
        )
    return (
        f"{metric_text} resolved on {service_name}. "
        f"Alert duration: {format_duration(alert.duration())}"
    )
