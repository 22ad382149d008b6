"""
告警相关数据模型
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from alerts.alert import Alert
from alerts.threshold import ThresholdSnapshot


class AlertInfo(BaseModel):
    """告警信息"""
    id: str = Field(..., description="告警 ID")
    threshold_id: str = Field(..., description="阈值 ID")
    metric_name: str = Field(..., description="指标名称")
    priority: str = Field(..., description="优先级")
    trigger_value: float = Field(..., description="触发值")
    triggered_at: datetime = Field(..., description="触发时间")
    resolved_at: Optional[datetime] = Field(None, description="解决时间")
    external_id: Optional[str] = Field(None, description="外部关联 ID")

    @classmethod
    def from_alert(cls, alert: Alert) -> "AlertInfo":
        return cls(
            id=alert.id,
            threshold_id=alert.threshold_id,
            metric_name=alert.metric_name,
            priority=alert.priority.value,
            trigger_value=alert.trigger_value,
            triggered_at=alert.triggered_at,
            resolved_at=alert.resolved_at,
            external_id=alert.external_id,
        )


class ThresholdInfo(BaseModel):
    """阈值信息"""
    id: str = Field(..., description="阈值 ID")
    metric_name: str = Field(..., description="指标名称")
    priority: str = Field(..., description="优先级")
    value: float = Field(..., description="阈值")
    operator: str = Field(..., description="比较运算符")
    description: str = Field(..., description="描述")
    resolve_delay_seconds: float = Field(..., description="解决防抖时长（秒）")
    state: str = Field(..., description="当前状态")
    active_alert: Optional[AlertInfo] = Field(None, description="活跃告警")
    pending_resolve_at: Optional[datetime] = Field(None, description="进入待解决的时间")
    remaining_resolve_seconds: float = Field(0, description="距离解决剩余秒数")

    @classmethod
    def from_snapshot(cls, snapshot: ThresholdSnapshot) -> "ThresholdInfo":
        return cls(
            id=snapshot.id,
            metric_name=snapshot.metric_name,
            priority=snapshot.priority.value,
            value=snapshot.value,
            operator=snapshot.operator.value,
            description=snapshot.description,
            resolve_delay_seconds=snapshot.resolve_delay_seconds,
            state=snapshot.state.value,
            active_alert=AlertInfo.from_alert(snapshot.active_alert) if snapshot.active_alert else None,
            pending_resolve_at=snapshot.pending_resolve_at,
            remaining_resolve_seconds=round(snapshot.remaining_resolve_seconds, 3),
        )


class ThresholdListResponse(BaseModel):
    """阈值列表响应"""
    thresholds: List[ThresholdInfo] = Field(..., description="阈值列表")
    total: int = Field(..., description="阈值总数")


class ActiveAlertResponse(BaseModel):
    """活跃告警响应"""
    alerts: List[AlertInfo] = Field(..., description="活跃告警列表")
    total: int = Field(..., description="活跃告警数量")


class AlertStatsResponse(BaseModel):
    """告警统计"""
    total_thresholds: int
    active_alerts: int
    thresholds_by_state: Dict[str, int]
    dispatch_failures: int


class IncidentIoProviderUpdate(BaseModel):
    """incident.io 渠道更新"""
    enabled: bool = Field(..., description="是否启用")
    token: Optional[str] = Field(None, description="API Token")
    alert_source_config_id: Optional[str] = Field(None, description="告警源配置 ID")
    team: Optional[str] = Field(None, description="负责团队")
    service: Optional[str] = Field(None, description="服务名")


class FireHydrantProviderUpdate(BaseModel):
    """FireHydrant 渠道更新"""
    enabled: bool = Field(..., description="是否启用")
    webhook_url: Optional[str] = Field(None, description="Webhook 地址")
    team: Optional[str] = Field(None, description="负责团队")
    service: Optional[str] = Field(None, description="服务名")
    environment: Optional[str] = Field(None, description="环境标签")


class ProviderUpdateRequest(BaseModel):
    """渠道配置更新请求（未提供的渠道或字段保持不变）"""
    incident_io: Optional[IncidentIoProviderUpdate] = None
    firehydrant: Optional[FireHydrantProviderUpdate] = None
