"""
告警 API 路由
"""
from fastapi import APIRouter, Query, Depends
from typing import Optional, Dict, Any

from api.dependencies import get_alert_runtime, get_alert_manager
from api.schemas.alert import (
    AlertInfo,
    ThresholdInfo,
    ThresholdListResponse,
    ActiveAlertResponse,
    AlertStatsResponse,
    ProviderUpdateRequest,
)
from api.schemas.response import APIResponse
from alerts.manager import AlertManager
from core.runtime import AlertRuntime

router = APIRouter()


@router.get("/thresholds", response_model=APIResponse[ThresholdListResponse])
async def list_thresholds(
    metric: Optional[str] = Query(None, description="按指标过滤"),
    manager: AlertManager = Depends(get_alert_manager),
):
    """
    获取阈值列表

    包含每个阈值的当前状态、活跃告警和剩余防抖时间。
    """
    if metric:
        snapshots = manager.get_thresholds_for_metric(metric)
    else:
        snapshots = manager.get_all_thresholds()

    thresholds = [ThresholdInfo.from_snapshot(s) for s in snapshots]
    return APIResponse(
        success=True,
        data=ThresholdListResponse(thresholds=thresholds, total=len(thresholds)),
    )


@router.get("/active", response_model=APIResponse[ActiveAlertResponse])
async def get_active_alerts(
    metric: Optional[str] = Query(None, description="按指标过滤"),
    manager: AlertManager = Depends(get_alert_manager),
):
    """获取当前活跃（未解决）的告警"""
    if metric:
        alerts = manager.get_active_alerts_for_metric(metric)
    else:
        alerts = manager.get_all_active_alerts()

    return APIResponse(
        success=True,
        data=ActiveAlertResponse(
            alerts=[AlertInfo.from_alert(a) for a in alerts],
            total=len(alerts),
        ),
    )


@router.get("/stats", response_model=APIResponse[AlertStatsResponse])
async def get_alert_stats(manager: AlertManager = Depends(get_alert_manager)):
    """告警管理器统计"""
    return APIResponse(success=True, data=AlertStatsResponse(**manager.get_stats()))


@router.get("/providers", response_model=APIResponse[Dict[str, Any]])
async def get_providers(runtime: AlertRuntime = Depends(get_alert_runtime)):
    """获取告警渠道状态（不返回密钥）"""
    return APIResponse(success=True, data=runtime.provider_status())


@router.put("/providers", response_model=APIResponse[Dict[str, Any]])
async def update_providers(
    request: ProviderUpdateRequest,
    runtime: AlertRuntime = Depends(get_alert_runtime),
):
    """
    更新告警渠道配置

    会重建告警管理器：现有阈值状态与活跃告警被丢弃。
    """
    incident_io = None
    if request.incident_io is not None:
        incident_io = runtime.settings.incident_io.model_copy(
            update=request.incident_io.model_dump(exclude_unset=True, exclude_none=True)
        )

    firehydrant = None
    if request.firehydrant is not None:
        firehydrant = runtime.settings.firehydrant.model_copy(
            update=request.firehydrant.model_dump(exclude_unset=True, exclude_none=True)
        )

    runtime.reconfigure(incident_io=incident_io, firehydrant=firehydrant)
    return APIResponse(
        success=True,
        message="告警渠道已更新",
        data=runtime.provider_status(),
    )
