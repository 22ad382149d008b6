"""
指标 API 路由
"""
from fastapi import APIRouter, Path, Depends

from api.dependencies import get_alert_runtime
from api.schemas.alert import ThresholdListResponse, ThresholdInfo
from api.schemas.metric import MetricInfo, MetricListResponse, AdjustmentRequest, EvaluateRequest
from api.schemas.response import APIResponse
from alerts.rules import format_metric_value
from core.runtime import AlertRuntime

router = APIRouter()


def _metric_info(runtime: AlertRuntime, metric_name: str) -> MetricInfo:
    simulator = runtime.simulator
    config = simulator.get_config(metric_name)
    state = simulator.get_metric_state(metric_name)
    current = state["stats"]["current"]

    return MetricInfo(
        name=config.name,
        display_name=config.display_name,
        unit=config.unit,
        description=config.description,
        base_value=config.base_value,
        variance=config.variance,
        adjustment=state["adjustment"],
        current=current,
        formatted=format_metric_value(metric_name, current) if current is not None else None,
        alerting=runtime.get_manager().is_metric_alerting(metric_name),
        stats=state["stats"],
    )


@router.get("", response_model=APIResponse[MetricListResponse])
async def list_metrics(runtime: AlertRuntime = Depends(get_alert_runtime)):
    """获取所有模拟指标的当前值与统计"""
    metrics = [_metric_info(runtime, name) for name in runtime.simulator.metric_names]
    return APIResponse(
        success=True,
        data=MetricListResponse(metrics=metrics, total=len(metrics)),
    )


@router.get("/{metric_name}", response_model=APIResponse[MetricInfo])
async def get_metric(
    metric_name: str = Path(..., description="指标名称"),
    runtime: AlertRuntime = Depends(get_alert_runtime),
):
    """获取单个指标"""
    return APIResponse(success=True, data=_metric_info(runtime, metric_name))


@router.put("/{metric_name}/adjustment", response_model=APIResponse[MetricInfo])
async def adjust_metric(
    request: AdjustmentRequest,
    metric_name: str = Path(..., description="指标名称"),
    runtime: AlertRuntime = Depends(get_alert_runtime),
):
    """
    调整指标

    调整量叠加到后续生成的每个值上，用于手动制造或消除告警。
    """
    if request.reset:
        runtime.simulator.reset_adjustment(metric_name)
    if request.delta:
        runtime.simulator.adjust(metric_name, request.delta)

    return APIResponse(success=True, data=_metric_info(runtime, metric_name))


@router.post("/{metric_name}/evaluate", response_model=APIResponse[ThresholdListResponse])
async def evaluate_metric(
    request: EvaluateRequest,
    metric_name: str = Path(..., description="指标名称"),
    runtime: AlertRuntime = Depends(get_alert_runtime),
):
    """记录一个指标值并立即评估，返回该指标的阈值状态"""
    runtime.simulator.record(metric_name, request.value)

    manager = runtime.get_manager()
    await manager.evaluate_metric(metric_name, request.value)

    thresholds = [ThresholdInfo.from_snapshot(s) for s in manager.get_thresholds_for_metric(metric_name)]
    return APIResponse(
        success=True,
        data=ThresholdListResponse(thresholds=thresholds, total=len(thresholds)),
    )
