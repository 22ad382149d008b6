# API Pydantic 数据模型
from .response import APIResponse
from .alert import (
    AlertInfo,
    ThresholdInfo,
    ThresholdListResponse,
    ActiveAlertResponse,
    AlertStatsResponse,
    ProviderUpdateRequest,
)
from .metric import MetricInfo, MetricListResponse, AdjustmentRequest, EvaluateRequest

__all__ = [
    "APIResponse",
    "AlertInfo",
    "ThresholdInfo",
    "ThresholdListResponse",
    "ActiveAlertResponse",
    "AlertStatsResponse",
    "ProviderUpdateRequest",
    "MetricInfo",
    "MetricListResponse",
    "AdjustmentRequest",
    "EvaluateRequest",
]
