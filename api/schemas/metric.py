"""
指标相关数据模型
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


class MetricInfo(BaseModel):
    """指标信息"""
    name: str = Field(..., description="指标名称")
    display_name: str = Field(..., description="显示名称")
    unit: str = Field(..., description="单位")
    description: Optional[str] = Field(None, description="描述")
    base_value: float = Field(..., description="基准值")
    variance: float = Field(..., description="波动范围")
    adjustment: float = Field(0, description="当前手动调整量")
    current: Optional[float] = Field(None, description="最新值")
    formatted: Optional[str] = Field(None, description="格式化后的最新值")
    alerting: bool = Field(False, description="是否有活跃告警")
    stats: Dict[str, Any] = Field(default_factory=dict, description="滚动统计")


class MetricListResponse(BaseModel):
    """指标列表响应"""
    metrics: List[MetricInfo] = Field(..., description="指标列表")
    total: int = Field(..., description="指标总数")


class AdjustmentRequest(BaseModel):
    """
    调整请求

    delta 为累加量；reset 为 true 时先清零
    """
    delta: float = Field(0, description="调整增量")
    reset: bool = Field(False, description="是否清零")


class EvaluateRequest(BaseModel):
    """手动评估一次指标值"""
    value: float = Field(..., ge=0, description="指标值")
