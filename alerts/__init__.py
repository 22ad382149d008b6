# 告警模块
from .alert import Alert
from .threshold import Threshold, ThresholdState, ThresholdSnapshot
from .manager import AlertManager, AlertManagerEvent
from .rules import (
    Priority,
    ThresholdOperator,
    ThresholdConfig,
    MetricConfig,
    BUILTIN_METRICS,
    get_metric_config,
    list_metric_configs,
)
from .checker import AlertChecker, MetricSimulator, MetricSeries, MetricNotFoundError
from .exceptions import (
    AlertingError,
    InvalidStateTransition,
    DispatchFailure,
    StaleResolveFailure,
)

__all__ = [
    "Alert",
    "Threshold",
    "ThresholdState",
    "ThresholdSnapshot",
    "AlertManager",
    "AlertManagerEvent",
    "Priority",
    "ThresholdOperator",
    "ThresholdConfig",
    "MetricConfig",
    "BUILTIN_METRICS",
    "get_metric_config",
    "list_metric_configs",
    "AlertChecker",
    "MetricSimulator",
    "MetricSeries",
    "MetricNotFoundError",
    "AlertingError",
    "InvalidStateTransition",
    "DispatchFailure",
    "StaleResolveFailure",
]
