"""
告警投递模块

提供 incident.io / FireHydrant 渠道及多渠道并发投递
"""
from .base import DispatchSink, DispatchStatus, DispatchOutcome
from .dispatcher import MultiSinkDispatcher
from .firehydrant import FireHydrantSink
from .incident_io import IncidentIoSink

__all__ = [
    "DispatchSink",
    "DispatchStatus",
    "DispatchOutcome",
    "MultiSinkDispatcher",
    "FireHydrantSink",
    "IncidentIoSink",
]
