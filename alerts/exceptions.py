"""
告警引擎异常类型

三类错误:
- InvalidStateTransition: 阈值状态机非法调用（程序缺陷，不可重试）
- DispatchFailure: 某个外部渠道投递失败（本地记录，不向上抛出）
- StaleResolveFailure: 自动解决流程中投递失败（强制回到 healthy）
"""
from typing import Optional, Dict, Any


class AlertingError(Exception):
    """
    告警引擎基础异常类

    所有告警相关异常都继承自此类。
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, code={self.code!r})"


class InvalidStateTransition(AlertingError):
    """
    阈值状态机非法转换

    Attributes:
        threshold_id: 阈值 ID
        from_state: 当前状态
        to_state: 目标状态
    """

    def __init__(self, threshold_id: str, from_state: str, to_state: str):
        self.threshold_id = threshold_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"阈值 {threshold_id} 无法从 {from_state} 转换到 {to_state}",
            code="INVALID_STATE_TRANSITION",
            details={
                "threshold_id": threshold_id,
                "from_state": from_state,
                "to_state": to_state,
            },
        )


class DispatchFailure(AlertingError):
    """
    渠道投递失败

    Attributes:
        sink: 渠道名称
        alert_id: 告警 ID
        status: 投递状态 (firing / resolved)
        reason: 失败原因
        status_code: HTTP 状态码（如果有）
    """

    def __init__(
        self,
        sink: str,
        alert_id: str,
        status: str,
        reason: str,
        status_code: Optional[int] = None,
    ):
        self.sink = sink
        self.alert_id = alert_id
        self.status = status
        self.reason = reason
        self.status_code = status_code
        super().__init__(
            f"{sink} 投递 {status} 失败: {reason}",
            code="DISPATCH_FAILURE",
            details={
                "sink": sink,
                "alert_id": alert_id,
                "status": status,
                "status_code": status_code,
            },
        )


class StaleResolveFailure(AlertingError):
    """待解决阈值在解决投递时失败，阈值已被强制重置为 healthy"""

    def __init__(
        self,
        threshold_id: str,
        alert_id: Optional[str],
        cause: BaseException,
    ):
        self.threshold_id = threshold_id
        self.alert_id = alert_id
        self.cause = cause
        super().__init__(
            f"阈值 {threshold_id} 解决失败: {cause}",
            code="STALE_RESOLVE_FAILURE",
            details={
                "threshold_id": threshold_id,
                "alert_id": alert_id,
                "error_type": type(cause).__name__,
            },
        )
