"""
配置管理

支持:
1. 环境变量读取
2. .env 文件
3. 类型验证
4. 敏感信息脱敏
"""
from functools import lru_cache
from typing import Optional, List, Dict
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class IncidentIoSettings(BaseSettings):
    """incident.io 告警源配置"""
    model_config = SettingsConfigDict(
        env_prefix="INCIDENT_IO_",
        extra="ignore"
    )

    enabled: bool = Field(default=False, description="是否启用")
    token: str = Field(default="", description="API Token")
    alert_source_config_id: str = Field(default="", description="HTTP 告警源配置 ID")
    api_base_url: str = Field(default="https://api.incident.io", description="API 地址")
    team: Optional[str] = Field(default=None, description="负责团队")
    service: str = Field(default="alert-playground", description="服务名")

    @property
    def configured(self) -> bool:
        return bool(self.token and self.alert_source_config_id)


class FireHydrantSettings(BaseSettings):
    """FireHydrant 事件接收配置"""
    model_config = SettingsConfigDict(
        env_prefix="FIREHYDRANT_",
        extra="ignore"
    )

    enabled: bool = Field(default=False, description="是否启用")
    webhook_url: str = Field(default="", description="事件接收 Webhook 地址")
    team: Optional[str] = Field(default=None, description="负责团队")
    service: str = Field(default="alert-playground", description="服务名")
    environment: str = Field(default="development", description="环境标签")
    metadata: Dict[str, str] = Field(default_factory=dict, description="附加标签（JSON）")

    @property
    def configured(self) -> bool:
        return bool(self.webhook_url)


class DispatchSettings(BaseSettings):
    """告警投递配置"""
    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        extra="ignore"
    )

    timeout_seconds: float = Field(default=30.0, gt=0, le=30, description="单个渠道超时（秒）")
    max_payload_bytes: int = Field(default=1000, ge=100, le=1_000_000, description="请求体上限（字节）")
    user_agent: str = Field(default="AlertPlayground-Dispatch/1.0", description="User-Agent")


class SimulatorSettings(BaseSettings):
    """指标模拟器配置"""
    model_config = SettingsConfigDict(
        env_prefix="SIMULATOR_",
        extra="ignore"
    )

    enabled: bool = Field(default=True, description="启动时运行模拟")
    tick_interval_seconds: float = Field(default=1.0, gt=0, le=60, description="生成间隔（秒）")
    retention_minutes: int = Field(default=15, ge=1, le=1440, description="数据保留时长（分钟）")
    seed: Optional[int] = Field(default=None, description="随机种子")


class LoggingSettings(BaseSettings):
    """日志配置"""
    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        extra="ignore"
    )

    level: str = Field(default="INFO", description="日志级别")
    format: str = Field(default="json", description="日志格式: json, console")
    file_path: Optional[str] = Field(default=None, description="日志文件路径")
    max_size_mb: int = Field(default=100, ge=1, le=1000, description="日志文件最大大小 (MB)")
    backup_count: int = Field(default=7, ge=1, le=30, description="保留日志文件数")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.upper()
        if v not in allowed:
            raise ValueError(f"日志级别必须是 {allowed} 之一")
        return v

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        v = v.lower()
        if v not in {"json", "console"}:
            raise ValueError("日志格式必须是 json 或 console")
        return v


class Settings(BaseSettings):
    """
    主配置类

    层级:
    1. 环境变量 (最高优先级)
    2. .env 文件
    3. 默认值 (最低优先级)

    使用示例:
    >>> settings = Settings()
    >>> print(settings.dispatch.timeout_seconds)
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 应用基础配置
    app_name: str = Field(default="AlertPlayground", description="应用名称")
    app_version: str = Field(default="0.1.0", description="应用版本")
    debug: bool = Field(default=False, description="调试模式")
    environment: str = Field(default="development", description="运行环境: development, staging, production")

    # API 配置
    api_host: str = Field(default="0.0.0.0", description="API 监听地址")
    api_port: int = Field(default=8000, ge=1, le=65535, description="API 监听端口")
    api_prefix: str = Field(default="/api/v1", description="API 路径前缀")
    cors_origins: str = Field(default="*", description="CORS 允许的源，逗号分隔")
    dashboard_url: Optional[str] = Field(default=None, description="告警链接指向的看板地址")

    # 子配置
    incident_io: IncidentIoSettings = Field(default_factory=IncidentIoSettings)
    firehydrant: FireHydrantSettings = Field(default_factory=FireHydrantSettings)
    dispatch: DispatchSettings = Field(default_factory=DispatchSettings)
    simulator: SimulatorSettings = Field(default_factory=SimulatorSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        v = v.lower()
        if v not in allowed:
            raise ValueError(f"环境必须是 {allowed} 之一")
        return v

    @property
    def cors_origin_list(self) -> List[str]:
        """解析 CORS 源列表"""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def display_config(self) -> dict:
        """返回脱敏后的配置（用于日志/调试）"""
        return {
            "app_name": self.app_name,
            "app_version": self.app_version,
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "incident_io_enabled": self.incident_io.enabled,
            "incident_io_token": "***" if self.incident_io.token else None,
            "firehydrant_enabled": self.firehydrant.enabled,
            "firehydrant_webhook_url": "***" if self.firehydrant.webhook_url else None,
            "dispatch_timeout_seconds": self.dispatch.timeout_seconds,
            "simulator_enabled": self.simulator.enabled,
        }


@lru_cache()
def get_settings() -> Settings:
    """获取配置单例（缓存）"""
    return Settings()
