"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional


class RedisSettings(BaseModel):
    url: Optional[str] = None
    max_connections: int = 10
    namespace: str = "marketplace-payments"


class BookingStoreSettings(BaseModel):
    # memory: single process (dev/tests); redis: shared real-time record store
    backend: Literal["memory", "redis"] = "memory"
    key_prefix: str = "bookings"
    # Subscribe the receipt dispatcher to booking status changes at startup
    listen: bool = True
    reconnect_min_backoff: float = 1.0
    reconnect_max_backoff: float = 30.0


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Marketplace Payments")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")

    # 分组配置：Redis / 预订记录存储
    redis: RedisSettings = Field(default_factory=RedisSettings)
    bookings: BookingStoreSettings = Field(default_factory=BookingStoreSettings)

    # CORS配置
    CORS_ORIGINS: list = Field(default=["*"])

    # 日志/请求体记录配置
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = Field(default=True)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v


settings = Settings()
