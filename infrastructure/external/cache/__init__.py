"""Redis 连接层对外暴露的接口"""
from .redis_client import (
    init_redis_client,
    get_redis_client,
    shutdown_redis_client,
)


__all__ = [
    "init_redis_client",
    "get_redis_client",
    "shutdown_redis_client",
]
