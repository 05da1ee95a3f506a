"""
Request ID 中间件
生成或透传追踪ID，并通过 contextvars 绑定到 structlog
"""
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

import structlog


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
client_ip_var: ContextVar[Optional[str]] = ContextVar("client_ip", default=None)

# 透传的请求ID最大长度，超出则重新生成
_MAX_REQUEST_ID_LENGTH = 128


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Request ID 追踪中间件

    上游传入的 X-Request-ID 会被沿用；响应头总是回写本次使用的ID，
    异常处理器从 request.state 读取同一个值写入错误信封。
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        incoming = (request.headers.get(self.HEADER_NAME) or "").strip()
        request_id = incoming if 0 < len(incoming) <= _MAX_REQUEST_ID_LENGTH else str(uuid.uuid4())
        client_ip = client_ip_of(request)

        request.state.request_id = request_id
        request.state.client_ip = client_ip
        request_id_var.set(request_id)
        client_ip_var.set(client_ip)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = request_id
        return response


def client_ip_of(request: Request) -> str:
    """X-Forwarded-For 第一个地址 > X-Real-IP > 连接地址"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def get_request_id() -> Optional[str]:
    """当前请求的request_id（不在请求上下文中时为None）"""
    return request_id_var.get()


def get_client_ip() -> Optional[str]:
    """当前请求的客户端IP（不在请求上下文中时为None）"""
    return client_ip_var.get()
