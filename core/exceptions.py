"""
自定义异常映射与全局异常处理器
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.responses import JSONResponse
import traceback
import uuid
from starlette import status as http_status

from .response import error_response
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException


# 业务码 → HTTP 状态码（未列出的默认 400）
_CODE_TO_HTTP_STATUS: dict[int, int] = {
    BusinessCode.PARAM_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.PARAM_MISSING: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.PARAM_TYPE_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.PARAM_VALIDATION_ERROR: http_status.HTTP_400_BAD_REQUEST,

    BusinessCode.BUSINESS_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.BOOKING_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,

    BusinessCode.SYSTEM_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.NETWORK_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.SERVICE_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,
    BusinessCode.METHOD_NOT_ALLOWED: http_status.HTTP_405_METHOD_NOT_ALLOWED,

    PaymentCode.UNSUPPORTED_CURRENCY: http_status.HTTP_400_BAD_REQUEST,
    PaymentCode.INVALID_AMOUNT: http_status.HTTP_400_BAD_REQUEST,
    PaymentCode.PROVIDER_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    PaymentCode.PROVIDER_RECOVERABLE: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    PaymentCode.RECEIPT_NOT_ELIGIBLE: http_status.HTTP_400_BAD_REQUEST,
    PaymentCode.RECEIPT_DELIVERY_FAILED: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def business_code_to_http_status(code: int) -> int:
    """根据业务码映射HTTP状态码（默认400）。"""
    return _CODE_TO_HTTP_STATUS.get(int(code), http_status.HTTP_400_BAD_REQUEST)


def _request_id(request: Request) -> str:
    return getattr(getattr(request, "state", object()), "request_id", None) or str(uuid.uuid4())


def _clean_validation_message(msg: str) -> str:
    # pydantic 会为自定义 ValueError 加上 "Value error, " 前缀
    prefix = "Value error, "
    return msg[len(prefix):] if msg.startswith(prefix) else msg


def _allowed_methods(request: Request) -> list[str]:
    # 同一路径可能拆分为多个路由（GET / POST 各一），按路径正则汇总所有路由的方法
    path = request.url.path
    methods: set[str] = set()
    for route in request.app.router.routes:
        route_methods = getattr(route, "methods", None)
        regex = getattr(route, "path_regex", None)
        if route_methods and regex is not None and regex.match(path):
            methods.update(route_methods)
    return sorted(methods)


def register_exception_handlers(app: FastAPI):
    """
    注册全局异常处理器

    Args:
        app: FastAPI应用实例
    """

    logger = get_logger(__name__)

    @app.exception_handler(BusinessException)
    async def business_exception_handler(request: Request, exc: BusinessException):
        """处理业务异常"""
        request_id = _request_id(request)
        status_code = business_code_to_http_status(exc.code)
        log = logger.error if status_code >= 500 else logger.warning
        log(
            "business_exception",
            request_id=request_id,
            code=int(exc.code),
            error_type=exc.error_type,
            error=exc.message,
        )
        response = error_response(
            code=exc.code,
            message=exc.message,
            error_type=exc.error_type,
            details=exc.details,
            field=exc.field,
            request_id=request_id,
        )
        return JSONResponse(status_code=status_code, content=response.model_dump(mode='json'))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """处理参数验证异常（在任何外部调用之前返回 400）"""
        request_id = _request_id(request)
        errors = [
            {
                "loc": [str(part) for part in err.get("loc", [])],
                "msg": _clean_validation_message(str(err.get("msg", ""))),
                "type": err.get("type"),
            }
            for err in exc.errors()
        ]
        first_error = errors[0] if errors else {"loc": [], "msg": "unknown"}
        field = ".".join(first_error["loc"][1:])

        response = error_response(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=first_error["msg"] or "Validation failed",
            error_type="ValidationError",
            details={"errors": errors},
            field=field or None,
            request_id=request_id,
        )
        return JSONResponse(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            content=response.model_dump(mode='json')
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """处理HTTP异常（含 405，返回允许的方法列表）"""
        request_id = _request_id(request)

        code_mapping = {
            404: BusinessCode.NOT_FOUND,
            405: BusinessCode.METHOD_NOT_ALLOWED,
            500: BusinessCode.SYSTEM_ERROR,
            503: BusinessCode.SERVICE_UNAVAILABLE,
        }
        code = code_mapping.get(exc.status_code, BusinessCode.BUSINESS_ERROR)
        headers = dict(getattr(exc, "headers", None) or {})
        details: dict = {"status_code": exc.status_code}
        if exc.status_code == http_status.HTTP_405_METHOD_NOT_ALLOWED:
            allowed = _allowed_methods(request) or [
                m.strip() for m in headers.get("Allow", "").split(",") if m.strip()
            ]
            headers["Allow"] = ", ".join(allowed)
            details["method"] = request.method
            details["allowed_methods"] = allowed

        response = error_response(
            code=code,
            message=str(exc.detail),
            error_type="HTTPError",
            details=details,
            request_id=request_id,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=response.model_dump(mode='json'),
            headers=headers or None,
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """处理所有未捕获的异常"""
        request_id = _request_id(request)

        # 在开发环境可以返回详细错误信息
        details = None
        if app.debug:
            details = {
                "exception": str(exc),
                "traceback": traceback.format_exc()
            }

        response = error_response(
            code=BusinessCode.SYSTEM_ERROR,
            message="Internal server error",
            error_type="SystemError",
            details=details,
            request_id=request_id,
        )

        logger.error(
            "unhandled_exception",
            request_id=request_id,
            error=str(exc),
            exc_info=True,
        )

        return JSONResponse(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=response.model_dump(mode='json')
        )
