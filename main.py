"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import RequestIDMiddleware, LoggingMiddleware
from api.routes import payments as payments_routes
from application.services.receipt_service import ReceiptDispatcher
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import get_logger, configure_logging
from core.response import success_response
from core.settings import payment_settings
from infrastructure.bookings import get_booking_store
from infrastructure.external.cache import init_redis_client, shutdown_redis_client
from infrastructure.external.email import get_receipt_mailer
from infrastructure.external.payments import get_payment_gateway
from infrastructure.receipts import build_receipt_strategy


configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理：进程级客户端在此创建一次并挂到 app.state"""
    if settings.redis.url:
        await init_redis_client()
        logger.info("redis_initialized")
    elif settings.bookings.backend == "redis":
        raise RuntimeError("BOOKINGS__BACKEND=redis requires REDIS__URL")

    # 支付网关缺少密钥时直接启动失败
    gateway = get_payment_gateway(payment_settings.default_provider)
    mailer = get_receipt_mailer() if payment_settings.receipts.strategy == "document" else None
    strategy = build_receipt_strategy(gateway, mailer=mailer)
    store = get_booking_store()
    dispatcher = ReceiptDispatcher(
        gateway,
        strategy,
        store,
        default_rate=payment_settings.commission.rate,
    )

    app.state.payment_gateway = gateway
    app.state.receipt_dispatcher = dispatcher

    if settings.bookings.listen:
        await store.watch(dispatcher.on_booking_change)
        logger.info("booking_changes_watched", backend=settings.bookings.backend)

    logger.info(
        "application_started",
        provider=gateway.provider,
        receipt_strategy=strategy.name,
        booking_backend=settings.bookings.backend,
        environment=settings.ENVIRONMENT,
    )
    yield

    # 关闭时的清理工作（逆序）
    await store.aclose()
    if mailer is not None:
        await mailer.aclose()
    await gateway.aclose()
    if settings.redis.url:
        await shutdown_redis_client()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Marketplace payments: commission-inclusive intents and receipt dispatch",
)

# 添加中间件（注意顺序：从下往上执行）
app.add_middleware(LoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# Request ID 最外层，为日志与异常处理器提供 request_id
app.add_middleware(RequestIDMiddleware)

register_exception_handlers(app)

app.include_router(payments_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc",
        },
        message="Welcome",
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return success_response(data={"status": "healthy"}, message="OK")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
