"""
API依赖项 - 从应用状态组装用例服务

进程级对象（支付网关、回执分发器）在 lifespan 中创建一次并挂在 app.state 上；
HTTP 请求与预订变更订阅共用同一个分发器实例。
"""
from fastapi import Depends, Request

from application.ports.payment_gateway import PaymentGateway
from application.services.payment_service import PaymentIntentService
from application.services.receipt_service import ReceiptDispatcher
from core.settings import payment_settings


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


async def get_payment_intent_service(
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentIntentService:
    cfg = payment_settings.commission
    return PaymentIntentService(
        gateway,
        commission_rate=cfg.rate,
        supported_currency=cfg.supported_currency,
    )


def get_receipt_dispatcher(request: Request) -> ReceiptDispatcher:
    return request.app.state.receipt_dispatcher
