"""
Payments API routes.

Thin HTTP layer over the application services: request DTOs are
validated by FastAPI, services come from the composition root through
dependencies, and every response uses the unified envelope.
"""
from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from api.dependencies import get_payment_intent_service, get_receipt_dispatcher
from application.dtos.payments import CreateIntentRequest, ReceiptRequest
from application.services.payment_service import PaymentIntentService
from application.services.receipt_service import ReceiptDispatcher
from core.config import settings
from core.response import success_response


router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/intents")
async def create_payment_intent(
    body: CreateIntentRequest,
    service: PaymentIntentService = Depends(get_payment_intent_service),
):
    """创建含平台佣金的支付意图（返回客户端密钥与临时密钥）"""
    intent = await service.create_intent(body)
    return success_response(
        data=intent.model_dump(mode="json", by_alias=True),
        message="Payment intent created",
    )


@router.post("/receipts")
async def send_receipt(
    body: ReceiptRequest,
    dispatcher: ReceiptDispatcher = Depends(get_receipt_dispatcher),
):
    """发送回执：手动（paymentId）或预订状态变更事件（bookingId）"""
    result = await dispatcher.handle(body)
    return success_response(data=result.model_dump(mode="json", by_alias=True), message=result.message)


@router.get("/receipts")
async def receipts_reachability():
    """可达性检查"""
    return success_response(
        data={
            "message": "Send receipt endpoint is accessible",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "environment": settings.ENVIRONMENT,
        },
        message="Send receipt endpoint is accessible",
    )
