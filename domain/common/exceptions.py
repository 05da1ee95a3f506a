"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class UnsupportedCurrencyException(BusinessException):
    def __init__(self, currency: str, supported: str):
        super().__init__(
            code=PaymentCode.UNSUPPORTED_CURRENCY,
            message=f"Only {supported.upper()} currency is supported (got {currency.upper()})",
            error_type="UnsupportedCurrency",
            details={"currency": currency, "supported": [supported.upper()]},
            field="currency",
        )


class InvalidAmountException(BusinessException):
    def __init__(self, amount: object):
        super().__init__(
            code=PaymentCode.INVALID_AMOUNT,
            message=f"Amount must be a non-negative number (got {amount})",
            error_type="InvalidAmount",
            details={"amount": str(amount)},
            field="amount",
        )


class ReceiptNotEligibleException(BusinessException):
    """收据不满足发送条件（支付未完成 / 缺少服务方邮箱 / 预订未完成）"""

    def __init__(self, message: str, *, reason: str, details: Optional[dict] = None):
        full_details = {"reason": reason}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.RECEIPT_NOT_ELIGIBLE,
            message=message,
            error_type="ReceiptNotEligible",
            details=full_details,
        )


class ReceiptDeliveryError(BusinessException):
    def __init__(self, message: str, *, channel: str, details: Optional[dict] = None):
        full_details = {"channel": channel}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.RECEIPT_DELIVERY_FAILED,
            message=message,
            error_type="ReceiptDeliveryError",
            details=full_details,
        )


class BookingNotFoundException(BusinessException):
    def __init__(self, booking_id: str):
        super().__init__(
            code=BusinessCode.BOOKING_NOT_FOUND,
            message="Booking not found",
            error_type="BookingNotFound",
            details={"booking_id": booking_id},
        )
