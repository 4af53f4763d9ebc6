from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


class PaymentStatusEnum(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    refunded = "refunded"


class CreateOrderRequest(BaseModel):
    session_id: int = Field(..., gt=0)


class OrderResponse(BaseModel):
    """Gateway order plus what the client needs to render a countdown"""

    success: bool = True
    order: Dict[str, Any]
    amount: float
    currency: str
    mentor_name: Optional[str] = None
    reservation_expires_at: Optional[datetime] = None


class ConfirmPaymentRequest(BaseModel):
    session_id: int = Field(..., gt=0)
    payment_id: str = Field(..., min_length=1, description="Gateway payment id")
    order_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "session_id": 12,
                "payment_id": "pay_29QQoUBi66xm2f",
                "order_id": "order_9A33XWu170gUtm",
                "signature": "9ef4dffbfd84f1318f6739a3ce19f9d85851857ae648f114332d8401e0949a3d",
            }
        }
    )


class ConfirmPaymentResponse(BaseModel):
    success: bool = True
    payment_id: int
    session_id: int
    status: PaymentStatusEnum


class PaymentRecordRead(BaseModel):
    id: int
    session_id: Optional[int] = None
    user_id: int
    recipient_id: int
    amount: float
    currency: str
    payment_method: str
    status: PaymentStatusEnum
    transaction_id: str
    order_id: Optional[str] = None
    payment_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("status", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)


class PaymentListResponse(BaseModel):
    success: bool = True
    payments: List[PaymentRecordRead]
    total: int
