from pydantic import Field
from typing import Optional, Literal

from dinebill.schemas.common import CamelModel
from dinebill.schemas.orders import OrderTypeLiteral

PayModeLiteral = Literal["CASH", "UPI", "CARD"]
DiscountTypeLiteral = Literal["FLAT", "PERCENT"]

class DiscountIn(CamelModel):
    type: DiscountTypeLiteral
    value: float = Field(ge=0)

class PaymentIn(CamelModel):
    mode: PayModeLiteral
    amount: float = Field(ge=0)
    reference: Optional[str] = None

class SettleTableIn(CamelModel):
    table_no: str = Field(min_length=1)
    payment: PaymentIn
    discount: Optional[DiscountIn] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None

class InvoiceLineIn(CamelModel):
    name: str = Field(min_length=1)
    qty: int = Field(gt=0)
    price: float = Field(ge=0)

class InvoiceIn(CamelModel):
    invoice_type: OrderTypeLiteral
    table_no: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    items: list[InvoiceLineIn] = Field(min_length=1)
    discount: Optional[DiscountIn] = None
    payment: PaymentIn

DeliveryChannelLiteral = Literal["SMS", "EMAIL", "WHATSAPP"]

class DeliveryIn(CamelModel):
    channel: DeliveryChannelLiteral = "SMS"
    to_phone: Optional[str] = Field(default=None, min_length=8)
    to_email: Optional[str] = Field(default=None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    message: Optional[str] = None
