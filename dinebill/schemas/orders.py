from pydantic import Field, model_validator
from typing import Optional, Literal

from dinebill.schemas.common import CamelModel

OrderTypeLiteral = Literal["DINE_IN", "TAKEAWAY", "DELIVERY"]
OrderStatusLiteral = Literal["PLACED", "PREPARING", "READY", "COMPLETED", "CANCELLED"]

class ModifierIn(CamelModel):
    name: str = Field(min_length=1)
    price_delta: float

class OrderItemIn(CamelModel):
    menu_item_id: str = Field(min_length=1)
    name_snapshot: str = Field(min_length=1)
    price_snapshot: float = Field(ge=0)
    qty: int = Field(gt=0)
    modifiers: list[ModifierIn] = []
    notes: Optional[str] = None

class OrderIn(CamelModel):
    type: OrderTypeLiteral
    table_no: Optional[str] = None
    items: list[OrderItemIn] = Field(min_length=1)
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    delivery_address: Optional[str] = None

    @model_validator(mode="after")
    def _dine_in_needs_table(self):
        if self.type == "DINE_IN" and not self.table_no:
            raise ValueError("tableNo is required for DINE_IN orders")
        return self

class OrderItemsIn(CamelModel):
    items: list[OrderItemIn] = Field(min_length=1)

class StatusIn(CamelModel):
    status: OrderStatusLiteral

class PublicOrderItemIn(CamelModel):
    menu_item_id: str = Field(min_length=1)
    qty: int = Field(gt=0)
    notes: Optional[str] = None

class PublicOrderIn(CamelModel):
    token: str = Field(min_length=8)
    customer_phone: str = Field(min_length=8)
    customer_name: Optional[str] = None
    items: list[PublicOrderItemIn] = Field(min_length=1)
