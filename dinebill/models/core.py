from sqlalchemy import (
    String, ForeignKey, Boolean, Numeric, Enum, Text, DateTime, Integer, JSON, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column
from enum import Enum as PyEnum
from datetime import datetime
from dinebill.db import Base
from dinebill.models.common import IdMixin, TSMixin

# ── Enums ───────────────────────────────────────────────────────────────────
class OrderType(PyEnum):
    DINE_IN = "DINE_IN"
    TAKEAWAY = "TAKEAWAY"
    DELIVERY = "DELIVERY"

class OrderStatus(PyEnum):
    PLACED = "PLACED"
    PREPARING = "PREPARING"
    READY = "READY"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

class PayMode(PyEnum):
    CASH = "CASH"
    UPI = "UPI"
    CARD = "CARD"

class GstMode(PyEnum):
    CGST_SGST = "CGST_SGST"  # intra-state split
    IGST = "IGST"            # interstate

class DiscountType(PyEnum):
    FLAT = "FLAT"
    PERCENT = "PERCENT"

class UserRole(PyEnum):
    OWNER = "OWNER"
    MANAGER = "MANAGER"
    CASHIER = "CASHIER"
    KITCHEN = "KITCHEN"

class DeliveryChannel(PyEnum):
    SMS = "SMS"
    EMAIL = "EMAIL"
    WHATSAPP = "WHATSAPP"

# ── Identity ────────────────────────────────────────────────────────────────
class Restaurant(Base, IdMixin, TSMixin):
    __tablename__ = "restaurant"
    name: Mapped[str] = mapped_column(String(200))
    gstin: Mapped[str | None] = mapped_column(String(32))
    phone: Mapped[str | None] = mapped_column(String(20))
    address: Mapped[str | None] = mapped_column(Text)
    gst_mode: Mapped[GstMode] = mapped_column(Enum(GstMode), default=GstMode.CGST_SGST)
    cgst_rate: Mapped[float] = mapped_column(Numeric(5, 2), default=0)
    sgst_rate: Mapped[float] = mapped_column(Numeric(5, 2), default=0)
    igst_rate: Mapped[float] = mapped_column(Numeric(5, 2), default=0)
    invoice_prefix: Mapped[str] = mapped_column(String(20), default="INV")
    # only ever touched by services.invoice_no.next_invoice_no
    invoice_seq: Mapped[int] = mapped_column(Integer, default=0)

class User(Base, IdMixin, TSMixin):
    __tablename__ = "user"
    restaurant_id: Mapped[str] = mapped_column(String(36), ForeignKey("restaurant.id"), index=True)
    name: Mapped[str] = mapped_column(String(160))
    email: Mapped[str | None] = mapped_column(String(160), unique=True)
    phone: Mapped[str | None] = mapped_column(String(20), unique=True)
    pass_hash: Mapped[str] = mapped_column(String(200))
    role: Mapped[UserRole] = mapped_column(Enum(UserRole))
    active: Mapped[bool] = mapped_column(Boolean, default=True)

class UserSession(Base, IdMixin, TSMixin):
    __tablename__ = "user_session"
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"), index=True)
    # rotated on every refresh; the old value stops working at once
    refresh_token: Mapped[str] = mapped_column(String(512), unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

# ── Dining & menu ───────────────────────────────────────────────────────────
class RestaurantTable(Base, IdMixin, TSMixin):
    __tablename__ = "restaurant_table"
    restaurant_id: Mapped[str] = mapped_column(String(36), ForeignKey("restaurant.id"), index=True)
    table_no: Mapped[str] = mapped_column(String(30))
    capacity: Mapped[int] = mapped_column(Integer, default=4)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    public_token: Mapped[str | None] = mapped_column(String(64), index=True)
    __table_args__ = (
        UniqueConstraint("restaurant_id", "table_no", name="uq_restaurant_table_no"),
    )

class MenuItem(Base, IdMixin, TSMixin):
    __tablename__ = "menu_item"
    restaurant_id: Mapped[str] = mapped_column(String(36), ForeignKey("restaurant.id"), index=True)
    name: Mapped[str] = mapped_column(String(160))
    description: Mapped[str | None] = mapped_column(Text)
    price: Mapped[float] = mapped_column(Numeric(10, 2))
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

# ── Orders ──────────────────────────────────────────────────────────────────
class Order(Base, IdMixin, TSMixin):
    __tablename__ = "order"
    restaurant_id: Mapped[str] = mapped_column(String(36), ForeignKey("restaurant.id"), index=True)
    created_by_user_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))  # null for QR orders
    type: Mapped[OrderType] = mapped_column(Enum(OrderType))
    table_no: Mapped[str | None] = mapped_column(String(30), index=True)
    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), default=OrderStatus.PLACED, index=True)
    customer_name: Mapped[str | None] = mapped_column(String(160))
    customer_phone: Mapped[str | None] = mapped_column(String(20))
    delivery_address: Mapped[str | None] = mapped_column(Text)
    # set once by settlement; this link, not the status, marks an order billed
    invoice_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("invoice.id"), index=True)

class OrderItem(Base, IdMixin, TSMixin):
    __tablename__ = "order_item"
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("order.id"), index=True)
    menu_item_id: Mapped[str] = mapped_column(String(36))
    name_snapshot: Mapped[str] = mapped_column(String(160))
    price_snapshot: Mapped[float] = mapped_column(Numeric(10, 2))
    qty: Mapped[int] = mapped_column(Integer)
    modifiers: Mapped[list] = mapped_column(JSON, default=list)  # [{name, price_delta}]
    notes: Mapped[str | None] = mapped_column(Text)

# ── Invoices & payments ─────────────────────────────────────────────────────
class Invoice(Base, IdMixin, TSMixin):
    __tablename__ = "invoice"
    restaurant_id: Mapped[str] = mapped_column(String(36), ForeignKey("restaurant.id"), index=True)
    created_by_id: Mapped[str | None] = mapped_column(String(36), ForeignKey("user.id"))
    invoice_no: Mapped[str] = mapped_column(String(60))
    invoice_type: Mapped[OrderType] = mapped_column(Enum(OrderType))
    table_no: Mapped[str | None] = mapped_column(String(30))
    customer_name: Mapped[str | None] = mapped_column(String(160))
    customer_phone: Mapped[str | None] = mapped_column(String(20))
    subtotal: Mapped[float] = mapped_column(Numeric(12, 2))
    discount_type: Mapped[DiscountType | None] = mapped_column(Enum(DiscountType))
    discount_value: Mapped[float | None] = mapped_column(Numeric(12, 2))
    discount_amount: Mapped[float] = mapped_column(Numeric(12, 2), default=0)
    taxable: Mapped[float] = mapped_column(Numeric(12, 2))
    # tax config as it stood when the invoice was cut
    gst_mode: Mapped[GstMode] = mapped_column(Enum(GstMode))
    cgst_rate: Mapped[float] = mapped_column(Numeric(5, 2), default=0)
    sgst_rate: Mapped[float] = mapped_column(Numeric(5, 2), default=0)
    igst_rate: Mapped[float] = mapped_column(Numeric(5, 2), default=0)
    cgst_amount: Mapped[float] = mapped_column(Numeric(12, 2), default=0)
    sgst_amount: Mapped[float] = mapped_column(Numeric(12, 2), default=0)
    igst_amount: Mapped[float] = mapped_column(Numeric(12, 2), default=0)
    total: Mapped[float] = mapped_column(Numeric(12, 2))
    # numbering is per restaurant, prefixes may coincide
    __table_args__ = (
        UniqueConstraint("restaurant_id", "invoice_no", name="uq_restaurant_invoice_no"),
    )

class InvoiceItem(Base, IdMixin, TSMixin):
    __tablename__ = "invoice_item"
    invoice_id: Mapped[str] = mapped_column(String(36), ForeignKey("invoice.id"), index=True)
    restaurant_id: Mapped[str] = mapped_column(String(36))
    position: Mapped[int] = mapped_column(Integer, default=0)
    name_snapshot: Mapped[str] = mapped_column(String(160))
    qty: Mapped[int] = mapped_column(Integer)
    unit_price: Mapped[float] = mapped_column(Numeric(10, 2))
    modifiers: Mapped[list] = mapped_column(JSON, default=list)
    line_total: Mapped[float] = mapped_column(Numeric(12, 2))

class Payment(Base, IdMixin, TSMixin):
    __tablename__ = "payment"
    invoice_id: Mapped[str] = mapped_column(String(36), ForeignKey("invoice.id"), index=True)
    restaurant_id: Mapped[str] = mapped_column(String(36))
    mode: Mapped[PayMode] = mapped_column(Enum(PayMode))
    amount: Mapped[float] = mapped_column(Numeric(12, 2))
    reference: Mapped[str | None] = mapped_column(String(120))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

class InvoiceDelivery(Base, IdMixin, TSMixin):
    __tablename__ = "invoice_delivery"
    restaurant_id: Mapped[str] = mapped_column(String(36), index=True)
    invoice_id: Mapped[str] = mapped_column(String(36), ForeignKey("invoice.id"), index=True)
    channel: Mapped[DeliveryChannel] = mapped_column(Enum(DeliveryChannel))
    status: Mapped[str] = mapped_column(String(20), default="PENDING")  # outbox worker moves it on
    to_phone: Mapped[str | None] = mapped_column(String(20))
    to_email: Mapped[str | None] = mapped_column(String(160))
    message: Mapped[str] = mapped_column(Text)
    provider: Mapped[str] = mapped_column(String(40), default="OUTBOX")

# ── Audit ───────────────────────────────────────────────────────────────────
class AuditLog(Base, IdMixin, TSMixin):
    __tablename__ = "audit_log"
    restaurant_id: Mapped[str] = mapped_column(String(36), index=True)
    actor_user_id: Mapped[str | None] = mapped_column(String(36))
    entity: Mapped[str] = mapped_column(String(60))
    entity_id: Mapped[str] = mapped_column(String(36))
    action: Mapped[str] = mapped_column(String(60))
    before: Mapped[str | None] = mapped_column(Text)
    after: Mapped[str | None] = mapped_column(Text)
