# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    OrderType, OrderStatus, PayMode, GstMode, DiscountType, UserRole, DeliveryChannel,

    # Identity
    Restaurant, User, UserSession,

    # Dining & menu
    RestaurantTable, MenuItem,

    # Orders / billing
    Order, OrderItem, Invoice, InvoiceItem, Payment, InvoiceDelivery,

    # Audit
    AuditLog,
)

__all__ = [
    "OrderType", "OrderStatus", "PayMode", "GstMode", "DiscountType", "UserRole", "DeliveryChannel",
    "Restaurant", "User", "UserSession",
    "RestaurantTable", "MenuItem",
    "Order", "OrderItem", "Invoice", "InvoiceItem", "Payment", "InvoiceDelivery",
    "AuditLog",
]
