"""Order lifecycle: creation, status changes and line-item mutation.

Statuses run ``PLACED -> PREPARING -> READY -> COMPLETED`` with
``CANCELLED`` as the alternate terminal. Every successful change publishes
exactly one event on the kitchen bus.
"""

import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from dinebill.config import settings
from dinebill.models.core import MenuItem, Order, OrderItem, OrderStatus, OrderType, RestaurantTable
from dinebill.realtime.kds import KdsBus, order_created, order_updated
from dinebill.schemas.orders import OrderIn, OrderItemIn, PublicOrderIn
from dinebill.services.billing import money
from dinebill.util.audit import audit
from dinebill.util.errors import (
    InvalidTransition, MenuItemInvalid, OrderLocked, OrderNotFound, TableTokenInvalid,
)

logger = logging.getLogger("dinebill.orders")

TERMINAL = frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED})

# Forward-only graph, cancellation from any live state. Enforced only with
# ORDER_STATUS_STRICT; the default admin path may set any status.
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PLACED: frozenset({OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

LIST_LIMIT = 200
HISTORY_LIMIT = 10


def can_transition(current: OrderStatus, target: OrderStatus, strict: bool) -> bool:
    if current == target:
        return True
    if not strict:
        return True
    return target in ALLOWED_TRANSITIONS[current]


def is_mutable(order: Order) -> bool:
    return order.status not in TERMINAL and order.invoice_id is None


# ── reads ───────────────────────────────────────────────────────────────────

def order_items(db: Session, order_id: str) -> list[OrderItem]:
    return (
        db.query(OrderItem)
        .filter(OrderItem.order_id == order_id)
        .order_by(OrderItem.created_at.asc())
        .all()
    )


def order_dict(db: Session, o: Order) -> dict:
    return {
        "id": o.id,
        "restaurantId": o.restaurant_id,
        "type": o.type.value,
        "tableNo": o.table_no,
        "status": o.status.value,
        "customerName": o.customer_name,
        "customerPhone": o.customer_phone,
        "deliveryAddress": o.delivery_address,
        "invoiceId": o.invoice_id,
        "createdAt": o.created_at,
        "items": [
            {
                "id": it.id,
                "menuItemId": it.menu_item_id,
                "nameSnapshot": it.name_snapshot,
                "priceSnapshot": money(it.price_snapshot),
                "qty": it.qty,
                "modifiers": it.modifiers or [],
                "notes": it.notes,
            }
            for it in order_items(db, o.id)
        ],
    }


def _find(db: Session, restaurant_id: str, order_id: str) -> Order | None:
    return (
        db.query(Order)
        .filter(Order.id == order_id, Order.restaurant_id == restaurant_id)
        .first()
    )


def get_order(db: Session, restaurant_id: str, order_id: str) -> Order:
    o = _find(db, restaurant_id, order_id)
    if not o:
        raise OrderNotFound()
    return o


def list_orders(db: Session, restaurant_id: str, status: str | None = None, table_no: str | None = None) -> list[Order]:
    q = db.query(Order).filter(Order.restaurant_id == restaurant_id)
    if status:
        q = q.filter(Order.status == OrderStatus(status))
    if table_no:
        q = q.filter(Order.table_no == table_no)
    return q.order_by(Order.created_at.desc()).limit(LIST_LIMIT).all()


# ── writes ──────────────────────────────────────────────────────────────────

def _add_lines(db: Session, order_id: str, items: list[OrderItemIn]) -> None:
    for it in items:
        db.add(OrderItem(
            order_id=order_id,
            menu_item_id=it.menu_item_id,
            name_snapshot=it.name_snapshot,
            price_snapshot=it.price_snapshot,
            qty=it.qty,
            modifiers=[m.model_dump() for m in it.modifiers],
            notes=it.notes,
        ))


def create_order(db: Session, bus: KdsBus, restaurant_id: str, user_id: str | None, body: OrderIn) -> Order:
    o = Order(
        restaurant_id=restaurant_id,
        created_by_user_id=user_id,
        type=OrderType(body.type),
        table_no=body.table_no,
        status=OrderStatus.PLACED,
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
        delivery_address=body.delivery_address,
    )
    db.add(o)
    db.flush()
    _add_lines(db, o.id, body.items)
    db.commit()
    db.refresh(o)

    bus.publish(order_created(restaurant_id, o.id))
    return o


def table_for_token(db: Session, token: str) -> RestaurantTable:
    table = (
        db.query(RestaurantTable)
        .filter(RestaurantTable.public_token == token, RestaurantTable.is_enabled.is_(True))
        .first()
    )
    if not table:
        raise TableTokenInvalid()
    return table


def create_public_order(db: Session, bus: KdsBus, body: PublicOrderIn) -> Order:
    """Guest order from a table QR link; names and prices come from the menu."""
    table = table_for_token(db, body.token)

    wanted = {it.menu_item_id for it in body.items}
    menu = {
        m.id: m
        for m in db.query(MenuItem).filter(
            MenuItem.restaurant_id == table.restaurant_id,
            MenuItem.id.in_(wanted),
            MenuItem.is_enabled.is_(True),
        )
    }
    lines = []
    for it in body.items:
        mi = menu.get(it.menu_item_id)
        if not mi:
            raise MenuItemInvalid(f"Menu item {it.menu_item_id} not available")
        lines.append(OrderItemIn(
            menu_item_id=mi.id, name_snapshot=mi.name, price_snapshot=money(mi.price),
            qty=it.qty, notes=it.notes,
        ))

    o = Order(
        restaurant_id=table.restaurant_id,
        created_by_user_id=None,
        type=OrderType.DINE_IN,
        table_no=table.table_no,
        status=OrderStatus.PLACED,
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
    )
    db.add(o)
    db.flush()
    _add_lines(db, o.id, lines)
    db.commit()
    db.refresh(o)

    bus.publish(order_created(table.restaurant_id, o.id))
    return o


def guest_history(db: Session, token: str, phone: str) -> list[dict]:
    """Last orders a guest placed at the restaurant owning ``token``'s table.

    Matched on phone across every table of that restaurant, cancelled orders
    left out, newest first.
    """
    table = table_for_token(db, token)
    rows = (
        db.query(Order)
        .filter(
            Order.restaurant_id == table.restaurant_id,
            Order.customer_phone == phone.strip(),
            Order.status != OrderStatus.CANCELLED,
        )
        .order_by(Order.created_at.desc())
        .limit(HISTORY_LIMIT)
        .all()
    )
    out = []
    for o in rows:
        items = order_items(db, o.id)
        out.append({
            "orderId": o.id,
            "status": o.status.value,
            "tableNo": o.table_no,
            "customerName": o.customer_name,
            "createdAt": o.created_at,
            "items": [
                {"name": it.name_snapshot, "price": money(it.price_snapshot), "qty": it.qty, "notes": it.notes}
                for it in items
            ],
            "total": money(sum(Decimal(str(it.price_snapshot)) * it.qty for it in items)),
        })
    return out


def set_status(db: Session, bus: KdsBus, restaurant_id: str, order_id: str, status: str, actor_user_id: str | None) -> Order:
    o = get_order(db, restaurant_id, order_id)
    target = OrderStatus(status)
    if not can_transition(o.status, target, settings.ORDER_STATUS_STRICT):
        raise InvalidTransition(f"{o.status.value} -> {target.value} not allowed")

    before = o.status
    o.status = target
    audit(db, restaurant_id, actor_user_id, "Order", o.id, "STATUS",
          before={"status": before.value}, after={"status": target.value})
    db.commit()
    db.refresh(o)

    bus.publish(order_updated(restaurant_id, o.id, o.status.value))
    return o


def _mutable_order(db: Session, restaurant_id: str, order_id: str) -> Order:
    o = _find(db, restaurant_id, order_id)
    if not o or not is_mutable(o):
        raise OrderLocked()
    return o


def add_items(db: Session, bus: KdsBus, restaurant_id: str, order_id: str, items: list[OrderItemIn]) -> Order:
    o = _mutable_order(db, restaurant_id, order_id)
    _add_lines(db, o.id, items)
    db.commit()
    db.refresh(o)

    bus.publish(order_updated(restaurant_id, o.id, o.status.value))
    return o


def remove_item(db: Session, bus: KdsBus, restaurant_id: str, order_id: str, item_id: str, actor_user_id: str | None) -> Order:
    o = _mutable_order(db, restaurant_id, order_id)
    line = (
        db.query(OrderItem)
        .filter(OrderItem.id == item_id, OrderItem.order_id == o.id)
        .first()
    )
    if not line:
        raise OrderLocked("Order item not found")

    audit(db, restaurant_id, actor_user_id, "OrderItem", line.id, "REMOVE",
          before={"name": line.name_snapshot, "qty": line.qty, "price": money(line.price_snapshot)})
    db.delete(line)
    db.commit()
    db.refresh(o)

    bus.publish(order_updated(restaurant_id, o.id, o.status.value))
    return o
