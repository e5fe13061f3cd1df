from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dinebill.db import get_db
from dinebill.deps import ALL_STAFF, FRONT_DESK, AuthContext, require_role
from dinebill.realtime.kds import KdsBus, get_bus
from dinebill.schemas.orders import OrderIn, OrderItemsIn, OrderStatusLiteral, StatusIn
from dinebill.services import orders as svc

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/")
def list_orders(
    status: OrderStatusLiteral | None = None,
    table_no: str | None = None,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_role(*ALL_STAFF)),
):
    """Newest first, capped at 200. Filters: ?status=PLACED&table_no=T1"""
    rows = svc.list_orders(db, ctx.restaurant_id, status=status, table_no=table_no)
    return {"orders": [svc.order_dict(db, o) for o in rows]}


@router.post("/")
def create_order(
    body: OrderIn,
    db: Session = Depends(get_db),
    bus: KdsBus = Depends(get_bus),
    ctx: AuthContext = Depends(require_role(*FRONT_DESK)),
):
    o = svc.create_order(db, bus, ctx.restaurant_id, ctx.user_id, body)
    return {"order": svc.order_dict(db, o)}


@router.get("/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_role(*ALL_STAFF))):
    o = svc.get_order(db, ctx.restaurant_id, order_id)
    return {"order": svc.order_dict(db, o)}


@router.patch("/{order_id}/status")
def set_status(
    order_id: str,
    body: StatusIn,
    db: Session = Depends(get_db),
    bus: KdsBus = Depends(get_bus),
    ctx: AuthContext = Depends(require_role(*ALL_STAFF)),
):
    o = svc.set_status(db, bus, ctx.restaurant_id, order_id, body.status, ctx.user_id)
    return {"order": svc.order_dict(db, o)}


@router.post("/{order_id}/items")
def add_items(
    order_id: str,
    body: OrderItemsIn,
    db: Session = Depends(get_db),
    bus: KdsBus = Depends(get_bus),
    ctx: AuthContext = Depends(require_role(*FRONT_DESK)),
):
    o = svc.add_items(db, bus, ctx.restaurant_id, order_id, body.items)
    return {"order": svc.order_dict(db, o)}


@router.delete("/{order_id}/items/{item_id}")
def remove_item(
    order_id: str,
    item_id: str,
    db: Session = Depends(get_db),
    bus: KdsBus = Depends(get_bus),
    ctx: AuthContext = Depends(require_role(*FRONT_DESK)),
):
    o = svc.remove_item(db, bus, ctx.restaurant_id, order_id, item_id, ctx.user_id)
    return {"order": svc.order_dict(db, o)}
