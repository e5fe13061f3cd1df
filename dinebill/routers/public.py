from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from dinebill.db import get_db
from dinebill.models.core import MenuItem, Restaurant
from dinebill.realtime.kds import KdsBus, get_bus
from dinebill.schemas.orders import PublicOrderIn
from dinebill.services import orders as svc
from dinebill.services.billing import money

# unauthenticated: the table token is the only credential
router = APIRouter(prefix="/public", tags=["public"])


@router.get("/menu")
def public_menu(token: str = Query(min_length=8), db: Session = Depends(get_db)):
    table = svc.table_for_token(db, token)
    r = db.get(Restaurant, table.restaurant_id)
    items = (
        db.query(MenuItem)
        .filter(MenuItem.restaurant_id == table.restaurant_id, MenuItem.is_enabled.is_(True))
        .order_by(MenuItem.name.asc())
        .all()
    )
    return {
        "restaurant": {"id": r.id, "name": r.name} if r else None,
        "tableNo": table.table_no,
        "items": [
            {"id": m.id, "name": m.name, "description": m.description, "price": money(m.price)}
            for m in items
        ],
    }


@router.post("/orders")
def public_order(body: PublicOrderIn, db: Session = Depends(get_db), bus: KdsBus = Depends(get_bus)):
    o = svc.create_public_order(db, bus, body)
    return {"orderId": o.id}


@router.get("/orders/history")
def order_history(
    token: str = Query(min_length=8),
    phone: str = Query(min_length=8),
    db: Session = Depends(get_db),
):
    """Guest's previous orders (last 10, not cancelled) at this table's restaurant."""
    return {"orders": svc.guest_history(db, token, phone)}
