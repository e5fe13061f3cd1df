from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from dinebill.db import get_db
from dinebill.deps import ALL_STAFF, MANAGERS, AuthContext, require_role
from dinebill.models.core import MenuItem
from dinebill.schemas.menu import MenuItemIn, MenuItemPatch
from dinebill.services.billing import money
from dinebill.util.audit import audit
from dinebill.util.errors import NotFound

router = APIRouter(prefix="/menu", tags=["menu"])


def _item_row(m: MenuItem) -> dict:
    return {
        "id": m.id,
        "name": m.name,
        "description": m.description,
        "price": money(m.price),
        "isEnabled": bool(m.is_enabled),
        "updatedAt": m.updated_at.isoformat() if m.updated_at else None,
    }


def _load(db: Session, restaurant_id: str, item_id: str) -> MenuItem:
    it = (
        db.query(MenuItem)
        .filter(MenuItem.id == item_id, MenuItem.restaurant_id == restaurant_id)
        .first()
    )
    if not it:
        raise NotFound("Menu item not found", code="MENU_ITEM_NOT_FOUND")
    return it


@router.get("/items")
def list_items(
    include_disabled: bool = False,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_role(*ALL_STAFF)),
):
    """Menu for the POS grid. Orders snapshot name and price from here."""
    q = db.query(MenuItem).filter(MenuItem.restaurant_id == ctx.restaurant_id)
    if not include_disabled:
        q = q.filter(MenuItem.is_enabled.is_(True))
    rows: List[MenuItem] = q.order_by(MenuItem.name.asc()).all()
    return {"items": [_item_row(m) for m in rows]}


@router.post("/items")
def create_item(body: MenuItemIn, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_role(*MANAGERS))):
    it = MenuItem(restaurant_id=ctx.restaurant_id, **body.model_dump())
    db.add(it)
    db.commit()
    db.refresh(it)
    return {"item": _item_row(it)}


@router.patch("/items/{item_id}")
def update_item(
    item_id: str,
    body: MenuItemPatch,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_role(*MANAGERS)),
):
    # price edits never touch existing orders; they keep their snapshot
    it = _load(db, ctx.restaurant_id, item_id)
    before = _item_row(it)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    for k, v in changes.items():
        setattr(it, k, v)
    audit(db, ctx.restaurant_id, ctx.user_id, "MenuItem", it.id, "UPDATE", before=before, after=changes)
    db.commit()
    db.refresh(it)
    return {"item": _item_row(it)}
