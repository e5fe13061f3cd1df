# dinebill/routers/settings.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dinebill.db import get_db
from dinebill.deps import ALL_STAFF, MANAGERS, AuthContext, require_role
from dinebill.models.core import GstMode, Restaurant
from dinebill.schemas.setup import RestaurantPatch
from dinebill.services.billing import money
from dinebill.util.audit import audit
from dinebill.util.errors import TenantNotFound

router = APIRouter(prefix="/setup", tags=["setup"])


def restaurant_dict(r: Restaurant) -> dict:
    return {
        "id": r.id, "name": r.name, "gstin": r.gstin, "phone": r.phone, "address": r.address,
        "gstMode": r.gst_mode.value,
        "cgstRate": money(r.cgst_rate), "sgstRate": money(r.sgst_rate), "igstRate": money(r.igst_rate),
        "invoicePrefix": r.invoice_prefix,
    }


def _load(db: Session, restaurant_id: str) -> Restaurant:
    r = db.get(Restaurant, restaurant_id)
    if not r:
        raise TenantNotFound()
    return r


@router.get("/restaurant")
def get_restaurant(db: Session = Depends(get_db), ctx: AuthContext = Depends(require_role(*ALL_STAFF))):
    return {"restaurant": restaurant_dict(_load(db, ctx.restaurant_id))}


@router.patch("/restaurant")
def update_restaurant(
    body: RestaurantPatch,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_role(*MANAGERS)),
):
    r = _load(db, ctx.restaurant_id)
    before = restaurant_dict(r)
    # invoice_seq is deliberately not updatable here
    for k, v in body.model_dump(exclude_unset=True).items():
        if v is None:
            continue
        if k == "gst_mode":
            v = GstMode(v)
        setattr(r, k, v)
    audit(db, r.id, ctx.user_id, "Restaurant", r.id, "UPDATE_SETTINGS", before=before, after=body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(r)
    return {"restaurant": restaurant_dict(r)}
