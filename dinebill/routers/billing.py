from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dinebill.db import get_db
from dinebill.deps import FRONT_DESK, AuthContext, require_role
from dinebill.realtime.kds import KdsBus, get_bus
from dinebill.schemas.billing import DeliveryIn, InvoiceIn, PaymentIn, SettleTableIn
from dinebill.services import settlement as svc

router = APIRouter(prefix="/billing", tags=["billing"])


@router.post("/settle-table")
def settle_table(
    body: SettleTableIn,
    db: Session = Depends(get_db),
    bus: KdsBus = Depends(get_bus),
    ctx: AuthContext = Depends(require_role(*FRONT_DESK)),
):
    """
    Bill every open (unlinked, not cancelled) order of a table as one invoice.

    body: {tableNo, payment: {mode, amount, reference?}, discount?: {type, value},
           customerName?, customerPhone?}
    returns: {invoiceId, invoiceNo, printPath, total, warnings}
    """
    return svc.settle_table(db, bus, ctx.restaurant_id, ctx.user_id, body).as_dict()


@router.post("/invoices")
def create_invoice(body: InvoiceIn, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_role(*FRONT_DESK))):
    return svc.create_invoice(db, ctx.restaurant_id, ctx.user_id, body).as_dict()


@router.get("/invoices")
def list_invoices(db: Session = Depends(get_db), ctx: AuthContext = Depends(require_role(*FRONT_DESK))):
    rows = svc.list_invoices(db, ctx.restaurant_id)
    return {"invoices": [svc.invoice_dict(db, inv) for inv in rows]}


@router.get("/invoices/{invoice_id}")
def get_invoice(invoice_id: str, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_role(*FRONT_DESK))):
    inv = svc.get_invoice(db, ctx.restaurant_id, invoice_id)
    return {"invoice": svc.invoice_dict(db, inv)}


@router.post("/invoices/{invoice_id}/payments")
def add_payment(
    invoice_id: str,
    body: PaymentIn,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_role(*FRONT_DESK)),
):
    return svc.add_payment(db, ctx.restaurant_id, invoice_id, ctx.user_id, body)


@router.post("/invoices/{invoice_id}/deliver")
def deliver_invoice(
    invoice_id: str,
    body: DeliveryIn,
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(require_role(*FRONT_DESK)),
):
    return {"delivery": svc.deliver_invoice(db, ctx.restaurant_id, invoice_id, ctx.user_id, body)}
