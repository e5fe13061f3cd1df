"""Turning orders into invoices.

:func:`settle_table` bills every open order of a dine-in table as one
invoice. :func:`create_invoice` cuts a counter invoice from ad-hoc lines.
Both share the tax engine and the invoice sequence.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.orm import Session

from dinebill.config import settings
from dinebill.models.core import (
    DeliveryChannel, DiscountType, Invoice, InvoiceDelivery, InvoiceItem, Order, OrderItem, OrderStatus, OrderType,
    Payment, PayMode, Restaurant,
)
from dinebill.realtime.kds import KdsBus, table_settled
from dinebill.schemas.billing import DeliveryIn, DiscountIn, InvoiceIn, PaymentIn, SettleTableIn
from dinebill.services.billing import TaxConfig, Totals, discount_from, money, totals_for
from dinebill.services.invoice_no import next_invoice_no
from dinebill.util.audit import audit
from dinebill.util.errors import (
    EmailRequired, InvoiceNotFound, NoOpenOrders, PhoneRequired, SettlementConflict, TenantNotFound,
)

logger = logging.getLogger("dinebill.settlement")

DISCOUNT_EXCEEDS_SUBTOTAL = "DISCOUNT_EXCEEDS_SUBTOTAL"


@dataclass
class Line:
    name: str
    unit_price: Decimal
    qty: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.qty


@dataclass
class SettlementResult:
    invoice_id: str
    invoice_no: str
    print_path: str
    total: Decimal
    warnings: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "invoiceId": self.invoice_id,
            "invoiceNo": self.invoice_no,
            "printPath": self.print_path,
            "total": money(self.total),
            "warnings": self.warnings,
        }


def print_path(invoice_id: str) -> str:
    return f"{settings.PRINT_PATH_PREFIX}/{invoice_id}"


def merge_lines(items) -> list[Line]:
    """Collapse order items sharing a name and unit price into one line.

    Same name at a different recorded price stays a separate line, so price
    changes between rounds of ordering show up on the bill. First-seen order
    is kept.
    """
    merged: dict[tuple[str, Decimal], Line] = {}
    for it in items:
        price = Decimal(str(it.price_snapshot))
        key = (it.name_snapshot, price)
        line = merged.get(key)
        if line:
            line.qty += it.qty
        else:
            merged[key] = Line(name=it.name_snapshot, unit_price=price, qty=it.qty)
    return list(merged.values())


def _open_orders_filter(restaurant_id: str, table_no: str):
    # read-set and link-set must use the very same predicate
    return (
        Order.restaurant_id == restaurant_id,
        Order.table_no == table_no,
        Order.invoice_id.is_(None),
        Order.status != OrderStatus.CANCELLED,
    )


def open_orders(db: Session, restaurant_id: str, table_no: str) -> list[Order]:
    return (
        db.query(Order)
        .filter(*_open_orders_filter(restaurant_id, table_no))
        .order_by(Order.created_at.asc())
        .all()
    )


def _tax_config(db: Session, restaurant_id: str) -> TaxConfig:
    r = db.get(Restaurant, restaurant_id)
    if not r:
        raise TenantNotFound()
    return TaxConfig.of(r)


def _new_invoice(
    db: Session,
    restaurant_id: str,
    tax: TaxConfig,
    user_id: str | None,
    invoice_no: str,
    invoice_type: OrderType,
    table_no: str | None,
    customer_name: str | None,
    customer_phone: str | None,
    discount: DiscountIn | None,
    totals: Totals,
    lines: list[Line],
    payment: PaymentIn,
) -> Invoice:
    inv = Invoice(
        restaurant_id=restaurant_id,
        created_by_id=user_id,
        invoice_no=invoice_no,
        invoice_type=invoice_type,
        table_no=table_no,
        customer_name=customer_name,
        customer_phone=customer_phone,
        subtotal=totals.subtotal,
        discount_type=DiscountType(discount.type) if discount else None,
        discount_value=discount.value if discount else None,
        discount_amount=totals.discount_amount,
        taxable=totals.taxable,
        gst_mode=tax.gst_mode,
        cgst_rate=tax.cgst_rate,
        sgst_rate=tax.sgst_rate,
        igst_rate=tax.igst_rate,
        cgst_amount=totals.cgst_amount,
        sgst_amount=totals.sgst_amount,
        igst_amount=totals.igst_amount,
        total=totals.total,
    )
    db.add(inv)
    db.flush()

    for pos, line in enumerate(lines):
        db.add(InvoiceItem(
            invoice_id=inv.id,
            restaurant_id=restaurant_id,
            position=pos,
            name_snapshot=line.name,
            qty=line.qty,
            unit_price=line.unit_price,
            modifiers=[],
            line_total=line.line_total,
        ))
    db.add(Payment(
        invoice_id=inv.id,
        restaurant_id=restaurant_id,
        mode=PayMode(payment.mode),
        amount=payment.amount,
        reference=payment.reference,
        paid_at=datetime.now(timezone.utc),
    ))
    return inv


def _warnings(totals: Totals) -> list[str]:
    return [DISCOUNT_EXCEEDS_SUBTOTAL] if totals.discount_capped else []


def settle_table(db: Session, bus: KdsBus, restaurant_id: str, user_id: str | None, body: SettleTableIn) -> SettlementResult:
    """Bill all open orders of ``body.table_no`` as a single invoice.

    The invoice number is reserved (and committed) before the invoice is
    written. The invoice, its lines, the payment and the order links then go
    in one transaction; linking is conditional on the orders still being
    open, and if any of them was taken by a concurrent settlement (or
    cancelled) meanwhile the whole write is rolled back with
    ``SETTLEMENT_CONFLICT``. The reserved number is not reused.
    """
    tax = _tax_config(db, restaurant_id)

    orders = open_orders(db, restaurant_id, body.table_no)
    if not orders:
        raise NoOpenOrders()
    order_ids = [o.id for o in orders]

    items = (
        db.query(OrderItem)
        .filter(OrderItem.order_id.in_(order_ids))
        .all()
    )
    # keep line order following order creation, then item insertion
    rank = {oid: i for i, oid in enumerate(order_ids)}
    items.sort(key=lambda it: (rank[it.order_id], it.created_at))
    lines = merge_lines(items)

    subtotal = sum((line.line_total for line in lines), Decimal(0))
    discount = discount_from(body.discount.type, body.discount.value) if body.discount else None
    totals = totals_for(tax, subtotal, discount)

    invoice_no = next_invoice_no(db, restaurant_id)

    try:
        inv = _new_invoice(
            db, restaurant_id, tax, user_id, invoice_no, OrderType.DINE_IN, body.table_no,
            body.customer_name, body.customer_phone, body.discount, totals, lines, body.payment,
        )
        linked = db.execute(
            update(Order)
            .where(Order.id.in_(order_ids), *_open_orders_filter(restaurant_id, body.table_no))
            .values(invoice_id=inv.id)
            .execution_options(synchronize_session=False)
        ).rowcount
        if linked != len(order_ids):
            raise SettlementConflict()
        audit(db, restaurant_id, user_id, "Invoice", inv.id, "SETTLE_TABLE",
              after={"invoice_no": invoice_no, "table_no": body.table_no, "orders": order_ids,
                     "total": money(totals.total)})
        db.commit()
    except SettlementConflict:
        db.rollback()
        logger.warning("settlement conflict table=%s restaurant=%s invoice_no=%s burned",
                       body.table_no, restaurant_id, invoice_no)
        raise
    except Exception:
        db.rollback()
        raise

    logger.info("settled table=%s orders=%d invoice=%s total=%s",
                body.table_no, len(order_ids), invoice_no, totals.total)
    bus.publish(table_settled(restaurant_id, body.table_no, inv.id))

    return SettlementResult(
        invoice_id=inv.id,
        invoice_no=invoice_no,
        print_path=print_path(inv.id),
        total=totals.total,
        warnings=_warnings(totals),
    )


def create_invoice(db: Session, restaurant_id: str, user_id: str | None, body: InvoiceIn) -> SettlementResult:
    """Counter invoice from ad-hoc lines; no orders are linked."""
    tax = _tax_config(db, restaurant_id)

    lines = [Line(name=it.name, unit_price=Decimal(str(it.price)), qty=it.qty) for it in body.items]
    subtotal = sum((line.line_total for line in lines), Decimal(0))
    discount = discount_from(body.discount.type, body.discount.value) if body.discount else None
    totals = totals_for(tax, subtotal, discount)

    invoice_no = next_invoice_no(db, restaurant_id)

    try:
        inv = _new_invoice(
            db, restaurant_id, tax, user_id, invoice_no, OrderType(body.invoice_type), body.table_no,
            body.customer_name, body.customer_phone, body.discount, totals, lines, body.payment,
        )
        audit(db, restaurant_id, user_id, "Invoice", inv.id, "CREATE",
              after={"invoice_no": invoice_no, "total": money(totals.total)})
        db.commit()
    except Exception:
        db.rollback()
        raise

    return SettlementResult(
        invoice_id=inv.id,
        invoice_no=invoice_no,
        print_path=print_path(inv.id),
        total=totals.total,
        warnings=_warnings(totals),
    )


# ── invoice reads & payments ────────────────────────────────────────────────

def get_invoice(db: Session, restaurant_id: str, invoice_id: str) -> Invoice:
    inv = (
        db.query(Invoice)
        .filter(Invoice.id == invoice_id, Invoice.restaurant_id == restaurant_id)
        .first()
    )
    if not inv:
        raise InvoiceNotFound()
    return inv


def list_invoices(db: Session, restaurant_id: str, limit: int = 100) -> list[Invoice]:
    return (
        db.query(Invoice)
        .filter(Invoice.restaurant_id == restaurant_id)
        .order_by(Invoice.created_at.desc())
        .limit(limit)
        .all()
    )


def _payments(db: Session, invoice_id: str) -> list[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.invoice_id == invoice_id)
        .order_by(Payment.created_at.asc())
        .all()
    )


def add_payment(db: Session, restaurant_id: str, invoice_id: str, user_id: str | None, body: PaymentIn) -> dict:
    """Append a payment (partial settlement); invoice amounts never change."""
    inv = get_invoice(db, restaurant_id, invoice_id)
    p = Payment(
        invoice_id=inv.id,
        restaurant_id=restaurant_id,
        mode=PayMode(body.mode),
        amount=body.amount,
        reference=body.reference,
        paid_at=datetime.now(timezone.utc),
    )
    db.add(p)
    audit(db, restaurant_id, user_id, "Invoice", inv.id, "PAYMENT",
          after={"mode": body.mode, "amount": body.amount})
    db.commit()
    return payment_summary(db, inv)


def payment_summary(db: Session, inv: Invoice) -> dict:
    paid = sum((Decimal(str(p.amount)) for p in _payments(db, inv.id)), Decimal(0))
    return {
        "invoiceId": inv.id,
        "total": money(inv.total),
        "paid": money(paid),
        "due": money(max(Decimal(0), Decimal(str(inv.total)) - paid)),
    }


def invoice_dict(db: Session, inv: Invoice) -> dict:
    items = (
        db.query(InvoiceItem)
        .filter(InvoiceItem.invoice_id == inv.id)
        .order_by(InvoiceItem.position.asc())
        .all()
    )
    return {
        "id": inv.id,
        "invoiceNo": inv.invoice_no,
        "invoiceType": inv.invoice_type.value,
        "tableNo": inv.table_no,
        "customerName": inv.customer_name,
        "customerPhone": inv.customer_phone,
        "subtotal": money(inv.subtotal),
        "discountType": inv.discount_type.value if inv.discount_type else None,
        "discountValue": money(inv.discount_value) if inv.discount_value is not None else None,
        "discountAmount": money(inv.discount_amount),
        "taxable": money(inv.taxable),
        "gstMode": inv.gst_mode.value,
        "cgstRate": money(inv.cgst_rate),
        "sgstRate": money(inv.sgst_rate),
        "igstRate": money(inv.igst_rate),
        "cgstAmount": money(inv.cgst_amount),
        "sgstAmount": money(inv.sgst_amount),
        "igstAmount": money(inv.igst_amount),
        "total": money(inv.total),
        "createdAt": inv.created_at,
        "items": [
            {
                "name": it.name_snapshot,
                "qty": it.qty,
                "unitPrice": money(it.unit_price),
                "lineTotal": money(it.line_total),
                "modifiers": it.modifiers or [],
            }
            for it in items
        ],
        "payments": [
            {"mode": p.mode.value, "amount": money(p.amount), "reference": p.reference, "paidAt": p.paid_at}
            for p in _payments(db, inv.id)
        ],
        "printPath": print_path(inv.id),
    }


# ── delivery ────────────────────────────────────────────────────────────────

def deliver_invoice(db: Session, restaurant_id: str, invoice_id: str, user_id: str | None, body: DeliveryIn) -> dict:
    """Queue the invoice link for SMS, email or WhatsApp.

    Only an outbox row is written (status ``PENDING``); sending is left to
    whatever drains the outbox. Phone channels fall back to the customer
    phone captured on the invoice.
    """
    inv = get_invoice(db, restaurant_id, invoice_id)
    channel = DeliveryChannel(body.channel)

    to_phone = body.to_phone or inv.customer_phone
    if channel in (DeliveryChannel.SMS, DeliveryChannel.WHATSAPP) and not to_phone:
        raise PhoneRequired()
    if channel == DeliveryChannel.EMAIL and not body.to_email:
        raise EmailRequired()

    url = f"{settings.APP_BASE_URL.rstrip('/')}{print_path(inv.id)}"
    d = InvoiceDelivery(
        restaurant_id=restaurant_id,
        invoice_id=inv.id,
        channel=channel,
        status="PENDING",
        to_phone=to_phone,
        to_email=body.to_email,
        message=body.message or f"Invoice {inv.invoice_no}: {url}",
        provider="OUTBOX",
    )
    db.add(d)
    audit(db, restaurant_id, user_id, "Invoice", inv.id, "DELIVER", after={"channel": channel.value})
    db.commit()
    logger.info("queued %s delivery for invoice %s", channel.value, inv.invoice_no)
    return {
        "id": d.id,
        "invoiceId": d.invoice_id,
        "channel": d.channel.value,
        "status": d.status,
        "toPhone": d.to_phone,
        "toEmail": d.to_email,
        "message": d.message,
        "provider": d.provider,
    }
