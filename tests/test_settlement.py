from decimal import Decimal

import pytest

from dinebill.db import SessionLocal
from dinebill.models.core import GstMode, Invoice, InvoiceDelivery, InvoiceItem, Order, OrderStatus, Payment, Restaurant
from dinebill.realtime.kds import TABLE_SETTLED
from dinebill.schemas.billing import DeliveryIn, InvoiceIn, PaymentIn, SettleTableIn
from dinebill.schemas.orders import OrderIn, OrderItemIn
from dinebill.services import orders as orders_svc
from dinebill.services import settlement
from dinebill.util.errors import EmailRequired, NoOpenOrders, PhoneRequired, SettlementConflict


def _item(name, price, qty):
    return OrderItemIn(menu_item_id=f"m-{name.lower()}", name_snapshot=name, price_snapshot=price, qty=qty)


def _place(db, bus, rid, table_no, *items):
    return orders_svc.create_order(db, bus, rid, None, OrderIn(type="DINE_IN", table_no=table_no, items=list(items)))


def _settle(table_no="T1", amount=0, discount=None):
    body = {"table_no": table_no, "payment": PaymentIn(mode="CASH", amount=amount)}
    if discount:
        body["discount"] = discount
    return SettleTableIn(**body)


def test_merge_lines_keeps_price_drift_apart():
    class It:
        def __init__(self, name, price, qty):
            self.name_snapshot, self.price_snapshot, self.qty = name, price, qty

    lines = settlement.merge_lines([It("Tea", 10, 2), It("Samosa", 15, 1), It("Tea", "10.00", 1), It("Tea", 12, 1)])
    assert [(l.name, l.unit_price, l.qty, l.line_total) for l in lines] == [
        ("Tea", Decimal("10"), 3, Decimal("30")),
        ("Samosa", Decimal("15"), 1, Decimal("15")),
        ("Tea", Decimal("12"), 1, Decimal("12")),
    ]


def test_settle_table_consolidates_open_orders(db, bus, recorded, restaurant_id):
    a = _place(db, bus, restaurant_id, "T1", _item("Tea", 10, 2), _item("Samosa", 15, 1))
    b = _place(db, bus, restaurant_id, "T1", _item("Tea", 10, 1))
    other = _place(db, bus, restaurant_id, "T2", _item("Coffee", 20, 1))
    recorded.clear()

    res = settlement.settle_table(db, bus, restaurant_id, None, _settle(amount=47.26))

    inv = db.get(Invoice, res.invoice_id)
    assert inv.invoice_no == res.invoice_no
    assert res.invoice_no.startswith("INV-") and res.invoice_no.endswith("-000001")
    assert res.print_path.endswith(f"/{res.invoice_id}")
    assert res.warnings == []

    items = db.query(InvoiceItem).filter(InvoiceItem.invoice_id == inv.id).order_by(InvoiceItem.position).all()
    assert [(i.name_snapshot, i.qty, Decimal(str(i.unit_price)), Decimal(str(i.line_total))) for i in items] == [
        ("Tea", 3, Decimal("10"), Decimal("30")),
        ("Samosa", 1, Decimal("15"), Decimal("15")),
    ]
    assert Decimal(str(inv.subtotal)) == Decimal("45")
    assert Decimal(str(inv.total)) == Decimal("47.26")
    assert res.total == Decimal("47.26")

    db.expire_all()
    assert db.get(Order, a.id).invoice_id == inv.id
    assert db.get(Order, b.id).invoice_id == inv.id
    assert db.get(Order, other.id).invoice_id is None

    pays = db.query(Payment).filter(Payment.invoice_id == inv.id).all()
    assert len(pays) == 1 and pays[0].mode.value == "CASH"

    assert [(e.type, e.payload()["tableNo"], e.payload()["invoiceId"]) for e in recorded] == [
        (TABLE_SETTLED, "T1", inv.id),
    ]


def test_settled_orders_are_not_billed_twice(db, bus, restaurant_id):
    _place(db, bus, restaurant_id, "T1", _item("Tea", 10, 1))
    settlement.settle_table(db, bus, restaurant_id, None, _settle())
    with pytest.raises(NoOpenOrders):
        settlement.settle_table(db, bus, restaurant_id, None, _settle())
    assert db.query(Invoice).count() == 1


def test_settle_empty_table(db, bus, recorded, restaurant_id):
    with pytest.raises(NoOpenOrders) as ei:
        settlement.settle_table(db, bus, restaurant_id, None, _settle("T9"))
    assert ei.value.code == "NO_OPEN_ORDERS_FOR_TABLE"
    assert db.query(Invoice).count() == 0
    # no number was consumed either
    assert db.get(Restaurant, restaurant_id).invoice_seq == 0
    assert recorded == []


def test_cancelled_orders_are_left_out(db, bus, restaurant_id):
    keep = _place(db, bus, restaurant_id, "T1", _item("Tea", 10, 1))
    dropped = _place(db, bus, restaurant_id, "T1", _item("Cake", 90, 1))
    orders_svc.set_status(db, bus, restaurant_id, dropped.id, "CANCELLED", None)

    res = settlement.settle_table(db, bus, restaurant_id, None, _settle())
    inv = db.get(Invoice, res.invoice_id)
    assert Decimal(str(inv.subtotal)) == Decimal("10")
    db.expire_all()
    assert db.get(Order, keep.id).invoice_id == inv.id
    assert db.get(Order, dropped.id).invoice_id is None


def test_completed_orders_are_still_billed(db, bus, restaurant_id):
    o = _place(db, bus, restaurant_id, "T1", _item("Tea", 10, 1))
    orders_svc.set_status(db, bus, restaurant_id, o.id, "COMPLETED", None)
    res = settlement.settle_table(db, bus, restaurant_id, None, _settle())
    db.expire_all()
    assert db.get(Order, o.id).invoice_id == res.invoice_id
    assert db.get(Order, o.id).status == OrderStatus.COMPLETED


def test_price_change_between_rounds_stays_on_separate_lines(db, bus, restaurant_id):
    _place(db, bus, restaurant_id, "T1", _item("Tea", 10, 2))
    _place(db, bus, restaurant_id, "T1", _item("Tea", 12, 1))
    res = settlement.settle_table(db, bus, restaurant_id, None, _settle())
    lines = db.query(InvoiceItem).filter(InvoiceItem.invoice_id == res.invoice_id).order_by(InvoiceItem.position).all()
    assert [(l.qty, Decimal(str(l.unit_price))) for l in lines] == [(2, Decimal("10")), (1, Decimal("12"))]


def test_interstate_restaurant_and_discount_warning(db, bus, make_restaurant):
    rid = make_restaurant(gst_mode=GstMode.IGST, cgst=9, sgst=9, igst=18)
    _place(db, bus, rid, "T1", _item("Tea", 10, 2))
    res = settlement.settle_table(db, bus, rid, None, _settle(discount={"type": "FLAT", "value": 50}))
    inv = db.get(Invoice, res.invoice_id)
    assert inv.gst_mode == GstMode.IGST
    assert Decimal(str(inv.taxable)) == 0
    assert Decimal(str(inv.igst_amount)) == 0
    assert res.total == 0
    assert res.warnings == [settlement.DISCOUNT_EXCEEDS_SUBTOTAL]


def test_rate_snapshot_survives_later_settings_change(db, bus, restaurant_id):
    _place(db, bus, restaurant_id, "T1", _item("Tea", 100, 1))
    res = settlement.settle_table(db, bus, restaurant_id, None, _settle())
    db.get(Restaurant, restaurant_id).cgst_rate = 9
    db.commit()
    inv = db.get(Invoice, res.invoice_id)
    assert Decimal(str(inv.cgst_rate)) == Decimal("2.5")
    assert Decimal(str(inv.cgst_amount)) == Decimal("2.5")


def test_concurrent_change_aborts_settlement(db, bus, recorded, restaurant_id, monkeypatch):
    _place(db, bus, restaurant_id, "T1", _item("Tea", 10, 1))
    victim_id = _place(db, bus, restaurant_id, "T1", _item("Samosa", 15, 1)).id
    recorded.clear()

    reserve = settlement.next_invoice_no

    def reserve_then_interfere(session, rid, now=None):
        no = reserve(session, rid, now)
        # another terminal cancels one of the orders mid-settlement
        other = SessionLocal()
        try:
            other.get(Order, victim_id).status = OrderStatus.CANCELLED
            other.commit()
        finally:
            other.close()
        return no

    monkeypatch.setattr(settlement, "next_invoice_no", reserve_then_interfere)

    with pytest.raises(SettlementConflict) as ei:
        settlement.settle_table(db, bus, restaurant_id, None, _settle())
    assert ei.value.code == "SETTLEMENT_CONFLICT"

    assert db.query(Invoice).count() == 0
    assert db.query(Payment).count() == 0
    assert db.query(Order).filter(Order.invoice_id.isnot(None)).count() == 0
    # the reserved number stays burned
    assert db.get(Restaurant, restaurant_id).invoice_seq == 1
    assert recorded == []


def test_counter_invoice(db, restaurant_id):
    body = InvoiceIn(
        invoice_type="TAKEAWAY",
        items=[{"name": "Tea", "qty": 2, "price": 10}, {"name": "Tea", "qty": 1, "price": 10}],
        payment={"mode": "UPI", "amount": 31.5},
    )
    res = settlement.create_invoice(db, restaurant_id, None, body)
    inv = settlement.get_invoice(db, restaurant_id, res.invoice_id)
    data = settlement.invoice_dict(db, inv)
    assert data["invoiceType"] == "TAKEAWAY"
    assert data["subtotal"] == 30.0
    assert data["total"] == 31.5
    # ad-hoc lines are billed as entered
    assert [(i["name"], i["qty"]) for i in data["items"]] == [("Tea", 2), ("Tea", 1)]
    assert data["payments"][0]["mode"] == "UPI"


def test_partial_payments(db, bus, restaurant_id):
    _place(db, bus, restaurant_id, "T1", _item("Tea", 10, 2))
    res = settlement.settle_table(db, bus, restaurant_id, None, _settle(amount=10))
    assert res.total == Decimal("21.00")

    summary = settlement.add_payment(db, restaurant_id, res.invoice_id, None, PaymentIn(mode="CARD", amount=5))
    assert summary == {"invoiceId": res.invoice_id, "total": 21.0, "paid": 15.0, "due": 6.0}
    summary = settlement.add_payment(db, restaurant_id, res.invoice_id, None, PaymentIn(mode="CASH", amount=10))
    assert summary["due"] == 0.0


def test_restaurants_sharing_a_prefix_number_independently(db, bus, make_restaurant):
    a, b = make_restaurant(name="Alpha"), make_restaurant(name="Beta")
    for rid in (a, b):
        _place(db, bus, rid, "T1", _item("Tea", 10, 1))
    no_a = settlement.settle_table(db, bus, a, None, _settle()).invoice_no
    no_b = settlement.settle_table(db, bus, b, None, _settle()).invoice_no
    assert no_a == no_b
    assert no_a.endswith("-000001")


def _counter_invoice(db, rid, phone=None):
    body = InvoiceIn(
        invoice_type="TAKEAWAY", customer_phone=phone,
        items=[{"name": "Tea", "qty": 1, "price": 10}], payment={"mode": "CASH", "amount": 10.5},
    )
    return settlement.create_invoice(db, rid, None, body)


def test_delivery_queues_outbox_row_with_print_link(db, restaurant_id):
    res = _counter_invoice(db, restaurant_id, phone="9876543210")
    d = settlement.deliver_invoice(db, restaurant_id, res.invoice_id, None, DeliveryIn())
    assert (d["channel"], d["status"], d["provider"], d["toPhone"]) == ("SMS", "PENDING", "OUTBOX", "9876543210")
    assert d["message"] == f"Invoice {res.invoice_no}: http://localhost:8000/app/print/invoice/{res.invoice_id}"
    assert db.query(InvoiceDelivery).filter(InvoiceDelivery.invoice_id == res.invoice_id).count() == 1

    d = settlement.deliver_invoice(db, restaurant_id, res.invoice_id, None,
                                   DeliveryIn(channel="EMAIL", to_email="guest@example.com", message="Thanks!"))
    assert (d["toEmail"], d["message"]) == ("guest@example.com", "Thanks!")


def test_delivery_needs_a_recipient(db, restaurant_id):
    res = _counter_invoice(db, restaurant_id)
    with pytest.raises(PhoneRequired) as ei:
        settlement.deliver_invoice(db, restaurant_id, res.invoice_id, None, DeliveryIn(channel="SMS"))
    assert ei.value.code == "PHONE_REQUIRED"
    with pytest.raises(PhoneRequired):
        settlement.deliver_invoice(db, restaurant_id, res.invoice_id, None, DeliveryIn(channel="WHATSAPP"))
    with pytest.raises(EmailRequired) as ei:
        settlement.deliver_invoice(db, restaurant_id, res.invoice_id, None, DeliveryIn(channel="EMAIL"))
    assert ei.value.code == "EMAIL_REQUIRED"
    assert db.query(InvoiceDelivery).count() == 0

    d = settlement.deliver_invoice(db, restaurant_id, res.invoice_id, None,
                                   DeliveryIn(channel="WHATSAPP", to_phone="9123456789"))
    assert d["toPhone"] == "9123456789"


def test_delivery_over_http(client, restaurant_id, auth_headers, db, make_restaurant, headers_for):
    res = _counter_invoice(db, restaurant_id, phone="9876543210")
    r = client.post(f"/billing/invoices/{res.invoice_id}/deliver", json={}, headers=auth_headers)
    assert r.status_code == 200, r.text
    assert r.json()["delivery"]["status"] == "PENDING"

    r = client.post(f"/billing/invoices/{res.invoice_id}/deliver", json={"channel": "EMAIL"}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "EMAIL_REQUIRED"

    r = client.post(f"/billing/invoices/{res.invoice_id}/deliver", json={"channel": "FAX"}, headers=auth_headers)
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"

    stranger = headers_for(make_restaurant(name="Elsewhere"))
    r = client.post(f"/billing/invoices/{res.invoice_id}/deliver", json={}, headers=stranger)
    assert r.json()["error"]["code"] == "INVOICE_NOT_FOUND"
