"""GST totals for an invoice.

Pure arithmetic: a subtotal, an optional discount and the restaurant's tax
configuration go in, a fully itemised :class:`Totals` comes out. Every money
field is rounded to paise on its own (ROUND_HALF_UP) and ``total`` is the sum
of the already rounded parts, so the invariant
``total == taxable + cgst + sgst + igst`` holds exactly.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from dinebill.models.core import DiscountType, GstMode

logger = logging.getLogger("dinebill.billing")

ZERO = Decimal("0.00")
_PAISE = Decimal("0.01")
_HUNDRED = Decimal(100)


def _dec(x) -> Decimal:
    # use string to avoid float binary artifacts
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x or 0))


def _r2(x) -> Decimal:
    return _dec(x).quantize(_PAISE, rounding=ROUND_HALF_UP)


def money(x) -> float:
    return float(_r2(x))


@dataclass(frozen=True)
class Discount:
    type: DiscountType
    value: Decimal


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount_amount: Decimal
    taxable: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    total: Decimal
    discount_capped: bool = False

    def as_dict(self) -> dict:
        return {
            "subtotal": money(self.subtotal),
            "discount_amount": money(self.discount_amount),
            "taxable": money(self.taxable),
            "cgst_amount": money(self.cgst_amount),
            "sgst_amount": money(self.sgst_amount),
            "igst_amount": money(self.igst_amount),
            "total": money(self.total),
        }


def discount_from(kind, value) -> Discount | None:
    if kind is None:
        return None
    if isinstance(kind, str):
        kind = DiscountType(kind)
    return Discount(type=kind, value=_dec(value))


def compute_totals(
    subtotal,
    discount: Discount | None,
    gst_mode: GstMode,
    cgst_rate=0,
    sgst_rate=0,
    igst_rate=0,
) -> Totals:
    sub = _r2(subtotal)
    gst_mode = GstMode(gst_mode)

    if discount is None:
        discount_amount = ZERO
    elif discount.type == DiscountType.FLAT:
        discount_amount = _r2(discount.value)
    else:
        discount_amount = _r2(sub * _dec(discount.value) / _HUNDRED)

    capped = discount_amount > sub
    if capped:
        logger.warning("discount %s exceeds subtotal %s; taxable clamped to 0", discount_amount, sub)
    taxable = max(ZERO, _r2(sub - discount_amount))

    # the inactive family is forced to zero whatever rates are stored
    if gst_mode == GstMode.CGST_SGST:
        cgst = _r2(taxable * _dec(cgst_rate) / _HUNDRED)
        sgst = _r2(taxable * _dec(sgst_rate) / _HUNDRED)
        igst = ZERO
    else:
        cgst = sgst = ZERO
        igst = _r2(taxable * _dec(igst_rate) / _HUNDRED)

    return Totals(
        subtotal=sub,
        discount_amount=discount_amount,
        taxable=taxable,
        cgst_amount=cgst,
        sgst_amount=sgst,
        igst_amount=igst,
        total=_r2(taxable + cgst + sgst + igst),
        discount_capped=capped,
    )


@dataclass(frozen=True)
class TaxConfig:
    gst_mode: GstMode
    cgst_rate: Decimal
    sgst_rate: Decimal
    igst_rate: Decimal

    @classmethod
    def of(cls, restaurant) -> "TaxConfig":
        return cls(
            gst_mode=GstMode(restaurant.gst_mode),
            cgst_rate=_dec(restaurant.cgst_rate),
            sgst_rate=_dec(restaurant.sgst_rate),
            igst_rate=_dec(restaurant.igst_rate),
        )


def totals_for(tax: TaxConfig, subtotal, discount: Discount | None) -> Totals:
    return compute_totals(
        subtotal,
        discount,
        tax.gst_mode,
        cgst_rate=tax.cgst_rate,
        sgst_rate=tax.sgst_rate,
        igst_rate=tax.igst_rate,
    )
