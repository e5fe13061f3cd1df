"""Per-restaurant invoice numbering."""

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from sqlalchemy import update
from sqlalchemy.orm import Session

from dinebill.config import settings
from dinebill.models.core import Restaurant
from dinebill.util.errors import TenantNotFound

logger = logging.getLogger("dinebill.invoice_no")


def format_invoice_no(prefix: str, seq: int, when: datetime) -> str:
    return f"{prefix}-{when:%Y%m}-{seq:06d}"


def next_invoice_no(db: Session, restaurant_id: str, now: datetime | None = None) -> str:
    """Reserve the next invoice number for ``restaurant_id``.

    The counter is bumped and read back in one ``UPDATE ... RETURNING`` so the
    store's row lock is the only serialization point; no application lock is
    taken. The increment is committed straight away: a number handed out here
    is consumed even if the caller's later work fails.

    ``yyyymm`` comes from the clock at generation time in ``settings.TZ``.
    """
    # zone is resolved before the counter moves
    when = now or datetime.now(ZoneInfo(settings.TZ))
    stmt = (
        update(Restaurant)
        .where(Restaurant.id == restaurant_id)
        .values(invoice_seq=Restaurant.invoice_seq + 1)
        .returning(Restaurant.invoice_seq, Restaurant.invoice_prefix)
        .execution_options(synchronize_session=False)
    )
    row = db.execute(stmt).first()
    if row is None:
        raise TenantNotFound()
    db.commit()

    seq, prefix = row
    invoice_no = format_invoice_no(prefix or "INV", int(seq), when)
    logger.debug("reserved %s for restaurant %s", invoice_no, restaurant_id)
    return invoice_no
