# dinebill/routers/tables.py
from sqlalchemy.exc import IntegrityError
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from dinebill.db import get_db
from dinebill.deps import ALL_STAFF, MANAGERS, AuthContext, require_role
from dinebill.models.core import RestaurantTable
from dinebill.schemas.setup import TableIn
from dinebill.util.errors import Conflict, TableNotFound
from dinebill.util.tokens import table_token

router = APIRouter(prefix="/setup/tables", tags=["tables"])


def _row_from_table(t: RestaurantTable) -> dict:
    return {
        "id": t.id,
        "tableNo": t.table_no,
        "capacity": t.capacity,
        "isEnabled": t.is_enabled,
        "publicToken": t.public_token,
    }


def _ensure_canonical_token(t: RestaurantTable) -> bool:
    """Overwrite a missing or divergent token; True when something changed."""
    expected = table_token(t.restaurant_id, t.table_no)
    if t.public_token == expected:
        return False
    t.public_token = expected
    return True


# ------------------------------------------------------------------
# POST /setup/tables  -> create new table with its permanent token
# ------------------------------------------------------------------
@router.post("")
def create_table(body: TableIn, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_role(*MANAGERS))):
    t = RestaurantTable(
        restaurant_id=ctx.restaurant_id,
        table_no=body.table_no,
        capacity=body.capacity,
        is_enabled=body.is_enabled,
        public_token=table_token(ctx.restaurant_id, body.table_no),
    )
    try:
        db.add(t)
        db.commit()
        db.refresh(t)
    except IntegrityError:
        db.rollback()
        raise Conflict("table with this number already exists", code="TABLE_EXISTS")
    return {"table": _row_from_table(t)}


# ------------------------------------------------------------------
# GET /setup/tables  -> list tables, healing any stale tokens
# ------------------------------------------------------------------
@router.get("")
def list_tables(db: Session = Depends(get_db), ctx: AuthContext = Depends(require_role(*ALL_STAFF))):
    rows: List[RestaurantTable] = (
        db.query(RestaurantTable)
        .filter(RestaurantTable.restaurant_id == ctx.restaurant_id)
        .order_by(RestaurantTable.table_no.asc())
        .all()
    )
    changed = [t for t in rows if _ensure_canonical_token(t)]
    if changed:
        db.commit()
    return {"tables": [_row_from_table(t) for t in rows]}


# ------------------------------------------------------------------
# POST /setup/tables/{table_id}/regenerate-token
# Tokens are permanent: this recomputes the canonical value and only
# writes when the stored one diverged.
# ------------------------------------------------------------------
@router.post("/{table_id}/regenerate-token")
def regenerate_token(table_id: str, db: Session = Depends(get_db), ctx: AuthContext = Depends(require_role(*MANAGERS))):
    t = (
        db.query(RestaurantTable)
        .filter(RestaurantTable.id == table_id, RestaurantTable.restaurant_id == ctx.restaurant_id)
        .first()
    )
    if not t:
        raise TableNotFound()
    if _ensure_canonical_token(t):
        db.commit()
        db.refresh(t)
    return {"table": _row_from_table(t)}
