from datetime import datetime, timezone

import jwt
from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dinebill.db import get_db
from dinebill.models.core import GstMode, Restaurant, User, UserRole, UserSession
from dinebill.schemas.common import Token
from dinebill.schemas.setup import LoginIn, OwnerIn, RefreshIn, RegisterIn
from dinebill.util.errors import Conflict, Unauthenticated
from dinebill.util.security import (
    REFRESH, create_refresh_token, create_token, decode_token, hash_pw, refresh_expiry, verify_pw,
)

router = APIRouter(prefix="/auth", tags=["auth"])


def _login_taken(db: Session, owner: OwnerIn) -> bool:
    ids = []
    if owner.email:
        ids.append(User.email == owner.email)
    if owner.phone:
        ids.append(User.phone == owner.phone)
    return db.query(User.id).filter(or_(*ids)).first() is not None


def _taken() -> Conflict:
    return Conflict("email or phone already registered", code="EMAIL_OR_PHONE_TAKEN")


@router.post("/register", response_model=Token)
def register(body: RegisterIn, db: Session = Depends(get_db)):
    """Create a restaurant together with its OWNER account."""
    owner = body.owner
    if _login_taken(db, owner):
        raise _taken()

    rb = body.restaurant
    r = Restaurant(
        name=rb.name, gstin=rb.gstin, phone=rb.phone, address=rb.address,
        gst_mode=GstMode(rb.gst_mode),
        cgst_rate=rb.cgst_rate, sgst_rate=rb.sgst_rate, igst_rate=rb.igst_rate,
        invoice_prefix=rb.invoice_prefix, invoice_seq=0,
    )
    u = User(
        name=owner.name, email=owner.email, phone=owner.phone,
        pass_hash=hash_pw(owner.password), role=UserRole.OWNER,
    )
    try:
        db.add(r)
        db.flush()
        u.restaurant_id = r.id
        db.add(u)
        db.commit()
    except IntegrityError:
        # a concurrent registration claimed the same login between check and insert
        db.rollback()
        raise _taken()
    return Token(access_token=create_token(u.id, r.id, u.role.value), role=u.role.value, restaurant_id=r.id)


def _issue(db: Session, user: User, session: UserSession | None = None) -> Token:
    refresh = create_refresh_token(user.id, user.restaurant_id, user.role.value)
    if session is None:
        session = UserSession(user_id=user.id)
        db.add(session)
    session.refresh_token = refresh
    session.expires_at = refresh_expiry()
    db.commit()
    return Token(access_token=create_token(user.id, user.restaurant_id, user.role.value),
                 refresh_token=refresh, role=user.role.value, restaurant_id=user.restaurant_id)


@router.post("/login", response_model=Token)
def login(body: LoginIn, db: Session = Depends(get_db)):
    user = (
        db.query(User)
        .filter(User.active.is_(True), or_(User.email == body.identifier, User.phone == body.identifier))
        .first()
    )
    if not user or not verify_pw(user.pass_hash, body.password):
        raise Unauthenticated("Invalid credentials", code="INVALID_CREDENTIALS")
    return _issue(db, user)


@router.post("/refresh", response_model=Token)
def refresh(body: RefreshIn, db: Session = Depends(get_db)):
    """Swap a refresh token for a new pair; the presented token is retired."""
    try:
        decode_token(body.refresh_token, typ=REFRESH)
    except jwt.PyJWTError:
        raise Unauthenticated("Invalid refresh token", code="INVALID_REFRESH_TOKEN")

    session = (
        db.query(UserSession)
        .filter(
            UserSession.refresh_token == body.refresh_token,
            UserSession.revoked_at.is_(None),
            UserSession.expires_at > datetime.now(timezone.utc),
        )
        .first()
    )
    if not session:
        raise Unauthenticated("Session expired", code="SESSION_EXPIRED")

    user = db.get(User, session.user_id)
    if not user or not user.active:
        raise Unauthenticated("User inactive", code="USER_INACTIVE")
    return _issue(db, user, session)
