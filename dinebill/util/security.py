import uuid
import jwt
from datetime import datetime, timedelta, timezone
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError
from dinebill.config import settings

ph = PasswordHasher()

ACCESS = "access"
REFRESH = "refresh"

def hash_pw(p: str) -> str:
    return ph.hash(p)

def verify_pw(hashv: str, p: str) -> bool:
    try:
        ph.verify(hashv, p)
        return True
    except (VerificationError, InvalidHashError):
        return False

def _encode(sub: str, restaurant_id: str, role: str, typ: str, minutes: int) -> str:
    now = datetime.now(timezone.utc)
    exp = now + timedelta(minutes=minutes)
    payload = {
        "sub": sub, "restaurant_id": restaurant_id, "role": role, "typ": typ,
        "iss": settings.JWT_ISS, "iat": int(now.timestamp()), "exp": int(exp.timestamp()),
    }
    if typ == REFRESH:
        # two refreshes in the same second must still differ
        payload["jti"] = str(uuid.uuid4())
    return jwt.encode(payload, settings.APP_SECRET, algorithm="HS256")

def create_token(sub: str, restaurant_id: str, role: str) -> str:
    return _encode(sub, restaurant_id, role, ACCESS, settings.JWT_EXP_MIN)

def create_refresh_token(sub: str, restaurant_id: str, role: str) -> str:
    return _encode(sub, restaurant_id, role, REFRESH, settings.JWT_REFRESH_EXP_MIN)

def refresh_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_REFRESH_EXP_MIN)

def decode_token(token: str, typ: str = ACCESS) -> dict:
    data = jwt.decode(token, settings.APP_SECRET, algorithms=["HS256"], issuer=settings.JWT_ISS)
    if data.get("typ", ACCESS) != typ:
        raise jwt.InvalidTokenError(f"expected {typ} token")
    return data
