from dataclasses import dataclass

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from dinebill.models.core import UserRole
from dinebill.util.errors import Forbidden, Unauthenticated
from dinebill.util.security import decode_token

auth_scheme = HTTPBearer(auto_error=False)

ALL_STAFF = (UserRole.OWNER, UserRole.MANAGER, UserRole.CASHIER, UserRole.KITCHEN)
FRONT_DESK = (UserRole.OWNER, UserRole.MANAGER, UserRole.CASHIER)
MANAGERS = (UserRole.OWNER, UserRole.MANAGER)


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    restaurant_id: str
    role: UserRole


def require_auth(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
) -> AuthContext:
    # EventSource cannot set headers, so the stream passes ?token=
    token = creds.credentials if creds else request.query_params.get("token")
    if not token:
        raise Unauthenticated()
    try:
        data = decode_token(token)
        return AuthContext(user_id=data["sub"], restaurant_id=data["restaurant_id"], role=UserRole(data["role"]))
    except (jwt.PyJWTError, KeyError, ValueError):
        raise Unauthenticated("Invalid token")


def require_role(*allowed: UserRole):
    def _dep(ctx: AuthContext = Depends(require_auth)) -> AuthContext:
        if ctx.role not in allowed:
            raise Forbidden(f"Role {ctx.role.value} not allowed")
        return ctx
    return _dep
