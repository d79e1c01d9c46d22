# ============================================================
# auth.py — Bearer token → Principal
# ============================================================
# Tokens are HS256 JWTs carrying userId / role / isActive, issued
# by the auth service. Route handlers depend on one of the
# *_principal dependencies below.
# ============================================================

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header

from config import AUTH_TOKEN_SECRET, AUTH_TOKEN_ALGORITHM, AUTH_TOKEN_TTL_HOURS, logger
from errors import AuthError, AccessDeniedError

ROLES = ("shopper", "seller", "admin")


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str
    is_active: bool
    email: Optional[str] = None


def issue_token(user_id: int, role: str, is_active: bool = True, email: Optional[str] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "userId": user_id,
        "role": role,
        "isActive": is_active,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=AUTH_TOKEN_TTL_HOURS)).timestamp()),
    }
    return jwt.encode(payload, AUTH_TOKEN_SECRET, algorithm=AUTH_TOKEN_ALGORITHM)


def decode_token(token: str) -> Principal:
    try:
        payload = jwt.decode(token, AUTH_TOKEN_SECRET, algorithms=[AUTH_TOKEN_ALGORITHM])
    except jwt.PyJWTError as ex:
        logger.warning(f"[auth] token rejected: {ex}")
        raise AuthError("Failed to authenticate token.")

    try:
        return Principal(
            user_id=int(payload["userId"]),
            role=str(payload["role"]),
            is_active=bool(payload.get("isActive", False)),
            email=payload.get("email"),
        )
    except (KeyError, TypeError, ValueError):
        raise AuthError("Failed to authenticate token.")


def get_principal(authorization: Optional[str] = Header(None)) -> Principal:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Token is not provided or invalid")
    return decode_token(authorization.split(" ", 1)[1].strip())


def _require(principal: Principal, role: str, active: bool = True) -> Principal:
    if principal.role != role:
        raise AccessDeniedError(f"Access denied: {role.capitalize()}s only.")
    if active and not principal.is_active:
        raise AccessDeniedError("Your account is deactivated.")
    return principal


# ── Route dependencies ───────────────────────────────────────

def shopper_principal(principal: Principal = Depends(get_principal)) -> Principal:
    return _require(principal, "shopper")


def seller_principal(principal: Principal = Depends(get_principal)) -> Principal:
    return _require(principal, "seller")


def seller_principal_any(principal: Principal = Depends(get_principal)) -> Principal:
    """Seller role, deactivated accounts allowed (read-only routes)."""
    return _require(principal, "seller", active=False)


def shopper_principal_any(principal: Principal = Depends(get_principal)) -> Principal:
    return _require(principal, "shopper", active=False)


def admin_principal(principal: Principal = Depends(get_principal)) -> Principal:
    return _require(principal, "admin")
