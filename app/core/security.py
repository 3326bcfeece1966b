# app/core/security.py

import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple

import bcrypt
from fastapi import Cookie, Depends, Header, HTTPException, Response
from jose import jwt, JWTError
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core import config
from app.core.database import get_db


# ==================== PASSWORDS ====================

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def generate_reset_token() -> Tuple[str, str]:
    """
    Returns (raw_token, hashed_token).
    Only the sha256 hash is stored; the raw token goes to the user.
    """
    raw = secrets.token_hex(32)
    return raw, hash_reset_token(raw)


def hash_reset_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


# ==================== JWT ====================

def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    expire = datetime.utcnow() + timedelta(minutes=expires_minutes or config.JWT_EXPIRE_MINUTES)
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or Expired Token")


def set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=config.COOKIE_NAME,
        value=token,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="strict",
        max_age=24 * 60 * 60,
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(
        key=config.COOKIE_NAME,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="strict",
    )


# ==================== DEPENDENCIES ====================

def _extract_token(authorization: Optional[str], cookie_token: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip()
    return cookie_token


async def get_current_user(
    authorization: Optional[str] = Header(None),
    token: Optional[str] = Cookie(None),
    db: AsyncIOMotorDatabase = Depends(get_db),
) -> dict:
    """
    Resolve the authenticated user from a Bearer header or the auth cookie.

    Raises:
        401: Missing/invalid token or the user no longer exists
    """
    raw_token = _extract_token(authorization, token)
    if not raw_token:
        raise HTTPException(status_code=401, detail="You are not logged in. Please log in to get access.")

    payload = decode_access_token(raw_token)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token: missing user_id")

    user = await db.users.find_one({"user_id": user_id})
    if not user:
        raise HTTPException(status_code=401, detail="User no longer exists")

    await db.users.update_one(
        {"user_id": user_id},
        {"$set": {"last_active": datetime.utcnow()}}
    )
    return user


async def get_current_user_id(user: dict = Depends(get_current_user)) -> str:
    return user["user_id"]


def require_roles(*roles: str):
    """Dependency factory: only users whose role is in ``roles`` pass"""

    async def _role_dependency(user: dict = Depends(get_current_user)) -> dict:
        if user.get("role") not in roles:
            raise HTTPException(
                status_code=403,
                detail="You do not have permission to perform this action"
            )
        return user

    return _role_dependency
