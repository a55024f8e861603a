import os
from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, Header
from passlib.context import CryptContext
from sqlalchemy import select
from .models import AsyncSessionLocal
from .models.users import User, ROLE_ADMIN
from .errors import Unauthorized, Forbidden

# Prefer JWT_SECRET but support legacy JWT_SECRET_KEY for compatibility
SECRET = os.getenv('JWT_SECRET') or os.getenv('JWT_SECRET_KEY', 'devsecret')
REFRESH_SECRET = os.getenv('JWT_REFRESH_SECRET', 'devrefreshsecret')
ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv('ACCESS_TOKEN_EXPIRE_MINUTES', '15'))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv('REFRESH_TOKEN_EXPIRE_DAYS', '7'))

pwd_ctx = CryptContext(schemes=['bcrypt'], deprecated='auto')


def hash_password(password: str) -> str:
    return pwd_ctx.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return pwd_ctx.verify(password, password_hash)


def _encode(data: dict, secret: str, expires_delta: timedelta):
    to_encode = data.copy()
    to_encode.update({'exp': datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)


def create_access_token(user, expires_delta: timedelta = None):
    expires_delta = expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode({'sub': str(user.id), 'role': user.role, 'type': 'access'}, SECRET, expires_delta)


def create_refresh_token(user, expires_delta: timedelta = None):
    expires_delta = expires_delta or timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    return _encode({'sub': str(user.id), 'type': 'refresh'}, REFRESH_SECRET, expires_delta)


def decode_token(token: str, refresh: bool = False):
    try:
        payload = jwt.decode(token, REFRESH_SECRET if refresh else SECRET, algorithms=[ALGORITHM])
    except JWTError:
        return None
    expected = 'refresh' if refresh else 'access'
    if payload.get('type') != expected:
        return None
    return payload


def user_id_from_payload(payload) -> Optional[int]:
    try:
        return int(payload['sub'])
    except (KeyError, TypeError, ValueError):
        return None


def principal_for(user: User) -> dict:
    """Request-scoped view of the authenticated user, carrying campus and role context."""
    return {
        'id': user.id,
        'email': user.email,
        'name': user.name,
        'avatar': user.avatar,
        'campus_id': user.campus_id,
        'role': user.role,
        'is_verified': user.is_verified,
    }


async def load_user(user_id: int) -> Optional[User]:
    async with AsyncSessionLocal() as session:
        q = await session.execute(select(User).where(User.id == user_id))
        return q.scalars().first()


async def authenticate_token(token: Optional[str]) -> Optional[dict]:
    """Verify a bearer credential for the realtime handshake.

    Returns the principal, or None when the token is missing or invalid, the
    user no longer exists, or the account is not verified.
    """
    if not token:
        return None
    payload = decode_token(token)
    if not payload:
        return None
    user_id = user_id_from_payload(payload)
    if user_id is None:
        return None
    user = await load_user(user_id)
    if not user or not user.is_verified:
        return None
    return principal_for(user)


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


async def get_current_user(authorization: Optional[str] = Header(None)) -> dict:
    if not authorization:
        raise Unauthorized('Missing token')
    token = bearer_token(authorization)
    payload = decode_token(token) if token else None
    user_id = user_id_from_payload(payload) if payload else None
    if user_id is None:
        raise Unauthorized('Authentication failed')
    user = await load_user(user_id)
    if not user:
        raise Unauthorized('Invalid token')
    if not user.is_verified:
        raise Forbidden('Email not verified')
    return principal_for(user)


async def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    if current_user['role'] != ROLE_ADMIN:
        raise Forbidden('Admin access required')
    return current_user
