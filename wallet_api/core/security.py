import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

import bcrypt
from fastapi import Header, HTTPException, status
from jose import ExpiredSignatureError, JWTError, jwt

from wallet_api.core.config import settings
from wallet_api.db import dynamo

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def get_password_hash(password: str) -> str:
    hashed = bcrypt.hashpw(password.encode("utf-8")[:BCRYPT_MAX_BYTES], bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES],
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        # Stored hash is not a bcrypt hash
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a JWT carrying ``data`` plus issue time, expiry and a unique id."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"iat": now, "exp": now + expires_delta, "jti": uuid4().hex})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_refresh_token() -> str:
    return str(uuid4())


def generate_tokens(user_id: str) -> Dict[str, str]:
    return {
        "access_token": create_access_token(data={"sub": user_id}),
        "refresh_token": create_refresh_token(),
    }


def now_epoch() -> int:
    return int(datetime.now(timezone.utc).timestamp())


def refresh_token_expiry() -> int:
    """Epoch second at which a refresh token issued now stops being accepted."""
    expires = datetime.now(timezone.utc) + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    return int(expires.timestamp())


def decode_access_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token expired")
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")


def token_expiry(token: str) -> Optional[int]:
    """Read the ``exp`` claim without verifying the token. None if unreadable."""
    try:
        exp = jwt.get_unverified_claims(token).get("exp")
    except JWTError:
        return None
    return int(exp) if exp is not None else None


@dataclass
class AuthenticatedUser:
    user: Dict[str, Any]
    token: str

    @property
    def user_id(self) -> str:
        return self.user["user_id"]


def get_current_user(authorization: Optional[str] = Header(None)) -> AuthenticatedUser:
    """Resolve the caller from a bearer access token."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token required")

    token = authorization[len("Bearer "):].strip()
    payload = decode_access_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")

    user = dynamo.get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No user found")

    if dynamo.is_token_blacklisted(token):
        logger.warning(f"Blacklisted access token presented for user {user_id}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token blacklisted")

    return AuthenticatedUser(user=user, token=token)
