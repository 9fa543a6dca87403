import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from wallet_api.core.security import (
    AuthenticatedUser,
    generate_tokens,
    get_current_user,
    get_password_hash,
    now_epoch,
    refresh_token_expiry,
    token_expiry,
    verify_password,
)
from wallet_api.db import dynamo
from wallet_api.models.user import (
    AuthResponse,
    RefreshRequest,
    UserCreate,
    UserInDB,
    UserLogin,
    UserProfile,
    UserPublic,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _live_tokens(tokens: List[str], *extra: str) -> List[str]:
    """Drop expired access tokens from a user's list and append new ones."""
    now = now_epoch()
    kept = [token for token in tokens if (token_expiry(token) or 0) > now]
    kept.extend(extra)
    return kept


def _start_session(user: dict) -> dict:
    """Issue a token pair for ``user`` and store it on the user record."""
    tokens = generate_tokens(user["user_id"])
    updated = dynamo.update_user(
        user["user_id"],
        {
            "refresh_token": tokens["refresh_token"],
            "refresh_token_expires_at": refresh_token_expiry(),
            "tokens": _live_tokens(user.get("tokens", []), tokens["access_token"]),
        },
    )
    if not updated:
        raise HTTPException(status_code=500, detail="Error saving session")
    return tokens


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(user: UserCreate):
    email = user.email.lower()
    if dynamo.get_user_by_email(email):
        logger.warning("Registration attempt with existing email")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already in use")

    user_db = UserInDB(name=user.name, email=email, password_hash=get_password_hash(user.password))
    tokens = generate_tokens(user_db.user_id)
    user_db.refresh_token = tokens["refresh_token"]
    user_db.refresh_token_expires_at = refresh_token_expiry()
    user_db.tokens = [tokens["access_token"]]

    try:
        saved = dynamo.put_user(user_db.model_dump())
    except dynamo.DuplicateEmailError:
        logger.warning("Registration lost the race for an existing email")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already in use")
    if not saved:
        raise HTTPException(status_code=500, detail="Error saving user")

    logger.info(f"New user registered: {user_db.user_id}")
    return AuthResponse(
        access_token=tokens["access_token"],
        refresh_token=tokens["refresh_token"],
        user=UserPublic(**user_db.model_dump()),
    )


@router.post("/login", response_model=AuthResponse)
def login(login_data: UserLogin):
    user = dynamo.get_user_by_email(login_data.email.lower())
    if not user or not verify_password(login_data.password, user["password_hash"]):
        logger.warning("Invalid login attempt")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    tokens = _start_session(user)
    logger.info(f"Login successful for user: {user['user_id']}")
    return AuthResponse(
        access_token=tokens["access_token"],
        refresh_token=tokens["refresh_token"],
        user=UserPublic(**user),
    )


@router.get("/profile", response_model=UserProfile)
def get_user_profile(current: AuthenticatedUser = Depends(get_current_user)):
    """Get current user profile"""
    return UserProfile(name=current.user["name"], email=current.user["email"])


@router.api_route("/logout", methods=["GET", "POST"])
def logout(current: AuthenticatedUser = Depends(get_current_user)):
    """Revoke the presented access token and the user's refresh token until they expire."""
    user = current.user
    if not dynamo.blacklist_token(current.token, token_expiry(current.token) or now_epoch()):
        raise HTTPException(status_code=500, detail="Logout failed")

    refresh_token = user.get("refresh_token")
    if refresh_token:
        dynamo.blacklist_token(refresh_token, user.get("refresh_token_expires_at") or refresh_token_expiry())

    remaining = [token for token in _live_tokens(user.get("tokens", [])) if token != current.token]
    dynamo.update_user(
        user["user_id"],
        {"tokens": remaining},
        remove=("refresh_token", "refresh_token_expires_at"),
    )

    logger.info(f"User logged out: {user['user_id']}")
    return {"message": "Logged out successfully"}


@router.post("/refresh", response_model=AuthResponse, response_model_exclude_none=True)
def refresh_tokens(body: RefreshRequest):
    user = dynamo.get_user_by_refresh_token(body.refresh_token)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")

    if dynamo.is_token_blacklisted(body.refresh_token):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Blacklisted refresh token")

    if user.get("refresh_token_expires_at", 0) <= now_epoch():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token expired")

    tokens = _start_session(user)
    logger.info(f"Tokens refreshed for user: {user['user_id']}")
    return AuthResponse(access_token=tokens["access_token"], refresh_token=tokens["refresh_token"])
