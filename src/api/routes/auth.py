"""Authentication routes.

This module handles HTTP endpoints for user authentication and registration,
and provides the ``get_current_user`` dependency used by every other router.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

import pytz
from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET_KEY
from core.dependencies import UserManagerDep
from core.exceptions import UnauthenticatedError
from models.user import UserModel
from schemas.common import MessageResponse
from schemas.user import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    ResendVerificationRequest,
    UserInfo,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

# Missing credentials are reported through UnauthenticatedError, not FastAPI's 403
security = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token.

    Args:
        data: Data to encode in the token.
        expires_delta: Optional expiration time delta.

    Returns:
        Encoded JWT token string.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(pytz.utc) + expires_delta
    else:
        expire = datetime.now(pytz.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """Verify JWT token from Authorization header.

    Returns:
        Decoded token payload.

    Raises:
        UnauthenticatedError: If the token is missing, invalid or expired.
    """
    if credentials is None:
        raise UnauthenticatedError("Missing bearer token")
    try:
        payload = jwt.decode(credentials.credentials, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise UnauthenticatedError()
    if payload.get("sub") is None:
        raise UnauthenticatedError()
    return payload


def get_current_user(
    token_payload: dict = Depends(verify_token),
    user_manager: UserManagerDep = None,
) -> UserModel:
    """Get current authenticated user.

    Raises:
        UnauthenticatedError: If the token subject is not a known user.
    """
    try:
        user_id = int(token_payload["sub"])
    except (TypeError, ValueError):
        raise UnauthenticatedError()
    user = user_manager.get_user_by_id(user_id)
    if user is None:
        raise UnauthenticatedError("User not found")
    return user


@router.post("/register", response_model=UserInfo, summary="Register")
def register(
    req: RegisterRequest,
    user_manager: UserManagerDep = None,
) -> UserInfo:
    """Register a new user and send the verification email."""
    user = user_manager.create_user(
        username=req.username,
        email=req.email,
        password=req.password,
        display_name=req.display_name,
    )
    return UserInfo.model_validate(user)


@router.post("/login", response_model=LoginResponse, summary="Log in")
def login(
    req: LoginRequest,
    user_manager: UserManagerDep = None,
) -> LoginResponse:
    """Login with username and password."""
    user = user_manager.authenticate(req.username, req.password)
    access_token = create_access_token(
        data={"sub": str(user.id), "username": user.username},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return LoginResponse(access_token=access_token, expires_in=ACCESS_TOKEN_EXPIRE_MINUTES * 60)


@router.get("/me", response_model=UserInfo, summary="Current user")
def get_current_user_info(
    current_user: UserModel = Depends(get_current_user),
) -> UserInfo:
    return UserInfo.model_validate(current_user)


@router.get("/verify-email", response_model=MessageResponse, summary="Verify email")
def verify_email(token: str, user_manager: UserManagerDep = None) -> MessageResponse:
    user_manager.verify_email(token)
    return MessageResponse(message="Email verified successfully")


@router.post("/resend-verification", response_model=MessageResponse, summary="Resend verification email")
def resend_verification(
    req: ResendVerificationRequest,
    user_manager: UserManagerDep = None,
) -> MessageResponse:
    user_manager.resend_verification(req.email)
    return MessageResponse(message="Verification email sent")


@router.delete("/me", response_model=MessageResponse, summary="Delete account")
def delete_account(
    current_user: UserModel = Depends(get_current_user),
    user_manager: UserManagerDep = None,
) -> MessageResponse:
    """Delete the caller's account.

    Fails while the caller still owns a class.
    """
    user_manager.delete_user(current_user.id)
    return MessageResponse(message="Account deleted")
