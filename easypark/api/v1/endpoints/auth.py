"""Authentication endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from easypark.api.deps import get_current_user, get_db_session
from easypark.config import settings
from easypark.core.rate_limit import client_ip, rate_limiter
from easypark.core.security import create_access_token, verify_password
from easypark.db.models import User
from easypark.exceptions import RateLimited
from easypark.schemas.user import (
    AuthResponse,
    ForgotPasswordRequest,
    MessageResponse,
    ResetPasswordRequest,
    SignInRequest,
    SignUpRequest,
    UserResponse,
)
from easypark.services.customers import clean
from easypark.services.roles import effective_roles, legacy_role, primary_role
from easypark.services.users import (
    add_vehicle,
    create_user,
    ensure_unique_identity,
    get_user_by_email,
    issue_reset_token,
    reset_password,
)
from easypark.tasks.email_tasks import enqueue_password_reset_email

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_WINDOW_SECONDS = 15 * 60
FORGOT_LIMIT_PER_IP = 15
FORGOT_LIMIT_PER_EMAIL = 5
RESET_LIMIT_PER_IP = 25

FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a password reset link has been sent."


def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )


def _clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.AUTH_COOKIE_NAME, path="/")


def _auth_payload(user: User) -> AuthResponse:
    roles = effective_roles(user)
    role = primary_role(roles)
    token = create_access_token(user.id, user.email, role.value, [r.value for r in roles])
    return AuthResponse(
        user=UserResponse.from_user(user),
        role=legacy_role(role),
        roles=[r.value for r in roles],
        token=token,
    )


@router.post("/sign-up", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def sign_up(
    data: SignUpRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
):
    """Register a customer account."""
    if len(data.password) < settings.PASSWORD_MIN_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters",
        )
    email = data.email.strip().lower()
    nic = clean(data.nic)
    await ensure_unique_identity(db, email, nic=nic)

    user = await create_user(db, email, data.password, data.full_name, phone=clean(data.phone), nic=nic)
    vehicle_number = clean(data.vehicle_number)
    if vehicle_number:
        await add_vehicle(db, user, vehicle_number)
    await db.commit()

    payload = _auth_payload(user)
    _set_auth_cookie(response, payload.token)
    return payload


@router.post("/sign-in", response_model=AuthResponse)
async def sign_in(
    data: SignInRequest,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
):
    """Authenticate with email and password."""
    user = await get_user_by_email(db, data.email)
    if user is None or not verify_password(data.password, user.password_hash):
        logger.info("Failed sign-in for %s", data.email.strip().lower())
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account disabled")

    payload = _auth_payload(user)
    _set_auth_cookie(response, payload.token)
    return payload


@router.post("/sign-out", response_model=MessageResponse)
async def sign_out(response: Response):
    """Clear the auth cookie."""
    _clear_auth_cookie(response)
    return MessageResponse(message="Signed out")


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    """Get the signed-in user."""
    return UserResponse.from_user(user)


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db_session),
):
    """Start a password reset; the answer never reveals whether the account exists."""
    generic = MessageResponse(message=FORGOT_PASSWORD_MESSAGE)
    email = data.email.strip().lower()
    if not email:
        return generic

    ip = client_ip(request)
    if not rate_limiter.consume(f"forgot:ip:{ip}", FORGOT_LIMIT_PER_IP, RATE_WINDOW_SECONDS):
        logger.info("Forgot-password rate limit hit for ip %s", ip)
        return generic
    if not rate_limiter.consume(f"forgot:email:{email}", FORGOT_LIMIT_PER_EMAIL, RATE_WINDOW_SECONDS):
        logger.info("Forgot-password rate limit hit for %s", email)
        return generic

    user = await get_user_by_email(db, email)
    if user is None or not user.is_active:
        return generic

    token = await issue_reset_token(db, user)
    await db.commit()

    base_url = (settings.APP_BASE_URL or str(request.base_url)).rstrip("/")
    try:
        await enqueue_password_reset_email(user.email, f"{base_url}/reset-password?token={token}")
    except Exception:
        logger.exception("Failed to queue password reset email for %s", user.email)
    return generic


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password_endpoint(
    data: ResetPasswordRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
):
    """Set a new password using a reset token."""
    if not rate_limiter.consume(f"reset:ip:{client_ip(request)}", RESET_LIMIT_PER_IP, RATE_WINDOW_SECONDS):
        raise RateLimited()

    token = (data.token or "").strip()
    if not token or not data.new_password or not data.confirm_password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Token, new password and confirmation are required",
        )
    if data.new_password != data.confirm_password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Passwords do not match")
    if len(data.new_password) < settings.PASSWORD_MIN_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters",
        )

    await reset_password(db, token, data.new_password)
    await db.commit()
    _clear_auth_cookie(response)
    return MessageResponse(message="Password has been reset. Please sign in with your new password.")
