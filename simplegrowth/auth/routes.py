"""Authentication routes."""
import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from simplegrowth.database import get_db
from simplegrowth.models import User, VerificationToken, utcnow, as_utc
from simplegrowth.audit import AuditService
from simplegrowth.auth import schemas
from simplegrowth.auth.utils import (
    get_password_hash,
    verify_password,
    create_access_token,
    generate_one_time_token,
    password_reset_identifier,
    get_password_reset_expiry,
    get_email_verification_expiry,
    PASSWORD_RESET_PREFIX,
)
from simplegrowth.auth.dependencies import get_current_user
from simplegrowth.middleware.rate_limit import limiter, LIMITS
from simplegrowth.notifications import EmailService, get_email_service

logger = logging.getLogger(__name__)

router = APIRouter()

FORGOT_PASSWORD_MESSAGE = "If an account exists with this email, a password reset link has been sent"
RESEND_VERIFICATION_MESSAGE = "If an account exists, a verification email has been sent"


async def _find_valid_token(
    db: AsyncSession,
    token: str,
    password_reset: bool,
) -> Optional[VerificationToken]:
    """Look up an unexpired one-time token of the requested kind."""
    result = await db.execute(select(VerificationToken).where(VerificationToken.token == token))
    record = result.scalar_one_or_none()
    if not record:
        return None
    if record.identifier.startswith(PASSWORD_RESET_PREFIX) != password_reset:
        return None
    if as_utc(record.expires) <= utcnow():
        return None
    return record


# =============================================================================
# Signup / Login
# =============================================================================

@router.post("/signup", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(LIMITS["signup"])
async def signup(
    request: Request,
    data: schemas.SignupRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    """
    Register a new user with email and password.

    Records a user_registered audit entry and queues a welcome email whose
    delivery failures never affect the response.
    """
    result = await db.execute(select(User).where(User.email == data.email))
    if result.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="An account with this email already exists"
        )

    user = User(
        email=data.email,
        name=data.name,
        hashed_password=get_password_hash(data.password),
        role="user",
        auth_provider="email",
    )
    db.add(user)
    await db.flush()

    audit = AuditService(db, user_id=user.id)
    await audit.log("user", user.id, "user_registered", new_value={"email": user.email, "name": user.name})

    await db.commit()
    await db.refresh(user)

    background_tasks.add_task(email_service.send_welcome_email, user.email, user.name)

    token = create_access_token(user.id, user.email)
    return schemas.AuthResponse(
        access_token=token,
        user=schemas.UserAuthInfo.model_validate(user)
    )


@router.post("/login", response_model=schemas.AuthResponse)
@limiter.limit(LIMITS["login"])
async def login(request: Request, data: schemas.LoginRequest, db: AsyncSession = Depends(get_db)):
    """
    Authenticate user with email and password.
    Returns JWT token on success.
    """
    result = await db.execute(select(User).where(User.email == data.email))
    user = result.scalar_one_or_none()

    if not user or not user.hashed_password:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    if not verify_password(data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password"
        )

    token = create_access_token(user.id, user.email)
    return schemas.AuthResponse(
        access_token=token,
        user=schemas.UserAuthInfo.model_validate(user)
    )


@router.get("/me", response_model=schemas.UserAuthInfo)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user info."""
    return schemas.UserAuthInfo.model_validate(current_user)


@router.post("/refresh", response_model=schemas.AuthResponse)
async def refresh_token(current_user: User = Depends(get_current_user)):
    """Refresh the access token (extends session)."""
    token = create_access_token(current_user.id, current_user.email)
    return schemas.AuthResponse(
        access_token=token,
        user=schemas.UserAuthInfo.model_validate(current_user)
    )


# =============================================================================
# Password reset
# =============================================================================

@router.post("/forgot-password", response_model=schemas.MessageResponse)
@limiter.limit(LIMITS["password_reset"])
async def forgot_password(
    request: Request,
    data: schemas.ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    """
    Request a password reset email.
    Always returns success to prevent email enumeration attacks.
    """
    response = schemas.MessageResponse(message=FORGOT_PASSWORD_MESSAGE)

    result = await db.execute(select(User).where(User.email == data.email))
    user = result.scalar_one_or_none()

    # Only email/password accounts can reset
    if not user or user.auth_provider != "email" or not user.hashed_password:
        return response

    identifier = password_reset_identifier(user.email)
    await db.execute(delete(VerificationToken).where(VerificationToken.identifier == identifier))

    token = generate_one_time_token()
    db.add(VerificationToken(identifier=identifier, token=token, expires=get_password_reset_expiry()))

    audit = AuditService(db, user_id=user.id)
    await audit.log("user", user.id, "password_reset_requested")
    await db.commit()

    await email_service.send_password_reset_email(user.email, token)
    return response


@router.post("/reset-password", response_model=schemas.MessageResponse)
@limiter.limit(LIMITS["password_reset"])
async def reset_password(
    request: Request,
    data: schemas.ResetPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Reset password using a valid reset token.

    Also marks the email as verified, since the user proved they can read it.
    """
    record = await _find_valid_token(db, data.token, password_reset=True)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token"
        )

    email = record.identifier[len(PASSWORD_RESET_PREFIX):]
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    user.hashed_password = get_password_hash(data.password)
    if not user.email_verified:
        user.email_verified = utcnow()
    await db.delete(record)

    audit = AuditService(db, user_id=user.id)
    await audit.log("user", user.id, "password_reset_completed")
    await db.commit()

    return schemas.MessageResponse(
        message="Password reset successfully. Please log in with your new password."
    )


@router.get("/reset-password", response_model=schemas.TokenValidityResponse)
async def check_reset_token(token: str, db: AsyncSession = Depends(get_db)):
    """Report whether a reset token is still usable (for the reset form)."""
    record = await _find_valid_token(db, token, password_reset=True)
    return schemas.TokenValidityResponse(valid=record is not None)


# =============================================================================
# Email verification
# =============================================================================

@router.post("/verify-email", response_model=schemas.MessageResponse)
async def verify_email(data: schemas.VerifyEmailRequest, db: AsyncSession = Depends(get_db)):
    """Confirm an email address with the token from the verification email."""
    record = await _find_valid_token(db, data.token, password_reset=False)
    if not record:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired verification token"
        )

    result = await db.execute(select(User).where(User.email == record.identifier))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    user.email_verified = utcnow()
    await db.delete(record)

    audit = AuditService(db, user_id=user.id)
    await audit.log("user", user.id, "email_verified")
    await db.commit()

    return schemas.MessageResponse(message="Email verified successfully")


@router.put("/verify-email", response_model=schemas.MessageResponse)
@limiter.limit(LIMITS["auth"])
async def resend_verification_email(
    request: Request,
    data: schemas.ResendVerificationRequest,
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    """Issue a fresh 24-hour verification token and email it."""
    result = await db.execute(select(User).where(User.email == data.email))
    user = result.scalar_one_or_none()

    if not user:
        return schemas.MessageResponse(message=RESEND_VERIFICATION_MESSAGE)

    if user.email_verified:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email is already verified"
        )

    await db.execute(delete(VerificationToken).where(VerificationToken.identifier == user.email))
    token = generate_one_time_token()
    db.add(VerificationToken(identifier=user.email, token=token, expires=get_email_verification_expiry()))
    await db.commit()

    await email_service.send_verification_email(user.email, user.name or "there", token)
    return schemas.MessageResponse(message=RESEND_VERIFICATION_MESSAGE)
