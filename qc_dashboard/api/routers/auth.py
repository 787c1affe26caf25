"""
Authentication routes.
Handles registration, login, logout, the current user and password resets.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...db.models import User
from ..config import get_settings
from ..dependencies import get_cookie_settings, get_current_user, get_db
from ..errors import APIError, ConflictError, ResourceNotFoundError, InvalidRequestError
from ..schemas.auth import (
    AuthData,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ResetPasswordRequest,
    UserLoginRequest,
    UserRegisterRequest,
    UserResponse,
)
from ..schemas.common import Envelope, MessageResponse
from ..security import (
    create_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from ..services.mailer import Mailer, password_reset_body

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _issue_token(user: User, response: Response) -> AuthData:
    """Create a JWT for the user and set it as the auth cookie."""
    settings = get_settings()
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=settings.jwt_expire_minutes * 60,
        **get_cookie_settings(),
    )
    return AuthData(user=UserResponse.model_validate(user), token=token)


@router.post("/register", response_model=Envelope[AuthData], status_code=status.HTTP_201_CREATED)
async def register(
    request: UserRegisterRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Register a new user account and log them in.

    Name and email must both be unique.
    """
    existing_user = (
        db.query(User).filter(or_(User.email == request.email, User.name == request.name)).first()
    )
    if existing_user:
        raise ConflictError("User already exists", details={"name": request.name, "email": request.email})

    user = User(
        name=request.name,
        email=request.email,
        password_hash=hash_password(request.password),
        role=request.role,
        department=request.department,
        is_active=True,
        last_login=datetime.utcnow(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Registered user {user.name} ({user.role.value})")
    return {"success": True, "data": _issue_token(user, response)}


@router.post("/login", response_model=Envelope[AuthData])
async def login(
    request: UserLoginRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """Login by name; sets the auth cookie and returns the token."""
    user = db.query(User).filter(User.name == request.name).first()
    if not user or not verify_password(request.password, user.password_hash):
        logger.info(f"Failed login for {request.name!r}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is disabled",
        )

    user.last_login = datetime.utcnow()
    db.commit()
    db.refresh(user)

    return {"success": True, "data": _issue_token(user, response)}


@router.api_route("/logout", methods=["GET", "POST"], response_model=Envelope[dict])
async def logout(response: Response):
    """Clear the auth cookie."""
    settings = get_settings()
    cookie_settings = get_cookie_settings()
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path=cookie_settings["path"],
        secure=cookie_settings["secure"],
        httponly=cookie_settings["httponly"],
        samesite=cookie_settings["samesite"],
    )
    return {"success": True, "data": {}}


@router.get("/me", response_model=Envelope[UserResponse])
async def get_me(current_user: User = Depends(get_current_user)):
    return {"success": True, "data": UserResponse.model_validate(current_user)}


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(request: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """
    Start a password reset.

    Stores the hashed token with a short expiry and e-mails the reset link:
    through Celery when notifications are enabled, inline when only SMTP is
    configured, otherwise the link is logged for operators.
    """
    settings = get_settings()
    user = db.query(User).filter(User.email == request.email).first()
    if not user:
        raise ResourceNotFoundError("User", request.email)

    token, token_hash, expires = generate_reset_token()
    user.reset_password_token = token_hash
    user.reset_password_expire = expires
    db.commit()

    reset_url = f"{settings.client_url.rstrip('/')}/reset-password/{token}"

    if settings.enable_notifications:
        from ...tasks.notifications import send_password_reset_email

        try:
            send_password_reset_email.delay(user.email, reset_url)
            sent = True
        except Exception as e:
            logger.error(f"Failed to enqueue password reset e-mail for {user.email}: {e}")
            sent = False
    elif settings.smtp_configured:
        sent = Mailer(settings).send(
            [user.email],
            "Password Reset Request",
            password_reset_body(reset_url, settings.reset_token_expire_minutes),
        )
    else:
        logger.info(f"Password reset requested for {user.email}; reset link: {reset_url}")
        sent = True

    if not sent:
        user.reset_password_token = None
        user.reset_password_expire = None
        db.commit()
        raise APIError("Email could not be sent")

    return MessageResponse(message="Reset link sent to email")


@router.put("/reset-password/{token}", response_model=Envelope[AuthData])
async def reset_password(
    token: str,
    request: ResetPasswordRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """Set a new password with a valid, unexpired reset token."""
    user = (
        db.query(User)
        .filter(
            User.reset_password_token == hash_reset_token(token),
            User.reset_password_expire > datetime.utcnow(),
        )
        .first()
    )
    if not user:
        raise InvalidRequestError("Invalid or expired reset token")

    user.password_hash = hash_password(request.password)
    user.reset_password_token = None
    user.reset_password_expire = None
    db.commit()
    db.refresh(user)

    logger.info(f"Password reset completed for {user.name}")
    return {"success": True, "data": _issue_token(user, response)}


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not verify_password(request.current_password, current_user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Current password is incorrect",
        )

    current_user.password_hash = hash_password(request.new_password)
    db.commit()

    logger.info(f"Password changed for {current_user.name}")
    return MessageResponse(message="Password updated")
