# medcrm/routes/auth/router.py

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import Optional
import structlog

from medcrm.database import get_db
from medcrm.models.all_models import User, Patient, UserRole, local_now
from medcrm.config import settings
from medcrm.errors import Conflict
from medcrm.actions.user_actions import create_account
from medcrm.routes.auth.schemas import (
    UserSignupRequest,
    UserLoginRequest,
    UserLoginResponse,
    RefreshTokenRequest,
    TokenResponse,
    UserProfileResponse,
)
from medcrm.utils.auth import (
    create_access_token,
    create_refresh_token,
    verify_token,
    verify_password,
    get_session_user_id,
)

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = structlog.get_logger(__name__)


def _profile(user: User) -> UserProfileResponse:
    profile = UserProfileResponse.model_validate(user)
    if user.patient_profile:
        profile.patient_id = user.patient_profile.id
    if user.doctor_profile:
        profile.doctor_id = user.doctor_profile.id
    if user.staff_profile:
        profile.staff_id = user.staff_profile.id
    return profile


def _login_response(user: User, message: str) -> UserLoginResponse:
    access_token = create_access_token({"sub": user.id, "role": user.role.value})
    refresh_token = create_refresh_token({"sub": user.id})
    return UserLoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=_profile(user),
        message=message,
    )

# ================================
# SIGNUP ENDPOINTS
# ================================

@router.post("/signup", response_model=UserLoginResponse, status_code=status.HTTP_201_CREATED)
def signup(
    user_data: UserSignupRequest,
    db: Session = Depends(get_db)
):
    """
    Register a patient account.
    Doctors, staff and admins are created by an administrator.
    """
    try:
        new_user = create_account(db, user_data.name, user_data.email, user_data.password, UserRole.PATIENT)
    except Conflict as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=exc.message
        )

    db.add(Patient(
        user_id=new_user.id,
        phone=user_data.phone,
        date_of_birth=user_data.date_of_birth,
        gender=user_data.gender,
        address=user_data.address,
        emergency_contact=user_data.emergency_contact,
        emergency_phone=user_data.emergency_phone,
    ))
    db.commit()
    db.refresh(new_user)

    logger.info("patient_signed_up", user_id=new_user.id)
    return _login_response(new_user, "Account created successfully")

# ================================
# LOGIN ENDPOINTS
# ================================

@router.post("/login", response_model=UserLoginResponse)
def login(
    login_data: UserLoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return access tokens.
    """
    user = db.query(User).filter(User.email == login_data.email.strip().lower()).first()

    if not user or not verify_password(login_data.password, user.password):
        logger.info("login_failed", email=login_data.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    if user.banned:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is banned. Please contact support."
        )

    if user.role is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User has no role assigned"
        )

    user.last_login_at = local_now()
    db.commit()
    db.refresh(user)

    logger.info("user_logged_in", user_id=user.id, role=user.role.value)
    return _login_response(user, "Login successful")

# ================================
# TOKEN MANAGEMENT
# ================================

@router.post("/refresh", response_model=TokenResponse)
def refresh_token(
    token_data: RefreshTokenRequest,
    db: Session = Depends(get_db)
):
    """
    Refresh access token using refresh token.
    """
    payload = verify_token(token_data.refresh_token, token_type="refresh")
    user_id = payload.get("sub")

    user = db.query(User).filter(User.id == user_id).first() if user_id else None
    if not user or user.banned or user.role is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )

    return TokenResponse(
        access_token=create_access_token({"sub": user.id, "role": user.role.value}),
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )

# ================================
# PROFILE ENDPOINTS
# ================================

@router.get("/me", response_model=UserProfileResponse)
def me(
    user_id: Optional[str] = Depends(get_session_user_id),
    db: Session = Depends(get_db)
):
    user = db.query(User).filter(User.id == user_id).first() if user_id else None
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
    return _profile(user)
