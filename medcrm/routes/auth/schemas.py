# medcrm/routes/auth/schemas.py

from pydantic import BaseModel, EmailStr, field_validator, Field
from datetime import date, datetime
from typing import Optional
import re

from medcrm.models.all_models import UserRole, Gender

# ================================
# REQUEST SCHEMAS
# ================================

class UserSignupRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    email: EmailStr
    password: str = Field(..., min_length=8)

    # Patient profile
    phone: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = Field(None, max_length=20)

    @field_validator('password')
    def validate_password(cls, v):
        if not re.search(r'[A-Z]', v):
            raise ValueError('Password must contain at least one uppercase letter')
        if not re.search(r'[a-z]', v):
            raise ValueError('Password must contain at least one lowercase letter')
        if not re.search(r'\d', v):
            raise ValueError('Password must contain at least one digit')
        return v

    @field_validator('phone', 'emergency_phone')
    def validate_phone(cls, v):
        if v is None:
            return v
        phone = re.sub(r'[\s\-]', '', v)
        if not re.match(r'^\+?\d{7,15}$', phone):
            raise ValueError('Invalid phone number format')
        return phone

class UserLoginRequest(BaseModel):
    email: EmailStr
    password: str

class RefreshTokenRequest(BaseModel):
    refresh_token: str

# ================================
# RESPONSE SCHEMAS
# ================================

class UserProfileResponse(BaseModel):
    id: str
    name: str
    email: str
    role: Optional[UserRole] = None
    email_verified: bool = False
    image: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    patient_id: Optional[int] = None
    doctor_id: Optional[int] = None
    staff_id: Optional[int] = None

    class Config:
        from_attributes = True

class UserLoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserProfileResponse
    message: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
