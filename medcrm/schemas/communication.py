# medcrm/schemas/communication.py

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from medcrm.models.all_models import (
    FeedbackStatus, FeedbackType, MessageType, Priority,
)

# ================================
# FEEDBACK
# ================================

class FeedbackCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    type: FeedbackType
    priority: Optional[Priority] = Priority.NORMAL
    department_id: Optional[int] = None


class FeedbackUpdate(BaseModel):
    status: Optional[FeedbackStatus] = None
    response: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)


class FeedbackAssign(BaseModel):
    assigned_to: str


class FeedbackResponse(BaseModel):
    id: int
    patient_id: int
    type: FeedbackType
    subject: str
    message: str
    priority: Optional[Priority] = Priority.NORMAL
    status: FeedbackStatus
    assigned_to: Optional[str] = None
    department_id: Optional[int] = None
    response: Optional[str] = None
    responded_by: Optional[str] = None
    responded_at: Optional[datetime] = None
    rating: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# ================================
# MESSAGES
# ================================

class MessageCreate(BaseModel):
    recipient_id: str
    subject: Optional[str] = Field(None, max_length=200)
    message: str = Field(..., min_length=1)
    type: Optional[MessageType] = MessageType.GENERAL
    priority: Optional[Priority] = Priority.NORMAL
    related_appointment_id: Optional[int] = None
    related_feedback_id: Optional[int] = None


class MessageResponse(BaseModel):
    id: int
    sender_id: str
    recipient_id: str
    type: Optional[MessageType] = MessageType.GENERAL
    subject: Optional[str] = None
    message: str
    priority: Optional[Priority] = Priority.NORMAL
    is_read: Optional[bool] = False
    read_at: Optional[datetime] = None
    related_appointment_id: Optional[int] = None
    related_feedback_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# ================================
# NOTIFICATIONS
# ================================

class NotificationCreate(BaseModel):
    user_id: str
    type: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    priority: Optional[Priority] = Priority.NORMAL
    action_url: Optional[str] = Field(None, max_length=500)
    expires_at: Optional[datetime] = None


class NotificationResponse(BaseModel):
    id: int
    user_id: str
    type: str
    title: str
    message: str
    priority: Optional[Priority] = Priority.NORMAL
    is_read: Optional[bool] = False
    read_at: Optional[datetime] = None
    action_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
