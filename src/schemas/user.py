"""
User Schemas
Pydantic models for user-related responses
"""

from pydantic import BaseModel, EmailStr
from typing import Optional
from datetime import datetime

from src.models.user import UserRole


class UserGroupSummary(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    """Schema for user response"""
    id: int
    email: EmailStr
    first_name: str
    last_name: str
    full_name: str
    role: UserRole
    user_group_id: Optional[int] = None
    user_group: Optional[UserGroupSummary] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class AssignGroupRequest(BaseModel):
    """Schema for moving a user into a group; null removes the membership"""
    user_group_id: Optional[int] = None
