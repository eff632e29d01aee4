"""
Admin Schemas
Pydantic models for claim types, user groups, approval levels and overrides
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from src.models.claim import LimitTimespan


# ============================================
# CLAIM TYPES
# ============================================

class ClaimTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    limit_amount: float = Field(..., ge=0)
    limit_timespan: LimitTimespan = LimitTimespan.ANNUAL


class ClaimTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    limit_amount: Optional[float] = Field(None, ge=0)
    limit_timespan: Optional[LimitTimespan] = None


class ClaimTypeResponse(BaseModel):
    """Schema for claim type response"""
    id: int
    name: str
    description: Optional[str] = None
    limit_amount: float
    limit_timespan: LimitTimespan
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================
# USER GROUPS
# ============================================

class UserGroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class UserGroupResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ============================================
# APPROVAL LEVELS
# ============================================

class ApprovalLevelFlags(BaseModel):
    """Capability flags; omitted flags are left unchanged"""
    can_draft: Optional[bool] = None
    can_submit: Optional[bool] = None
    can_approve: Optional[bool] = None
    can_reject: Optional[bool] = None
    can_set_payment_in_progress: Optional[bool] = None
    can_set_paid: Optional[bool] = None


class ApprovalLevelCreate(ApprovalLevelFlags):
    user_group_id: int = Field(..., gt=0)
    approver_id: int = Field(..., gt=0)


class ApprovalLevelUpdate(ApprovalLevelFlags):
    approver_id: Optional[int] = Field(None, gt=0)


class ApprovalLevelResponse(BaseModel):
    """Schema for approval level response"""
    id: int
    user_group_id: int
    level: int
    approver_id: int
    can_draft: bool
    can_submit: bool
    can_approve: bool
    can_reject: bool
    can_set_payment_in_progress: bool
    can_set_paid: bool

    class Config:
        from_attributes = True


class ReorderRequest(BaseModel):
    """Approval level IDs in their new order, first becomes level 1"""
    ordered_ids: List[int] = Field(..., min_length=1)


# ============================================
# CLAIM TYPE OVERRIDES
# ============================================

class PermissionEntry(BaseModel):
    claim_type_id: int = Field(..., gt=0)
    is_allowed: bool = True
    custom_limit_amount: Optional[float] = Field(None, ge=0)


class PermissionReplaceRequest(BaseModel):
    """Full replacement list of overrides"""
    permissions: List[PermissionEntry] = []


class PermissionEntryResponse(PermissionEntry):
    id: int

    class Config:
        from_attributes = True
