"""
Claim Schemas
Pydantic models for claim requests and responses
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from src.models.claim import ClaimStatus, LimitTimespan
from src.services.claim_state_machine import ClaimAction


class ClaimCreate(BaseModel):
    """Schema for creating a draft claim"""
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    amount: float = Field(..., gt=0, description="Amount must be positive")
    claim_type_id: int = Field(..., gt=0)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value.strip()


class ClaimUpdate(BaseModel):
    """Schema for editing a draft claim"""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    amount: Optional[float] = Field(None, gt=0)
    claim_type_id: Optional[int] = Field(None, gt=0)


class ClaimTransitionRequest(BaseModel):
    """Schema for moving a claim to another status"""
    status: ClaimStatus
    comments: Optional[str] = Field(None, max_length=2000)
    approval_level_id: Optional[int] = None


class WorkflowActionRequest(BaseModel):
    """Schema for acting on a claim through a specific approval level"""
    action: ClaimAction
    comments: Optional[str] = Field(None, max_length=2000)


class SubmitClaimRequest(BaseModel):
    comments: Optional[str] = Field(None, max_length=2000)


class ClaimTypeSummary(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    limit_amount: float
    limit_timespan: LimitTimespan

    class Config:
        from_attributes = True


class ClaimApprovalResponse(BaseModel):
    """Schema for an approval history entry"""
    id: int
    claim_id: int
    approval_level_id: Optional[int] = None
    approver_id: int
    status: ClaimStatus
    comments: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ClaimResponse(BaseModel):
    """Schema for claim response"""
    id: int
    title: str
    description: Optional[str] = None
    amount: float
    status: ClaimStatus
    user_id: int
    claim_type_id: int
    claim_type: Optional[ClaimTypeSummary] = None
    submitted_at: Optional[datetime] = None
    balance_deducted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    approvals: List[ClaimApprovalResponse] = []

    class Config:
        from_attributes = True
