"""
Balance Schemas
Pydantic models for balance lookups and adjustments
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from src.models.claim import LimitTimespan


class BalanceResponse(BaseModel):
    """Schema for a balance record"""
    id: int
    user_id: int
    claim_type_id: int
    total_limit: float
    current_spent: float
    remaining_balance: float
    last_reset_date: datetime
    reset_period: LimitTimespan

    class Config:
        from_attributes = True


class CheckClaimAmountRequest(BaseModel):
    claim_type_id: int = Field(..., gt=0)
    amount: float = Field(..., gt=0)


class CheckClaimAmountResponse(BaseModel):
    can_claim: bool
    message: Optional[str] = None


class AdjustBalanceRequest(BaseModel):
    """Schema for an admin limit override"""
    user_id: int = Field(..., gt=0)
    claim_type_id: int = Field(..., gt=0)
    new_limit: float = Field(..., ge=0)
