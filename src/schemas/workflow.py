"""
Workflow Schemas
Display-oriented projection of a claim's approval progress
"""

from pydantic import BaseModel
from typing import Optional, List, Dict, Union
from datetime import datetime

from src.models.claim import ClaimStatus


class WorkflowStep(BaseModel):
    """One row of the approval timeline"""
    id: Union[int, str]
    type: str  # system, approval
    title: str
    description: str
    status: str  # completed, pending, not_reached, not_started
    level: int = 0
    completed_at: Optional[datetime] = None
    decision: Optional[ClaimStatus] = None
    comments: Optional[str] = None
    approver_id: Optional[int] = None
    approver_name: Optional[str] = None
    acted_by_id: Optional[int] = None
    permissions: Optional[Dict[str, bool]] = None


class WorkflowAction(BaseModel):
    """Action currently admissible on the claim"""
    action: str
    label: str
    description: str
    level_id: Optional[int] = None
    available: bool = True


class WorkflowView(BaseModel):
    claim_id: int
    status: ClaimStatus
    workflow_steps: List[WorkflowStep]
    progress: float
    completed_steps: int
    total_steps: int
    current_step: Optional[WorkflowStep] = None
    next_actions: List[WorkflowAction]
