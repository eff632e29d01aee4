"""
Claim Routes
Claim lifecycle and approval workflow endpoints
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import Optional

from src.config.database import get_db
from src.middleware.logging_middleware import request_context
from src.models.claim import ClaimStatus
from src.models.user import User
from src.schemas.admin import ClaimTypeResponse
from src.schemas.claim import (
    ClaimCreate,
    ClaimResponse,
    ClaimTransitionRequest,
    ClaimUpdate,
    SubmitClaimRequest,
    WorkflowActionRequest,
)
from src.services.admin_service import admin_service
from src.services.auth_service import auth_service
from src.services.claim_service import claim_service
from src.services.permission_service import permission_service
from src.services.workflow_service import workflow_service
from src.utils.helpers import success_response
from src.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


def _claim_payload(claim) -> dict:
    return ClaimResponse.model_validate(claim).model_dump()


@router.get("/types")
async def list_claimable_types(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Claim types the current user may claim, with the limit that applies"""
    types = []
    for claim_type in admin_service.list_claim_types(db):
        resolved = permission_service.resolve(db, current_user.id, claim_type.id)
        if not resolved.is_allowed:
            continue
        payload = ClaimTypeResponse.model_validate(claim_type).model_dump()
        payload["effective_limit"] = resolved.limit_amount
        payload["limit_source"] = resolved.source.value
        types.append(payload)

    return success_response(types)


@router.get("")
async def list_claims(
    status_filter: Optional[ClaimStatus] = Query(None, alias="status"),
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """List claims; admins see every claim"""
    claims = claim_service.list_claims(db, current_user, status_filter, skip, min(limit, 200))
    return success_response([_claim_payload(claim) for claim in claims])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_claim(
    payload: ClaimCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Create a draft claim"""
    claim = claim_service.create_claim(
        db,
        current_user,
        payload.claim_type_id,
        payload.amount,
        payload.title,
        payload.description,
        context=request_context(request)
    )
    return success_response(_claim_payload(claim), "Claim created successfully")


@router.get("/{claim_id}")
async def get_claim(
    claim_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    claim = claim_service.get_claim(db, claim_id, current_user)
    return success_response(_claim_payload(claim))


@router.put("/{claim_id}")
async def update_claim(
    claim_id: int,
    payload: ClaimUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Edit a draft claim"""
    claim = claim_service.update_claim(
        db,
        claim_id,
        current_user,
        title=payload.title,
        description=payload.description,
        amount=payload.amount,
        claim_type_id=payload.claim_type_id,
        context=request_context(request)
    )
    return success_response(_claim_payload(claim), "Claim updated successfully")


@router.post("/{claim_id}/submit")
async def submit_claim(
    claim_id: int,
    request: Request,
    payload: Optional[SubmitClaimRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Submit a draft claim for approval"""
    claim = claim_service.submit_claim(
        db,
        claim_id,
        current_user,
        comments=payload.comments if payload else None,
        context=request_context(request)
    )
    return success_response(_claim_payload(claim), "Claim submitted for approval")


@router.post("/{claim_id}/transition")
async def transition_claim(
    claim_id: int,
    payload: ClaimTransitionRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Move a claim to another status"""
    claim = claim_service.transition_claim(
        db,
        claim_id,
        current_user,
        payload.status,
        comments=payload.comments,
        approval_level_id=payload.approval_level_id,
        context=request_context(request)
    )
    return success_response(_claim_payload(claim), f"Claim status changed to {claim.status.value}")


@router.delete("/{claim_id}")
async def cancel_claim(
    claim_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Withdraw a draft or submitted claim"""
    claim_service.cancel_claim(db, claim_id, current_user, context=request_context(request))
    return success_response(None, "Claim cancelled successfully")


@router.get("/{claim_id}/workflow")
async def get_claim_workflow(
    claim_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Approval timeline and next actions of a claim"""
    claim = claim_service.get_claim(db, claim_id, current_user)
    view = workflow_service.get_workflow(db, claim)
    return success_response(view)


@router.post("/{claim_id}/workflow/{level_id}")
async def act_on_workflow_level(
    claim_id: int,
    level_id: int,
    payload: WorkflowActionRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Act on a claim through a specific approval level"""
    claim = claim_service.apply_workflow_action(
        db,
        claim_id,
        level_id,
        payload.action,
        current_user,
        comments=payload.comments,
        context=request_context(request)
    )
    view = workflow_service.get_workflow(db, claim)
    return success_response(
        {"claim": _claim_payload(claim), "workflow": view},
        f"Claim {payload.action.value.replace('_', ' ')} recorded"
    )
