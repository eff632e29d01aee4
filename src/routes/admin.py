"""
Admin Routes
Claim types, user groups, approval chains and claim type overrides
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from typing import Optional

from src.config.database import get_db
from src.middleware.logging_middleware import request_context
from src.models.user import User
from src.schemas.admin import (
    ApprovalLevelCreate,
    ApprovalLevelFlags,
    ApprovalLevelResponse,
    ApprovalLevelUpdate,
    ClaimTypeCreate,
    ClaimTypeResponse,
    ClaimTypeUpdate,
    PermissionEntryResponse,
    PermissionReplaceRequest,
    ReorderRequest,
    UserGroupCreate,
    UserGroupResponse,
)
from src.schemas.user import AssignGroupRequest, UserResponse
from src.services.admin_service import admin_service
from src.services.approval_level_service import approval_level_service
from src.services.auth_service import require_admin
from src.services.permission_service import permission_service
from src.utils.helpers import success_response
from src.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


def _flags(payload) -> dict:
    """Capability flags actually sent by the client"""
    return {
        name: value
        for name, value in payload.model_dump(include=set(ApprovalLevelFlags.model_fields)).items()
        if value is not None
    }


def _dump(schema, rows) -> list:
    return [schema.model_validate(row).model_dump() for row in rows]


# ============================================
# CLAIM TYPES
# ============================================

@router.get("/claim-types")
async def list_claim_types(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return success_response(_dump(ClaimTypeResponse, admin_service.list_claim_types(db)))


@router.post("/claim-types", status_code=status.HTTP_201_CREATED)
async def create_claim_type(
    payload: ClaimTypeCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    claim_type = admin_service.create_claim_type(
        db,
        payload.name,
        payload.limit_amount,
        payload.limit_timespan,
        current_user,
        description=payload.description,
        context=request_context(request)
    )
    return success_response(ClaimTypeResponse.model_validate(claim_type), "Claim type created")


@router.put("/claim-types/{claim_type_id}")
async def update_claim_type(
    claim_type_id: int,
    payload: ClaimTypeUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    claim_type = admin_service.update_claim_type(
        db,
        claim_type_id,
        current_user,
        name=payload.name,
        description=payload.description,
        limit_amount=payload.limit_amount,
        limit_timespan=payload.limit_timespan,
        context=request_context(request)
    )
    return success_response(ClaimTypeResponse.model_validate(claim_type), "Claim type updated")


# ============================================
# USER GROUPS
# ============================================

@router.get("/groups")
async def list_groups(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    return success_response(_dump(UserGroupResponse, admin_service.list_groups(db)))


@router.post("/groups", status_code=status.HTTP_201_CREATED)
async def create_group(
    payload: UserGroupCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    group = admin_service.create_group(
        db, payload.name, current_user,
        description=payload.description,
        context=request_context(request)
    )
    return success_response(UserGroupResponse.model_validate(group), "User group created")


@router.put("/users/{user_id}/group")
async def assign_user_group(
    user_id: int,
    payload: AssignGroupRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Move a user into a group, or out of it with a null group"""
    user = admin_service.assign_user_group(
        db, user_id, payload.user_group_id, current_user,
        context=request_context(request)
    )
    return success_response(UserResponse.model_validate(user), "Group membership updated")


# ============================================
# CLAIM TYPE OVERRIDES
# ============================================

@router.get("/groups/{group_id}/permissions")
async def get_group_permissions(
    group_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    rows = permission_service.get_group_permissions(db, group_id)
    return success_response(_dump(PermissionEntryResponse, rows))


@router.put("/groups/{group_id}/permissions")
async def set_group_permissions(
    group_id: int,
    payload: PermissionReplaceRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Replace every claim type override of a group"""
    rows = permission_service.set_group_permissions(
        db, group_id, payload.permissions, current_user,
        context=request_context(request)
    )
    return success_response(_dump(PermissionEntryResponse, rows), "Group permissions updated")


@router.get("/users/{user_id}/overrides")
async def get_user_overrides(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    rows = permission_service.get_user_overrides(db, user_id)
    return success_response(_dump(PermissionEntryResponse, rows))


@router.put("/users/{user_id}/overrides")
async def set_user_overrides(
    user_id: int,
    payload: PermissionReplaceRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Replace every claim type override of a user"""
    rows = permission_service.set_user_overrides(
        db, user_id, payload.permissions, current_user,
        context=request_context(request)
    )
    return success_response(_dump(PermissionEntryResponse, rows), "User overrides updated")


# ============================================
# APPROVAL LEVELS
# ============================================

@router.get("/approval-levels")
async def list_approval_levels(
    group_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    levels = approval_level_service.list_levels(db, group_id)
    return success_response(_dump(ApprovalLevelResponse, levels))


@router.post("/approval-levels", status_code=status.HTTP_201_CREATED)
async def create_approval_level(
    payload: ApprovalLevelCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Append a level to the end of a group's chain"""
    level = approval_level_service.create_level(
        db,
        payload.user_group_id,
        payload.approver_id,
        _flags(payload),
        current_user,
        context=request_context(request)
    )
    return success_response(ApprovalLevelResponse.model_validate(level), "Approval level created")


@router.put("/approval-levels/{level_id}")
async def update_approval_level(
    level_id: int,
    payload: ApprovalLevelUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    level = approval_level_service.update_level(
        db,
        level_id,
        current_user,
        approver_id=payload.approver_id,
        flags=_flags(payload),
        context=request_context(request)
    )
    return success_response(ApprovalLevelResponse.model_validate(level), "Approval level updated")


@router.delete("/approval-levels/{level_id}")
async def delete_approval_level(
    level_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Remove a level; higher levels move down by one"""
    approval_level_service.delete_level(db, level_id, current_user, context=request_context(request))
    return success_response(None, "Approval level deleted")


@router.put("/groups/{group_id}/approval-levels/reorder")
async def reorder_approval_levels(
    group_id: int,
    payload: ReorderRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    levels = approval_level_service.reorder_levels(
        db, group_id, payload.ordered_ids, current_user,
        context=request_context(request)
    )
    return success_response(_dump(ApprovalLevelResponse, levels), "Approval levels reordered")
