"""
Balance Routes
Spending balance lookups, dry-run checks and admin adjustments
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from src.config.database import get_db
from src.middleware.logging_middleware import request_context
from src.models.user import User
from src.schemas.balance import (
    AdjustBalanceRequest,
    BalanceResponse,
    CheckClaimAmountRequest,
    CheckClaimAmountResponse,
)
from src.services.auth_service import auth_service, require_admin
from src.services.balance_service import balance_service
from src.utils.helpers import success_response
from src.utils.logger import setup_logger

logger = setup_logger()
router = APIRouter()


def _balance_payload(balance) -> dict:
    return BalanceResponse.model_validate(balance).model_dump()


@router.get("")
async def list_my_balances(
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Every balance record of the current user"""
    balances = balance_service.get_all_balances(db, current_user.id)
    return success_response([_balance_payload(balance) for balance in balances])


@router.post("/check")
async def check_claim_amount(
    payload: CheckClaimAmountRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Dry-run whether an amount can be claimed"""
    ok, reason = balance_service.check_claim(db, current_user.id, payload.claim_type_id, payload.amount)
    result = CheckClaimAmountResponse(can_claim=ok, message=reason or "Amount is within your balance")
    return success_response(result)


@router.put("/admin/adjust")
async def adjust_balance(
    payload: AdjustBalanceRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Overwrite a user's total limit for one claim type"""
    balance = balance_service.admin_set_limit(
        db,
        payload.user_id,
        payload.claim_type_id,
        payload.new_limit,
        current_user,
        context=request_context(request)
    )
    return success_response(_balance_payload(balance), "Balance limit updated")


@router.get("/admin/users/{user_id}")
async def list_user_balances(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    balances = balance_service.get_all_balances(db, user_id)
    return success_response([_balance_payload(balance) for balance in balances])


@router.get("/{claim_type_id}")
async def get_my_balance(
    claim_type_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(auth_service.get_current_user)
):
    """Balance for one claim type, created on first access"""
    balance = balance_service.get_or_create_balance(db, current_user.id, claim_type_id)
    return success_response(_balance_payload(balance))
