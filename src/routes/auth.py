"""
Authentication Routes
Current user lookup; tokens are issued by the identity provider
"""

from fastapi import APIRouter, Depends

from src.models.user import User
from src.schemas.user import UserResponse
from src.services.auth_service import auth_service
from src.utils.helpers import success_response

router = APIRouter()


@router.get("/me")
async def get_me(current_user: User = Depends(auth_service.get_current_user)):
    """Profile of the authenticated user"""
    return success_response(UserResponse.model_validate(current_user))
