"""
Authentication Service
Resolves the acting user from a bearer token
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from src.config.database import get_db
from src.models.user import User, UserRole
from src.utils.security import decode_token
from src.utils.logger import setup_logger

logger = setup_logger()

bearer_scheme = HTTPBearer(auto_error=False)


class AuthService:
    """Authentication service"""

    async def get_current_user(
        self,
        credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
        db: Session = Depends(get_db)
    ) -> User:
        """
        Get current authenticated user from token

        Args:
            credentials: Bearer credentials
            db: Database session

        Returns:
            User: Current user

        Raises:
            HTTPException: If authentication fails
        """
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

        if credentials is None or credentials.scheme.lower() != "bearer":
            raise credentials_exception

        payload = decode_token(credentials.credentials)
        if payload is None:
            raise credentials_exception

        user_id = payload.get("sub")
        if user_id is None or not str(user_id).isdigit():
            raise credentials_exception

        user = db.get(User, int(user_id))
        if user is None:
            raise credentials_exception

        if not user.is_active:
            logger.warning(f"Inactive user {user.id} attempted access")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="User account is inactive"
            )

        return user

    def require_role(self, role: UserRole):
        """
        Dependency factory requiring a specific role

        Args:
            role: Required role
        """
        async def role_checker(current_user: User = Depends(self.get_current_user)):
            if current_user.role != role:
                logger.warning(f"User {current_user.id} denied: {role.value} role required")
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Permission denied: {role.value} role required"
                )
            return current_user

        return role_checker


# Create singleton instance
auth_service = AuthService()
require_admin = auth_service.require_role(UserRole.ADMIN)
