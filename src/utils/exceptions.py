"""
Claims Exceptions
Typed business and persistence failures raised by the services layer
"""

from fastapi import status


class ClaimsError(Exception):
    """Base class for every failure surfaced to API callers"""

    code = "claims_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.code,
            "message": self.message
        }


class ValidationError(ClaimsError):
    """Malformed or out-of-range input"""

    code = "validation_error"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotFoundError(ClaimsError):
    """Referenced entity does not exist"""

    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(ClaimsError):
    """Actor lacks the capability for the requested operation"""

    code = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(ClaimsError):
    """Operation is not valid for the entity's current state"""

    code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class BalanceExceededError(ClaimsError):
    """Requested amount exceeds the remaining balance"""

    code = "balance_exceeded"
    status_code = status.HTTP_400_BAD_REQUEST


class PersistenceError(ClaimsError):
    """The database was unavailable or a write failed"""

    code = "persistence_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
