"""
Model Registry
Imports every mapped class so relationships resolve and create_all sees all tables
"""

from src.models.user import User, UserGroup, UserRole  # noqa: F401
from src.models.claim import Claim, ClaimApproval, ClaimStatus, ClaimType, LimitTimespan  # noqa: F401
from src.models.approval import ApprovalLevel  # noqa: F401
from src.models.permission import UserClaimType, UserGroupClaimType  # noqa: F401
from src.models.balance import UserClaimBalance  # noqa: F401
from src.models.audit_log import AuditLog  # noqa: F401
