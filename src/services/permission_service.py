"""
Permission Service
Resolves which claim types a user may claim and with what limit

Resolution order, first match wins:
    1. UserClaimType override for the exact (user, claim type) pair
    2. UserGroupClaimType override for the user's group
    3. The claim type's own default (allowed, limit_amount)
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional
import enum

from sqlalchemy.orm import Session

from src.config.database import atomic
from src.models.audit_log import AuditAction, EntityType
from src.models.claim import ClaimType
from src.models.permission import UserClaimType, UserGroupClaimType
from src.models.user import User, UserGroup
from src.services.audit_service import audit_service, RequestContext
from src.utils.exceptions import NotFoundError, ValidationError
from src.utils.logger import setup_logger

logger = setup_logger()


class OverrideSource(str, enum.Enum):
    """Tier that produced a resolved permission"""
    USER = "user_override"
    GROUP = "group_override"
    DEFAULT = "default"


@dataclass(frozen=True)
class ResolvedPermission:
    """Outcome of the three-tier lookup"""
    source: OverrideSource
    is_allowed: bool
    limit_amount: float


def resolve_permission(
    claim_type: ClaimType,
    user_override: Optional[UserClaimType] = None,
    group_override: Optional[UserGroupClaimType] = None
) -> ResolvedPermission:
    """
    Pick the authoritative tier for a (user, claim type) pair

    A user override stops resolution even when it carries no custom
    limit; the limit then falls back to the claim type default, never to
    the group override.

    Args:
        claim_type: Claim type being resolved
        user_override: User-level override row, if any
        group_override: Group-level override row for the user's group, if any

    Returns:
        ResolvedPermission: Tagged result
    """
    default_limit = claim_type.limit_amount or 0.0

    if user_override is not None:
        limit = user_override.custom_limit_amount
        return ResolvedPermission(
            source=OverrideSource.USER,
            is_allowed=bool(user_override.is_allowed),
            limit_amount=default_limit if limit is None else limit
        )

    if group_override is not None:
        limit = group_override.custom_limit_amount
        return ResolvedPermission(
            source=OverrideSource.GROUP,
            is_allowed=bool(group_override.is_allowed),
            limit_amount=default_limit if limit is None else limit
        )

    return ResolvedPermission(
        source=OverrideSource.DEFAULT,
        is_allowed=True,
        limit_amount=default_limit
    )


class PermissionService:
    """Service backing claim-type access and limit resolution"""

    def resolve(self, db: Session, user_id: int, claim_type_id: int) -> ResolvedPermission:
        """
        Load the override rows for a pair and resolve them

        Args:
            db: Database session
            user_id: User ID
            claim_type_id: Claim type ID

        Returns:
            ResolvedPermission: Tagged result

        Raises:
            NotFoundError: If the user or claim type does not exist
        """
        claim_type = db.get(ClaimType, claim_type_id)
        if claim_type is None:
            raise NotFoundError("Claim type not found")

        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        user_override = db.query(UserClaimType).filter(
            UserClaimType.user_id == user_id,
            UserClaimType.claim_type_id == claim_type_id
        ).first()

        group_override = None
        if user_override is None and user.user_group_id is not None:
            group_override = db.query(UserGroupClaimType).filter(
                UserGroupClaimType.user_group_id == user.user_group_id,
                UserGroupClaimType.claim_type_id == claim_type_id
            ).first()

        return resolve_permission(claim_type, user_override, group_override)

    def can_access(self, db: Session, user_id: int, claim_type_id: int) -> bool:
        """Whether the user may claim against this claim type"""
        return self.resolve(db, user_id, claim_type_id).is_allowed

    def effective_limit(self, db: Session, user_id: int, claim_type_id: int) -> float:
        """Spending limit that applies to the user for this claim type"""
        return self.resolve(db, user_id, claim_type_id).limit_amount

    def get_group_permissions(self, db: Session, group_id: int) -> List[UserGroupClaimType]:
        if db.get(UserGroup, group_id) is None:
            raise NotFoundError("User group not found")
        return db.query(UserGroupClaimType).filter(
            UserGroupClaimType.user_group_id == group_id
        ).order_by(UserGroupClaimType.claim_type_id).all()

    def get_user_overrides(self, db: Session, user_id: int) -> List[UserClaimType]:
        if db.get(User, user_id) is None:
            raise NotFoundError("User not found")
        return db.query(UserClaimType).filter(
            UserClaimType.user_id == user_id
        ).order_by(UserClaimType.claim_type_id).all()

    def set_group_permissions(
        self,
        db: Session,
        group_id: int,
        entries: Iterable,
        actor: User,
        context: Optional[RequestContext] = None
    ) -> List[UserGroupClaimType]:
        """
        Replace every override of a group in one transaction

        Args:
            db: Database session
            group_id: User group ID
            entries: Items with claim_type_id, is_allowed, custom_limit_amount
            actor: Admin performing the change
            context: Client details for the audit trail

        Returns:
            List[UserGroupClaimType]: The group's new override rows
        """
        if db.get(UserGroup, group_id) is None:
            raise NotFoundError("User group not found")
        entries = list(entries)
        self._validate_entries(db, entries)

        existing = self.get_group_permissions(db, group_id)
        old_values = [self._snapshot(row) for row in existing]

        with atomic(db):
            for row in existing:
                db.delete(row)
            db.flush()

            rows = [
                UserGroupClaimType(
                    user_group_id=group_id,
                    claim_type_id=entry.claim_type_id,
                    is_allowed=entry.is_allowed,
                    custom_limit_amount=entry.custom_limit_amount
                )
                for entry in entries
            ]
            db.add_all(rows)
            db.flush()

            audit_service.log_activity(
                db, actor.id, AuditAction.UPDATE, EntityType.USER_GROUP, group_id,
                old_values={"permissions": old_values},
                new_values={"permissions": [self._snapshot(row) for row in rows]},
                context=context
            )

        logger.info(f"Replaced claim type permissions for group {group_id} ({len(rows)} entries)")
        return self.get_group_permissions(db, group_id)

    def set_user_overrides(
        self,
        db: Session,
        user_id: int,
        entries: Iterable,
        actor: User,
        context: Optional[RequestContext] = None
    ) -> List[UserClaimType]:
        """
        Replace every override of a user in one transaction

        Args:
            db: Database session
            user_id: User ID
            entries: Items with claim_type_id, is_allowed, custom_limit_amount
            actor: Admin performing the change
            context: Client details for the audit trail

        Returns:
            List[UserClaimType]: The user's new override rows
        """
        if db.get(User, user_id) is None:
            raise NotFoundError("User not found")
        entries = list(entries)
        self._validate_entries(db, entries)

        existing = self.get_user_overrides(db, user_id)
        old_values = [self._snapshot(row) for row in existing]

        with atomic(db):
            for row in existing:
                db.delete(row)
            db.flush()

            rows = [
                UserClaimType(
                    user_id=user_id,
                    claim_type_id=entry.claim_type_id,
                    is_allowed=entry.is_allowed,
                    custom_limit_amount=entry.custom_limit_amount
                )
                for entry in entries
            ]
            db.add_all(rows)
            db.flush()

            audit_service.log_activity(
                db, actor.id, AuditAction.UPDATE, EntityType.USER, user_id,
                old_values={"overrides": old_values},
                new_values={"overrides": [self._snapshot(row) for row in rows]},
                context=context
            )

        logger.info(f"Replaced claim type overrides for user {user_id} ({len(rows)} entries)")
        return self.get_user_overrides(db, user_id)

    def _validate_entries(self, db: Session, entries: list):
        """Reject duplicates, unknown claim types and negative limits before any write"""
        seen = set()
        for entry in entries:
            if entry.claim_type_id in seen:
                raise ValidationError(f"Duplicate claim type {entry.claim_type_id} in permission list")
            seen.add(entry.claim_type_id)

            if entry.custom_limit_amount is not None and entry.custom_limit_amount < 0:
                raise ValidationError("custom_limit_amount must not be negative")

            if db.get(ClaimType, entry.claim_type_id) is None:
                raise NotFoundError(f"Claim type {entry.claim_type_id} not found")

    @staticmethod
    def _snapshot(row) -> dict:
        return {
            "claim_type_id": row.claim_type_id,
            "is_allowed": row.is_allowed,
            "custom_limit_amount": row.custom_limit_amount
        }


# Create singleton instance
permission_service = PermissionService()
