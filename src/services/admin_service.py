"""
Admin Service
Claim type and user group maintenance
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from src.config.database import atomic
from src.models.audit_log import AuditAction, EntityType
from src.models.claim import ClaimType, LimitTimespan
from src.models.user import User, UserGroup
from src.services.audit_service import audit_service, RequestContext
from src.utils.exceptions import ConflictError, NotFoundError, ValidationError
from src.utils.logger import setup_logger

logger = setup_logger()


class AdminService:
    """Service for the admin surface"""

    # ============================================
    # CLAIM TYPES
    # ============================================

    def list_claim_types(self, db: Session) -> List[ClaimType]:
        return db.query(ClaimType).order_by(ClaimType.name).all()

    def create_claim_type(
        self,
        db: Session,
        name: str,
        limit_amount: float,
        limit_timespan: LimitTimespan,
        actor: User,
        description: Optional[str] = None,
        context: Optional[RequestContext] = None
    ) -> ClaimType:
        """
        Create a claim type with its default limit

        Raises:
            ValidationError: If the limit is negative
            ConflictError: If the name is taken
        """
        self._validate_limit(limit_amount)
        if db.query(ClaimType).filter(ClaimType.name == name).first():
            raise ConflictError(f"Claim type '{name}' already exists")

        with atomic(db):
            claim_type = ClaimType(
                name=name,
                description=description,
                limit_amount=limit_amount,
                limit_timespan=LimitTimespan(limit_timespan)
            )
            db.add(claim_type)
            db.flush()

            audit_service.log_activity(
                db, actor.id, AuditAction.CREATE, EntityType.CLAIM_TYPE, claim_type.id,
                new_values=self._claim_type_snapshot(claim_type),
                context=context
            )

        db.refresh(claim_type)
        logger.info(f"Claim type created: {claim_type.name}")
        return claim_type

    def update_claim_type(
        self,
        db: Session,
        claim_type_id: int,
        actor: User,
        name: Optional[str] = None,
        description: Optional[str] = None,
        limit_amount: Optional[float] = None,
        limit_timespan: Optional[LimitTimespan] = None,
        context: Optional[RequestContext] = None
    ) -> ClaimType:
        """Update a claim type; existing balances keep the limit they were created with"""
        claim_type = db.get(ClaimType, claim_type_id)
        if claim_type is None:
            raise NotFoundError("Claim type not found")
        if limit_amount is not None:
            self._validate_limit(limit_amount)
        if name is not None and name != claim_type.name:
            if db.query(ClaimType).filter(ClaimType.name == name).first():
                raise ConflictError(f"Claim type '{name}' already exists")

        before = self._claim_type_snapshot(claim_type)
        with atomic(db):
            if name is not None:
                claim_type.name = name
            if description is not None:
                claim_type.description = description
            if limit_amount is not None:
                claim_type.limit_amount = limit_amount
            if limit_timespan is not None:
                claim_type.limit_timespan = LimitTimespan(limit_timespan)
            db.flush()

            audit_service.log_activity(
                db, actor.id, AuditAction.UPDATE, EntityType.CLAIM_TYPE, claim_type.id,
                old_values=before,
                new_values=self._claim_type_snapshot(claim_type),
                context=context
            )

        db.refresh(claim_type)
        logger.info(f"Claim type updated: {claim_type.name}")
        return claim_type

    # ============================================
    # USER GROUPS
    # ============================================

    def list_groups(self, db: Session) -> List[UserGroup]:
        return db.query(UserGroup).order_by(UserGroup.name).all()

    def create_group(
        self,
        db: Session,
        name: str,
        actor: User,
        description: Optional[str] = None,
        context: Optional[RequestContext] = None
    ) -> UserGroup:
        if db.query(UserGroup).filter(UserGroup.name == name).first():
            raise ConflictError(f"User group '{name}' already exists")

        with atomic(db):
            group = UserGroup(name=name, description=description)
            db.add(group)
            db.flush()

            audit_service.log_activity(
                db, actor.id, AuditAction.CREATE, EntityType.USER_GROUP, group.id,
                new_values={"name": name, "description": description},
                context=context
            )

        db.refresh(group)
        logger.info(f"User group created: {group.name}")
        return group

    def assign_user_group(
        self,
        db: Session,
        user_id: int,
        group_id: Optional[int],
        actor: User,
        context: Optional[RequestContext] = None
    ) -> User:
        """
        Move a user into a group, or out of every group with group_id None

        Existing balances are not recomputed.
        """
        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if group_id is not None and db.get(UserGroup, group_id) is None:
            raise NotFoundError("User group not found")

        before = user.user_group_id
        with atomic(db):
            user.user_group_id = group_id
            db.flush()

            audit_service.log_activity(
                db, actor.id, AuditAction.UPDATE, EntityType.USER, user.id,
                old_values={"user_group_id": before},
                new_values={"user_group_id": group_id},
                context=context
            )

        db.refresh(user)
        logger.info(f"User {user.id} moved from group {before} to {group_id}")
        return user

    @staticmethod
    def _validate_limit(limit_amount: float):
        if limit_amount is None or limit_amount < 0:
            raise ValidationError("limit_amount must not be negative")

    @staticmethod
    def _claim_type_snapshot(claim_type: ClaimType) -> dict:
        return {
            "name": claim_type.name,
            "description": claim_type.description,
            "limit_amount": claim_type.limit_amount,
            "limit_timespan": LimitTimespan(claim_type.limit_timespan).value
        }


# Create singleton instance
admin_service = AdminService()
