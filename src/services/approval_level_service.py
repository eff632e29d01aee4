"""
Approval Level Service
Maintains each user group's ordered approval chain

Levels are 1-based and contiguous within a group. Deleting a level retires
it, since approval history keeps pointing at it, and shifts every higher
level down by one. Reordering rewrites the whole chain.
"""

from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from src.config.database import atomic
from src.models.approval import ApprovalLevel, CAPABILITY_FLAGS
from src.models.audit_log import AuditAction, EntityType
from src.models.user import User, UserGroup
from src.services.audit_service import audit_service, RequestContext
from src.utils.exceptions import NotFoundError, ValidationError
from src.utils.logger import setup_logger

logger = setup_logger()


class ApprovalLevelService:
    """Service for approval chain maintenance"""

    def list_levels(self, db: Session, group_id: Optional[int] = None) -> List[ApprovalLevel]:
        """Levels ordered by group, then level"""
        query = db.query(ApprovalLevel).filter(ApprovalLevel.deleted_at.is_(None))
        if group_id is not None:
            query = query.filter(ApprovalLevel.user_group_id == group_id)
        return query.order_by(ApprovalLevel.user_group_id, ApprovalLevel.level).all()

    def get_level(self, db: Session, level_id: int) -> ApprovalLevel:
        level = db.get(ApprovalLevel, level_id)
        if level is None or level.deleted_at is not None:
            raise NotFoundError("Approval level not found")
        return level

    def create_level(
        self,
        db: Session,
        group_id: int,
        approver_id: int,
        flags: Dict[str, bool],
        actor: User,
        context: Optional[RequestContext] = None
    ) -> ApprovalLevel:
        """
        Append a level to the end of a group's chain

        Args:
            db: Database session
            group_id: User group ID
            approver_id: User acting at this level
            flags: Capability flags, unspecified flags keep their defaults
            actor: Admin performing the change
            context: Client details for the audit trail

        Returns:
            ApprovalLevel: New level numbered max(level) + 1
        """
        if db.get(UserGroup, group_id) is None:
            raise NotFoundError("User group not found")
        self._ensure_approver(db, approver_id)

        with atomic(db):
            highest = db.query(func.max(ApprovalLevel.level)).filter(
                ApprovalLevel.user_group_id == group_id,
                ApprovalLevel.deleted_at.is_(None)
            ).scalar()

            level = ApprovalLevel(
                user_group_id=group_id,
                approver_id=approver_id,
                level=(highest or 0) + 1,
                **self._clean_flags(flags)
            )
            db.add(level)
            db.flush()

            audit_service.log_activity(
                db, actor.id, AuditAction.CREATE, EntityType.APPROVAL_LEVEL, level.id,
                new_values=self._snapshot(level),
                context=context
            )

        db.refresh(level)
        logger.info(f"Approval level {level.level} added to group {group_id} for approver {approver_id}")
        return level

    def update_level(
        self,
        db: Session,
        level_id: int,
        actor: User,
        approver_id: Optional[int] = None,
        flags: Optional[Dict[str, bool]] = None,
        context: Optional[RequestContext] = None
    ) -> ApprovalLevel:
        """Change a level's approver or capability flags; its position is untouched"""
        level = self.get_level(db, level_id)
        if approver_id is not None:
            self._ensure_approver(db, approver_id)

        before = self._snapshot(level)
        with atomic(db):
            if approver_id is not None:
                level.approver_id = approver_id
            for flag, value in self._clean_flags(flags or {}).items():
                setattr(level, flag, value)
            db.flush()

            audit_service.log_activity(
                db, actor.id, AuditAction.UPDATE, EntityType.APPROVAL_LEVEL, level.id,
                old_values=before,
                new_values=self._snapshot(level),
                context=context
            )

        db.refresh(level)
        logger.info(f"Approval level {level.id} updated")
        return level

    def delete_level(
        self,
        db: Session,
        level_id: int,
        actor: User,
        context: Optional[RequestContext] = None
    ):
        """
        Retire a level and close the gap it leaves

        The row stays, unnumbered, so ClaimApproval records made through it
        still resolve to the original approver. Higher levels of the same
        group move down by one, in ascending order, within the same
        transaction.
        """
        level = self.get_level(db, level_id)
        group_id = level.user_group_id
        removed = level.level
        before = self._snapshot(level)

        with atomic(db):
            level.level = None
            level.deleted_at = datetime.utcnow()
            db.flush()

            higher = db.query(ApprovalLevel).filter(
                ApprovalLevel.user_group_id == group_id,
                ApprovalLevel.level > removed,
                ApprovalLevel.deleted_at.is_(None)
            ).order_by(ApprovalLevel.level).all()
            for row in higher:
                row.level -= 1
                # One row at a time keeps (group, level) unique throughout
                db.flush()

            audit_service.log_activity(
                db, actor.id, AuditAction.DELETE, EntityType.APPROVAL_LEVEL, level_id,
                old_values=before,
                new_values={"renumbered": [row.id for row in higher]},
                context=context
            )

        logger.info(f"Approval level {removed} removed from group {group_id}, {len(higher)} renumbered")

    def reorder_levels(
        self,
        db: Session,
        group_id: int,
        ordered_ids: Sequence[int],
        actor: User,
        context: Optional[RequestContext] = None
    ) -> List[ApprovalLevel]:
        """
        Rewrite a group's chain so ordered_ids[i] becomes level i + 1

        Raises:
            ValidationError: Unless ordered_ids names each of the group's levels exactly once
        """
        if db.get(UserGroup, group_id) is None:
            raise NotFoundError("User group not found")

        levels = {level.id: level for level in self.list_levels(db, group_id)}
        ordered_ids = list(ordered_ids)
        if len(ordered_ids) != len(set(ordered_ids)) or set(ordered_ids) != set(levels):
            raise ValidationError("Reorder must list every approval level of the group exactly once")

        before = {level_id: level.level for level_id, level in levels.items()}

        with atomic(db):
            # Park every row on a negative number first so no two rows collide
            for level in levels.values():
                level.level = -level.level
            db.flush()

            for position, level_id in enumerate(ordered_ids, start=1):
                levels[level_id].level = position
            db.flush()

            audit_service.log_activity(
                db, actor.id, AuditAction.UPDATE, EntityType.USER_GROUP, group_id,
                old_values={"levels": before},
                new_values={"levels": {level_id: levels[level_id].level for level_id in ordered_ids}},
                context=context
            )

        logger.info(f"Approval chain of group {group_id} reordered to {ordered_ids}")
        return self.list_levels(db, group_id)

    @staticmethod
    def _ensure_approver(db: Session, approver_id: int):
        approver = db.get(User, approver_id)
        if approver is None:
            raise NotFoundError("Approver not found")
        if not approver.is_active:
            raise ValidationError("Approver account is inactive")

    @staticmethod
    def _clean_flags(flags: Dict[str, bool]) -> Dict[str, bool]:
        unknown = set(flags) - set(CAPABILITY_FLAGS)
        if unknown:
            raise ValidationError(f"Unknown capability flags: {', '.join(sorted(unknown))}")
        return {flag: bool(value) for flag, value in flags.items() if value is not None}

    @staticmethod
    def _snapshot(level: ApprovalLevel) -> dict:
        return {
            "user_group_id": level.user_group_id,
            "level": level.level,
            "approver_id": level.approver_id,
            **level.permissions()
        }


# Create singleton instance
approval_level_service = ApprovalLevelService()
