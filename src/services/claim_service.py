"""
Claim Service
Business logic for the claim lifecycle
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from src.config.database import atomic
from src.models.approval import ApprovalLevel
from src.models.audit_log import AuditAction, EntityType
from src.models.claim import Claim, ClaimApproval, ClaimStatus, ClaimType
from src.models.user import User
from src.services.audit_service import audit_service, RequestContext
from src.services.balance_service import balance_service
from src.services.claim_state_machine import (
    ACTION_TARGETS,
    CANCELLABLE_STATUSES,
    EDITABLE_STATUSES,
    ClaimAction,
    Transition,
    authorize_transition,
    find_transition,
    should_deduct,
)
from src.services.permission_service import permission_service
from src.utils.exceptions import (
    BalanceExceededError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from src.utils.logger import setup_logger

logger = setup_logger()


AUDIT_ACTIONS = {
    ClaimStatus.SUBMITTED: AuditAction.SUBMIT,
    ClaimStatus.APPROVED: AuditAction.APPROVE,
    ClaimStatus.REJECTED: AuditAction.REJECT,
}


class ClaimService:
    """Service for claim-related business logic"""

    def __init__(self):
        """Initialize with dependent services"""
        self.balance_service = balance_service
        self.permission_service = permission_service
        self.audit_service = audit_service

    # ============================================
    # QUERIES
    # ============================================

    def _find(self, db: Session, claim_id: int) -> Claim:
        claim = db.query(Claim).filter(
            Claim.id == claim_id,
            Claim.deleted_at.is_(None)
        ).first()
        if claim is None:
            raise NotFoundError("Claim not found")
        return claim

    def _find_owned(self, db: Session, claim_id: int, actor: User) -> Claim:
        claim = self._find(db, claim_id)
        if claim.user_id != actor.id:
            raise NotFoundError("Claim not found")
        return claim

    def can_view(self, db: Session, claim: Claim, viewer: User) -> bool:
        """Admins, the owner and approvers in the owner's group may view a claim"""
        if viewer.is_admin or claim.user_id == viewer.id:
            return True
        owner = claim.user
        if owner is None or owner.user_group_id is None:
            return False
        return db.query(ApprovalLevel).filter(
            ApprovalLevel.user_group_id == owner.user_group_id,
            ApprovalLevel.approver_id == viewer.id,
            ApprovalLevel.deleted_at.is_(None)
        ).first() is not None

    def get_claim(self, db: Session, claim_id: int, viewer: User) -> Claim:
        """
        Get a claim visible to the viewer

        Raises:
            NotFoundError: If the claim does not exist or is not visible
        """
        claim = self._find(db, claim_id)
        if not self.can_view(db, claim, viewer):
            raise NotFoundError("Claim not found")
        return claim

    def list_claims(
        self,
        db: Session,
        viewer: User,
        status: Optional[ClaimStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[Claim]:
        """
        List claims; admins see every claim, other users their own

        Args:
            db: Database session
            viewer: Requesting user
            status: Optional status filter
            skip: Offset
            limit: Page size

        Returns:
            List[Claim]: Newest first
        """
        query = db.query(Claim).filter(Claim.deleted_at.is_(None))
        if not viewer.is_admin:
            query = query.filter(Claim.user_id == viewer.id)
        if status is not None:
            query = query.filter(Claim.status == status)
        return query.order_by(Claim.created_at.desc(), Claim.id.desc()).offset(skip).limit(limit).all()

    # ============================================
    # OWNER OPERATIONS
    # ============================================

    def _ensure_claimable(self, db: Session, owner: User, claim_type_id: int, amount: float):
        """Permission then balance gate shared by create and update"""
        if db.get(ClaimType, claim_type_id) is None:
            raise NotFoundError("Claim type not found")

        if not self.permission_service.can_access(db, owner.id, claim_type_id):
            logger.warning(f"User {owner.id} denied claim type {claim_type_id}")
            raise PermissionDeniedError("You do not have permission to claim this type")

        ok, reason = self.balance_service.check_claim(db, owner.id, claim_type_id, amount)
        if not ok:
            logger.warning(f"Claim by user {owner.id} rejected: {reason}")
            raise BalanceExceededError(reason)

    def create_claim(
        self,
        db: Session,
        owner: User,
        claim_type_id: int,
        amount: float,
        title: str,
        description: Optional[str] = None,
        context: Optional[RequestContext] = None
    ) -> Claim:
        """
        Create a draft claim after checking the owner's balance

        Creating a claim never changes the balance; spending is charged
        when the claim is approved or paid.

        Args:
            db: Database session
            owner: Claimant
            claim_type_id: Claim type ID
            amount: Claimed amount
            title: Short title
            description: Optional details
            context: Client details for the audit trail

        Returns:
            Claim: New draft claim
        """
        if not title or not title.strip():
            raise ValidationError("Title is required")
        if amount is None or amount <= 0:
            raise ValidationError("Amount must be greater than zero")

        self._ensure_claimable(db, owner, claim_type_id, amount)

        with atomic(db):
            claim = Claim(
                title=title.strip(),
                description=description,
                amount=amount,
                user_id=owner.id,
                claim_type_id=claim_type_id,
                status=ClaimStatus.DRAFT
            )
            db.add(claim)
            db.flush()

            self.audit_service.log_activity(
                db, owner.id, AuditAction.CREATE, EntityType.CLAIM, claim.id,
                new_values=self._snapshot(claim),
                context=context
            )

        db.refresh(claim)
        logger.info(f"Claim {claim.id} created by user {owner.id} for {amount:,.2f}")
        return claim

    def update_claim(
        self,
        db: Session,
        claim_id: int,
        actor: User,
        title: Optional[str] = None,
        description: Optional[str] = None,
        amount: Optional[float] = None,
        claim_type_id: Optional[int] = None,
        context: Optional[RequestContext] = None
    ) -> Claim:
        """
        Edit a draft claim owned by the actor

        Raises:
            ConflictError: If the claim is no longer a draft
        """
        claim = self._find_owned(db, claim_id, actor)
        if claim.status not in EDITABLE_STATUSES:
            raise ConflictError("Can only update draft claims")

        if title is not None and not title.strip():
            raise ValidationError("Title is required")
        if amount is not None and amount <= 0:
            raise ValidationError("Amount must be greater than zero")

        new_type = claim_type_id if claim_type_id is not None else claim.claim_type_id
        new_amount = amount if amount is not None else claim.amount
        if new_type != claim.claim_type_id or new_amount != claim.amount:
            self._ensure_claimable(db, actor, new_type, new_amount)

        before = self._snapshot(claim)
        with atomic(db):
            if title is not None:
                claim.title = title.strip()
            if description is not None:
                claim.description = description
            claim.amount = new_amount
            claim.claim_type_id = new_type
            db.flush()

            self.audit_service.log_activity(
                db, actor.id, AuditAction.UPDATE, EntityType.CLAIM, claim.id,
                old_values=before,
                new_values=self._snapshot(claim),
                context=context
            )

        db.refresh(claim)
        logger.info(f"Claim {claim.id} updated by user {actor.id}")
        return claim

    def submit_claim(
        self,
        db: Session,
        claim_id: int,
        actor: User,
        comments: Optional[str] = None,
        context: Optional[RequestContext] = None
    ) -> Claim:
        """Submit a draft claim for approval"""
        return self.transition_claim(
            db, claim_id, actor, ClaimStatus.SUBMITTED, comments=comments, context=context
        )

    def cancel_claim(
        self,
        db: Session,
        claim_id: int,
        actor: User,
        context: Optional[RequestContext] = None
    ):
        """
        Withdraw a draft or submitted claim

        The claim is soft-deleted so its approval history stays intact.

        Raises:
            ConflictError: If the claim is approved or further along
        """
        claim = self._find_owned(db, claim_id, actor)
        if claim.status not in CANCELLABLE_STATUSES:
            raise ConflictError("Cannot cancel approved or processed claims")

        with atomic(db):
            claim.deleted_at = datetime.utcnow()
            db.flush()

            self.audit_service.log_activity(
                db, actor.id, AuditAction.DELETE, EntityType.CLAIM, claim.id,
                old_values=self._snapshot(claim),
                context=context
            )

        logger.info(f"Claim {claim_id} cancelled by user {actor.id}")

    # ============================================
    # STATE MACHINE
    # ============================================

    def _candidate_levels(self, db: Session, claim: Claim, actor: User, transition: Transition) -> List[ApprovalLevel]:
        """Levels the actor holds that may authorise this transition"""
        query = db.query(ApprovalLevel).filter(
            ApprovalLevel.approver_id == actor.id,
            ApprovalLevel.deleted_at.is_(None)
        )
        if transition.is_review:
            owner = claim.user
            if owner is None or owner.user_group_id is None:
                return []
            query = query.filter(ApprovalLevel.user_group_id == owner.user_group_id)
        return query.order_by(ApprovalLevel.level).all()

    def transition_claim(
        self,
        db: Session,
        claim_id: int,
        actor: User,
        target_status: ClaimStatus,
        comments: Optional[str] = None,
        approval_level_id: Optional[int] = None,
        context: Optional[RequestContext] = None
    ) -> Claim:
        """
        Move a claim to another status

        The status change, any balance deduction, the ClaimApproval record
        and the audit entry are written in a single transaction; if any of
        them fails the claim keeps its previous status.

        Args:
            db: Database session
            claim_id: Claim ID
            actor: Acting user
            target_status: Desired status
            comments: Optional reviewer comments
            approval_level_id: Level the actor acts through, if specified
            context: Client details for the audit trail

        Returns:
            Claim: Updated claim

        Raises:
            NotFoundError: If the claim does not exist
            ConflictError: If the transition is not valid from the current status
            PermissionDeniedError: If the actor lacks the capability or owns the claim
            PersistenceError: If the write or the deduction fails
        """
        try:
            target_status = ClaimStatus(target_status)
        except ValueError:
            raise ValidationError(f"Unknown claim status '{target_status}'")

        claim = self._find(db, claim_id)
        old_status = ClaimStatus(claim.status)

        transition = find_transition(old_status, target_status)
        candidates = self._candidate_levels(db, claim, actor, transition)
        try:
            level = authorize_transition(transition, claim, actor, candidates, approval_level_id)
        except PermissionDeniedError as e:
            logger.warning(f"User {actor.id} denied {transition.action.value} on claim {claim.id}: {e.message}")
            raise

        deduct = should_deduct(claim, target_status)
        now = datetime.utcnow()

        with atomic(db):
            claim.status = target_status
            if target_status == ClaimStatus.SUBMITTED:
                claim.submitted_at = now

            if deduct:
                self.balance_service.deduct(db, claim.user_id, claim.claim_type_id, claim.amount)
                claim.balance_deducted_at = now

            approval = ClaimApproval(
                claim_id=claim.id,
                approval_level_id=level.id if level is not None else None,
                approver_id=actor.id,
                status=target_status,
                comments=comments
            )
            db.add(approval)
            db.flush()

            self.audit_service.log_activity(
                db, actor.id, AUDIT_ACTIONS.get(target_status, AuditAction.UPDATE),
                EntityType.CLAIM, claim.id,
                old_values={"status": old_status.value},
                new_values={
                    "status": target_status.value,
                    "approval_level_id": approval.approval_level_id,
                    "comments": comments
                },
                context=context
            )

        db.refresh(claim)
        logger.info(
            f"Claim {claim.id} moved {old_status.value} -> {target_status.value} by user {actor.id}"
            + (f" at level {level.level}" if level is not None else "")
        )
        return claim

    def apply_workflow_action(
        self,
        db: Session,
        claim_id: int,
        approval_level_id: int,
        action: ClaimAction,
        actor: User,
        comments: Optional[str] = None,
        context: Optional[RequestContext] = None
    ) -> Claim:
        """
        Act on a claim through one specific approval level

        Args:
            db: Database session
            claim_id: Claim ID
            approval_level_id: Level the actor acts through
            action: Named action (approve, reject, request_changes, ...)
            actor: Acting user

        Returns:
            Claim: Updated claim
        """
        action = ClaimAction(action)
        if action == ClaimAction.SUBMIT:
            raise ValidationError("Submission is not an approval-level action")

        return self.transition_claim(
            db,
            claim_id,
            actor,
            ACTION_TARGETS[action],
            comments=comments,
            approval_level_id=approval_level_id,
            context=context
        )

    @staticmethod
    def _snapshot(claim: Claim) -> dict:
        return {
            "title": claim.title,
            "description": claim.description,
            "amount": claim.amount,
            "claim_type_id": claim.claim_type_id,
            "status": ClaimStatus(claim.status).value
        }


# Create singleton instance
claim_service = ClaimService()
