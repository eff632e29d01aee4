"""
Workflow Service
Derives a display-ready view of a claim's approval progress

project_workflow() is a pure function of the claim, its owner's approval
levels and its approval history, so the view can be rebuilt at any time
from persisted state.
"""

from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from src.models.approval import ApprovalLevel
from src.models.claim import Claim, ClaimApproval, ClaimStatus
from src.models.user import User
from src.schemas.workflow import WorkflowAction, WorkflowStep, WorkflowView
from src.services.claim_state_machine import ClaimAction
from src.utils.logger import setup_logger

logger = setup_logger()


ACTION_DETAILS = {
    "submit": ("Submit for Approval", "Submit claim to approval workflow"),
    "edit": ("Edit Claim", "Modify claim details"),
    "cancel": ("Cancel Claim", "Delete this claim"),
    ClaimAction.APPROVE.value: ("Approve", "Approve this claim"),
    ClaimAction.REJECT.value: ("Reject", "Reject this claim"),
    ClaimAction.REQUEST_CHANGES.value: ("Request Changes", "Request changes to this claim"),
    ClaimAction.SET_PAYMENT_IN_PROGRESS.value: ("Mark Payment in Progress", "Mark claim as payment in progress"),
    ClaimAction.SET_PAID.value: ("Mark as Paid", "Mark claim as paid"),
}


def _action(name: str, level_id: Optional[int] = None) -> WorkflowAction:
    label, description = ACTION_DETAILS[name]
    return WorkflowAction(action=name, label=label, description=description, level_id=level_id)


def _current_round(history: Sequence[ClaimApproval]) -> List[ClaimApproval]:
    """Records made since the latest submission; earlier rounds were sent back to draft"""
    ordered = sorted(history, key=lambda record: (record.created_at is None, record.created_at, record.id or 0))
    last_submission = None
    for index, record in enumerate(ordered):
        if record.status == ClaimStatus.SUBMITTED and record.approval_level_id is None:
            last_submission = index
    if last_submission is None:
        return ordered
    return ordered[last_submission + 1:]


def _display_name(user) -> Optional[str]:
    if user is None:
        return None
    return f"{user.first_name} {user.last_name}"


def next_actions(
    claim: Claim,
    approval_levels: Sequence[ApprovalLevel],
    approval_history: Sequence[ClaimApproval]
) -> List[WorkflowAction]:
    """
    Actions admissible for the claim's current status

    Args:
        claim: Claim being projected
        approval_levels: Levels of the owner's group
        approval_history: Every ClaimApproval of the claim

    Returns:
        List[WorkflowAction]: Ordered actions
    """
    levels = sorted(approval_levels, key=lambda level: level.level)
    status = ClaimStatus(claim.status)
    actions = []

    if status == ClaimStatus.DRAFT:
        actions = [_action("submit"), _action("edit"), _action("cancel")]

    elif status == ClaimStatus.SUBMITTED:
        acted = {record.approval_level_id for record in _current_round(approval_history)}
        for level in levels:
            if level.id in acted:
                continue
            if level.can_approve:
                actions.append(_action(ClaimAction.APPROVE.value, level.id))
            if level.can_reject:
                actions.append(_action(ClaimAction.REJECT.value, level.id))
                actions.append(_action(ClaimAction.REQUEST_CHANGES.value, level.id))
            # Only the next level is offered
            break

    elif status == ClaimStatus.APPROVED:
        for level in levels:
            if level.can_set_payment_in_progress:
                actions.append(_action(ClaimAction.SET_PAYMENT_IN_PROGRESS.value, level.id))
            if level.can_set_paid:
                actions.append(_action(ClaimAction.SET_PAID.value, level.id))

    elif status == ClaimStatus.PAYMENT_IN_PROGRESS:
        for level in levels:
            if level.can_set_paid:
                actions.append(_action(ClaimAction.SET_PAID.value, level.id))

    return actions


def project_workflow(
    claim: Claim,
    approval_levels: Sequence[ApprovalLevel],
    approval_history: Sequence[ClaimApproval]
) -> WorkflowView:
    """
    Build the workflow view of a claim

    Args:
        claim: Claim being projected
        approval_levels: Levels of the owner's group
        approval_history: Every ClaimApproval of the claim

    Returns:
        WorkflowView: Steps, progress and next actions
    """
    status = ClaimStatus(claim.status)
    steps = [
        WorkflowStep(
            id="created",
            type="system",
            title="Claim Created",
            description=(
                f"Claim created by {_display_name(claim.user)}"
                if getattr(claim, "user", None) is not None else "Claim created"
            ),
            status="completed",
            completed_at=claim.created_at,
            acted_by_id=claim.user_id
        )
    ]

    if status != ClaimStatus.DRAFT:
        steps.append(
            WorkflowStep(
                id="submitted",
                type="system",
                title="Submitted for Approval",
                description="Claim submitted to approval workflow",
                status="completed",
                completed_at=claim.submitted_at or claim.updated_at,
                acted_by_id=claim.user_id
            )
        )

    current = _current_round(approval_history)
    for level in sorted(approval_levels, key=lambda level: level.level):
        record = None
        for candidate in current:
            if candidate.approval_level_id == level.id:
                record = candidate

        group = getattr(level, "user_group", None)
        step = WorkflowStep(
            id=level.id,
            type="approval",
            title=f"{group.name} Approval" if group is not None else f"Level {level.level} Approval",
            description=f"Level {level.level} approval required",
            status="pending",
            level=level.level,
            approver_id=level.approver_id,
            approver_name=_display_name(getattr(level, "approver", None)),
            permissions=level.permissions()
        )

        if record is not None:
            step.status = "completed"
            step.completed_at = record.created_at
            step.decision = record.status
            step.comments = record.comments
            step.acted_by_id = record.approver_id
        elif status == ClaimStatus.DRAFT:
            step.status = "not_started"
        elif status == ClaimStatus.SUBMITTED:
            step.status = "pending"
        else:
            step.status = "not_reached"

        steps.append(step)

    completed = sum(1 for step in steps if step.status == "completed")
    total = len(steps)
    current_step = next((step for step in steps if step.status == "pending"), None)

    return WorkflowView(
        claim_id=claim.id,
        status=status,
        workflow_steps=steps,
        progress=completed / total * 100,
        completed_steps=completed,
        total_steps=total,
        current_step=current_step,
        next_actions=next_actions(claim, approval_levels, approval_history)
    )


class WorkflowService:
    """Loads persisted state and projects it"""

    def group_levels(self, db: Session, owner: User) -> List[ApprovalLevel]:
        """Approval chain of the owner's group, ascending"""
        if owner is None or owner.user_group_id is None:
            return []
        return db.query(ApprovalLevel).filter(
            ApprovalLevel.user_group_id == owner.user_group_id,
            ApprovalLevel.deleted_at.is_(None)
        ).order_by(ApprovalLevel.level).all()

    def get_workflow(self, db: Session, claim: Claim) -> WorkflowView:
        """
        Project the workflow of an already access-checked claim

        Args:
            db: Database session
            claim: Claim to project

        Returns:
            WorkflowView: Projection
        """
        levels = self.group_levels(db, claim.user)
        history = db.query(ClaimApproval).filter(
            ClaimApproval.claim_id == claim.id
        ).order_by(ClaimApproval.id).all()

        view = project_workflow(claim, levels, history)
        logger.debug(f"Projected workflow for claim {claim.id}: {view.completed_steps}/{view.total_steps} steps")
        return view


# Create singleton instance
workflow_service = WorkflowService()
