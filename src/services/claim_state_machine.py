"""
Claim State Machine
Valid status transitions and the approval-level capability each requires

    draft ──submit──> submitted ──approve──> approved ──> payment-in-progress ──> paid
                        │  │                     └──────────────────────────────> paid
                        │  └──reject──> rejected
                        └──request_changes──> draft
"""

from dataclasses import dataclass
from typing import Iterable, Optional
import enum

from src.models.approval import ApprovalLevel
from src.models.claim import Claim, ClaimStatus
from src.models.user import User
from src.utils.exceptions import ConflictError, PermissionDeniedError


class ClaimAction(str, enum.Enum):
    """Named actions, as offered to clients"""
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_CHANGES = "request_changes"
    SET_PAYMENT_IN_PROGRESS = "set_payment_in_progress"
    SET_PAID = "set_paid"


@dataclass(frozen=True)
class Transition:
    source: ClaimStatus
    target: ClaimStatus
    action: ClaimAction
    # None for owner-driven transitions
    capability: Optional[str] = None

    @property
    def is_review(self) -> bool:
        """Decisions on a submitted claim are scoped to the owner's group chain"""
        return self.source == ClaimStatus.SUBMITTED


TRANSITIONS = {
    (t.source, t.target): t
    for t in (
        Transition(ClaimStatus.DRAFT, ClaimStatus.SUBMITTED, ClaimAction.SUBMIT),
        Transition(ClaimStatus.SUBMITTED, ClaimStatus.APPROVED, ClaimAction.APPROVE, "can_approve"),
        Transition(ClaimStatus.SUBMITTED, ClaimStatus.REJECTED, ClaimAction.REJECT, "can_reject"),
        Transition(ClaimStatus.SUBMITTED, ClaimStatus.DRAFT, ClaimAction.REQUEST_CHANGES, "can_reject"),
        Transition(
            ClaimStatus.APPROVED, ClaimStatus.PAYMENT_IN_PROGRESS,
            ClaimAction.SET_PAYMENT_IN_PROGRESS, "can_set_payment_in_progress"
        ),
        Transition(ClaimStatus.APPROVED, ClaimStatus.PAID, ClaimAction.SET_PAID, "can_set_paid"),
        Transition(ClaimStatus.PAYMENT_IN_PROGRESS, ClaimStatus.PAID, ClaimAction.SET_PAID, "can_set_paid"),
    )
}

ACTION_TARGETS = {
    ClaimAction.SUBMIT: ClaimStatus.SUBMITTED,
    ClaimAction.APPROVE: ClaimStatus.APPROVED,
    ClaimAction.REJECT: ClaimStatus.REJECTED,
    ClaimAction.REQUEST_CHANGES: ClaimStatus.DRAFT,
    ClaimAction.SET_PAYMENT_IN_PROGRESS: ClaimStatus.PAYMENT_IN_PROGRESS,
    ClaimAction.SET_PAID: ClaimStatus.PAID,
}

# Owners may withdraw a claim only before it is organisationally approved
CANCELLABLE_STATUSES = frozenset({ClaimStatus.DRAFT, ClaimStatus.SUBMITTED})

EDITABLE_STATUSES = frozenset({ClaimStatus.DRAFT})

# Entering either status charges the owner's balance, once per claim
DEDUCTING_STATUSES = frozenset({ClaimStatus.APPROVED, ClaimStatus.PAID})


def find_transition(source: ClaimStatus, target: ClaimStatus) -> Transition:
    """
    Look up the edge between two statuses

    Raises:
        ConflictError: If the claim cannot move from source to target
    """
    transition = TRANSITIONS.get((ClaimStatus(source), ClaimStatus(target)))
    if transition is None:
        raise ConflictError(
            f"Cannot change claim status from '{ClaimStatus(source).value}' "
            f"to '{ClaimStatus(target).value}'"
        )
    return transition


def authorize_transition(
    transition: Transition,
    claim: Claim,
    actor: User,
    candidate_levels: Iterable[ApprovalLevel],
    approval_level_id: Optional[int] = None
) -> Optional[ApprovalLevel]:
    """
    Check the actor may perform a transition and pick the level acting

    Any level held by the actor with the right capability qualifies; level
    order is not enforced. With approval_level_id the actor must act
    through that specific level.

    Args:
        transition: Edge being taken
        claim: Claim being changed
        actor: Acting user
        candidate_levels: Approval levels held by the actor within scope
        approval_level_id: Level the actor asked to act through

    Returns:
        ApprovalLevel: Level used, or None for owner-driven transitions

    Raises:
        PermissionDeniedError: If the actor is not allowed
    """
    if transition.capability is None:
        if actor.id != claim.user_id:
            raise PermissionDeniedError("Only the claim owner can submit this claim")
        return None

    if actor.id == claim.user_id:
        raise PermissionDeniedError("Cannot approve or process your own claim")

    levels = sorted(
        (level for level in candidate_levels if level.approver_id == actor.id),
        key=lambda level: level.level
    )

    if approval_level_id is not None:
        levels = [level for level in levels if level.id == approval_level_id]
        if not levels:
            raise PermissionDeniedError("You are not authorized to act at this approval level")

    for level in levels:
        if getattr(level, transition.capability):
            return level

    raise PermissionDeniedError(
        f"You don't have permission to {transition.action.value.replace('_', ' ')} this claim"
    )


def should_deduct(claim: Claim, target: ClaimStatus) -> bool:
    """Whether entering target charges the claim amount to the owner's balance"""
    return (
        target in DEDUCTING_STATUSES
        and claim.status != target
        and claim.balance_deducted_at is None
    )
