"""
Claim Tests
Claim lifecycle, approval transitions and balance deduction
"""

import pytest

from src.models.approval import ApprovalLevel
from src.models.audit_log import AuditLog
from src.models.claim import Claim, ClaimApproval, ClaimStatus
from src.models.permission import UserGroupClaimType
from src.services.balance_service import balance_service
from src.services.claim_service import claim_service
from src.services.claim_state_machine import ClaimAction, find_transition
from src.utils.exceptions import (
    BalanceExceededError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)


def submitted_claim(db, org, amount=800.0):
    claim = claim_service.create_claim(db, org.alice, org.travel.id, amount, "Client visit")
    return claim_service.submit_claim(db, claim.id, org.alice)


class TestTransitions:
    """Static transition table"""

    @pytest.mark.parametrize("source,target", [
        (ClaimStatus.DRAFT, ClaimStatus.SUBMITTED),
        (ClaimStatus.SUBMITTED, ClaimStatus.APPROVED),
        (ClaimStatus.SUBMITTED, ClaimStatus.REJECTED),
        (ClaimStatus.SUBMITTED, ClaimStatus.DRAFT),
        (ClaimStatus.APPROVED, ClaimStatus.PAYMENT_IN_PROGRESS),
        (ClaimStatus.APPROVED, ClaimStatus.PAID),
        (ClaimStatus.PAYMENT_IN_PROGRESS, ClaimStatus.PAID),
    ])
    def test_valid_edges(self, source, target):
        assert find_transition(source, target).target == target

    @pytest.mark.parametrize("source,target", [
        (ClaimStatus.DRAFT, ClaimStatus.APPROVED),
        (ClaimStatus.REJECTED, ClaimStatus.SUBMITTED),
        (ClaimStatus.PAID, ClaimStatus.APPROVED),
        (ClaimStatus.APPROVED, ClaimStatus.DRAFT),
    ])
    def test_invalid_edges(self, source, target):
        with pytest.raises(ConflictError):
            find_transition(source, target)


class TestClaimCreation:
    """Draft creation and editing"""

    def test_amount_over_balance_rejected(self, db, org):
        with pytest.raises(BalanceExceededError) as exc:
            claim_service.create_claim(db, org.alice, org.travel.id, 1200.0, "Conference trip")
        assert "exceeds remaining balance of $1,000.00" in exc.value.message
        assert db.query(Claim).count() == 0

    def test_create_draft_does_not_spend(self, db, org):
        claim = claim_service.create_claim(db, org.alice, org.travel.id, 800.0, "Client visit")

        assert claim.status == ClaimStatus.DRAFT
        balance = balance_service.get_or_create_balance(db, org.alice.id, org.travel.id)
        assert balance.current_spent == 0.0

    def test_denied_claim_type(self, db, org):
        db.add(UserGroupClaimType(user_group_id=org.engineering.id, claim_type_id=org.meals.id, is_allowed=False))
        db.commit()

        with pytest.raises(PermissionDeniedError):
            claim_service.create_claim(db, org.alice, org.meals.id, 10.0, "Lunch")

    def test_update_draft_rechecks_balance(self, db, org):
        claim = claim_service.create_claim(db, org.alice, org.travel.id, 800.0, "Client visit")

        with pytest.raises(BalanceExceededError):
            claim_service.update_claim(db, claim.id, org.alice, amount=1500.0)

        updated = claim_service.update_claim(db, claim.id, org.alice, amount=900.0, title="Client visit (2 days)")
        assert updated.amount == 900.0
        assert updated.title == "Client visit (2 days)"

    def test_only_owner_can_update(self, db, org):
        claim = claim_service.create_claim(db, org.alice, org.travel.id, 100.0, "Taxi")
        with pytest.raises(NotFoundError):
            claim_service.update_claim(db, claim.id, org.bob, amount=50.0)

    def test_submitted_claim_cannot_be_edited(self, db, org):
        claim = submitted_claim(db, org)
        with pytest.raises(ConflictError):
            claim_service.update_claim(db, claim.id, org.alice, amount=50.0)


class TestApprovalFlow:
    """Transitions through approval levels"""

    def test_submit_records_history(self, db, org):
        claim = submitted_claim(db, org)

        assert claim.status == ClaimStatus.SUBMITTED
        assert claim.submitted_at is not None
        history = db.query(ClaimApproval).filter(ClaimApproval.claim_id == claim.id).all()
        assert len(history) == 1
        assert history[0].approval_level_id is None
        assert history[0].status == ClaimStatus.SUBMITTED

    def test_only_owner_can_submit(self, db, org):
        claim = claim_service.create_claim(db, org.alice, org.travel.id, 100.0, "Taxi")
        with pytest.raises(PermissionDeniedError):
            claim_service.submit_claim(db, claim.id, org.manager)

    def test_approval_deducts_balance_once(self, db, org):
        claim = submitted_claim(db, org)

        claim = claim_service.transition_claim(db, claim.id, org.manager, ClaimStatus.APPROVED, comments="OK")

        assert claim.status == ClaimStatus.APPROVED
        assert claim.balance_deducted_at is not None
        balance = balance_service.get_or_create_balance(db, org.alice.id, org.travel.id)
        assert balance.current_spent == 800.0
        assert balance.remaining_balance == 200.0

        approvals = db.query(ClaimApproval).filter(
            ClaimApproval.claim_id == claim.id,
            ClaimApproval.status == ClaimStatus.APPROVED
        ).all()
        assert len(approvals) == 1
        assert approvals[0].approval_level_id == org.level_one.id
        assert approvals[0].approver_id == org.manager.id

        # Paying an approved claim must not charge it again
        claim = claim_service.transition_claim(db, claim.id, org.finance, ClaimStatus.PAID)
        assert claim.status == ClaimStatus.PAID
        balance = balance_service.get_or_create_balance(db, org.alice.id, org.travel.id)
        assert balance.current_spent == 800.0

    def test_follow_up_claim_sees_reduced_balance(self, db, org):
        claim = submitted_claim(db, org)
        claim_service.transition_claim(db, claim.id, org.manager, ClaimStatus.APPROVED)

        with pytest.raises(BalanceExceededError):
            claim_service.create_claim(db, org.alice, org.travel.id, 300.0, "Second trip")

    def test_self_approval_forbidden(self, db, org):
        db.add(ApprovalLevel(
            user_group_id=org.engineering.id,
            approver_id=org.alice.id,
            level=3,
            can_approve=True,
            can_reject=True
        ))
        db.commit()
        claim = submitted_claim(db, org)

        with pytest.raises(PermissionDeniedError):
            claim_service.transition_claim(db, claim.id, org.alice, ClaimStatus.APPROVED)

        db.expire_all()
        assert db.get(Claim, claim.id).status == ClaimStatus.SUBMITTED

    def test_missing_capability_forbidden(self, db, org):
        claim = submitted_claim(db, org)
        claim = claim_service.transition_claim(db, claim.id, org.manager, ClaimStatus.APPROVED)

        # Level 1 may approve but not pay
        with pytest.raises(PermissionDeniedError):
            claim_service.transition_claim(db, claim.id, org.manager, ClaimStatus.PAID)

    def test_payment_flags_gate_payment_transitions(self, db, org):
        claim = submitted_claim(db, org)
        claim = claim_service.transition_claim(db, claim.id, org.manager, ClaimStatus.APPROVED)

        with pytest.raises(PermissionDeniedError):
            claim_service.transition_claim(db, claim.id, org.manager, ClaimStatus.PAYMENT_IN_PROGRESS)

        claim = claim_service.transition_claim(db, claim.id, org.finance, ClaimStatus.PAYMENT_IN_PROGRESS)
        assert claim.status == ClaimStatus.PAYMENT_IN_PROGRESS

        claim = claim_service.apply_workflow_action(
            db, claim.id, org.level_two.id, ClaimAction.SET_PAID, org.finance
        )
        assert claim.status == ClaimStatus.PAID

        balance = balance_service.get_or_create_balance(db, org.alice.id, org.travel.id)
        assert balance.current_spent == 800.0
        assert balance.remaining_balance == 200.0

        statuses = [
            record.status for record in
            db.query(ClaimApproval).filter(ClaimApproval.claim_id == claim.id).order_by(ClaimApproval.id)
        ]
        assert statuses == [
            ClaimStatus.SUBMITTED,
            ClaimStatus.APPROVED,
            ClaimStatus.PAYMENT_IN_PROGRESS,
            ClaimStatus.PAID
        ]

    def test_outsider_cannot_approve(self, db, org):
        claim = submitted_claim(db, org)
        with pytest.raises(PermissionDeniedError):
            claim_service.transition_claim(db, claim.id, org.bob, ClaimStatus.APPROVED)

    def test_rejected_is_terminal(self, db, org):
        claim = submitted_claim(db, org)
        claim = claim_service.transition_claim(db, claim.id, org.manager, ClaimStatus.REJECTED, comments="No receipt")

        assert claim.status == ClaimStatus.REJECTED
        assert claim.balance_deducted_at is None
        with pytest.raises(ConflictError):
            claim_service.transition_claim(db, claim.id, org.manager, ClaimStatus.APPROVED)

    def test_request_changes_returns_to_draft(self, db, org):
        claim = submitted_claim(db, org)
        claim = claim_service.apply_workflow_action(
            db, claim.id, org.level_one.id, ClaimAction.REQUEST_CHANGES, org.manager, comments="Add receipt"
        )
        assert claim.status == ClaimStatus.DRAFT

        claim = claim_service.update_claim(db, claim.id, org.alice, amount=750.0)
        assert claim.amount == 750.0

    def test_workflow_action_requires_held_level(self, db, org):
        claim = submitted_claim(db, org)
        with pytest.raises(PermissionDeniedError):
            claim_service.apply_workflow_action(
                db, claim.id, org.level_two.id, ClaimAction.APPROVE, org.manager
            )

    def test_failed_deduction_rolls_back_transition(self, db, org, monkeypatch):
        claim = submitted_claim(db, org)
        audit_entries = db.query(AuditLog).count()

        def broken_deduct(*args, **kwargs):
            raise RuntimeError("balance store unavailable")

        monkeypatch.setattr(balance_service, "deduct", broken_deduct)

        with pytest.raises(RuntimeError):
            claim_service.transition_claim(db, claim.id, org.manager, ClaimStatus.APPROVED)

        db.expire_all()
        assert db.get(Claim, claim.id).status == ClaimStatus.SUBMITTED
        assert db.get(Claim, claim.id).balance_deducted_at is None
        assert db.query(ClaimApproval).filter(ClaimApproval.status == ClaimStatus.APPROVED).count() == 0
        assert db.query(AuditLog).count() == audit_entries


class TestClaimAccess:
    """Visibility and cancellation"""

    def test_cancel_draft_and_submitted(self, db, org):
        draft = claim_service.create_claim(db, org.alice, org.travel.id, 100.0, "Taxi")
        submitted = submitted_claim(db, org, amount=200.0)

        claim_service.cancel_claim(db, draft.id, org.alice)
        claim_service.cancel_claim(db, submitted.id, org.alice)

        assert claim_service.list_claims(db, org.alice) == []
        with pytest.raises(NotFoundError):
            claim_service.get_claim(db, draft.id, org.alice)
        # History is kept
        assert db.query(ClaimApproval).filter(ClaimApproval.claim_id == submitted.id).count() == 1

    def test_cannot_cancel_approved_claim(self, db, org):
        claim = submitted_claim(db, org)
        claim_service.transition_claim(db, claim.id, org.manager, ClaimStatus.APPROVED)

        with pytest.raises(ConflictError):
            claim_service.cancel_claim(db, claim.id, org.alice)

    def test_visibility(self, db, org):
        claim = claim_service.create_claim(db, org.alice, org.travel.id, 100.0, "Taxi")

        assert claim_service.get_claim(db, claim.id, org.alice).id == claim.id
        assert claim_service.get_claim(db, claim.id, org.admin).id == claim.id
        assert claim_service.get_claim(db, claim.id, org.manager).id == claim.id
        with pytest.raises(NotFoundError):
            claim_service.get_claim(db, claim.id, org.bob)

    def test_list_claims_scope(self, db, org):
        claim_service.create_claim(db, org.alice, org.travel.id, 100.0, "Taxi")
        claim_service.create_claim(db, org.bob, org.travel.id, 50.0, "Bus")

        assert [c.user_id for c in claim_service.list_claims(db, org.alice)] == [org.alice.id]
        assert len(claim_service.list_claims(db, org.admin)) == 2
