"""
Workflow Tests
Projection of approval progress and next actions
"""

from datetime import datetime, timedelta

from src.models.approval import ApprovalLevel
from src.models.claim import Claim, ClaimApproval, ClaimStatus
from src.services.claim_service import claim_service
from src.services.workflow_service import project_workflow, workflow_service

T0 = datetime(2024, 5, 1, 9, 0)


def level(level_id, number, approver_id, **flags):
    defaults = dict(
        can_draft=False,
        can_submit=False,
        can_approve=True,
        can_reject=True,
        can_set_payment_in_progress=False,
        can_set_paid=False
    )
    defaults.update(flags)
    return ApprovalLevel(id=level_id, level=number, user_group_id=1, approver_id=approver_id, **defaults)


def record(record_id, status, level_id=None, approver_id=1, minutes=0):
    return ClaimApproval(
        id=record_id,
        claim_id=1,
        approval_level_id=level_id,
        approver_id=approver_id,
        status=status,
        created_at=T0 + timedelta(minutes=minutes)
    )


def claim(status, submitted=True):
    return Claim(
        id=1,
        title="Client visit",
        amount=800.0,
        user_id=1,
        claim_type_id=1,
        status=status,
        created_at=T0,
        submitted_at=T0 + timedelta(minutes=1) if submitted else None
    )


LEVELS = [
    level(10, 1, approver_id=2),
    level(20, 2, approver_id=3, can_set_payment_in_progress=True, can_set_paid=True),
]


class TestProjection:
    """Pure workflow projection"""

    def test_draft(self):
        view = project_workflow(claim(ClaimStatus.DRAFT, submitted=False), LEVELS, [])

        assert [step.status for step in view.workflow_steps] == ["completed", "not_started", "not_started"]
        assert view.completed_steps == 1
        assert view.total_steps == 3
        assert round(view.progress, 2) == 33.33
        assert view.current_step is None
        assert [a.action for a in view.next_actions] == ["submit", "edit", "cancel"]

    def test_submitted_waits_on_first_level(self):
        history = [record(1, ClaimStatus.SUBMITTED, minutes=1)]
        view = project_workflow(claim(ClaimStatus.SUBMITTED), LEVELS, history)

        assert [step.id for step in view.workflow_steps] == ["created", "submitted", 10, 20]
        assert [step.status for step in view.workflow_steps] == ["completed", "completed", "pending", "pending"]
        assert view.progress == 50.0
        assert view.current_step.id == 10
        assert [(a.action, a.level_id) for a in view.next_actions] == [
            ("approve", 10), ("reject", 10), ("request_changes", 10)
        ]

    def test_approved_by_first_level(self):
        history = [
            record(1, ClaimStatus.SUBMITTED, minutes=1),
            record(2, ClaimStatus.APPROVED, level_id=10, approver_id=2, minutes=5),
        ]
        view = project_workflow(claim(ClaimStatus.APPROVED), LEVELS, history)

        first, second = view.workflow_steps[2], view.workflow_steps[3]
        assert first.status == "completed"
        assert first.decision == ClaimStatus.APPROVED
        assert first.acted_by_id == 2
        assert second.status == "not_reached"
        assert view.progress == 75.0
        assert [(a.action, a.level_id) for a in view.next_actions] == [
            ("set_payment_in_progress", 20), ("set_paid", 20)
        ]

    def test_resubmission_starts_a_new_round(self):
        history = [
            record(1, ClaimStatus.SUBMITTED, minutes=1),
            record(2, ClaimStatus.DRAFT, level_id=10, approver_id=2, minutes=5),
            record(3, ClaimStatus.SUBMITTED, minutes=10),
        ]
        view = project_workflow(claim(ClaimStatus.SUBMITTED), LEVELS, history)

        assert view.workflow_steps[2].status == "pending"
        assert view.workflow_steps[2].decision is None

    def test_no_approval_levels(self):
        view = project_workflow(claim(ClaimStatus.SUBMITTED), [], [])
        assert view.total_steps == 2
        assert view.progress == 100.0
        assert view.next_actions == []

    def test_permissions_exposed_per_level(self):
        view = project_workflow(claim(ClaimStatus.DRAFT, submitted=False), LEVELS, [])
        assert view.workflow_steps[2].permissions["can_approve"] is True
        assert view.workflow_steps[3].permissions["can_set_paid"] is True


class TestWorkflowService:
    """Projection from persisted state"""

    def test_workflow_after_approval(self, db, org):
        created = claim_service.create_claim(db, org.alice, org.travel.id, 300.0, "Train tickets")
        claim_service.submit_claim(db, created.id, org.alice)
        approved = claim_service.transition_claim(db, created.id, org.manager, ClaimStatus.APPROVED)

        view = workflow_service.get_workflow(db, approved)

        assert view.status == ClaimStatus.APPROVED
        steps = {step.id: step for step in view.workflow_steps}
        assert steps[org.level_one.id].status == "completed"
        assert steps[org.level_one.id].approver_name == "Maya Tester"
        assert steps[org.level_two.id].status == "not_reached"
        assert view.workflow_steps[2].title == "Engineering Approval"
