"""
Audit Tests
Audit log lines follow the transaction that produced them
"""

import pytest
from loguru import logger

from src.config.database import atomic
from src.models.audit_log import AuditAction, AuditLog, EntityType
from src.services.audit_service import audit_service


@pytest.fixture
def audit_lines():
    lines = []
    sink_id = logger.add(
        lambda message: lines.append(message.record["message"]),
        filter=lambda record: "AUDIT" in record["extra"]
    )
    yield lines
    logger.remove(sink_id)


class TestAuditLines:

    def test_line_written_after_commit(self, db, org, audit_lines):
        with atomic(db):
            audit_service.log_activity(
                db, org.admin.id, AuditAction.UPDATE, EntityType.CLAIM_TYPE, org.travel.id,
                old_values={"limit_amount": 1000.0},
                new_values={"limit_amount": 1500.0}
            )
            assert audit_lines == []

        assert audit_lines == [
            f"USER_ID={org.admin.id} | ACTION=update | ENTITY=claim_type#{org.travel.id} | "
            "DETAILS=old={'limit_amount': 1000.0} new={'limit_amount': 1500.0}"
        ]

    def test_rolled_back_change_leaves_no_line(self, db, org, audit_lines):
        with pytest.raises(RuntimeError):
            with atomic(db):
                audit_service.log_activity(db, org.admin.id, AuditAction.DELETE, EntityType.CLAIM_TYPE, org.meals.id)
                raise RuntimeError("write aborted")

        db.commit()

        assert audit_lines == []
        assert db.query(AuditLog).count() == 0
