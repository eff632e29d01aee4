"""
Approval Level Model
One rung of a user group's approval chain
"""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from src.config.database import Base


# Capability flag names, in display order
CAPABILITY_FLAGS = (
    "can_draft",
    "can_submit",
    "can_approve",
    "can_reject",
    "can_set_payment_in_progress",
    "can_set_paid",
)


class ApprovalLevel(Base):
    """Approval level model"""
    __tablename__ = "approval_levels"
    __table_args__ = (
        UniqueConstraint("user_group_id", "level", name="uq_approval_levels_group_level"),
        # Ids of removed levels stay referenced by approval history
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, index=True)

    # 1-based and contiguous within a group, cleared once the level is removed
    level = Column(Integer, nullable=True)
    user_group_id = Column(Integer, ForeignKey("user_groups.id"), nullable=False, index=True)
    approver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Status capabilities
    can_draft = Column(Boolean, default=False, nullable=False)
    can_submit = Column(Boolean, default=False, nullable=False)
    can_approve = Column(Boolean, default=True, nullable=False)
    can_reject = Column(Boolean, default=True, nullable=False)
    can_set_payment_in_progress = Column(Boolean, default=False, nullable=False)
    can_set_paid = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True, index=True)

    # Relationships
    user_group = relationship("UserGroup")
    approver = relationship("User", foreign_keys=[approver_id])

    def __repr__(self):
        return f"<ApprovalLevel group={self.user_group_id} level={self.level}>"

    def permissions(self) -> dict:
        """Capability flags as a dict"""
        return {flag: bool(getattr(self, flag)) for flag in CAPABILITY_FLAGS}
