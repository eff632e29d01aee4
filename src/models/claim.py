"""
Claim Models
Claim types, reimbursement claims and their approval history
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from src.config.database import Base


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class ClaimStatus(str, enum.Enum):
    """Claim status"""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAYMENT_IN_PROGRESS = "payment-in-progress"
    PAID = "paid"


class LimitTimespan(str, enum.Enum):
    """Period after which a spending balance resets"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ANNUAL = "annual"


class ClaimType(Base):
    """Expense category with a spending limit and reset period"""
    __tablename__ = "claim_types"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)

    # Default limit, overridable per group and per user
    limit_amount = Column(Float, nullable=False, default=0.0)
    limit_timespan = Column(
        Enum(LimitTimespan, native_enum=False, values_callable=_enum_values),
        nullable=False,
        default=LimitTimespan.ANNUAL
    )

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    claims = relationship("Claim", back_populates="claim_type")

    def __repr__(self):
        return f"<ClaimType {self.name} - {self.limit_amount} {self.limit_timespan.value}>"


class Claim(Base):
    """Reimbursement claim submitted by an employee"""
    __tablename__ = "claims"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Float, nullable=False)

    # Owner and category
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    claim_type_id = Column(Integer, ForeignKey("claim_types.id"), nullable=False)

    # Status and workflow
    status = Column(
        Enum(ClaimStatus, native_enum=False, values_callable=_enum_values, length=32),
        default=ClaimStatus.DRAFT,
        nullable=False,
        index=True
    )
    submitted_at = Column(DateTime, nullable=True)
    # Set once the amount has been charged against the owner's balance
    balance_deducted_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = Column(DateTime, nullable=True, index=True)

    # Relationships
    user = relationship("User", back_populates="claims", foreign_keys=[user_id])
    claim_type = relationship("ClaimType", back_populates="claims")
    approvals = relationship(
        "ClaimApproval",
        back_populates="claim",
        order_by="ClaimApproval.id"
    )

    def __repr__(self):
        return f"<Claim {self.id} - {self.title} - {self.status.value}>"


class ClaimApproval(Base):
    """Append-only record of a status change made on a claim"""
    __tablename__ = "claim_approvals"

    id = Column(Integer, primary_key=True, index=True)

    claim_id = Column(Integer, ForeignKey("claims.id"), nullable=False, index=True)
    # Null for transitions that are not made through an approval level (submission)
    approval_level_id = Column(
        Integer,
        ForeignKey("approval_levels.id"),
        nullable=True
    )
    approver_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    # Resulting claim status
    status = Column(
        Enum(ClaimStatus, native_enum=False, values_callable=_enum_values, length=32),
        nullable=False
    )
    comments = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    claim = relationship("Claim", back_populates="approvals")
    approval_level = relationship("ApprovalLevel")
    approver = relationship("User", foreign_keys=[approver_id])

    def __repr__(self):
        return f"<ClaimApproval claim={self.claim_id} {self.status.value}>"
