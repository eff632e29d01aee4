"""
User Claim Balance Model
Per (user, claim type) spending ledger
"""

from sqlalchemy import Column, Integer, Float, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from src.config.database import Base
from src.models.claim import LimitTimespan


class UserClaimBalance(Base):
    """Balance model"""
    __tablename__ = "user_claim_balances"
    __table_args__ = (
        UniqueConstraint("user_id", "claim_type_id", name="uq_user_claim_balance"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    claim_type_id = Column(Integer, ForeignKey("claim_types.id"), nullable=False)

    # Balance tracking, remaining_balance = max(0, total_limit - current_spent)
    total_limit = Column(Float, nullable=False)
    current_spent = Column(Float, nullable=False, default=0.0)
    remaining_balance = Column(Float, nullable=False, default=0.0)

    # Reset tracking, period copied from the claim type at creation
    last_reset_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    reset_period = Column(
        Enum(LimitTimespan, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="claim_balances")
    claim_type = relationship("ClaimType")

    def __repr__(self):
        return (
            f"<UserClaimBalance user={self.user_id} type={self.claim_type_id} "
            f"{self.remaining_balance}/{self.total_limit}>"
        )
