"""
Claim Type Permission Models
Group- and user-level overrides of a claim type's default access and limit
"""

from sqlalchemy import Column, Integer, Float, DateTime, ForeignKey, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from src.config.database import Base


class UserGroupClaimType(Base):
    """Group-level override for one claim type"""
    __tablename__ = "user_group_claim_types"
    __table_args__ = (
        UniqueConstraint("user_group_id", "claim_type_id", name="uq_group_claim_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_group_id = Column(Integer, ForeignKey("user_groups.id"), nullable=False, index=True)
    claim_type_id = Column(Integer, ForeignKey("claim_types.id"), nullable=False)

    is_allowed = Column(Boolean, default=True, nullable=False)
    custom_limit_amount = Column(Float, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user_group = relationship("UserGroup", back_populates="claim_type_permissions")
    claim_type = relationship("ClaimType")

    def __repr__(self):
        return f"<UserGroupClaimType group={self.user_group_id} type={self.claim_type_id}>"


class UserClaimType(Base):
    """User-level override for one claim type, takes precedence over the group"""
    __tablename__ = "user_claim_types"
    __table_args__ = (
        UniqueConstraint("user_id", "claim_type_id", name="uq_user_claim_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    claim_type_id = Column(Integer, ForeignKey("claim_types.id"), nullable=False)

    is_allowed = Column(Boolean, default=True, nullable=False)
    custom_limit_amount = Column(Float, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="claim_type_overrides")
    claim_type = relationship("ClaimType")

    def __repr__(self):
        return f"<UserClaimType user={self.user_id} type={self.claim_type_id}>"
