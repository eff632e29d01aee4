"""
User Model
Represents system users and the organisational groups they belong to
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from src.config.database import Base


class UserRole(str, enum.Enum):
    """User roles"""
    NORMAL = "normal"
    ADMIN = "admin"


class UserGroup(Base):
    """Organisational bucket owning an approval chain and claim-type overrides"""
    __tablename__ = "user_groups"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    users = relationship("User", back_populates="user_group")
    # Current chain only; removed levels are kept for approval history
    approval_levels = relationship(
        "ApprovalLevel",
        primaryjoin="and_(UserGroup.id == ApprovalLevel.user_group_id, ApprovalLevel.deleted_at.is_(None))",
        order_by="ApprovalLevel.level",
        viewonly=True
    )
    claim_type_permissions = relationship(
        "UserGroupClaimType",
        back_populates="user_group",
        cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<UserGroup {self.name}>"


class User(Base):
    """User model"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)

    # Role and group membership (at most one group)
    role = Column(
        Enum(UserRole, native_enum=False, values_callable=lambda e: [m.value for m in e]),
        default=UserRole.NORMAL,
        nullable=False
    )
    user_group_id = Column(Integer, ForeignKey("user_groups.id", ondelete="SET NULL"), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user_group = relationship("UserGroup", back_populates="users")
    claims = relationship("Claim", back_populates="user", foreign_keys="Claim.user_id")
    claim_type_overrides = relationship(
        "UserClaimType",
        back_populates="user",
        cascade="all, delete-orphan"
    )
    claim_balances = relationship("UserClaimBalance", back_populates="user")
    audit_logs = relationship("AuditLog", back_populates="user")

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
