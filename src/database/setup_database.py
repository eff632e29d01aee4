"""
Database Setup Script
Creates all tables and seeds a small organisation to try the API against
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from src.config.database import Base, SessionLocal, engine
from src.models import all_models  # noqa: F401
from src.models.approval import ApprovalLevel
from src.models.claim import ClaimType, LimitTimespan
from src.models.permission import UserClaimType, UserGroupClaimType
from src.models.user import User, UserGroup, UserRole
from src.utils.security import create_access_token


SEED_USERS = [
    # email, first name, last name, role, group
    ("admin@hrclaims.example.com", "System", "Administrator", UserRole.ADMIN, None),
    ("manager@hrclaims.example.com", "Maya", "Manager", UserRole.NORMAL, "Management"),
    ("finance@hrclaims.example.com", "Felix", "Finance", UserRole.NORMAL, "Management"),
    ("alice@hrclaims.example.com", "Alice", "Engineer", UserRole.NORMAL, "Engineering"),
    ("bob@hrclaims.example.com", "Bob", "Engineer", UserRole.NORMAL, "Engineering"),
    ("carol@hrclaims.example.com", "Carol", "Sales", UserRole.NORMAL, "Sales"),
]

SEED_CLAIM_TYPES = [
    # name, description, limit, timespan
    ("Travel", "Flights, trains and ground transport", 1000.0, LimitTimespan.ANNUAL),
    ("Meals", "Business meals", 50.0, LimitTimespan.DAILY),
    ("Office Supplies", "Stationery and small equipment", 200.0, LimitTimespan.MONTHLY),
    ("Internet", "Home internet for remote work", 60.0, LimitTimespan.MONTHLY),
    ("Training", "Courses, books and conferences", 2500.0, LimitTimespan.ANNUAL),
]


def create_tables():
    """Create all database tables"""
    print("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    print("✓ Database tables created successfully")


def seed_organisation(db):
    """Create groups, users, claim types, approval chains and overrides"""
    if db.query(User).first():
        print("✓ Users already exist, skipping...")
        return False

    groups = {}
    for name in ("Engineering", "Sales", "Management"):
        groups[name] = UserGroup(name=name, description=f"{name} department")
        db.add(groups[name])
    db.flush()

    users = {}
    for email, first_name, last_name, role, group in SEED_USERS:
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role,
            user_group_id=groups[group].id if group else None,
            is_active=True
        )
        db.add(user)
        users[email.split("@")[0]] = user
    db.flush()
    print(f"✓ {len(users)} users in {len(groups)} groups created")

    claim_types = {}
    for name, description, limit, timespan in SEED_CLAIM_TYPES:
        claim_types[name] = ClaimType(
            name=name,
            description=description,
            limit_amount=limit,
            limit_timespan=timespan
        )
        db.add(claim_types[name])
    db.flush()
    print(f"✓ {len(claim_types)} claim types created")

    # Manager reviews, finance pays
    for group in ("Engineering", "Sales"):
        db.add(ApprovalLevel(
            user_group_id=groups[group].id,
            approver_id=users["manager"].id,
            level=1,
            can_approve=True,
            can_reject=True
        ))
        db.add(ApprovalLevel(
            user_group_id=groups[group].id,
            approver_id=users["finance"].id,
            level=2,
            can_approve=True,
            can_reject=True,
            can_set_payment_in_progress=True,
            can_set_paid=True
        ))
    db.add(ApprovalLevel(
        user_group_id=groups["Management"].id,
        approver_id=users["admin"].id,
        level=1,
        can_approve=True,
        can_reject=True,
        can_set_payment_in_progress=True,
        can_set_paid=True
    ))
    print("✓ Approval chains created")

    # Sales travel more; Engineering may not claim Meals; Alice has a larger training budget
    db.add(UserGroupClaimType(
        user_group_id=groups["Sales"].id,
        claim_type_id=claim_types["Travel"].id,
        is_allowed=True,
        custom_limit_amount=5000.0
    ))
    db.add(UserGroupClaimType(
        user_group_id=groups["Engineering"].id,
        claim_type_id=claim_types["Meals"].id,
        is_allowed=False
    ))
    db.add(UserClaimType(
        user_id=users["alice"].id,
        claim_type_id=claim_types["Training"].id,
        is_allowed=True,
        custom_limit_amount=4000.0
    ))
    print("✓ Claim type overrides created")
    return True


def print_setup_summary(db):
    """Print seeded users with ready-to-use bearer tokens"""
    print("\n" + "=" * 70)
    print("✓ DATABASE SETUP COMPLETED SUCCESSFULLY!")
    print("=" * 70)

    print("\n🔐 BEARER TOKENS (valid for the configured token lifetime):")
    for user in db.query(User).order_by(User.id).all():
        group = user.user_group.name if user.user_group else "-"
        token = create_access_token({"sub": str(user.id)})
        print(f"\n  {user.email} [{user.role.value}, group {group}]")
        print(f"  {token}")

    print("\n🚀 NEXT STEPS:")
    print("  1. Start the application: uvicorn src.main:app --reload")
    print("  2. Access API Documentation: http://localhost:8000/api/docs")
    print("  3. Send 'Authorization: Bearer <token>' with any token above")
    print("\n" + "=" * 70 + "\n")


def main():
    """Main setup function"""
    print("=" * 70)
    print("HR CLAIMS SYSTEM - DATABASE SETUP")
    print("=" * 70)

    create_tables()
    db = SessionLocal()
    try:
        seed_organisation(db)
        db.commit()
        print_setup_summary(db)
    except Exception as e:
        db.rollback()
        print(f"\n✗ Database setup failed: {str(e)}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
