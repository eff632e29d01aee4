"""
Test Factories
Small builders shared by the test modules
"""

from src.models.user import User, UserRole
from src.utils.security import create_access_token


def make_user(db, email, first_name, group=None, role=UserRole.NORMAL, is_active=True):
    user = User(
        email=email,
        first_name=first_name,
        last_name="Tester",
        role=role,
        user_group_id=group.id if group else None,
        is_active=is_active
    )
    db.add(user)
    db.flush()
    return user


def auth_headers(user) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}
