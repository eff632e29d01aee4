"""
Authentication Tests
Bearer token resolution and admin-only routes
"""

from datetime import timedelta

from src.utils.security import create_access_token
from tests.factories import auth_headers, make_user


class TestAuthentication:
    """Test authentication"""

    def test_unauthorized_access(self, client, test_db):
        """Test accessing protected endpoint without token"""
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "unauthorized"

    def test_invalid_token(self, client, test_db):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_expired_token(self, client, org):
        token = create_access_token({"sub": str(org.alice.id)}, expires_delta=timedelta(minutes=-5))
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_unknown_user(self, client, test_db):
        token = create_access_token({"sub": "4242"})
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_get_current_user(self, client, org):
        """Test getting current user info"""
        response = client.get("/api/auth/me", headers=auth_headers(org.alice))
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["data"]["email"] == "alice@example.com"
        assert data["data"]["role"] == "normal"
        assert data["data"]["user_group"]["name"] == "Engineering"

    def test_inactive_user(self, client, db, org):
        user = make_user(db, "former@example.com", "Frank", org.engineering, is_active=False)
        db.commit()

        response = client.get("/api/auth/me", headers=auth_headers(user))
        assert response.status_code == 403

    def test_admin_routes_require_admin(self, client, org):
        response = client.get("/api/admin/groups", headers=auth_headers(org.alice))
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

        response = client.get("/api/admin/groups", headers=auth_headers(org.admin))
        assert response.status_code == 200
        names = [group["name"] for group in response.json()["data"]]
        assert names == ["Engineering", "Management"]
