"""
Permission Tests
Three-tier claim type resolution and bulk override replacement
"""

from types import SimpleNamespace

import pytest

from src.models.claim import ClaimType, LimitTimespan
from src.models.permission import UserClaimType, UserGroupClaimType
from src.services.audit_service import audit_service
from src.services.permission_service import OverrideSource, permission_service, resolve_permission
from src.utils.exceptions import NotFoundError, ValidationError


def entry(claim_type_id, is_allowed=True, custom_limit_amount=None):
    return SimpleNamespace(
        claim_type_id=claim_type_id,
        is_allowed=is_allowed,
        custom_limit_amount=custom_limit_amount
    )


class TestResolvePermission:
    """Pure tier selection"""

    claim_type = ClaimType(name="Travel", limit_amount=1000.0, limit_timespan=LimitTimespan.ANNUAL)

    def test_default_tier(self):
        resolved = resolve_permission(self.claim_type)
        assert resolved.source == OverrideSource.DEFAULT
        assert resolved.is_allowed is True
        assert resolved.limit_amount == 1000.0

    def test_group_override_limit(self):
        group = UserGroupClaimType(is_allowed=True, custom_limit_amount=5000.0)
        resolved = resolve_permission(self.claim_type, None, group)
        assert resolved.source == OverrideSource.GROUP
        assert resolved.limit_amount == 5000.0

    def test_group_override_without_limit_uses_default(self):
        group = UserGroupClaimType(is_allowed=True, custom_limit_amount=None)
        assert resolve_permission(self.claim_type, None, group).limit_amount == 1000.0

    def test_user_override_wins_over_group(self):
        user = UserClaimType(is_allowed=False, custom_limit_amount=None)
        group = UserGroupClaimType(is_allowed=True, custom_limit_amount=5000.0)
        resolved = resolve_permission(self.claim_type, user, group)
        assert resolved.source == OverrideSource.USER
        assert resolved.is_allowed is False

    def test_user_override_without_limit_falls_back_to_default_not_group(self):
        user = UserClaimType(is_allowed=True, custom_limit_amount=None)
        group = UserGroupClaimType(is_allowed=True, custom_limit_amount=5000.0)
        assert resolve_permission(self.claim_type, user, group).limit_amount == 1000.0

    def test_zero_custom_limit_is_kept(self):
        user = UserClaimType(is_allowed=True, custom_limit_amount=0.0)
        assert resolve_permission(self.claim_type, user).limit_amount == 0.0


class TestPermissionService:
    """Resolution against persisted overrides"""

    def test_group_denial_blocks_access(self, db, org):
        db.add(UserGroupClaimType(user_group_id=org.engineering.id, claim_type_id=org.meals.id, is_allowed=False))
        db.commit()

        assert permission_service.can_access(db, org.alice.id, org.meals.id) is False
        # Users outside the group keep the default
        assert permission_service.can_access(db, org.manager.id, org.meals.id) is True

    def test_user_override_reenables_denied_type(self, db, org):
        db.add(UserGroupClaimType(user_group_id=org.engineering.id, claim_type_id=org.meals.id, is_allowed=False))
        db.add(UserClaimType(user_id=org.alice.id, claim_type_id=org.meals.id, is_allowed=True, custom_limit_amount=80.0))
        db.commit()

        resolved = permission_service.resolve(db, org.alice.id, org.meals.id)
        assert resolved.source == OverrideSource.USER
        assert resolved.is_allowed is True
        assert permission_service.effective_limit(db, org.alice.id, org.meals.id) == 80.0
        assert permission_service.can_access(db, org.bob.id, org.meals.id) is False

    def test_user_without_group_gets_default(self, db, org):
        resolved = permission_service.resolve(db, org.admin.id, org.travel.id)
        assert resolved.source == OverrideSource.DEFAULT

    def test_unknown_references(self, db, org):
        with pytest.raises(NotFoundError):
            permission_service.resolve(db, org.alice.id, 9999)
        with pytest.raises(NotFoundError):
            permission_service.resolve(db, 9999, org.travel.id)


class TestBulkReplacement:
    """Full replacement of override lists"""

    def test_replace_group_permissions(self, db, org):
        permission_service.set_group_permissions(
            db, org.engineering.id, [entry(org.travel.id, True, 3000.0)], org.admin
        )
        rows = permission_service.set_group_permissions(
            db, org.engineering.id, [entry(org.meals.id, False)], org.admin
        )

        assert [(r.claim_type_id, r.is_allowed) for r in rows] == [(org.meals.id, False)]
        assert permission_service.effective_limit(db, org.alice.id, org.travel.id) == 1000.0

    def test_replace_with_empty_list_clears_overrides(self, db, org):
        permission_service.set_user_overrides(db, org.alice.id, [entry(org.travel.id, False)], org.admin)
        assert permission_service.set_user_overrides(db, org.alice.id, [], org.admin) == []
        assert permission_service.can_access(db, org.alice.id, org.travel.id) is True

    def test_duplicate_claim_types_rejected_before_any_write(self, db, org):
        permission_service.set_user_overrides(db, org.alice.id, [entry(org.travel.id, False)], org.admin)

        with pytest.raises(ValidationError):
            permission_service.set_user_overrides(
                db, org.alice.id, [entry(org.meals.id), entry(org.meals.id)], org.admin
            )

        rows = permission_service.get_user_overrides(db, org.alice.id)
        assert [(r.claim_type_id, r.is_allowed) for r in rows] == [(org.travel.id, False)]

    def test_unknown_claim_type_rejected(self, db, org):
        with pytest.raises(NotFoundError):
            permission_service.set_group_permissions(db, org.engineering.id, [entry(9999)], org.admin)

    def test_failed_replacement_keeps_previous_rows(self, db, org, monkeypatch):
        permission_service.set_group_permissions(
            db, org.engineering.id, [entry(org.travel.id, True, 3000.0)], org.admin
        )

        def broken_audit(*args, **kwargs):
            raise RuntimeError("audit store unavailable")

        monkeypatch.setattr(audit_service, "log_activity", broken_audit)

        with pytest.raises(RuntimeError):
            permission_service.set_group_permissions(
                db, org.engineering.id, [entry(org.meals.id, False)], org.admin
            )

        rows = permission_service.get_group_permissions(db, org.engineering.id)
        assert [(r.claim_type_id, r.custom_limit_amount) for r in rows] == [(org.travel.id, 3000.0)]
