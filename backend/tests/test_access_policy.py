"""
Access policy tests.

Verifies:
- admin may do everything, absent/unknown roles nothing
- managers are pinned to their unit and never manage users
- tailors only view/transition orders assigned to them
- self-protection applies to admins too
- denials land in the security audit trail
"""

import pytest

from atelier.errors import AuthorizationError
from atelier.models import SecurityEvent
from atelier.permissions import Action, Role
from atelier.services import permission_service
from atelier.services.identity_service import Principal
from atelier.services.permission_service import ResourceTarget, can_perform


ADMIN = Principal(user_id=1, role=Role.ADMIN, location="Unit 1")
MANAGER = Principal(user_id=2, role=Role.MANAGER, location="Unit 1")
MANAGER_NO_LOCATION = Principal(user_id=3, role=Role.MANAGER, location=None)
TAILOR = Principal(user_id=4, role=Role.TAILOR, location="Unit 1")
NOBODY = Principal(user_id=5, role=None)

OWN_ORDER = ResourceTarget(assigned_tailor_id=4, location="Unit 1")
OTHER_ORDER = ResourceTarget(assigned_tailor_id=99, location="Unit 1")
UNASSIGNED = ResourceTarget(assigned_tailor_id=None, location="Unit 1")
UNIT_2_ORDER = ResourceTarget(assigned_tailor_id=4, location="Unit 2")


class TestAdmin:

    @pytest.mark.parametrize("action", list(Action))
    def test_admin_allowed_everything(self, action):
        assert can_perform(ADMIN, action)
        assert can_perform(ADMIN, action, UNIT_2_ORDER)


class TestManager:

    def test_manager_never_manages_users(self):
        assert not can_perform(MANAGER, Action.MANAGE_USERS)
        assert not can_perform(MANAGER_NO_LOCATION, Action.MANAGE_USERS)

    @pytest.mark.parametrize("action", [a for a in Action if a is not Action.MANAGE_USERS])
    def test_manager_in_own_unit(self, action):
        assert can_perform(MANAGER, action, OTHER_ORDER)

    @pytest.mark.parametrize("action", [a for a in Action if a is not Action.MANAGE_USERS])
    def test_manager_outside_unit_denied(self, action):
        assert not can_perform(MANAGER, action, UNIT_2_ORDER)

    def test_scoping_disabled_allows_other_units(self):
        assert can_perform(MANAGER, Action.TRANSITION_ORDER, UNIT_2_ORDER, location_scoping=False)

    def test_manager_without_location_is_unrestricted(self):
        assert can_perform(MANAGER_NO_LOCATION, Action.VIEW_FINANCE, UNIT_2_ORDER)

    def test_general_check_without_target(self):
        assert can_perform(MANAGER, Action.CREATE_ORDER)


class TestTailor:

    def test_tailor_views_and_moves_own_order(self):
        assert can_perform(TAILOR, Action.VIEW_ORDER, OWN_ORDER)
        assert can_perform(TAILOR, Action.TRANSITION_ORDER, OWN_ORDER)

    def test_tailor_denied_on_other_tailors_order(self):
        assert not can_perform(TAILOR, Action.VIEW_ORDER, OTHER_ORDER)
        assert not can_perform(TAILOR, Action.TRANSITION_ORDER, OTHER_ORDER)

    def test_tailor_denied_on_unassigned_order(self):
        assert not can_perform(TAILOR, Action.TRANSITION_ORDER, UNASSIGNED)

    def test_tailor_ownership_ignores_location(self):
        assert can_perform(TAILOR, Action.TRANSITION_ORDER, UNIT_2_ORDER)

    @pytest.mark.parametrize(
        "action",
        [
            Action.CREATE_ORDER,
            Action.ASSIGN_TAILOR,
            Action.VIEW_FINANCE,
            Action.MANAGE_USERS,
            Action.MANAGE_MEASUREMENTS,
            Action.MANAGE_CLIENTS,
        ],
    )
    def test_tailor_denied_everything_else(self, action):
        assert not can_perform(TAILOR, action, OWN_ORDER)

    def test_tailor_general_check_denied(self):
        assert not can_perform(TAILOR, Action.VIEW_ORDER)


class TestNoRole:

    @pytest.mark.parametrize("action", list(Action))
    def test_unknown_role_denied(self, action):
        assert not can_perform(NOBODY, action, OWN_ORDER)
        assert not can_perform(None, action)

    def test_unknown_role_string_is_parsed_to_none(self):
        assert Role.parse("superuser") is None
        assert Role.parse(None) is None
        assert Role.parse("manager") is Role.MANAGER


class TestSelfProtection:

    def test_admin_cannot_change_own_role(self):
        assert permission_service.violates_self_protection(ADMIN, ADMIN.user_id, permission_service.SELF_CHANGE_ROLE)

    def test_admin_cannot_delete_self(self):
        assert permission_service.violates_self_protection(ADMIN, ADMIN.user_id, permission_service.SELF_DELETE)

    def test_other_users_are_fine(self):
        assert not permission_service.violates_self_protection(ADMIN, 42, permission_service.SELF_DELETE)

    def test_location_change_is_not_protected(self):
        assert not permission_service.violates_self_protection(ADMIN, ADMIN.user_id, "change_location")


class TestRequire:

    def test_denial_raises_and_logs(self, db_session):
        with pytest.raises(AuthorizationError) as exc_info:
            permission_service.require(TAILOR, Action.VIEW_FINANCE, OWN_ORDER, resource="orders:7")

        assert exc_info.value.status_code == 403
        assert exc_info.value.code == "PERMISSION_DENIED"

        event = db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
        assert event.user_id == TAILOR.user_id
        assert event.resource == "orders:7"
        assert event.action == "viewFinance"
        assert event.success is False

    def test_allowed_action_logs_nothing(self, db_session):
        permission_service.require(MANAGER, Action.ASSIGN_TAILOR, OTHER_ORDER)
        assert db_session.query(SecurityEvent).count() == 0

    def test_require_not_self_logs(self, db_session):
        with pytest.raises(AuthorizationError):
            permission_service.require_not_self(ADMIN, ADMIN.user_id, permission_service.SELF_DELETE)
        event = db_session.query(SecurityEvent).one()
        assert event.event_type == "SELF_PROTECTION_DENIED"
