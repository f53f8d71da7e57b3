"""
Staff administration tests.

Verifies:
- manageUsers is admin-only
- self-protection (own role, own account) holds for admins
- deleting a tailor unassigns their orders
- the privileged creation path re-verifies the requester
"""

import pytest
from sqlalchemy import insert

from atelier.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from atelier.models import Order, SecurityEvent, SessionToken, User
from atelier.services import auth_service, session_service, user_service


class TestUserAdministration:

    def test_admin_lists_users(self, db_session, admin, manager_user, tailor_user):
        emails = {u.email for u in user_service.list_users(admin)}
        assert {"admin@atelier.test", manager_user.email, tailor_user.email} <= emails

    def test_manager_cannot_list_users(self, db_session, manager):
        with pytest.raises(AuthorizationError):
            user_service.list_users(manager)

    def test_managers_may_list_tailors(self, db_session, manager, tailor_user, other_tailor, admin_user):
        tailors = user_service.list_tailors(manager)
        assert {t.id for t in tailors} == {tailor_user.id, other_tailor.id}

    def test_tailor_cannot_list_tailors(self, db_session, tailor):
        with pytest.raises(AuthorizationError):
            user_service.list_tailors(tailor)

    def test_change_role(self, db_session, admin, tailor_user):
        user = user_service.change_role(admin, tailor_user.id, "manager")

        assert user.role == "manager"
        event = db_session.query(SecurityEvent).filter_by(event_type="ROLE_CHANGED").one()
        assert event.reason == "tailor -> manager"

    def test_change_role_rejects_unknown_role(self, db_session, admin, tailor_user):
        with pytest.raises(ValidationError):
            user_service.change_role(admin, tailor_user.id, "owner")

    def test_admin_cannot_change_own_role(self, db_session, admin, admin_user):
        with pytest.raises(AuthorizationError):
            user_service.change_role(admin, admin_user.id, "tailor")
        assert db_session.get(User, admin_user.id).role == "admin"

    def test_manager_cannot_change_roles(self, db_session, manager, tailor_user):
        with pytest.raises(AuthorizationError):
            user_service.change_role(manager, tailor_user.id, "admin")

    def test_change_location(self, db_session, admin, manager_user):
        assert user_service.change_location(admin, manager_user.id, " Unit 3 ").location == "Unit 3"
        assert user_service.change_location(admin, manager_user.id, "").location is None

    def test_change_location_missing_user(self, db_session, admin):
        with pytest.raises(NotFoundError):
            user_service.change_location(admin, 777, "Unit 2")

    def test_admin_cannot_delete_self(self, db_session, admin, admin_user):
        with pytest.raises(AuthorizationError):
            user_service.delete_user(admin, admin_user.id)
        assert db_session.get(User, admin_user.id) is not None

    def test_delete_tailor_unassigns_orders(self, db_session, admin, tailor_user, make_order):
        order = make_order(assigned_tailor_id=tailor_user.id)
        version = order.version_id
        tailor_id = tailor_user.id
        session_service.create_session(tailor_id)

        user_service.delete_user(admin, tailor_id)

        assert db_session.get(User, tailor_id) is None
        current = db_session.get(Order, order.id)
        assert current.assigned_tailor_id is None
        assert current.version_id == version + 1
        assert db_session.query(SessionToken).filter_by(user_id=tailor_id).count() == 0
        assert db_session.query(SecurityEvent).filter_by(event_type="USER_DELETED").count() == 1

    @pytest.mark.parametrize("new_role", ["manager", "admin"])
    def test_tailor_leaving_role_unassigns_orders(self, db_session, admin, tailor_user, other_tailor, make_order, new_role):
        mine = make_order(assigned_tailor_id=tailor_user.id)
        theirs = make_order(assigned_tailor_id=other_tailor.id)
        version = mine.version_id

        user_service.change_role(admin, tailor_user.id, new_role)

        current = db_session.get(Order, mine.id)
        assert current.assigned_tailor_id is None
        assert current.version_id == version + 1
        assert db_session.get(Order, theirs.id).assigned_tailor_id == other_tailor.id

    def test_role_change_keeps_every_assignee_a_tailor(self, db_session, admin, tailor_user, make_order):
        make_order(assigned_tailor_id=tailor_user.id)

        user_service.change_role(admin, tailor_user.id, "manager")

        for order in db_session.query(Order).filter(Order.assigned_tailor_id.isnot(None)):
            assert db_session.get(User, order.assigned_tailor_id).role == "tailor"

    def test_tailor_to_tailor_keeps_assignments(self, db_session, admin, tailor_user, make_order):
        order = make_order(assigned_tailor_id=tailor_user.id)

        user_service.change_role(admin, tailor_user.id, "tailor")

        assert db_session.get(Order, order.id).assigned_tailor_id == tailor_user.id


class TestCreateStaffAccount:

    PAYLOAD = {"email": "New.Tailor@Atelier.test", "password": "Stitch3s!Tight", "name": "New Tailor"}

    def test_admin_creates_account_with_defaults(self, db_session, admin_user):
        _, token = session_service.create_session(admin_user.id)

        user_id = auth_service.create_staff_account(token, self.PAYLOAD)

        user = db_session.get(User, user_id)
        assert user.email == "new.tailor@atelier.test"
        assert user.role == "tailor"
        assert user.location == "Unit 1"
        assert auth_service.verify_password("Stitch3s!Tight", user.password_hash)
        assert db_session.query(SecurityEvent).filter_by(event_type="USER_CREATED").count() == 1

    def test_explicit_role_and_location(self, db_session, admin_user):
        _, token = session_service.create_session(admin_user.id)
        user_id = auth_service.create_staff_account(
            token, {**self.PAYLOAD, "role": "manager", "location": "Unit 2"}
        )
        user = db_session.get(User, user_id)
        assert (user.role, user.location) == ("manager", "Unit 2")

    def test_manager_is_forbidden(self, db_session, manager_user):
        _, token = session_service.create_session(manager_user.id)

        with pytest.raises(AuthorizationError) as exc_info:
            auth_service.create_staff_account(token, self.PAYLOAD)

        assert exc_info.value.message == "Forbidden: Admins only"
        assert db_session.query(User).filter_by(email="new.tailor@atelier.test").count() == 0

    def test_invalid_token(self, db_session):
        with pytest.raises(AuthorizationError):
            auth_service.create_staff_account("not-a-token", self.PAYLOAD)
        with pytest.raises(AuthorizationError):
            auth_service.create_staff_account(None, self.PAYLOAD)

    def test_requester_role_is_reread(self, db_session, admin_user):
        _, token = session_service.create_session(admin_user.id)
        admin_user.role = "tailor"
        db_session.commit()

        with pytest.raises(AuthorizationError):
            auth_service.create_staff_account(token, self.PAYLOAD)

    @pytest.mark.parametrize("missing", ["email", "password", "name"])
    def test_required_fields(self, db_session, admin_user, missing):
        _, token = session_service.create_session(admin_user.id)
        payload = {k: v for k, v in self.PAYLOAD.items() if k != missing}
        with pytest.raises(ValidationError):
            auth_service.create_staff_account(token, payload)

    def test_weak_password(self, db_session, admin_user):
        _, token = session_service.create_session(admin_user.id)
        with pytest.raises(auth_service.PasswordValidationError):
            auth_service.create_staff_account(token, {**self.PAYLOAD, "password": "short"})

    def test_duplicate_email(self, db_session, admin_user, tailor_user):
        _, token = session_service.create_session(admin_user.id)
        with pytest.raises(ConflictError):
            auth_service.create_staff_account(token, {**self.PAYLOAD, "email": tailor_user.email})

    def test_email_taken_concurrently_is_a_conflict(self, db_session, monkeypatch, admin_user, password_hash):
        _, token = session_service.create_session(admin_user.id)
        real_hash_password = auth_service.hash_password

        def register_rival_then_hash(password):
            # Another request inserts the same email after the existence check
            db_session.execute(insert(User).values(
                email="new.tailor@atelier.test",
                name="Rival",
                password_hash=password_hash,
                role="tailor",
                is_active=True,
            ))
            db_session.commit()
            return real_hash_password(password)

        monkeypatch.setattr(auth_service, "hash_password", register_rival_then_hash)

        with pytest.raises(ConflictError):
            auth_service.create_staff_account(token, self.PAYLOAD)

        assert db_session.query(User).filter_by(email="new.tailor@atelier.test").one().name == "Rival"


class TestSessions:

    def test_session_resolves_principal(self, db_session, manager_user):
        _, token = session_service.create_session(manager_user.id)

        context = session_service.get_session(token)

        assert context.principal.user_id == manager_user.id
        assert context.principal.role == "manager"
        assert context.principal.location == "Unit 1"

    def test_deactivated_user_loses_session(self, db_session, tailor_user):
        _, token = session_service.create_session(tailor_user.id)
        tailor_user.is_active = False
        db_session.commit()

        assert session_service.get_session(token) is None

    def test_revoked_session(self, db_session, tailor_user):
        _, token = session_service.create_session(tailor_user.id)
        assert session_service.revoke_session(token)
        assert session_service.get_session(token) is None
