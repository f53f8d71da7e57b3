"""
CLI command tests (flask system / flask users).
"""

from atelier.models import User


class TestSystemCommands:

    def test_init_db_bootstraps_admin_on_empty_database(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "init-db"])

        assert result.exit_code == 0, result.output
        assert "Created admin: admin@atelier.local" in result.output
        admin = db_session.query(User).filter_by(email="admin@atelier.local").one()
        assert admin.role == "admin"

    def test_init_db_skips_bootstrap_when_users_exist(self, app, db_session, manager_user):
        result = app.test_cli_runner().invoke(args=["system", "init-db"])

        assert result.exit_code == 0, result.output
        assert "skipping admin bootstrap" in result.output
        assert db_session.query(User).count() == 1


class TestUserCommands:

    def test_create_user(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            "users", "create",
            "--email", "Seamstress@Atelier.test",
            "--name", "Ada",
            "--password", "Needle5!Thread",
            "--role", "tailor",
            "--location", "Unit 2",
        ])

        assert result.exit_code == 0, result.output
        user = db_session.query(User).filter_by(email="seamstress@atelier.test").one()
        assert (user.role, user.location) == ("tailor", "Unit 2")

    def test_create_user_rejects_weak_password(self, app, db_session):
        result = app.test_cli_runner().invoke(args=[
            "users", "create",
            "--email", "weak@atelier.test",
            "--name", "Weak",
            "--password", "short",
            "--role", "tailor",
        ])

        assert result.exit_code == 1
        assert "Password validation failed" in result.output
        assert db_session.query(User).count() == 0

    def test_list_filters_by_role(self, app, manager_user, tailor_user):
        result = app.test_cli_runner().invoke(args=["users", "list", "--role", "tailor"])

        assert result.exit_code == 0, result.output
        assert tailor_user.email in result.output
        assert manager_user.email not in result.output
