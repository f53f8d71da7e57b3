"""
Client directory and measurement card tests.
"""

import pytest

from atelier.errors import AuthorizationError, NotFoundError, ValidationError
from atelier.models import Order
from atelier.services import client_service, measurement_service


class TestClients:

    def test_manager_creates_client_in_own_unit(self, db_session, manager):
        client = client_service.create_client(
            manager, {"name": "Bisi Cole", "phone": "0809", "location": "Unit 2"}
        )
        assert client.location == "Unit 1"

    def test_required_fields(self, db_session, admin):
        with pytest.raises(ValidationError):
            client_service.create_client(admin, {"name": "No Phone"})

    def test_unknown_field_rejected(self, db_session, admin):
        with pytest.raises(ValidationError):
            client_service.create_client(admin, {"name": "X", "phone": "1", "id": 5})

    def test_tailor_has_no_client_access(self, db_session, tailor):
        with pytest.raises(AuthorizationError):
            client_service.list_clients(tailor)

    def test_listing_is_scoped_and_searchable(self, db_session, admin, manager):
        mine = client_service.create_client(admin, {"name": "Bisi Cole", "phone": "0801", "location": "Unit 1"})
        client_service.create_client(admin, {"name": "Bisi Other", "phone": "0802", "location": "Unit 2"})
        client_service.create_client(admin, {"name": "Dayo Fash", "phone": "0803", "location": "Unit 1"})

        assert [c.id for c in client_service.list_clients(manager, search="bisi")] == [mine.id]
        assert len(client_service.list_clients(admin, search="bisi")) == 2

    def test_other_unit_cannot_touch_client(self, db_session, admin, manager2):
        client = client_service.create_client(admin, {"name": "Bisi Cole", "phone": "0801", "location": "Unit 1"})

        with pytest.raises(AuthorizationError):
            client_service.update_client(manager2, client.id, {"notes": "hi"})
        with pytest.raises(AuthorizationError):
            client_service.delete_client(manager2, client.id)

    def test_update_and_delete(self, db_session, manager):
        client = client_service.create_client(manager, {"name": "Bisi Cole", "phone": "0801"})

        updated = client_service.update_client(manager, client.id, {"email": "bisi@example.com", "location": "Unit 9"})
        assert updated.email == "bisi@example.com"
        assert updated.location == "Unit 1"

        client_service.delete_client(manager, client.id)
        with pytest.raises(NotFoundError):
            client_service.get_client(manager, client.id)


class TestMeasurements:

    CARD = {"client_name": "Bisi Cole", "phone": "0801", "chest": 38, "waist": "32.5"}

    def test_sequence_numbers_per_phone(self, db_session, admin):
        first = measurement_service.create_measurement(admin, self.CARD)
        second = measurement_service.create_measurement(admin, self.CARD)
        other = measurement_service.create_measurement(admin, {**self.CARD, "phone": "0802"})

        assert (first.sequence_number, second.sequence_number, other.sequence_number) == (1, 2, 1)
        assert first.chest == "38"
        assert first.unit == "inches"

    def test_invalid_unit(self, db_session, admin):
        with pytest.raises(ValidationError):
            measurement_service.create_measurement(admin, {**self.CARD, "unit": "yards"})

    def test_tailor_cannot_manage_measurements(self, db_session, tailor):
        with pytest.raises(AuthorizationError):
            measurement_service.create_measurement(tailor, self.CARD)

    def test_manager_scope(self, db_session, admin, manager, manager2):
        card = measurement_service.create_measurement(manager, self.CARD)

        assert [m.id for m in measurement_service.list_measurements(manager)] == [card.id]
        assert measurement_service.list_measurements(manager2) == []
        with pytest.raises(AuthorizationError):
            measurement_service.get_measurement(manager2, card.id)

    def test_delete_unlinks_order(self, db_session, admin, make_order):
        card = measurement_service.create_measurement(admin, self.CARD)
        order = make_order(measurement_id=card.id)

        measurement_service.delete_measurement(admin, card.id)

        current = db_session.get(Order, order.id)
        assert current is not None
        assert current.measurement_id is None

    def test_update_lowercases_unit(self, db_session, admin):
        card = measurement_service.create_measurement(admin, self.CARD)
        assert measurement_service.update_measurement(admin, card.id, {"unit": "CM"}).unit == "cm"
