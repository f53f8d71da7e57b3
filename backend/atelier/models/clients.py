from __future__ import annotations

from ..extensions import db
from atelier.time_utils import to_utc_z


class Client(db.Model):
    """
    Workshop client directory.

    Orders and measurements reference clients by name/phone snapshot only;
    there is no foreign key. The directory is a lookup convenience.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_location_name", "location", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    location = db.Column(db.String(128), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "notes": self.notes,
            "location": self.location,
            "created_at": to_utc_z(self.created_at),
        }
