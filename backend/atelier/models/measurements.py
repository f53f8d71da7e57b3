from __future__ import annotations

from ..extensions import db
from atelier.time_utils import to_utc_z


# Body dimensions are free text ("38", "38.5", "38 1/2") as written on the card
BODY_DIMENSIONS = ("shoulder", "chest", "waist", "hip", "sleeve_length", "top_length")


class Measurement(db.Model):
    """
    Body measurement card.

    sequence_number is the human-readable card number per client phone
    (1, 2, 3 ...), assigned on creation.
    """
    __tablename__ = "measurements"
    __table_args__ = (
        db.Index("ix_measurements_phone_seq", "phone", "sequence_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Client snapshot
    client_name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=False)

    shoulder = db.Column(db.String(32), nullable=True)
    chest = db.Column(db.String(32), nullable=True)
    waist = db.Column(db.String(32), nullable=True)
    hip = db.Column(db.String(32), nullable=True)
    sleeve_length = db.Column(db.String(32), nullable=True)
    top_length = db.Column(db.String(32), nullable=True)

    unit = db.Column(db.String(8), nullable=False, default="inches")  # inches | cm
    sequence_number = db.Column(db.Integer, nullable=False, default=1)
    notes = db.Column(db.Text, nullable=True)

    location = db.Column(db.String(128), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "client_name": self.client_name,
            "phone": self.phone,
            "unit": self.unit,
            "sequence_number": self.sequence_number,
            "notes": self.notes,
            "location": self.location,
            "created_at": to_utc_z(self.created_at),
        }
        for field in BODY_DIMENSIONS:
            data[field] = getattr(self, field)
        return data
