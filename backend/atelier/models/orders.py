from __future__ import annotations

from ..extensions import db
from atelier.time_utils import to_utc_z, to_iso_date


class Order(db.Model):
    """
    Garment order.

    WHY: Central entity of the workshop pipeline. Mutated only by status
    transitions (compare-and-set on status) and tailor (re)assignment.

    status is one of New, In Progress, Trial, Alteration, Completed, Delivered.
    A NULL status (legacy rows) reads as New.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_location_status_created", "location", "status", "created_at"),
        db.Index("ix_orders_tailor_status", "assigned_tailor_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    client_name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=True, index=True)
    garment_type = db.Column(db.String(128), nullable=False)
    delivery_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(32), nullable=True, default="New", index=True)

    assigned_tailor_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    measurement_id = db.Column(
        db.Integer, db.ForeignKey("measurements.id", ondelete="SET NULL"), nullable=True, unique=True
    )
    location = db.Column(db.String(128), nullable=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    assigned_tailor = db.relationship("User", foreign_keys=[assigned_tailor_id])
    measurement = db.relationship("Measurement", backref=db.backref("order", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_name": self.client_name,
            "phone": self.phone,
            "garment_type": self.garment_type,
            "delivery_date": to_iso_date(self.delivery_date),
            "status": self.status or "New",
            "assigned_tailor_id": self.assigned_tailor_id,
            "assigned_tailor_name": self.assigned_tailor.name if self.assigned_tailor else None,
            "measurement_id": self.measurement_id,
            "location": self.location,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "version_id": self.version_id,
        }
