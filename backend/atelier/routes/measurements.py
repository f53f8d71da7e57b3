# Overview: Flask API routes for measurement cards.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import AtelierError
from ..services import measurement_service
from ..decorators import require_auth


measurements_bp = Blueprint("measurements", __name__, url_prefix="/api/measurements")


@measurements_bp.get("")
@require_auth
def list_measurements_route():
    try:
        measurements = measurement_service.list_measurements(
            g.principal,
            search=request.args.get("search"),
            location=request.args.get("location"),
        )
        return jsonify({
            "measurements": [m.to_dict() for m in measurements],
            "count": len(measurements),
        }), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list measurements")
        return jsonify({"error": "Internal server error"}), 500


@measurements_bp.get("/<int:measurement_id>")
@require_auth
def get_measurement_route(measurement_id: int):
    try:
        measurement = measurement_service.get_measurement(g.principal, measurement_id)
        return jsonify({"measurement": measurement.to_dict()}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load measurement")
        return jsonify({"error": "Internal server error"}), 500


@measurements_bp.post("")
@require_auth
def create_measurement_route():
    """
    Request body:
    - client_name, phone: required
    - shoulder, chest, waist, hip, sleeve_length, top_length: free text
    - unit: inches | cm (default inches)
    """
    try:
        data = request.get_json(silent=True) or {}
        measurement = measurement_service.create_measurement(g.principal, data)
        return jsonify({"measurement": measurement.to_dict()}), 201
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create measurement")
        return jsonify({"error": "Internal server error"}), 500


@measurements_bp.patch("/<int:measurement_id>")
@require_auth
def update_measurement_route(measurement_id: int):
    try:
        data = request.get_json(silent=True) or {}
        measurement = measurement_service.update_measurement(g.principal, measurement_id, data)
        return jsonify({"measurement": measurement.to_dict()}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update measurement")
        return jsonify({"error": "Internal server error"}), 500


@measurements_bp.delete("/<int:measurement_id>")
@require_auth
def delete_measurement_route(measurement_id: int):
    try:
        measurement_service.delete_measurement(g.principal, measurement_id)
        return jsonify({"message": "Measurement deleted"}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete measurement")
        return jsonify({"error": "Internal server error"}), 500
