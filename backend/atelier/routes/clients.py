# Overview: Flask API routes for the client directory.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import AtelierError
from ..services import client_service
from ..decorators import require_auth


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
@require_auth
def list_clients_route():
    try:
        clients = client_service.list_clients(
            g.principal,
            search=request.args.get("search"),
            location=request.args.get("location"),
        )
        return jsonify({"clients": [c.to_dict() for c in clients], "count": len(clients)}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list clients")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.get("/<int:client_id>")
@require_auth
def get_client_route(client_id: int):
    try:
        client = client_service.get_client(g.principal, client_id)
        return jsonify({"client": client.to_dict()}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.post("")
@require_auth
def create_client_route():
    """Request body: name, phone (required); email, address, notes, location."""
    try:
        data = request.get_json(silent=True) or {}
        client = client_service.create_client(g.principal, data)
        return jsonify({"client": client.to_dict()}), 201
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.patch("/<int:client_id>")
@require_auth
def update_client_route(client_id: int):
    try:
        data = request.get_json(silent=True) or {}
        client = client_service.update_client(g.principal, client_id, data)
        return jsonify({"client": client.to_dict()}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update client")
        return jsonify({"error": "Internal server error"}), 500


@clients_bp.delete("/<int:client_id>")
@require_auth
def delete_client_route(client_id: int):
    try:
        client_service.delete_client(g.principal, client_id)
        return jsonify({"message": "Client deleted"}), 200
    except AtelierError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete client")
        return jsonify({"error": "Internal server error"}), 500
