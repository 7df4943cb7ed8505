# Overview: Flask API routes for shipments; parses input and returns JSON responses.

# backend/app/routes/shipments.py
"""
Shipment API Routes

- Customers track their shipments and submit receiver details
- Admins (logistics) open shipments for approved quotations and push
  status/location updates
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import shipping_service
from ..services.shipping_service import ShipmentError
from ..validation import ValidationError, NotFoundError, json_object
from ..decorators import require_auth, require_admin


shipments_bp = Blueprint("shipments", __name__, url_prefix="/api/shipments")


@shipments_bp.get("")
@require_auth
def list_shipments_route():
    """Caller's shipments joined to their quotations, newest first. Optional ?limit=."""
    try:
        shipments = shipping_service.list_user_shipments(
            g.current_user.id,
            limit=request.args.get("limit", type=int),
        )
        return jsonify({
            "shipments": shipping_service.shipment_views(shipments),
            "count": len(shipments),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to list shipments")
        return jsonify({"error": "Failed to load shipping data"}), 500


@shipments_bp.get("/receivers")
@require_auth
def list_receivers_route():
    try:
        receivers = shipping_service.list_default_receivers(g.current_user.id)
        return jsonify({"receivers": [r.to_dict() for r in receivers]}), 200
    except Exception:
        current_app.logger.exception("Failed to list receivers")
        return jsonify({"error": "Internal server error"}), 500


@shipments_bp.get("/<shipment_id>")
@require_auth
def get_shipment_route(shipment_id: str):
    try:
        shipment = shipping_service.get_shipment_for_user(shipment_id, g.current_user)
        return jsonify({"shipment": shipping_service.shipment_view(shipment)}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to get shipment")
        return jsonify({"error": "Internal server error"}), 500


@shipments_bp.post("/<shipment_id>/receiver")
@require_auth
def submit_receiver_route(shipment_id: str):
    """
    Submit receiver details for a waiting shipment.

    Request body:
    {
        "name": "...", "phone": "...", "address": "...",   (required)
        "email": "...", "city": "...", "country": "...",   (optional)
        "save_as_default": false
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        shipment = shipping_service.submit_receiver_info(
            shipment_id,
            g.current_user,
            data,
            save_as_default=bool(data.get("save_as_default")),
        )
        return jsonify({"shipment": shipping_service.shipment_view(shipment)}), 200
    except (ValidationError, ShipmentError) as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception as e:
        current_app.logger.exception("Failed to submit receiver info")
        return jsonify({"error": f"Failed to save receiver info: {e}"}), 500


# =============================================================================
# ADMIN
# =============================================================================

@shipments_bp.post("")
@require_auth
@require_admin
def create_shipment_route():
    """
    Request body:
    {
        "quotation_id": "<uuid or code>",
        "tracking_number": "...", "estimated_delivery": "ISO-8601", "location": "..."
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        shipment = shipping_service.create_shipment(
            data.get("quotation_id"),
            tracking_number=data.get("tracking_number"),
            estimated_delivery=data.get("estimated_delivery"),
            location=data.get("location"),
        )
        return jsonify({"shipment": shipment.to_dict()}), 201
    except (ValidationError, ShipmentError) as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create shipment")
        return jsonify({"error": "Internal server error"}), 500


@shipments_bp.patch("/<shipment_id>")
@require_auth
@require_admin
def update_shipment_route(shipment_id: str):
    """Request body: any of status, location, tracking_number, estimated_delivery, media_urls."""
    data = request.get_json(silent=True)
    try:
        shipment = shipping_service.update_shipment(shipment_id, data)
        return jsonify({"shipment": shipment.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update shipment")
        return jsonify({"error": "Internal server error"}), 500
