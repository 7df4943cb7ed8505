# Overview: Flask API routes for quotations; parses input and returns JSON responses.

# backend/app/routes/quotations.py
"""
Quotation API Routes

- Customers create quotation requests, attach product images and pick a
  supplier price option
- Admins enter price options and may reject a request
- Quotations are addressed by UUID or by their QT-YYYY-NNNN code
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import quotation_service, selection_service
from ..services.quotation_service import QuotationError
from ..services.selection_service import SelectionError
from ..services.storage_service import StorageError
from ..validation import ValidationError, ConflictError, NotFoundError, json_object
from ..decorators import require_auth, require_admin


quotations_bp = Blueprint("quotations", __name__, url_prefix="/api/quotations")


# =============================================================================
# CREATE / PATCH IMAGES
# =============================================================================

@quotations_bp.post("")
@require_auth
def create_quotation_route():
    """
    Create a quotation request.

    Required: product_name, alibaba_url, quantity, destination_country,
    destination_city, shipping_method, service_type.
    quotation_id (QT-YYYY-NNNN) and status (Pending) are generated if absent.

    Returns:
        201: {"success": true, "data": [row]}
        400: {"error": "Missing required field: <name>"} or invalid value
        409: supplied quotation_id already exists
        500: persistence failure
    """
    try:
        data = request.get_json(silent=True)
        quotation = quotation_service.create_quotation(data, user_id=g.current_user.id)
        return jsonify({"success": True, "data": [quotation.to_dict()]}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except QuotationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create quotation")
        return jsonify({"error": "Failed to create quotation, please try again"}), 500


@quotations_bp.patch("")
@require_auth
def update_image_urls_route():
    """
    Replace a quotation's image list.

    Request body: {"id": "<uuid or code>", "imageUrls": ["...", ...]}
    """
    try:
        data = json_object(request.get_json(silent=True))
        quotation = quotation_service.update_image_urls(
            data.get("id"),
            data.get("imageUrls"),
            user=g.current_user,
        )
        return jsonify({"success": True, "data": [quotation.to_dict()]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update quotation images")
        return jsonify({"error": "Failed to update quotation images, please try again"}), 500


# =============================================================================
# READ
# =============================================================================

@quotations_bp.get("")
@require_auth
def list_quotations_route():
    """List the caller's quotations (all, for admins). Optional ?status=&limit=."""
    try:
        limit = request.args.get("limit", type=int)
        quotations = quotation_service.list_quotations(
            g.current_user,
            status=request.args.get("status"),
            limit=limit,
        )
        return jsonify({
            "quotations": [quotation_service.quotation_view(q) for q in quotations],
            "count": len(quotations),
        }), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list quotations")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.get("/<identifier>")
@require_auth
def get_quotation_route(identifier: str):
    try:
        quotation = quotation_service.get_quotation_for_user(identifier, g.current_user)
        return jsonify({"quotation": quotation_service.quotation_view(quotation)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to get quotation")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# SELECTION
# =============================================================================

@quotations_bp.post("/<identifier>/selection")
@require_auth
def record_selection_route(identifier: str):
    """
    Record the caller's chosen price option.

    Request body: {"option_id": 1 | 2 | 3}
    """
    try:
        data = json_object(request.get_json(silent=True))
        selection = selection_service.record_selection(identifier, g.current_user, data.get("option_id"))
        return jsonify({"selection": selection.to_dict()}), 200
    except (ValidationError, SelectionError) as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to record selection")
        return jsonify({"error": "Failed to save your selection, please try again"}), 500


@quotations_bp.get("/<identifier>/selection")
@require_auth
def get_selection_route(identifier: str):
    try:
        quotation = quotation_service.get_quotation_for_user(identifier, g.current_user)
        selection = selection_service.get_selection(quotation.id, g.current_user.id)
        return jsonify({
            "selection": selection.to_dict() if selection else None,
            "selected_option": quotation.selected_option,
        }), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to get selection")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PRODUCT IMAGES
# =============================================================================

@quotations_bp.post("/<identifier>/images")
@require_auth
def upload_image_route(identifier: str):
    """Multipart upload (field "file") of a product image, image/* or PDF, max 5 MB."""
    files = request.files.getlist("file")
    if len(files) != 1:
        return jsonify({"error": "Exactly one file is required"}), 400
    try:
        quotation = quotation_service.upload_product_image(identifier, g.current_user, files[0])
        return jsonify({"success": True, "data": [quotation.to_dict()]}), 201
    except StorageError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to upload product image")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# ADMIN
# =============================================================================

@quotations_bp.put("/<identifier>/price-options")
@require_auth
@require_admin
def set_price_options_route(identifier: str):
    """
    Enter supplier price options.

    Request body (flattened, any subset):
    {
        "title_option1": "Supplier A", "total_price_option1": 1250,
        "delivery_time_option1": "15 days", "description_option1": "...",
        "image_option1": "...", ... through option3
    }
    """
    data = request.get_json(silent=True)
    try:
        quotation = quotation_service.set_price_options(identifier, data)
        return jsonify({"quotation": quotation_service.quotation_view(quotation)}), 200
    except (ValidationError, QuotationError) as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to set price options")
        return jsonify({"error": "Internal server error"}), 500


@quotations_bp.patch("/<identifier>/status")
@require_auth
@require_admin
def set_status_route(identifier: str):
    """Request body: {"status": "Pending" | "Rejected"}"""
    try:
        data = json_object(request.get_json(silent=True))
        quotation = quotation_service.set_status(identifier, data.get("status"))
        return jsonify({"quotation": quotation.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to set quotation status")
        return jsonify({"error": "Internal server error"}), 500
