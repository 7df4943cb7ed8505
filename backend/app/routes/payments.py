# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/app/routes/payments.py
"""
Payment API Routes

WHY: Checkout for priced quotations via bank transfer, followed by upload of
the transfer receipt.

DESIGN:
- Create a payment for one or more quotations (duplicate check, 409)
- Upload proof of payment (moves the payment to PROCESSING)
- Payment history with the quotations each payment covers
- Error bodies from checkout carry retry_safe: false when a FAILED payment
  was recorded, so clients do not blindly resubmit
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import payment_service, quotation_service
from ..services.payment_service import PaymentError, DuplicatePaymentError, PaymentRollbackError
from ..services.storage_service import StorageError
from ..validation import ValidationError, NotFoundError, json_object
from ..decorators import require_auth
from app.time_utils import to_utc_z


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def _items_from_request(data: dict) -> list:
    if "items" in data:
        return data.get("items")
    if data.get("quotation_id"):
        return [{"quotation_id": data.get("quotation_id"), "option_id": data.get("option_id")}]
    return []


@payments_bp.post("")
@require_auth
def create_payment_route():
    """
    Create a bank-transfer payment.

    Request body:
    {
        "method": "WISE" | "SOCIETE_GENERALE" | "CIH",
        "items": [{"quotation_id": "<uuid or QT code>", "option_id": 1}, ...],
        "confirm_duplicate": false
    }
    or, for a single quotation: {"method", "quotation_id", "option_id"}

    Returns:
        201: Payment created (PENDING), quotation(s) Approved
        400: Invalid input (retry_safe: true)
        404: Unknown quotation
        409: Active payment already exists (existing reference in body)
        500: Failure; retry_safe tells whether a FAILED payment was recorded
    """
    try:
        data = json_object(request.get_json(silent=True))
        payment = payment_service.create_payment(
            user_id=g.current_user.id,
            items=_items_from_request(data),
            method=data.get("method"),
            confirm_duplicate=bool(data.get("confirm_duplicate")),
        )
        return jsonify({"payment": payment_service.payment_view(payment)}), 201

    except DuplicatePaymentError as e:
        return jsonify({
            "error": str(e),
            "duplicate": True,
            "quotation_id": e.quotation_id,
            "existing_reference": e.reference_number,
            "existing_created_at": to_utc_z(e.created_at),
            "retry_safe": True,
        }), 409
    except PaymentRollbackError as e:
        return jsonify({
            "error": str(e),
            "payment_id": e.payment_id,
            "reference_number": e.reference_number,
            "retry_safe": False,
        }), 500
    except PaymentError as e:
        return jsonify({"error": str(e), "retry_safe": e.retry_safe}), 400
    except ValidationError as e:
        return jsonify({"error": str(e), "retry_safe": True}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e), "retry_safe": True}), 404
    except Exception:
        current_app.logger.exception("Failed to create payment")
        return jsonify({"error": "Failed to create payment, please try again", "retry_safe": True}), 500


# =============================================================================
# PROOF OF PAYMENT
# =============================================================================

@payments_bp.post("/<payment_id>/proof")
@require_auth
def upload_proof_route(payment_id: str):
    """
    Upload the transfer receipt (multipart field "file": image/* or PDF, max 5 MB).

    Returns:
        200: Payment updated to PROCESSING
        400: Invalid file or payment not awaiting proof
        404: Unknown payment
    """
    files = request.files.getlist("file")
    if len(files) != 1:
        return jsonify({"error": "Exactly one file is required"}), 400
    try:
        payment = payment_service.upload_proof(payment_id, g.current_user, files[0])
        return jsonify({"payment": payment_service.payment_view(payment)}), 200
    except (StorageError, PaymentError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to upload payment proof")
        return jsonify({"error": "Failed to upload proof, please try again"}), 500


# =============================================================================
# PAYMENT QUERIES
# =============================================================================

@payments_bp.get("")
@require_auth
def list_payments_route():
    """Payment history of the caller, newest first. Optional ?status=."""
    try:
        payments = payment_service.list_user_payments(g.current_user.id, status=request.args.get("status"))
        return jsonify({
            "payments": [payment_service.payment_view(p) for p in payments],
            "count": len(payments),
        }), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/banks")
@require_auth
def list_banks_route():
    return jsonify({"banks": payment_service.list_banks()}), 200


@payments_bp.get("/active")
@require_auth
def active_payments_route():
    """
    Active (not FAILED/REJECTED) payments for a quotation, for the
    pre-checkout duplicate warning. ?quotation_id=<uuid or code>
    """
    try:
        quotation = quotation_service.get_quotation_for_user(
            request.args.get("quotation_id"),
            g.current_user,
        )
        payments = payment_service.find_active_payments(quotation.id)
        return jsonify({
            "payments": [p.to_dict() for p in payments],
            "count": len(payments),
        }), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to get active payments")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/<payment_id>")
@require_auth
def get_payment_route(payment_id: str):
    try:
        payment = payment_service.get_payment_for_user(payment_id, g.current_user)
        return jsonify({"payment": payment_service.payment_view(payment)}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to get payment")
        return jsonify({"error": "Internal server error"}), 500
