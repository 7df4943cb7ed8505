# Overview: Public URLs for objects in the local media store.

from flask import Blueprint, abort, send_file

from ..services import storage_service
from ..services.storage_service import StorageError


media_bp = Blueprint("media", __name__, url_prefix="/media")


@media_bp.get("/<bucket>/<path:key>")
def get_object_route(bucket: str, key: str):
    """Serve a stored proof or product image. Unknown buckets and keys are 404."""
    if bucket not in (storage_service.BUCKET_PAYMENT_PROOFS, storage_service.BUCKET_QUOTATION_IMAGES):
        abort(404)
    try:
        path = storage_service.object_path(bucket, key)
    except StorageError:
        abort(404)
    if not path.is_file():
        abort(404)
    return send_file(path)
