"""Routes for the purchase blueprint."""

from firebase_admin import firestore
from flask import jsonify

from splitbuy.errors import ValidationError
from splitbuy.utils import get_json_body, to_json

from . import bp
from .forms import ProofUploadForm
from .models import parse_action
from .services import PurchaseRequestService
from .storage import upload_proof


@bp.route("/purchase-requests", methods=["POST"])
def create_purchase_request():
    """Open a purchase request on a group buy."""
    data = get_json_body()
    group_buy_id = data.get("groupBuyId")
    organizer_id = data.get("organizerId")
    amount = data.get("amount")
    deadline = data.get("deadline")
    if not group_buy_id or not organizer_id or amount is None or not deadline:
        raise ValidationError("Missing required fields")

    db = firestore.client()
    purchase_request = PurchaseRequestService.create_purchase_request(
        db,
        group_buy_id,
        organizer_id,
        amount,
        deadline,
        data.get("message") or "",
    )
    return jsonify(
        {"success": True, "purchaseRequest": to_json(purchase_request.to_dict())}
    )


@bp.route("/purchase-requests", methods=["PATCH"])
def update_purchase_request():
    """Apply a payment, proof or approval action to a purchase request."""
    data = get_json_body()
    group_buy_id = data.get("groupBuyId")
    if not group_buy_id:
        raise ValidationError("Missing required fields")
    action = parse_action(data)

    db = firestore.client()
    purchase_request = PurchaseRequestService.apply_action(db, group_buy_id, action)
    return jsonify(
        {"success": True, "purchaseRequest": to_json(purchase_request.to_dict())}
    )


@bp.route("/upload-proof", methods=["POST"])
def upload_purchase_proof():
    """Store an organizer's proof of purchase and return its URL."""
    form = ProofUploadForm()
    if not form.file.data or not form.groupBuyId.data or not form.organizerId.data:
        raise ValidationError("Missing required fields")
    if not form.validate():
        fields = (form.file, form.groupBuyId, form.organizerId)
        errors = [e for field in fields for e in field.errors]
        raise ValidationError(errors[0] if errors else "Invalid upload.")

    group_buy_id = form.groupBuyId.data
    organizer_id = form.organizerId.data

    db = firestore.client()
    PurchaseRequestService.check_proof_upload(db, group_buy_id, organizer_id)

    url = upload_proof(group_buy_id, organizer_id, form.file.data)
    if not url:
        return jsonify({"error": "Failed to upload proof"}), 500
    return jsonify({"success": True, "url": url})
