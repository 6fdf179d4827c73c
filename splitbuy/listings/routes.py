"""Routes for the listings blueprint."""

import secrets

from firebase_admin import firestore
from flask import current_app, jsonify, request

from splitbuy.errors import ForbiddenError, ValidationError
from splitbuy.utils import get_json_body

from . import bp
from .services import ListingService
from .store import get_draft_store

MINT_KEY_HEADER = "X-Listing-Mint-Key"


def _require_mint_key():
    """Only the scraper, holding the shared mint key, may create drafts."""
    expected = current_app.config.get("LISTING_DRAFT_MINT_KEY") or ""
    provided = request.headers.get(MINT_KEY_HEADER, "")
    if not expected or not secrets.compare_digest(
        provided.encode(), expected.encode()
    ):
        current_app.logger.warning(
            f"Refused listing draft mint from {request.remote_addr}."
        )
        raise ForbiddenError("Only the listing scraper can create drafts.")


@bp.route("/drafts", methods=["POST"])
def create_draft():
    """Hold a scraped listing draft server-side and hand out its token."""
    _require_mint_key()
    draft = get_json_body()
    return jsonify(ListingService.create_draft(get_draft_store(), draft)), 201


@bp.route("", methods=["POST"])
def create_listing():
    """Create a listing from a draft token and the client's editable fields."""
    data = get_json_body()
    token = data.get("token")
    if not token:
        raise ValidationError("Invalid or expired token.")

    db = firestore.client()
    listing_id = ListingService.create_listing(
        db,
        get_draft_store(),
        token,
        data.get("name"),
        data.get("numberOfPeople"),
        data.get("userId"),
    )
    return jsonify(
        {"message": "Listing created successfully", "listingId": listing_id}
    )
