"""Routes for the reviews blueprint."""

from firebase_admin import firestore
from flask import jsonify

from splitbuy.errors import ValidationError
from splitbuy.utils import get_json_body

from . import bp
from .services import ReviewService


@bp.route("/reviews", methods=["POST"])
def submit_review():
    """Leave a review for the organizer of a completed group buy."""
    data = get_json_body()
    reviewed_user_id = data.get("reviewedUserId")
    group_buy_id = data.get("groupBuyId")
    reviewer_id = data.get("reviewerId")
    rating = data.get("rating")
    if not reviewed_user_id or not group_buy_id or not reviewer_id or rating is None:
        raise ValidationError("Missing required fields")

    db = firestore.client()
    ReviewService.submit_review(
        db,
        reviewed_user_id,
        group_buy_id,
        reviewer_id,
        rating,
        data.get("comment") or "",
    )
    return jsonify({"message": "Review submitted successfully"})
