"""Routes for the group buys blueprint."""

from firebase_admin import firestore
from flask import jsonify

from splitbuy.errors import ValidationError
from splitbuy.utils import get_json_body, to_json

from . import bp
from .services import GroupBuyService


@bp.route("", methods=["POST"])
def create_group_buy():
    """Start a group buy for a listing."""
    data = get_json_body()
    listing_id = data.get("listingId")
    organizer_id = data.get("organizerId")
    if not listing_id or not organizer_id:
        raise ValidationError("Missing required fields")

    db = firestore.client()
    group_buy = GroupBuyService.create_group_buy(db, listing_id, organizer_id)
    return jsonify({"success": True, "groupBuy": to_json(group_buy)}), 201


@bp.route("/<string:group_buy_id>", methods=["GET"])
def view_group_buy(group_buy_id):
    """Return a group buy with its purchase request."""
    db = firestore.client()
    group_buy = GroupBuyService.get_group_buy(db, group_buy_id)
    return jsonify({"groupBuy": to_json(group_buy)})


@bp.route("/<string:group_buy_id>/join", methods=["POST"])
def join_group_buy(group_buy_id):
    """Join an open group buy."""
    data = get_json_body()
    user_id = data.get("userId")
    if not user_id:
        raise ValidationError("Missing required fields")

    db = firestore.client()
    group_buy = GroupBuyService.join_group_buy(db, group_buy_id, user_id)
    return jsonify({"success": True, "groupBuy": to_json(group_buy)})
