"""Service layer for the review ledger."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore
from flask import current_app

from splitbuy.constants import (
    GROUP_BUYS_COLLECTION,
    MAX_RATING,
    MIN_RATING,
    PROFILES_COLLECTION,
)
from splitbuy.errors import (
    AlreadyDoneError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from splitbuy.purchase.models import PurchaseRequestStatus
from splitbuy.utils import utcnow

from .models import Profile, Review

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction


def validate_rating(rating: Any) -> int:
    """Ratings are whole stars from one to five."""
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("Rating must be a whole number.")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}."
        )
    return rating


def has_reviewed(
    profile: dict[str, Any],
    purchase_request: dict[str, Any],
    group_buy_id: str,
    reviewer_id: str,
) -> bool:
    """Check both places a past review of this group buy may be recorded."""
    if reviewer_id in (purchase_request.get("reviewedBy") or []):
        return True
    return any(
        r.get("groupBuyId") == group_buy_id and r.get("reviewerId") == reviewer_id
        for r in profile.get("reviews") or []
    )


class ReviewService:
    """Records reviews of group buy organizers."""

    @staticmethod
    def _submit_in_transaction(
        transaction: Transaction,
        profile_ref: DocumentReference,
        group_buy_ref: DocumentReference,
        review: Review,
        reviewed_user_id: str,
    ) -> dict[str, Any]:
        """Validate against both documents, then queue both writes."""
        profile_doc = profile_ref.get(transaction=transaction)
        if not profile_doc.exists:
            raise NotFoundError("Organizer profile not found.")
        profile = cast(Profile, profile_doc.to_dict() or {})

        group_buy_doc = group_buy_ref.get(transaction=transaction)
        if not group_buy_doc.exists:
            raise NotFoundError("Group buy not found.")
        group_buy = group_buy_doc.to_dict() or {}

        if group_buy.get("organizerId") != reviewed_user_id:
            raise ValidationError("Only the organizer of a group buy can be reviewed.")

        purchase_request = group_buy.get("purchaseRequest") or {}
        if purchase_request.get("status") != PurchaseRequestStatus.COMPLETED.value:
            raise InvalidStateError(
                "Reviews can be left once the purchase is completed."
            )

        reviewer_id = review["reviewerId"]
        participant_ids = {
            p.get("userId") for p in purchase_request.get("participants") or []
        }
        if reviewer_id not in participant_ids:
            raise ForbiddenError("Only participants of this group buy can review it.")

        if has_reviewed(profile, purchase_request, review["groupBuyId"], reviewer_id):
            raise AlreadyDoneError("User has already reviewed this group buy.")

        total_rating = (profile.get("totalRating") or 0) + review["rating"]
        review_count = (profile.get("reviewCount") or 0) + 1
        profile_updates = {
            "totalRating": total_rating,
            "reviewCount": review_count,
            "reviewRating": total_rating / review_count,
            "completedGroupBuys": (profile.get("completedGroupBuys") or 0) + 1,
            "reviews": [*(profile.get("reviews") or []), review],
        }
        transaction.update(profile_ref, profile_updates)
        transaction.update(
            group_buy_ref,
            {
                "purchaseRequest": {
                    **purchase_request,
                    "reviewedBy": [
                        *(purchase_request.get("reviewedBy") or []),
                        reviewer_id,
                    ],
                }
            },
        )
        return profile_updates

    @staticmethod
    def submit_review(  # noqa: PLR0913
        db: Client,
        reviewed_user_id: str,
        group_buy_id: str,
        reviewer_id: str,
        rating: Any,
        comment: str = "",
    ) -> dict[str, Any]:
        """Record a review and update the organizer's rating in one transaction.

        Returns the profile fields that were written.
        """
        rating = validate_rating(rating)
        if reviewer_id == reviewed_user_id:
            raise ValidationError("You cannot review yourself.")

        review: Review = {
            "reviewerId": reviewer_id,
            "rating": rating,
            "comment": comment or "",
            "createdAt": utcnow(),
            "groupBuyId": group_buy_id,
        }
        profile_ref = db.collection(PROFILES_COLLECTION).document(reviewed_user_id)
        group_buy_ref = db.collection(GROUP_BUYS_COLLECTION).document(group_buy_id)

        run = firestore.transactional(ReviewService._submit_in_transaction)
        updates = run(
            db.transaction(), profile_ref, group_buy_ref, review, reviewed_user_id
        )
        current_app.logger.info(
            f"Review by {reviewer_id} recorded for {reviewed_user_id} "
            f"on group buy {group_buy_id}."
        )
        return updates
