"""Service layer for listing creation from scraped drafts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from firebase_admin import firestore
from flask import current_app

from splitbuy.constants import LISTINGS_COLLECTION, USERS_COLLECTION
from splitbuy.errors import NotFoundError, ValidationError
from splitbuy.utils import sanitize

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

    from .store import ListingDraftStore

DEFAULT_MIN_PEOPLE = 2
DEFAULT_MAX_PEOPLE = 20


def _as_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a whole number.")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"{field_name} must be a whole number.") from e


def normalize_draft(draft: dict[str, Any]) -> dict[str, Any]:
    """Validate a scraped draft and fill in the participant bounds."""
    name = sanitize(draft.get("name"))
    if not name:
        raise ValidationError("Listing draft must include a product name.")

    min_people = _as_int(draft.get("minPeople") or DEFAULT_MIN_PEOPLE, "minPeople")
    max_people = _as_int(draft.get("maxPeople") or DEFAULT_MAX_PEOPLE, "maxPeople")
    if min_people < 1 or max_people < min_people:
        raise ValidationError("Listing draft has an invalid participant range.")

    return {**draft, "name": name, "minPeople": min_people, "maxPeople": max_people}


class ListingService:
    """Creates listings from redeemed drafts."""

    @staticmethod
    def create_draft(
        store: ListingDraftStore, draft: dict[str, Any]
    ) -> dict[str, Any]:
        """Mint a token for a scraped draft; returns the draft plus its token."""
        normalized = normalize_draft(draft)
        token = store.mint(normalized)
        return {**normalized, "token": token}

    @staticmethod
    def create_listing(  # noqa: PLR0913
        db: Client,
        store: ListingDraftStore,
        token: str,
        name: str | None,
        number_of_people: Any,
        user_id: str | None,
    ) -> str:
        """Redeem a draft token and write the listing. Returns the listing id."""
        draft = store.redeem(token)

        if not user_id:
            raise ValidationError("User not authenticated")

        people = _as_int(number_of_people, "numberOfPeople")
        if people < draft["minPeople"] or people > draft["maxPeople"]:
            raise ValidationError("Number of people is out of the allowed range.")

        sanitized_name = sanitize(name or draft.get("name"))
        if not sanitized_name:
            raise ValidationError("Product name cannot be empty.")

        user_ref = db.collection(USERS_COLLECTION).document(user_id)
        if not user_ref.get().exists:
            raise NotFoundError("User profile not found.")

        listing_data = {
            **draft,
            "name": sanitized_name,
            "numberOfPeople": people,
            "createdBy": user_id,
            "createdAt": firestore.SERVER_TIMESTAMP,
        }
        listing_ref = db.collection(LISTINGS_COLLECTION).document()
        listing_ref.set(listing_data)
        user_ref.update({"listings": firestore.ArrayUnion([listing_ref.id])})

        current_app.logger.info(f"Listing {listing_ref.id} created by {user_id}.")
        return listing_ref.id
