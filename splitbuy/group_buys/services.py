"""Service layer for group buy membership."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore
from flask import current_app

from splitbuy.constants import (
    CHATS_COLLECTION,
    GROUP_BUYS_COLLECTION,
    LISTINGS_COLLECTION,
)
from splitbuy.errors import (
    AlreadyDoneError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from splitbuy.purchase.models import GroupBuyStatus
from splitbuy.utils import utcnow

from .models import GroupBuy

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction


def _join_in_transaction(
    transaction: Transaction, group_buy_ref: DocumentReference, user_id: str
) -> GroupBuy:
    snapshot = group_buy_ref.get(transaction=transaction)
    if not snapshot.exists:
        raise NotFoundError("Group buy not found")
    group_buy = cast(GroupBuy, snapshot.to_dict() or {})

    participants = list(group_buy.get("participants") or [])
    if user_id in participants:
        raise AlreadyDoneError("You have already joined this group buy.")
    if group_buy.get("status") != GroupBuyStatus.OPEN.value:
        raise InvalidStateError("This group buy is not accepting participants.")

    participants.append(user_id)
    current = len(participants)
    maximum = group_buy.get("maxParticipants") or 0
    status = GroupBuyStatus.OPEN
    if maximum and current >= maximum:
        status = GroupBuyStatus.FULL
    updates = {
        "participants": participants,
        "currentParticipants": current,
        "status": status.value,
    }
    transaction.update(group_buy_ref, updates)
    return cast(GroupBuy, {**group_buy, **updates})


class GroupBuyService:
    """Creates group buys and tracks who has joined them."""

    @staticmethod
    def get_group_buy(db: Client, group_buy_id: str) -> GroupBuy:
        """Fetch a group buy by id."""
        snapshot = db.collection(GROUP_BUYS_COLLECTION).document(group_buy_id).get()
        if not snapshot.exists:
            raise NotFoundError("Group buy not found")
        return cast(GroupBuy, {**(snapshot.to_dict() or {}), "id": snapshot.id})

    @staticmethod
    def create_group_buy(db: Client, listing_id: str, organizer_id: str) -> GroupBuy:
        """Start a group buy for a listing, with the organizer as first member.

        Capacity comes from the listing's ``numberOfPeople``. The group buy's
        chat transcript is created alongside it.
        """
        listing_doc = db.collection(LISTINGS_COLLECTION).document(listing_id).get()
        if not listing_doc.exists:
            raise NotFoundError("Listing not found")
        listing: dict[str, Any] = listing_doc.to_dict() or {}

        maximum = int(listing.get("numberOfPeople") or listing.get("maxPeople") or 0)
        if maximum < 2:
            raise ValidationError("A group buy needs room for at least two people.")
        now = utcnow()
        group_buy: dict[str, Any] = {
            "listingId": listing_id,
            "organizerId": organizer_id,
            "maxParticipants": maximum,
            "currentParticipants": 1,
            "participants": [organizer_id],
            "status": GroupBuyStatus.OPEN.value,
            "createdAt": now,
        }

        group_buy_ref = db.collection(GROUP_BUYS_COLLECTION).document()
        batch = db.batch()
        batch.set(group_buy_ref, group_buy)
        batch.set(
            db.collection(CHATS_COLLECTION).document(group_buy_ref.id),
            {"users": [organizer_id], "createdAt": now, "messages": []},
        )
        batch.commit()

        current_app.logger.info(
            f"Group buy {group_buy_ref.id} opened by {organizer_id} for listing "
            f"{listing_id}."
        )
        return cast(GroupBuy, {**group_buy, "id": group_buy_ref.id})

    @staticmethod
    def join_group_buy(db: Client, group_buy_id: str, user_id: str) -> GroupBuy:
        """Add a member to an open group buy, marking it full at capacity."""
        group_buy_ref = db.collection(GROUP_BUYS_COLLECTION).document(group_buy_id)
        run = firestore.transactional(_join_in_transaction)
        group_buy = run(db.transaction(), group_buy_ref, user_id)

        try:
            db.collection(CHATS_COLLECTION).document(group_buy_id).update(
                {"users": firestore.ArrayUnion([user_id])}
            )
        except Exception as e:
            current_app.logger.error(
                f"Error adding {user_id} to chat for group buy {group_buy_id}: {e}"
            )

        current_app.logger.info(
            f"{user_id} joined group buy {group_buy_id} "
            f"({group_buy['currentParticipants']}/{group_buy.get('maxParticipants')})."
        )
        return cast(GroupBuy, {**group_buy, "id": group_buy_id})
