"""One-time tokens binding a scraped listing draft to listing creation.

A draft is minted when a product page is scraped and redeemed exactly once
when the listing is created. Redeeming deletes the entry whether or not the
listing is eventually written, so a failed creation requires a new scrape.
"""

from __future__ import annotations

import datetime
import uuid
from typing import TYPE_CHECKING, Any, Optional, Protocol

from firebase_admin import firestore
from flask import current_app

from splitbuy.constants import LISTING_DRAFT_TTL_SECONDS, LISTING_DRAFTS_COLLECTION
from splitbuy.errors import NotFoundError
from splitbuy.utils import utcnow

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction

EXTENSION_KEY = "listing_drafts"


class ListingDraftStore(Protocol):
    """Key-value store for listing drafts with single-use tokens."""

    def mint(self, draft: dict[str, Any]) -> str: ...

    def redeem(self, token: str) -> dict[str, Any]: ...


def _take_in_transaction(
    transaction: Transaction, draft_ref: DocumentReference
) -> Optional[dict[str, Any]]:
    snapshot = draft_ref.get(transaction=transaction)
    if not snapshot.exists:
        return None
    transaction.delete(draft_ref)
    return snapshot.to_dict() or {}


class FirestoreListingDraftStore:
    """Listing drafts kept in Firestore with an expiry timestamp."""

    def __init__(
        self, ttl_seconds: int = LISTING_DRAFT_TTL_SECONDS, db: Client | None = None
    ) -> None:
        self.ttl = datetime.timedelta(seconds=ttl_seconds)
        self._db = db

    @property
    def db(self) -> Client:
        return self._db or firestore.client()

    def _ref(self, token: str) -> DocumentReference:
        return self.db.collection(LISTING_DRAFTS_COLLECTION).document(token)

    def mint(self, draft: dict[str, Any]) -> str:
        """Store a draft and return the token that redeems it."""
        token = str(uuid.uuid4())
        now = utcnow()
        self._ref(token).set(
            {"data": draft, "createdAt": now, "expiresAt": now + self.ttl}
        )
        return token

    def redeem(self, token: str) -> dict[str, Any]:
        """Return the draft for a token and delete it.

        Raises:
            NotFoundError: If the token is unknown, spent or expired.
        """
        run = firestore.transactional(_take_in_transaction)
        entry = run(self.db.transaction(), self._ref(token))
        if entry is None:
            raise NotFoundError("Invalid or expired token.")

        expires_at = entry.get("expiresAt")
        if expires_at is not None and expires_at <= utcnow():
            current_app.logger.info(f"Listing draft token {token} expired.")
            raise NotFoundError("Invalid or expired token.")
        return entry.get("data") or {}


def get_draft_store() -> ListingDraftStore:
    """The draft store configured for the current application."""
    return current_app.extensions[EXTENSION_KEY]
