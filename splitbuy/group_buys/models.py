"""Data models for the group buys blueprint."""

from __future__ import annotations

from typing import Any

from splitbuy.core.types import FirestoreDocument


class GroupBuy(FirestoreDocument, total=False):
    """A group buy document in Firestore."""

    listingId: str
    organizerId: str
    maxParticipants: int
    currentParticipants: int
    participants: list[str]
    status: str
    purchaseRequest: dict[str, Any]
