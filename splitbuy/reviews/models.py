"""Data models for the reviews blueprint."""

from __future__ import annotations

from typing import Any, TypedDict

from splitbuy.core.types import FirestoreDocument


class Review(TypedDict):
    """A review entry stored on the reviewed user's profile."""

    reviewerId: str
    rating: int
    comment: str
    createdAt: Any
    groupBuyId: str


class Profile(FirestoreDocument, total=False):
    """A public profile document in Firestore."""

    name: str
    totalRating: int
    reviewCount: int
    reviewRating: float
    completedGroupBuys: int
    reviews: list[Review]
