"""Shared test case and seed data for Firestore-backed tests."""

from __future__ import annotations

import datetime
import unittest
from typing import Any
from unittest.mock import patch

from mockfirestore import MockFirestore

from splitbuy import create_app
from splitbuy.listings.store import FirestoreListingDraftStore
from tests.mock_utils import (
    MockArrayUnion,
    MockBatch,
    MockTransaction,
    mock_transactional,
    patch_mockfirestore,
)

ORGANIZER_ID = "organizer_uid"
PARTICIPANT_IDS = ["alice_uid", "bob_uid", "carol_uid"]
GROUP_BUY_ID = "gb1"
MINT_KEY = "scraper-shared-secret"


def future(days: int = 1) -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(days=days)


class FirestoreAppTestCase(unittest.TestCase):
    """Test case wiring the app to an in-memory Firestore."""

    def setUp(self) -> None:
        patch_mockfirestore()
        self.db = MockFirestore()
        self.db.transaction = MockTransaction
        self.db.batch = lambda: MockBatch(self.db)

        patchers = {
            "client": patch("firebase_admin.firestore.client", return_value=self.db),
            "transactional": patch(
                "firebase_admin.firestore.transactional", new=mock_transactional
            ),
            "array_union": patch(
                "firebase_admin.firestore.ArrayUnion", new=MockArrayUnion
            ),
        }
        self.mocks = {name: p.start() for name, p in patchers.items()}
        for p in patchers.values():
            self.addCleanup(p.stop)

        self.draft_store = FirestoreListingDraftStore(ttl_seconds=600, db=self.db)
        self.app = create_app(
            {
                "TESTING": True,
                "WTF_CSRF_ENABLED": False,
                "LISTING_DRAFT_STORE": self.draft_store,
                "LISTING_DRAFT_MINT_KEY": MINT_KEY,
            }
        )
        self.client = self.app.test_client()
        self.app_context = self.app.app_context()
        self.app_context.push()
        self.addCleanup(self.app_context.pop)

    def seed_group_buy(
        self,
        group_buy_id: str = GROUP_BUY_ID,
        participants: list[str] | None = None,
        **fields: Any,
    ) -> dict[str, Any]:
        """Create a full group buy with its chat document."""
        members = [ORGANIZER_ID, *(participants or PARTICIPANT_IDS)]
        data = {
            "organizerId": ORGANIZER_ID,
            "maxParticipants": len(members),
            "currentParticipants": len(members),
            "participants": members,
            "status": "full",
        }
        data.update(fields)
        self.db.collection("groupBuys").document(group_buy_id).set(data)
        self.db.collection("chats").document(group_buy_id).set(
            {"users": members, "messages": []}
        )
        return data

    def group_buy(self, group_buy_id: str = GROUP_BUY_ID) -> dict[str, Any]:
        return self.db.collection("groupBuys").document(group_buy_id).get().to_dict()

    def chat_messages(self, group_buy_id: str = GROUP_BUY_ID) -> list[dict[str, Any]]:
        chat = self.db.collection("chats").document(group_buy_id).get().to_dict()
        return (chat or {}).get("messages", [])
