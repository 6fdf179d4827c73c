"""Best-effort notifications sent after a workflow step has been persisted.

Failures are logged and swallowed: a notification never rolls back the
state change it reports.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore
from flask import current_app

from splitbuy.constants import (
    CHATS_COLLECTION,
    MESSAGE_TYPE_PURCHASE_UPDATE,
    SYSTEM_SENDER_ID,
    USERS_COLLECTION,
)
from splitbuy.utils import EmailError, epoch_millis, send_email, utcnow

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

    from splitbuy.purchase.models import PurchaseRequest


class ChatNotifier:
    """Appends system messages to a group buy's chat transcript."""

    def __init__(self, db: Client) -> None:
        self.db = db

    def post(
        self, group_buy_id: str, text: str, kind: str = MESSAGE_TYPE_PURCHASE_UPDATE
    ) -> bool:
        """Append a system message. Returns False when the write failed."""
        now = utcnow()
        message = {
            "id": f"msg_{epoch_millis(now)}",
            "text": text,
            "senderId": SYSTEM_SENDER_ID,
            "timestamp": now.isoformat(),
            "type": kind,
        }
        try:
            chat_ref = self.db.collection(CHATS_COLLECTION).document(group_buy_id)
            chat_ref.update({"messages": firestore.ArrayUnion([message])})
        except Exception as e:
            current_app.logger.error(
                f"Error posting chat notification for group buy {group_buy_id}: {e}"
            )
            return False
        return True


def email_purchase_request(
    db: Client, group_buy_id: str, purchase_request: PurchaseRequest
) -> int:
    """Email every participant with a known address about a new request.

    Returns the number of emails sent.
    """
    if not current_app.config.get("NOTIFY_BY_EMAIL"):
        return 0

    refs = [
        db.collection(USERS_COLLECTION).document(p.user_id)
        for p in purchase_request.participants
    ]
    try:
        user_docs = cast(list["DocumentSnapshot"], db.get_all(refs))
    except Exception as e:
        current_app.logger.error(f"Error loading participants for email: {e}")
        return 0

    sent = 0
    for doc in user_docs:
        if not doc.exists:
            continue
        user: dict[str, Any] = doc.to_dict() or {}
        email = user.get("email")
        if not email:
            continue
        try:
            send_email(
                to=email,
                subject="Payment requested for your group buy",
                template="email/purchase_request.html",
                user=user,
                group_buy_id=group_buy_id,
                purchase_request=purchase_request,
            )
            sent += 1
        except EmailError as e:
            current_app.logger.error(f"Email error notifying {doc.id}: {e}")
    return sent
