"""Service layer for purchase request persistence and orchestration."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from firebase_admin import firestore
from flask import current_app

from splitbuy.constants import GROUP_BUYS_COLLECTION, MESSAGE_TYPE_PURCHASE_REQUEST
from splitbuy.errors import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from splitbuy.notifications import ChatNotifier, email_purchase_request
from splitbuy.utils import parse_datetime, utcnow

from . import machine
from .models import PurchaseAction, PurchaseRequest, PurchaseRequestStatus

if TYPE_CHECKING:
    import datetime

    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.document import DocumentReference
    from google.cloud.firestore_v1.transaction import Transaction


def load_purchase_request(group_buy: dict[str, Any]) -> Optional[PurchaseRequest]:
    """Read the embedded purchase request of a group buy document."""
    data = group_buy.get("purchaseRequest")
    if not data:
        return None
    try:
        return PurchaseRequest.from_dict(data)
    except (KeyError, ValueError) as e:
        # Requests written by the proof-first workflow have statuses this
        # workflow does not know.
        raise InvalidStateError(
            "This purchase request uses an unsupported workflow."
        ) from e


class PurchaseRequestService:
    """Runs purchase request transitions against Firestore."""

    @staticmethod
    def _get_group_buy(
        group_buy_ref: DocumentReference, transaction: Transaction | None = None
    ) -> dict[str, Any]:
        if transaction is not None:
            snapshot = group_buy_ref.get(transaction=transaction)
        else:
            snapshot = group_buy_ref.get()
        if not snapshot.exists:
            raise NotFoundError("Group buy not found")
        return snapshot.to_dict() or {}

    @staticmethod
    def _write(
        transaction: Transaction,
        group_buy_ref: DocumentReference,
        transition: machine.Transition,
    ) -> None:
        # Both fields go in one update so readers never see them disagree.
        transaction.update(
            group_buy_ref,
            {
                "purchaseRequest": transition.purchase_request.to_dict(),
                "status": transition.group_buy_status.value,
            },
        )

    @staticmethod
    def _create_in_transaction(  # noqa: PLR0913
        transaction: Transaction,
        group_buy_ref: DocumentReference,
        organizer_id: str,
        amount: Any,
        deadline: datetime.datetime,
        message: str,
        now: datetime.datetime,
    ) -> machine.Transition:
        """Read the group buy, open the request and queue the write."""
        group_buy = PurchaseRequestService._get_group_buy(group_buy_ref, transaction)
        transition = machine.create_purchase_request(
            group_buy, organizer_id, amount, deadline, message, now
        )
        PurchaseRequestService._write(transaction, group_buy_ref, transition)
        return transition

    @staticmethod
    def _apply_in_transaction(
        transaction: Transaction,
        group_buy_ref: DocumentReference,
        action: PurchaseAction,
        now: datetime.datetime,
    ) -> machine.Transition:
        """Read the group buy, apply the action and queue the write."""
        group_buy = PurchaseRequestService._get_group_buy(group_buy_ref, transaction)
        purchase_request = load_purchase_request(group_buy)
        if purchase_request is None:
            raise NotFoundError("No active purchase request")
        transition = machine.apply_action(purchase_request, action, now)
        PurchaseRequestService._write(transaction, group_buy_ref, transition)
        return transition

    @staticmethod
    def create_purchase_request(  # noqa: PLR0913
        db: Client,
        group_buy_id: str,
        organizer_id: str,
        amount: Any,
        deadline: Any,
        message: str = "",
        notifier: ChatNotifier | None = None,
    ) -> PurchaseRequest:
        """Open a purchase request on a group buy and announce it."""
        try:
            deadline_at = parse_datetime(deadline)
        except (ValueError, OverflowError) as e:
            raise ValidationError("Deadline must be a valid date.") from e

        group_buy_ref = db.collection(GROUP_BUYS_COLLECTION).document(group_buy_id)
        run = firestore.transactional(PurchaseRequestService._create_in_transaction)
        transition = run(
            db.transaction(),
            group_buy_ref,
            organizer_id,
            amount,
            deadline_at,
            message,
            utcnow(),
        )
        purchase_request = transition.purchase_request
        current_app.logger.info(
            f"Purchase request {purchase_request.id} opened on group buy "
            f"{group_buy_id} for {len(purchase_request.participants)} participants."
        )

        (notifier or ChatNotifier(db)).post(
            group_buy_id, transition.message, MESSAGE_TYPE_PURCHASE_REQUEST
        )
        email_purchase_request(db, group_buy_id, purchase_request)
        return purchase_request

    @staticmethod
    def apply_action(
        db: Client,
        group_buy_id: str,
        action: PurchaseAction,
        notifier: ChatNotifier | None = None,
    ) -> PurchaseRequest:
        """Apply a participant or organizer action and announce the result."""
        group_buy_ref = db.collection(GROUP_BUYS_COLLECTION).document(group_buy_id)
        run = firestore.transactional(PurchaseRequestService._apply_in_transaction)
        transition = run(db.transaction(), group_buy_ref, action, utcnow())
        purchase_request = transition.purchase_request
        current_app.logger.info(
            f"{type(action).__name__} by {action.user_id} on group buy "
            f"{group_buy_id}: purchase request is {purchase_request.status.value}."
        )

        (notifier or ChatNotifier(db)).post(group_buy_id, transition.message)
        return purchase_request

    @staticmethod
    def check_proof_upload(db: Client, group_buy_id: str, organizer_id: str) -> None:
        """Refuse a proof upload that the state machine would reject anyway."""
        group_buy_ref = db.collection(GROUP_BUYS_COLLECTION).document(group_buy_id)
        group_buy = PurchaseRequestService._get_group_buy(group_buy_ref)
        if group_buy.get("organizerId") != organizer_id:
            raise ForbiddenError("Only organizer can upload proof of purchase")
        purchase_request = load_purchase_request(group_buy)
        if purchase_request is None:
            raise NotFoundError("No active purchase request")
        if purchase_request.status != PurchaseRequestStatus.READY_FOR_PURCHASE:
            raise InvalidStateError(
                "Proof of purchase can only be uploaded once every participant "
                "has paid."
            )
