"""Pure state transitions for the purchase request workflow.

Nothing here touches Firestore. Each transition takes the current state and
the time of the call, validates the action against the status and the
caller's role, and returns a new :class:`PurchaseRequest` together with the
system chat message announcing the change. Persisting the result and
delivering the message are the service layer's job.
"""

from __future__ import annotations

import dataclasses
import datetime
import math
from dataclasses import dataclass
from typing import Any

from splitbuy.errors import ForbiddenError, InvalidStateError, ValidationError
from splitbuy.utils import epoch_millis

from .models import (
    ApprovePurchase,
    GroupBuyStatus,
    ParticipantPayment,
    ParticipantStatus,
    PurchaseAction,
    PurchaseRequest,
    PurchaseRequestStatus,
    RejectPurchase,
    SubmitPayment,
    UploadOrganizerProof,
)


@dataclass(frozen=True)
class Transition:
    """Outcome of a state machine step."""

    purchase_request: PurchaseRequest
    message: str

    @property
    def group_buy_status(self) -> GroupBuyStatus:
        return derive_group_buy_status(self.purchase_request)


def derive_group_buy_status(purchase_request: PurchaseRequest) -> GroupBuyStatus:
    """The group buy status is a projection of its purchase request."""
    if purchase_request.status == PurchaseRequestStatus.COMPLETED:
        return GroupBuyStatus.COMPLETED
    return GroupBuyStatus.PURCHASING


def create_purchase_request(
    group_buy: dict[str, Any],
    organizer_id: str,
    amount: Any,
    deadline: datetime.datetime,
    message: str,
    now: datetime.datetime,
) -> Transition:
    """Open a purchase request for every non-organizer member of a group buy.

    The group buy may still be open; the request covers whoever has joined.
    """
    if group_buy.get("organizerId") != organizer_id:
        raise ForbiddenError("Unauthorized")
    if group_buy.get("purchaseRequest"):
        raise InvalidStateError("This group buy already has a purchase request.")

    if (
        isinstance(amount, bool)
        or not isinstance(amount, (int, float))
        or not math.isfinite(amount)
        or not amount > 0
    ):
        raise ValidationError("Amount must be a positive number.")
    if deadline <= now:
        raise ValidationError("Deadline must be in the future.")

    member_ids: list[str] = []
    for uid in group_buy.get("participants", []):
        if uid != organizer_id and uid not in member_ids:
            member_ids.append(uid)
    if not member_ids:
        raise InvalidStateError("A purchase request needs at least one participant.")

    purchase_request = PurchaseRequest(
        id=f"pr_{epoch_millis(now)}",
        organizer_id=organizer_id,
        amount=amount,
        deadline=deadline,
        message=message or "",
        created_at=now,
        participants=[ParticipantPayment(user_id=uid) for uid in member_ids],
    )

    text = (
        f"🛒 Payment requested! Each participant pays ${amount:.2f} by "
        f"{deadline.date().isoformat()}. The organizer will buy the items once "
        f"everyone has paid."
    )
    if purchase_request.message:
        text += f" Note: {purchase_request.message}"
    return Transition(purchase_request, text)


def apply_action(
    purchase_request: PurchaseRequest,
    action: PurchaseAction,
    now: datetime.datetime,
) -> Transition:
    """Dispatch an action to its transition."""
    if isinstance(action, SubmitPayment):
        return submit_payment(purchase_request, action, now)
    if isinstance(action, UploadOrganizerProof):
        return upload_organizer_proof(purchase_request, action, now)
    if isinstance(action, ApprovePurchase):
        return approve_purchase(purchase_request, action, now)
    if isinstance(action, RejectPurchase):
        return reject_purchase(purchase_request, action, now)
    raise TypeError(f"Unhandled purchase action: {type(action).__name__}")


def _require_status(
    purchase_request: PurchaseRequest, expected: PurchaseRequestStatus, verb: str
) -> None:
    if purchase_request.status != expected:
        raise InvalidStateError(
            f"Cannot {verb} while the purchase request is "
            f"{purchase_request.status.value}."
        )


def _require_participant(
    purchase_request: PurchaseRequest, user_id: str
) -> ParticipantPayment:
    participant = purchase_request.participant(user_id)
    if participant is None:
        raise ForbiddenError("You are not a participant in this purchase request.")
    return participant


def _replace_participant(
    purchase_request: PurchaseRequest, updated: ParticipantPayment
) -> list[ParticipantPayment]:
    return [
        updated if p.user_id == updated.user_id else p
        for p in purchase_request.participants
    ]


def submit_payment(
    purchase_request: PurchaseRequest, action: SubmitPayment, now: datetime.datetime
) -> Transition:
    """Mark a participant as paid; the last payment unlocks the purchase."""
    _require_status(
        purchase_request, PurchaseRequestStatus.AWAITING_PAYMENTS, "submit a payment"
    )
    participant = _require_participant(purchase_request, action.user_id)
    if participant.paid:
        raise InvalidStateError("Payment has already been submitted.")

    paid = dataclasses.replace(
        participant,
        paid=True,
        status=ParticipantStatus.PAID,
        payment_proof=action.payment_proof or participant.payment_proof,
        paid_at=now,
    )
    updated = dataclasses.replace(
        purchase_request, participants=_replace_participant(purchase_request, paid)
    )

    total = len(updated.participants)
    if all(p.paid for p in updated.participants):
        updated = dataclasses.replace(
            updated, status=PurchaseRequestStatus.READY_FOR_PURCHASE
        )
        text = (
            "🎉 Everyone has paid! The organizer can now make the purchase "
            "and upload proof."
        )
    else:
        text = f"💵 A participant has paid ({updated.paid_count}/{total} paid)."
    return Transition(updated, text)


def upload_organizer_proof(
    purchase_request: PurchaseRequest,
    action: UploadOrganizerProof,
    now: datetime.datetime,
) -> Transition:
    """Attach the organizer's proof of purchase and open the approval round."""
    if action.user_id != purchase_request.organizer_id:
        raise ForbiddenError("Only organizer can upload proof of purchase")
    _require_status(
        purchase_request,
        PurchaseRequestStatus.READY_FOR_PURCHASE,
        "upload proof of purchase",
    )

    updated = dataclasses.replace(
        purchase_request,
        organizer_proof=action.proof_ref,
        organizer_proof_uploaded_at=now,
        status=PurchaseRequestStatus.AWAITING_PROOF_APPROVAL,
        participants=[
            dataclasses.replace(p, status=ParticipantStatus.AWAITING_APPROVAL)
            for p in purchase_request.participants
        ],
    )
    return Transition(
        updated,
        "🛒 Organizer has uploaded proof of purchase! Please review and approve.",
    )


def approve_purchase(
    purchase_request: PurchaseRequest, action: ApprovePurchase, now: datetime.datetime
) -> Transition:
    """Record an approval; unanimous approval completes the purchase."""
    _require_status(
        purchase_request,
        PurchaseRequestStatus.AWAITING_PROOF_APPROVAL,
        "approve the purchase",
    )
    participant = _require_participant(purchase_request, action.user_id)
    if participant.status not in (
        ParticipantStatus.AWAITING_APPROVAL,
        ParticipantStatus.REJECTED,
    ):
        raise InvalidStateError("You have already approved this purchase.")

    approved = dataclasses.replace(
        participant, status=ParticipantStatus.APPROVED, approved_at=now
    )
    updated = dataclasses.replace(
        purchase_request, participants=_replace_participant(purchase_request, approved)
    )

    if all(p.status == ParticipantStatus.APPROVED for p in updated.participants):
        updated = dataclasses.replace(updated, status=PurchaseRequestStatus.COMPLETED)
        text = "🎉 All participants have approved! Purchase completed successfully."
    else:
        text = (
            f"✅ Participant approved the purchase "
            f"({updated.approved_count}/{len(updated.participants)} approved)."
        )
    return Transition(updated, text)


def reject_purchase(
    purchase_request: PurchaseRequest, action: RejectPurchase, now: datetime.datetime
) -> Transition:
    """Record a rejection. The aggregate status stays where it is."""
    _require_status(
        purchase_request,
        PurchaseRequestStatus.AWAITING_PROOF_APPROVAL,
        "reject the purchase",
    )
    participant = _require_participant(purchase_request, action.user_id)
    if participant.status != ParticipantStatus.AWAITING_APPROVAL:
        raise InvalidStateError(
            f"Cannot reject a purchase you have already {participant.status.value}."
        )

    rejected = dataclasses.replace(
        participant, status=ParticipantStatus.REJECTED, approved_at=now
    )
    updated = dataclasses.replace(
        purchase_request, participants=_replace_participant(purchase_request, rejected)
    )
    return Transition(
        updated,
        "❌ Participant rejected the purchase proof. Organizer, please follow up "
        "in the chat.",
    )
