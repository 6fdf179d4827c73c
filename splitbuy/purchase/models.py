"""Data models for the purchase request workflow."""

from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from splitbuy.errors import ValidationError


class GroupBuyStatus(str, enum.Enum):
    """Lifecycle of a group buy."""

    OPEN = "open"
    FULL = "full"
    PURCHASING = "purchasing"
    COMPLETED = "completed"


class PurchaseRequestStatus(str, enum.Enum):
    """Lifecycle of a purchase request, in the only order it may advance."""

    AWAITING_PAYMENTS = "awaiting_payments"
    READY_FOR_PURCHASE = "ready_for_purchase"
    AWAITING_PROOF_APPROVAL = "awaiting_proof_approval"
    COMPLETED = "completed"


class ParticipantStatus(str, enum.Enum):
    """Per-participant progress through payment and approval."""

    UNPAID = "unpaid"
    PAID = "paid"
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class ParticipantPayment:
    """Payment and approval state of one participant."""

    user_id: str
    paid: bool = False
    status: ParticipantStatus = ParticipantStatus.UNPAID
    payment_proof: Optional[str] = None
    paid_at: Optional[datetime.datetime] = None
    approved_at: Optional[datetime.datetime] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the Firestore map layout."""
        return {
            "userId": self.user_id,
            "paid": self.paid,
            "status": self.status.value,
            "paymentProof": self.payment_proof,
            "paidAt": self.paid_at,
            "approvedAt": self.approved_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParticipantPayment:
        """Build from a Firestore map."""
        return cls(
            user_id=data["userId"],
            paid=bool(data.get("paid", False)),
            status=ParticipantStatus(data.get("status", ParticipantStatus.UNPAID)),
            payment_proof=data.get("paymentProof"),
            paid_at=data.get("paidAt"),
            approved_at=data.get("approvedAt"),
        )


@dataclass
class PurchaseRequest:
    """The purchase request embedded in a group buy document."""

    id: str
    organizer_id: str
    amount: float
    deadline: datetime.datetime
    participants: list[ParticipantPayment]
    message: str = ""
    status: PurchaseRequestStatus = PurchaseRequestStatus.AWAITING_PAYMENTS
    created_at: Optional[datetime.datetime] = None
    organizer_proof: Optional[str] = None
    organizer_proof_uploaded_at: Optional[datetime.datetime] = None
    reviewed_by: list[str] = field(default_factory=list)

    def participant(self, user_id: str) -> Optional[ParticipantPayment]:
        """Return the payment state for a user, if they are a participant."""
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None

    @property
    def paid_count(self) -> int:
        return sum(1 for p in self.participants if p.paid)

    @property
    def approved_count(self) -> int:
        return sum(
            1 for p in self.participants if p.status == ParticipantStatus.APPROVED
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the Firestore map layout."""
        return {
            "id": self.id,
            "organizerId": self.organizer_id,
            "amount": self.amount,
            "deadline": self.deadline,
            "message": self.message,
            "status": self.status.value,
            "createdAt": self.created_at,
            "organizerProof": self.organizer_proof,
            "organizerProofUploadedAt": self.organizer_proof_uploaded_at,
            "participants": [p.to_dict() for p in self.participants],
            "reviewedBy": list(self.reviewed_by),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PurchaseRequest:
        """Build from a Firestore map."""
        return cls(
            id=data["id"],
            organizer_id=data["organizerId"],
            amount=data["amount"],
            deadline=data["deadline"],
            message=data.get("message") or "",
            status=PurchaseRequestStatus(data["status"]),
            created_at=data.get("createdAt"),
            organizer_proof=data.get("organizerProof"),
            organizer_proof_uploaded_at=data.get("organizerProofUploadedAt"),
            participants=[
                ParticipantPayment.from_dict(p) for p in data.get("participants", [])
            ],
            reviewed_by=list(data.get("reviewedBy") or []),
        )


@dataclass(frozen=True)
class SubmitPayment:
    """A participant confirms they paid their share."""

    user_id: str
    payment_proof: Optional[str] = None


@dataclass(frozen=True)
class UploadOrganizerProof:
    """The organizer attaches proof of the completed purchase."""

    user_id: str
    proof_ref: str


@dataclass(frozen=True)
class ApprovePurchase:
    """A participant accepts the organizer's proof."""

    user_id: str


@dataclass(frozen=True)
class RejectPurchase:
    """A participant disputes the organizer's proof."""

    user_id: str


PurchaseAction = Union[
    SubmitPayment, UploadOrganizerProof, ApprovePurchase, RejectPurchase
]


def parse_action(payload: dict[str, Any]) -> PurchaseAction:
    """Build the typed action carried by a PATCH /purchase-requests body.

    Raises:
        ValidationError: If the action is unknown or misses a field it needs.
    """
    user_id = payload.get("userId")
    action = payload.get("action")
    if not user_id or not action:
        raise ValidationError("Missing required fields")

    if action == "submit_payment":
        return SubmitPayment(user_id=user_id, payment_proof=payload.get("paymentProof"))
    if action == "upload_organizer_proof":
        proof = payload.get("proofOfPurchase")
        if not proof:
            raise ValidationError("proofOfPurchase is required to upload proof.")
        return UploadOrganizerProof(user_id=user_id, proof_ref=proof)
    if action == "approve_purchase":
        return ApprovePurchase(user_id=user_id)
    if action == "reject_purchase":
        return RejectPurchase(user_id=user_id)
    raise ValidationError(f"Unknown action: {action}")
