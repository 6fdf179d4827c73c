"""Tests for the purchase request state transitions."""

from __future__ import annotations

import dataclasses
import datetime
import unittest

import pytest

from splitbuy.errors import ForbiddenError, InvalidStateError, ValidationError
from splitbuy.purchase import machine
from splitbuy.purchase.models import (
    ApprovePurchase,
    GroupBuyStatus,
    ParticipantPayment,
    ParticipantStatus,
    PurchaseRequest,
    PurchaseRequestStatus,
    RejectPurchase,
    SubmitPayment,
    UploadOrganizerProof,
    parse_action,
)

NOW = datetime.datetime(2026, 5, 1, 12, 0, tzinfo=datetime.timezone.utc)
TOMORROW = NOW + datetime.timedelta(days=1)
ORGANIZER = "org"
MEMBERS = ["u1", "u2", "u3"]


def make_group_buy(**fields):
    data = {
        "organizerId": ORGANIZER,
        "participants": [ORGANIZER, *MEMBERS],
        "status": "full",
    }
    data.update(fields)
    return data


def make_request(status=PurchaseRequestStatus.AWAITING_PAYMENTS, **participant_fields):
    return PurchaseRequest(
        id="pr_1",
        organizer_id=ORGANIZER,
        amount=10,
        deadline=TOMORROW,
        status=status,
        participants=[
            ParticipantPayment(user_id=uid, **participant_fields) for uid in MEMBERS
        ],
    )


def pay_all(purchase_request):
    for uid in MEMBERS:
        purchase_request = machine.submit_payment(
            purchase_request, SubmitPayment(uid), NOW
        ).purchase_request
    return purchase_request


def approve(purchase_request, user_id):
    return machine.approve_purchase(
        purchase_request, ApprovePurchase(user_id), NOW
    ).purchase_request


def ready_for_approval():
    paid = pay_all(make_request())
    return machine.upload_organizer_proof(
        paid, UploadOrganizerProof(ORGANIZER, "proofs/gb1/receipt.png"), NOW
    ).purchase_request


class CreatePurchaseRequestTestCase(unittest.TestCase):
    def test_creates_unpaid_entry_per_participant(self) -> None:
        transition = machine.create_purchase_request(
            make_group_buy(), ORGANIZER, 10, TOMORROW, "Pick up Friday", NOW
        )
        pr = transition.purchase_request

        self.assertEqual(pr.status, PurchaseRequestStatus.AWAITING_PAYMENTS)
        self.assertEqual([p.user_id for p in pr.participants], MEMBERS)
        for p in pr.participants:
            self.assertFalse(p.paid)
            self.assertEqual(p.status, ParticipantStatus.UNPAID)
        self.assertEqual(pr.id, f"pr_{int(NOW.timestamp() * 1000)}")
        self.assertEqual(transition.group_buy_status, GroupBuyStatus.PURCHASING)
        self.assertIn("$10.00", transition.message)
        self.assertIn("Pick up Friday", transition.message)

    def test_organizer_is_not_a_paying_participant(self) -> None:
        pr = machine.create_purchase_request(
            make_group_buy(), ORGANIZER, 10, TOMORROW, "", NOW
        ).purchase_request
        self.assertIsNone(pr.participant(ORGANIZER))

    def test_only_organizer_can_create(self) -> None:
        with self.assertRaises(ForbiddenError):
            machine.create_purchase_request(
                make_group_buy(), "u1", 10, TOMORROW, "", NOW
            )

    def test_rejects_non_positive_amount(self) -> None:
        for amount in (0, -5, "10", True, float("nan"), float("inf"), float("-inf")):
            with self.subTest(amount=amount), self.assertRaises(ValidationError):
                machine.create_purchase_request(
                    make_group_buy(), ORGANIZER, amount, TOMORROW, "", NOW
                )

    def test_rejects_past_deadline(self) -> None:
        with self.assertRaises(ValidationError):
            machine.create_purchase_request(
                make_group_buy(),
                ORGANIZER,
                10,
                NOW - datetime.timedelta(hours=1),
                "",
                NOW,
            )

    def test_rejects_second_request(self) -> None:
        group_buy = make_group_buy(purchaseRequest=make_request().to_dict())
        with self.assertRaises(InvalidStateError):
            machine.create_purchase_request(group_buy, ORGANIZER, 10, TOMORROW, "", NOW)

    def test_rejects_group_without_participants(self) -> None:
        with self.assertRaises(InvalidStateError):
            machine.create_purchase_request(
                make_group_buy(participants=[ORGANIZER]),
                ORGANIZER,
                10,
                TOMORROW,
                "",
                NOW,
            )


class SubmitPaymentTestCase(unittest.TestCase):
    def test_partial_payments_keep_collecting(self) -> None:
        pr = make_request()
        for uid in MEMBERS[:2]:
            pr = machine.submit_payment(pr, SubmitPayment(uid), NOW).purchase_request

        self.assertEqual(pr.status, PurchaseRequestStatus.AWAITING_PAYMENTS)
        self.assertEqual(pr.paid_count, 2)
        payer = pr.participant("u1")
        self.assertTrue(payer.paid)
        self.assertEqual(payer.status, ParticipantStatus.PAID)
        self.assertEqual(payer.paid_at, NOW)

    def test_last_payment_unlocks_purchase(self) -> None:
        pr = make_request()
        for uid in MEMBERS[:2]:
            pr = machine.submit_payment(pr, SubmitPayment(uid), NOW).purchase_request

        transition = machine.submit_payment(pr, SubmitPayment("u3"), NOW)

        self.assertEqual(
            transition.purchase_request.status, PurchaseRequestStatus.READY_FOR_PURCHASE
        )
        self.assertIn("Everyone has paid", transition.message)

    def test_progress_message_reports_paid_count(self) -> None:
        transition = machine.submit_payment(make_request(), SubmitPayment("u2"), NOW)
        self.assertIn("1/3", transition.message)

    def test_double_payment_is_rejected(self) -> None:
        pr = machine.submit_payment(
            make_request(), SubmitPayment("u1"), NOW
        ).purchase_request
        with self.assertRaises(InvalidStateError):
            machine.submit_payment(pr, SubmitPayment("u1"), NOW)

    def test_payment_after_collection_is_rejected(self) -> None:
        with self.assertRaises(InvalidStateError):
            machine.submit_payment(pay_all(make_request()), SubmitPayment("u1"), NOW)

    def test_non_participant_cannot_pay(self) -> None:
        with self.assertRaises(ForbiddenError):
            machine.submit_payment(make_request(), SubmitPayment("stranger"), NOW)

    def test_payment_proof_is_kept(self) -> None:
        pr = machine.submit_payment(
            make_request(), SubmitPayment("u1", payment_proof="receipts/u1.png"), NOW
        ).purchase_request
        self.assertEqual(pr.participant("u1").payment_proof, "receipts/u1.png")

    def test_input_request_is_not_mutated(self) -> None:
        pr = make_request()
        machine.submit_payment(pr, SubmitPayment("u1"), NOW)
        self.assertFalse(pr.participant("u1").paid)


class UploadOrganizerProofTestCase(unittest.TestCase):
    def test_upload_opens_approval_round(self) -> None:
        paid = pay_all(make_request())
        transition = machine.upload_organizer_proof(
            paid, UploadOrganizerProof(ORGANIZER, "proofs/gb1/receipt.png"), NOW
        )
        pr = transition.purchase_request

        self.assertEqual(pr.status, PurchaseRequestStatus.AWAITING_PROOF_APPROVAL)
        self.assertEqual(pr.organizer_proof, "proofs/gb1/receipt.png")
        self.assertEqual(pr.organizer_proof_uploaded_at, NOW)
        for p in pr.participants:
            self.assertEqual(p.status, ParticipantStatus.AWAITING_APPROVAL)
            self.assertTrue(p.paid)
            self.assertEqual(p.paid_at, NOW)

    def test_upload_before_everyone_paid_is_rejected(self) -> None:
        with self.assertRaises(InvalidStateError):
            machine.upload_organizer_proof(
                make_request(), UploadOrganizerProof(ORGANIZER, "proof.png"), NOW
            )

    def test_upload_after_proof_or_completion_is_rejected(self) -> None:
        for status in (
            PurchaseRequestStatus.AWAITING_PROOF_APPROVAL,
            PurchaseRequestStatus.COMPLETED,
        ):
            pr = dataclasses.replace(pay_all(make_request()), status=status)
            with self.subTest(status=status), self.assertRaises(InvalidStateError):
                machine.upload_organizer_proof(
                    pr, UploadOrganizerProof(ORGANIZER, "proof.png"), NOW
                )

    def test_only_organizer_can_upload(self) -> None:
        with self.assertRaises(ForbiddenError):
            machine.upload_organizer_proof(
                pay_all(make_request()), UploadOrganizerProof("u1", "proof.png"), NOW
            )


class ApprovalTestCase(unittest.TestCase):
    def test_unanimous_approval_completes(self) -> None:
        pr = ready_for_approval()
        transition = None
        for uid in MEMBERS:
            transition = machine.approve_purchase(pr, ApprovePurchase(uid), NOW)
            pr = transition.purchase_request

        self.assertEqual(pr.status, PurchaseRequestStatus.COMPLETED)
        self.assertEqual(transition.group_buy_status, GroupBuyStatus.COMPLETED)
        self.assertIn("Purchase completed", transition.message)
        for p in pr.participants:
            self.assertEqual(p.status, ParticipantStatus.APPROVED)
            self.assertEqual(p.approved_at, NOW)

    def test_partial_approval_keeps_waiting(self) -> None:
        pr = ready_for_approval()
        for uid in MEMBERS[:2]:
            pr = approve(pr, uid)
        self.assertEqual(pr.status, PurchaseRequestStatus.AWAITING_PROOF_APPROVAL)

    def test_rejection_blocks_completion(self) -> None:
        pr = ready_for_approval()
        pr = machine.reject_purchase(pr, RejectPurchase("u1"), NOW).purchase_request
        for uid in MEMBERS[1:]:
            pr = approve(pr, uid)

        self.assertEqual(pr.status, PurchaseRequestStatus.AWAITING_PROOF_APPROVAL)
        self.assertEqual(pr.participant("u1").status, ParticipantStatus.REJECTED)
        self.assertEqual(pr.participant("u1").approved_at, NOW)

    def test_rejecting_participant_can_approve_later(self) -> None:
        pr = ready_for_approval()
        pr = machine.reject_purchase(pr, RejectPurchase("u1"), NOW).purchase_request
        for uid in MEMBERS:
            pr = approve(pr, uid)
        self.assertEqual(pr.status, PurchaseRequestStatus.COMPLETED)

    def test_repeated_responses_are_rejected(self) -> None:
        pr = machine.approve_purchase(
            ready_for_approval(), ApprovePurchase("u1"), NOW
        ).purchase_request
        with self.assertRaises(InvalidStateError):
            machine.approve_purchase(pr, ApprovePurchase("u1"), NOW)
        with self.assertRaises(InvalidStateError):
            machine.reject_purchase(pr, RejectPurchase("u1"), NOW)

        pr = machine.reject_purchase(pr, RejectPurchase("u2"), NOW).purchase_request
        with self.assertRaises(InvalidStateError):
            machine.reject_purchase(pr, RejectPurchase("u2"), NOW)

    def test_approval_before_proof_is_rejected(self) -> None:
        with self.assertRaises(InvalidStateError):
            machine.approve_purchase(
                pay_all(make_request()), ApprovePurchase("u1"), NOW
            )
        with self.assertRaises(InvalidStateError):
            machine.reject_purchase(make_request(), RejectPurchase("u1"), NOW)

    def test_organizer_cannot_approve(self) -> None:
        with self.assertRaises(ForbiddenError):
            machine.approve_purchase(
                ready_for_approval(), ApprovePurchase(ORGANIZER), NOW
            )


class DispatchTestCase(unittest.TestCase):
    def test_apply_action_routes_each_action(self) -> None:
        transition = machine.apply_action(make_request(), SubmitPayment("u1"), NOW)
        pr = transition.purchase_request
        self.assertTrue(pr.participant("u1").paid)

    def test_apply_action_rejects_unknown_types(self) -> None:
        with self.assertRaises(TypeError):
            action = object()
            machine.apply_action(make_request(), action, NOW)  # type: ignore[arg-type]

    def test_status_order_is_monotonic(self) -> None:
        order = list(PurchaseRequestStatus)
        seen = [make_request().status]
        pr = pay_all(make_request())
        seen.append(pr.status)
        pr = machine.upload_organizer_proof(
            pr, UploadOrganizerProof(ORGANIZER, "proof.png"), NOW
        ).purchase_request
        seen.append(pr.status)
        for uid in MEMBERS:
            pr = approve(pr, uid)
        seen.append(pr.status)
        self.assertEqual(seen, order)


class ParseActionTestCase(unittest.TestCase):
    def test_parses_each_action(self) -> None:
        self.assertEqual(
            parse_action({"userId": "u1", "action": "submit_payment"}),
            SubmitPayment("u1"),
        )
        self.assertEqual(
            parse_action(
                {
                    "userId": ORGANIZER,
                    "action": "upload_organizer_proof",
                    "proofOfPurchase": "proof.png",
                }
            ),
            UploadOrganizerProof(ORGANIZER, "proof.png"),
        )
        self.assertEqual(
            parse_action({"userId": "u1", "action": "approve_purchase"}),
            ApprovePurchase("u1"),
        )
        self.assertEqual(
            parse_action({"userId": "u1", "action": "reject_purchase"}),
            RejectPurchase("u1"),
        )

    def test_unknown_action(self) -> None:
        with self.assertRaises(ValidationError):
            parse_action({"userId": "u1", "action": "refund"})

    def test_proof_upload_needs_a_reference(self) -> None:
        with self.assertRaises(ValidationError):
            parse_action({"userId": ORGANIZER, "action": "upload_organizer_proof"})

    def test_round_trip_through_firestore_layout(self) -> None:
        pr = ready_for_approval()
        self.assertEqual(PurchaseRequest.from_dict(pr.to_dict()), pr)


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (PurchaseRequestStatus.AWAITING_PAYMENTS, GroupBuyStatus.PURCHASING),
        (PurchaseRequestStatus.READY_FOR_PURCHASE, GroupBuyStatus.PURCHASING),
        (PurchaseRequestStatus.AWAITING_PROOF_APPROVAL, GroupBuyStatus.PURCHASING),
        (PurchaseRequestStatus.COMPLETED, GroupBuyStatus.COMPLETED),
    ],
)
def test_group_buy_status_follows_request(status, expected):
    assert machine.derive_group_buy_status(make_request(status)) == expected


def test_transition_carries_derived_status():
    transition = machine.submit_payment(make_request(), SubmitPayment("u1"), NOW)
    assert transition.group_buy_status == GroupBuyStatus.PURCHASING


def test_create_keeps_deadline_and_amount():
    group_buy = make_group_buy()
    deadline = datetime.datetime(2026, 5, 2, tzinfo=datetime.timezone.utc)
    pr = machine.create_purchase_request(
        group_buy, ORGANIZER, 5, deadline, "", NOW
    ).purchase_request
    assert pr.deadline == deadline
    assert pr.amount == 5
