"""Unit tests for PaymentService with the Stripe SDK patched out."""

from types import SimpleNamespace

import pytest
import stripe

from taskhub.core.exceptions import (
    AuthorizationError, PaymentProviderError, ValidationError,
)
from taskhub.models.notification import Notification, NotificationType
from taskhub.models.task import TaskStatus
from taskhub.models.transaction import Transaction, TransactionStatus, TransactionType
from taskhub.services.payment_service import PaymentService, platform_fee, to_cents


class FakeStripe:
    """Records calls made to the patched Stripe resources."""

    def __init__(self):
        self.calls = []

    def payment_intent(self, **kwargs):
        self.calls.append(("PaymentIntent.create", kwargs))
        return SimpleNamespace(id="pi_123", client_secret="pi_123_secret")

    def transfer(self, **kwargs):
        self.calls.append(("Transfer.create", kwargs))
        return SimpleNamespace(id="tr_456")

    def account(self, **kwargs):
        self.calls.append(("Account.create", kwargs))
        return SimpleNamespace(id="acct_789")

    def account_link(self, **kwargs):
        self.calls.append(("AccountLink.create", kwargs))
        return SimpleNamespace(url="https://connect.stripe.test/onboard")


@pytest.fixture
def fake_stripe(monkeypatch):
    fake = FakeStripe()
    monkeypatch.setattr(stripe.PaymentIntent, "create", fake.payment_intent)
    monkeypatch.setattr(stripe.Transfer, "create", fake.transfer)
    monkeypatch.setattr(stripe.Account, "create", fake.account)
    monkeypatch.setattr(stripe.AccountLink, "create", fake.account_link)
    return fake


def _payout(db, task, freelancer, amount=180.0) -> Transaction:
    tx = Transaction(
        task_id=task.id, user_id=freelancer.id, amount=amount,
        type=TransactionType.PAYOUT, status=TransactionStatus.PENDING,
    )
    db.add(tx)
    db.commit()
    db.refresh(tx)
    return tx


class TestMoneyHelpers:

    @pytest.mark.unit
    def test_to_cents_rounds(self):
        assert to_cents(19.99) == 1999
        assert to_cents(0.1 + 0.2) == 30

    @pytest.mark.unit
    def test_platform_fee_is_ten_percent(self):
        assert platform_fee(200) == 20
        assert platform_fee(33.33) == 3.33


class TestPaymentIntent:

    @pytest.mark.unit
    def test_records_pending_escrow_funding(self, db, fake_stripe, make_task, client_user):
        task = make_task(budget=500)

        result = PaymentService.create_payment_intent(db, client_user, task.id, 200)

        assert result["client_secret"] == "pi_123_secret"
        tx = db.query(Transaction).filter(Transaction.id == result["transaction_id"]).one()
        assert tx.type == TransactionType.ESCROW_FUNDING
        assert tx.status == TransactionStatus.PENDING
        assert tx.stripe_reference == "pi_123"
        name, kwargs = fake_stripe.calls[0]
        assert name == "PaymentIntent.create"
        assert kwargs["amount"] == 20000

    @pytest.mark.unit
    def test_amount_over_budget_rejected(self, db, fake_stripe, make_task, client_user):
        task = make_task(budget=100)
        with pytest.raises(ValidationError):
            PaymentService.create_payment_intent(db, client_user, task.id, 150)
        assert fake_stripe.calls == []

    @pytest.mark.unit
    def test_closed_task_cannot_be_funded(self, db, fake_stripe, make_task, client_user):
        task = make_task(status=TaskStatus.COMPLETED)
        with pytest.raises(ValidationError):
            PaymentService.create_payment_intent(db, client_user, task.id, 50)

    @pytest.mark.unit
    def test_stripe_failure_becomes_provider_error(self, db, monkeypatch, make_task, client_user):
        def boom(**kwargs):
            raise stripe.StripeError("card network down")

        monkeypatch.setattr(stripe.PaymentIntent, "create", boom)
        task = make_task()
        with pytest.raises(PaymentProviderError):
            PaymentService.create_payment_intent(db, client_user, task.id, 50)
        assert db.query(Transaction).count() == 0


class TestPayouts:

    @pytest.mark.unit
    def test_payout_deferred_without_connected_account(self, db, fake_stripe, make_task, freelancer_a):
        tx = _payout(db, make_task(), freelancer_a)

        result = PaymentService.execute_payout(db, tx.id)

        assert result.status == TransactionStatus.PENDING
        assert fake_stripe.calls == []

    @pytest.mark.unit
    def test_payout_transfers_to_connected_account(self, db, fake_stripe, make_task, freelancer_a):
        freelancer_a.stripe_account_id = "acct_live"
        freelancer_a.stripe_account_completed = True
        db.commit()
        tx = _payout(db, make_task(), freelancer_a)

        result = PaymentService.execute_payout(db, tx.id)

        assert result.status == TransactionStatus.SUCCEEDED
        assert result.stripe_reference == "tr_456"
        name, kwargs = fake_stripe.calls[0]
        assert (name, kwargs["amount"], kwargs["destination"]) == ("Transfer.create", 18000, "acct_live")

    @pytest.mark.unit
    def test_settled_payout_is_not_sent_again(self, db, fake_stripe, make_task, freelancer_a):
        freelancer_a.stripe_account_id = "acct_live"
        freelancer_a.stripe_account_completed = True
        db.commit()
        tx = _payout(db, make_task(), freelancer_a)

        PaymentService.execute_payout(db, tx.id)
        PaymentService.execute_payout(db, tx.id)

        assert len(fake_stripe.calls) == 1

    @pytest.mark.unit
    def test_transfer_failure_marks_payout_failed(self, db, monkeypatch, make_task, freelancer_a):
        def boom(**kwargs):
            raise stripe.StripeError("insufficient platform balance")

        monkeypatch.setattr(stripe.Transfer, "create", boom)
        freelancer_a.stripe_account_id = "acct_live"
        freelancer_a.stripe_account_completed = True
        db.commit()
        tx = _payout(db, make_task(), freelancer_a)

        assert PaymentService.execute_payout(db, tx.id).status == TransactionStatus.FAILED


class TestConnectOnboarding:

    @pytest.mark.unit
    def test_creates_account_once(self, db, fake_stripe, freelancer_a):
        first = PaymentService.create_connect_account(db, freelancer_a)
        second = PaymentService.create_connect_account(db, freelancer_a)

        assert first["stripe_account_id"] == second["stripe_account_id"] == "acct_789"
        assert first["onboarding_url"].startswith("https://")
        assert [c[0] for c in fake_stripe.calls].count("Account.create") == 1

    @pytest.mark.unit
    def test_clients_cannot_onboard(self, db, fake_stripe, client_user):
        with pytest.raises(AuthorizationError):
            PaymentService.create_connect_account(db, client_user)


class TestWebhooks:

    @pytest.mark.unit
    def test_bad_signature_is_a_validation_error(self, monkeypatch):
        def reject(payload, sig_header, secret):
            raise stripe.SignatureVerificationError("bad signature", sig_header)

        monkeypatch.setattr(stripe.Webhook, "construct_event", reject)
        with pytest.raises(ValidationError):
            PaymentService.construct_event(b"{}", "t=1,v1=bad")

    @pytest.mark.unit
    def test_payment_succeeded_settles_funding(self, db, outbox, fake_stripe, make_task, client_user):
        task = make_task()
        result = PaymentService.create_payment_intent(db, client_user, task.id, 200)
        event = {"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_123"}}}

        summary = PaymentService.handle_event(db, outbox, event)

        tx = db.query(Transaction).filter(Transaction.id == result["transaction_id"]).one()
        assert tx.status == TransactionStatus.SUCCEEDED
        assert "1 transaction" in summary
        types = [n.type for n in db.query(Notification).filter(Notification.user_id == client_user.id)]
        assert types == [NotificationType.PAYMENT_SUCCEEDED]

        # Redelivery of the same event changes nothing
        PaymentService.handle_event(db, outbox, event)
        assert db.query(Notification).filter(Notification.user_id == client_user.id).count() == 1

    @pytest.mark.unit
    def test_payment_failed_marks_failed(self, db, outbox, fake_stripe, make_task, client_user):
        task = make_task()
        result = PaymentService.create_payment_intent(db, client_user, task.id, 200)

        PaymentService.handle_event(
            db, outbox, {"type": "payment_intent.payment_failed", "data": {"object": {"id": "pi_123"}}},
        )

        tx = db.query(Transaction).filter(Transaction.id == result["transaction_id"]).one()
        assert tx.status == TransactionStatus.FAILED

    @pytest.mark.unit
    def test_account_updated_completes_onboarding(self, db, outbox, freelancer_a):
        freelancer_a.stripe_account_id = "acct_new"
        db.commit()

        PaymentService.handle_event(db, outbox, {
            "type": "account.updated",
            "data": {"object": {"id": "acct_new", "charges_enabled": True, "payouts_enabled": True}},
        })

        db.refresh(freelancer_a)
        assert freelancer_a.stripe_account_completed is True

    @pytest.mark.unit
    def test_unknown_events_are_ignored(self, db, outbox):
        assert PaymentService.handle_event(db, outbox, {"type": "charge.refunded", "data": {"object": {}}}) == "ignored"
