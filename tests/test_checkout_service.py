"""CheckoutService: QR code requests, webhook confirmation and timers."""

from datetime import timedelta
from decimal import Decimal

import pytest

from kiosk.data.models import PaymentStatus
from kiosk.domain.errors import (
    AmountMismatch,
    CartNotConfirmed,
    CartNotFound,
    CheckoutAmountMismatch,
    ConcurrencyConflict,
    PaymentAlreadyResolved,
    PaymentGatewayError,
    PaymentNotFound,
)
from kiosk.repos.payment_repo import PaymentRepo
from kiosk.services.cart_service import CartService
from kiosk.services.checkout_service import CheckoutService
from kiosk.utils.clock import utcnow


class BrokenGateway:
    def generate(self, payment_id, amount):
        raise PaymentGatewayError()


@pytest.fixture
def svc(db, lock_service, qr_gateway):
    return CheckoutService(db, lock_service=lock_service, qr_gateway=qr_gateway)


@pytest.fixture
def confirmed_cart(db):
    carts = CartService(db)
    carts.add_item("s1", 1, 2)
    carts.confirm("s1")
    return "s1"


class TestRequestCheckout:
    def test_issues_qr_code(self, svc, confirmed_cart):
        result = svc.request_checkout("s1", Decimal("37.80"))

        assert result["qr_url"].endswith(f"/v1/payments/qr/{result['payment_id']}")
        assert result["qr_text"] == f"pix-qr-code-payload-for-{result['payment_id']}-37.80"
        assert result["expires_at"] is not None

    def test_requires_cart(self, svc):
        with pytest.raises(CartNotFound):
            svc.request_checkout("nobody", Decimal("10"))

    def test_requires_confirmed_cart(self, svc, db):
        CartService(db).add_item("s1", 1, 1)
        with pytest.raises(CartNotConfirmed):
            svc.request_checkout("s1", Decimal("18.90"))

    def test_pending_payment_is_reused(self, svc, confirmed_cart):
        first = svc.request_checkout("s1", Decimal("37.80"))
        second = svc.request_checkout("s1", Decimal("37.80"))
        assert first["payment_id"] == second["payment_id"]

    def test_expired_payment_is_replaced(self, svc, db, confirmed_cart):
        first = svc.request_checkout("s1", Decimal("37.80"))
        old = PaymentRepo(db).get(first["payment_id"])
        old.expires_at = utcnow() - timedelta(seconds=1)
        db.commit()

        second = svc.request_checkout("s1", Decimal("37.80"))

        assert second["payment_id"] != first["payment_id"]
        assert PaymentRepo(db).get(first["payment_id"]).status == PaymentStatus.EXPIRED

    @pytest.mark.parametrize("decision", ["approved", "declined"])
    def test_resolved_payment_blocks_new_checkout(self, svc, confirmed_cart, decision):
        first = svc.request_checkout("s1", Decimal("37.80"))
        svc.confirm_payment(first["payment_id"], decision, "ext-1", Decimal("37.80"), "pix")

        with pytest.raises(PaymentAlreadyResolved):
            svc.request_checkout("s1", Decimal("37.80"))

    def test_amount_mismatch_accepted_by_default(self, svc, db, confirmed_cart):
        result = svc.request_checkout("s1", Decimal("30.00"))
        assert PaymentRepo(db).get(result["payment_id"]).amount == Decimal("30.00")

    def test_amount_mismatch_rejected_when_strict(self, db, lock_service, qr_gateway, confirmed_cart):
        strict = CheckoutService(db, lock_service=lock_service, qr_gateway=qr_gateway, strict_amount=True)
        with pytest.raises(CheckoutAmountMismatch):
            strict.request_checkout("s1", Decimal("30.00"))
        assert PaymentRepo(db).get_latest_by_session("s1") is None

    def test_gateway_failure_leaves_no_payment(self, db, lock_service, confirmed_cart):
        svc = CheckoutService(db, lock_service=lock_service, qr_gateway=BrokenGateway())
        with pytest.raises(PaymentGatewayError):
            svc.request_checkout("s1", Decimal("37.80"))
        assert PaymentRepo(db).get_latest_by_session("s1") is None

    def test_concurrent_checkout_of_same_session(self, svc, lock_service, confirmed_cart):
        assert lock_service.acquire_session_lock("s1", "other-request")
        with pytest.raises(ConcurrencyConflict):
            svc.request_checkout("s1", Decimal("37.80"))

    def test_lock_released_after_checkout(self, svc, redis_client, confirmed_cart):
        svc.request_checkout("s1", Decimal("37.80"))
        assert redis_client.store == {}


class TestConfirmPayment:
    def test_approve(self, svc, confirmed_cart):
        payment_id = svc.request_checkout("s1", Decimal("37.80"))["payment_id"]
        assert svc.confirm_payment(payment_id, "approved", "ext-1", Decimal("37.8"), "pix") is True

    def test_decline(self, svc, confirmed_cart):
        payment_id = svc.request_checkout("s1", Decimal("37.80"))["payment_id"]
        assert svc.confirm_payment(payment_id, "declined", "ext-1", Decimal("37.80"), "pix") is False

    def test_amount_must_match_exactly(self, svc, db, confirmed_cart):
        payment_id = svc.request_checkout("s1", Decimal("37.80"))["payment_id"]
        with pytest.raises(AmountMismatch):
            svc.confirm_payment(payment_id, "approved", "ext-1", Decimal("37.79"), "pix")
        assert PaymentRepo(db).get(payment_id).status == PaymentStatus.PENDING

    def test_unknown_payment(self, svc):
        with pytest.raises(PaymentNotFound):
            svc.confirm_payment("missing", "approved", "ext-1", Decimal("1"), "pix")


class TestTimerAndSweep:
    def test_unknown_payment_reads_expired(self, svc):
        assert svc.check_timer("missing") == {"status": "expired", "seconds_remaining": 0}

    def test_active_timer(self, svc, confirmed_cart):
        payment_id = svc.request_checkout("s1", Decimal("37.80"))["payment_id"]
        timer = svc.check_timer(payment_id)
        assert timer["status"] == "active"
        assert 0 < timer["seconds_remaining"] <= 300

    def test_sweep_expires_stale_pending(self, svc, db, confirmed_cart):
        payment_id = svc.request_checkout("s1", Decimal("37.80"))["payment_id"]

        assert svc.expire_stale_payments() == 0
        assert svc.expire_stale_payments(utcnow() + timedelta(seconds=301)) == 1
        assert PaymentRepo(db).get(payment_id).status == PaymentStatus.EXPIRED


def _stale_pending_payment(factory, lock_service, qr_gateway):
    """Confirmed cart with a pending payment whose QR code already ran out."""
    db = factory()
    try:
        carts = CartService(db)
        carts.add_item("s1", 1, 2)
        carts.confirm("s1")
        checkout = CheckoutService(db, lock_service=lock_service, qr_gateway=qr_gateway)
        payment_id = checkout.request_checkout("s1", Decimal("37.80"))["payment_id"]
        PaymentRepo(db).get(payment_id).expires_at = utcnow() - timedelta(seconds=5)
        db.commit()
        return payment_id
    finally:
        db.close()


def _status(factory, payment_id):
    db = factory()
    try:
        return PaymentRepo(db).get(payment_id).status
    finally:
        db.close()


class TestWebhookRacingExpiry:
    """The webhook commits between the expiry read and the expiry write."""

    @pytest.fixture
    def sessions(self, file_session_factory):
        expiring, webhook = file_session_factory(), file_session_factory()
        yield expiring, webhook
        expiring.close()
        webhook.close()

    def test_sweep_keeps_approved_payment(self, file_session_factory, sessions, lock_service, qr_gateway, monkeypatch):
        payment_id = _stale_pending_payment(file_session_factory, lock_service, qr_gateway)
        expiring, webhook = sessions
        webhook_svc = CheckoutService(webhook, lock_service=lock_service, qr_gateway=qr_gateway)

        real = PaymentRepo.list_stale_pending

        def approve_after_read(repo, now):
            rows = real(repo, now)
            assert webhook_svc.confirm_payment(payment_id, "approved", "ext-1", Decimal("37.80"), "pix") is True
            return rows

        monkeypatch.setattr(PaymentRepo, "list_stale_pending", approve_after_read)

        sweeper = CheckoutService(expiring, lock_service=lock_service, qr_gateway=qr_gateway)
        assert sweeper.expire_stale_payments() == 0
        assert _status(file_session_factory, payment_id) == PaymentStatus.APPROVED

    def test_checkout_keeps_approved_payment(self, file_session_factory, sessions, lock_service, qr_gateway, monkeypatch):
        payment_id = _stale_pending_payment(file_session_factory, lock_service, qr_gateway)
        expiring, webhook = sessions
        webhook_svc = CheckoutService(webhook, lock_service=lock_service, qr_gateway=qr_gateway)

        real = PaymentRepo.get_latest_by_session

        def approve_after_read(repo, session_id):
            latest = real(repo, session_id)
            webhook_svc.confirm_payment(payment_id, "approved", "ext-1", Decimal("37.80"), "pix")
            return latest

        monkeypatch.setattr(PaymentRepo, "get_latest_by_session", approve_after_read)

        checkout = CheckoutService(expiring, lock_service=lock_service, qr_gateway=qr_gateway)
        with pytest.raises(PaymentAlreadyResolved):
            checkout.request_checkout("s1", Decimal("37.80"))
        monkeypatch.undo()

        assert _status(file_session_factory, payment_id) == PaymentStatus.APPROVED
        db = file_session_factory()
        try:
            assert PaymentRepo(db).get_latest_by_session("s1").id == payment_id
        finally:
            db.close()
