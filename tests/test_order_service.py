"""OrderService: placement from an approved payment and kitchen transitions."""

from decimal import Decimal

import pytest

from kiosk.data.models import OrderStatus, ProductModel
from kiosk.domain.errors import (
    AlreadyPreparing,
    CustomerNotFound,
    InsufficientStock,
    InvalidStatusTransition,
    OrderNotFound,
    PaymentNotApproved,
    PaymentNotFound,
    SessionMismatch,
)
from kiosk.repos.cart_repo import CartRepo
from kiosk.repos.order_repo import OrderRepo
from kiosk.repos.payment_repo import PaymentRepo
from kiosk.services.cart_service import CartService
from kiosk.services.checkout_service import CheckoutService
from kiosk.services.order_service import OrderService, waiting_time


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def order_placed(self, order_id, order_number, customer_id=None):
        self.events.append(("placed", order_number))

    def order_ready(self, order_id, order_number, customer_id=None):
        self.events.append(("ready", order_number))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def svc(db, notifier):
    return OrderService(db, notifier=notifier)


@pytest.fixture
def pay(db, lock_service, qr_gateway):
    """Fills, confirms and pays the cart of a session; returns the payment id."""

    def _pay(session_id="s1", lines=((1, 2),), decision="approved"):
        carts = CartService(db)
        for product_id, quantity in lines:
            carts.add_item(session_id, product_id, quantity)
        total = carts.confirm(session_id)["total"]

        checkout = CheckoutService(db, lock_service=lock_service, qr_gateway=qr_gateway)
        payment_id = checkout.request_checkout(session_id, total)["payment_id"]
        checkout.confirm_payment(payment_id, decision, f"ext-{session_id}", total, "pix")
        return payment_id

    return _pay


def _stock(db, product_id):
    db.expire_all()
    return db.get(ProductModel, product_id).stock


class TestPlaceOrder:
    def test_places_order(self, svc, db, pay, notifier):
        payment_id = pay()

        result = svc.place_order("s1", payment_id)

        order = OrderRepo(db).get_order(result["order_id"])
        assert result["order_number"] == 1
        assert order.status == OrderStatus.PAYMENT_CONFIRMED
        assert order.total == Decimal("37.80")
        assert order.items[0].unit_price == Decimal("18.90")
        assert _stock(db, 1) == 48
        assert CartRepo(db).get_by_session("s1") is None
        assert PaymentRepo(db).get(payment_id).order_id == order.id
        assert notifier.events == [("placed", 1)]

    def test_retry_returns_same_order(self, svc, db, pay, notifier):
        payment_id = pay()
        first = svc.place_order("s1", payment_id)
        second = svc.place_order("s1", payment_id)

        assert first == second
        assert _stock(db, 1) == 48
        assert len(notifier.events) == 1

    def test_transaction_numbers_are_distinct(self, svc, pay):
        numbers = {svc.place_order(s, pay(s))["order_number"] for s in ("s1", "s2", "s3")}
        assert numbers == {1, 2, 3}

    def test_number_collision_is_retried(self, svc, pay, monkeypatch):
        svc.place_order("s1", pay("s1"))

        real = OrderRepo.next_transaction_number
        calls = []

        def stale_then_real(self):
            calls.append(1)
            return 1 if len(calls) == 1 else real(self)

        monkeypatch.setattr(OrderRepo, "next_transaction_number", stale_then_real)

        assert svc.place_order("s2", pay("s2"))["order_number"] == 2
        assert len(calls) == 2

    def test_stock_drift_places_nothing(self, svc, db, pay):
        payment_id = pay(lines=((1, 2), (3, 5)))
        db.get(ProductModel, 3).stock = 4
        db.commit()

        with pytest.raises(InsufficientStock) as exc:
            svc.place_order("s1", payment_id)

        assert exc.value.available == 4
        assert exc.value.requested == 5
        assert _stock(db, 1) == 50
        assert _stock(db, 3) == 4
        assert CartRepo(db).get_by_session("s1") is not None
        assert PaymentRepo(db).get(payment_id).order_id is None

    def test_unknown_payment(self, svc):
        with pytest.raises(PaymentNotFound):
            svc.place_order("s1", "missing")

    def test_session_mismatch(self, svc, pay):
        payment_id = pay()
        with pytest.raises(SessionMismatch):
            svc.place_order("someone-else", payment_id)

    def test_declined_payment(self, svc, pay):
        payment_id = pay(decision="declined")
        with pytest.raises(PaymentNotApproved):
            svc.place_order("s1", payment_id)

    def test_unknown_customer(self, svc, db, pay):
        payment_id = pay()
        with pytest.raises(CustomerNotFound):
            svc.place_order("s1", payment_id, customer_id=99)
        assert _stock(db, 1) == 50

    def test_known_customer(self, svc, db, pay):
        result = svc.place_order("s1", pay(), customer_id=1)
        assert OrderRepo(db).get_order(result["order_id"]).customer_id == 1


class TestKitchen:
    def test_full_flow_notifies_when_ready(self, svc, pay, notifier):
        order_id = svc.place_order("s1", pay())["order_id"]

        assert svc.start_preparing(order_id)["status"] == OrderStatus.IN_PREPARATION
        assert svc.mark_ready(order_id)["status"] == OrderStatus.READY_FOR_PICKUP
        assert svc.confirm_pickup(order_id)["status"] == OrderStatus.PICKED_UP
        assert notifier.events == [("placed", 1), ("ready", 1)]

    def test_already_preparing(self, svc, pay):
        order_id = svc.place_order("s1", pay())["order_id"]
        svc.start_preparing(order_id)
        with pytest.raises(AlreadyPreparing):
            svc.start_preparing(order_id)

    def test_pickup_from_preparation(self, svc, db, pay):
        order_id = svc.place_order("s1", pay())["order_id"]
        svc.start_preparing(order_id)

        with pytest.raises(InvalidStatusTransition):
            svc.confirm_pickup(order_id)
        assert svc.get_order(order_id)["status"] == OrderStatus.IN_PREPARATION

    def test_unknown_order(self, svc):
        with pytest.raises(OrderNotFound):
            svc.start_preparing("missing")

    def test_cancel_restores_stock(self, svc, db, pay):
        order_id = svc.place_order("s1", pay(lines=((1, 2), (5, 3))))["order_id"]
        assert _stock(db, 1) == 48
        assert _stock(db, 5) == 57

        view = svc.cancel(order_id)

        assert view["status"] == OrderStatus.CANCELED
        assert _stock(db, 1) == 50
        assert _stock(db, 5) == 60

    def test_cancel_twice_restores_once(self, svc, db, pay):
        order_id = svc.place_order("s1", pay())["order_id"]
        svc.cancel(order_id)
        with pytest.raises(InvalidStatusTransition):
            svc.cancel(order_id)
        assert _stock(db, 1) == 50


class TestBoard:
    def test_list_by_status(self, svc, pay):
        first = svc.place_order("s1", pay("s1"))["order_id"]
        second = svc.place_order("s2", pay("s2"))["order_id"]
        svc.start_preparing(second)

        confirmed = svc.list_orders(OrderStatus.PAYMENT_CONFIRMED.value)
        assert [o["id"] for o in confirmed] == [first]
        assert confirmed[0]["waiting_time"] == "00:00"
        assert {o["id"] for o in svc.list_orders()} == {first, second}

    def test_waiting_time_format(self):
        from datetime import datetime, timedelta, timezone

        since = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)
        assert waiting_time(since, since + timedelta(minutes=75, seconds=59)) == "01:15"
        assert waiting_time(since, since - timedelta(minutes=1)) == "00:00"


def _paid(factory, lock_service, qr_gateway, session_id):
    db = factory()
    try:
        carts = CartService(db)
        carts.add_item(session_id, 1, 2)
        total = carts.confirm(session_id)["total"]
        checkout = CheckoutService(db, lock_service=lock_service, qr_gateway=qr_gateway)
        payment_id = checkout.request_checkout(session_id, total)["payment_id"]
        checkout.confirm_payment(payment_id, "approved", f"ext-{session_id}", total, "pix")
        return payment_id
    finally:
        db.close()


class TestConcurrentPlacement:
    def test_same_max_read_settles_on_distinct_numbers(self, file_session_factory, lock_service, qr_gateway, monkeypatch):
        first_payment = _paid(file_session_factory, lock_service, qr_gateway, "s1")
        second_payment = _paid(file_session_factory, lock_service, qr_gateway, "s2")

        first_db, second_db = file_session_factory(), file_session_factory()
        second_svc = OrderService(second_db, notifier=RecordingNotifier())
        second_result = {}

        real = OrderRepo.next_transaction_number
        reads = []

        def read_then_let_other_place(repo):
            number = real(repo)
            reads.append(number)
            if len(reads) == 1:
                # the other kiosk reads the same max and commits first
                second_result.update(second_svc.place_order("s2", second_payment))
            return number

        monkeypatch.setattr(OrderRepo, "next_transaction_number", read_then_let_other_place)

        try:
            first_result = OrderService(first_db, notifier=RecordingNotifier()).place_order("s1", first_payment)
        finally:
            first_db.close()
            second_db.close()

        assert reads == [1, 1, 2]
        assert second_result["order_number"] == 1
        assert first_result["order_number"] == 2

        db = file_session_factory()
        try:
            assert db.get(ProductModel, 1).stock == 46
            assert PaymentRepo(db).get(first_payment).order_id == first_result["order_id"]
            assert PaymentRepo(db).get(second_payment).order_id == second_result["order_id"]
        finally:
            db.close()
