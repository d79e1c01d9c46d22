import logging

import pytest

import functions
from errors import NotFoundError, InvalidStateError, ValidationError, InternalError
from lifecycle import ShippingStatus, PaymentStatus
from models import Product, OrderItem, SellerOrder, OrderHistory, SellerOrderHistory


@pytest.fixture
def shopper_p(shopper, as_principal):
    return as_principal(shopper, "shopper")


@pytest.fixture
def seller_p(seller, as_principal):
    return as_principal(seller, "seller")


@pytest.fixture
def place_order(db, shopper_p):
    def _place(product, quantity=2):
        result = functions.checkout(
            db, shopper_p, singleProductId=product.id, singleProductQuantity=quantity,
        )
        return result["orderIds"][0]
    return _place


def _seller_order_id(db, order_id):
    return db.query(SellerOrder).filter(SellerOrder.shopper_order_id == order_id).one().id


def _stock(db, product):
    db.expire_all()
    return db.get(Product, product.id).stock


def _live(db):
    db.expire_all()
    return db.query(OrderItem).count(), db.query(SellerOrder).count()


def _history(db):
    return db.query(OrderHistory).all(), db.query(SellerOrderHistory).all()


# ── Payment ──────────────────────────────────────────────────

def test_payment_updates_both_sides(db, product, shopper_p, place_order):
    order_id = place_order(product)

    result = functions.simulatePayment(db, shopper_p, order_id)

    assert result["ok"] is True
    db.expire_all()
    item = db.get(OrderItem, order_id)
    assert item.payment_status is PaymentStatus.PAID
    assert item.seller_order.payment_status is PaymentStatus.PAID
    assert item.shipping_status is ShippingStatus.PENDING


def test_second_payment_is_not_found(db, product, shopper_p, place_order):
    order_id = place_order(product)
    functions.simulatePayment(db, shopper_p, order_id)

    with pytest.raises(NotFoundError) as exc:
        functions.simulatePayment(db, shopper_p, order_id)
    assert exc.value.message == "Order not found or already paid"


def test_orders_are_scoped_to_their_shopper(db, seed, product, place_order, as_principal):
    order_id = place_order(product)
    intruder = as_principal(seed.shopper(first_name="Eve"), "shopper")

    with pytest.raises(NotFoundError):
        functions.simulatePayment(db, intruder, order_id)
    with pytest.raises(NotFoundError):
        functions.requestCancellationOrRefund(db, intruder, order_id)


def test_out_of_sync_pair_is_reported(db, product, shopper_p, place_order):
    order_id = place_order(product)
    mirror = db.query(SellerOrder).filter(SellerOrder.shopper_order_id == order_id).one()
    mirror.payment_status = PaymentStatus.PAID
    db.commit()

    with pytest.raises(InternalError):
        functions.simulatePayment(db, shopper_p, order_id)


# ── Cancellation / refunds ───────────────────────────────────

def test_unpaid_cancel_restocks_and_archives(db, shopper, seller, product, shopper_p, place_order):
    order_id = place_order(product, quantity=2)
    assert _stock(db, product) == 3

    result = functions.requestCancellationOrRefund(db, shopper_p, order_id)

    assert result["message"].startswith("Order cancelled successfully")
    assert _stock(db, product) == 5
    assert _live(db) == (0, 0)

    history, seller_history = _history(db)
    assert len(history) == len(seller_history) == 1
    h, sh = history[0], seller_history[0]
    assert (h.shipping_status, h.payment_status) == (ShippingStatus.CANCELLED, PaymentStatus.PENDING)
    assert (sh.shipping_status, sh.payment_status) == (ShippingStatus.CANCELLED, PaymentStatus.PENDING)
    assert h.shopper_order_id == sh.shopper_order_id == order_id
    assert (h.quantity, h.total_amount) == (2, 20)
    assert h.product_name == "Widget"
    assert (h.seller_name, h.store_name) == ("Grace", "Grace's Goods")
    assert sh.shopper_name == "Ada Lovelace"
    assert sh.shopper_email == shopper.user.email
    assert h.delivery_date is None


def test_paid_cancel_requests_refund_then_approval_archives(db, product, shopper_p, seller_p, place_order):
    order_id = place_order(product, quantity=2)
    functions.simulatePayment(db, shopper_p, order_id)

    result = functions.requestCancellationOrRefund(db, shopper_p, order_id)

    assert result["message"] == "Refund request submitted, awaiting seller confirmation."
    db.expire_all()
    item = db.get(OrderItem, order_id)
    assert item.shipping_status is ShippingStatus.REFUND_REQUESTED
    assert item.seller_order.shipping_status is ShippingStatus.REFUND_REQUESTED
    assert _stock(db, product) == 3
    assert _history(db) == ([], [])

    functions.handleRefundRequest(db, seller_p, _seller_order_id(db, order_id), "approve")

    assert _stock(db, product) == 5
    assert _live(db) == (0, 0)
    history, seller_history = _history(db)
    assert [(h.shipping_status, h.payment_status) for h in history + seller_history] == [
        (ShippingStatus.CANCELLED, PaymentStatus.REFUNDED),
        (ShippingStatus.CANCELLED, PaymentStatus.REFUNDED),
    ]


def test_rejected_refund_goes_back_to_pending_on_both_sides(db, product, shopper_p, seller_p, place_order):
    order_id = place_order(product)
    functions.simulatePayment(db, shopper_p, order_id)
    functions.requestCancellationOrRefund(db, shopper_p, order_id)

    result = functions.handleRefundRequest(db, seller_p, _seller_order_id(db, order_id), "reject")

    assert result["message"] == "Refund request rejected."
    db.expire_all()
    item = db.get(OrderItem, order_id)
    assert (item.shipping_status, item.payment_status) == (ShippingStatus.PENDING, PaymentStatus.PAID)
    mirror = item.seller_order
    assert (mirror.shipping_status, mirror.payment_status) == (ShippingStatus.PENDING, PaymentStatus.PAID)
    assert _stock(db, product) == 3


def test_refund_decision_without_request(db, product, shopper_p, seller_p, place_order):
    order_id = place_order(product)
    functions.simulatePayment(db, shopper_p, order_id)

    with pytest.raises(InvalidStateError):
        functions.handleRefundRequest(db, seller_p, _seller_order_id(db, order_id), "approve")
    assert _stock(db, product) == 3


def test_unknown_refund_action(db, product, seller_p, place_order):
    order_id = place_order(product)
    with pytest.raises(ValidationError):
        functions.handleRefundRequest(db, seller_p, _seller_order_id(db, order_id), "later")


def test_refund_on_another_sellers_order(db, seed, product, shopper_p, place_order, as_principal):
    order_id = place_order(product)
    functions.simulatePayment(db, shopper_p, order_id)
    functions.requestCancellationOrRefund(db, shopper_p, order_id)
    rival = as_principal(seed.seller(name="Rival", store_name="Rival Store"), "seller")

    with pytest.raises(NotFoundError):
        functions.handleRefundRequest(db, rival, _seller_order_id(db, order_id), "approve")


def test_second_refund_request(db, product, shopper_p, place_order):
    order_id = place_order(product)
    functions.simulatePayment(db, shopper_p, order_id)
    functions.requestCancellationOrRefund(db, shopper_p, order_id)

    with pytest.raises(InvalidStateError):
        functions.requestCancellationOrRefund(db, shopper_p, order_id)


# ── Shipping / receipt ───────────────────────────────────────

def test_shipping_update_writes_both_records(db, product, shopper_p, seller_p, place_order):
    order_id = place_order(product)
    functions.simulatePayment(db, shopper_p, order_id)

    result = functions.updateShippingStatus(db, seller_p, _seller_order_id(db, order_id), "Shipped")

    assert result["ok"] is True
    assert result["order"]["shippingStatus"] == "Shipped"
    assert result["orderItem"]["shippingStatus"] == "Shipped"
    assert result["order"]["deliveryDate"] is None


def test_delivered_override_sets_delivery_date(db, product, seller_p, place_order):
    order_id = place_order(product)

    result = functions.updateShippingStatus(db, seller_p, _seller_order_id(db, order_id), "Delivered")

    assert result["order"]["deliveryDate"] is not None
    assert _live(db) == (1, 1)


def test_unknown_shipping_status(db, product, seller_p, place_order):
    order_id = place_order(product)
    with pytest.raises(ValidationError):
        functions.updateShippingStatus(db, seller_p, _seller_order_id(db, order_id), "Teleported")


def test_confirm_receipt_archives_as_delivered(db, product, shopper_p, seller_p, place_order):
    order_id = place_order(product)
    functions.simulatePayment(db, shopper_p, order_id)
    seller_order_id = _seller_order_id(db, order_id)
    functions.updateShippingStatus(db, seller_p, seller_order_id, "Shipped")

    functions.confirmOrderReceipt(db, shopper_p, order_id)

    assert _live(db) == (0, 0)
    assert _stock(db, product) == 3
    history, seller_history = _history(db)
    assert len(history) == len(seller_history) == 1
    for row in (history[0], seller_history[0]):
        assert (row.shipping_status, row.payment_status) == (ShippingStatus.DELIVERED, PaymentStatus.PAID)
        assert row.delivery_date is not None

    # archived orders are gone for every later operation
    with pytest.raises(NotFoundError):
        functions.updateShippingStatus(db, seller_p, seller_order_id, "Returned")
    with pytest.raises(NotFoundError):
        functions.confirmOrderReceipt(db, shopper_p, order_id)


def test_confirm_receipt_before_shipping(db, product, shopper_p, place_order):
    order_id = place_order(product)
    functions.simulatePayment(db, shopper_p, order_id)

    with pytest.raises(InvalidStateError):
        functions.confirmOrderReceipt(db, shopper_p, order_id)
    assert _live(db) == (1, 1)


# ── Stock conservation / history ─────────────────────────────

def test_stock_is_conserved_across_the_lifecycle(db, product, shopper_p, seller_p, place_order):
    cancelled = place_order(product, quantity=1)
    refunded = place_order(product, quantity=1)
    delivered = place_order(product, quantity=2)
    assert _stock(db, product) == 1

    functions.requestCancellationOrRefund(db, shopper_p, cancelled)
    functions.simulatePayment(db, shopper_p, refunded)
    functions.requestCancellationOrRefund(db, shopper_p, refunded)
    functions.handleRefundRequest(db, seller_p, _seller_order_id(db, refunded), "approve")
    functions.simulatePayment(db, shopper_p, delivered)
    functions.updateShippingStatus(db, seller_p, _seller_order_id(db, delivered), "Delivered")
    functions.confirmOrderReceipt(db, shopper_p, delivered)

    # initial stock == current stock + units in Delivered/Paid history
    assert _stock(db, product) + 2 == 5
    assert _live(db) == (0, 0)
    assert len(_history(db)[0]) == 3


def test_history_outlives_the_product(db, seller, product, shopper_p, seller_p, place_order):
    order_id = place_order(product)
    functions.requestCancellationOrRefund(db, shopper_p, order_id)

    functions.deleteProduct(db, seller_p, product.id)

    db.expire_all()
    h = db.query(OrderHistory).one()
    assert h.product_id is None
    assert h.product_name == "Widget"
    listing = functions.getOrderHistory(db, shopper_p)
    assert listing["orderHistory"][0]["productDetails"]["name"] == "Widget"
    assert listing["orderHistory"][0]["productDetails"]["productImage"] is None


def test_cancelled_override_stays_live_and_is_logged(db, product, shopper_p, seller_p, place_order, caplog):
    order_id = place_order(product)

    with caplog.at_level(logging.WARNING, logger="marketplace"):
        functions.updateShippingStatus(db, seller_p, _seller_order_id(db, order_id), "Cancelled")

    assert "live in terminal state Cancelled/Pending" in caplog.text
    assert _live(db) == (1, 1)
    assert _stock(db, product) == 3

    # the shopper's cancel settles it: restock and archive
    functions.requestCancellationOrRefund(db, shopper_p, order_id)
    assert _live(db) == (0, 0)
    assert _stock(db, product) == 5
