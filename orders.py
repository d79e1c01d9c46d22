# ============================================================
# orders.py — Order lifecycle operations
# ============================================================
# Each function performs one lifecycle step on a live order pair:
#   1. load + lock the pair (and the product when stock moves)
#   2. compute the next state with the pure lifecycle transitions
#   3. resolve everything archival needs BEFORE mutating anything
#   4. apply the state to both sides, move stock, archive if terminal
#
# Shopper operations address an order by OrderItem id, seller
# operations by SellerOrder id. No commits here; the caller's
# unit_of_work owns the transaction.
# ============================================================

from sqlalchemy.orm import Session as DBSession

from config import logger
import lifecycle
from archive import resolve_archive_context, archive_order_pair
from errors import NotFoundError
from ledger import OrderPair, lock_product, restore_stock, utcnow
from lifecycle import CancelOutcome, PaymentStatus, RefundAction, ShippingStatus
from models import Shopper, Seller


def _lock_order_product(db: DBSession, pair: OrderPair):
    try:
        return lock_product(db, pair.order_item.product_id)
    except NotFoundError:
        raise NotFoundError("Product not found")


# ============================================================
# SHOPPER
# ============================================================

def simulate_payment(db: DBSession, shopper: Shopper, order_id: int) -> OrderPair:
    """Mark an unpaid order as Paid on both sides."""
    pair = OrderPair.for_shopper(
        db, order_id, shopper.id,
        payment_status=PaymentStatus.PENDING,
        not_found="Order not found or already paid",
    )
    pair.apply(lifecycle.pay(pair.state))
    logger.info(f"[orders.payment] order {order_id} paid by shopper {shopper.id}")
    return pair


def request_cancellation_or_refund(db: DBSession, shopper: Shopper, order_id: int) -> CancelOutcome:
    """
    Unpaid order: cancel now, restore stock, archive.
    Paid order: flag a refund request for the seller.
    """
    pair = OrderPair.for_shopper(db, order_id, shopper.id)
    product = _lock_order_product(db, pair)

    new_state, outcome = lifecycle.cancel_or_request_refund(pair.state)

    if outcome is CancelOutcome.CANCELLED:
        context = resolve_archive_context(db, pair, product=product)
        quantity = pair.order_item.quantity
        restore_stock(product, quantity)
        pair.apply(new_state)
        archive_order_pair(db, pair, context)
        logger.info(
            f"[orders.cancel] order {order_id} cancelled, "
            f"{quantity} unit(s) of product {product.id} restocked"
        )
    else:
        pair.apply(new_state)
        logger.info(f"[orders.cancel] refund requested for order {order_id}")

    return outcome


def confirm_order_receipt(db: DBSession, shopper: Shopper, order_id: int):
    """Shopper confirms delivery; the order is settled and archived."""
    pair = OrderPair.for_shopper(db, order_id, shopper.id)
    product = _lock_order_product(db, pair)

    new_state = lifecycle.confirm_receipt(pair.state)
    context = resolve_archive_context(db, pair, product=product)

    pair.apply(new_state)
    history, seller_history = archive_order_pair(db, pair, context)
    logger.info(f"[orders.confirm] order {order_id} delivered and archived")
    return history, seller_history


# ============================================================
# SELLER
# ============================================================

def handle_refund_request(db: DBSession, seller: Seller, seller_order_id: int, action) -> RefundAction:
    action = lifecycle.parse_refund_action(action)
    pair = OrderPair.for_seller(db, seller_order_id, seller.id)

    if action is RefundAction.APPROVE:
        product = _lock_order_product(db, pair)
        new_state = lifecycle.approve_refund(pair.state)
        context = resolve_archive_context(db, pair, product=product)

        restore_stock(product, pair.order_item.quantity)
        pair.apply(new_state)
        archive_order_pair(db, pair, context)
        logger.info(f"[orders.refund] seller {seller.id} approved refund for order {seller_order_id}")
    else:
        pair.apply(lifecycle.reject_refund(pair.state))
        logger.info(f"[orders.refund] seller {seller.id} rejected refund for order {seller_order_id}")

    return action


def update_shipping_status(db: DBSession, seller: Seller, seller_order_id: int, shipping_status) -> OrderPair:
    """Seller override of the shipping status on both records."""
    status = lifecycle.parse_shipping_status(shipping_status)
    pair = OrderPair.for_seller(db, seller_order_id, seller.id)

    previous = pair.state
    new_state = lifecycle.set_shipping(previous, status)
    pair.apply(new_state)
    if new_state.is_terminal:
        # the override never archives or restocks; the pair stays live until
        # the shopper confirms or cancels it
        logger.warning(
            f"[orders.shipping] seller {seller.id} left order {seller_order_id} live in terminal state {new_state}"
        )
    if status is ShippingStatus.DELIVERED:
        pair.seller_order.delivery_date = pair.seller_order.delivery_date or utcnow()
    db.flush()

    logger.info(
        f"[orders.shipping] seller {seller.id} moved order {seller_order_id} "
        f"from {previous.shipping.value} to {status.value}"
    )
    return pair
