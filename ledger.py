# ============================================================
# ledger.py — Order pair ledger (checkout engine)
# ============================================================
# A live order is always two rows: the shopper's OrderItem and
# the seller's SellerOrder mirror. OrderPair is the only code
# that creates, updates or deletes them, so both sides are
# always written together.
#
# Nothing here commits. Callers wrap these functions in
# database.unit_of_work() and own the transaction.
# ============================================================

from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session as DBSession

from config import logger
from errors import (
    ValidationError, NotFoundError, InsufficientStockError, ConflictError, InternalError,
)
from lifecycle import OrderState, ShippingStatus, PaymentStatus, INITIAL_STATE, OPEN_SHIPPING_STATUSES
from models import Product, CartItem, OrderItem, SellerOrder, Shopper


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# Stock
# ============================================================

def lock_product(db: DBSession, product_id: int) -> Product:
    """
    Re-read a product row under a row lock.

    populate_existing() discards whatever the session already holds,
    so stock is always the value committed by the last writer.
    """
    product = (
        db.query(Product)
        .filter(Product.id == product_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def restore_stock(product: Product, quantity: int):
    product.stock += quantity


# ============================================================
# OrderPair
# ============================================================

class OrderPair:
    """An OrderItem and its SellerOrder, handled as one order."""

    def __init__(self, order_item: OrderItem, seller_order: SellerOrder):
        self.order_item = order_item
        self.seller_order = seller_order

    # ── Creation ─────────────────────────────────────────────

    @classmethod
    def open(cls, db: DBSession, shopper: Shopper, product: Product, quantity: int) -> "OrderPair":
        now = utcnow()
        total_amount = product.price * quantity  # snapshot price

        order_item = OrderItem(
            product_id=product.id,
            shopper_id=shopper.id,
            seller_id=product.seller_id,
            quantity=quantity,
            total_amount=total_amount,
            order_date=now,
            shipping_status=INITIAL_STATE.shipping,
            payment_status=INITIAL_STATE.payment,
        )
        order_item.seller_order = SellerOrder(
            product_id=product.id,
            seller_id=product.seller_id,
            shopper_id=shopper.id,
            quantity=quantity,
            total_amount=total_amount,
            order_date=now,
            shipping_status=INITIAL_STATE.shipping,
            payment_status=INITIAL_STATE.payment,
        )
        db.add(order_item)
        db.flush()
        return cls(order_item, order_item.seller_order)

    # ── Loading ──────────────────────────────────────────────

    @classmethod
    def for_shopper(
            cls,
            db: DBSession,
            order_id: int,
            shopper_id: int,
            payment_status: Optional[PaymentStatus] = None,
            not_found: str = "Order not found"
    ) -> "OrderPair":
        """Load and lock the pair by OrderItem id, scoped to its shopper."""
        q = db.query(OrderItem).filter(OrderItem.id == order_id, OrderItem.shopper_id == shopper_id)
        if payment_status is not None:
            q = q.filter(OrderItem.payment_status == payment_status)
        order_item = q.with_for_update().populate_existing().first()
        if not order_item:
            raise NotFoundError(not_found)

        seller_order = (
            db.query(SellerOrder)
            .filter(SellerOrder.shopper_order_id == order_item.id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not seller_order:
            raise NotFoundError("Seller order not found")
        return cls(order_item, seller_order)

    @classmethod
    def for_seller(cls, db: DBSession, seller_order_id: int, seller_id: int) -> "OrderPair":
        """Load and lock the pair by SellerOrder id, scoped to its seller."""
        seller_order = (
            db.query(SellerOrder)
            .filter(SellerOrder.id == seller_order_id, SellerOrder.seller_id == seller_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not seller_order:
            raise NotFoundError("Order not found")

        order_item = (
            db.query(OrderItem)
            .filter(OrderItem.id == seller_order.shopper_order_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not order_item:
            raise NotFoundError("Order item for shopper not found")
        return cls(order_item, seller_order)

    # ── State ────────────────────────────────────────────────

    @property
    def state(self) -> OrderState:
        shopper_side = self.order_item.state
        seller_side = OrderState(
            ShippingStatus(self.seller_order.shipping_status),
            PaymentStatus(self.seller_order.payment_status),
        )
        if shopper_side != seller_side:
            logger.error(
                f"[ledger] order pair {self.order_item.id}/{self.seller_order.id} out of sync: "
                f"{shopper_side} vs {seller_side}"
            )
            raise InternalError("Order records are inconsistent")
        return shopper_side

    def apply(self, state: OrderState):
        """Write `state` to both sides of the pair."""
        for row in (self.order_item, self.seller_order):
            row.shipping_status = state.shipping
            row.payment_status = state.payment

    def delete(self, db: DBSession):
        db.delete(self.seller_order)
        db.delete(self.order_item)
        db.flush()

    def __repr__(self):
        return f"<OrderPair item={self.order_item.id} seller_order={self.seller_order.id}>"


# ============================================================
# Checkout
# ============================================================

def _cart_lines(db: DBSession, shopper: Shopper, product_ids: Sequence[int]) -> List[CartItem]:
    lines = (
        db.query(CartItem)
        .filter(CartItem.shopper_id == shopper.id, CartItem.product_id.in_(list(product_ids)))
        .order_by(CartItem.product_id)
        .with_for_update()
        .all()
    )
    if not lines:
        raise NotFoundError("No matching items found in cart")

    missing = set(product_ids) - {line.product_id for line in lines}
    if missing:
        logger.warning(f"[ledger.checkout] shopper={shopper.id} products not in cart, skipped: {sorted(missing)}")
    return lines


def _consume_cart_line(db: DBSession, line: CartItem):
    deleted = db.query(CartItem).filter(CartItem.id == line.id).delete(synchronize_session="fetch")
    if deleted != 1:
        # another checkout of the same cart got here first
        raise ConflictError("Your cart changed during checkout, please try again")


def checkout(
        db: DBSession,
        shopper: Shopper,
        product_ids: Optional[Sequence[int]] = None,
        single_product_id: Optional[int] = None,
        single_product_quantity: Optional[int] = None
) -> List[OrderPair]:
    """
    Turn cart lines and/or one direct "buy now" line into order pairs.

    For every line: re-read stock under lock, check it, decrement it,
    open an OrderPair at the current price and, for cart lines, delete
    the consumed cart row. Any failure raises and the caller's
    unit_of_work rolls back every line.
    """
    product_ids = [pid for pid in (product_ids or []) if pid is not None]
    has_single = single_product_id is not None and single_product_quantity is not None

    if not product_ids and not has_single:
        raise ValidationError("No products selected for checkout")

    # (product_id, quantity, cart line or None)
    lines: List[Tuple[int, int, Optional[CartItem]]] = []

    if product_ids:
        for line in _cart_lines(db, shopper, product_ids):
            lines.append((line.product_id, line.quantity, line))

    if has_single:
        if (isinstance(single_product_quantity, bool) or not isinstance(single_product_quantity, int)
                or single_product_quantity < 1):
            raise ValidationError("Quantity must be a positive whole number")
        lines.append((single_product_id, single_product_quantity, None))

    # same lock order for every checkout
    lines.sort(key=lambda line: line[0])

    pairs = []
    for product_id, quantity, cart_line in lines:
        product = lock_product(db, product_id)

        if product.stock < quantity:
            raise InsufficientStockError(f"Insufficient stock for product: {product.name}")

        product.stock -= quantity
        pairs.append(OrderPair.open(db, shopper, product, quantity))

        if cart_line is not None:
            _consume_cart_line(db, cart_line)

    logger.info(
        f"[ledger.checkout] shopper={shopper.id} opened {len(pairs)} order(s): "
        f"{[p.order_item.id for p in pairs]}"
    )
    return pairs


# ============================================================
# Deletion guards
# ============================================================

def has_open_orders(
        db: DBSession,
        shopper_id: Optional[int] = None,
        seller_id: Optional[int] = None,
        product_id: Optional[int] = None,
        statuses=OPEN_SHIPPING_STATUSES
) -> bool:
    """
    True if a live order references the given shopper/seller/product.

    By default only Pending, Shipped and Delivered orders count; pass
    statuses=None to count every live order regardless of status.
    """
    if shopper_id is None and seller_id is None and product_id is None:
        raise ValueError("has_open_orders needs at least one of shopper_id, seller_id, product_id")

    q = db.query(OrderItem.id)
    if shopper_id is not None:
        q = q.filter(OrderItem.shopper_id == shopper_id)
    if seller_id is not None:
        q = q.filter(OrderItem.seller_id == seller_id)
    if product_id is not None:
        q = q.filter(OrderItem.product_id == product_id)
    if statuses is not None:
        q = q.filter(OrderItem.shipping_status.in_(list(statuses)))
    return q.first() is not None
