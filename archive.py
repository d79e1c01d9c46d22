# ============================================================
# archive.py — Order archival
# ============================================================
# Moves a terminal order pair into the two history tables and
# deletes the live rows, inside the caller's transaction.
# ============================================================

from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy.orm import Session as DBSession

from config import logger
from errors import NotFoundError, InvalidStateError
from ledger import OrderPair, utcnow
from lifecycle import ShippingStatus
from models import Product, Shopper, Seller, User, OrderHistory, SellerOrderHistory


@dataclass
class ArchiveContext:
    """Display data copied into the history rows."""
    product: Product
    shopper: Shopper
    seller: Seller
    shopper_email: str


def resolve_archive_context(db: DBSession, pair: OrderPair, product: Optional[Product] = None) -> ArchiveContext:
    """Look up everything archival needs; raises NotFoundError naming what is missing."""
    order_item = pair.order_item

    if product is None:
        product = db.query(Product).filter(Product.id == order_item.product_id).first()
        if not product:
            raise NotFoundError("Product not found")

    seller = db.query(Seller).filter(Seller.id == order_item.seller_id).first()
    if not seller:
        raise NotFoundError("Seller not found")

    shopper = db.query(Shopper).filter(Shopper.id == order_item.shopper_id).first()
    if not shopper:
        raise NotFoundError("Shopper not found")

    user = db.query(User).filter(User.id == shopper.user_id).first()
    if not user:
        raise NotFoundError("User not found")

    return ArchiveContext(product=product, shopper=shopper, seller=seller, shopper_email=user.email)


def archive_order_pair(
        db: DBSession,
        pair: OrderPair,
        context: ArchiveContext
) -> Tuple[OrderHistory, SellerOrderHistory]:
    state = pair.state
    if not state.is_terminal:
        raise InvalidStateError(f"Order in state {state} cannot be archived")

    order_item = pair.order_item
    product = context.product
    delivery_date = None
    if state.shipping is ShippingStatus.DELIVERED:
        delivery_date = pair.seller_order.delivery_date or utcnow()

    common = dict(
        order_date=order_item.order_date,
        quantity=order_item.quantity,
        total_amount=order_item.total_amount,
        shipping_status=state.shipping,
        payment_status=state.payment,
        delivery_date=delivery_date,
        shopper_id=order_item.shopper_id,
        product_id=order_item.product_id,
        seller_id=order_item.seller_id,
        shopper_order_id=order_item.id,
        product_name=product.name,
        product_price=product.price,
        product_description=product.description,
    )

    history = OrderHistory(
        seller_name=context.seller.name,
        store_name=context.seller.store_name,
        **common,
    )
    seller_history = SellerOrderHistory(
        shopper_name=context.shopper.full_name,
        shopper_email=context.shopper_email,
        **common,
    )
    db.add_all([history, seller_history])

    archived_id = order_item.id
    pair.delete(db)

    logger.info(f"[archive] order {archived_id} archived as {state}")
    return history, seller_history
