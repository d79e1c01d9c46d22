# ============================================================
# cart.py — Cart store
# ============================================================
# One CartItem row per (shopper, product). Lines are staged here
# and consumed by ledger.checkout().
# ============================================================

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from config import logger
from errors import ValidationError, NotFoundError, InsufficientStockError, ConflictError
from models import CartItem, Product, Shopper


def _find_line(db: DBSession, shopper: Shopper, product_id: int) -> Optional[CartItem]:
    return (
        db.query(CartItem)
        .filter(CartItem.shopper_id == shopper.id, CartItem.product_id == product_id)
        .first()
    )


def _get_line(db: DBSession, shopper: Shopper, product_id: int) -> CartItem:
    line = _find_line(db, shopper, product_id)
    if not line:
        raise NotFoundError("Product not found in cart")
    return line


def add_item(db: DBSession, shopper: Shopper, product_id: int, quantity: int = 1) -> CartItem:
    """Add a product, or increase the quantity if it is already in the cart."""
    if quantity is None or quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product not found")

    line = _find_line(db, shopper, product_id)
    wanted = quantity + (line.quantity if line else 0)
    if product.stock < wanted:
        raise InsufficientStockError(f"Only {product.stock} units of {product.name} available in stock.")

    if line:
        line.quantity = wanted
    else:
        line = CartItem(shopper_id=shopper.id, product_id=product_id, quantity=quantity)
        db.add(line)
    try:
        db.flush()
    except IntegrityError:
        # a concurrent add inserted the same (shopper, product) line first
        logger.warning(f"[cart.add] shopper={shopper.id} product={product_id} duplicate cart line")
        raise ConflictError("Your cart changed while adding this product, please try again")
    return line


def reduce_item(db: DBSession, shopper: Shopper, product_id: int) -> bool:
    """
    Decrease quantity by one.

    Returns False without touching the line when it is down to 1;
    the client has to confirm and call remove_item() instead.
    """
    line = _get_line(db, shopper, product_id)
    if line.quantity == 1:
        return False
    line.quantity -= 1
    db.flush()
    return True


def remove_item(db: DBSession, shopper: Shopper, product_id: int):
    line = _get_line(db, shopper, product_id)
    db.delete(line)
    db.flush()


def list_items(db: DBSession, shopper: Shopper) -> List[CartItem]:
    return (
        db.query(CartItem)
        .filter(CartItem.shopper_id == shopper.id)
        .order_by(CartItem.id)
        .all()
    )
