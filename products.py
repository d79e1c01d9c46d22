# ============================================================
# products.py — Product / stock ledger
# ============================================================
# Seller-owned catalogue rows. Stock is set here by the seller;
# order lifecycle code only ever decrements (checkout) or
# restores (cancel / refund) it.
# ============================================================

import math
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session as DBSession

from config import logger
from errors import ValidationError, NotFoundError, ConflictError
from ledger import has_open_orders
from models import Product, Seller


def _check_fields(name=None, price=None, stock=None):
    if name is not None and not name.strip():
        raise ValidationError("Product name is required")
    if name is not None and len(name) > 255:
        raise ValidationError("Product name must be at most 255 characters")
    if price is not None and not math.isfinite(price):
        raise ValidationError("Price must be a finite number")
    if price is not None and price < 0:
        raise ValidationError("Price cannot be negative")
    if stock is not None and (isinstance(stock, bool) or not isinstance(stock, int) or stock < 0):
        raise ValidationError("Stock must be a non-negative whole number")


def create_product(
        db: DBSession,
        seller: Seller,
        name: str,
        price: float,
        stock: int,
        description: Optional[str] = None,
        expiry_date: Optional[date] = None,
        image: Optional[bytes] = None,
        image_format: Optional[str] = None
) -> Product:
    _check_fields(name=name, price=price, stock=stock)

    product = Product(
        name=name.strip(),
        price=price,
        stock=stock,
        description=description,
        expiry_date=expiry_date,
        image=image,
        image_format=image_format if image else None,
        seller_id=seller.id,
    )
    db.add(product)
    db.flush()
    logger.info(f"[products.create] seller {seller.id} created product {product.id}")
    return product


def get_owned_product(db: DBSession, seller: Seller, product_id: int) -> Product:
    product = (
        db.query(Product)
        .filter(Product.id == product_id, Product.seller_id == seller.id)
        .first()
    )
    if not product:
        raise NotFoundError("Product not found or you are not the owner")
    return product


def update_product(
        db: DBSession,
        seller: Seller,
        product_id: int,
        name: Optional[str] = None,
        price: Optional[float] = None,
        stock: Optional[int] = None,
        description: Optional[str] = None,
        expiry_date: Optional[date] = None,
        image: Optional[bytes] = None,
        image_format: Optional[str] = None
) -> Product:
    """Update only the fields that were provided."""
    _check_fields(name=name, price=price, stock=stock)
    product = get_owned_product(db, seller, product_id)

    if name is not None:
        product.name = name.strip()
    if price is not None:
        product.price = price
    if stock is not None:
        product.stock = stock
    if description is not None:
        product.description = description
    if expiry_date is not None:
        product.expiry_date = expiry_date
    if image:
        product.image = image
        product.image_format = image_format

    db.flush()
    return product


def delete_product(db: DBSession, seller: Seller, product_id: int):
    product = get_owned_product(db, seller, product_id)

    # live order rows hold a foreign key to the product, whatever their status
    if has_open_orders(db, product_id=product.id, statuses=None):
        raise ConflictError("Product cannot be deleted because it is still involved in an ongoing transaction.")

    db.delete(product)
    db.flush()
    logger.info(f"[products.delete] seller {seller.id} deleted product {product_id}")


def get_product(db: DBSession, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def list_products(db: DBSession, seller: Optional[Seller] = None) -> List[Product]:
    q = db.query(Product)
    if seller is not None:
        q = q.filter(Product.seller_id == seller.id)
    return q.order_by(Product.created_at.desc(), Product.id.desc()).all()
