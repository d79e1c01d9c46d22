# ============================================================
# serializers.py — ORM rows → JSON-ready dicts
# ============================================================
# Keys are camelCase to match the frontend. Images never leave
# the API as raw bytes, only as data: URIs.
# ============================================================

import base64
from datetime import date, datetime
from typing import Optional

from models import (
    Product, CartItem, OrderItem, SellerOrder, OrderHistory, SellerOrderHistory,
)


def image_data_uri(blob: Optional[bytes], mime: Optional[str]) -> Optional[str]:
    if not blob:
        return None
    encoded = base64.b64encode(blob).decode("ascii")
    return f"data:{mime or 'application/octet-stream'};base64,{encoded}"


def iso(value) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _status(value) -> Optional[str]:
    # enum members and plain strings both end up as their value
    return getattr(value, "value", value)


# ── Products ─────────────────────────────────────────────────

def product_dict(p: Product) -> dict:
    return {
        "id": p.id,
        "productName": p.name,
        "price": p.price,
        "stock": p.stock,
        "description": p.description,
        "expiryDate": iso(p.expiry_date),
        "sellerId": p.seller_id,
        "productImage": image_data_uri(p.image, p.image_format),
    }


def product_summary(p: Optional[Product]) -> Optional[dict]:
    if p is None:
        return None
    return {
        "id": p.id,
        "productName": p.name,
        "price": p.price,
        "productImage": image_data_uri(p.image, p.image_format),
    }


# ── Cart ─────────────────────────────────────────────────────

def cart_item_dict(line: CartItem) -> dict:
    product = line.product
    return {
        "id": line.id,
        "productId": line.product_id,
        "quantity": line.quantity,
        "productName": product.name,
        "price": product.price,
        "subtotal": product.price * line.quantity,
        "productImage": image_data_uri(product.image, product.image_format),
    }


# ── Live orders ──────────────────────────────────────────────

def order_item_dict(item: OrderItem, with_product: bool = True) -> dict:
    data = {
        "id": item.id,
        "productId": item.product_id,
        "shopperId": item.shopper_id,
        "sellerId": item.seller_id,
        "orderDate": iso(item.order_date),
        "quantity": item.quantity,
        "totalAmount": item.total_amount,
        "shippingStatus": _status(item.shipping_status),
        "paymentStatus": _status(item.payment_status),
    }
    if with_product:
        data["product"] = product_summary(item.product)
    return data


def seller_order_dict(order: SellerOrder, order_item: Optional[OrderItem] = None) -> dict:
    data = {
        "id": order.id,
        "productId": order.product_id,
        "sellerId": order.seller_id,
        "shopperId": order.shopper_id,
        "shopperOrderId": order.shopper_order_id,
        "orderDate": iso(order.order_date),
        "quantity": order.quantity,
        "totalAmount": order.total_amount,
        "shippingStatus": _status(order.shipping_status),
        "paymentStatus": _status(order.payment_status),
        "deliveryDate": iso(order.delivery_date),
    }
    if order_item is not None:
        data["orderItem"] = order_item_dict(order_item)
    return data


# ── History ──────────────────────────────────────────────────

def _history_common(h) -> dict:
    return {
        "id": h.id,
        "shopperOrderId": h.shopper_order_id,
        "orderDate": iso(h.order_date),
        "quantity": h.quantity,
        "totalAmount": h.total_amount,
        "shippingStatus": _status(h.shipping_status),
        "paymentStatus": _status(h.payment_status),
        "deliveryDate": iso(h.delivery_date),
        "productId": h.product_id,
    }


def order_history_dict(h: OrderHistory, product: Optional[Product] = None) -> dict:
    data = _history_common(h)
    data.update({
        "sellerId": h.seller_id,
        "productDetails": {
            "name": h.product_name,
            "price": h.product_price,
            "description": h.product_description,
            # the picture is the only thing not snapshotted
            "productImage": image_data_uri(product.image, product.image_format) if product else None,
        },
        "sellerDetails": {
            "name": h.seller_name,
            "storeName": h.store_name,
        },
    })
    return data


def seller_order_history_dict(h: SellerOrderHistory, product: Optional[Product] = None) -> dict:
    data = _history_common(h)
    data.update({
        "shopperId": h.shopper_id,
        "productDetails": {
            "name": h.product_name,
            "price": h.product_price,
            "description": h.product_description,
            "productImage": image_data_uri(product.image, product.image_format) if product else None,
        },
        "shopperDetails": {
            "name": h.shopper_name,
            "email": h.shopper_email,
        },
    })
    return data
