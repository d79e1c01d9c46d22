# ============================================================
# functions.py — JSON operations
# ============================================================
# Each function here corresponds to one API operation. They are
# called by the route handlers in main.py.
#
# All functions receive the DB session + the authenticated
# Principal and return a dict that is sent back as JSON.
# Mutations run inside one unit_of_work (commit on success,
# rollback on any error). Failures are raised as MarketplaceError
# subclasses and rendered by main.py.
# ============================================================

from typing import Optional, List

from sqlalchemy.orm import Session as DBSession

import accounts
import cart
import ledger
import orders
import products
from auth import Principal
from database import unit_of_work
from errors import NotFoundError, ValidationError
from lifecycle import CancelOutcome, RefundAction
from models import OrderItem, SellerOrder, OrderHistory, SellerOrderHistory, Product
from serializers import (
    cart_item_dict, product_dict, order_item_dict, seller_order_dict,
    order_history_dict, seller_order_history_dict,
)


def _product_map(db: DBSession, product_ids) -> dict:
    ids = {pid for pid in product_ids if pid is not None}
    if not ids:
        return {}
    return {p.id: p for p in db.query(Product).filter(Product.id.in_(ids)).all()}


# ============================================================
# CHECKOUT
# ============================================================

def checkout(
        db: DBSession,
        principal: Principal,
        productIds: Optional[List[int]] = None,
        singleProductId: Optional[int] = None,
        singleProductQuantity: Optional[int] = None
) -> dict:
    with unit_of_work(db):
        shopper = accounts.get_shopper(db, principal.user_id, lock=True)
        pairs = ledger.checkout(
            db, shopper,
            product_ids=productIds,
            single_product_id=singleProductId,
            single_product_quantity=singleProductQuantity,
        )
        order_ids = [p.order_item.id for p in pairs]

    return {
        "message": "Selected items checked out successfully",
        "ok": True,
        "orderIds": order_ids,
    }


# ============================================================
# SHOPPER — ORDER LIFECYCLE
# ============================================================

def simulatePayment(db: DBSession, principal: Principal, orderId: int) -> dict:
    with unit_of_work(db):
        shopper = accounts.get_shopper(db, principal.user_id)
        orders.simulate_payment(db, shopper, orderId)

    return {
        "message": "Payment marked as Paid successfully in both shopper and seller orders",
        "ok": True,
    }


def requestCancellationOrRefund(db: DBSession, principal: Principal, orderId: int) -> dict:
    with unit_of_work(db):
        shopper = accounts.get_shopper(db, principal.user_id)
        outcome = orders.request_cancellation_or_refund(db, shopper, orderId)

    if outcome is CancelOutcome.CANCELLED:
        message = "Order cancelled successfully, product stock updated, and moved to order history."
    else:
        message = "Refund request submitted, awaiting seller confirmation."
    return {"message": message, "ok": True}


def confirmOrderReceipt(db: DBSession, principal: Principal, orderId: int) -> dict:
    with unit_of_work(db):
        shopper = accounts.get_shopper(db, principal.user_id)
        orders.confirm_order_receipt(db, shopper, orderId)

    return {
        "message": "Order confirmed successfully and moved to order history.",
        "ok": True,
    }


# ============================================================
# SHOPPER — READS
# ============================================================

def getOrderItems(db: DBSession, principal: Principal) -> dict:
    shopper = accounts.get_shopper(db, principal.user_id)
    items = (
        db.query(OrderItem)
        .filter(OrderItem.shopper_id == shopper.id)
        .order_by(OrderItem.order_date.desc(), OrderItem.id.desc())
        .all()
    )
    if not items:
        raise NotFoundError("No orders found")

    return {
        "message": "Order items retrieved successfully",
        "ok": True,
        "orderItems": [order_item_dict(item) for item in items],
    }


def getOrderHistory(db: DBSession, principal: Principal) -> dict:
    shopper = accounts.get_shopper(db, principal.user_id)
    rows = (
        db.query(OrderHistory)
        .filter(OrderHistory.shopper_id == shopper.id)
        .order_by(OrderHistory.order_date.desc(), OrderHistory.id.desc())
        .all()
    )
    if not rows:
        raise NotFoundError("No order history found")

    product_map = _product_map(db, [h.product_id for h in rows])
    return {
        "message": "Order history retrieved successfully",
        "ok": True,
        "orderHistory": [order_history_dict(h, product_map.get(h.product_id)) for h in rows],
    }


# ============================================================
# SELLER — ORDER LIFECYCLE
# ============================================================

def handleRefundRequest(db: DBSession, principal: Principal, orderId: int, action: str) -> dict:
    with unit_of_work(db):
        seller = accounts.get_seller(db, principal.user_id)
        result = orders.handle_refund_request(db, seller, orderId, action)

    if result is RefundAction.APPROVE:
        message = "Refund approved, order cancelled, product stock updated, and moved to order history."
    else:
        message = "Refund request rejected."
    return {"message": message, "ok": True}


def updateShippingStatus(db: DBSession, principal: Principal, orderId: int, shippingStatus: str) -> dict:
    with unit_of_work(db):
        seller = accounts.get_seller(db, principal.user_id)
        pair = orders.update_shipping_status(db, seller, orderId, shippingStatus)
        order = seller_order_dict(pair.seller_order)
        order_item = order_item_dict(pair.order_item, with_product=False)

    return {
        "message": f"Shipping status updated to {order['shippingStatus']} in both order and order item",
        "order": order,
        "orderItem": order_item,
        "ok": True,
    }


# ============================================================
# SELLER — READS
# ============================================================

def getSellerOrders(db: DBSession, principal: Principal) -> dict:
    seller = accounts.get_seller(db, principal.user_id)
    rows = (
        db.query(SellerOrder)
        .filter(SellerOrder.seller_id == seller.id)
        .order_by(SellerOrder.order_date.desc(), SellerOrder.id.desc())
        .all()
    )
    if not rows:
        raise NotFoundError("No orders found")

    return {
        "message": "Seller orders retrieved successfully",
        "ok": True,
        "orders": [seller_order_dict(order, order.order_item) for order in rows],
    }


def getSellerOrderHistory(db: DBSession, principal: Principal) -> dict:
    seller = accounts.get_seller(db, principal.user_id)
    rows = (
        db.query(SellerOrderHistory)
        .filter(SellerOrderHistory.seller_id == seller.id)
        .order_by(SellerOrderHistory.order_date.desc(), SellerOrderHistory.id.desc())
        .all()
    )
    if not rows:
        raise NotFoundError("No order history found")

    product_map = _product_map(db, [h.product_id for h in rows])
    return {
        "message": "Order history retrieved successfully",
        "ok": True,
        "orderHistory": [seller_order_history_dict(h, product_map.get(h.product_id)) for h in rows],
    }


# ============================================================
# CART
# ============================================================

def viewCart(db: DBSession, principal: Principal) -> dict:
    shopper = accounts.get_shopper(db, principal.user_id)
    lines = cart.list_items(db, shopper)
    if not lines:
        raise NotFoundError("No items in cart")

    items = [cart_item_dict(line) for line in lines]
    return {
        "message": "Cart retrieved successfully",
        "ok": True,
        "cartItems": items,
        "cartTotal": sum(item["subtotal"] for item in items),
    }


def addItemToCart(db: DBSession, principal: Principal, productId: int, quantity: int = 1) -> dict:
    with unit_of_work(db):
        shopper = accounts.get_shopper(db, principal.user_id)
        line = cart.add_item(db, shopper, productId, quantity)
        line_quantity = line.quantity

    return {"message": "Product added to cart", "ok": True, "quantity": line_quantity}


def reduceItemInCart(db: DBSession, principal: Principal, productId: int) -> dict:
    with unit_of_work(db):
        shopper = accounts.get_shopper(db, principal.user_id)
        reduced = cart.reduce_item(db, shopper, productId)

    if not reduced:
        return {
            "message": "Are you sure you want to remove the item from the cart?",
            "confirm": True,
            "productId": productId,
            "ok": True,
        }
    return {"message": "Product quantity decreased by 1", "ok": True}


def removeItemFromCart(db: DBSession, principal: Principal, productId: int) -> dict:
    with unit_of_work(db):
        shopper = accounts.get_shopper(db, principal.user_id)
        cart.remove_item(db, shopper, productId)

    return {"message": "Product removed from cart", "ok": True}


# ============================================================
# PRODUCTS
# ============================================================

def createProduct(db: DBSession, principal: Principal, **fields) -> dict:
    with unit_of_work(db):
        seller = accounts.get_seller(db, principal.user_id)
        product = products.create_product(db, seller, **fields)
        data = product_dict(product)

    return {"message": "Product created successfully", "ok": True, "product": data}


def updateProduct(db: DBSession, principal: Principal, productId: int, **fields) -> dict:
    with unit_of_work(db):
        seller = accounts.get_seller(db, principal.user_id)
        product = products.update_product(db, seller, productId, **fields)
        data = product_dict(product)

    return {"message": "Product updated successfully", "ok": True, "product": data}


def deleteProduct(db: DBSession, principal: Principal, productId: int) -> dict:
    with unit_of_work(db):
        seller = accounts.get_seller(db, principal.user_id)
        products.delete_product(db, seller, productId)

    return {"message": "Product deleted successfully.", "ok": True}


def viewSellerProducts(db: DBSession, principal: Principal) -> dict:
    seller = accounts.get_seller(db, principal.user_id)
    rows = products.list_products(db, seller=seller)
    if not rows:
        raise NotFoundError("No products found")
    return {"message": "Products retrieved successfully", "ok": True, "products": [product_dict(p) for p in rows]}


def viewAllProducts(db: DBSession) -> dict:
    rows = products.list_products(db)
    if not rows:
        raise NotFoundError("No products available")
    return {"message": "Products retrieved successfully", "ok": True, "products": [product_dict(p) for p in rows]}


def getProductById(db: DBSession, productId: int) -> dict:
    product = products.get_product(db, productId)
    return {"message": "Product retrieved successfully", "ok": True, "product": product_dict(product)}


# ============================================================
# ACCOUNTS
# ============================================================

def deleteProfile(db: DBSession, principal: Principal) -> dict:
    with unit_of_work(db):
        accounts.delete_account(db, principal.user_id)
    return {"message": "Profile deleted successfully", "ok": True}


def deleteUser(db: DBSession, principal: Principal, userId: int) -> dict:
    if userId == principal.user_id:
        raise ValidationError("Admins cannot delete their own account here")
    with unit_of_work(db):
        accounts.delete_account(db, userId)
    return {"message": "User deleted successfully", "ok": True}
