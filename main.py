# ============================================================
# main.py — FastAPI Application
# ============================================================
# Endpoints:
#   /api/shopper/...   cart, checkout, order lifecycle, history
#   /api/seller/...    products, orders, shipping, refunds, history
#   /api/admin/...     user deletion
#
# Every handler resolves the Principal from the bearer token,
# hands the request body to one operation in functions.py and
# returns its dict. Errors come back as {"message", "ok": False}.
# ============================================================

from datetime import date
from typing import Optional

from fastapi import FastAPI, Depends, UploadFile, Form, File, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session as DBSession

import functions
from auth import (
    Principal, shopper_principal, shopper_principal_any, seller_principal,
    seller_principal_any, admin_principal,
)
from config import CORS_ORIGINS, IMAGE_TYPES, MAX_IMAGE_SIZE, logger
from database import get_db, init_db
from errors import MarketplaceError, ValidationError
from schemas import (
    CheckoutRequest, OrderRequest, RefundDecisionRequest, ShippingStatusRequest,
    CartAddRequest, CartProductRequest,
)

# ── Initialize FastAPI app ────────────────────────────────────
app = FastAPI(title="Marketplace API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Startup: create database tables ───────────────────────────
@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("Database initialized")


# ============================================================
# ERROR HANDLERS
# ============================================================

@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error(f"[api] {request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"[api] {request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse({"message": exc.message, "ok": False}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"Invalid request: {field} {first.get('msg', '')}".strip() if field else "Invalid request"
    logger.warning(f"[api] {request.method} {request.url.path} -> 400: {message}")
    return JSONResponse({"message": message, "ok": False}, status_code=400)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"[api] {request.method} {request.url.path} crashed: {exc}")
    return JSONResponse({"message": "Server error", "ok": False}, status_code=500)


@app.get("/")
def read_root():
    return {"message": "Marketplace backend running", "ok": True}


# ============================================================
# SHOPPER
# ============================================================

@app.get("/api/shopper/products")
def shopper_products(
    principal: Principal = Depends(shopper_principal_any),
    db: DBSession = Depends(get_db)
):
    return functions.viewAllProducts(db)


# ── Cart ─────────────────────────────────────────────────────

@app.get("/api/shopper/cart")
def view_cart(principal: Principal = Depends(shopper_principal), db: DBSession = Depends(get_db)):
    return functions.viewCart(db, principal)


@app.post("/api/shopper/cart/add")
def add_to_cart(
    body: CartAddRequest,
    principal: Principal = Depends(shopper_principal),
    db: DBSession = Depends(get_db)
):
    return functions.addItemToCart(db, principal, body.productId, body.quantity)


@app.post("/api/shopper/cart/reduce")
def reduce_in_cart(
    body: CartProductRequest,
    principal: Principal = Depends(shopper_principal),
    db: DBSession = Depends(get_db)
):
    return functions.reduceItemInCart(db, principal, body.productId)


@app.post("/api/shopper/cart/remove")
def remove_from_cart(
    body: CartProductRequest,
    principal: Principal = Depends(shopper_principal),
    db: DBSession = Depends(get_db)
):
    return functions.removeItemFromCart(db, principal, body.productId)


# ── Checkout + order lifecycle ───────────────────────────────

@app.post("/api/shopper/checkout")
def checkout(
    body: CheckoutRequest,
    principal: Principal = Depends(shopper_principal),
    db: DBSession = Depends(get_db)
):
    return functions.checkout(
        db, principal,
        productIds=body.productIds,
        singleProductId=body.singleProductId,
        singleProductQuantity=body.singleProductQuantity,
    )


@app.post("/api/shopper/simulate-payment")
def simulate_payment(
    body: OrderRequest,
    principal: Principal = Depends(shopper_principal),
    db: DBSession = Depends(get_db)
):
    return functions.simulatePayment(db, principal, body.orderId)


@app.post("/api/shopper/request-cancellation")
def request_cancellation(
    body: OrderRequest,
    principal: Principal = Depends(shopper_principal),
    db: DBSession = Depends(get_db)
):
    return functions.requestCancellationOrRefund(db, principal, body.orderId)


@app.post("/api/shopper/confirm-order")
def confirm_order(
    body: OrderRequest,
    principal: Principal = Depends(shopper_principal),
    db: DBSession = Depends(get_db)
):
    return functions.confirmOrderReceipt(db, principal, body.orderId)


@app.get("/api/shopper/orders")
def shopper_orders(principal: Principal = Depends(shopper_principal), db: DBSession = Depends(get_db)):
    return functions.getOrderItems(db, principal)


@app.get("/api/shopper/order-history")
def shopper_order_history(principal: Principal = Depends(shopper_principal), db: DBSession = Depends(get_db)):
    return functions.getOrderHistory(db, principal)


@app.delete("/api/shopper/profile")
def delete_shopper_profile(principal: Principal = Depends(shopper_principal), db: DBSession = Depends(get_db)):
    return functions.deleteProfile(db, principal)


# ============================================================
# SELLER
# ============================================================

# ------------------
# Helper: Read uploaded image
# ------------------
def read_image(file: Optional[UploadFile]):
    """Return (bytes, mime) for an uploaded picture, or (None, None) if none was sent."""
    if file is None or not file.filename:
        return None, None
    if file.content_type not in IMAGE_TYPES:
        raise ValidationError(f"Unsupported image type: {file.content_type}")
    data = file.file.read()
    if len(data) > MAX_IMAGE_SIZE:
        raise ValidationError(f"Image is larger than {MAX_IMAGE_SIZE // (1024 * 1024)}MB")
    return data, file.content_type


# ── Products ─────────────────────────────────────────────────

@app.post("/api/seller/products", status_code=201)
def create_product(
    productName: str = Form(...),
    price: float = Form(...),
    stock: int = Form(...),
    description: Optional[str] = Form(None),
    expiryDate: Optional[date] = Form(None),
    productImage: Optional[UploadFile] = File(None),
    principal: Principal = Depends(seller_principal),
    db: DBSession = Depends(get_db)
):
    image, image_format = read_image(productImage)
    return functions.createProduct(
        db, principal,
        name=productName,
        price=price,
        stock=stock,
        description=description,
        expiry_date=expiryDate,
        image=image,
        image_format=image_format,
    )


@app.put("/api/seller/products/{product_id}")
def update_product(
    product_id: int,
    productName: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    stock: Optional[int] = Form(None),
    description: Optional[str] = Form(None),
    expiryDate: Optional[date] = Form(None),
    productImage: Optional[UploadFile] = File(None),
    principal: Principal = Depends(seller_principal),
    db: DBSession = Depends(get_db)
):
    image, image_format = read_image(productImage)
    return functions.updateProduct(
        db, principal, product_id,
        name=productName,
        price=price,
        stock=stock,
        description=description,
        expiry_date=expiryDate,
        image=image,
        image_format=image_format,
    )


@app.delete("/api/seller/products/{product_id}")
def delete_product(
    product_id: int,
    principal: Principal = Depends(seller_principal),
    db: DBSession = Depends(get_db)
):
    return functions.deleteProduct(db, principal, product_id)


@app.get("/api/seller/products")
def seller_products(principal: Principal = Depends(seller_principal_any), db: DBSession = Depends(get_db)):
    return functions.viewSellerProducts(db, principal)


@app.get("/api/seller/products/{product_id}")
def seller_product(
    product_id: int,
    principal: Principal = Depends(seller_principal),
    db: DBSession = Depends(get_db)
):
    return functions.getProductById(db, product_id)


# ── Orders ───────────────────────────────────────────────────

@app.get("/api/seller/orders")
def seller_orders(principal: Principal = Depends(seller_principal), db: DBSession = Depends(get_db)):
    return functions.getSellerOrders(db, principal)


@app.get("/api/seller/orders/history")
def seller_order_history(principal: Principal = Depends(seller_principal_any), db: DBSession = Depends(get_db)):
    return functions.getSellerOrderHistory(db, principal)


@app.put("/api/seller/orders/shipping-status")
def update_shipping_status(
    body: ShippingStatusRequest,
    principal: Principal = Depends(seller_principal),
    db: DBSession = Depends(get_db)
):
    return functions.updateShippingStatus(db, principal, body.orderId, body.shippingStatus)


@app.put("/api/seller/orders/refund")
def handle_refund(
    body: RefundDecisionRequest,
    principal: Principal = Depends(seller_principal),
    db: DBSession = Depends(get_db)
):
    return functions.handleRefundRequest(db, principal, body.orderId, body.action)


@app.delete("/api/seller/profile")
def delete_seller_profile(principal: Principal = Depends(seller_principal), db: DBSession = Depends(get_db)):
    return functions.deleteProfile(db, principal)


# ============================================================
# ADMIN
# ============================================================

@app.delete("/api/admin/users/{user_id}")
def delete_user(
    user_id: int,
    principal: Principal = Depends(admin_principal),
    db: DBSession = Depends(get_db)
):
    return functions.deleteUser(db, principal, user_id)


# ============================================================
# RUN THE APP
# ============================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
