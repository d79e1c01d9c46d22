from sqlalchemy import (
    Column, Integer, String, Float, Text, DateTime, Date, Boolean,
    LargeBinary, ForeignKey, UniqueConstraint, CheckConstraint, Enum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base
from lifecycle import ShippingStatus, PaymentStatus, OrderState


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# Stored by value ("Refund Requested"), not by member name
ShippingStatusType = Enum(
    ShippingStatus, name="shipping_status", values_callable=_enum_values, validate_strings=True
)
PaymentStatusType = Enum(
    PaymentStatus, name="payment_status", values_callable=_enum_values, validate_strings=True
)


# ============================================================
# Accounts — the authenticated principal and its role profile
# ============================================================
class User(Base):
    __tablename__ = "users"

    id         = Column(Integer, primary_key=True, index=True)
    email      = Column(String(255), unique=True, nullable=False, index=True)
    role       = Column(String(20), nullable=False)                  # shopper | seller | admin
    is_active  = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Shopper(Base):
    __tablename__ = "shoppers"

    id           = Column(Integer, primary_key=True, index=True)
    user_id      = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    first_name   = Column(String(100), nullable=False)
    last_name    = Column(String(100), nullable=False)
    address      = Column(String(255))
    phone_number = Column(String(30))

    user = relationship("User")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Seller(Base):
    __tablename__ = "sellers"

    id           = Column(Integer, primary_key=True, index=True)
    user_id      = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    name         = Column(String(100), nullable=False)
    store_name   = Column(String(150), nullable=False)
    address      = Column(String(255))
    phone_number = Column(String(30))

    user = relationship("User")


# ============================================================
# Product — sellable item and its authoritative stock count
# ============================================================
class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    )

    id           = Column(Integer, primary_key=True, index=True)
    name         = Column(String(255), nullable=False)
    price        = Column(Float, nullable=False)
    stock        = Column(Integer, nullable=False, default=0)
    description  = Column(Text)
    image        = Column(LargeBinary)                                # raw bytes, never sent as-is
    image_format = Column(String(50))                                 # mime type, e.g. image/png
    expiry_date  = Column(Date)
    seller_id    = Column(Integer, ForeignKey("sellers.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at   = Column(DateTime(timezone=True), server_default=func.now())
    updated_at   = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    seller = relationship("Seller")


# ============================================================
# CartItem — one row per (shopper, product) staged for checkout
# ============================================================
class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("shopper_id", "product_id", name="uq_cart_items_shopper_product"),
        CheckConstraint("quantity >= 1", name="ck_cart_items_quantity_positive"),
    )

    id         = Column(Integer, primary_key=True, index=True)
    shopper_id = Column(Integer, ForeignKey("shoppers.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity   = Column(Integer, nullable=False, default=1)

    product = relationship("Product")


# ============================================================
# OrderItem — shopper-facing half of a live order pair
# ============================================================
class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        CheckConstraint("total_amount >= 0", name="ck_order_items_total_non_negative"),
    )

    id              = Column(Integer, primary_key=True, index=True)
    product_id      = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    shopper_id      = Column(Integer, ForeignKey("shoppers.id"), nullable=False, index=True)
    seller_id       = Column(Integer, ForeignKey("sellers.id"), nullable=False, index=True)
    quantity        = Column(Integer, nullable=False)
    total_amount    = Column(Float, nullable=False)                   # snapshot: price × quantity at checkout
    order_date      = Column(DateTime(timezone=True), nullable=False)
    shipping_status = Column(ShippingStatusType, nullable=False, default=ShippingStatus.PENDING)
    payment_status  = Column(PaymentStatusType, nullable=False, default=PaymentStatus.PENDING)

    # ── relationships ──
    product      = relationship("Product")
    seller_order = relationship(
        "SellerOrder",
        back_populates="order_item",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def state(self) -> OrderState:
        return OrderState(ShippingStatus(self.shipping_status), PaymentStatus(self.payment_status))


# ============================================================
# SellerOrder — seller-facing mirror, one per OrderItem
# ============================================================
class SellerOrder(Base):
    __tablename__ = "seller_orders"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_seller_orders_quantity_positive"),
        CheckConstraint("total_amount >= 0", name="ck_seller_orders_total_non_negative"),
    )

    id               = Column(Integer, primary_key=True, index=True)
    product_id       = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    seller_id        = Column(Integer, ForeignKey("sellers.id"), nullable=False, index=True)
    shopper_id       = Column(Integer, ForeignKey("shoppers.id"), nullable=False, index=True)
    quantity         = Column(Integer, nullable=False)
    total_amount     = Column(Float, nullable=False)
    order_date       = Column(DateTime(timezone=True), nullable=False)
    shipping_status  = Column(ShippingStatusType, nullable=False, default=ShippingStatus.PENDING)
    payment_status   = Column(PaymentStatusType, nullable=False, default=PaymentStatus.PENDING)
    shopper_order_id = Column(
        Integer, ForeignKey("order_items.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    delivery_date    = Column(DateTime(timezone=True))

    order_item = relationship("OrderItem", back_populates="seller_order")


# ============================================================
# History — immutable snapshots written at archival time
# ============================================================
# Display fields are copied so the rows stay readable after the
# product, seller or shopper they point at is changed or deleted.
class OrderHistory(Base):
    __tablename__ = "order_history"

    id                  = Column(Integer, primary_key=True, index=True)
    order_date          = Column(DateTime(timezone=True), nullable=False)
    quantity            = Column(Integer, nullable=False)
    total_amount        = Column(Float, nullable=False)
    shipping_status     = Column(ShippingStatusType, nullable=False)
    payment_status      = Column(PaymentStatusType, nullable=False)
    delivery_date       = Column(DateTime(timezone=True))
    shopper_id          = Column(Integer, ForeignKey("shoppers.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id          = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    seller_id           = Column(Integer, ForeignKey("sellers.id", ondelete="SET NULL"), nullable=True)
    shopper_order_id    = Column(Integer, nullable=False, index=True)  # id of the archived OrderItem
    product_name        = Column(String(255))
    product_price       = Column(Float)
    product_description = Column(Text)
    seller_name         = Column(String(100))
    store_name          = Column(String(150))
    archived_at         = Column(DateTime(timezone=True), server_default=func.now())


class SellerOrderHistory(Base):
    __tablename__ = "order_history_seller"

    id                  = Column(Integer, primary_key=True, index=True)
    order_date          = Column(DateTime(timezone=True), nullable=False)
    quantity            = Column(Integer, nullable=False)
    total_amount        = Column(Float, nullable=False)
    shipping_status     = Column(ShippingStatusType, nullable=False)
    payment_status      = Column(PaymentStatusType, nullable=False)
    delivery_date       = Column(DateTime(timezone=True))
    shopper_id          = Column(Integer, ForeignKey("shoppers.id", ondelete="SET NULL"), nullable=True)
    product_id          = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    seller_id           = Column(Integer, ForeignKey("sellers.id", ondelete="CASCADE"), nullable=False, index=True)
    shopper_order_id    = Column(Integer, nullable=False, index=True)
    product_name        = Column(String(255))
    product_price       = Column(Float)
    product_description = Column(Text)
    shopper_name        = Column(String(201))
    shopper_email       = Column(String(255))
    archived_at         = Column(DateTime(timezone=True), server_default=func.now())
