# ============================================================
# lifecycle.py — Order lifecycle state machine
# ============================================================
# An order pair (OrderItem + SellerOrder) carries one OrderState:
#   payment axis:   Pending → Paid → Refunded
#   shipping axis:  Pending → Shipped → Delivered
#                   Pending → Cancelled
#                   (Paid) → Refund Requested → Cancelled | Pending
#
# Transitions are pure functions: they take the current state,
# validate it and return the next one, or raise InvalidStateError.
# Nothing here touches the database.
# ============================================================

import enum
from dataclasses import dataclass, replace
from typing import Tuple

from errors import InvalidStateError, ValidationError


class ShippingStatus(str, enum.Enum):
    PENDING = "Pending"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    RETURNED = "Returned"
    CANCELLED = "Cancelled"
    REFUND_REQUESTED = "Refund Requested"


class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    PAID = "Paid"
    REFUNDED = "Refunded"


class RefundAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


class CancelOutcome(str, enum.Enum):
    CANCELLED = "cancelled"
    REFUND_REQUESTED = "refund_requested"


# Live orders in these shipping states block deletion of the
# shopper / seller / product they reference
OPEN_SHIPPING_STATUSES = (
    ShippingStatus.PENDING,
    ShippingStatus.SHIPPED,
    ShippingStatus.DELIVERED,
)

RECEIVABLE_SHIPPING_STATUSES = (ShippingStatus.SHIPPED, ShippingStatus.DELIVERED)


@dataclass(frozen=True)
class OrderState:
    shipping: ShippingStatus
    payment: PaymentStatus

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    def __str__(self):
        return f"{self.shipping.value}/{self.payment.value}"


INITIAL_STATE = OrderState(ShippingStatus.PENDING, PaymentStatus.PENDING)

# States an order pair is archived in
TERMINAL_STATES = frozenset({
    OrderState(ShippingStatus.DELIVERED, PaymentStatus.PAID),
    OrderState(ShippingStatus.CANCELLED, PaymentStatus.PENDING),
    OrderState(ShippingStatus.CANCELLED, PaymentStatus.REFUNDED),
})


# ── Parsing (request payload → closed set) ───────────────────

def parse_shipping_status(value) -> ShippingStatus:
    try:
        return ShippingStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ShippingStatus)
        raise ValidationError(f"Invalid shipping status '{value}'. Allowed: {allowed}")


def parse_refund_action(value) -> RefundAction:
    try:
        return RefundAction(value)
    except ValueError:
        raise ValidationError("Invalid action")


# ── Transitions ──────────────────────────────────────────────

def pay(state: OrderState) -> OrderState:
    """Simulated payment: Pending → Paid on the payment axis only."""
    if state.payment is not PaymentStatus.PENDING:
        raise InvalidStateError("Order is already paid")
    return replace(state, payment=PaymentStatus.PAID)


def cancel_or_request_refund(state: OrderState) -> Tuple[OrderState, CancelOutcome]:
    """
    Shopper-initiated cancel.

    Unpaid orders are cancelled outright. Paid orders only raise a
    refund request that the seller has to approve or reject.
    """
    if state.payment is PaymentStatus.PENDING:
        return replace(state, shipping=ShippingStatus.CANCELLED), CancelOutcome.CANCELLED

    if state.payment is PaymentStatus.PAID:
        if state.shipping is ShippingStatus.REFUND_REQUESTED:
            raise InvalidStateError("Refund has already been requested for this order")
        return replace(state, shipping=ShippingStatus.REFUND_REQUESTED), CancelOutcome.REFUND_REQUESTED

    raise InvalidStateError("Order is not paid or already refunded.")


def _require_refund_requested(state: OrderState):
    if state.shipping is not ShippingStatus.REFUND_REQUESTED or state.payment is not PaymentStatus.PAID:
        raise InvalidStateError(f"No pending refund request for this order (status {state})")


def approve_refund(state: OrderState) -> OrderState:
    _require_refund_requested(state)
    return OrderState(ShippingStatus.CANCELLED, PaymentStatus.REFUNDED)


def reject_refund(state: OrderState) -> OrderState:
    # Both sides go back to Pending shipping; the money stays with the seller
    _require_refund_requested(state)
    return OrderState(ShippingStatus.PENDING, PaymentStatus.PAID)


def set_shipping(state: OrderState, shipping: ShippingStatus) -> OrderState:
    """Seller override. Any declared shipping status is accepted."""
    return replace(state, shipping=ShippingStatus(shipping))


def confirm_receipt(state: OrderState) -> OrderState:
    if state.shipping not in RECEIVABLE_SHIPPING_STATUSES:
        raise InvalidStateError(
            f"Order cannot be confirmed while its shipping status is {state.shipping.value}"
        )
    return OrderState(ShippingStatus.DELIVERED, PaymentStatus.PAID)
