"""
Request bodies for the JSON endpoints.

Field names match what the frontend sends (camelCase). Only shape and
types are checked here; business rules live in the domain modules.
"""
from typing import List, Optional

from pydantic import BaseModel, Field, StrictInt


class CheckoutRequest(BaseModel):
    productIds: Optional[List[int]] = None
    singleProductId: Optional[int] = None
    singleProductQuantity: Optional[StrictInt] = None


class OrderRequest(BaseModel):
    orderId: int


class RefundDecisionRequest(BaseModel):
    orderId: int
    action: str = Field(..., description="approve | reject")


class ShippingStatusRequest(BaseModel):
    orderId: int
    shippingStatus: str


class CartAddRequest(BaseModel):
    productId: int
    quantity: StrictInt = 1


class CartProductRequest(BaseModel):
    productId: int
