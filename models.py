#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Request, response and domain models for the storefront server.

Amounts are integer euro cents throughout. Conversion to a decimal string only
happens for display via `format_amount`.
"""

import datetime
from decimal import Decimal
from decimal import ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from enums import OrderStatus
from pydantic import BaseModel
from pydantic import Field

CENT = Decimal("1")


def format_amount(cents: int) -> str:
  """Formats an amount in cents as a major-unit string, e.g. 4500 -> 45.00."""
  return f"{Decimal(cents) / 100:.2f}"


def apply_promotion(unit_price: int, promotion_percent: int) -> int:
  """Returns the discounted unit price, rounded half-up to the cent."""
  if not promotion_percent:
    return unit_price
  discounted = Decimal(unit_price) * (100 - promotion_percent) / 100
  return int(discounted.quantize(CENT, rounding=ROUND_HALF_UP))


class OrderItem(BaseModel):
  """A cart line as stored on the order."""

  title: str = Field(..., min_length=1)
  unit_price: int = Field(..., ge=0)
  quantity: int = Field(..., gt=0)
  variant_id: Optional[str] = None
  promotion_percent: int = Field(0, ge=0, le=100)
  weight_grams: int = Field(0, ge=0)

  @property
  def effective_unit_price(self) -> int:
    return apply_promotion(self.unit_price, self.promotion_percent)

  @property
  def total(self) -> int:
    return self.effective_unit_price * self.quantity


class LineItem(BaseModel):
  """A priced line submitted to the payment gateway."""

  name: str
  unit_amount: int
  quantity: int

  @property
  def amount(self) -> int:
    return self.unit_amount * self.quantity


class OrderRecord(BaseModel):
  """An order as read from the order store."""

  reference: str
  status: OrderStatus
  items: List[OrderItem]
  customer_email: Optional[str] = None
  country: Optional[str] = None
  shipping_cost: Optional[int] = None
  payment_session_id: Optional[str] = None
  payment_snapshot: Optional[List[LineItem]] = None
  created_at: datetime.datetime
  paid_at: Optional[datetime.datetime] = None

  @property
  def subtotal(self) -> int:
    return sum(item.total for item in self.items)

  def is_expired(self, now: datetime.datetime, ttl_minutes: int) -> bool:
    """Whether a pending order never got its shipping confirmed in time."""
    if self.status != OrderStatus.PENDING or self.shipping_cost is not None:
      return False
    return now - self.created_at > datetime.timedelta(minutes=ttl_minutes)


class ShippingBeginRequest(BaseModel):
  items: List[OrderItem] = Field(..., min_length=1)
  country: str = Field("BE", pattern=r"^[A-Z]{2}$")
  customer_email: Optional[str] = None
  order_reference: Optional[str] = None


class ShippingStatusResponse(BaseModel):
  order_reference: str
  shipping_cost: int
  applied_shipping_cost: int
  free_shipping: bool


class CheckoutCreateRequest(BaseModel):
  """Starts payment for a stored order, or for a raw cart."""

  order_reference: Optional[str] = None
  customer_email: Optional[str] = None
  items: Optional[List[OrderItem]] = None
  country: str = Field("BE", pattern=r"^[A-Z]{2}$")
  # Client-side view of the shipping cost; the reconciled value wins.
  shipping_cost: Optional[int] = None


class CheckoutRetryRequest(BaseModel):
  order_reference: str
  customer_email: Optional[str] = None


class PaymentSession(BaseModel):
  id: str
  url: str


class CheckoutSessionResponse(BaseModel):
  order_reference: str
  session_id: str
  redirect_url: str
  line_items: List[Dict[str, Any]]


class OrderSummary(BaseModel):
  reference: str
  status: OrderStatus
  email: Optional[str] = None
  items: List[OrderItem]
  subtotal: int
  shipping_cost: Optional[int] = None
  applied_shipping_cost: int
  total: int
