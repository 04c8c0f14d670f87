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

"""Checkout service for turning a shipped-priced order into a payment.

This module provides the pricing rules (per-variant promotions, free shipping
above a threshold) and the `CheckoutService` class, which validates an order
and requests a hosted payment session from the gateway.

Key responsibilities include:
- Building the gateway line items, with shipping as an extra line.
- Refusing to create a session before the carrier has priced shipping.
- Validating inventory before sending the customer to pay.
- Snapshotting the committed line items so a retry pays for the same thing.
"""

import datetime
import logging
from typing import List, Optional
from urllib.parse import urlencode
import uuid

import config
from enums import OrderStatus
from exceptions import InvalidRequestError
from exceptions import OrderExpiredError
from exceptions import OrderNotModifiableError
from exceptions import OutOfStockError
from exceptions import ResourceNotFoundError
from exceptions import ShippingNotConfirmedError
from models import CheckoutCreateRequest
from models import CheckoutRetryRequest
from models import CheckoutSessionResponse
from models import LineItem
from models import OrderItem
from models import OrderRecord
from models import OrderSummary
from services import catalog
from services.order_store import OrderStore
from services.payment_gateway import PaymentGateway
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

SHIPPING_LINE_NAME = "Shipping"


def resolve_shipping_cost(
    subtotal: int, shipping_cost: Optional[int], free_shipping_threshold: int
) -> int:
  """Returns the shipping actually charged for a given subtotal."""
  if subtotal >= free_shipping_threshold:
    return 0
  return shipping_cost or 0


def build_line_items(
    items: List[OrderItem],
    shipping_cost: Optional[int],
    free_shipping_threshold: int,
) -> List[LineItem]:
  """Prices the cart and appends shipping when it is charged.

  Args:
    items: The order's cart lines.
    shipping_cost: The reconciled shipping cost in cents, if any.
    free_shipping_threshold: Subtotal in cents from which shipping is free.

  Returns:
    One line per cart item at its promoted unit price, plus a shipping line
    when the resolved shipping cost is positive.
  """
  line_items = [
      LineItem(
          name=item.title,
          unit_amount=item.effective_unit_price,
          quantity=item.quantity,
      )
      for item in items
  ]
  subtotal = sum(li.amount for li in line_items)
  shipping = resolve_shipping_cost(
      subtotal, shipping_cost, free_shipping_threshold
  )
  if shipping > 0:
    line_items.append(
        LineItem(name=SHIPPING_LINE_NAME, unit_amount=shipping, quantity=1)
    )
  return line_items


class CheckoutService:
  """Service for creating payment sessions and summarizing orders."""

  def __init__(
      self,
      order_store: OrderStore,
      payment_gateway: PaymentGateway,
      products_session: AsyncSession,
      settings: config.StoreSettings,
  ):
    self.order_store = order_store
    self.payment_gateway = payment_gateway
    self.products_session = products_session
    self.settings = settings

  async def create_payment_session(
      self,
      req: CheckoutCreateRequest,
      now: Optional[datetime.datetime] = None,
  ) -> CheckoutSessionResponse:
    """Creates a payment session for a stored order or a raw cart."""
    logger.info("Creating payment session for order %s", req.order_reference)
    order = await self._load_or_create_order(req)

    if req.shipping_cost is not None and req.shipping_cost != (
        order.shipping_cost
    ):
      logger.warning(
          "Ignoring client shipping cost %s for order %s (reconciled: %s)",
          req.shipping_cost,
          order.reference,
          order.shipping_cost,
      )
    return await self._start_session(
        order, req.customer_email, reuse_snapshot=False, now=now
    )

  async def retry_payment_session(
      self,
      req: CheckoutRetryRequest,
      now: Optional[datetime.datetime] = None,
  ) -> CheckoutSessionResponse:
    """Creates a new session for a pending order, reusing its line items."""
    logger.info("Retrying payment session for order %s", req.order_reference)
    order = await self.order_store.get_order(req.order_reference)
    return await self._start_session(
        order, req.customer_email, reuse_snapshot=True, now=now
    )

  async def get_order_summary(self, reference: str) -> OrderSummary:
    """Summarizes an order for the confirmation and retry pages."""
    order = await self.order_store.get_order(reference)
    applied = resolve_shipping_cost(
        order.subtotal,
        order.shipping_cost,
        self.settings.free_shipping_threshold,
    )
    total = order.subtotal + applied
    if order.status == OrderStatus.PAID and order.payment_snapshot:
      total = sum(li.amount for li in order.payment_snapshot)
    return OrderSummary(
        reference=order.reference,
        status=order.status,
        email=order.customer_email,
        items=order.items,
        subtotal=order.subtotal,
        shipping_cost=order.shipping_cost,
        applied_shipping_cost=applied,
        total=total,
    )

  async def _load_or_create_order(
      self, req: CheckoutCreateRequest
  ) -> OrderRecord:
    if req.order_reference:
      try:
        order = await self.order_store.get_order(req.order_reference)
      except ResourceNotFoundError:
        if not req.items:
          raise
      else:
        if req.items:
          logger.info(
              "Order %s already stored; ignoring cart in request",
              order.reference,
          )
        return order

    if not req.items:
      raise InvalidRequestError("Missing required field: order_reference")
    items = await catalog.resolve_items(self.products_session, req.items)
    return await self.order_store.create_order(
        req.order_reference or str(uuid.uuid4()),
        items,
        req.customer_email,
        req.country,
    )

  async def _start_session(
      self,
      order: OrderRecord,
      customer_email: Optional[str],
      reuse_snapshot: bool,
      now: Optional[datetime.datetime] = None,
  ) -> CheckoutSessionResponse:
    if order.status != OrderStatus.PENDING:
      raise OrderNotModifiableError(
          f"Order {order.reference} is already {order.status.value}"
      )

    email = customer_email or order.customer_email
    if not email:
      raise InvalidRequestError("Missing required field: customer_email")

    free_shipping = order.subtotal >= self.settings.free_shipping_threshold
    if order.shipping_cost is None and not free_shipping:
      now = now or datetime.datetime.now(datetime.timezone.utc)
      if order.is_expired(now, self.settings.pending_order_ttl_minutes):
        raise OrderExpiredError(f"Order {order.reference} has expired")
      raise ShippingNotConfirmedError(
          f"Shipping for order {order.reference} has not been confirmed"
      )

    await self._validate_inventory(order)

    if reuse_snapshot and order.payment_snapshot:
      line_items = order.payment_snapshot
    else:
      line_items = build_line_items(
          order.items,
          order.shipping_cost,
          self.settings.free_shipping_threshold,
      )

    query = urlencode({"orderReference": order.reference})
    session = await self.payment_gateway.create_session(
        order_reference=order.reference,
        customer_email=email,
        line_items=line_items,
        success_url=f"{self.settings.client_url}/success?{query}",
        cancel_url=f"{self.settings.client_url}/cancel?{query}",
    )
    await self.order_store.save_payment_session(
        order.reference, session.id, line_items, email
    )

    return CheckoutSessionResponse(
        order_reference=order.reference,
        session_id=session.id,
        redirect_url=session.url,
        line_items=[
            {
                "name": li.name,
                "unit_amount": li.unit_amount,
                "quantity": li.quantity,
                "amount": li.amount,
            }
            for li in line_items
        ],
    )

  async def _validate_inventory(self, order: OrderRecord) -> None:
    """Validates that every variant in the order has sufficient stock."""
    requested: dict[str, int] = {}
    titles: dict[str, str] = {}
    for item in order.items:
      if item.variant_id:
        requested[item.variant_id] = (
            requested.get(item.variant_id, 0) + item.quantity
        )
        titles[item.variant_id] = item.title

    for variant_id, quantity in requested.items():
      available = await self.order_store.get_stock(variant_id)
      if available is None or available < quantity:
        raise OutOfStockError(
            f"Insufficient stock for item {titles[variant_id]}"
            f" ({available or 0} available)"
        )
