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

"""Shipping service for the BPOST Shipping Manager round trip.

The storefront asks for signed form parameters, the customer picks a delivery
method in BPOST's hosted popup, and BPOST calls back with the computed price.
The callback may arrive as GET or POST, so its parameters are merged from the
query string and the body. The storefront polls `get_status` until the cost
is known.
"""

import datetime
import logging
from typing import Any, Mapping, Optional
from urllib.parse import urlencode
import uuid

import config
from exceptions import InvalidRequestError
from exceptions import OrderExpiredError
from exceptions import ShippingNotConfirmedError
from exceptions import StorefrontError
from models import ShippingBeginRequest
from models import ShippingStatusResponse
from services import catalog
from services import checksum
from services.checkout_service import resolve_shipping_cost
from services.order_store import OrderStore
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

START_ACTION = "START"


def merge_callback_params(
    query: Mapping[str, Any], body: Mapping[str, Any]
) -> dict[str, str]:
  """Merges query and body parameters; the body wins on key collision."""
  merged = {k: str(v) for k, v in query.items()}
  merged.update({k: str(v) for k, v in body.items() if v is not None})
  return merged


class ShippingService:
  """Service for the carrier's hosted delivery-method selection."""

  def __init__(
      self,
      order_store: OrderStore,
      products_session: AsyncSession,
      settings: config.StoreSettings,
  ):
    self.order_store = order_store
    self.products_session = products_session
    self.settings = settings

  async def begin(self, req: ShippingBeginRequest) -> dict[str, str]:
    """Creates or updates the order and returns the signed form parameters."""
    if not self.settings.bpost_passphrase:
      logger.error("BPOST passphrase is not configured")
      raise StorefrontError("Shipping provider is not configured")

    items = await catalog.resolve_items(self.products_session, req.items)
    if req.order_reference:
      order = await self.order_store.replace_items(
          req.order_reference, items, req.customer_email, req.country
      )
    else:
      order = await self.order_store.create_order(
          str(uuid.uuid4()), items, req.customer_email, req.country
      )

    weight = sum(item.weight_grams * item.quantity for item in items)
    fields = {
        "accountId": self.settings.bpost_account_id,
        "action": START_ACTION,
        "customerCountry": req.country,
        "orderReference": order.reference,
        "costCenter": self.settings.bpost_cost_center,
        "orderWeight": weight or None,
    }
    params = checksum.signed_fields(fields)
    params["checksum"] = checksum.sign(fields, self.settings.bpost_passphrase)

    # The form action and return URLs are not part of the checksum.
    base = self.settings.public_base_url
    params["formUrl"] = self.settings.bpost_form_url
    params["confirmUrl"] = f"{base}/shipping/confirm"
    params["errorUrl"] = f"{base}/shipping/error"
    params["cancelUrl"] = f"{base}/shipping/cancel"

    logger.info(
        "Prepared BPOST parameters for order %s (%s, %d g)",
        order.reference,
        req.country,
        weight,
    )
    return params

  async def confirm(
      self, params: Mapping[str, str], method: str, url: str
  ) -> tuple[str, int]:
    """Stores the shipping cost reported by the carrier.

    Args:
      params: The merged callback parameters.
      method: The HTTP method of the callback.
      url: The callback path, for the request log.

    Returns:
      The order reference and the stored shipping cost in cents.

    Raises:
      InvalidRequestError: If orderReference or deliveryMethodPriceTotal is
        missing or malformed. The order is left untouched.
    """
    reference = params.get("orderReference")
    await self.order_store.log_request(method, url, reference, dict(params))

    price_total = params.get("deliveryMethodPriceTotal")
    if not reference or price_total in (None, ""):
      raise InvalidRequestError(
          "Missing orderReference or deliveryMethodPriceTotal"
      )
    try:
      shipping_cost = int(price_total)
    except ValueError as e:
      raise InvalidRequestError(
          f"Invalid deliveryMethodPriceTotal: {price_total}"
      ) from e
    if shipping_cost < 0:
      raise InvalidRequestError(
          f"Invalid deliveryMethodPriceTotal: {price_total}"
      )

    await self.order_store.set_shipping_cost(
        reference, shipping_cost, params.get("customerEmail")
    )
    logger.info(
        "BPOST confirmed shipping %d for order %s", shipping_cost, reference
    )
    return reference, shipping_cost

  async def record_callback(
      self, kind: str, params: Mapping[str, str], method: str, url: str
  ) -> str:
    """Logs an error or cancel callback and returns the front-end redirect."""
    reference = params.get("orderReference")
    logger.warning("BPOST %s callback for order %s", kind, reference)
    await self.order_store.log_request(method, url, reference, dict(params))
    query = urlencode({"orderReference": reference}) if reference else ""
    return f"{self.settings.client_url}/{kind}" + (f"?{query}" if query else "")

  async def get_status(
      self, reference: str, now: Optional[datetime.datetime] = None
  ) -> ShippingStatusResponse:
    """Returns the reconciled shipping cost of an order.

    Raises:
      ResourceNotFoundError: If the order does not exist.
      OrderExpiredError: If the order expired before shipping was confirmed.
      ShippingNotConfirmedError: If the carrier has not called back yet.
    """
    order = await self.order_store.get_order(reference)
    if order.shipping_cost is None:
      now = now or datetime.datetime.now(datetime.timezone.utc)
      if order.is_expired(now, self.settings.pending_order_ttl_minutes):
        raise OrderExpiredError(f"Order {reference} has expired")
      raise ShippingNotConfirmedError(
          f"Shipping cost for order {reference} is not yet available"
      )

    applied = resolve_shipping_cost(
        order.subtotal,
        order.shipping_cost,
        self.settings.free_shipping_threshold,
    )
    return ShippingStatusResponse(
        order_reference=reference,
        shipping_cost=order.shipping_cost,
        applied_shipping_cost=applied,
        free_shipping=(
            order.subtotal >= self.settings.free_shipping_threshold
        ),
    )
