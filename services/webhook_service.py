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

"""Payment webhook handling.

A verified "checkout completed" event marks the order paid and takes the
purchased quantities out of stock. Inventory is best effort per item: the
payment has already been captured, so a failing stock update is logged and
never blocks the order from being marked paid.
"""

import logging
from typing import Any, Dict, Optional

import config
from enums import PaymentEventType
from exceptions import ResourceNotFoundError
import httpx
from models import OrderRecord
from services.order_store import OrderStore
from services.payment_gateway import PaymentGateway
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


def extract_order_reference(event: Dict[str, Any]) -> Optional[str]:
  """Reads the order reference from a checkout session event."""
  session = (event.get("data") or {}).get("object") or {}
  metadata = session.get("metadata") or {}
  return metadata.get("orderReference") or session.get("client_reference_id")


class WebhookService:
  """Service for processing signed payment gateway events."""

  def __init__(
      self,
      order_store: OrderStore,
      payment_gateway: PaymentGateway,
      settings: config.StoreSettings,
  ):
    self.order_store = order_store
    self.payment_gateway = payment_gateway
    self.settings = settings

  async def handle_event(
      self, raw_body: bytes, signature_header: Optional[str]
  ) -> Dict[str, Any]:
    """Verifies and processes a gateway event.

    Args:
      raw_body: The unparsed request body.
      signature_header: The gateway's signature header.

    Returns:
      An acknowledgment for the gateway.

    Raises:
      WebhookSignatureError: If verification fails. Nothing is processed.
    """
    event = self.payment_gateway.verify_event(raw_body, signature_header)
    event_id = event.get("id")
    event_type = event.get("type")

    if event_id and await self.order_store.is_event_processed(event_id):
      logger.info("Ignoring replayed event %s", event_id)
      return {"received": True, "processed": False, "duplicate": True}

    reference = None
    processed = False
    if event_type == PaymentEventType.CHECKOUT_COMPLETED.value:
      reference = extract_order_reference(event)
      await self.order_store.log_request(
          "POST",
          "/payments/webhook",
          reference,
          {"id": event_id, "type": event_type},
      )
      session_id = ((event.get("data") or {}).get("object") or {}).get("id")
      processed = await self._complete_order(reference, session_id)
    else:
      logger.info("Ignoring event type %s", event_type)

    if event_id:
      await self.order_store.record_event(event_id, event_type, reference)
    return {"received": True, "processed": processed}

  async def _complete_order(
      self, reference: Optional[str], session_id: Optional[str] = None
  ) -> bool:
    if not reference:
      logger.warning("Checkout completed event without an order reference")
      return False

    try:
      order = await self.order_store.get_order(reference)
    except ResourceNotFoundError:
      logger.warning("Checkout completed for unknown order %s", reference)
      return False

    # Items are frozen once a session exists, so every session of the order
    # charged the same snapshot.
    if session_id and session_id != order.payment_session_id:
      logger.warning(
          "Order %s paid through earlier session %s (latest: %s)",
          reference,
          session_id,
          order.payment_session_id,
      )

    # Only the call that performs pending -> paid touches inventory.
    if not await self.order_store.mark_paid(reference):
      logger.info("Order %s is already paid", reference)
      return False
    logger.info("Order %s marked as paid", reference)

    await self._decrement_inventory(order)
    await self._notify_order_paid(reference)
    return True

  async def _decrement_inventory(self, order: OrderRecord) -> None:
    for item in order.items:
      if not item.variant_id or item.quantity <= 0:
        continue
      try:
        remaining = await self.order_store.decrement_stock(
            item.variant_id, item.quantity
        )
      except SQLAlchemyError as e:
        logger.error(
            "Failed to update stock for variant %s of order %s: %s",
            item.variant_id,
            order.reference,
            e,
        )
        continue

      if remaining is None:
        logger.warning(
            "No inventory for variant %s of order %s",
            item.variant_id,
            order.reference,
        )
      else:
        logger.info(
            "Stock for variant %s is now %d", item.variant_id, remaining
        )

  async def _notify_order_paid(self, reference: str) -> None:
    """Notifies the configured webhook that an order was paid."""
    webhook_url = self.settings.order_webhook_url
    if not webhook_url:
      return

    order = await self.order_store.get_order(reference)
    payload = {
        "event_type": "order_paid",
        "order": order.model_dump(mode="json"),
    }
    try:
      async with httpx.AsyncClient() as client:
        await client.post(webhook_url, json=payload, timeout=5.0)
    except httpx.HTTPError as e:
      logger.error("Failed to notify webhook at %s: %s", webhook_url, e)
