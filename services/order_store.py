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

"""Order store backed by the transactions database.

The services depend on this class rather than on the database module so the
storage can be swapped or faked. Every mutation is a single-row write that is
committed on its own.
"""

import datetime
import logging
from typing import List, Optional

import db
from enums import OrderStatus
from exceptions import OrderNotModifiableError
from exceptions import ReferenceConflictError
from exceptions import ResourceNotFoundError
from models import LineItem
from models import OrderItem
from models import OrderRecord
from sqlalchemy.exc import IntegrityError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def _to_record(row: db.Order) -> OrderRecord:
  return OrderRecord(
      reference=row.reference,
      status=OrderStatus(row.status),
      items=row.items or [],
      customer_email=row.customer_email,
      country=row.country,
      shipping_cost=row.shipping_cost,
      payment_session_id=row.payment_session_id,
      payment_snapshot=row.payment_snapshot,
      created_at=datetime.datetime.fromisoformat(row.created_at),
      paid_at=(
          datetime.datetime.fromisoformat(row.paid_at) if row.paid_at else None
      ),
  )


class OrderStore:
  """Persistent record of orders, inventory and processed payment events."""

  def __init__(self, session: AsyncSession):
    self.session = session

  async def create_order(
      self,
      reference: str,
      items: List[OrderItem],
      customer_email: Optional[str] = None,
      country: Optional[str] = None,
  ) -> OrderRecord:
    """Creates a pending order.

    Creating the same reference twice with the same contents returns the
    stored order; different contents are rejected.
    """
    item_data = [item.model_dump() for item in items]
    existing = await db.get_order(self.session, reference)
    if existing:
      if existing.items == item_data and existing.customer_email == (
          customer_email
      ):
        return _to_record(existing)
      raise ReferenceConflictError(
          f"Order reference {reference} already exists"
      )

    row = await db.insert_order(
        self.session, reference, item_data, customer_email, country
    )
    await self.session.commit()
    logger.info("Created order %s with %d items", reference, len(items))
    return _to_record(row)

  async def replace_items(
      self,
      reference: str,
      items: List[OrderItem],
      customer_email: Optional[str],
      country: Optional[str],
  ) -> OrderRecord:
    """Replaces the cart of a pending order and clears its shipping cost.

    Raises:
      OrderNotModifiableError: If the order is paid or a payment session was
        already created for its current contents.
    """
    row = await self._get_row(reference)
    self._ensure_pending(row, "update")
    if row.payment_session_id:
      raise OrderNotModifiableError(
          f"Cannot update order {reference}: payment session"
          f" {row.payment_session_id} was already created"
      )
    row.items = [item.model_dump() for item in items]
    row.country = country
    if customer_email:
      row.customer_email = customer_email
    row.shipping_cost = None
    row.created_at = db.utcnow().isoformat()
    await self.session.commit()
    return _to_record(row)

  async def get_order(self, reference: str) -> OrderRecord:
    """Retrieves an order or raises ResourceNotFoundError."""
    return _to_record(await self._get_row(reference))

  async def set_shipping_cost(
      self,
      reference: str,
      shipping_cost: int,
      customer_email: Optional[str] = None,
  ) -> None:
    """Stores the carrier's shipping cost (in cents), last write wins."""
    row = await self._get_row(reference)
    self._ensure_pending(row, "update shipping for")
    if not await db.set_shipping_cost(self.session, reference, shipping_cost):
      # Paid between the read and the conditional write.
      await self.session.rollback()
      raise OrderNotModifiableError(
          f"Cannot update shipping for order {reference} in state 'paid'"
      )
    if customer_email and not row.customer_email:
      row.customer_email = customer_email
    await self.session.commit()

  async def save_payment_session(
      self,
      reference: str,
      session_id: str,
      snapshot: List[LineItem],
      customer_email: str,
  ) -> None:
    """Records the gateway session and the line items committed to it."""
    row = await self._get_row(reference)
    row.payment_session_id = session_id
    row.payment_snapshot = [li.model_dump() for li in snapshot]
    row.customer_email = customer_email
    await self.session.commit()

  async def mark_paid(self, reference: str) -> bool:
    """Marks the order paid. Safe to call repeatedly.

    Returns:
      True if this call moved the order from pending to paid.
    """
    transitioned = await db.mark_paid(self.session, reference)
    await self.session.commit()
    return transitioned

  async def get_stock(self, variant_id: str) -> Optional[int]:
    return await db.get_inventory(self.session, variant_id)

  async def decrement_stock(
      self, variant_id: str, quantity: int
  ) -> Optional[int]:
    """Decrements a variant's stock, never below zero."""
    try:
      new_quantity = await db.decrement_stock(
          self.session, variant_id, quantity
      )
      await self.session.commit()
    except SQLAlchemyError:
      await self.session.rollback()
      raise
    return new_quantity

  async def is_event_processed(self, event_id: str) -> bool:
    return await db.get_processed_event(self.session, event_id) is not None

  async def record_event(
      self, event_id: str, event_type: str, reference: Optional[str]
  ) -> None:
    await db.save_processed_event(self.session, event_id, event_type, reference)
    try:
      await self.session.commit()
    except IntegrityError:
      # Recorded concurrently by another delivery of the same event.
      await self.session.rollback()
      logger.info("Event %s was already recorded", event_id)

  async def log_request(
      self,
      method: str,
      url: str,
      reference: Optional[str] = None,
      payload: Optional[dict] = None,
  ) -> None:
    await db.log_request(self.session, method, url, reference, payload)
    await self.session.commit()

  async def _get_row(self, reference: str) -> db.Order:
    row = await db.get_order(self.session, reference)
    if not row:
      raise ResourceNotFoundError(f"Order {reference} not found")
    return row

  def _ensure_pending(self, row: db.Order, action: str) -> None:
    if row.status != OrderStatus.PENDING.value:
      raise OrderNotModifiableError(
          f"Cannot {action} order {row.reference} in state '{row.status}'"
      )
