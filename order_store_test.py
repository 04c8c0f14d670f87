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

"""Tests for the order store against a temporary SQLite database."""

import asyncio
import os
import shutil
import tempfile

from absl.testing import absltest
import db
from enums import OrderStatus
from exceptions import OrderNotModifiableError
from exceptions import ReferenceConflictError
from exceptions import ResourceNotFoundError
from models import LineItem
from models import OrderItem
from services.order_store import OrderStore
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

ITEMS = [OrderItem(title="Vase", unit_price=2000, quantity=2, variant_id="v")]


class OrderStoreTest(absltest.TestCase):

  def setUp(self) -> None:
    super().setUp()
    self.test_dir = tempfile.mkdtemp()
    url = f"sqlite+aiosqlite:///{os.path.join(self.test_dir, 'tx.db')}"
    self.engine = create_async_engine(url, poolclass=NullPool)
    self.session_factory = sessionmaker(
        self.engine, expire_on_commit=False, class_=AsyncSession
    )

    async def init_schema() -> None:
      async with self.engine.begin() as conn:
        await conn.run_sync(db.TransactionBase.metadata.create_all)
      async with self.session_factory() as session:
        session.add(db.Inventory(variant_id="v", quantity=3))
        await session.commit()

    asyncio.run(init_schema())

  def tearDown(self) -> None:
    asyncio.run(self.engine.dispose())
    shutil.rmtree(self.test_dir)
    super().tearDown()

  def _run(self, fn):
    """Runs `fn(store)` with a store bound to a fresh session."""

    async def wrapper():
      async with self.session_factory() as session:
        return await fn(OrderStore(session))

    return asyncio.run(wrapper())

  def test_create_order_is_idempotent_for_same_contents(self) -> None:
    first = self._run(
        lambda s: s.create_order("o1", ITEMS, "a@example.com", "BE")
    )
    second = self._run(
        lambda s: s.create_order("o1", ITEMS, "a@example.com", "BE")
    )
    self.assertEqual(first.reference, second.reference)
    self.assertEqual(second.status, OrderStatus.PENDING)
    self.assertEqual(second.subtotal, 4000)

  def test_create_order_rejects_different_contents(self) -> None:
    self._run(lambda s: s.create_order("o1", ITEMS, "a@example.com"))
    other = [OrderItem(title="Vase", unit_price=2000, quantity=5)]
    with self.assertRaises(ReferenceConflictError):
      self._run(lambda s: s.create_order("o1", other, "a@example.com"))

  def test_get_unknown_order(self) -> None:
    with self.assertRaises(ResourceNotFoundError):
      self._run(lambda s: s.get_order("missing"))

  def test_shipping_cost_last_write_wins(self) -> None:
    self._run(lambda s: s.create_order("o1", ITEMS))
    self._run(lambda s: s.set_shipping_cost("o1", 500, "late@example.com"))
    self._run(lambda s: s.set_shipping_cost("o1", 650))
    order = self._run(lambda s: s.get_order("o1"))
    self.assertEqual(order.shipping_cost, 650)
    self.assertEqual(order.customer_email, "late@example.com")

  def test_mark_paid_transitions_once(self) -> None:
    self._run(lambda s: s.create_order("o1", ITEMS))
    self.assertTrue(self._run(lambda s: s.mark_paid("o1")))
    self.assertFalse(self._run(lambda s: s.mark_paid("o1")))
    self.assertFalse(self._run(lambda s: s.mark_paid("missing")))

    order = self._run(lambda s: s.get_order("o1"))
    self.assertEqual(order.status, OrderStatus.PAID)
    self.assertIsNotNone(order.paid_at)

  def test_paid_order_is_frozen(self) -> None:
    self._run(lambda s: s.create_order("o1", ITEMS))
    self._run(lambda s: s.set_shipping_cost("o1", 500))
    self._run(lambda s: s.mark_paid("o1"))

    with self.assertRaises(OrderNotModifiableError):
      self._run(lambda s: s.set_shipping_cost("o1", 900))
    with self.assertRaises(OrderNotModifiableError):
      self._run(lambda s: s.replace_items("o1", ITEMS, None, "BE"))
    self.assertEqual(self._run(lambda s: s.get_order("o1")).shipping_cost, 500)

  def test_items_are_frozen_after_payment_session(self) -> None:
    self._run(lambda s: s.create_order("o1", ITEMS, "a@example.com"))
    snapshot = [LineItem(name="Vase", unit_amount=2000, quantity=2)]
    self._run(
        lambda s: s.save_payment_session(
            "o1", "cs_1", snapshot, "a@example.com"
        )
    )

    more = [OrderItem(title="Vase", unit_price=2000, quantity=5)]
    with self.assertRaises(OrderNotModifiableError):
      self._run(lambda s: s.replace_items("o1", more, None, "BE"))

    order = self._run(lambda s: s.get_order("o1"))
    self.assertEqual(order.items, ITEMS)
    self.assertEqual(order.payment_snapshot, snapshot)

  def test_replace_items_before_payment_session(self) -> None:
    self._run(lambda s: s.create_order("o1", ITEMS))
    self._run(lambda s: s.set_shipping_cost("o1", 500))
    more = [OrderItem(title="Vase", unit_price=2000, quantity=5)]
    order = self._run(lambda s: s.replace_items("o1", more, None, "NL"))
    self.assertEqual(order.items, more)
    self.assertIsNone(order.shipping_cost)
    self.assertEqual(order.country, "NL")

  def test_decrement_stock_clamps_at_zero(self) -> None:
    self.assertEqual(self._run(lambda s: s.decrement_stock("v", 2)), 1)
    self.assertEqual(self._run(lambda s: s.decrement_stock("v", 5)), 0)
    self.assertIsNone(self._run(lambda s: s.decrement_stock("unknown", 1)))

  def test_record_event_tolerates_duplicates(self) -> None:
    event_type = "checkout.session.completed"
    record = lambda s: s.record_event("evt_1", event_type, "o1")
    self._run(record)
    self._run(record)
    self.assertTrue(self._run(lambda s: s.is_event_processed("evt_1")))
    self.assertFalse(self._run(lambda s: s.is_event_processed("evt_2")))


if __name__ == "__main__":
  absltest.main()
