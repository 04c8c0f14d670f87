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

"""Database management and persistence layer for the storefront server.

This module provides the schema definitions, database session management, and
asynchronous data access helpers used by the server. It utilizes SQLAlchemy with
SQLite (via aiosqlite) and separates the product catalog from the
transactional data (inventory, orders, processed payment events).

Key features include:
- `open_database` opens each SQLite file in Write-Ahead Logging mode so the
  carrier callback, the payment webhook and the storefront can write
  concurrently; `DatabaseManager` keeps both engines for the server.
- Atomic single-row updates for stock decrements and the pending -> paid
  transition, so concurrent requests never oversell or double-process.
"""

import datetime
import logging
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Tuple

from enums import OrderStatus
from sqlalchemy import case
from sqlalchemy import Column
from sqlalchemy import Integer
from sqlalchemy import JSON
from sqlalchemy import select
from sqlalchemy import String
from sqlalchemy import text
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

ProductBase = declarative_base()
TransactionBase = declarative_base()


def utcnow() -> datetime.datetime:
  return datetime.datetime.now(datetime.timezone.utc)


async def open_database(
    path: str, base: Any
) -> Tuple[AsyncEngine, sessionmaker]:
  """Opens a SQLite database in WAL mode and creates the tables of `base`.

  Args:
    path: Path of the SQLite file.
    base: Declarative base whose tables live in this database.

  Returns:
    The engine and a session factory bound to it.
  """
  engine = create_async_engine(f"sqlite+aiosqlite:///{path}", echo=False)
  async with engine.connect() as conn:
    await conn.execute(text("PRAGMA journal_mode=WAL"))
  async with engine.begin() as conn:
    await conn.run_sync(base.metadata.create_all)
  session_factory = sessionmaker(
      engine, expire_on_commit=False, class_=AsyncSession
  )
  return engine, session_factory


class DatabaseManager:
  """Holds the catalog and transactions engines for the server's lifetime."""

  def __init__(self) -> None:
    self.products_engine: Optional[AsyncEngine] = None
    self.transactions_engine: Optional[AsyncEngine] = None
    self.products_session_factory: Optional[sessionmaker] = None
    self.transactions_session_factory: Optional[sessionmaker] = None

  async def init_dbs(self, products_path: str, transactions_path: str) -> None:
    self.products_engine, self.products_session_factory = await open_database(
        products_path, ProductBase
    )
    (
        self.transactions_engine,
        self.transactions_session_factory,
    ) = await open_database(transactions_path, TransactionBase)
    logger.info(
        "Opened databases %s and %s", products_path, transactions_path
    )

  async def close(self) -> None:
    for engine in (self.products_engine, self.transactions_engine):
      if engine:
        await engine.dispose()
    self.products_engine = self.transactions_engine = None


# Initialized by the server lifespan or by a script
manager = DatabaseManager()


class Product(ProductBase):
  __tablename__ = "products"

  id = Column(String, primary_key=True)
  title = Column(String)
  price = Column(Integer)  # Price in cents
  image_url = Column(String, nullable=True)


class ProductVariant(ProductBase):
  __tablename__ = "product_variants"

  id = Column(String, primary_key=True)
  product_id = Column(String, index=True)
  size = Column(String, nullable=True)
  promotion = Column(Integer, default=0)  # Percentage, e.g. 10
  weight_grams = Column(Integer, default=0)


class Inventory(TransactionBase):
  __tablename__ = "inventory"

  variant_id = Column(String, primary_key=True)
  quantity = Column(Integer, default=0)


class Order(TransactionBase):
  __tablename__ = "orders"

  reference = Column(String, primary_key=True)
  status = Column(String, default=OrderStatus.PENDING.value)
  customer_email = Column(String, nullable=True)
  country = Column(String, nullable=True)
  items = Column(JSON)
  shipping_cost = Column(Integer, nullable=True)  # In cents
  payment_session_id = Column(String, nullable=True)
  payment_snapshot = Column(JSON, nullable=True)
  created_at = Column(String)
  paid_at = Column(String, nullable=True)


class ProcessedEvent(TransactionBase):
  __tablename__ = "processed_events"

  event_id = Column(String, primary_key=True)
  event_type = Column(String)
  order_reference = Column(String, nullable=True)
  processed_at = Column(String)


class RequestLog(TransactionBase):
  __tablename__ = "request_logs"

  id = Column(Integer, primary_key=True, autoincrement=True)
  timestamp = Column(String)
  method = Column(String)
  url = Column(String)
  order_reference = Column(String, nullable=True)
  payload = Column(JSON, nullable=True)


# --- Data Access Helpers ---


async def get_variants(
    session: AsyncSession, variant_ids: Iterable[str]
) -> Dict[str, ProductVariant]:
  """Retrieves multiple variants by ID in a single query.

  Args:
    session: The products database session.
    variant_ids: The variant IDs to look up.

  Returns:
    A mapping of variant ID to ProductVariant for the IDs that exist.
  """
  ids = list(set(variant_ids))
  if not ids:
    return {}
  result = await session.execute(
      select(ProductVariant).where(ProductVariant.id.in_(ids))
  )
  return {v.id: v for v in result.scalars().all()}


async def get_inventory(
    session: AsyncSession, variant_id: str
) -> Optional[int]:
  """Retrieves the inventory quantity for a variant."""
  result = await session.execute(
      select(Inventory.quantity).where(Inventory.variant_id == variant_id)
  )
  return result.scalar_one_or_none()


async def decrement_stock(
    session: AsyncSession, variant_id: str, quantity: int
) -> Optional[int]:
  """Atomically decrements inventory, clamping at zero.

  The decrement is a single conditional UPDATE so concurrent purchases of the
  same variant cannot interleave between a read and a write.

  Args:
    session: The transactions database session.
    variant_id: The variant whose stock is decremented.
    quantity: The purchased quantity.

  Returns:
    The new quantity, or None if the variant has no inventory row.
  """
  stmt = (
      update(Inventory)
      .where(Inventory.variant_id == variant_id)
      .values(
          quantity=case(
              (Inventory.quantity >= quantity, Inventory.quantity - quantity),
              else_=0,
          )
      )
  )
  result = await session.execute(stmt)
  if result.rowcount == 0:
    return None
  return await get_inventory(session, variant_id)


async def get_order(session: AsyncSession, reference: str) -> Optional[Order]:
  """Retrieves an order row by reference."""
  return await session.get(Order, reference)


async def insert_order(
    session: AsyncSession,
    reference: str,
    items: List[Dict[str, Any]],
    customer_email: Optional[str],
    country: Optional[str],
) -> Order:
  """Adds a new pending order to the session."""
  order = Order(
      reference=reference,
      status=OrderStatus.PENDING.value,
      customer_email=customer_email,
      country=country,
      items=items,
      shipping_cost=None,
      created_at=utcnow().isoformat(),
  )
  session.add(order)
  return order


async def set_shipping_cost(
    session: AsyncSession, reference: str, shipping_cost: int
) -> bool:
  """Overwrites the shipping cost of a pending order."""
  result = await session.execute(
      update(Order)
      .where(Order.reference == reference)
      .where(Order.status == OrderStatus.PENDING.value)
      .values(shipping_cost=shipping_cost)
  )
  return result.rowcount > 0


async def mark_paid(session: AsyncSession, reference: str) -> bool:
  """Transitions an order from pending to paid.

  Returns:
    True if this call performed the transition, False if the order was
    already paid or does not exist.
  """
  result = await session.execute(
      update(Order)
      .where(Order.reference == reference)
      .where(Order.status == OrderStatus.PENDING.value)
      .values(status=OrderStatus.PAID.value, paid_at=utcnow().isoformat())
  )
  return result.rowcount > 0


async def get_processed_event(
    session: AsyncSession, event_id: str
) -> Optional[ProcessedEvent]:
  """Retrieves a processed payment event by gateway event ID."""
  return await session.get(ProcessedEvent, event_id)


async def save_processed_event(
    session: AsyncSession,
    event_id: str,
    event_type: str,
    order_reference: Optional[str],
) -> None:
  """Records a payment event as processed."""
  session.add(
      ProcessedEvent(
          event_id=event_id,
          event_type=event_type,
          order_reference=order_reference,
          processed_at=utcnow().isoformat(),
      )
  )


async def log_request(
    session: AsyncSession,
    method: str,
    url: str,
    order_reference: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
  """Logs an HTTP request to the database."""
  log_entry = RequestLog(
      timestamp=utcnow().isoformat(),
      method=method,
      url=url,
      order_reference=order_reference,
      payload=payload,
  )
  session.add(log_entry)
