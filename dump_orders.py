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

"""Utility script to dump stored orders.

This script reads from the configured transactions SQLite database and prints
a summary of all stored orders, including their status, shipping cost and
line items. It is useful for debugging and verifying the state of the server.

Usage:
  uv run dump_orders.py --transactions_db_path=... [--status=pending]
"""

import asyncio
import sys
from absl import app as absl_app
from absl import flags
import db
from models import format_amount
from models import OrderItem
from sqlalchemy import select

FLAGS = flags.FLAGS
flags.DEFINE_string("transactions_db_path", None, "Path to transactions DB")
flags.DEFINE_enum(
    "status", None, ["pending", "paid"], "Only show orders in this state"
)


async def dump_orders():
  """Queries the database and prints all orders."""
  if not FLAGS.transactions_db_path:
    print("Error: --transactions_db_path is required.")
    sys.exit(1)

  engine, session_factory = await db.open_database(
      FLAGS.transactions_db_path, db.TransactionBase
  )

  async with session_factory() as session:
    stmt = select(db.Order).order_by(db.Order.created_at)
    if FLAGS.status:
      stmt = stmt.where(db.Order.status == FLAGS.status)
    orders = (await session.execute(stmt)).scalars().all()

    if not orders:
      print("No orders found.")
      return

    for order in orders:
      shipping = (
          format_amount(order.shipping_cost)
          if order.shipping_cost is not None
          else "not confirmed"
      )
      print(f"Order: {order.reference} [{order.status}]")
      print(f"  Email: {order.customer_email or '-'}  Country: {order.country}")
      print(f"  Shipping: {shipping}")
      for data in order.items or []:
        item = OrderItem(**data)
        promo = (
            f" (-{item.promotion_percent}%)" if item.promotion_percent else ""
        )
        print(
            f"  - {item.title} x{item.quantity} @"
            f" {format_amount(item.effective_unit_price)}{promo} ="
            f" {format_amount(item.total)}"
        )
      print("-" * 60)

  await engine.dispose()


def main(argv):
  """Main entry point for the order dump script."""
  del argv
  asyncio.run(dump_orders())


if __name__ == "__main__":
  absl_app.run(main)
