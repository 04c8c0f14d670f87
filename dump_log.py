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

"""Utility script to dump carrier and payment callback logs.

Every BPOST confirm, error and cancel callback and every Stripe webhook
delivery is stored in the `request_logs` table of the transactions DB. This
prints them oldest first, optionally with the current state of the order each
one refers to.

Usage:
  uv run dump_log.py --transactions_db_path=... [--show_order]
  [--order_reference=...]
"""

import asyncio
import json
import sys
from absl import app as absl_app
from absl import flags
import db
from sqlalchemy import select

FLAGS = flags.FLAGS
flags.DEFINE_string("transactions_db_path", None, "Path to transactions DB")
flags.DEFINE_bool("show_order", False, "Show correlated order status")
flags.DEFINE_string(
    "order_reference", None, "Only show callbacks for this order"
)


def _print_entry(entry: db.RequestLog, order: db.Order | None) -> None:
  print(f"[{entry.timestamp}] {entry.method} {entry.url}")
  if entry.order_reference:
    print(f"  Order: {entry.order_reference}")
  if order is not None:
    cost = "-" if order.shipping_cost is None else order.shipping_cost
    print(f"  Order state: {order.status}, shipping {cost}")
  if entry.payload:
    print(f"  Payload: {json.dumps(entry.payload, indent=2)}")
  print("-" * 40)


async def dump_logs():
  """Prints the stored callback log."""
  if not FLAGS.transactions_db_path:
    print("Error: --transactions_db_path is required.")
    sys.exit(1)

  engine, session_factory = await db.open_database(
      FLAGS.transactions_db_path, db.TransactionBase
  )
  try:
    async with session_factory() as session:
      stmt = select(db.RequestLog).order_by(db.RequestLog.id)
      if FLAGS.order_reference:
        stmt = stmt.where(
            db.RequestLog.order_reference == FLAGS.order_reference
        )
      entries = (await session.execute(stmt)).scalars().all()
      if not entries:
        print("No request logs found.")
        return

      for entry in entries:
        order = None
        if FLAGS.show_order and entry.order_reference:
          order = await db.get_order(session, entry.order_reference)
        _print_entry(entry, order)
  finally:
    await engine.dispose()


def main(argv):
  del argv
  asyncio.run(dump_logs())


if __name__ == "__main__":
  absl_app.run(main)
