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

"""Prints the stock of every variant as CSV.

Usage:
  uv run dump_inventory.py --transactions_db_path=... [--low_stock=3]
"""

import asyncio
import csv
import sys
from absl import app as absl_app
from absl import flags
import db
from sqlalchemy import select

FLAGS = flags.FLAGS
flags.DEFINE_string("transactions_db_path", None, "Path to transactions DB")
flags.DEFINE_integer(
    "low_stock", None, "Only list variants with at most this many units"
)


async def dump_inventory():
  if not FLAGS.transactions_db_path:
    print("Error: --transactions_db_path is required.")
    sys.exit(1)

  engine, session_factory = await db.open_database(
      FLAGS.transactions_db_path, db.TransactionBase
  )
  try:
    async with session_factory() as session:
      stmt = select(db.Inventory).order_by(db.Inventory.variant_id)
      if FLAGS.low_stock is not None:
        stmt = stmt.where(db.Inventory.quantity <= FLAGS.low_stock)
      rows = (await session.execute(stmt)).scalars().all()

    writer = csv.writer(sys.stdout)
    writer.writerow(["variant_id", "quantity"])
    writer.writerows([row.variant_id, row.quantity] for row in rows)
  finally:
    await engine.dispose()


def main(argv):
  del argv
  asyncio.run(dump_inventory())


if __name__ == "__main__":
  absl_app.run(main)
