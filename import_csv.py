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

"""Database initialization script for the storefront server.

This script imports the product catalog, its variants and their inventory from
CSV files into the configured SQLite databases. It clears any existing data in
the 'products', 'product_variants' and 'inventory' tables before populating
them. Orders are never touched.

Usage:
  uv run import_csv.py --products_db_path=... --transactions_db_path=...
  --data_dir=...
"""

import asyncio
import csv
import logging
import os
from absl import app as absl_app
from absl import flags
import db
from db import Inventory
from db import Product
from db import ProductVariant
from sqlalchemy import delete

FLAGS = flags.FLAGS
flags.DEFINE_string("products_db_path", "products.db", "Path to products DB")
flags.DEFINE_string(
    "transactions_db_path", "transactions.db", "Path to transactions DB"
)
flags.DEFINE_string(
    "data_dir",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "data"),
    "Directory containing products.csv, variants.csv and inventory.csv",
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _read_rows(path: str) -> list[dict[str, str]]:
  with open(path, "r", encoding="utf-8") as f:
    return list(csv.DictReader(f))


async def import_csv_data() -> None:
  """Reads CSV files and populates the database."""
  data_dir = FLAGS.data_dir
  # Ensure tables exist
  await db.manager.init_dbs(FLAGS.products_db_path, FLAGS.transactions_db_path)

  try:
    # Import Products and Variants to Products DB
    async with db.manager.products_session_factory() as session:
      logger.info("Clearing existing products and variants...")
      await session.execute(delete(ProductVariant))
      await session.execute(delete(Product))

      logger.info("Importing Products from CSV...")
      session.add_all(
          Product(
              id=row["id"],
              title=row["title"],
              price=int(row["price"]),
              image_url=row.get("image_url") or None,
          )
          for row in _read_rows(os.path.join(data_dir, "products.csv"))
      )

      variants_path = os.path.join(data_dir, "variants.csv")
      if os.path.exists(variants_path):
        logger.info("Importing Variants from CSV...")
        session.add_all(
            ProductVariant(
                id=row["id"],
                product_id=row["product_id"],
                size=row.get("size") or None,
                promotion=int(row.get("promotion") or 0),
                weight_grams=int(row.get("weight_grams") or 0),
            )
            for row in _read_rows(variants_path)
        )

      await session.commit()

    # Import Inventory to Transactions DB
    async with db.manager.transactions_session_factory() as session:
      logger.info("Clearing existing inventory...")
      await session.execute(delete(Inventory))

      logger.info("Importing Inventory from CSV...")
      session.add_all(
          Inventory(
              variant_id=row["variant_id"], quantity=int(row["quantity"])
          )
          for row in _read_rows(os.path.join(data_dir, "inventory.csv"))
      )
      await session.commit()

    logger.info("Database populated from CSVs.")
  finally:
    await db.manager.close()


def main(argv) -> None:
  """Main entry point for the CSV import script."""
  del argv
  asyncio.run(import_csv_data())


if __name__ == "__main__":
  absl_app.run(main)
