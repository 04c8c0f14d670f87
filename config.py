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

"""Shared configuration and startup logic for the storefront server."""

import contextlib
import os
from typing import Optional

from absl import flags
import db
from dotenv import load_dotenv
from fastapi import FastAPI
from pydantic import BaseModel
from pydantic import ConfigDict

load_dotenv()

FLAGS = flags.FLAGS

SERVER_VERSION = "1.0.0"

BPOST_FORM_URL = "https://shippingmanager.bpost.be/ShmFrontEnd/start"

# Define flags only if they haven't been defined yet (to avoid duplicates
# during tests or re-imports)
try:
  flags.DEFINE_string("products_db_path", None, "Path to products DB")
  flags.DEFINE_string("transactions_db_path", None, "Path to transactions DB")
  flags.DEFINE_integer("port", None, "Port to run the server on")
  flags.DEFINE_string(
      "bpost_account_id",
      os.environ.get("BPOST_ACCOUNT_ID", "042599"),
      "BPOST Shipping Manager account identifier",
  )
  flags.DEFINE_string(
      "bpost_passphrase",
      os.environ.get("BPOST_PASSPHRASE"),
      "Passphrase shared with BPOST for checksum signing",
  )
  flags.DEFINE_string(
      "bpost_cost_center",
      os.environ.get("BPOST_COST_CENTER"),
      "Optional BPOST cost center",
  )
  flags.DEFINE_string(
      "bpost_form_url",
      os.environ.get("BPOST_FORM_URL", BPOST_FORM_URL),
      "Action URL of the hosted BPOST Shipping Manager form",
  )
  flags.DEFINE_string(
      "stripe_secret_key",
      os.environ.get("STRIPE_SECRET_KEY"),
      "Stripe secret API key",
  )
  flags.DEFINE_string(
      "stripe_webhook_secret",
      os.environ.get("STRIPE_WEBHOOK_SECRET"),
      "Stripe webhook signing secret",
  )
  flags.DEFINE_string(
      "public_base_url",
      os.environ.get("PUBLIC_BASE_URL", "http://localhost:4242"),
      "Public URL of this server, used for carrier callbacks",
  )
  flags.DEFINE_string(
      "client_url",
      os.environ.get("CLIENT_URL", "http://localhost:5173"),
      "URL of the storefront front end, used for redirects",
  )
  flags.DEFINE_string("currency", "eur", "ISO currency code for payments")
  flags.DEFINE_integer(
      "free_shipping_threshold",
      7500,
      "Order subtotal in cents from which shipping is free",
  )
  flags.DEFINE_integer(
      "pending_order_ttl_minutes",
      60,
      "Minutes after which an order without confirmed shipping expires",
  )
  flags.DEFINE_string(
      "order_webhook_url",
      os.environ.get("ORDER_WEBHOOK_URL"),
      "Optional URL notified when an order is paid",
  )
except flags.DuplicateFlagError:
  pass


class StoreSettings(BaseModel):
  """Runtime settings handed to the services."""

  model_config = ConfigDict(frozen=True)

  bpost_account_id: str
  bpost_passphrase: str
  bpost_cost_center: Optional[str] = None
  bpost_form_url: str = BPOST_FORM_URL
  stripe_secret_key: Optional[str] = None
  stripe_webhook_secret: Optional[str] = None
  public_base_url: str = "http://localhost:4242"
  client_url: str = "http://localhost:5173"
  currency: str = "eur"
  free_shipping_threshold: int = 7500
  pending_order_ttl_minutes: int = 60
  order_webhook_url: Optional[str] = None


def get_settings() -> StoreSettings:
  """Builds the settings from the parsed command-line flags."""
  return StoreSettings(
      bpost_account_id=FLAGS.bpost_account_id,
      bpost_passphrase=FLAGS.bpost_passphrase or "",
      bpost_cost_center=FLAGS.bpost_cost_center,
      bpost_form_url=FLAGS.bpost_form_url,
      stripe_secret_key=FLAGS.stripe_secret_key,
      stripe_webhook_secret=FLAGS.stripe_webhook_secret,
      public_base_url=FLAGS.public_base_url.rstrip("/"),
      client_url=FLAGS.client_url.rstrip("/"),
      currency=FLAGS.currency,
      free_shipping_threshold=FLAGS.free_shipping_threshold,
      pending_order_ttl_minutes=FLAGS.pending_order_ttl_minutes,
      order_webhook_url=FLAGS.order_webhook_url,
  )


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
  """Shared lifespan manager for initializing databases."""
  del app  # Unused.
  # Under test runners the flags are usually unparsed; tests wire their own DBs
  if (
      FLAGS.is_parsed()
      and FLAGS.products_db_path
      and FLAGS.transactions_db_path
  ):
    await db.manager.init_dbs(
        FLAGS.products_db_path, FLAGS.transactions_db_path
    )
  yield
  await db.manager.close()
