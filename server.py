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

"""Storefront order server (Python/FastAPI).

Serves the BPOST shipping round trip, Stripe checkout session creation and
the Stripe webhook that finalizes paid orders.
"""

import logging
import sys
from typing import Sequence

from absl import app as absl_app
import config
from exceptions import StorefrontError
from fastapi import FastAPI
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from routes.checkout import router as checkout_router
from routes.order import router as order_router
from routes.payments import router as payments_router
from routes.shipping import router as shipping_router
import uvicorn

# --- App Setup ---

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Storefront Order Service",
    version=config.SERVER_VERSION,
    description="Orders, BPOST shipping and Stripe payments for the storefront",
    lifespan=config.lifespan,
)

# The storefront front end calls the API from the browser.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StorefrontError)
async def storefront_exception_handler(
    request: Request, exc: StorefrontError
):
  """Handles storefront exceptions and converts them to JSON responses."""
  del request  # Unused.
  return JSONResponse(
      status_code=exc.status_code,
      content={"detail": exc.message, "code": exc.code},
  )


app.include_router(shipping_router)
app.include_router(checkout_router)
app.include_router(payments_router)
app.include_router(order_router)


def main(argv: Sequence[str]) -> None:
  """Main entry point for the storefront server."""
  del argv  # Unused.

  if (
      config.FLAGS.products_db_path is None
      or config.FLAGS.transactions_db_path is None
      or config.FLAGS.port is None
  ):
    logger.error(
        "Both --products_db_path, --transactions_db_path, and --port must be"
        " provided."
    )
    print("\nUsage:")
    print(config.FLAGS.main_module_help())
    sys.exit(1)

  if not config.FLAGS.bpost_passphrase:
    logger.warning("--bpost_passphrase is not set; shipping cannot be signed")
  if not config.FLAGS.stripe_secret_key:
    logger.warning("--stripe_secret_key is not set; payments will fail")

  uvicorn.run(app, host="0.0.0.0", port=config.FLAGS.port)


if __name__ == "__main__":
  absl_app.run(main)
