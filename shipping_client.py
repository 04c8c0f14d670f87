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

"""Storefront checkout client.

This script walks the checkout the way the storefront front end does:
1. Requesting signed BPOST parameters for a cart.
2. Waiting while the customer picks a delivery method in BPOST's popup, by
   polling the server until the carrier has reported the shipping cost.
3. Creating a payment session and printing the Stripe redirect URL.

Polling is bounded: it gives up after `max_attempts` and stops right away if
the order is unknown or has expired.

Usage:
  uv run shipping_client.py --server_url=http://localhost:4242 \
    --email=customer@example.com
"""

import argparse
import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class ShippingTimeoutError(Exception):
  """Raised when the carrier did not confirm within the polling bound."""


class ShippingUnavailableError(Exception):
  """Raised when the order cannot get a shipping cost (unknown or expired)."""


def begin_shipping(
    client: httpx.Client,
    items: List[Dict[str, Any]],
    country: str,
    customer_email: Optional[str] = None,
) -> Dict[str, str]:
  """Requests the signed BPOST form parameters for a cart."""
  response = client.post(
      "/shipping/begin",
      json={
          "items": items,
          "country": country,
          "customer_email": customer_email,
      },
  )
  response.raise_for_status()
  return response.json()


def poll_shipping_cost(
    client: httpx.Client,
    order_reference: str,
    interval: float = 1.5,
    max_attempts: int = 40,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
  """Polls the shipping status until the carrier has priced the delivery.

  Args:
    client: HTTP client bound to the storefront server.
    order_reference: The order being shipped.
    interval: Seconds between attempts.
    max_attempts: Number of status requests before giving up.
    sleep: Sleep function, replaceable in tests.

  Returns:
    The shipping status response.

  Raises:
    ShippingUnavailableError: If the order is unknown or has expired.
    ShippingTimeoutError: If no cost was reported within the bound.
  """
  for attempt in range(1, max_attempts + 1):
    try:
      response = client.get(
          "/shipping/status", params={"orderReference": order_reference}
      )
    except httpx.TransportError as e:
      logger.warning("Shipping status request failed: %s", e)
      response = None

    if response is not None:
      if response.status_code == 200:
        return response.json()
      if response.status_code in (404, 410):
        raise ShippingUnavailableError(response.json().get("detail"))

    if attempt < max_attempts:
      sleep(interval)

  raise ShippingTimeoutError(
      f"Shipping for order {order_reference} was not confirmed after"
      f" {max_attempts} attempts"
  )


def create_checkout(
    client: httpx.Client, order_reference: str, customer_email: str
) -> Dict[str, Any]:
  """Creates a payment session for a shipped-priced order."""
  response = client.post(
      "/checkout/create",
      json={
          "order_reference": order_reference,
          "customer_email": customer_email,
      },
  )
  response.raise_for_status()
  return response.json()


def main() -> None:
  parser = argparse.ArgumentParser()
  parser.add_argument(
      "--server_url",
      default="http://localhost:4242",
      help="Base URL of the storefront server",
  )
  parser.add_argument("--email", required=True, help="Customer email")
  parser.add_argument("--country", default="BE", help="Destination country")
  parser.add_argument("--interval", type=float, default=1.5)
  parser.add_argument("--max_attempts", type=int, default=200)
  args = parser.parse_args()

  logging.basicConfig(
      level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s"
  )

  items = [{"title": "Vase", "unit_price": 2000, "quantity": 2}]

  with httpx.Client(base_url=args.server_url) as client:
    params = begin_shipping(client, items, args.country, args.email)
    reference = params["orderReference"]
    form_url = params.pop("formUrl")
    logger.info("Order %s created", reference)
    print(f"Submit these fields to {form_url}:")
    print(json.dumps(params, indent=2))

    try:
      status = poll_shipping_cost(
          client,
          reference,
          interval=args.interval,
          max_attempts=args.max_attempts,
      )
    except (ShippingTimeoutError, ShippingUnavailableError) as e:
      logger.error("Delivery was not confirmed: %s", e)
      return

    logger.info(
        "Shipping confirmed: %d cents (charged %d)",
        status["shipping_cost"],
        status["applied_shipping_cost"],
    )
    session = create_checkout(client, reference, args.email)
    print(f"Pay at: {session['redirect_url']}")


if __name__ == "__main__":
  main()
