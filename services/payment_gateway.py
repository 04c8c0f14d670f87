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

"""Stripe payment gateway.

Creates hosted Checkout Sessions and verifies signed webhook events. Errors
coming from Stripe are logged here and re-raised as a generic
`PaymentSessionError` so no gateway detail reaches the client.
"""

import json
import logging
from typing import Any, Dict, List

from exceptions import InvalidRequestError
from exceptions import PaymentSessionError
from exceptions import WebhookSignatureError
from models import LineItem
from models import PaymentSession
import stripe

logger = logging.getLogger(__name__)

# Seconds of clock drift accepted between Stripe's timestamp and ours.
SIGNATURE_TOLERANCE = 300


def to_stripe_line_items(
    line_items: List[LineItem], currency: str
) -> List[Dict[str, Any]]:
  """Converts line items to Stripe's `price_data` line item format."""
  return [
      {
          "price_data": {
              "currency": currency,
              "product_data": {"name": li.name},
              "unit_amount": li.unit_amount,
          },
          "quantity": li.quantity,
      }
      for li in line_items
  ]


class PaymentGateway:
  """Thin wrapper around the Stripe API used by the checkout services."""

  def __init__(
      self,
      secret_key: str | None,
      webhook_secret: str | None,
      currency: str = "eur",
  ):
    self.secret_key = secret_key
    self.webhook_secret = webhook_secret
    self.currency = currency

  async def create_session(
      self,
      order_reference: str,
      customer_email: str,
      line_items: List[LineItem],
      success_url: str,
      cancel_url: str,
  ) -> PaymentSession:
    """Creates a hosted Stripe Checkout Session for the given line items."""
    if not self.secret_key:
      logger.error("Stripe secret key is not configured")
      raise PaymentSessionError()

    try:
      session = await stripe.checkout.Session.create_async(
          api_key=self.secret_key,
          mode="payment",
          payment_method_types=["card"],
          customer_email=customer_email,
          line_items=to_stripe_line_items(line_items, self.currency),
          success_url=success_url,
          cancel_url=cancel_url,
          client_reference_id=order_reference,
          metadata={"orderReference": order_reference},
      )
    except stripe.StripeError as e:
      logger.error(
          "Stripe session creation failed for order %s: %s",
          order_reference,
          e.user_message or type(e).__name__,
      )
      raise PaymentSessionError() from e

    logger.info(
        "Created Stripe session %s for order %s", session.id, order_reference
    )
    return PaymentSession(id=session.id, url=session.url)

  def verify_event(self, payload: bytes, signature_header: str | None) -> Dict:
    """Verifies the Stripe-Signature header over the raw body, then parses it.

    Args:
      payload: The exact request body bytes.
      signature_header: The value of the Stripe-Signature header.

    Returns:
      The decoded event as a dictionary.

    Raises:
      WebhookSignatureError: If the signature does not verify.
      InvalidRequestError: If the verified body is not a JSON object.
    """
    if not self.webhook_secret:
      logger.error("Stripe webhook secret is not configured")
      raise WebhookSignatureError("Webhook signature cannot be verified")
    if not signature_header:
      raise WebhookSignatureError("Missing Stripe-Signature header")

    try:
      body = payload.decode("utf-8")
      stripe.WebhookSignature.verify_header(
          body, signature_header, self.webhook_secret, SIGNATURE_TOLERANCE
      )
    except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
      logger.warning("Stripe webhook signature failure: %s", e)
      raise WebhookSignatureError("Invalid webhook signature") from e

    try:
      event = json.loads(body)
    except json.JSONDecodeError as e:
      raise InvalidRequestError("Invalid webhook payload") from e
    if not isinstance(event, dict):
      raise InvalidRequestError("Invalid webhook payload")
    return event
