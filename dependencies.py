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

"""FastAPI dependencies for the storefront server.

This module contains dependency injection logic for FastAPI endpoints,
including:
- Settings resolution from the command-line flags.
- Database session management (Products and Transactions DBs).
- Service instantiation (OrderStore, ShippingService, CheckoutService,
  WebhookService) and the payment gateway.
"""

from typing import AsyncGenerator

import config
import db
from fastapi import Depends
from services.checkout_service import CheckoutService
from services.order_store import OrderStore
from services.payment_gateway import PaymentGateway
from services.shipping_service import ShippingService
from services.webhook_service import WebhookService
from sqlalchemy.ext.asyncio import AsyncSession


def get_settings() -> config.StoreSettings:
  """Dependency provider for the store settings."""
  return config.get_settings()


async def get_products_db() -> AsyncGenerator[AsyncSession, None]:
  """Dependency provider for Products DB session."""
  async with db.manager.products_session_factory() as session:
    yield session


async def get_transactions_db() -> AsyncGenerator[AsyncSession, None]:
  """Dependency provider for Transactions DB session."""
  async with db.manager.transactions_session_factory() as session:
    yield session


def get_order_store(
    transactions_session: AsyncSession = Depends(get_transactions_db),
) -> OrderStore:
  """Dependency provider for OrderStore."""
  return OrderStore(transactions_session)


def get_payment_gateway(
    settings: config.StoreSettings = Depends(get_settings),
) -> PaymentGateway:
  """Dependency provider for the Stripe gateway."""
  return PaymentGateway(
      settings.stripe_secret_key,
      settings.stripe_webhook_secret,
      settings.currency,
  )


def get_shipping_service(
    order_store: OrderStore = Depends(get_order_store),
    products_session: AsyncSession = Depends(get_products_db),
    settings: config.StoreSettings = Depends(get_settings),
) -> ShippingService:
  """Dependency provider for ShippingService."""
  return ShippingService(order_store, products_session, settings)


def get_checkout_service(
    order_store: OrderStore = Depends(get_order_store),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    products_session: AsyncSession = Depends(get_products_db),
    settings: config.StoreSettings = Depends(get_settings),
) -> CheckoutService:
  """Dependency provider for CheckoutService."""
  return CheckoutService(
      order_store, payment_gateway, products_session, settings
  )


def get_webhook_service(
    order_store: OrderStore = Depends(get_order_store),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    settings: config.StoreSettings = Depends(get_settings),
) -> WebhookService:
  """Dependency provider for WebhookService."""
  return WebhookService(order_store, payment_gateway, settings)
