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

"""Checkout routes for creating hosted payment sessions."""

import dependencies
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from models import CheckoutCreateRequest
from models import CheckoutRetryRequest
from models import CheckoutSessionResponse
from services.checkout_service import CheckoutService

router = APIRouter(prefix="/checkout")


@router.post(
    "/create",
    response_model=CheckoutSessionResponse,
    operation_id="create_checkout",
)
async def create_checkout(
    checkout_req: CheckoutCreateRequest = Body(...),
    checkout_service: CheckoutService = Depends(
        dependencies.get_checkout_service
    ),
) -> CheckoutSessionResponse:
  """Create a payment session and return the gateway redirect URL."""
  return await checkout_service.create_payment_session(checkout_req)


@router.post(
    "/retry",
    response_model=CheckoutSessionResponse,
    operation_id="retry_checkout",
)
async def retry_checkout(
    retry_req: CheckoutRetryRequest = Body(...),
    checkout_service: CheckoutService = Depends(
        dependencies.get_checkout_service
    ),
) -> CheckoutSessionResponse:
  """Create a fresh payment session for an order that is still pending."""
  return await checkout_service.retry_payment_session(retry_req)
