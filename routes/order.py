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

"""Order routes for the storefront server."""

import dependencies
from fastapi import APIRouter
from fastapi import Depends
from fastapi import Path
from models import OrderSummary
from services.checkout_service import CheckoutService

router = APIRouter()


@router.get(
    "/orders/{reference}",
    response_model=OrderSummary,
    operation_id="get_order",
)
async def get_order(
    reference: str = Path(...),
    checkout_service: CheckoutService = Depends(
        dependencies.get_checkout_service
    ),
) -> OrderSummary:
  """Get an order summary by reference."""
  return await checkout_service.get_order_summary(reference)
