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

"""Shipping routes: BPOST form parameters, carrier callbacks and polling."""

import html
import logging

import dependencies
from exceptions import InvalidRequestError
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import Query
from fastapi import Request
from fastapi.responses import HTMLResponse
from fastapi.responses import RedirectResponse
from models import format_amount
from models import ShippingBeginRequest
from models import ShippingStatusResponse
from services.shipping_service import merge_callback_params
from services.shipping_service import ShippingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shipping")

_FORM_CONTENT_TYPES = (
    "application/x-www-form-urlencoded",
    "multipart/form-data",
)

_CONFIRM_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Delivery confirmed</title></head>
<body>
<p>Delivery confirmed for order {reference}: {amount} EUR.</p>
<p>You can close this window.</p>
<script>window.close();</script>
</body>
</html>
"""


async def callback_params(request: Request) -> dict[str, str]:
  """Reads carrier callback parameters from the query string and the body."""
  body = {}
  if request.method == "POST":
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
      try:
        data = await request.json()
      except ValueError as e:
        raise InvalidRequestError("Malformed JSON body") from e
      if isinstance(data, dict):
        body = data
    elif content_type.startswith(_FORM_CONTENT_TYPES):
      form = await request.form()
      body = {k: v for k, v in form.items() if isinstance(v, str)}
  return merge_callback_params(request.query_params, body)


@router.post("/begin", operation_id="begin_shipping")
async def begin_shipping(
    shipping_req: ShippingBeginRequest = Body(...),
    shipping_service: ShippingService = Depends(
        dependencies.get_shipping_service
    ),
) -> dict[str, str]:
  """Creates the order and returns the signed BPOST form parameters."""
  return await shipping_service.begin(shipping_req)


@router.api_route(
    "/confirm",
    methods=["GET", "POST"],
    response_class=HTMLResponse,
    operation_id="confirm_shipping",
)
async def confirm_shipping(
    request: Request,
    shipping_service: ShippingService = Depends(
        dependencies.get_shipping_service
    ),
) -> HTMLResponse:
  """Carrier callback carrying the price of the chosen delivery method."""
  params = await callback_params(request)
  reference, shipping_cost = await shipping_service.confirm(
      params, request.method, request.url.path
  )
  return HTMLResponse(
      _CONFIRM_PAGE.format(
          reference=html.escape(reference),
          amount=format_amount(shipping_cost),
      )
  )


@router.api_route(
    "/error", methods=["GET", "POST"], operation_id="shipping_error"
)
async def shipping_error(
    request: Request,
    shipping_service: ShippingService = Depends(
        dependencies.get_shipping_service
    ),
) -> RedirectResponse:
  """Carrier callback when the delivery selection failed."""
  params = await callback_params(request)
  url = await shipping_service.record_callback(
      "error", params, request.method, request.url.path
  )
  return RedirectResponse(url, status_code=303)


@router.api_route(
    "/cancel", methods=["GET", "POST"], operation_id="shipping_cancel"
)
async def shipping_cancel(
    request: Request,
    shipping_service: ShippingService = Depends(
        dependencies.get_shipping_service
    ),
) -> RedirectResponse:
  """Carrier callback when the customer abandoned the delivery selection."""
  params = await callback_params(request)
  url = await shipping_service.record_callback(
      "cancel", params, request.method, request.url.path
  )
  return RedirectResponse(url, status_code=303)


@router.get(
    "/status",
    response_model=ShippingStatusResponse,
    operation_id="get_shipping_status",
)
async def get_shipping_status(
    order_reference: str = Query(..., alias="orderReference"),
    shipping_service: ShippingService = Depends(
        dependencies.get_shipping_service
    ),
) -> ShippingStatusResponse:
  """Returns the reconciled shipping cost, polled by the storefront."""
  return await shipping_service.get_status(order_reference)
