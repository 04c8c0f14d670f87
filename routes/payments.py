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

"""Payment gateway webhook route."""

from typing import Any, Optional

import dependencies
from fastapi import APIRouter
from fastapi import Depends
from fastapi import Header
from fastapi import Request
from services.webhook_service import WebhookService

router = APIRouter(prefix="/payments")


@router.post("/webhook", operation_id="payment_webhook")
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    webhook_service: WebhookService = Depends(
        dependencies.get_webhook_service
    ),
) -> dict[str, Any]:
  """Receives Stripe events. The body is read raw for signature checks."""
  raw_body = await request.body()
  return await webhook_service.handle_event(raw_body, stripe_signature)
