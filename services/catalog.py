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

"""Catalog lookups applied to incoming cart items."""

from typing import List

import db
from exceptions import InvalidRequestError
from models import OrderItem
from sqlalchemy.ext.asyncio import AsyncSession


async def resolve_items(
    session: AsyncSession, items: List[OrderItem]
) -> List[OrderItem]:
  """Applies the catalog's promotion and weight to items with a variant.

  The catalog is authoritative for both values; items without a variant keep
  what the client sent.

  Raises:
    InvalidRequestError: If an item references an unknown variant.
  """
  variants = await db.get_variants(
      session, [item.variant_id for item in items if item.variant_id]
  )
  resolved = []
  for item in items:
    if not item.variant_id:
      resolved.append(item)
      continue
    variant = variants.get(item.variant_id)
    if not variant:
      raise InvalidRequestError(f"Variant {item.variant_id} not found")
    resolved.append(
        item.model_copy(
            update={
                "promotion_percent": variant.promotion or 0,
                "weight_grams": variant.weight_grams or 0,
            }
        )
    )
  return resolved
