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

"""Checksum signing for the BPOST Shipping Manager hosted form.

BPOST recomputes the same digest on its side to authenticate the request, so
the construction must match exactly: the present fields sorted by name, joined
as `name=value` pairs with `&`, followed by `&` and the shared passphrase, then
hashed with SHA-256 and hex encoded.
"""

import hashlib
from typing import Mapping, Optional

from exceptions import InvalidRequestError

MANDATORY_FIELDS = ("accountId", "action", "customerCountry", "orderReference")

OPTIONAL_FIELDS = (
    "costCenter",
    "orderWeight",
    "deliveryMethodOverrides",
    "extraSecure",
)


def signed_fields(fields: Mapping[str, Optional[object]]) -> dict[str, str]:
  """Returns the fields that participate in the checksum, as strings.

  Absent optional fields (None or empty) are dropped rather than signed as
  empty strings.

  Raises:
    InvalidRequestError: If a mandatory field is missing or empty.
  """
  missing = [
      name
      for name in MANDATORY_FIELDS
      if fields.get(name) is None or str(fields.get(name)) == ""
  ]
  if missing:
    raise InvalidRequestError(
        f"Missing mandatory checksum fields: {', '.join(missing)}"
    )

  result = {}
  for name, value in fields.items():
    if value is None or str(value) == "":
      continue
    result[name] = str(value)
  return result


def sign(fields: Mapping[str, Optional[object]], passphrase: str) -> str:
  """Computes the hex SHA-256 checksum of the given fields."""
  present = signed_fields(fields)
  concatenated = "&".join(
      f"{name}={present[name]}" for name in sorted(present)
  )
  concatenated += f"&{passphrase}"
  return hashlib.sha256(concatenated.encode("utf-8")).hexdigest()
