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

"""Custom exceptions for the storefront order server."""


class StorefrontError(Exception):
  """Base class for all storefront exceptions."""

  def __init__(
      self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500
  ):
    self.message = message
    self.code = code
    self.status_code = status_code
    super().__init__(self.message)


class InvalidRequestError(StorefrontError):
  """Raised when the request is invalid (e.g. missing fields)."""

  def __init__(self, message: str):
    super().__init__(message, code="INVALID_REQUEST", status_code=400)


class ResourceNotFoundError(StorefrontError):
  """Raised when a requested resource is not found."""

  def __init__(self, message: str):
    super().__init__(message, code="RESOURCE_NOT_FOUND", status_code=404)


class ShippingNotConfirmedError(StorefrontError):
  """Raised when the carrier has not reported a shipping cost yet."""

  def __init__(self, message: str):
    super().__init__(message, code="SHIPPING_NOT_CONFIRMED", status_code=409)


class OrderNotModifiableError(StorefrontError):
  """Raised when attempting to modify an order in a terminal state."""

  def __init__(self, message: str):
    super().__init__(message, code="ORDER_NOT_MODIFIABLE", status_code=409)


class ReferenceConflictError(StorefrontError):
  """Raised when an order reference is reused with different contents."""

  def __init__(self, message: str):
    super().__init__(message, code="REFERENCE_CONFLICT", status_code=409)


class OutOfStockError(StorefrontError):
  """Raised when there is insufficient inventory for an item."""

  def __init__(self, message: str):
    super().__init__(message, code="OUT_OF_STOCK", status_code=409)


class OrderExpiredError(StorefrontError):
  """Raised when a pending order was never confirmed within its lifetime."""

  def __init__(self, message: str):
    super().__init__(message, code="ORDER_EXPIRED", status_code=410)


class PaymentSessionError(StorefrontError):
  """Raised when the payment gateway cannot create a hosted session."""

  def __init__(self, message: str = "Payment session creation failed"):
    super().__init__(message, code="PAYMENT_SESSION_FAILED", status_code=502)


class WebhookSignatureError(StorefrontError):
  """Raised when a payment gateway event fails signature verification."""

  def __init__(self, message: str):
    super().__init__(message, code="INVALID_SIGNATURE", status_code=400)
