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

"""Enumerations for the storefront order server.

This module defines the standard enums used throughout the server to represent
the state of orders and the payment gateway events the server reacts to.
"""

import enum


class OrderStatus(str, enum.Enum):
  PENDING = "pending"
  PAID = "paid"


class PaymentEventType(str, enum.Enum):
  CHECKOUT_COMPLETED = "checkout.session.completed"
