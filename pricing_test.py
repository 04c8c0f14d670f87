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

"""Tests for checkout pricing: promotions, free shipping and line items."""

from absl.testing import absltest
from models import apply_promotion
from models import format_amount
from models import OrderItem
from services.checkout_service import build_line_items
from services.checkout_service import resolve_shipping_cost

THRESHOLD = 7500


class PromotionTest(absltest.TestCase):

  def test_rounds_half_up_to_the_cent(self) -> None:
    # 19.99 at 10% is 17.991
    self.assertEqual(apply_promotion(1999, 10), 1799)
    # 19.95 at 10% is 17.955
    self.assertEqual(apply_promotion(1995, 10), 1796)
    # 0.05 at 50% is 0.025
    self.assertEqual(apply_promotion(5, 50), 3)

  def test_no_promotion_keeps_price(self) -> None:
    self.assertEqual(apply_promotion(1999, 0), 1999)

  def test_full_promotion_is_free(self) -> None:
    self.assertEqual(apply_promotion(1999, 100), 0)

  def test_item_total_uses_promoted_unit_price(self) -> None:
    item = OrderItem(
        title="Poster", unit_price=1999, quantity=3, promotion_percent=10
    )
    self.assertEqual(item.effective_unit_price, 1799)
    self.assertEqual(item.total, 5397)

  def test_format_amount(self) -> None:
    self.assertEqual(format_amount(4500), "45.00")
    self.assertEqual(format_amount(5), "0.05")


class ShippingResolutionTest(absltest.TestCase):

  def test_free_at_threshold(self) -> None:
    self.assertEqual(resolve_shipping_cost(THRESHOLD, 500, THRESHOLD), 0)

  def test_charged_one_cent_below_threshold(self) -> None:
    self.assertEqual(resolve_shipping_cost(THRESHOLD - 1, 500, THRESHOLD), 500)

  def test_unknown_cost_is_zero(self) -> None:
    self.assertEqual(resolve_shipping_cost(100, None, THRESHOLD), 0)


class BuildLineItemsTest(absltest.TestCase):

  def test_shipping_appended_below_threshold(self) -> None:
    items = [OrderItem(title="Vase", unit_price=2000, quantity=2)]
    line_items = build_line_items(items, 500, THRESHOLD)
    self.assertEqual(
        [
            (li.name, li.unit_amount, li.quantity, li.amount)
            for li in line_items
        ],
        [("Vase", 2000, 2, 4000), ("Shipping", 500, 1, 500)],
    )
    self.assertEqual(sum(li.amount for li in line_items), 4500)

  def test_no_shipping_line_above_threshold(self) -> None:
    items = [OrderItem(title="Vase", unit_price=2000, quantity=4)]
    line_items = build_line_items(items, 500, THRESHOLD)
    self.assertEqual([li.name for li in line_items], ["Vase"])
    self.assertEqual(line_items[0].amount, 8000)

  def test_threshold_uses_promoted_prices(self) -> None:
    # 4 x 20.00 at 10% is 72.00, below 75.00
    items = [
        OrderItem(
            title="T-shirt", unit_price=2000, quantity=4, promotion_percent=10
        )
    ]
    line_items = build_line_items(items, 650, THRESHOLD)
    self.assertEqual(line_items[0].unit_amount, 1800)
    self.assertEqual(line_items[-1].name, "Shipping")
    self.assertEqual(line_items[-1].amount, 650)

  def test_zero_shipping_not_appended(self) -> None:
    items = [OrderItem(title="Vase", unit_price=2000, quantity=1)]
    line_items = build_line_items(items, 0, THRESHOLD)
    self.assertLen(line_items, 1)


if __name__ == "__main__":
  absltest.main()
