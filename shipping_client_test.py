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

"""Tests for the storefront checkout client's shipping polling."""

from absl.testing import absltest
import httpx
import shipping_client

STATUS = {
    "order_reference": "o1",
    "shipping_cost": 500,
    "applied_shipping_cost": 500,
    "free_shipping": False,
}


def make_client(responses):
  """Returns a client that replays `responses` for the status endpoint.

  Each entry is either a (status_code, json) pair or an exception instance
  to raise from the transport.
  """
  calls = []

  def handler(request: httpx.Request) -> httpx.Response:
    calls.append(request)
    outcome = responses[min(len(calls), len(responses)) - 1]
    if isinstance(outcome, Exception):
      raise outcome
    status_code, body = outcome
    return httpx.Response(status_code, json=body)

  client = httpx.Client(
      base_url="http://storefront.test", transport=httpx.MockTransport(handler)
  )
  return client, calls


class PollShippingCostTest(absltest.TestCase):

  def setUp(self) -> None:
    super().setUp()
    self.sleeps = []

  def _poll(self, client, max_attempts: int = 5):
    return shipping_client.poll_shipping_cost(
        client,
        "o1",
        interval=0.5,
        max_attempts=max_attempts,
        sleep=self.sleeps.append,
    )

  def test_returns_once_confirmed(self) -> None:
    pending = (409, {"detail": "not yet", "code": "SHIPPING_NOT_CONFIRMED"})
    client, calls = make_client([pending, pending, (200, STATUS)])

    self.assertEqual(self._poll(client), STATUS)
    self.assertLen(calls, 3)
    self.assertEqual(self.sleeps, [0.5, 0.5])
    self.assertEqual(calls[0].url.params["orderReference"], "o1")

  def test_gives_up_after_max_attempts(self) -> None:
    pending = (409, {"detail": "not yet", "code": "SHIPPING_NOT_CONFIRMED"})
    client, calls = make_client([pending])

    with self.assertRaises(shipping_client.ShippingTimeoutError):
      self._poll(client, max_attempts=4)
    self.assertLen(calls, 4)
    self.assertLen(self.sleeps, 3)

  def test_expired_order_stops_polling(self) -> None:
    client, calls = make_client(
        [(410, {"detail": "Order o1 has expired", "code": "ORDER_EXPIRED"})]
    )

    with self.assertRaisesRegex(
        shipping_client.ShippingUnavailableError, "expired"
    ):
      self._poll(client)
    self.assertLen(calls, 1)
    self.assertEmpty(self.sleeps)

  def test_unknown_order_stops_polling(self) -> None:
    client, calls = make_client(
        [(404, {"detail": "Order o1 not found", "code": "RESOURCE_NOT_FOUND"})]
    )

    with self.assertRaises(shipping_client.ShippingUnavailableError):
      self._poll(client)
    self.assertLen(calls, 1)

  def test_transport_errors_are_retried(self) -> None:
    client, calls = make_client(
        [httpx.ConnectError("connection refused"), (200, STATUS)]
    )

    self.assertEqual(self._poll(client), STATUS)
    self.assertLen(calls, 2)


class CheckoutFlowTest(absltest.TestCase):

  def test_begin_and_create_checkout(self) -> None:
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
      requests.append(request)
      if request.url.path == "/shipping/begin":
        return httpx.Response(200, json={"orderReference": "o1"})
      return httpx.Response(
          200, json={"redirect_url": "https://checkout.stripe.test/cs_1"}
      )

    client = httpx.Client(
        base_url="http://storefront.test",
        transport=httpx.MockTransport(handler),
    )
    items = [{"title": "Vase", "unit_price": 2000, "quantity": 1}]

    params = shipping_client.begin_shipping(
        client, items, "BE", "customer@example.com"
    )
    session = shipping_client.create_checkout(
        client, params["orderReference"], "customer@example.com"
    )

    self.assertEqual(
        session["redirect_url"], "https://checkout.stripe.test/cs_1"
    )
    self.assertEqual(
        [r.url.path for r in requests], ["/shipping/begin", "/checkout/create"]
    )

  def test_create_checkout_raises_on_conflict(self) -> None:
    client = httpx.Client(
        base_url="http://storefront.test",
        transport=httpx.MockTransport(
            lambda request: httpx.Response(409, json={"detail": "pending"})
        ),
    )
    with self.assertRaises(httpx.HTTPStatusError):
      shipping_client.create_checkout(client, "o1", "customer@example.com")


if __name__ == "__main__":
  absltest.main()
