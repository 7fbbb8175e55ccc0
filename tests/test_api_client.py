"""Tests for the backend REST client: URLs, envelope handling and errors."""

from unittest import mock

import pytest
import requests

from wholesale.services.api_client import WholesaleApi, WholesaleApiError


def _response(status=200, body=None, json_error=False):
    resp = mock.Mock(status_code=status)
    if json_error:
        resp.json.side_effect = ValueError("not json")
    else:
        resp.json.return_value = body
    return resp


@pytest.fixture
def http():
    """Patched ``Session.request``; tests set ``return_value`` / ``side_effect``."""
    with mock.patch.object(requests.Session, "request") as request:
        yield request


@pytest.fixture
def client():
    return WholesaleApi("http://backend.test/", timeout=5, token="secret")


class TestTransport:
    def test_url_includes_base_path(self, http, client):
        http.return_value = _response(body={"success": True, "data": {"fundraisers": []}})
        client.get_fundraisers()
        method, url = http.call_args.args
        assert (method, url) == ("GET", "http://backend.test/wholesale/fundraisers")
        assert http.call_args.kwargs["timeout"] == 5

    def test_bearer_token_header(self, client):
        assert client.session.headers["Authorization"] == "Bearer secret"

    def test_post_sends_json(self, http, client):
        http.return_value = _response(body={"success": True, "data": {"valid": True, "issues": []}})
        assert client.validate_cart([{"item_id": 1}]) == {"valid": True, "issues": []}
        assert http.call_args.kwargs["json"] == {"cart_items": [{"item_id": 1}]}

    def test_empty_cart_validation_is_a_get(self, http, client):
        http.return_value = _response(body={"success": True, "data": {"valid": True}})
        client.validate_cart([])
        assert http.call_args.args[0] == "GET"


class TestErrors:
    def test_http_error_carries_status_and_message(self, http, client):
        http.return_value = _response(404, {"success": False, "message": "Fundraiser not found"})
        with pytest.raises(WholesaleApiError) as exc:
            client.get_fundraiser("nope")
        assert exc.value.status == 404
        assert exc.value.message == "Fundraiser not found"

    def test_nested_error_message(self, http, client):
        http.return_value = _response(422, {"error": {"message": "Bad cart"}})
        with pytest.raises(WholesaleApiError, match="Bad cart"):
            client.validate_cart([{"item_id": 1}])

    def test_success_false_on_200(self, http, client):
        http.return_value = _response(200, {"success": False, "message": "Closed"})
        with pytest.raises(WholesaleApiError, match="Closed"):
            client.health_check()

    def test_non_json_error_body(self, http, client):
        http.return_value = _response(502, json_error=True)
        with pytest.raises(WholesaleApiError, match=r"Request failed \(502\)"):
            client.health_check()

    def test_transport_failure(self, http, client):
        http.side_effect = requests.ConnectionError("refused")
        with pytest.raises(WholesaleApiError) as exc:
            client.get_item(1)
        assert exc.value.status is None


class TestResources:
    def test_fundraiser_with_children(self, http, client):
        http.return_value = _response(
            body={
                "success": True,
                "data": {
                    "fundraiser": {
                        "id": 1,
                        "name": "Spring Sale",
                        "slug": "spring-sale",
                        "participants": [{"id": 7, "name": "Kai"}],
                        "items": [{"id": 102, "name": "Mug", "price": 12.5}],
                    }
                },
            }
        )
        fundraiser = client.get_fundraiser("spring-sale")
        assert fundraiser.slug == "spring-sale"
        assert [p.name for p in fundraiser.participants] == ["Kai"]
        assert fundraiser.items[0].id == 102

    def test_create_order(self, http, client):
        http.return_value = _response(
            201,
            {
                "success": True,
                "data": {"order": {"id": 5, "order_number": "WH-5", "total_cents": 2500}, "test_mode": True},
            },
        )
        order = client.create_order({"order": {}, "cart_items": []})
        assert (order.id, order.order_number, order.total_cents, order.test_mode) == (5, "WH-5", 2500, True)

    def test_create_order_without_order_fails(self, http, client):
        http.return_value = _response(201, {"success": True, "data": {}})
        with pytest.raises(WholesaleApiError, match="Failed to create order"):
            client.create_order({"order": {}, "cart_items": []})

    def test_fundraiser_items(self, http, client):
        http.return_value = _response(body={"success": True, "data": {"items": [{"id": 102, "name": "Mug"}]}})
        assert [i.id for i in client.get_fundraiser_items("spring-sale")] == [102]
        assert http.call_args.args[1] == "http://backend.test/wholesale/fundraisers/spring-sale/items"


class TestAvailability:
    def test_item_availability(self, http, client):
        http.return_value = _response(body={"success": True, "data": {"available": True, "available_quantity": 8}})
        assert client.check_item_availability(102, 3) == {"available": True, "available_quantity": 8}
        assert http.call_args.args == ("POST", "http://backend.test/wholesale/items/102/check_availability")
        assert http.call_args.kwargs["json"] == {"quantity": 3}

    def test_variant_availability_unwraps(self, http, client):
        http.return_value = _response(
            body={"success": True, "data": {"availability": {"available": False, "message": "Only 1 left"}}}
        )
        assert client.check_variant_availability(101, 7, 2) == {"available": False, "message": "Only 1 left"}
        assert http.call_args.args[1] == "http://backend.test/wholesale/items/101/variants/7/check_availability"


class TestOrders:
    ORDER = {"id": 5, "order_number": "WH-5", "status": "pending", "fundraiser": {"id": 1, "name": "Spring Sale"}}

    def test_list(self, http, client):
        http.return_value = _response(body={"success": True, "data": {"orders": [self.ORDER]}})
        orders = client.get_orders()
        assert [(o.id, o.fundraiser_name) for o in orders] == [(5, "Spring Sale")]
        assert http.call_args.args == ("GET", "http://backend.test/wholesale/orders")

    def test_detail(self, http, client):
        http.return_value = _response(body={"success": True, "data": {"order": self.ORDER}})
        order = client.get_order(5)
        assert (order.order_number, order.can_cancel) == ("WH-5", True)
        assert http.call_args.args[1] == "http://backend.test/wholesale/orders/5"

    def test_cancel_is_a_delete(self, http, client):
        http.return_value = _response(body={"success": True, "data": {"order": {**self.ORDER, "status": "cancelled"}}})
        order = client.cancel_order(5)
        assert order.status == "cancelled"
        assert order.status_description == "This order has been cancelled."
        assert http.call_args.args == ("DELETE", "http://backend.test/wholesale/orders/5/cancel")
