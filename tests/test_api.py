"""Tests for the edge cart routes"""
import httpx
import pytest
from fastapi.testclient import TestClient

from api.index import app
from tests.fake_engine import SESSION_COOKIE, TOKEN_COOKIE, line_id_for, make_cart, make_line


def _assert_totals(cart: dict) -> None:
    for item in cart["items"]:
        assert item["line_total"] == item["price"] * item["quantity"]
    assert cart["subtotal"] == sum(item["line_total"] for item in cart["items"])


def test_health_check(client):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_get_empty_cart_without_cookie(client):
    """No cookie is a new session, not an error"""
    response = client.get("/cart")

    assert response.status_code == 200
    assert response.json() == {"items": [], "subtotal": 0, "currency": "USD"}
    assert response.headers["cache-control"] == "no-store"


def test_new_session_cookies_are_replayed(client):
    """Engine assigns two cookies on a new session; browser gets both"""
    response = client.get("/cart")

    set_cookies = response.headers.get_list("set-cookie")
    assert len(set_cookies) == 2
    assert set_cookies[0].startswith(f"{SESSION_COOKIE}=")
    assert "HttpOnly" in set_cookies[0]
    assert "SameSite=lax" in set_cookies[0]
    assert set_cookies[1].startswith(f"{TOKEN_COOKIE}=")
    assert "Max-Age=7200" in set_cookies[1]


def test_add_then_update_to_zero_empties_cart(client):
    response = client.post("/cart/add", json={"product": {"id": 1, "price": 999}, "quantity": 2})

    assert response.status_code == 200
    cart = response.json()
    assert len(cart["items"]) == 1
    line = cart["items"][0]
    assert line["product_id"] == 1
    assert line["price"] == 999
    assert line["quantity"] == 2
    assert line["line_total"] == 1998
    assert cart["subtotal"] == 1998
    assert cart["currency"] == "USD"

    response = client.put(f"/cart/update/{line['line_id']}", json={"quantity": 0})

    assert response.status_code == 200
    assert response.json() == {"items": [], "subtotal": 0, "currency": "USD"}


def test_fetch_after_add_returns_updated_cart(client, sample_product):
    """Browser stores the cookie from add-item and sends it on the next fetch"""
    add = client.post("/cart/add", json={"product": sample_product, "quantity": 1})
    assert add.status_code == 200
    assert add.headers.get_list("set-cookie")

    response = client.get("/cart")

    assert response.status_code == 200
    cart = response.json()
    assert [item["product_id"] for item in cart["items"]] == [1]
    assert cart["subtotal"] == 999


def test_rotated_cookie_is_used_on_next_request(client, engine_app, sample_product, other_product):
    client.post("/cart/add", json={"product": sample_product, "quantity": 1})
    rotated = client.post("/cart/add", json={"product": other_product, "quantity": 1})

    set_cookies = rotated.headers.get_list("set-cookie")
    assert len(set_cookies) == 1
    new_session = set_cookies[0].split(";")[0]

    client.get("/cart")

    assert new_session in engine_app.state.received_cookies[-1]


def test_cookie_forwarded_verbatim(engine_app, engine_client, use_engine):
    use_engine(engine_client)
    raw_cookie = "ci_session=abc123; theme=dark; cart_token=xyz"

    with TestClient(app) as test_client:
        test_client.get("/cart", headers={"Cookie": raw_cookie})

    assert engine_app.state.received_cookies == [raw_cookie]


def test_add_same_product_twice_merges_into_one_line(client, sample_product):
    client.post("/cart/add", json={"product": sample_product, "quantity": 2})
    response = client.post("/cart/add", json={"product": sample_product, "quantity": 3})

    cart = response.json()
    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 5
    assert cart["items"][0]["line_id"] == line_id_for(1)
    assert cart["subtotal"] == 999 * 5
    _assert_totals(cart)


def test_update_line_quantity(client, sample_product, other_product):
    client.post("/cart/add", json={"product": sample_product, "quantity": 1})
    client.post("/cart/add", json={"product": other_product, "quantity": 1})

    response = client.put(f"/cart/update/{line_id_for(2)}", json={"quantity": 4})

    assert response.status_code == 200
    cart = response.json()
    quantities = {item["product_id"]: item["quantity"] for item in cart["items"]}
    assert quantities == {1: 1, 2: 4}
    assert cart["subtotal"] == 999 + 1999 * 4
    _assert_totals(cart)


def test_update_to_zero_twice_is_a_no_op(client, sample_product, other_product):
    client.post("/cart/add", json={"product": sample_product, "quantity": 1})
    client.post("/cart/add", json={"product": other_product, "quantity": 2})
    line_id = line_id_for(1)

    first = client.put(f"/cart/update/{line_id}", json={"quantity": 0})
    second = client.put(f"/cart/update/{line_id}", json={"quantity": 0})

    assert first.status_code == 200
    assert second.status_code == 200
    assert line_id not in [item["line_id"] for item in second.json()["items"]]
    # Session survived the engine's 404: the other line is still there
    assert second.json() == first.json()
    assert client.get("/cart").json() == first.json()


def test_remove_line(client, sample_product):
    client.post("/cart/add", json={"product": sample_product, "quantity": 2})

    response = client.delete(f"/cart/remove/{line_id_for(1)}")

    assert response.status_code == 200
    assert response.json()["items"] == []
    assert response.json()["subtotal"] == 0


def test_remove_absent_line_returns_cart_unchanged(client, sample_product):
    client.post("/cart/add", json={"product": sample_product, "quantity": 2})

    response = client.delete("/cart/remove/not-in-cart")

    assert response.status_code == 200
    assert [item["quantity"] for item in response.json()["items"]] == [2]


class TestValidation:
    """Validation failures never reach the engine"""

    def test_add_without_product(self, client, engine_app):
        response = client.post("/cart/add", json={"quantity": 1})

        assert response.status_code == 400
        assert response.json() == {"error": {"message": "Product data is required"}}
        assert engine_app.state.received_cookies == []

    def test_add_without_quantity(self, client, sample_product):
        response = client.post("/cart/add", json={"product": sample_product})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Valid quantity is required"

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_add_non_positive_quantity(self, client, sample_product, quantity):
        response = client.post("/cart/add", json={"product": sample_product, "quantity": quantity})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Quantity must be greater than 0"

    def test_add_product_without_id(self, client):
        response = client.post("/cart/add", json={"product": {"price": 100}, "quantity": 1})

        assert response.status_code == 400
        assert "product.id" in response.json()["error"]["message"]

    @pytest.mark.parametrize("quantity", ["2", 1.5, -1, None, True])
    def test_update_invalid_quantity(self, client, engine_app, quantity):
        response = client.put("/cart/update/abc", json={"quantity": quantity})

        assert response.status_code == 400
        assert response.json() == {"error": {"message": "Valid quantity is required"}}
        assert engine_app.state.received_cookies == []

    def test_malformed_json(self, client):
        response = client.post(
            "/cart/add",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": {"message": "Invalid JSON body"}}


class TestCatalogInput:
    """Catalog-shaped input the edge accepts and normalises"""

    def test_fractional_price_is_converted_to_minor_units(self, client):
        response = client.post(
            "/cart/add",
            json={"product": {"id": 3, "title": "Lipstick", "price": 9.99}, "quantity": 2},
        )

        assert response.status_code == 200
        line = response.json()["items"][0]
        assert line["price"] == 999
        assert line["line_total"] == 1998

    def test_whole_float_price_is_minor_units(self, client):
        response = client.post("/cart/add", json={"product": {"id": 3, "price": 999.0}, "quantity": 1})

        assert response.status_code == 200
        assert response.json()["items"][0]["price"] == 999

    def test_product_with_only_id(self, client):
        response = client.post("/cart/add", json={"product": {"id": 4}, "quantity": 1})

        assert response.status_code == 200
        line = response.json()["items"][0]
        assert line["product_id"] == 4
        assert line["price"] == 0

    def test_negative_price_is_rejected(self, client, engine_app):
        response = client.post("/cart/add", json={"product": {"id": 4, "price": -1}, "quantity": 1})

        assert response.status_code == 400
        assert "product.price" in response.json()["error"]["message"]
        assert engine_app.state.received_cookies == []

    def test_whole_float_quantity_on_add(self, client, sample_product):
        response = client.post("/cart/add", json={"product": sample_product, "quantity": 2.0})

        assert response.status_code == 200
        assert response.json()["items"][0]["quantity"] == 2

    def test_fractional_quantity_on_add_is_rejected(self, client, sample_product):
        response = client.post("/cart/add", json={"product": sample_product, "quantity": 1.5})

        assert response.status_code == 400
        assert response.json() == {"error": {"message": "Valid quantity is required"}}

    def test_whole_float_quantity_on_update(self, client, sample_product):
        client.post("/cart/add", json={"product": sample_product, "quantity": 1})

        response = client.put(f"/cart/update/{line_id_for(1)}", json={"quantity": 2.0})

        assert response.status_code == 200
        assert response.json()["items"][0]["quantity"] == 2

    def test_whole_float_zero_removes(self, client, sample_product):
        client.post("/cart/add", json={"product": sample_product, "quantity": 1})

        response = client.put(f"/cart/update/{line_id_for(1)}", json={"quantity": 0.0})

        assert response.status_code == 200
        assert response.json()["items"] == []


class TestUpstreamFailures:
    def test_stock_limit_passes_through_as_422(self, client, other_product):
        response = client.post("/cart/add", json={"product": other_product, "quantity": 11})

        assert response.status_code == 422
        message = response.json()["error"]["message"]
        assert message == "Requested quantity is not available"
        # Session created by the rejected write still reaches the browser
        assert len(response.headers.get_list("set-cookie")) == 2

    def test_update_absent_line_is_404(self, client):
        response = client.put("/cart/update/nope", json={"quantity": 3})

        assert response.status_code == 404
        assert response.json() == {"error": {"message": "Not found"}}

    def test_engine_5xx_is_opaque_500(self, mock_engine, use_engine):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="upstream db pool exhausted at node-7")

        use_engine(mock_engine(handler))
        with TestClient(app) as test_client:
            response = test_client.get("/cart")

        assert response.status_code == 500
        assert response.json() == {"error": {"message": "Failed to fetch cart"}}
        assert "node-7" not in response.text

    def test_network_failure_is_500(self, mock_engine, use_engine, sample_product):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        use_engine(mock_engine(handler))
        with TestClient(app) as test_client:
            response = test_client.post("/cart/add", json={"product": sample_product, "quantity": 1})

        assert response.status_code == 500
        assert response.json() == {"error": {"message": "Failed to add item to cart"}}

    def test_malformed_engine_body_is_500(self, mock_engine, use_engine):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        use_engine(mock_engine(handler))
        with TestClient(app) as test_client:
            response = test_client.delete("/cart/remove/abc")

        assert response.status_code == 500
        assert response.json() == {"error": {"message": "Failed to remove item"}}


class TestSetCookieReplay:
    """N Set-Cookie headers from the engine -> exactly N to the browser, unchanged"""

    COOKIES = [
        "ci_session=s1; expires=Tue, 20-Oct-2026 10:00:00 GMT; Max-Age=7200; path=/; HttpOnly; SameSite=Lax",
        "cart_token=t1; Domain=shop.example.com; Path=/cart; Secure; SameSite=None",
        "ci_session=s2; path=/; HttpOnly",
    ]

    @pytest.mark.parametrize("count", [0, 1, 3])
    def test_replays_every_header(self, mock_engine, use_engine, count):
        cookies = self.COOKIES[:count]

        def handler(request: httpx.Request) -> httpx.Response:
            headers = [("set-cookie", value) for value in cookies]
            return httpx.Response(200, json=make_cart(), headers=headers)

        use_engine(mock_engine(handler))
        with TestClient(app) as test_client:
            response = test_client.get("/cart")

        assert response.status_code == 200
        assert response.headers.get_list("set-cookie") == cookies

    def test_replays_on_write(self, mock_engine, use_engine):
        line = make_line("h1", 1, 999, 3)

        def handler(request: httpx.Request) -> httpx.Response:
            headers = [("set-cookie", value) for value in self.COOKIES]
            return httpx.Response(200, json=make_cart(line), headers=headers)

        use_engine(mock_engine(handler))
        with TestClient(app) as test_client:
            response = test_client.put("/cart/update/h1", json={"quantity": 3})

        assert response.headers.get_list("set-cookie") == self.COOKIES
        assert response.json()["items"][0]["quantity"] == 3
