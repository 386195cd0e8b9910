# tests/test_pg_client.py
import pytest
import requests

from marketplace.config.settings import Settings
from marketplace.errors import GatewayError
from marketplace.pg.client import DummyPaymentGateway, PayPalGateway, build_gateway


class FakeResponse:
    def __init__(self, status_code=200, data=None):
        self.status_code = status_code
        self._data = data

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


class FakeSession:
    """requests.Session 대용: 호출을 기록하고 준비된 응답을 순서대로 돌려준다."""

    def __init__(self, responses=None, token=None, exc=None):
        self.token = token or FakeResponse(200, {"access_token": "TKN", "expires_in": 3600})
        self.responses = list(responses or [])
        self.exc = exc
        self.token_calls = []
        self.calls = []

    def post(self, url, **kwargs):
        self.token_calls.append((url, kwargs))
        return self.token

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.exc is not None:
            raise self.exc
        return self.responses.pop(0)


def _gateway(session):
    return PayPalGateway(
        client_id="cid",
        secret="sec",
        api_base="https://api-m.sandbox.paypal.com/",
        payee_email="shop@example.com",
        return_url="http://srv/return",
        cancel_url="http://srv/cancel",
        currency="BRL",
        brand_name="Cancanvas",
        timeout=5,
        session=session,
    )


def _created(order_id="5O190127TN364715T", rel="approve"):
    return FakeResponse(201, {
        "id": order_id,
        "status": "CREATED",
        "links": [
            {"rel": "self", "href": f"https://api/v2/checkout/orders/{order_id}"},
            {"rel": rel, "href": f"https://www.sandbox.paypal.com/checkoutnow?token={order_id}"},
        ],
    })


def test_create_order_request_shape():
    s = FakeSession([_created()])
    gw = _gateway(s)

    order = gw.create_order("90.00", "portrait commission")

    assert order.gateway_order_id == "5O190127TN364715T"
    assert order.approval_url.endswith("token=5O190127TN364715T")
    assert order.pg_status == "CREATED"

    token_url, token_kwargs = s.token_calls[0]
    assert token_url == "https://api-m.sandbox.paypal.com/v1/oauth2/token"
    assert token_kwargs["auth"] == ("cid", "sec")
    assert token_kwargs["data"] == {"grant_type": "client_credentials"}

    method, url, kwargs = s.calls[0]
    assert (method, url) == ("POST", "https://api-m.sandbox.paypal.com/v2/checkout/orders")
    assert kwargs["headers"]["Authorization"] == "Bearer TKN"
    assert kwargs["timeout"] == 5
    body = kwargs["json"]
    assert body["intent"] == "CAPTURE"
    unit = body["purchase_units"][0]
    assert unit["amount"] == {"currency_code": "BRL", "value": "90.00"}
    assert unit["payee"] == {"email_address": "shop@example.com"}
    assert unit["description"] == "portrait commission"
    assert "application_context" not in body
    assert body["payment_source"]["paypal"]["experience_context"] == {
        "brand_name": "Cancanvas",
        "user_action": "PAY_NOW",
        "return_url": "http://srv/return",
        "cancel_url": "http://srv/cancel",
    }


def test_payer_action_link_is_accepted():
    gw = _gateway(FakeSession([_created(rel="payer-action")]))
    assert "token=" in gw.create_order("1.00", "x").approval_url


def test_token_is_cached_between_calls():
    s = FakeSession([_created("A"), _created("B")])
    gw = _gateway(s)
    gw.create_order("1.00", "x")
    gw.create_order("2.00", "y")
    assert len(s.token_calls) == 1
    assert len(s.calls) == 2


def test_short_lived_token_is_refreshed():
    s = FakeSession(
        [_created("A"), _created("B")],
        token=FakeResponse(200, {"access_token": "TKN", "expires_in": 10}),
    )
    gw = _gateway(s)
    gw.create_order("1.00", "x")
    gw.create_order("2.00", "y")
    assert len(s.token_calls) == 2


def test_capture_and_status():
    s = FakeSession([
        FakeResponse(201, {"id": "A", "status": "COMPLETED"}),
        FakeResponse(200, {"id": "A", "status": "APPROVED"}),
    ])
    gw = _gateway(s)

    assert gw.complete_order("A") == "COMPLETED"
    assert gw.get_order_status("A") == "APPROVED"

    assert s.calls[0][:2] == ("POST", "https://api-m.sandbox.paypal.com/v2/checkout/orders/A/capture")
    assert s.calls[0][2]["json"] == {}
    assert s.calls[1][:2] == ("GET", "https://api-m.sandbox.paypal.com/v2/checkout/orders/A")


def test_rejected_call_raises_gateway_error():
    detail = {"name": "UNPROCESSABLE_ENTITY", "details": [{"issue": "ORDER_NOT_APPROVED"}]}
    gw = _gateway(FakeSession([FakeResponse(422, detail)]))
    with pytest.raises(GatewayError) as ei:
        gw.complete_order("A")
    assert ei.value.status_code == 422
    assert ei.value.payload == detail
    assert ei.value.http_status == 502


def test_transport_failure_raises_gateway_error():
    gw = _gateway(FakeSession(exc=requests.Timeout("read timed out")))
    with pytest.raises(GatewayError):
        gw.get_order_status("A")


def test_token_rejected():
    gw = _gateway(FakeSession(token=FakeResponse(401, {"error": "invalid_client"})))
    with pytest.raises(GatewayError) as ei:
        gw.create_order("1.00", "x")
    assert ei.value.status_code == 401


def test_bad_token_expiry_is_a_gateway_error():
    s = FakeSession(token=FakeResponse(200, {"access_token": "TKN", "expires_in": "soon"}))
    with pytest.raises(GatewayError):
        _gateway(s).get_order_status("A")
    assert s.calls == []


def test_missing_approve_link():
    resp = FakeResponse(201, {"id": "A", "links": [{"rel": "self", "href": "x"}]})
    gw = _gateway(FakeSession([resp]))
    with pytest.raises(GatewayError):
        gw.create_order("1.00", "x")


def test_non_json_body_is_tolerated_on_error():
    gw = _gateway(FakeSession([FakeResponse(500, None)]))
    with pytest.raises(GatewayError) as ei:
        gw.get_order_status("A")
    assert ei.value.payload is None


# -------------------------------------------------------
# 더미 / 팩토리
# -------------------------------------------------------
def test_dummy_gateway_lifecycle():
    gw = DummyPaymentGateway()
    order = gw.create_order("5.00", "d")
    assert order.gateway_order_id.startswith("DUMMY-")
    assert gw.get_order_status(order.gateway_order_id) == "CREATED"
    assert gw.complete_order(order.gateway_order_id) == "COMPLETED"
    assert gw.get_order_status(order.gateway_order_id) == "COMPLETED"
    with pytest.raises(GatewayError):
        gw.complete_order("DUMMY-NOPE")


def test_build_gateway_by_mode():
    assert isinstance(build_gateway(Settings(paypal_mode="dummy")), DummyPaymentGateway)

    gw = build_gateway(Settings(paypal_mode="prod", server_url="https://api.example.com/"))
    assert isinstance(gw, PayPalGateway)
    assert gw.api_base == "https://api-m.paypal.com"
    assert gw.return_url == "https://api.example.com/return"
    assert gw.cancel_url == "https://api.example.com/cancel"

    assert build_gateway(Settings(paypal_mode="sandbox")).api_base == "https://api-m.sandbox.paypal.com"
