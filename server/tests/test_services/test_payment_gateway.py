# 支付网关适配层测试（不访问网络）

import json

import pytest
import stripe

from services.payment_gateway import (
    StripeGateway, GatewayLineItem, DELIVERY_FEE_LINE_NAME, get_payment_gateway
)
from utils.exceptions import PaymentGatewayNotConfigured, WebhookSignatureError


@pytest.fixture
def real_gateway(webhook_secret):
    return StripeGateway(secret_key="sk_test_unit", webhook_secret=webhook_secret)


class TestLineItems:
    """line_items 转换"""

    def test_delivery_fee_line_appended(self, real_gateway):
        lines = real_gateway.build_line_items(
            [GatewayLineItem("Curry Buffet", 500, 4, description="4 guests")], delivery_fee_cents=2500
        )

        assert lines[0]['quantity'] == 4
        assert lines[0]['price_data']['unit_amount'] == 500
        assert lines[0]['price_data']['currency'] == 'cad'
        assert lines[0]['price_data']['product_data']['description'] == "4 guests"
        assert lines[1]['price_data']['product_data']['name'] == DELIVERY_FEE_LINE_NAME
        assert lines[1]['price_data']['unit_amount'] == 2500

    def test_no_fee_line_when_zero(self, real_gateway):
        lines = real_gateway.build_line_items([GatewayLineItem("Dal", 1200, 1)])
        assert len(lines) == 1


class TestNotConfigured:
    """缺少密钥"""

    def test_calls_raise_without_secret_key(self):
        gateway = StripeGateway(secret_key="")

        assert gateway.is_configured is False
        with pytest.raises(PaymentGatewayNotConfigured):
            gateway.capture_payment("pi_1")
        with pytest.raises(PaymentGatewayNotConfigured):
            gateway.retrieve_session("cs_1")

    def test_webhook_without_secret(self):
        gateway = StripeGateway(secret_key="sk_test_unit")
        with pytest.raises(PaymentGatewayNotConfigured):
            gateway.verify_webhook(b"{}", "t=1,v1=abc")


class TestVerifyWebhook:
    """签名校验与事件解析"""

    def test_valid_event(self, real_gateway, webhook_signer, event_factory):
        payload = json.dumps(event_factory("checkout.session.completed", "order-1"))

        event = real_gateway.verify_webhook(payload.encode("utf-8"), webhook_signer(payload))

        assert event["type"] == "checkout.session.completed"
        assert event["data"]["object"]["metadata"]["orderId"] == "order-1"

    def test_wrong_secret(self, real_gateway, webhook_signer, event_factory):
        payload = json.dumps(event_factory("checkout.session.completed", "order-1"))

        with pytest.raises(WebhookSignatureError):
            real_gateway.verify_webhook(payload, webhook_signer(payload, secret="whsec_other"))

    def test_stale_timestamp(self, real_gateway, webhook_signer, event_factory):
        payload = json.dumps(event_factory("checkout.session.completed", "order-1"))

        with pytest.raises(WebhookSignatureError):
            real_gateway.verify_webhook(payload, webhook_signer(payload, timestamp=1000))

    def test_non_utf8_body(self, real_gateway):
        with pytest.raises(WebhookSignatureError):
            real_gateway.verify_webhook(b'{"id": "evt_1"}\xff', "t=1700000000,v1=deadbeef")

    def test_signed_body_that_is_not_json(self, real_gateway, webhook_signer):
        payload = "not json"
        with pytest.raises(WebhookSignatureError):
            real_gateway.verify_webhook(payload, webhook_signer(payload))


class TestHttpClient:
    """HTTP 客户端只在共享实例创建时设置一次"""

    def test_constructor_leaves_global_client(self, monkeypatch):
        sentinel = object()
        monkeypatch.setattr(stripe, "default_http_client", sentinel)

        StripeGateway(secret_key="sk_test_unit", request_timeout=3)

        assert stripe.default_http_client is sentinel

    def test_shared_gateway_sets_timeout_client(self, monkeypatch):
        monkeypatch.setattr(stripe, "default_http_client", None)
        get_payment_gateway.cache_clear()
        try:
            gateway = get_payment_gateway()
            assert isinstance(stripe.default_http_client, stripe.RequestsClient)
            assert get_payment_gateway() is gateway
        finally:
            get_payment_gateway.cache_clear()
