# 邮件通知发送测试

import asyncio
import json

import httpx
import pytest

from services.email_templates import build_order_email_data
from services.notifications import (
    NotificationDispatcher, NotificationOutbox, PendingNotification,
    KIND_BUSINESS, KIND_CUSTOMER, KIND_STATUS
)

API_URL = "https://smtp2go.test/v3/email/send"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def email_data(make_order, query_ops, settings):
    return build_order_email_data(query_ops.get_order(make_order()), settings)


def make_dispatcher(handler, api_key="api-key"):
    return NotificationDispatcher(
        api_key=api_key, sender_email="orders@test.example.com", api_url=API_URL,
        transport=httpx.MockTransport(handler)
    )


class TestOutbox:
    """发件箱测试"""

    def test_order_received_business_only(self, email_data):
        outbox = NotificationOutbox()
        outbox.order_received(email_data, "owner@example.com", notify_customer=False)

        pending = list(outbox)
        assert [(n.kind, n.to_email) for n in pending] == [(KIND_BUSINESS, "owner@example.com")]

    def test_order_received_with_customer(self, email_data):
        outbox = NotificationOutbox()
        outbox.order_received(email_data, "owner@example.com", notify_customer=True)

        assert [(n.kind, n.to_email) for n in outbox] == [
            (KIND_BUSINESS, "owner@example.com"),
            (KIND_CUSTOMER, "jane@example.com"),
        ]

    def test_status_update_only_for_mailable_statuses(self, email_data):
        outbox = NotificationOutbox()
        outbox.status_update(email_data, 'confirmed')
        with pytest.raises(ValueError):
            outbox.status_update(email_data, 'completed')
        assert len(outbox) == 1

    def test_drain_empties(self, email_data):
        outbox = NotificationOutbox()
        outbox.status_update(email_data, 'cancelled')

        assert len(outbox.drain()) == 1
        assert len(outbox) == 0


class TestDispatcher:
    """SMTP2GO 发送测试"""

    def test_posts_payload(self, email_data):
        requests = []

        def handler(request):
            requests.append(json.loads(request.content))
            return httpx.Response(200, json={"data": {"succeeded": 1, "failed": 0}})

        dispatcher = make_dispatcher(handler)
        assert run(dispatcher.send_order_notification("owner@example.com", email_data)) is True

        body = requests[0]
        assert body['api_key'] == "api-key"
        assert body['to'] == ["owner@example.com"]
        assert body['sender'] == "orders@test.example.com"
        assert body['subject'] == f"New Catering Order - {email_data.order_id[:8]}"
        assert "TOTAL: $65.00" in body['text_body']
        assert "<html>" in body['html_body']

    def test_http_error_returns_false(self, email_data):
        dispatcher = make_dispatcher(lambda request: httpx.Response(500, json={"data": {}}))
        assert run(dispatcher.send_customer_order_confirmation(email_data)) is False

    def test_vendor_error_returns_false(self, email_data):
        dispatcher = make_dispatcher(lambda request: httpx.Response(200, json={"data": {"error": "bad sender"}}))
        assert run(dispatcher.send_order_status_update(email_data, 'confirmed')) is False

    def test_network_error_returns_false(self, email_data):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert run(make_dispatcher(handler).send_order_notification("owner@example.com", email_data)) is False

    def test_unsupported_status(self, email_data):
        dispatcher = make_dispatcher(lambda request: httpx.Response(200, json={}))
        assert run(dispatcher.send_order_status_update(email_data, 'completed')) is False

    def test_without_api_key_logs_instead(self, email_data, caplog):
        def handler(request):
            raise AssertionError("should not send")

        dispatcher = make_dispatcher(handler, api_key="")
        with caplog.at_level("INFO", logger="services.notifications"):
            assert run(dispatcher.send_order_notification("owner@example.com", email_data)) is True
        assert "SMTP2GO not configured" in caplog.text

    def test_flush_counts_successes(self, email_data):
        calls = []

        def handler(request):
            calls.append(json.loads(request.content)['subject'])
            if len(calls) == 1:
                return httpx.Response(200, json={"data": {"succeeded": 1}})
            return httpx.Response(502, text="bad gateway")

        outbox = NotificationOutbox()
        outbox.order_received(email_data, "owner@example.com", notify_customer=True)

        assert run(make_dispatcher(handler).flush(outbox)) == 1
        assert len(calls) == 2
        assert len(outbox) == 0

    def test_unknown_kind(self, email_data):
        dispatcher = make_dispatcher(lambda request: httpx.Response(200, json={}))
        assert run(dispatcher.dispatch(PendingNotification("sms", email_data))) is False

    def test_status_mail_goes_to_customer(self, email_data):
        recipients = []

        def handler(request):
            recipients.append(json.loads(request.content)['to'])
            return httpx.Response(200, json={"data": {}})

        outbox = NotificationOutbox()
        outbox.status_update(email_data, 'cancelled')
        run(make_dispatcher(handler).flush(outbox))

        assert recipients == [["jane@example.com"]]
        assert outbox.drain() == []
        assert KIND_STATUS == "status_update"
