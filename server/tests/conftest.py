# 测试配置和固定装置

import hashlib
import hmac
import json
import os
import sys
import time
from pathlib import Path

import pytest

# 添加项目路径
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# 设置测试环境（必须在导入应用之前）
os.environ['CONFIG_ENV'] = 'test'

from fastapi.testclient import TestClient

from api.main import app
from api.auth.routes import get_database, jwt_manager
from api.dependencies import get_payment_gateway, get_notification_dispatcher
from db.manager import DatabaseManager
from db.schema import init_database
from db.core_operations import CoreOperations
from db.query_operations import QueryOperations
from db.supporting_operations import SupportingOperations
from services.notifications import NotificationDispatcher, NotificationOutbox
from services.payment_gateway import StripeGateway, CheckoutSession, SessionStatus
from services.settings_provider import SettingsProvider
from utils.security import hash_password

WEBHOOK_SECRET = "whsec_test_secret"
ADMIN_PASSWORD = "correct-horse-battery"


class FakeGateway(StripeGateway):
    """
    只替换网络调用的支付网关；webhook 签名校验仍走真实实现
    """

    def __init__(self):
        super().__init__(secret_key="sk_test_fake", webhook_secret=WEBHOOK_SECRET)
        self.sessions = {}
        self.created = []
        self.captured = []
        self.released = []
        self.fail_create = None
        self.fail_capture = None
        self.fail_release = None
        self.fail_retrieve = None

    def create_checkout_session(self, line_items, customer_email, order_id, success_url, cancel_url,
                                delivery_fee_cents=0):
        if self.fail_create:
            raise self.fail_create

        session_id = f"cs_test_{len(self.created) + 1:04d}"
        self.created.append({
            'session_id': session_id,
            'order_id': order_id,
            'customer_email': customer_email,
            'success_url': success_url,
            'cancel_url': cancel_url,
            'line_items': self.build_line_items(line_items, delivery_fee_cents),
        })
        self.sessions[session_id] = {
            'order_id': order_id, 'status': 'open', 'payment_status': 'unpaid', 'payment_intent_id': None
        }
        return CheckoutSession(session_id, f"https://checkout.stripe.test/pay/{session_id}")

    def complete_session(self, session_id, payment_intent_id="pi_test_123"):
        # 手动扣款模式下会话完成但 payment_status 仍是 unpaid
        self.sessions[session_id].update(status='complete', payment_intent_id=payment_intent_id)

    def expire_session(self, session_id):
        self.sessions[session_id].update(status='expired')

    def retrieve_session(self, session_id):
        if self.fail_retrieve:
            raise self.fail_retrieve
        session = self.sessions[session_id]
        return SessionStatus(
            session_id=session_id,
            status=session['status'],
            payment_status=session['payment_status'],
            payment_intent_id=session['payment_intent_id'],
            order_id=session['order_id'],
        )

    def capture_payment(self, payment_intent_id):
        if self.fail_capture:
            raise self.fail_capture
        self.captured.append(payment_intent_id)

    def cancel_payment(self, payment_intent_id):
        self.released.append(payment_intent_id)
        if self.fail_release:
            raise self.fail_release


class FakeDispatcher(NotificationDispatcher):
    """记录发出的通知而不真正发送"""

    def __init__(self):
        super().__init__()
        self.sent = []

    async def dispatch(self, notification):
        self.sent.append(notification)
        return True

    @property
    def kinds(self):
        return [n.kind for n in self.sent]


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """按 Stripe-Signature 格式生成签名头"""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode('utf-8'), f"{timestamp}.{payload}".encode('utf-8'), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_event(event_type, order_id, payment_intent="pi_test_123", event_id="evt_test_1"):
    obj = {"id": "cs_test_0001", "object": "checkout.session", "payment_intent": payment_intent}
    if order_id is not None:
        obj["metadata"] = {"orderId": order_id}
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


@pytest.fixture
def test_db():
    """测试数据库实例（内存数据库，已建表并写入默认设置）"""
    db = DatabaseManager(":memory:", auto_connect=True)
    init_database(db)
    yield db
    db.close()


@pytest.fixture
def core_ops(test_db):
    return CoreOperations(test_db)


@pytest.fixture
def query_ops(test_db):
    return QueryOperations(test_db)


@pytest.fixture
def support_ops(test_db):
    return SupportingOperations(test_db)


@pytest.fixture
def settings(test_db):
    """默认设置快照"""
    return SettingsProvider(test_db).snapshot()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def outbox():
    return NotificationOutbox()


@pytest.fixture
def sample_payload():
    """
    标准购物车：10.00 x2 固定价 + 5.00 x1 按人头(4人)，配送费 25.00
    小计 40.00，总额 65.00
    """
    return {
        'customer_name': 'Jane Doe',
        'customer_email': 'jane@example.com',
        'customer_phone': '604-555-0100',
        'customer_address': '123 Main St, Vancouver',
        'scheduled_date': '2026-11-20',
        'scheduled_time': '12:00 PM',
        'notes': 'Ring the bell',
        'promo_code': None,
        'items': [
            {'item_name': 'Samosa Platter', 'item_price': '10.00', 'pricing_type': 'fixed', 'quantity': 2},
            {'item_name': 'Curry Buffet', 'item_price': '5.00', 'pricing_type': 'per_person',
             'quantity': 1, 'guest_count': 4},
        ],
        'delivery_fee': '25.00',
    }


@pytest.fixture
def make_order(core_ops):
    """按给定支付状态直接写入一张订单，返回订单ID"""
    def _make_order(payment_status='pending', status='new', payment_intent_id=None, session_id=None,
                    scheduled_date='2026-11-20', delivery_fee_cents=2500):
        items = [
            {'item_name': 'Samosa Platter', 'item_price_cents': 1000, 'pricing_type': 'fixed',
             'quantity': 2, 'guest_count': None, 'line_total_cents': 2000},
            {'item_name': 'Curry Buffet', 'item_price_cents': 500, 'pricing_type': 'per_person',
             'quantity': 1, 'guest_count': 4, 'line_total_cents': 2000},
        ]
        order = {
            'status': status,
            'payment_status': payment_status,
            'customer_name': 'Jane Doe',
            'customer_email': 'jane@example.com',
            'customer_phone': '604-555-0100',
            'customer_address': '123 Main St, Vancouver',
            'fulfillment_type': 'delivery',
            'scheduled_date': scheduled_date,
            'scheduled_time': '12:00 PM',
            'subtotal_cents': 4000,
            'delivery_fee_cents': delivery_fee_cents,
            'total_cents': 4000 + delivery_fee_cents,
            'notes': 'Ring the bell',
        }
        order_id = core_ops.create_order(order, items)['order_id']

        updates = {}
        if payment_intent_id:
            updates['stripe_payment_intent_id'] = payment_intent_id
        if session_id:
            updates['stripe_session_id'] = session_id
        if updates:
            core_ops.update_order_fields(order_id, updates)
        return order_id

    return _make_order


@pytest.fixture
def client(test_db, gateway, dispatcher):
    """FastAPI测试客户端，数据库、支付网关和邮件发送器均替换为测试实例"""
    def override_database():
        yield test_db

    app.dependency_overrides[get_database] = override_database
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(support_ops):
    """已设置密码的管理员"""
    return support_ops.create_admin("admin@example.com", "Test Admin", hash_password(ADMIN_PASSWORD))


@pytest.fixture
def admin_headers(admin_user):
    token = jwt_manager.create_access_token({
        "admin_id": admin_user['id'],
        "email": admin_user['email'],
        "is_admin": True
    })
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def post_webhook(client):
    """发送带签名的 webhook 请求"""
    def _post(event, secret=WEBHOOK_SECRET, signature=None):
        payload = json.dumps(event)
        headers = {"Content-Type": "application/json"}
        headers["Stripe-Signature"] = signature if signature is not None else sign_payload(payload, secret)
        return client.post("/api/webhooks/stripe", content=payload, headers=headers)

    return _post


@pytest.fixture
def event_factory():
    return checkout_event


@pytest.fixture
def admin_password():
    return ADMIN_PASSWORD


@pytest.fixture
def webhook_signer():
    return sign_payload


@pytest.fixture
def webhook_secret():
    return WEBHOOK_SECRET
