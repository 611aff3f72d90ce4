# 路由共用的依赖注入：业务设置快照、支付网关、邮件发送器

from fastapi import Depends

from api.auth.routes import get_database
from db.manager import DatabaseManager
from services.notifications import NotificationDispatcher, get_notification_dispatcher
from services.payment_gateway import StripeGateway, get_payment_gateway
from services.settings_provider import BusinessSettings, SettingsProvider
from utils.config import Config

config = Config()


def get_business_settings(db: DatabaseManager = Depends(get_database)) -> BusinessSettings:
    """每个请求读取一次设置"""
    return SettingsProvider(db).snapshot()


def get_base_url() -> str:
    return config.base_url


def get_bypass_code() -> str:
    return config.get('payment.test_bypass_code', '') or ''


__all__ = [
    "get_business_settings",
    "get_base_url",
    "get_bypass_code",
    "get_payment_gateway",
    "get_notification_dispatcher",
    "StripeGateway",
    "NotificationDispatcher",
]
