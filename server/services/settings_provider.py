# 业务设置快照：每个请求读取一次，之后只读

import logging
from dataclasses import dataclass
from typing import Dict

from db.manager import DatabaseManager
from db.schema import DEFAULT_SETTINGS
from db.supporting_operations import SupportingOperations
from utils.money import to_cents

logger = logging.getLogger(__name__)


def _parse_cents(values: Dict[str, str], key: str) -> int:
    try:
        return to_cents(values.get(key) or DEFAULT_SETTINGS[key])
    except ValueError:
        logger.warning(f"设置项 {key} 不是有效金额: {values.get(key)!r}，使用默认值")
        return to_cents(DEFAULT_SETTINGS[key])


def _parse_int(values: Dict[str, str], key: str) -> int:
    try:
        return int(values.get(key) or DEFAULT_SETTINGS[key])
    except ValueError:
        logger.warning(f"设置项 {key} 不是整数: {values.get(key)!r}，使用默认值")
        return int(DEFAULT_SETTINGS[key])


@dataclass(frozen=True)
class BusinessSettings:
    """
    业务设置的不可变快照
    """
    business_name: str
    business_phone: str
    business_address: str
    notification_email: str
    delivery_fee_cents: int
    min_order_amount_cents: int
    lead_time_hours: int
    send_customer_confirmation: bool

    @classmethod
    def from_mapping(cls, values: Dict[str, str]) -> "BusinessSettings":
        return cls(
            business_name=values.get('business_name') or DEFAULT_SETTINGS['business_name'],
            business_phone=values.get('business_phone') or '',
            business_address=values.get('business_address') or '',
            notification_email=values.get('notification_email') or DEFAULT_SETTINGS['notification_email'],
            delivery_fee_cents=_parse_cents(values, 'delivery_fee'),
            min_order_amount_cents=_parse_cents(values, 'min_order_amount'),
            lead_time_hours=_parse_int(values, 'lead_time_hours'),
            send_customer_confirmation=(values.get('send_customer_confirmation') or '').strip().lower() == 'true',
        )


class SettingsProvider:
    def __init__(self, db_manager: DatabaseManager):
        self.support_ops = SupportingOperations(db_manager)

    def snapshot(self) -> BusinessSettings:
        return BusinessSettings.from_mapping(self.support_ops.get_settings())
