# 数据验证器

from datetime import datetime
from typing import Any

ORDER_STATUSES = ('new', 'confirmed', 'completed', 'cancelled')
PRICING_TYPES = ('fixed', 'per_person')
PACKAGE_TYPES = ('selection', 'quantity', 'fixed')


def is_blank(value: Any) -> bool:
    """None、空字符串和纯空白都视为缺失"""
    return value is None or (isinstance(value, str) and not value.strip())


def validate_date(date_str: str, format_str: str = "%Y-%m-%d") -> bool:
    """
    验证日期格式

    Args:
        date_str: 日期字符串
        format_str: 日期格式

    Returns:
        验证结果
    """
    try:
        datetime.strptime(date_str, format_str)
        return True
    except (ValueError, TypeError):
        return False


def validate_order_status(status: str) -> bool:
    return status in ORDER_STATUSES


def validate_pricing_type(pricing_type: str) -> bool:
    return pricing_type in PRICING_TYPES


def validate_positive_integer(value: Any) -> bool:
    """
    验证正整数（布尔值不算）
    """
    if isinstance(value, bool):
        return False
    try:
        return int(value) > 0 and int(value) == value
    except (ValueError, TypeError):
        return False


def validate_package_type(package_type: str) -> bool:
    return package_type in PACKAGE_TYPES
