# 金额与日期格式化工具
# 所有金额在系统内部以整数"分"存储和计算

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Union

CENT = Decimal('0.01')


def to_cents(amount: Any) -> int:
    """
    将元为单位的金额转换为分（四舍五入）

    Args:
        amount: Decimal、int、或数字字符串；None 视为 0

    Raises:
        ValueError: 无法解析为金额时
    """
    if amount is None:
        return 0
    if isinstance(amount, float):
        # float 按最短十进制表示解析: 10.1 -> Decimal('10.1')
        amount = repr(amount)
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    return int((value * 100).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def cents_to_decimal(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def format_cents(cents: int) -> str:
    """API输出格式: 6500 -> '65.00'"""
    return str(cents_to_decimal(cents or 0))


def format_currency(cents: int) -> str:
    """
    邮件展示格式: 6500 -> '$65.00', 123456 -> '$1,234.56'
    """
    value = cents_to_decimal(cents or 0)
    sign = '-' if value < 0 else ''
    return f"{sign}${abs(value):,.2f}"


def format_date(value: Union[str, date, datetime]) -> str:
    """
    长日期格式: '2026-10-18' -> 'October 18, 2026'，无法解析时原样返回
    """
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, str):
        try:
            value = datetime.strptime(value[:10], '%Y-%m-%d').date()
        except ValueError:
            return value
    return f"{value.strftime('%B')} {value.day}, {value.year}"
