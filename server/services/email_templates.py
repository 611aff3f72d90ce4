# 订单邮件内容：预格式化快照 + 纯文本/HTML 渲染

from dataclasses import dataclass
from html import escape
from typing import Tuple, Dict, Any, Optional

from utils.money import format_currency, format_date

TAX_NOTICE_BUSINESS = "* Prices do not include taxes. Please confirm final amount with customer."
TAX_NOTICE_CUSTOMER = "* Prices do not include taxes. Final amount will be confirmed."

STATUS_MESSAGES = {
    'confirmed': {
        'subject': "Order Confirmed - {business} Catering",
        'heading': "Your Order is Confirmed!",
        'message': "Great news! Your catering order has been confirmed. We look forward to serving you.",
        'color': "#2D5A27",
    },
    'cancelled': {
        'subject': "Order Cancelled - {business} Catering",
        'heading': "Order Cancelled",
        'message': "Your catering order has been cancelled. If you have any questions, please contact us.",
        'color': "#DC2626",
    },
}

BRAND_COLOR = "#2D5A27"


@dataclass(frozen=True)
class OrderEmailItem:
    item_name: str
    quantity: int
    line_total: str
    guest_count: Optional[int] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class OrderEmailData:
    """
    邮件用的订单快照，金额和日期都已格式化，渲染时不做任何业务计算
    """
    order_id: str
    customer_name: str
    customer_email: str
    customer_phone: str
    fulfillment_type: str
    scheduled_date: str
    scheduled_time: str
    items: Tuple[OrderEmailItem, ...]
    subtotal: str
    delivery_fee: str
    total: str
    show_delivery_fee: bool
    business_name: str
    customer_address: Optional[str] = None
    notes: Optional[str] = None
    business_phone: Optional[str] = None
    business_address: Optional[str] = None

    @property
    def short_id(self) -> str:
        return self.order_id[:8]


def build_order_email_data(order: Dict[str, Any], settings) -> OrderEmailData:
    """
    Args:
        order: QueryOperations.get_order 返回的订单（含 items）
        settings: BusinessSettings 快照
    """
    items = tuple(
        OrderEmailItem(
            item_name=item['item_name'],
            quantity=item['quantity'],
            line_total=format_currency(item['line_total_cents']),
            guest_count=item.get('guest_count') or None,
            notes=item.get('notes') or None,
        )
        for item in order.get('items', [])
    )

    return OrderEmailData(
        order_id=order['id'],
        customer_name=order['customer_name'],
        customer_email=order['customer_email'],
        customer_phone=order['customer_phone'],
        customer_address=order.get('customer_address') or None,
        fulfillment_type=order.get('fulfillment_type') or 'delivery',
        scheduled_date=format_date(order['scheduled_date']),
        scheduled_time=order['scheduled_time'],
        items=items,
        subtotal=format_currency(order['subtotal_cents']),
        delivery_fee=format_currency(order['delivery_fee_cents']),
        total=format_currency(order['total_cents']),
        show_delivery_fee=order['delivery_fee_cents'] > 0,
        notes=order.get('notes') or None,
        business_name=settings.business_name,
        business_phone=settings.business_phone or None,
        business_address=settings.business_address or None,
    )


def _item_line(item: OrderEmailItem) -> str:
    guests = f" ({item.guest_count} guests)" if item.guest_count else ""
    return f"- {item.item_name} x{item.quantity}{guests} - {item.line_total}"


def _totals_lines(data: OrderEmailData):
    lines = [f"Subtotal: {data.subtotal}"]
    if data.show_delivery_fee:
        lines.append(f"Delivery Fee: {data.delivery_fee}")
    lines.append(f"TOTAL: {data.total}")
    return lines


def _join(lines) -> str:
    # 空行仅作为段落分隔，None 表示跳过
    return "\n".join(line for line in lines if line is not None)


# ===== 商家新订单通知 =====

def business_notification_subject(data: OrderEmailData) -> str:
    return f"New Catering Order - {data.short_id}"


def render_business_notification_text(data: OrderEmailData) -> str:
    lines = [
        "NEW CATERING ORDER",
        f"Order ID: {data.order_id}",
        "",
        "CUSTOMER INFORMATION",
        f"Name: {data.customer_name}",
        f"Email: {data.customer_email}",
        f"Phone: {data.customer_phone}",
        f"Address: {data.customer_address}" if data.customer_address else None,
        "",
        "ORDER DETAILS",
        f"Type: {data.fulfillment_type.upper()}",
        f"Date: {data.scheduled_date}",
        f"Time: {data.scheduled_time}",
        "",
        "ITEMS",
    ]
    for item in data.items:
        lines.append(_item_line(item))
        if item.notes:
            lines.append(f"  Note: {item.notes}")

    lines.append("")
    lines.extend(_totals_lines(data))

    if data.notes:
        lines.extend(["", f"ORDER NOTES: {data.notes}"])

    lines.extend(["", TAX_NOTICE_BUSINESS])
    return _join(lines)


def _items_table_html(data: OrderEmailData, with_notes: bool) -> str:
    rows = []
    for item in data.items:
        name = escape(item.item_name)
        if with_notes and item.notes:
            name += f'<br><small style="color: #666;">Note: {escape(item.notes)}</small>'
        qty = str(item.quantity)
        if item.guest_count:
            qty += f"<br><small>({item.guest_count} guests)</small>"
        rows.append(
            "<tr>"
            f'<td style="padding: 8px; border-bottom: 1px solid #eee;">{name}</td>'
            f'<td style="padding: 8px; border-bottom: 1px solid #eee; text-align: center;">{qty}</td>'
            f'<td style="padding: 8px; border-bottom: 1px solid #eee; text-align: right;">{escape(item.line_total)}</td>'
            "</tr>"
        )

    delivery_row = ""
    if data.show_delivery_fee:
        delivery_row = (
            '<tr><td colspan="2" style="padding: 8px; text-align: right;">Delivery Fee:</td>'
            f'<td style="padding: 8px; text-align: right;">{escape(data.delivery_fee)}</td></tr>'
        )

    return (
        '<table style="width: 100%; border-collapse: collapse;">'
        '<thead><tr style="background: #eee;">'
        '<th style="padding: 8px; text-align: left;">Item</th>'
        '<th style="padding: 8px; text-align: center;">Qty</th>'
        '<th style="padding: 8px; text-align: right;">Price</th>'
        '</tr></thead>'
        f"<tbody>{''.join(rows)}</tbody>"
        '<tfoot>'
        '<tr><td colspan="2" style="padding: 8px; text-align: right;"><strong>Subtotal:</strong></td>'
        f'<td style="padding: 8px; text-align: right;">{escape(data.subtotal)}</td></tr>'
        f"{delivery_row}"
        f'<tr style="background: {BRAND_COLOR}; color: white;">'
        '<td colspan="2" style="padding: 12px; text-align: right;"><strong>TOTAL:</strong></td>'
        f'<td style="padding: 12px; text-align: right;"><strong>{escape(data.total)}</strong></td></tr>'
        '</tfoot></table>'
    )


def _page_html(title: str, header: str, subheader: str, body: str, color: str = BRAND_COLOR) -> str:
    return (
        '<!DOCTYPE html><html><head><meta charset="utf-8">'
        f"<title>{escape(title)}</title></head>"
        '<body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        f'<div style="background: {color}; color: white; padding: 20px; text-align: center;">'
        f'<h1 style="margin: 0;">{escape(header)}</h1>'
        f'<p style="margin: 5px 0 0;">{escape(subheader)}</p></div>'
        f'<div style="padding: 20px; background: #f9f9f9;">{body}</div>'
        "</body></html>"
    )


def _section(title: str) -> str:
    return (
        f'<h2 style="color: {BRAND_COLOR}; border-bottom: 2px solid {BRAND_COLOR}; '
        f'padding-bottom: 10px;">{escape(title)}</h2>'
    )


def _field(label: str, value: str) -> str:
    return f"<p><strong>{escape(label)}:</strong> {escape(value)}</p>"


def render_business_notification_html(data: OrderEmailData) -> str:
    parts = [
        f'<p style="color: #666; font-size: 14px;">Order ID: {escape(data.order_id)}</p>',
        _section("Customer Information"),
        _field("Name", data.customer_name),
        _field("Email", data.customer_email),
        _field("Phone", data.customer_phone),
    ]
    if data.customer_address:
        parts.append(_field("Address", data.customer_address))

    parts.extend([
        _section("Order Details"),
        _field("Type", data.fulfillment_type.upper()),
        _field("Date", data.scheduled_date),
        _field("Time", data.scheduled_time),
        _section("Items"),
        _items_table_html(data, with_notes=True),
    ])

    if data.notes:
        parts.extend([
            _section("Order Notes"),
            f'<p style="background: #fff3cd; padding: 10px; border-radius: 4px;">{escape(data.notes)}</p>',
        ])

    parts.append(f'<p style="color: #666; font-size: 12px; margin-top: 20px;">{escape(TAX_NOTICE_BUSINESS)}</p>')
    return _page_html("New Catering Order", f"{data.business_name} Catering", "New Order Received", "".join(parts))


# ===== 顾客下单确认 =====

def customer_confirmation_subject(data: OrderEmailData) -> str:
    return f"Order Received - {data.business_name} Catering"


def render_customer_confirmation_text(data: OrderEmailData) -> str:
    lines = [
        "Thank you for your order!",
        "",
        f"Hi {data.customer_name},",
        "",
        "We've received your catering order and will confirm it shortly.",
        "",
        "ORDER DETAILS",
        f"Order ID: {data.short_id}",
        f"Type: {data.fulfillment_type.upper()}",
        f"Date: {data.scheduled_date}",
        f"Time: {data.scheduled_time}",
        f"Delivery Address: {data.customer_address}" if data.customer_address else None,
        "",
        "ITEMS",
    ]
    lines.extend(_item_line(item) for item in data.items)
    lines.append("")
    lines.extend(_totals_lines(data))
    lines.extend([
        "",
        TAX_NOTICE_CUSTOMER,
        "",
        "If you have any questions, please contact us:",
        f"Phone: {data.business_phone}" if data.business_phone else None,
        "",
        f"Thank you for choosing {data.business_name}!",
    ])
    return _join(lines)


def render_customer_confirmation_html(data: OrderEmailData) -> str:
    parts = [
        f"<p>Hi {escape(data.customer_name)},</p>",
        "<p>We've received your catering order and will confirm it shortly.</p>",
        _section("Order Details"),
        _field("Order ID", data.short_id),
        _field("Type", data.fulfillment_type.upper()),
        _field("Date", data.scheduled_date),
        _field("Time", data.scheduled_time),
    ]
    if data.customer_address:
        parts.append(_field("Delivery Address", data.customer_address))

    parts.extend([
        _section("Items"),
        _items_table_html(data, with_notes=False),
        f'<p style="color: #666; font-size: 12px;">{escape(TAX_NOTICE_CUSTOMER)}</p>',
    ])
    if data.business_phone:
        parts.append(f"<p>Questions? Call us at {escape(data.business_phone)}</p>")
    parts.append(f"<p>Thank you for choosing {escape(data.business_name)}!</p>")

    return _page_html("Order Received", f"{data.business_name} Catering", "Thank you for your order!", "".join(parts))


# ===== 订单状态变更 =====

def status_update_subject(data: OrderEmailData, new_status: str) -> str:
    return STATUS_MESSAGES[new_status]['subject'].format(business=data.business_name)


def render_status_update_text(data: OrderEmailData, new_status: str) -> str:
    info = STATUS_MESSAGES[new_status]
    return _join([
        info['heading'],
        "",
        f"Hi {data.customer_name},",
        "",
        info['message'],
        "",
        "ORDER DETAILS",
        f"Order ID: {data.short_id}",
        f"Type: {data.fulfillment_type.upper()}",
        f"Date: {data.scheduled_date}",
        f"Time: {data.scheduled_time}",
        f"Total: {data.total}",
        "",
        "If you have any questions, please contact us.",
        "",
        data.business_name,
    ])


def render_status_update_html(data: OrderEmailData, new_status: str) -> str:
    info = STATUS_MESSAGES[new_status]
    parts = [
        f"<p>Hi {escape(data.customer_name)},</p>",
        f"<p>{escape(info['message'])}</p>",
        _section("Order Details"),
        _field("Order ID", data.short_id),
        _field("Type", data.fulfillment_type.upper()),
        _field("Date", data.scheduled_date),
        _field("Time", data.scheduled_time),
        _field("Total", data.total),
        "<p>If you have any questions, please contact us.</p>",
    ]
    return _page_html(info['heading'], f"{data.business_name} Catering", info['heading'],
                      "".join(parts), color=info['color'])
