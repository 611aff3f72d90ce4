# 邮件通知发送（SMTP2GO HTTP API）与提交后发件箱

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Iterator

import httpx

from utils.config import Config
from . import email_templates as templates
from .email_templates import OrderEmailData

logger = logging.getLogger(__name__)

SMTP2GO_SEND_URL = "https://api.smtp2go.com/v3/email/send"
DEFAULT_SENDER = "orders@bluecilantro.ca"

KIND_BUSINESS = "business_notification"
KIND_CUSTOMER = "customer_confirmation"
KIND_STATUS = "status_update"


@dataclass(frozen=True)
class PendingNotification:
    """发件箱中的一封待发送邮件"""
    kind: str
    data: OrderEmailData
    to_email: Optional[str] = None
    new_status: Optional[str] = None


class NotificationOutbox:
    """
    请求范围内的发件箱

    业务代码只往这里追加；数据库提交成功后由路由交给后台任务统一发送。
    """

    def __init__(self):
        self._pending: List[PendingNotification] = []

    def __len__(self) -> int:
        return len(self._pending)

    def __iter__(self) -> Iterator[PendingNotification]:
        return iter(list(self._pending))

    def add(self, notification: PendingNotification):
        self._pending.append(notification)

    def order_received(self, data: OrderEmailData, notification_email: str, notify_customer: bool):
        """新订单：商家通知必发，顾客确认邮件按设置决定"""
        self.add(PendingNotification(KIND_BUSINESS, data, to_email=notification_email))
        if notify_customer:
            self.add(PendingNotification(KIND_CUSTOMER, data, to_email=data.customer_email))

    def status_update(self, data: OrderEmailData, new_status: str):
        if new_status not in templates.STATUS_MESSAGES:
            raise ValueError(f"No status e-mail for {new_status}")
        self.add(PendingNotification(KIND_STATUS, data, to_email=data.customer_email, new_status=new_status))

    def drain(self) -> List[PendingNotification]:
        pending, self._pending = self._pending, []
        return pending


class NotificationDispatcher:
    """
    邮件发送器

    所有发送方法返回是否成功，从不抛出异常；
    未配置 API Key 时把邮件内容写入日志（本地开发用）。
    """

    def __init__(self, api_key: str = "", sender_email: str = "", api_url: str = SMTP2GO_SEND_URL,
                 timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key or ""
        self.sender_email = sender_email or DEFAULT_SENDER
        self.api_url = api_url
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, config: Config) -> "NotificationDispatcher":
        return cls(
            api_key=config.get('email.smtp2go_api_key', ''),
            sender_email=config.get('email.sender_email', ''),
            api_url=config.get('email.api_url', SMTP2GO_SEND_URL),
            timeout=float(config.get('email.timeout_seconds', 10)),
        )

    def _log_fallback(self, label: str, to_email: str, subject: str, text_body: str):
        separator = "=" * 60
        logger.info(
            f"\n{separator}\n{label} (SMTP2GO not configured)\n{separator}\n"
            f"To: {to_email}\nSubject: {subject}\n{'-' * 60}\n{text_body}\n{separator}"
        )

    async def _send(self, label: str, to_email: str, subject: str, text_body: str, html_body: str) -> bool:
        if not self.api_key:
            self._log_fallback(label, to_email, subject, text_body)
            return True

        payload = {
            "api_key": self.api_key,
            "to": [to_email],
            "sender": self.sender_email,
            "subject": subject,
            "text_body": text_body,
            "html_body": html_body,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, json=payload)

            try:
                result = response.json()
            except ValueError:
                result = {}

            data = result.get("data") if isinstance(result, dict) else None
            if response.is_error or (isinstance(data, dict) and data.get("error")):
                logger.error(f"SMTP2GO 发送失败 ({label}): HTTP {response.status_code} {result}")
                return False

            logger.info(f"邮件发送成功 ({label}): {to_email}")
            return True

        except httpx.HTTPError as e:
            logger.error(f"邮件发送请求失败 ({label}): {str(e)}")
            return False
        except Exception as e:
            logger.error(f"邮件发送出现未知错误 ({label}): {str(e)}", exc_info=True)
            return False

    async def send_order_notification(self, to_email: str, data: OrderEmailData) -> bool:
        return await self._send(
            "ORDER NOTIFICATION EMAIL",
            to_email,
            templates.business_notification_subject(data),
            templates.render_business_notification_text(data),
            templates.render_business_notification_html(data),
        )

    async def send_customer_order_confirmation(self, data: OrderEmailData) -> bool:
        return await self._send(
            "CUSTOMER ORDER CONFIRMATION EMAIL",
            data.customer_email,
            templates.customer_confirmation_subject(data),
            templates.render_customer_confirmation_text(data),
            templates.render_customer_confirmation_html(data),
        )

    async def send_order_status_update(self, data: OrderEmailData, new_status: str) -> bool:
        if new_status not in templates.STATUS_MESSAGES:
            logger.error(f"不支持的状态邮件: {new_status}")
            return False

        return await self._send(
            f"ORDER STATUS UPDATE EMAIL ({new_status.upper()})",
            data.customer_email,
            templates.status_update_subject(data, new_status),
            templates.render_status_update_text(data, new_status),
            templates.render_status_update_html(data, new_status),
        )

    async def dispatch(self, notification: PendingNotification) -> bool:
        if notification.kind == KIND_BUSINESS:
            return await self.send_order_notification(notification.to_email, notification.data)
        if notification.kind == KIND_CUSTOMER:
            return await self.send_customer_order_confirmation(notification.data)
        if notification.kind == KIND_STATUS:
            return await self.send_order_status_update(notification.data, notification.new_status)

        logger.error(f"未知的通知类型: {notification.kind}")
        return False

    async def flush(self, outbox: NotificationOutbox) -> int:
        """
        发送发件箱中的全部邮件

        Returns:
            成功发送的数量
        """
        pending = outbox.drain()
        sent = 0
        for notification in pending:
            if await self.dispatch(notification):
                sent += 1

        if pending:
            logger.info(f"通知发送完成: {sent}/{len(pending)}")
        return sent


@lru_cache()
def get_notification_dispatcher() -> NotificationDispatcher:
    """FastAPI 依赖：进程内共享的发送器"""
    return NotificationDispatcher.from_config(Config())
