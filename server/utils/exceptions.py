# 业务异常定义


class CateringError(Exception):
    """所有业务异常的基类"""


class CheckoutValidationError(CateringError, ValueError):
    """结算输入校验失败，消息直接返回给调用方"""


class InvalidStatusTransition(CateringError, ValueError):
    """订单状态流转不合法"""


class OrderNotFound(CateringError, LookupError):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class PaymentGatewayError(CateringError):
    """
    支付网关调用失败

    retryable 为真表示网络超时等可重试的失败
    """

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class PaymentGatewayNotConfigured(PaymentGatewayError):
    """缺少支付网关密钥配置"""


class WebhookSignatureError(CateringError):
    """Webhook签名校验失败"""
