"""
Payment gateway integration.

The order workflow only needs two things from a gateway: a hosted checkout
link for an order, and verification of the callbacks the gateway posts back.
``PaymentGateway`` describes that contract; ``PayOSGateway`` implements it on
top of the PayOS SDK. The instance is built once by ``ShopConfig.ready()``
and handed to the order functions explicitly.
"""
import logging
from dataclasses import dataclass

from django.conf import settings
from django.utils.module_loading import import_string
from payos import ItemData, PaymentData, PayOS

from .exceptions import PaymentGatewayError, WebhookVerificationError

logger = logging.getLogger(__name__)

# PayOS rejects item names longer than this
MAX_ITEM_NAME_LENGTH = 200


@dataclass(frozen=True)
class CheckoutItem:
    name: str
    quantity: int
    price: int


@dataclass(frozen=True)
class PaymentCallback:
    order_code: int
    amount: int
    paid: bool
    reference: str = ""


class PaymentGateway:
    def create_checkout_link(self, order_code, amount, description, items, cancel_url, return_url):
        """Return the hosted checkout URL or raise PaymentGatewayError."""
        raise NotImplementedError

    def verify_callback(self, payload):
        """Return a PaymentCallback or raise WebhookVerificationError."""
        raise NotImplementedError


class PayOSGateway(PaymentGateway):
    def __init__(self, client_id, api_key, checksum_key):
        self.client_id = client_id
        self.api_key = api_key
        self.checksum_key = checksum_key
        self._client = None

    @classmethod
    def from_settings(cls):
        if not (settings.PAYOS_CLIENT_ID and settings.PAYOS_API_KEY and settings.PAYOS_CHECKSUM_KEY):
            logger.warning("PayOS credentials are not configured; QR payments will fail.")
        return cls(
            settings.PAYOS_CLIENT_ID,
            settings.PAYOS_API_KEY,
            settings.PAYOS_CHECKSUM_KEY,
        )

    @property
    def client(self):
        if self._client is None:
            self._client = PayOS(
                client_id=self.client_id,
                api_key=self.api_key,
                checksum_key=self.checksum_key,
            )
        return self._client

    def create_checkout_link(self, order_code, amount, description, items, cancel_url, return_url):
        payment_data = PaymentData(
            orderCode=order_code,
            amount=amount,
            description=description,
            items=[
                ItemData(name=item.name[:MAX_ITEM_NAME_LENGTH], quantity=item.quantity, price=item.price)
                for item in items
            ],
            cancelUrl=cancel_url,
            returnUrl=return_url,
        )
        try:
            result = self.client.createPaymentLink(paymentData=payment_data)
        except Exception as e:
            logger.exception("PayOS payment link creation failed for order %s", order_code)
            raise PaymentGatewayError() from e
        logger.info("PayOS checkout link created for order %s: %s", order_code, result.checkoutUrl)
        return result.checkoutUrl

    def verify_callback(self, payload):
        if not isinstance(payload, dict):
            logger.warning("Rejected PayOS webhook: body is %s, not an object", type(payload).__name__)
            raise WebhookVerificationError("Webhook body must be a JSON object.")
        try:
            data = self.client.verifyPaymentWebhookData(payload)
        except Exception as e:
            logger.warning("Rejected PayOS webhook: signature verification failed (%s)", e)
            raise WebhookVerificationError(f"Webhook signature verification failed: {e}") from e

        code = getattr(data, "code", None) or payload.get("code")
        return PaymentCallback(
            order_code=int(data.orderCode),
            amount=int(getattr(data, "amount", 0) or 0),
            paid=code == "00" or payload.get("success") is True,
            reference=getattr(data, "reference", "") or "",
        )


def build_gateway():
    gateway_class = import_string(settings.SHOP_PAYMENT_GATEWAY)
    return gateway_class.from_settings()
