import logging
import re
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import List, Optional

from django.conf import settings
from django.utils import timezone

from .dispatch import NotificationDispatcher, get_dispatcher
from .emails import send_payment_request_emails, send_payment_success_emails
from .errors import InvalidSignature, NotFound, ValidationError
from .gateways import PaymentGateway, get_gateway
from .models import Customer, Order
from .store import OrderStore
from .utils import digits_only, generate_order_id, verify_mac

logger = logging.getLogger(__name__)

MIN_AMOUNT = 9  # Instamojo rejects anything below ₹9
MAX_AMOUNT = 200000  # per payment request
DEFAULT_PURPOSE = "Franchise Registration"
SUCCESS_STATUS = "Credit"

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _clean_amount(raw) -> int:
    if isinstance(raw, bool) or raw is None or raw == "":
        raise ValidationError(f"Invalid payment amount (minimum ₹{MIN_AMOUNT} required by Instamojo)")
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError):
        raise ValidationError(f"Invalid payment amount (minimum ₹{MIN_AMOUNT} required by Instamojo)")
    if not amount.is_finite() or amount < MIN_AMOUNT:
        raise ValidationError(f"Invalid payment amount (minimum ₹{MIN_AMOUNT} required by Instamojo)")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"Payment amount exceeds the maximum of ₹{MAX_AMOUNT}")
    if amount != amount.to_integral_value():
        raise ValidationError("Payment amount must be a whole rupee amount")
    return int(amount)


def _clean_customer(data: dict) -> Customer:
    name = str(data.get("name") or "").strip()
    email = str(data.get("email") or "").strip()
    phone = str(data.get("phone") or "").strip()
    if not (name and email and phone):
        raise ValidationError("Missing required customer information (name, email, phone)")
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")
    phone = digits_only(phone)
    if len(phone) != 10:
        raise ValidationError("Invalid phone number (must be 10 digits)")
    return Customer(
        name=name,
        email=email,
        phone=phone,
        city=str(data.get("city") or "").strip(),
        package_type=str(data.get("packageType") or "").strip(),
    )


class PaymentService:
    """Order lifecycle: pending on creation, completed by a Credit webhook."""

    def __init__(
        self,
        gateway: PaymentGateway,
        orders: Optional[OrderStore] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        salt: str = "",
        allow_unsigned_webhooks: bool = True,
    ):
        self.gateway = gateway
        self.orders = orders if orders is not None else OrderStore()
        self.dispatcher = dispatcher or NotificationDispatcher(synchronous=True)
        self.salt = salt or ""
        self.allow_unsigned_webhooks = allow_unsigned_webhooks

    @property
    def test_mode(self) -> bool:
        return self.gateway.test_mode

    # ---------- create ----------
    def create_payment(self, customer_data, payment_data) -> dict:
        if not isinstance(payment_data, dict) or not isinstance(customer_data, dict) \
                or not payment_data or not customer_data:
            raise ValidationError("Missing required payment or customer data")

        amount = _clean_amount(payment_data.get("amount"))
        customer = _clean_customer(customer_data)
        purpose = str(payment_data.get("purpose") or "").strip() or DEFAULT_PURPOSE

        order_id = generate_order_id()
        logger.info("New payment request %s: customer=%s amount=%s", order_id, customer.name, amount)

        # Gateway errors propagate; nothing is stored for a failed request
        link = self.gateway.create_payment_request(amount, purpose, customer, order_id)

        order = Order(
            order_id=order_id,
            gateway_request_id=link.request_id,
            customer=customer,
            amount=amount,
            purpose=purpose,
            created_at=timezone.now(),
            long_url=link.long_url,
            short_url=link.short_url,
            test_mode=self.test_mode,
        )
        self.orders.put(order_id, order)
        logger.info("Order %s pending (payment request %s)", order_id, link.request_id)

        self.dispatcher.submit(send_payment_request_emails, order=order)
        return order.public_dict()

    # ---------- webhook ----------
    def _check_signature(self, payload: dict) -> None:
        mac = str(payload.get("mac") or "").strip()
        if self.salt and mac:
            if not verify_mac(payload, self.salt, mac):
                logger.error("Invalid MAC - webhook for %s rejected", payload.get("payment_request_id"))
                raise InvalidSignature("Invalid MAC")
            return
        if not self.allow_unsigned_webhooks:
            raise InvalidSignature("Webhook MAC required")
        logger.warning(
            "Processing unsigned webhook for %s (salt configured: %s)",
            payload.get("payment_request_id"), bool(self.salt),
        )

    def handle_webhook(self, payload: dict) -> Optional[Order]:
        """Apply a gateway webhook.

        Returns the order when this call completed it, None otherwise
        (unknown order, duplicate delivery, a non-Credit status, or a
        Credit without a payment_id).
        """
        self._check_signature(payload)

        status = payload.get("status")
        request_id = str(payload.get("payment_request_id") or "")
        if status != SUCCESS_STATUS:
            logger.info("Webhook for %s with status %r ignored", request_id, status)
            return None

        payment_id = str(payload.get("payment_id") or "").strip()
        if not payment_id:
            logger.warning("Credit webhook for %s without payment_id ignored", request_id)
            return None

        found = self.orders.find_by_gateway_request_id(request_id) if request_id else None
        if found is None:
            logger.warning("Order not found for payment_request_id %s", request_id)
            return None

        with self.orders.locked(found.order_id):
            current = self.orders.get(found.order_id)
            if current.is_completed:
                logger.info("Order %s already completed; duplicate webhook ignored", current.order_id)
                return None
            order = current.completed(payment_id, timezone.now())
            self.orders.put(order.order_id, order)

        logger.info("Order %s completed (payment %s)", order.order_id, order.payment_id)
        self.dispatcher.submit(send_payment_success_emails, order=order)
        return order

    # ---------- reads ----------
    def get_status(self, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise NotFound("Payment not found")
        return order

    def find_by_request_id(self, request_id: str) -> Optional[Order]:
        return self.orders.find_by_gateway_request_id(request_id)

    def list_orders(self) -> List[Order]:
        return sorted(self.orders.values(), key=lambda o: o.created_at)

    def verify_payment(self, request_id: str, payment_id: str) -> bool:
        return self.gateway.verify_payment(request_id, payment_id)


@lru_cache(maxsize=None)
def get_payment_service() -> PaymentService:
    """Compose the process-wide service; gateway choice is fixed here."""
    cfg = getattr(settings, "INSTAMOJO", {})
    logger.info(
        "Instamojo configuration: api_key=%s auth_token=%s salt=%s api_url=%s",
        "set" if cfg.get("API_KEY") else "missing",
        "set" if cfg.get("AUTH_TOKEN") else "missing",
        "set" if cfg.get("SALT") else "missing",
        cfg.get("API_URL"),
    )
    return PaymentService(
        gateway=get_gateway(cfg),
        orders=OrderStore(),
        dispatcher=get_dispatcher(),
        salt=cfg.get("SALT", ""),
        allow_unsigned_webhooks=cfg.get("ALLOW_UNSIGNED_WEBHOOKS", True),
    )
