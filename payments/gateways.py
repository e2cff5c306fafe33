import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import urlencode

from django.conf import settings

from .integrations import instamojo
from .models import Customer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentLink:
    request_id: str
    long_url: str
    short_url: str = ""


class PaymentGateway(ABC):
    name: str = "base"
    test_mode: bool = False

    def __init__(self, config=None):
        self.config = config or {}

    @abstractmethod
    def create_payment_request(self, amount, purpose: str, customer: Customer, order_id: str) -> PaymentLink:
        """Ask the gateway for a payment page for this order."""
        raise NotImplementedError

    @abstractmethod
    def verify_payment(self, request_id: str, payment_id: str) -> bool:
        """Read-only check that ``payment_id`` settled ``request_id``."""
        raise NotImplementedError


class SimulatedGateway(PaymentGateway):
    """Stand-in for Instamojo: links point at the local /test-payment page."""

    name = "simulated"
    test_mode = True

    def __init__(self, config=None, base_url=None):
        super().__init__(config)
        self.base_url = (base_url or getattr(settings, "BASE_URL", "http://localhost:3000")).rstrip("/")

    def create_payment_request(self, amount, purpose, customer, order_id):
        request_id = "TEST_" + secrets.token_hex(8)
        query = urlencode({
            "payment_request_id": request_id,
            "order_id": order_id,
            "amount": amount,
            "buyer_name": customer.name,
        })
        logger.info("Simulated payment request %s for order %s", request_id, order_id)
        return PaymentLink(
            request_id=request_id,
            long_url=f"{self.base_url}/test-payment?{query}",
            short_url=f"{self.base_url}/pay/{request_id}",
        )

    def verify_payment(self, request_id, payment_id):
        return True


class InstamojoGateway(PaymentGateway):
    name = "instamojo"

    def create_payment_request(self, amount, purpose, customer, order_id):
        data = instamojo.create_payment_request(
            self.config,
            purpose=purpose,
            amount=amount,
            buyer_name=customer.name,
            email=customer.email,
            phone=customer.phone,
        )
        link = PaymentLink(
            request_id=str(data.get("id") or ""),
            long_url=data.get("longurl") or "",
            short_url=data.get("shorturl") or "",
        )
        logger.info("Instamojo payment request %s created for order %s", link.request_id, order_id)
        return link

    def verify_payment(self, request_id, payment_id):
        data = instamojo.get_payment(self.config, request_id, payment_id)
        if not data.get("success"):
            return False
        payment = (data.get("payment_request") or {}).get("payment") or data.get("payment") or {}
        status = payment.get("status")
        return status is None or status == "Credit"


def get_gateway(config=None) -> PaymentGateway:
    cfg = config if config is not None else getattr(settings, "INSTAMOJO", {})
    if cfg.get("TEST_MODE") or not (cfg.get("API_KEY") and cfg.get("AUTH_TOKEN")):
        logger.warning("Running in TEST MODE - no real payments will be processed")
        return SimulatedGateway(cfg)
    logger.info("Instamojo LIVE mode (API URL %s)", cfg.get("API_URL"))
    return InstamojoGateway(cfg)
