from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

PENDING = "pending"
COMPLETED = "completed"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Customer:
    name: str
    email: str
    phone: str
    city: str = ""
    package_type: str = ""

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "city": self.city,
            "packageType": self.package_type,
        }


@dataclass(frozen=True)
class Order:
    """A payment request and its lifecycle state.

    Records are immutable; a status change produces a new record that the
    store swaps in under the order's lock.
    """

    order_id: str
    gateway_request_id: str
    customer: Customer
    amount: int
    purpose: str
    created_at: datetime
    long_url: str = ""
    short_url: str = ""
    status: str = PENDING
    payment_id: Optional[str] = None
    completed_at: Optional[datetime] = None
    test_mode: bool = field(default=False, compare=False)

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED

    def completed(self, payment_id: str, at: datetime) -> "Order":
        if self.is_completed:
            raise ValueError(f"Order {self.order_id} is already completed")
        return replace(self, status=COMPLETED, payment_id=payment_id, completed_at=at)

    def public_dict(self) -> dict:
        return {
            "orderId": self.order_id,
            "paymentRequestId": self.gateway_request_id,
            "amount": self.amount,
            "longurl": self.long_url,
            "shorturl": self.short_url,
            "status": self.status,
            "testMode": self.test_mode,
        }

    def status_dict(self) -> dict:
        return {
            "orderId": self.order_id,
            "status": self.status,
            "amount": self.amount,
            "createdAt": _iso(self.created_at),
            "completedAt": _iso(self.completed_at),
            "paymentId": self.payment_id,
        }

    def as_dict(self) -> dict:
        return {
            **self.status_dict(),
            "paymentRequestId": self.gateway_request_id,
            "customerData": self.customer.as_dict(),
            "purpose": self.purpose,
            "longurl": self.long_url,
            "shorturl": self.short_url,
        }

    def __str__(self):
        return f"{self.order_id} ({self.status})"
