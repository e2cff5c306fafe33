from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Enquiry:
    enquiry_id: str
    name: str
    email: str
    phone: str
    city: str
    investment: str
    message: str
    received_at: datetime

    def as_dict(self) -> dict:
        return {
            "enquiryId": self.enquiry_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "city": self.city,
            "investment": self.investment,
            "message": self.message,
            "receivedAt": self.received_at.isoformat(),
        }

    def __str__(self):
        return f"{self.enquiry_id} {self.name}"
