import logging
from functools import lru_cache
from typing import List, Optional

from django.utils import timezone

from payments.dispatch import NotificationDispatcher, get_dispatcher
from payments.store import InMemoryStore
from payments.utils import generate_order_id

from .emails import send_enquiry_emails
from .models import Enquiry

logger = logging.getLogger(__name__)

FIELDS = ("name", "email", "phone", "city", "investment", "message")


class EnquiryStore(InMemoryStore[Enquiry]):
    pass


class EnquiryService:
    def __init__(self, store: Optional[EnquiryStore] = None, dispatcher: Optional[NotificationDispatcher] = None):
        self.store = store if store is not None else EnquiryStore()
        self.dispatcher = dispatcher or NotificationDispatcher(synchronous=True)

    def record_enquiry(self, data: dict) -> Enquiry:
        enquiry = Enquiry(
            enquiry_id=generate_order_id(prefix="ENQ"),
            received_at=timezone.now(),
            **{f: str(data.get(f) or "").strip() for f in FIELDS},
        )
        self.store.put(enquiry.enquiry_id, enquiry)
        logger.info("Enquiry stored: %s", enquiry.enquiry_id)
        self.dispatcher.submit(send_enquiry_emails, enquiry)
        return enquiry

    def list_enquiries(self) -> List[Enquiry]:
        return sorted(self.store.values(), key=lambda e: e.received_at)


@lru_cache(maxsize=None)
def get_enquiry_service() -> EnquiryService:
    return EnquiryService(store=EnquiryStore(), dispatcher=get_dispatcher())
