import json

from django.core import mail
from django.test import SimpleTestCase

from payments.dispatch import NotificationDispatcher, get_dispatcher

from .services import EnquiryService, get_enquiry_service

ENQUIRY = {
    "name": "Asha Rao",
    "email": "asha@example.com",
    "phone": "9876543210",
    "city": "Pune",
    "investment": "25-50 lakh",
    "message": "Interested in a store in Kothrud.",
}


class EnquiryServiceTests(SimpleTestCase):
    def test_record_enquiry(self):
        service = EnquiryService(dispatcher=NotificationDispatcher(synchronous=True))
        enquiry = service.record_enquiry(ENQUIRY)
        self.assertTrue(enquiry.enquiry_id.startswith("ENQ_"))
        self.assertEqual(enquiry.city, "Pune")
        self.assertEqual(service.store.get(enquiry.enquiry_id), enquiry)
        self.assertEqual(len(mail.outbox), 2)
        self.assertEqual(mail.outbox[0].to, ["asha@example.com"])

    def test_missing_optional_fields_default_blank(self):
        service = EnquiryService(dispatcher=NotificationDispatcher(synchronous=True))
        enquiry = service.record_enquiry({"name": "Ravi"})
        self.assertEqual(enquiry.email, "")
        self.assertEqual(enquiry.message, "")
        # no customer address, so only the admin copy goes out
        self.assertEqual(len(mail.outbox), 1)


class EnquiryApiTests(SimpleTestCase):
    def setUp(self):
        get_enquiry_service.cache_clear()
        get_dispatcher.cache_clear()

    def tearDown(self):
        get_enquiry_service.cache_clear()
        get_dispatcher.cache_clear()

    def _post(self, body):
        return self.client.post("/api/send-notification", data=json.dumps(body), content_type="application/json")

    def test_enquiry_created_and_listed(self):
        resp = self._post({"type": "enquiry", "data": ENQUIRY})
        self.assertEqual(resp.status_code, 201)
        enquiry_id = resp.json()["enquiryId"]
        self.assertTrue(resp.json()["success"])

        listing = self.client.get("/api/admin/enquiries").json()
        self.assertEqual(listing["count"], 1)
        self.assertEqual(listing["data"][0]["enquiryId"], enquiry_id)
        self.assertEqual(listing["data"][0]["investment"], "25-50 lakh")
        self.assertIn("receivedAt", listing["data"][0])

    def test_missing_fields(self):
        self.assertEqual(self._post({"type": "enquiry"}).status_code, 400)
        self.assertEqual(self._post({"data": ENQUIRY}).status_code, 400)

    def test_unsupported_type(self):
        resp = self._post({"type": "newsletter", "data": ENQUIRY})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Unsupported notification type")
        self.assertEqual(self.client.get("/api/admin/enquiries").json()["count"], 0)
