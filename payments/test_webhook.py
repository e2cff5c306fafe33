import json
import threading

from django.core import mail
from django.test import SimpleTestCase, override_settings

from .errors import InvalidSignature
from .gateways import SimulatedGateway
from .dispatch import NotificationDispatcher, get_dispatcher
from .models import COMPLETED, PENDING
from .services import PaymentService, get_payment_service
from .utils import compute_mac

CUSTOMER = {"name": "Test User", "email": "test@example.com", "phone": "9876543210", "city": "Mumbai"}
SUCCESS_SUBJECT = "Payment Successful"

SIGNED_CONFIG = {
    "API_KEY": "",
    "AUTH_TOKEN": "",
    "SALT": "s3cret",
    "API_URL": "https://api.instamojo.test/v2/",
    "TIMEOUT": 30,
    "REDIRECT_URL": "http://testserver/payment-success",
    "WEBHOOK_URL": "http://testserver/api/webhook",
    "TEST_MODE": True,
    "ALLOW_UNSIGNED_WEBHOOKS": True,
}


def success_emails():
    return [m for m in mail.outbox if SUCCESS_SUBJECT in m.subject]


class WebhookLifecycleTests(SimpleTestCase):
    def setUp(self):
        self.service = PaymentService(
            gateway=SimulatedGateway(base_url="http://testserver"),
            dispatcher=NotificationDispatcher(synchronous=True),
        )
        self.data = self.service.create_payment(CUSTOMER, {"amount": 5000, "purpose": "Basic"})
        self.payload = {
            "payment_id": "P1",
            "payment_request_id": self.data["paymentRequestId"],
            "status": "Credit",
        }
        mail.outbox = []

    def test_credit_completes_order(self):
        completed = self.service.handle_webhook(self.payload)
        order = self.service.get_status(self.data["orderId"])
        self.assertEqual(completed, order)
        self.assertEqual(order.status, COMPLETED)
        self.assertEqual(order.payment_id, "P1")
        self.assertIsNotNone(order.completed_at)
        self.assertEqual(len(success_emails()), 1)
        self.assertEqual(success_emails()[0].to, ["test@example.com"])

    def test_duplicate_webhook_is_idempotent(self):
        self.service.handle_webhook(self.payload)
        first = self.service.get_status(self.data["orderId"])
        self.assertIsNone(self.service.handle_webhook(self.payload))
        second = self.service.get_status(self.data["orderId"])
        self.assertEqual(first.completed_at, second.completed_at)
        self.assertEqual(len(success_emails()), 1)

    def test_completed_order_never_reverts(self):
        self.service.handle_webhook(self.payload)
        self.service.handle_webhook({**self.payload, "payment_id": "P2"})
        self.service.handle_webhook({**self.payload, "status": "Failed"})
        order = self.service.get_status(self.data["orderId"])
        self.assertEqual(order.status, COMPLETED)
        self.assertEqual(order.payment_id, "P1")
        with self.assertRaises(ValueError):
            order.completed("P3", order.completed_at)

    def test_unknown_request_id_is_noop(self):
        before = self.service.list_orders()
        with self.assertLogs("payments.services", level="WARNING"):
            result = self.service.handle_webhook({**self.payload, "payment_request_id": "MISSING"})
        self.assertIsNone(result)
        self.assertEqual(self.service.list_orders(), before)
        self.assertEqual(mail.outbox, [])

    def test_non_credit_status_ignored(self):
        self.assertIsNone(self.service.handle_webhook({**self.payload, "status": "Failed"}))
        self.assertEqual(self.service.get_status(self.data["orderId"]).status, PENDING)

    def test_credit_without_payment_id_ignored(self):
        for missing in ({}, {"payment_id": ""}, {"payment_id": "  "}):
            payload = {k: v for k, v in self.payload.items() if k != "payment_id"}
            payload.update(missing)
            with self.assertLogs("payments.services", level="WARNING"):
                self.assertIsNone(self.service.handle_webhook(payload))
        order = self.service.get_status(self.data["orderId"])
        self.assertEqual(order.status, PENDING)
        self.assertIsNone(order.payment_id)
        self.assertIsNone(order.completed_at)
        self.assertEqual(mail.outbox, [])

    def test_concurrent_duplicates_complete_once(self):
        threads_n = 8
        barrier = threading.Barrier(threads_n)
        results = []

        def deliver():
            barrier.wait()
            results.append(self.service.handle_webhook(dict(self.payload)))

        threads = [threading.Thread(target=deliver) for _ in range(threads_n)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        winners = [r for r in results if r is not None]
        self.assertEqual(len(winners), 1)
        order = self.service.get_status(self.data["orderId"])
        self.assertEqual(order.completed_at, winners[0].completed_at)
        self.assertEqual(len(success_emails()), 1)


class WebhookSignatureTests(SimpleTestCase):
    def _service(self, salt="s3cret", allow_unsigned=True):
        service = PaymentService(
            gateway=SimulatedGateway(base_url="http://testserver"),
            dispatcher=NotificationDispatcher(synchronous=True),
            salt=salt,
            allow_unsigned_webhooks=allow_unsigned,
        )
        data = service.create_payment(CUSTOMER, {"amount": 5000})
        payload = {"payment_id": "P1", "payment_request_id": data["paymentRequestId"], "status": "Credit"}
        return service, data, payload

    def test_valid_mac_accepted(self):
        service, data, payload = self._service()
        payload["mac"] = compute_mac(["P1", data["paymentRequestId"], "Credit"], "s3cret")
        service.handle_webhook(payload)
        self.assertEqual(service.get_status(data["orderId"]).status, COMPLETED)

    def test_bad_mac_rejected_without_state_change(self):
        service, data, payload = self._service()
        payload["mac"] = compute_mac(["P1", data["paymentRequestId"], "Credit"], "wrong")
        with self.assertRaises(InvalidSignature):
            service.handle_webhook(payload)
        self.assertEqual(service.get_status(data["orderId"]).status, PENDING)

    def test_no_secret_accepts_any_mac(self):
        service, data, payload = self._service(salt="")
        payload["mac"] = "not-a-real-mac"
        service.handle_webhook(payload)
        self.assertEqual(service.get_status(data["orderId"]).status, COMPLETED)

    def test_absent_mac_accepted_in_insecure_mode(self):
        service, data, payload = self._service()
        with self.assertLogs("payments.services", level="WARNING"):
            service.handle_webhook(payload)
        self.assertEqual(service.get_status(data["orderId"]).status, COMPLETED)

    def test_unsigned_rejected_when_insecure_mode_off(self):
        service, data, payload = self._service(allow_unsigned=False)
        with self.assertRaises(InvalidSignature):
            service.handle_webhook(payload)
        service_no_salt, data2, payload2 = self._service(salt="", allow_unsigned=False)
        payload2["mac"] = "anything"
        with self.assertRaises(InvalidSignature):
            service_no_salt.handle_webhook(payload2)
        self.assertEqual(service.get_status(data["orderId"]).status, PENDING)
        self.assertEqual(service_no_salt.get_status(data2["orderId"]).status, PENDING)


@override_settings(INSTAMOJO=SIGNED_CONFIG)
class WebhookEndpointTests(SimpleTestCase):
    def setUp(self):
        get_payment_service.cache_clear()
        get_dispatcher.cache_clear()
        body = {"paymentData": {"amount": 5000, "purpose": "Basic"}, "customerData": CUSTOMER}
        resp = self.client.post("/api/create-payment", data=json.dumps(body), content_type="application/json")
        self.data = resp.json()["data"]

    def tearDown(self):
        get_payment_service.cache_clear()
        get_dispatcher.cache_clear()

    def _status(self):
        return self.client.get(f"/api/payment-status/{self.data['orderId']}").json()["data"]["status"]

    def test_form_encoded_signed_webhook(self):
        form = {"payment_id": "MOJO1", "payment_request_id": self.data["paymentRequestId"], "status": "Credit"}
        form["mac"] = compute_mac([form["payment_id"], form["payment_request_id"], "Credit"], "s3cret")
        resp = self.client.post("/api/webhook", data=form)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self._status(), COMPLETED)

    def test_invalid_mac_is_400(self):
        form = {
            "payment_id": "MOJO1",
            "payment_request_id": self.data["paymentRequestId"],
            "status": "Credit",
            "mac": "0" * 40,
        }
        resp = self.client.post("/api/webhook", data=form)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.content, b"Invalid MAC")
        self.assertEqual(self._status(), PENDING)

    def test_unknown_order_still_200(self):
        resp = self.client.post("/api/webhook", data={"payment_id": "X", "payment_request_id": "nope", "status": "Credit"})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self._status(), PENDING)

    def test_credit_without_payment_id_leaves_order_pending(self):
        form = {"payment_request_id": self.data["paymentRequestId"], "status": "Credit"}
        resp = self.client.post("/api/webhook", data=form)
        self.assertEqual(resp.status_code, 200)
        data = self.client.get(f"/api/payment-status/{self.data['orderId']}").json()["data"]
        self.assertEqual(data["status"], PENDING)
        self.assertIsNone(data["paymentId"])
        self.assertIsNone(data["completedAt"])

    def test_malformed_json_is_400(self):
        resp = self.client.post("/api/webhook", data="{bad", content_type="application/json")
        self.assertEqual(resp.status_code, 400)
