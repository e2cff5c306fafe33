import json
from unittest.mock import patch

import requests
from django.core import mail
from django.test import SimpleTestCase, override_settings

from . import utils
from .dispatch import NotificationDispatcher, get_dispatcher
from .errors import (
    GatewayAuthError,
    GatewayError,
    GatewayRequestError,
    GatewayTimeout,
    GatewayUnreachable,
    NotFound,
    ValidationError,
)
from .gateways import InstamojoGateway, SimulatedGateway, get_gateway
from .models import Customer, COMPLETED, PENDING
from .services import MAX_AMOUNT, PaymentService, get_payment_service
from .store import OrderStore

CUSTOMER = {
    "name": "Test User",
    "email": "test@example.com",
    "phone": "9876543210",
    "city": "Mumbai",
}

LIVE_CONFIG = {
    "API_KEY": "key",
    "AUTH_TOKEN": "token",
    "SALT": "",
    "API_URL": "https://api.instamojo.test/v2/",
    "TIMEOUT": 30,
    "REDIRECT_URL": "https://example.com/payment-success",
    "WEBHOOK_URL": "https://example.com/api/webhook",
    "TEST_MODE": False,
    "ALLOW_UNSIGNED_WEBHOOKS": True,
}


class FakeResponse:
    def __init__(self, status_code, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text or json.dumps(data)

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


def reset_services():
    get_payment_service.cache_clear()
    get_dispatcher.cache_clear()


def make_service(**kwargs):
    return PaymentService(
        gateway=SimulatedGateway(base_url="http://testserver"),
        dispatcher=NotificationDispatcher(synchronous=True),
        **kwargs,
    )


class CreatePaymentValidationTests(SimpleTestCase):
    def setUp(self):
        self.service = make_service()

    def test_amount_below_minimum_rejected(self):
        with self.assertRaises(ValidationError) as cm:
            self.service.create_payment(CUSTOMER, {"amount": 8, "purpose": "Basic"})
        self.assertIn("minimum", str(cm.exception))
        self.assertEqual(len(self.service.orders), 0)

    def test_minimum_amount_accepted(self):
        data = self.service.create_payment(CUSTOMER, {"amount": 9, "purpose": "Basic"})
        self.assertEqual(data["amount"], 9)
        self.assertEqual(data["status"], PENDING)

    def test_numeric_string_amount_accepted(self):
        data = self.service.create_payment(CUSTOMER, {"amount": "5000"})
        self.assertEqual(data["amount"], 5000)

    def test_non_numeric_amount_rejected(self):
        for amount in ("abc", None, "", True, "NaN"):
            with self.assertRaises(ValidationError):
                self.service.create_payment(CUSTOMER, {"amount": amount})

    def test_fractional_amount_rejected(self):
        with self.assertRaises(ValidationError):
            self.service.create_payment(CUSTOMER, {"amount": "99.50"})

    def test_amount_above_maximum_rejected(self):
        for amount in (MAX_AMOUNT + 1, "1e5000"):
            with self.assertRaises(ValidationError) as cm:
                self.service.create_payment(CUSTOMER, {"amount": amount})
            self.assertIn("maximum", str(cm.exception))
        self.assertEqual(len(self.service.orders), 0)
        data = self.service.create_payment(CUSTOMER, {"amount": MAX_AMOUNT})
        self.assertEqual(data["amount"], MAX_AMOUNT)

    def test_missing_sections_rejected(self):
        with self.assertRaises(ValidationError) as cm:
            self.service.create_payment(None, {"amount": 100})
        self.assertIn("Missing required payment or customer data", str(cm.exception))

    def test_missing_customer_fields_rejected(self):
        with self.assertRaises(ValidationError) as cm:
            self.service.create_payment({"name": "A", "email": "a@example.com"}, {"amount": 100})
        self.assertIn("name, email, phone", str(cm.exception))

    def test_bad_email_rejected(self):
        with self.assertRaises(ValidationError) as cm:
            self.service.create_payment({**CUSTOMER, "email": "not-an-email"}, {"amount": 100})
        self.assertEqual(str(cm.exception), "Invalid email address")

    def test_phone_must_have_ten_digits(self):
        with self.assertRaises(ValidationError):
            self.service.create_payment({**CUSTOMER, "phone": "12345"}, {"amount": 100})

    def test_phone_formatting_is_stripped(self):
        data = self.service.create_payment({**CUSTOMER, "phone": "98765-43210"}, {"amount": 100})
        order = self.service.get_status(data["orderId"])
        self.assertEqual(order.customer.phone, "9876543210")

    def test_default_purpose(self):
        data = self.service.create_payment(CUSTOMER, {"amount": 100})
        self.assertEqual(self.service.get_status(data["orderId"]).purpose, "Franchise Registration")


class CreatePaymentServiceTests(SimpleTestCase):
    def test_pending_order_indexed_by_request_id(self):
        service = make_service()
        data = service.create_payment(CUSTOMER, {"amount": 5000, "purpose": "Basic"})
        order = service.get_status(data["orderId"])
        self.assertEqual(order.status, PENDING)
        self.assertIsNone(order.payment_id)
        self.assertIsNone(order.completed_at)
        self.assertEqual(service.find_by_request_id(data["paymentRequestId"]), order)

    def test_gateway_failure_stores_nothing(self):
        service = make_service()
        with patch.object(service.gateway, "create_payment_request", side_effect=GatewayTimeout("timed out")):
            with self.assertRaises(GatewayTimeout):
                service.create_payment(CUSTOMER, {"amount": 5000})
        self.assertEqual(service.list_orders(), [])

    def test_get_status_unknown_order(self):
        with self.assertRaises(NotFound):
            make_service().get_status("ORD_0_DEADBEEF")

    def test_notification_failure_is_absorbed(self):
        service = make_service()
        with patch("payments.services.send_payment_request_emails", side_effect=RuntimeError("smtp down")):
            with self.assertLogs("payments.dispatch", level="ERROR"):
                data = service.create_payment(CUSTOMER, {"amount": 5000})
        self.assertEqual(service.get_status(data["orderId"]).status, PENDING)


class SimulatedGatewayTests(SimpleTestCase):
    def test_link_points_at_local_test_page(self):
        gw = SimulatedGateway(base_url="http://localhost:3000")
        link = gw.create_payment_request(5000, "Basic", Customer("Test User", "t@example.com", "9876543210"), "ORD_1")
        self.assertTrue(link.request_id.startswith("TEST_"))
        self.assertTrue(link.long_url.startswith("http://localhost:3000/test-payment?"))
        self.assertIn(f"payment_request_id={link.request_id}", link.long_url)
        self.assertIn("amount=5000", link.long_url)
        self.assertIn("buyer_name=Test+User", link.long_url)
        self.assertEqual(link.short_url, f"http://localhost:3000/pay/{link.request_id}")
        self.assertTrue(gw.verify_payment(link.request_id, "anything"))


class GatewaySelectionTests(SimpleTestCase):
    def test_test_mode_flag_selects_simulation(self):
        self.assertIsInstance(get_gateway({**LIVE_CONFIG, "TEST_MODE": True}), SimulatedGateway)

    def test_missing_credentials_force_simulation(self):
        self.assertIsInstance(get_gateway({**LIVE_CONFIG, "AUTH_TOKEN": ""}), SimulatedGateway)

    def test_live_credentials_select_instamojo(self):
        gw = get_gateway(LIVE_CONFIG)
        self.assertIsInstance(gw, InstamojoGateway)
        self.assertFalse(gw.test_mode)


class InstamojoGatewayTests(SimpleTestCase):
    def setUp(self):
        self.gateway = InstamojoGateway(LIVE_CONFIG)
        self.customer = Customer("Test User", "test@example.com", "9876543210", "Mumbai")

    def _create(self):
        return self.gateway.create_payment_request(5000, "Basic", self.customer, "ORD_1")

    def test_create_success(self):
        body = {
            "success": True,
            "payment_request": {
                "id": "abc123",
                "longurl": "https://www.instamojo.com/@shop/abc123",
                "shorturl": "https://imjo.in/xyz",
            },
        }
        with patch("payments.integrations.instamojo.requests.request", return_value=FakeResponse(201, body)) as req:
            link = self._create()

        self.assertEqual(link.request_id, "abc123")
        self.assertEqual(link.long_url, "https://www.instamojo.com/@shop/abc123")
        self.assertEqual(link.short_url, "https://imjo.in/xyz")

        method, url = req.call_args.args
        self.assertEqual(method, "POST")
        self.assertEqual(url, "https://api.instamojo.test/v2/payment-requests/")
        kwargs = req.call_args.kwargs
        self.assertEqual(kwargs["timeout"], 30)
        self.assertEqual(kwargs["headers"]["X-Api-Key"], "key")
        self.assertEqual(kwargs["headers"]["X-Auth-Token"], "token")
        payload = kwargs["json"]
        self.assertEqual(payload["amount"], 5000)
        self.assertEqual(payload["buyer_name"], "Test User")
        self.assertEqual(payload["redirect_url"], "https://example.com/payment-success")
        self.assertEqual(payload["webhook"], "https://example.com/api/webhook")

    def test_unauthorized(self):
        with patch("payments.integrations.instamojo.requests.request",
                   return_value=FakeResponse(401, {"success": False})):
            with self.assertRaises(GatewayAuthError):
                self._create()

    def test_bad_request_carries_provider_message(self):
        body = {"success": False, "message": {"phone": ["Phone number is invalid."]}}
        with patch("payments.integrations.instamojo.requests.request", return_value=FakeResponse(400, body)):
            with self.assertRaises(GatewayRequestError) as cm:
                self._create()
        self.assertIn("Phone number is invalid.", str(cm.exception))

    def test_other_client_error_is_request_error(self):
        body = {"success": False, "message": "Not allowed"}
        with patch("payments.integrations.instamojo.requests.request", return_value=FakeResponse(403, body)):
            with self.assertRaises(GatewayRequestError) as cm:
                self._create()
        self.assertEqual(str(cm.exception), "Not allowed")

    def test_server_error(self):
        with patch("payments.integrations.instamojo.requests.request",
                   return_value=FakeResponse(502, None, text="<html>bad gateway</html>")):
            with self.assertRaises(GatewayError) as cm:
                self._create()
        self.assertNotIsInstance(cm.exception, GatewayRequestError)

    def test_unsuccessful_body(self):
        with patch("payments.integrations.instamojo.requests.request",
                   return_value=FakeResponse(200, {"success": False})):
            with self.assertRaises(GatewayError):
                self._create()

    def test_connection_error(self):
        with patch("payments.integrations.instamojo.requests.request",
                   side_effect=requests.ConnectionError("Name or service not known")):
            with self.assertRaises(GatewayUnreachable):
                self._create()

    def test_timeout(self):
        with patch("payments.integrations.instamojo.requests.request", side_effect=requests.ReadTimeout()):
            with self.assertRaises(GatewayTimeout):
                self._create()

    def test_verify_payment(self):
        body = {"success": True, "payment_request": {"id": "abc123", "payment": {"status": "Credit"}}}
        with patch("payments.integrations.instamojo.requests.request", return_value=FakeResponse(200, body)) as req:
            self.assertTrue(self.gateway.verify_payment("abc123", "MOJO1"))
        self.assertEqual(req.call_args.args, ("GET", "https://api.instamojo.test/v2/payment-requests/abc123/MOJO1/"))

    def test_verify_payment_clean_negative(self):
        with patch("payments.integrations.instamojo.requests.request",
                   return_value=FakeResponse(200, {"success": False})):
            self.assertFalse(self.gateway.verify_payment("abc123", "MOJO1"))

    def test_verify_payment_failed_status(self):
        body = {"success": True, "payment_request": {"payment": {"status": "Failed"}}}
        with patch("payments.integrations.instamojo.requests.request", return_value=FakeResponse(200, body)):
            self.assertFalse(self.gateway.verify_payment("abc123", "MOJO1"))

    def test_verify_payment_errors_use_taxonomy(self):
        with patch("payments.integrations.instamojo.requests.request",
                   return_value=FakeResponse(401, {"success": False})):
            with self.assertRaises(GatewayAuthError):
                self.gateway.verify_payment("abc123", "MOJO1")


class UtilsTests(SimpleTestCase):
    def test_order_ids_are_unique_and_prefixed(self):
        ids = {utils.generate_order_id() for _ in range(200)}
        self.assertEqual(len(ids), 200)
        self.assertTrue(all(i.startswith("ORD_") for i in ids))
        self.assertTrue(utils.generate_order_id(prefix="ENQ").startswith("ENQ_"))

    def test_mac_round_trip(self):
        payload = {"payment_id": "P1", "payment_request_id": "R1", "status": "Credit"}
        mac = utils.compute_mac(["P1", "R1", "Credit"], "salt")
        self.assertTrue(utils.verify_mac(payload, "salt", mac))
        self.assertFalse(utils.verify_mac(payload, "salt", "0" * 40))
        self.assertFalse(utils.verify_mac({**payload, "status": "Failed"}, "salt", mac))

    def test_mac_skipped_without_secret(self):
        with self.assertLogs("payments.utils", level="WARNING"):
            self.assertTrue(utils.verify_mac({"payment_id": "P1"}, "", "whatever"))


class OrderStoreTests(SimpleTestCase):
    def test_secondary_index(self):
        service = make_service(orders=OrderStore())
        data = service.create_payment(CUSTOMER, {"amount": 100})
        store = service.orders
        self.assertIsNone(store.find_by_gateway_request_id("nope"))
        self.assertEqual(store.find_by_gateway_request_id(data["paymentRequestId"]).order_id, data["orderId"])
        self.assertEqual([o.order_id for o in store.values()], [data["orderId"]])


class PaymentApiTests(SimpleTestCase):
    def setUp(self):
        reset_services()

    def tearDown(self):
        reset_services()

    def _create(self, amount=5000, customer=None):
        body = {"paymentData": {"amount": amount, "purpose": "Basic"}, "customerData": customer or CUSTOMER}
        return self.client.post("/api/create-payment", data=json.dumps(body), content_type="application/json")

    def test_end_to_end_simulated_payment(self):
        resp = self._create()
        self.assertEqual(resp.status_code, 201)
        data = resp.json()["data"]
        self.assertTrue(resp.json()["success"])
        self.assertEqual(data["status"], PENDING)
        self.assertTrue(data["testMode"])
        self.assertTrue(data["longurl"].startswith("http://testserver/test-payment?"))

        status = self.client.get(f"/api/payment-status/{data['orderId']}").json()["data"]
        self.assertEqual(status["status"], PENDING)
        self.assertIsNone(status["completedAt"])
        self.assertIsNone(status["paymentId"])

        hook = self.client.post(
            "/api/webhook",
            data=json.dumps({"payment_id": "P1", "payment_request_id": data["paymentRequestId"], "status": "Credit"}),
            content_type="application/json",
        )
        self.assertEqual(hook.status_code, 200)
        self.assertEqual(hook.content, b"OK")

        status = self.client.get(f"/api/payment-status/{data['orderId']}").json()["data"]
        self.assertEqual(status["status"], COMPLETED)
        self.assertEqual(status["paymentId"], "P1")
        self.assertIsNotNone(status["completedAt"])

    def test_amount_below_minimum(self):
        resp = self._create(amount=5)
        self.assertEqual(resp.status_code, 400)
        self.assertFalse(resp.json()["success"])
        self.assertIn("minimum", resp.json()["message"])
        self.assertEqual(self.client.get("/api/admin/payments").json()["count"], 0)
        self.assertEqual(self.client.get("/api/payment-status/ORD_123_ABCDEF12").status_code, 404)

    def test_huge_exponent_amount_is_400(self):
        resp = self._create(amount="1e5000")
        self.assertEqual(resp.status_code, 400)
        self.assertIn("maximum", resp.json()["message"])
        self.assertEqual(self.client.get("/api/admin/payments").json()["count"], 0)

    def test_invalid_json(self):
        resp = self.client.post("/api/create-payment", data="{oops", content_type="application/json")
        self.assertEqual(resp.status_code, 400)

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get("/api/create-payment").status_code, 405)

    def test_gateway_error_is_500(self):
        with patch.object(SimulatedGateway, "create_payment_request",
                          side_effect=GatewayUnreachable("Cannot connect to Instamojo API.")):
            resp = self._create()
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["message"], "Failed to create payment request")
        self.assertEqual(resp.json()["error"], "Cannot connect to Instamojo API.")
        self.assertEqual(self.client.get("/api/admin/payments").json()["count"], 0)

    def test_request_emails_sent(self):
        data = self._create().json()["data"]
        self.assertEqual(len(mail.outbox), 2)
        customer, admin = mail.outbox
        self.assertEqual(customer.to, ["test@example.com"])
        self.assertTrue(customer.subject.startswith("[TEST] "))
        self.assertIn(data["longurl"].replace("&", "&amp;"), customer.alternatives[0][0])
        self.assertEqual(admin.to, ["admin@example.com"])

    @override_settings(EMAIL_ENABLED=False)
    def test_email_disabled_does_not_fail_request(self):
        self.assertEqual(self._create().status_code, 201)
        self.assertEqual(mail.outbox, [])

    def test_admin_listing(self):
        first = self._create().json()["data"]
        second = self._create(amount=9).json()["data"]
        body = self.client.get("/api/admin/payments").json()
        self.assertEqual(body["count"], 2)
        self.assertEqual([o["orderId"] for o in body["data"]], [first["orderId"], second["orderId"]])
        self.assertEqual(body["data"][0]["customerData"]["city"], "Mumbai")

    def test_short_link_redirects_to_long_url(self):
        data = self._create().json()["data"]
        resp = self.client.get(f"/pay/{data['paymentRequestId']}")
        self.assertEqual(resp.status_code, 302)
        self.assertEqual(resp["Location"], data["longurl"])
        self.assertEqual(self.client.get("/pay/TEST_unknown").status_code, 404)

    def test_test_payment_page(self):
        data = self._create().json()["data"]
        resp = self.client.get(data["longurl"].replace("http://testserver", ""))
        self.assertEqual(resp.status_code, 200)
        self.assertContains(resp, data["paymentRequestId"])
        self.assertContains(resp, "Test User")

    @override_settings(INSTAMOJO=LIVE_CONFIG)
    def test_test_payment_page_hidden_in_live_mode(self):
        resp = self.client.get("/test-payment?payment_request_id=x")
        self.assertEqual(resp.status_code, 404)

    def test_payment_success_page(self):
        data = self._create().json()["data"]
        resp = self.client.get(
            f"/payment-success?payment_id=P1&payment_request_id={data['paymentRequestId']}&status=Credit"
        )
        self.assertContains(resp, "Payment Successful")
        self.assertContains(resp, data["orderId"])

    def test_payment_success_page_without_ids(self):
        self.assertContains(self.client.get("/payment-success"), "Payment Not Confirmed")
