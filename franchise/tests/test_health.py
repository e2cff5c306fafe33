from django.test import SimpleTestCase, override_settings


class HealthTests(SimpleTestCase):
    def test_health_in_test_mode(self):
        body = self.client.get('/health').json()
        self.assertEqual(body["status"], "healthy")
        self.assertIn("timestamp", body)
        self.assertIn("environment", body)
        self.assertEqual(
            body["instamojo"],
            {"configured": False, "testMode": True, "apiUrl": "https://api.instamojo.test/v2/"},
        )

    @override_settings(APP_ENV="production", INSTAMOJO={
        "API_KEY": "key", "AUTH_TOKEN": "token", "TEST_MODE": False, "API_URL": "https://api.instamojo.com/v2/",
    })
    def test_health_live(self):
        body = self.client.get('/health').json()
        self.assertEqual(body["environment"], "production")
        self.assertTrue(body["instamojo"]["configured"])
        self.assertFalse(body["instamojo"]["testMode"])


class CorsTests(SimpleTestCase):
    def test_headers_on_responses(self):
        response = self.client.get('/health', HTTP_ORIGIN="http://example.com")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Access-Control-Allow-Origin"], "*")

    def test_preflight(self):
        response = self.client.options(
            '/api/create-payment',
            HTTP_ORIGIN="http://example.com",
            HTTP_ACCESS_CONTROL_REQUEST_METHOD="POST",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Access-Control-Allow-Origin"], "*")
        self.assertIn("POST", response["Access-Control-Allow-Methods"])
        self.assertIn("content-type", response["Access-Control-Allow-Headers"])
