from django.test import SimpleTestCase


class ErrorHandlerTests(SimpleTestCase):
    def test_unknown_endpoint_returns_json_404(self):
        response = self.client.get('/this-url-does-not-exist/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(
            response.json(),
            {"success": False, "message": "Endpoint not found", "path": "/this-url-does-not-exist/"},
        )
