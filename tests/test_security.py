"""
Security test suite for the proxy endpoint: oversized payloads, malformed
input, application credentials and CORS headers.
"""
from unittest.mock import patch
import json

from django.test import TestCase, Client, override_settings


class PayloadSizeTests(TestCase):
    """Tests to verify oversized payloads are rejected"""

    def setUp(self):
        self.client = Client()

    def test_oversized_payload_rejected(self):
        """Verify large payloads are rejected by middleware"""
        payload = {"messages": [{"role": "user", "content": "A" * (11 * 1024 * 1024)}]}

        response = self.client.post('/answer', data=json.dumps(payload), content_type='application/json')

        self.assertEqual(response.status_code, 413)
        data = response.json()
        self.assertIn('error', data)
        self.assertIn('too large', data['error'].lower())
        self.assertEqual(response["Access-Control-Allow-Origin"], "*")

    @patch("proxy.service.answer", return_value="ok")
    def test_normal_payload_accepted(self, _mock_answer):
        payload = {"messages": [{"role": "user", "content": "How do I treat leaf rust?"}]}

        response = self.client.post('/answer', data=json.dumps(payload), content_type='application/json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"response": "ok"})


class MalformedDataTests(TestCase):
    """Tests for handling malformed input data"""

    def setUp(self):
        self.client = Client()

    def test_malformed_json(self):
        response = self.client.post('/answer', data='{"invalid": json}', content_type='application/json')

        self.assertEqual(response.status_code, 400)
        self.assertIn('error', response.json())

    def test_empty_payload(self):
        response = self.client.post('/answer', data='{}', content_type='application/json')

        self.assertEqual(response.status_code, 400)
        self.assertIn('error', response.json())

    def test_wrong_content_type(self):
        response = self.client.post('/answer', data='{"messages": []}', content_type='text/plain')

        self.assertIn(response.status_code, [400, 415])


class CredentialTests(TestCase):

    @override_settings(PROXY_CLIENT_TOKEN="app-secret")
    def test_missing_token_is_forbidden(self):
        response = self.client.post(
            '/answer',
            data=json.dumps({"messages": [{"role": "user", "content": "hi"}]}),
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 403)

    @override_settings(PROXY_CLIENT_TOKEN="app-secret")
    def test_wrong_token_is_forbidden(self):
        response = self.client.post(
            '/answer',
            data=json.dumps({"messages": [{"role": "user", "content": "hi"}]}),
            content_type='application/json',
            HTTP_AUTHORIZATION="Bearer nope",
        )
        self.assertEqual(response.status_code, 403)
        data = response.json()
        self.assertEqual(data["code"], "forbidden")
        self.assertIn("credential", data["error"])
        self.assertNotIn("detail", data)
        self.assertEqual(response["Access-Control-Allow-Origin"], "*")

    @override_settings(PROXY_CLIENT_TOKEN="app-secret")
    @patch("proxy.service.answer", return_value="fine")
    def test_valid_token_passes(self, _mock_answer):
        response = self.client.post(
            '/answer',
            data=json.dumps({"messages": [{"role": "user", "content": "hi"}]}),
            content_type='application/json',
            HTTP_AUTHORIZATION="Bearer app-secret",
        )
        self.assertEqual(response.status_code, 200)

    @override_settings(PROXY_CLIENT_TOKEN="app-secret")
    def test_preflight_needs_no_token(self):
        response = self.client.options('/answer')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Access-Control-Allow-Origin"], "*")


class CorsHeaderTests(TestCase):

    def test_error_responses_carry_cors_headers(self):
        response = self.client.post('/answer', data='{}', content_type='application/json')
        self.assertEqual(response["Access-Control-Allow-Origin"], "*")
        self.assertIn("Authorization", response["Access-Control-Allow-Headers"])

    def test_other_paths_have_no_cors_headers(self):
        response = self.client.get('/health')
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.has_header("Access-Control-Allow-Origin"))


class FrameworkErrorShapeTests(TestCase):

    def test_unsupported_media_type_uses_error_shape(self):
        response = self.client.post('/answer', data='{"messages": []}', content_type='text/plain')

        self.assertEqual(response.status_code, 415)
        self.assertEqual(response.json()["code"], "invalid_request")
        self.assertIn("error", response.json())

    def test_method_not_allowed_uses_error_shape(self):
        response = self.client.get('/answer')

        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.json()["code"], "invalid_request")
