from types import SimpleNamespace as NS
from unittest.mock import Mock, patch

import requests
from django.urls import reverse
from google.api_core import exceptions as google_exceptions
from rest_framework.test import APITestCase

from chat.errors import AttachmentFetchError, ConfigError, UpstreamError, ValidationError
from proxy.prompts import SYSTEM_PROMPT

from .test_llm import FakeCandidate, FakeResp


class AnswerViewTests(APITestCase):
    def setUp(self):
        self.url = reverse("proxy:answer")
        self.body = {"messages": [{"role": "user", "content": "hello"}]}

    @patch("proxy.views.proxy_service.answer", return_value="Hi there")
    def test_success(self, mock_answer):
        r = self.client.post(self.url, self.body, format="json")

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {"response": "Hi there"})
        mock_answer.assert_called_once_with([{"role": "user", "content": "hello"}])

    def test_missing_messages_is_400(self):
        r = self.client.post(self.url, {}, format="json")

        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["code"], "invalid_request")
        self.assertIn("Messages array is required", r.json()["error"])

    @patch("proxy.views.proxy_service.answer", side_effect=ValidationError("messages[0].role must be one of user, assistant"))
    def test_validation_error_is_400(self, _):
        r = self.client.post(self.url, self.body, format="json")
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["code"], "invalid_request")

    @patch("proxy.views.proxy_service.answer", side_effect=AttachmentFetchError("404 Not Found"))
    def test_image_fetch_failure_is_400(self, _):
        r = self.client.post(self.url, self.body, format="json")

        self.assertEqual(r.status_code, 400)
        data = r.json()
        self.assertEqual(data["error"], "Failed to process image")
        self.assertEqual(data["code"], "attachment_fetch")
        self.assertIn("404", data["details"])

    @patch("proxy.views.proxy_service.answer", side_effect=UpstreamError("x", status=503, body="model overloaded"))
    def test_upstream_503_is_500_with_details(self, _):
        r = self.client.post(self.url, self.body, format="json")

        self.assertEqual(r.status_code, 500)
        data = r.json()
        self.assertEqual(data["error"], "Failed to get response from Gemini")
        self.assertEqual(data["code"], "upstream")
        self.assertEqual(data["details"], "model overloaded")

    @patch("proxy.views.proxy_service.answer", side_effect=ConfigError("Gemini API key not configured in environment"))
    def test_missing_key_is_500(self, _):
        r = self.client.post(self.url, self.body, format="json")

        self.assertEqual(r.status_code, 500)
        self.assertEqual(r.json()["code"], "config")

    @patch("proxy.views.sentry_sdk.capture_exception")
    @patch("proxy.views.proxy_service.answer", side_effect=KeyError("boom"))
    def test_unexpected_error_is_500_and_reported(self, _, mock_capture):
        r = self.client.post(self.url, self.body, format="json")

        self.assertEqual(r.status_code, 500)
        self.assertEqual(r.json()["error"], "Internal server error")
        self.assertEqual(r.json()["code"], "internal")
        mock_capture.assert_called_once()

    def test_get_not_allowed(self):
        r = self.client.get(self.url)
        self.assertEqual(r.status_code, 405)


class HealthViewTests(APITestCase):
    def test_health(self):
        r = self.client.get("/health")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {"status": "ok"})


class AnswerEndToEndTests(APITestCase):
    """Through the real service and reply generator, with only the SDK model faked."""

    def setUp(self):
        self.url = reverse("proxy:answer")
        self.model = Mock()
        patcher = patch("proxy.llm._get_model", return_value=self.model)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_hello_gets_reply(self):
        self.model.generate_content.return_value = FakeResp(candidates=[FakeCandidate("Hi there")])

        r = self.client.post(self.url, {"messages": [{"role": "user", "content": "hello"}]}, format="json")

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {"response": "Hi there"})
        contents = self.model.generate_content.call_args[0][0]
        self.assertEqual(contents[0], {"role": "user", "parts": [{"text": SYSTEM_PROMPT}]})
        self.assertEqual(contents[1], {"role": "user", "parts": [{"text": "hello"}]})

    def test_model_503_is_500_with_details(self):
        self.model.generate_content.side_effect = google_exceptions.ServiceUnavailable("model overloaded")

        r = self.client.post(self.url, {"messages": [{"role": "user", "content": "hello"}]}, format="json")

        self.assertEqual(r.status_code, 500)
        self.assertEqual(r.json()["error"], "Failed to get response from Gemini")
        self.assertIn("model overloaded", r.json()["details"])

    @patch("proxy.images.requests.get")
    def test_image_with_unknown_extension_sent_as_jpeg(self, mock_get):
        mock_get.return_value = NS(content=b"abc", raise_for_status=lambda: None)
        self.model.generate_content.return_value = FakeResp(candidates=[FakeCandidate("Leaf blight.")])

        r = self.client.post(
            self.url,
            {"messages": [{"role": "user", "content": "Please analyze this image", "imageUrl": "https://x/u/1-leaf.bmp"}]},
            format="json",
        )

        self.assertEqual(r.status_code, 200)
        parts = self.model.generate_content.call_args[0][0][0]["parts"]
        self.assertEqual(parts[-1], {"inline_data": {"mime_type": "image/jpeg", "data": "YWJj"}})

    @patch("proxy.images.requests.get", side_effect=requests.ConnectionError("refused"))
    def test_unreachable_image_skips_model(self, _):
        r = self.client.post(
            self.url,
            {"messages": [{"role": "user", "content": "", "imageUrl": "https://x/a.png"}]},
            format="json",
        )

        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.json()["code"], "attachment_fetch")
        self.model.generate_content.assert_not_called()
