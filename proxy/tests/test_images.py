from types import SimpleNamespace as NS
from unittest.mock import patch

import requests
from django.test import SimpleTestCase

from chat.errors import AttachmentFetchError
from proxy.images import encode_image, fetch_image, load_inline_image, media_type_for


class MediaTypeTests(SimpleTestCase):
    def test_known_extensions(self):
        self.assertEqual(media_type_for("https://x/a.png"), "image/png")
        self.assertEqual(media_type_for("https://x/a.gif"), "image/gif")
        self.assertEqual(media_type_for("https://x/a.webp"), "image/webp")
        self.assertEqual(media_type_for("https://x/a.jpeg"), "image/jpeg")

    def test_jpg_maps_to_jpeg(self):
        self.assertEqual(media_type_for("https://x/leaf.JPG"), "image/jpeg")

    def test_unknown_extension_defaults_to_jpeg(self):
        self.assertEqual(media_type_for("https://x/photo.bmp"), "image/jpeg")
        self.assertEqual(media_type_for("https://x/photo"), "image/jpeg")
        self.assertEqual(media_type_for(""), "image/jpeg")

    def test_query_string_is_ignored(self):
        self.assertEqual(media_type_for("https://x/leaf.png?token=abc.jpg"), "image/png")


class FetchImageTests(SimpleTestCase):
    @patch("proxy.images.requests.get")
    def test_returns_bytes(self, mock_get):
        mock_get.return_value = NS(content=b"\x89PNG", raise_for_status=lambda: None)

        self.assertEqual(fetch_image("https://x/a.png", timeout=3), b"\x89PNG")
        mock_get.assert_called_once_with("https://x/a.png", timeout=3)

    @patch("proxy.images.requests.get")
    def test_http_error_maps_to_fetch_error(self, mock_get):
        def _raise():
            raise requests.HTTPError("404 Not Found")

        mock_get.return_value = NS(content=b"", raise_for_status=_raise)

        with self.assertRaises(AttachmentFetchError):
            fetch_image("https://x/missing.png")

    @patch("proxy.images.requests.get", side_effect=requests.ConnectionError("refused"))
    def test_transport_error_maps_to_fetch_error(self, _mock_get):
        with self.assertRaises(AttachmentFetchError):
            fetch_image("https://x/a.png")


class LoadInlineImageTests(SimpleTestCase):
    @patch("proxy.images.fetch_image", return_value=b"abc")
    def test_mime_and_base64(self, _mock_fetch):
        mime, data = load_inline_image("https://x/leaf.png")
        self.assertEqual(mime, "image/png")
        self.assertEqual(data, "YWJj")

    def test_encode_image(self):
        self.assertEqual(encode_image(b"hello"), "aGVsbG8=")
