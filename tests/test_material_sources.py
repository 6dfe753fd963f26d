"""
Tests for credential material sources.
"""
import os
import tempfile
import unittest
from unittest.mock import Mock, patch

import requests

from idse_signer.exceptions import NetworkError
from idse_signer.services.container_store import ContainerStore
from idse_signer.services.material_sources import (
    BytesSource,
    FileSource,
    StoreSource,
    UrlSource,
    source_from_location,
)


class TestLocalSources(unittest.TestCase):

    def test_bytes_source(self):
        source = BytesSource(b"abc", "upload")
        self.assertEqual(source.read(), b"abc")
        self.assertEqual(source.describe(), "upload (3 bytes)")

    def test_file_source(self):
        with tempfile.NamedTemporaryFile(delete=False, suffix='.cer') as f:
            f.write(b"certificate")
            path = f.name
        try:
            self.assertEqual(FileSource(path).read(), b"certificate")
        finally:
            os.unlink(path)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            FileSource("/nonexistent/cert.key").read()

    def test_store_source(self):
        store = ContainerStore()
        url = store.put("abc", b"pfx")
        self.assertEqual(StoreSource(store, url).read(), b"pfx")

    def test_store_source_missing(self):
        store = ContainerStore()
        with self.assertRaises(NetworkError):
            StoreSource(store, store.url_for("gone")).read()


class TestUrlSource(unittest.TestCase):
    """Test cases for UrlSource."""

    def setUp(self):
        self.session = Mock()
        self.source = UrlSource("https://files.example/pfx/abc?token=secret", timeout=5, session=self.session)

    def test_read(self):
        response = Mock(content=b"pfx-bytes")
        response.raise_for_status.return_value = None
        self.session.get.return_value = response

        self.assertEqual(self.source.read(), b"pfx-bytes")
        self.session.get.assert_called_once_with("https://files.example/pfx/abc?token=secret", timeout=5)

    def test_describe_hides_query(self):
        self.assertEqual(self.source.describe(), "https://files.example/pfx/abc")

    def test_empty_body(self):
        response = Mock(content=b"")
        response.raise_for_status.return_value = None
        self.session.get.return_value = response

        with self.assertRaises(NetworkError):
            self.source.read()

    def test_error_status(self):
        response = Mock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=Mock(status_code=404))
        self.session.get.return_value = response

        with self.assertRaises(NetworkError) as ctx:
            self.source.read()
        self.assertIn("404", str(ctx.exception))

    def test_timeout(self):
        self.session.get.side_effect = requests.exceptions.Timeout()
        with self.assertRaises(NetworkError):
            self.source.read()

    def test_connection_error(self):
        self.session.get.side_effect = requests.exceptions.ConnectionError("refused")
        with self.assertRaises(NetworkError):
            self.source.read()

    @patch('idse_signer.services.material_sources.requests.Session')
    def test_default_session_mounts_adapters(self, mock_session_class):
        session = mock_session_class.return_value
        UrlSource("https://files.example/pfx/abc")
        mounted = [call[0][0] for call in session.mount.call_args_list]
        self.assertEqual(mounted, ["http://", "https://"])


class TestSourceFromLocation(unittest.TestCase):

    def test_url(self):
        self.assertIsInstance(source_from_location("https://files.example/cert.cer"), UrlSource)

    def test_path(self):
        self.assertIsInstance(source_from_location("certs/empresa.key"), FileSource)

    def test_store_url_resolves_in_process(self):
        store = ContainerStore("http://127.0.0.1:8080")
        url = store.put("abc", b"pfx")

        source = source_from_location(url, store=store)

        self.assertIsInstance(source, StoreSource)
        self.assertEqual(source.read(), b"pfx")

    def test_timeout_is_passed(self):
        source = source_from_location("https://files.example/cert.cer", timeout=7)
        self.assertEqual(source.timeout, 7)


if __name__ == '__main__':
    unittest.main()
