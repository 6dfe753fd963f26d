"""
Tests for the container store and the Flask host serving it.
"""
import threading
import unittest

import requests

from idse_signer.app import ContainerHostApp
from idse_signer.models.config import Config
from idse_signer.services.container_store import ContainerStore


class TestContainerStore(unittest.TestCase):
    """Test cases for ContainerStore."""

    def setUp(self):
        self.store = ContainerStore("http://127.0.0.1:8080/")

    def test_put_returns_url(self):
        url = self.store.put("abc123", b"pfx-bytes")
        self.assertEqual(url, "http://127.0.0.1:8080/pfx/abc123")

    def test_get_by_url_and_id(self):
        url = self.store.put("abc123", b"pfx-bytes")

        self.assertEqual(self.store.get(url), b"pfx-bytes")
        self.assertEqual(self.store.get("abc123"), b"pfx-bytes")

    def test_get_missing(self):
        with self.assertRaises(KeyError):
            self.store.get("missing")

    def test_get_foreign_path(self):
        self.store.put("abc123", b"pfx-bytes")
        with self.assertRaises(KeyError):
            self.store.get("http://127.0.0.1:8080/other/abc123")

    def test_put_is_write_once(self):
        self.store.put("abc123", b"first")
        with self.assertRaises(ValueError):
            self.store.put("abc123", b"second")
        self.assertEqual(self.store.get("abc123"), b"first")

    def test_put_rejects_bad_input(self):
        with self.assertRaises(ValueError):
            self.store.put("", b"data")
        with self.assertRaises(ValueError):
            self.store.put("a/b", b"data")
        with self.assertRaises(ValueError):
            self.store.put("empty", b"")

    def test_lifecycle(self):
        self.store.put("one", b"1")
        self.store.put("two", b"2")
        self.assertEqual(len(self.store), 2)
        self.assertIn("one", self.store)

        self.assertTrue(self.store.remove("one"))
        self.assertFalse(self.store.remove("one"))
        self.assertEqual(self.store.ids(), ["two"])

        self.store.clear()
        self.assertEqual(len(self.store), 0)

    def test_concurrent_puts(self):
        def put_many(prefix):
            for i in range(50):
                self.store.put(f"{prefix}-{i}", b"x")

        threads = [threading.Thread(target=put_many, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(self.store), 200)


class TestContainerHostApp(unittest.TestCase):
    """Test cases for the Flask host."""

    def setUp(self):
        self.store = ContainerStore()
        self.host = ContainerHostApp(self.store, Config())
        self.client = self.host.get_app().test_client()

    def test_health(self):
        self.store.put("abc", b"data")

        response = self.client.get('/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.mimetype, 'text/plain')
        self.assertIn(b"Active files: 1", response.data)

    def test_serves_container(self):
        self.store.put("abc", b"\x30\x82pfx")

        response = self.client.get('/pfx/abc')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.mimetype, 'application/x-pkcs12')
        self.assertEqual(response.data, b"\x30\x82pfx")
        self.assertEqual(response.headers['Cache-Control'], 'no-store')

    def test_missing_container(self):
        response = self.client.get('/pfx/nothing')
        self.assertEqual(response.status_code, 404)

    def test_removed_container_is_gone(self):
        self.store.put("abc", b"data")
        self.store.remove("abc")
        self.assertEqual(self.client.get('/pfx/abc').status_code, 404)

    def test_unknown_route(self):
        self.assertEqual(self.client.get('/elsewhere').status_code, 404)

    def test_post_not_allowed(self):
        self.assertEqual(self.client.post('/pfx/abc').status_code, 405)

    def test_background_server(self):
        self.store.put("abc", b"served over http")
        base_url = self.host.start(host="127.0.0.1", port=0)
        try:
            response = requests.get(f"{base_url}/pfx/abc", timeout=5)
            self.assertEqual(response.content, b"served over http")
            self.assertEqual(response.headers['Content-Type'], 'application/x-pkcs12')
        finally:
            self.host.shutdown()

    def test_double_start_rejected(self):
        self.host.start(host="127.0.0.1", port=0)
        try:
            with self.assertRaises(RuntimeError):
                self.host.start(host="127.0.0.1", port=0)
        finally:
            self.host.shutdown()


if __name__ == '__main__':
    unittest.main()
