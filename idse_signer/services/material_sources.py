"""
Byte sources for certificate, key and container material.
"""
import logging
import os
from typing import Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..exceptions import NetworkError
from .container_store import ContainerStore


class MaterialSource:
    """Interface for anything that yields credential material as bytes."""

    def read(self) -> bytes:
        """Return the material bytes."""
        raise NotImplementedError

    def describe(self) -> str:
        """Short description safe to log."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.describe()}>"


class BytesSource(MaterialSource):
    """Material already held in memory."""

    def __init__(self, data: bytes, label: str = "memory"):
        self._data = data
        self.label = label

    def read(self) -> bytes:
        return self._data

    def describe(self) -> str:
        return f"{self.label} ({len(self._data)} bytes)"


class FileSource(MaterialSource):
    """Material read from a local file."""

    def __init__(self, path: str):
        self.path = path

    def read(self) -> bytes:
        if not os.path.exists(self.path):
            raise FileNotFoundError(f"Material file not found: {self.path}")
        with open(self.path, 'rb') as f:
            return f.read()

    def describe(self) -> str:
        return self.path


class UrlSource(MaterialSource):
    """Material fetched over HTTP(S)."""

    def __init__(self,
                 url: str,
                 timeout: int = 20,
                 max_retries: int = 0,
                 backoff_factor: float = 1.0,
                 session: Optional[requests.Session] = None):
        """
        Initialize the URL source.

        Args:
            url: Location of the material
            timeout: Request timeout in seconds
            max_retries: Transport retries for idempotent GETs, none by default
            backoff_factor: Factor for exponential backoff between retries
            session: Optional pre-configured requests session
        """
        self.url = url
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.logger = logging.getLogger(__name__)
        self.session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry configuration."""
        session = requests.Session()

        retry_strategy = Retry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"]
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def read(self) -> bytes:
        """
        Fetch the material.

        Raises:
            NetworkError: On transport failure, timeout, error status or empty body
        """
        self.logger.info(f"Fetching material from {self.describe()}")
        try:
            response = self.session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.Timeout as e:
            raise NetworkError(f"Timeout fetching {self.describe()}") from e
        except requests.exceptions.HTTPError as e:
            raise NetworkError(
                f"Failed to fetch {self.describe()}: HTTP {e.response.status_code}"
            ) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Failed to fetch {self.describe()}: {e}") from e

        if not response.content:
            raise NetworkError(f"Material at {self.describe()} is empty")

        self.logger.info(f"Fetched {len(response.content)} bytes from {self.describe()}")
        return response.content

    def describe(self) -> str:
        # Drop query strings, which often carry signed access tokens.
        parsed = urlparse(self.url)
        return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"


class StoreSource(MaterialSource):
    """Material held in the in-process container store."""

    def __init__(self, store: ContainerStore, url: str):
        self.store = store
        self.url = url

    def read(self) -> bytes:
        try:
            return self.store.get(self.url)
        except KeyError as e:
            raise NetworkError(f"Container not found in store: {self.url}") from e

    def describe(self) -> str:
        return self.url


def source_from_location(location: str,
                         timeout: int = 20,
                         store: Optional[ContainerStore] = None) -> MaterialSource:
    """
    Pick a source for a file path or URL.

    URLs under the store's base URL resolve in-process instead of over HTTP.
    """
    if store is not None and location.startswith(store.base_url + '/'):
        return StoreSource(store, location)
    if urlparse(location).scheme in ('http', 'https'):
        return UrlSource(location, timeout=timeout)
    return FileSource(location)
