"""
In-memory store for containers served at ephemeral URLs.
"""
import logging
import threading
from typing import Dict, List
from urllib.parse import urlparse


CONTAINER_PATH_PREFIX = "/pfx/"


class ContainerStore:
    """
    Write-once/read-many store of container bytes keyed by identifier.

    The caller owns the lifecycle: ``put`` a container, hand out its URL,
    then ``remove`` or ``clear`` once the consumers are done.
    """

    def __init__(self, base_url: str = "http://127.0.0.1:8080"):
        self.base_url = base_url.rstrip('/')
        self._containers: Dict[str, bytes] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def url_for(self, container_id: str) -> str:
        return f"{self.base_url}{CONTAINER_PATH_PREFIX}{container_id}"

    def put(self, container_id: str, data: bytes) -> str:
        """
        Store a container and return the URL it is served at.

        Raises:
            ValueError: If the id is invalid, already stored, or the data is empty
        """
        if not container_id or '/' in container_id:
            raise ValueError(f"Invalid container id: {container_id!r}")
        if not data:
            raise ValueError("Cannot store an empty container")

        with self._lock:
            if container_id in self._containers:
                raise ValueError(f"Container already stored: {container_id}")
            self._containers[container_id] = bytes(data)

        self.logger.info(f"Stored container {container_id} ({len(data)} bytes)")
        return self.url_for(container_id)

    def get(self, url_or_id: str) -> bytes:
        """
        Fetch a stored container by URL or identifier.

        Raises:
            KeyError: If nothing is stored under that identifier
        """
        container_id = self._extract_id(url_or_id)
        with self._lock:
            if container_id not in self._containers:
                raise KeyError(container_id)
            return self._containers[container_id]

    def remove(self, container_id: str) -> bool:
        with self._lock:
            removed = self._containers.pop(container_id, None) is not None
        if removed:
            self.logger.info(f"Removed container {container_id}")
        return removed

    def clear(self) -> None:
        with self._lock:
            count = len(self._containers)
            self._containers.clear()
        self.logger.info(f"Cleared {count} stored containers")

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._containers)

    def __len__(self) -> int:
        with self._lock:
            return len(self._containers)

    def __contains__(self, container_id: str) -> bool:
        with self._lock:
            return container_id in self._containers

    def _extract_id(self, url_or_id: str) -> str:
        if '://' not in url_or_id and not url_or_id.startswith('/'):
            return url_or_id
        path = urlparse(url_or_id).path
        if not path.startswith(CONTAINER_PATH_PREFIX):
            raise KeyError(url_or_id)
        return path[len(CONTAINER_PATH_PREFIX):]
