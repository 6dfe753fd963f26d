"""
Services package for the IDSE sign-in tooling.
"""

from .config_service import ConfigService
from .container_store import ContainerStore
from .logging_service import LoggingService, PerformanceMonitor
from .material_sources import BytesSource, FileSource, UrlSource, StoreSource, source_from_location
from .authentication_session import AuthenticationSession, SessionState
from .portal_client import PortalClient

__all__ = [
    'ConfigService',
    'ContainerStore',
    'LoggingService',
    'PerformanceMonitor',
    'BytesSource',
    'FileSource',
    'UrlSource',
    'StoreSource',
    'source_from_location',
    'AuthenticationSession',
    'SessionState',
    'PortalClient',
]
