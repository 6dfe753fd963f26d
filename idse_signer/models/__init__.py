"""
Models package for the IDSE sign-in tooling.
"""

from .config import Config, ConfigValidationError, ConfigValidationResult
from .credentials import (
    Certificate,
    PrivateKey,
    SignedMessage,
    SessionToken,
    LoginCredentials,
    to_portal_text,
)

__all__ = [
    'Config',
    'ConfigValidationError',
    'ConfigValidationResult',
    'Certificate',
    'PrivateKey',
    'SignedMessage',
    'SessionToken',
    'LoginCredentials',
    'to_portal_text',
]
