"""
Error taxonomy shared by the certificate, container, signing and handshake layers.
"""
from typing import Optional


class IdseSignerError(Exception):
    """Base class for every categorized failure raised by the package."""


class FormatError(IdseSignerError):
    """Malformed or unsupported ASN.1 structure."""


class WrongPasswordError(IdseSignerError):
    """Decryption integrity check failed for the supplied password."""


class UnsupportedEncodingError(IdseSignerError):
    """Every private key parsing strategy was exhausted."""


class NetworkError(IdseSignerError):
    """Transport failure, timeout, cancellation or empty response."""


class AuthenticationRejectedError(IdseSignerError):
    """The handshake completed but the portal granted no session."""


class SigningError(IdseSignerError):
    """Signing produced empty or otherwise invalid output."""


class CredentialError(IdseSignerError):
    """
    Container or key problem surfaced to the portal-facing layer.

    The message is normalized to a small closed set of user-facing texts and
    ``reason`` carries the machine-readable category.
    """

    WRONG_PASSWORD = "wrong-password"
    CORRUPT_CONTAINER = "corrupt-container"
    CORRUPT_KEY = "corrupt-key"

    MESSAGES = {
        WRONG_PASSWORD: "Incorrect container password",
        CORRUPT_CONTAINER: "Invalid or corrupt container",
        CORRUPT_KEY: "Invalid or corrupt private key",
    }

    def __init__(self, reason: str, message: Optional[str] = None):
        if reason not in self.MESSAGES:
            raise ValueError(f"Unknown credential error reason: {reason}")
        self.reason = reason
        super().__init__(message or self.MESSAGES[reason])
