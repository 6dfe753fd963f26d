"""
Credential data models for certificate, key and session handling.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID


PKCS7_END_MARKER = "-----END PKCS7-----"
# The portal's parser only accepts the closing marker in this concatenated
# form. Undocumented server behaviour; keep it literal.
PORTAL_PKCS7_END_MARKER = "-----END+PKCS7-----"


def _attribute_value(value: Any) -> str:
    if isinstance(value, bytes):
        return value.hex()
    return str(value)


@dataclass(frozen=True)
class Certificate:
    """Parsed X.509 certificate."""
    der: bytes
    subject: Tuple[Tuple[str, str], ...]
    public_key: Any = field(compare=False, repr=False)
    x509_certificate: x509.Certificate = field(compare=False, repr=False)

    @classmethod
    def from_x509(cls, certificate: x509.Certificate) -> 'Certificate':
        """Build the model from a cryptography certificate object."""
        subject = tuple(
            (attribute.rfc4514_attribute_name, _attribute_value(attribute.value))
            for attribute in certificate.subject
        )
        return cls(
            der=certificate.public_bytes(serialization.Encoding.DER),
            subject=subject,
            public_key=certificate.public_key(),
            x509_certificate=certificate,
        )

    @property
    def common_name(self) -> Optional[str]:
        for attribute in self.x509_certificate.subject.get_attributes_for_oid(NameOID.COMMON_NAME):
            return _attribute_value(attribute.value)
        return None

    @property
    def serial_number(self) -> int:
        return self.x509_certificate.serial_number

    @property
    def not_valid_before(self) -> datetime:
        return self.x509_certificate.not_valid_before_utc

    @property
    def not_valid_after(self) -> datetime:
        return self.x509_certificate.not_valid_after_utc

    def is_currently_valid(self) -> bool:
        """Check the validity window against the current UTC time."""
        now = datetime.now(timezone.utc)
        return self.not_valid_before <= now <= self.not_valid_after

    def subject_string(self) -> str:
        return ", ".join(f"{name}={value}" for name, value in self.subject)

    def to_pem(self) -> str:
        return self.x509_certificate.public_bytes(serialization.Encoding.PEM).decode('ascii')


class PrivateKey:
    """
    RSA private key owned by the caller that parsed it.

    The key material is never rendered by ``repr`` and refuses to be pickled.
    """

    __slots__ = ('_key',)

    def __init__(self, key: rsa.RSAPrivateKey):
        if not isinstance(key, rsa.RSAPrivateKey):
            raise TypeError("Only RSA private keys are supported")
        self._key = key

    @property
    def rsa_key(self) -> rsa.RSAPrivateKey:
        return self._key

    @property
    def modulus(self) -> int:
        return self._key.public_key().public_numbers().n

    @property
    def public_exponent(self) -> int:
        return self._key.public_key().public_numbers().e

    @property
    def key_size(self) -> int:
        return self._key.key_size

    def matches(self, certificate: Certificate) -> bool:
        """Check that the certificate carries this key's public half."""
        public_key = certificate.public_key
        if not isinstance(public_key, rsa.RSAPublicKey):
            return False
        return public_key.public_numbers() == self._key.public_key().public_numbers()

    def __repr__(self) -> str:
        return f"<PrivateKey RSA {self.key_size} bits>"

    def __reduce__(self):
        raise TypeError("PrivateKey material cannot be serialized")


@dataclass(frozen=True)
class SignedMessage:
    """PKCS#7 SignedData with the payload attached, PEM encoded."""
    pem: str
    payload: bytes
    certificate: Certificate

    def to_portal_text(self) -> str:
        return to_portal_text(self.pem)

    def verify(self) -> bool:
        """Check the signature against the payload this message was built for."""
        from ..security.signing import verify_signed_message
        return verify_signed_message(self.pem, self.payload)


def to_portal_text(pem: str) -> str:
    """
    Reshape a PKCS#7 PEM into the single-line form the portal parser expects.

    Every line break is removed, the opening marker is kept, and the closing
    marker is rewritten to ``-----END+PKCS7-----``.
    """
    flattened = pem.replace("\r", "").replace("\n", "")
    return flattened.replace(PKCS7_END_MARKER, PORTAL_PKCS7_END_MARKER)


@dataclass(frozen=True)
class SessionToken:
    """Raw ``Set-Cookie`` value granted by the portal."""
    value: str

    def __post_init__(self):
        if not self.value:
            raise ValueError("Session token cannot be empty")

    def cookie_header(self) -> str:
        """Value suitable for a ``Cookie`` request header."""
        return self.value

    def __repr__(self) -> str:
        return f"SessionToken(<{len(self.value)} chars>)"

    __str__ = __repr__


@dataclass
class LoginCredentials:
    """Portal user credentials plus the container they sign with."""
    username: str
    password: str
    container_source: Any

    def __repr__(self) -> str:
        return f"LoginCredentials(username={self.username!r}, password='***', container_source={self.container_source!r})"
