"""
PKCS#12 container building and reading.
"""
import logging
from enum import Enum
from typing import Optional, Tuple, Union

from asn1crypto import pkcs12 as asn1_pkcs12
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from ..exceptions import FormatError, IdseSignerError, UnsupportedEncodingError, WrongPasswordError
from ..models.credentials import Certificate, PrivateKey
from .key_codec import password_bytes


class ContainerCipher(Enum):
    """Encryption used for the key and certificate bags."""
    TRIPLE_DES = "tripleDES"
    AES256 = "aes256"

    @classmethod
    def from_value(cls, value: Union[str, 'ContainerCipher', None]) -> 'ContainerCipher':
        if value is None:
            return cls.TRIPLE_DES
        if isinstance(value, cls):
            return value
        for cipher in cls:
            if cipher.value.lower() == str(value).lower():
                return cipher
        raise ValueError(f"Unknown container cipher: {value}")


KDF_ROUNDS = 2048


def _encryption_for(cipher: ContainerCipher, password: bytes) -> serialization.KeySerializationEncryption:
    builder = serialization.PrivateFormat.PKCS12.encryption_builder().kdf_rounds(KDF_ROUNDS)
    if cipher is ContainerCipher.TRIPLE_DES:
        builder = builder.key_cert_algorithm(
            pkcs12.PBES.PBESv1SHA1And3KeyTripleDESCBC
        ).hmac_hash(hashes.SHA1())
    else:
        builder = builder.key_cert_algorithm(
            pkcs12.PBES.PBESv2SHA256AndAES256CBC
        ).hmac_hash(hashes.SHA256())
    return builder.build(password)


class ContainerBuilder:
    """Builds password-protected PKCS#12 containers."""

    def __init__(self, default_cipher: Union[str, ContainerCipher] = ContainerCipher.TRIPLE_DES):
        self.default_cipher = ContainerCipher.from_value(default_cipher)
        self.logger = logging.getLogger(__name__)

    def build(self,
              key: PrivateKey,
              certificate: Certificate,
              password: Union[str, bytes],
              cipher: Union[str, ContainerCipher, None] = None) -> bytes:
        """
        Bundle a key and certificate into a DER-encoded PKCS#12 container.

        The container holds one shrouded key bag and one certificate bag.
        Salts and IVs are random, so two builds never produce the same bytes.

        Args:
            key: RSA private key
            certificate: Certificate carrying the key's public half
            password: Container password
            cipher: "tripleDES" (default, accepted by the portal) or "aes256"

        Returns:
            Container bytes

        Raises:
            FormatError: If the key does not belong to the certificate
            ValueError: If the password is empty or the cipher is unknown
        """
        secret = password_bytes(password)
        if not secret:
            raise ValueError("Container password cannot be empty")

        selected = ContainerCipher.from_value(cipher) if cipher is not None else self.default_cipher

        if not key.matches(certificate):
            raise FormatError("Private key does not match the certificate public key")

        name = certificate.common_name
        container = pkcs12.serialize_key_and_certificates(
            name.encode('utf-8') if name else None,
            key.rsa_key,
            certificate.x509_certificate,
            None,
            _encryption_for(selected, secret),
        )

        self.logger.info(f"Built {selected.value} container ({len(container)} bytes)")
        return container


class ContainerReader:
    """Opens and validates PKCS#12 containers."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def _check_structure(self, data: bytes) -> None:
        """Decode the outer PFX envelope without the password."""
        if not data:
            raise FormatError("Container data is empty")
        try:
            pfx = asn1_pkcs12.Pfx.load(data, strict=True)
            pfx.native
        except (ValueError, TypeError) as e:
            raise FormatError(f"Invalid container structure: {e}") from e

    def is_container(self, data: bytes) -> bool:
        """Check whether the bytes decode as a PKCS#12 envelope."""
        try:
            self._check_structure(data)
        except FormatError:
            return False
        return True

    def open(self, data: bytes, password: Union[str, bytes, None]) -> Tuple[PrivateKey, Certificate]:
        """
        Open a container and extract its key and certificate.

        Args:
            data: Container bytes
            password: Container password

        Returns:
            Tuple of (PrivateKey, Certificate)

        Raises:
            FormatError: If the container structure is malformed or lacks a key or certificate
            WrongPasswordError: If the integrity check fails for the password
        """
        self._check_structure(data)

        try:
            key, certificate, _ = pkcs12.load_key_and_certificates(data, password_bytes(password))
        except ValueError as e:
            raise WrongPasswordError("Container integrity check failed") from e
        except UnsupportedAlgorithm as e:
            raise FormatError(f"Unsupported container algorithm: {e}") from e

        if key is None:
            raise FormatError("Container holds no private key")
        if certificate is None:
            raise FormatError("Container holds no certificate")
        if not isinstance(key, rsa.RSAPrivateKey):
            raise UnsupportedEncodingError(f"Only RSA keys are supported, got {type(key).__name__}")

        return PrivateKey(key), Certificate.from_x509(certificate)

    def validate(self, data: bytes, password: Union[str, bytes, None]) -> bool:
        """Check that the container opens and holds both a key and a certificate."""
        try:
            self.open(data, password)
            return True
        except IdseSignerError as e:
            self.logger.debug(f"Container validation failed: {type(e).__name__}")
            return False
        except Exception as e:
            self.logger.warning(f"Unexpected error validating container: {type(e).__name__}")
            return False


def inspect_container_bags(data: bytes, password: Optional[str]) -> Tuple[int, int]:
    """
    Count the key and certificate bags of an opened container.

    Returns:
        Tuple of (key bag count, certificate bag count)
    """
    loaded = pkcs12.load_pkcs12(data, password_bytes(password))
    key_bags = 1 if loaded.key is not None else 0
    cert_bags = (1 if loaded.cert is not None else 0) + len(loaded.additional_certs)
    return key_bags, cert_bags
