"""
Private key decoding with ordered fallback strategies.

Key material arrives in several inconsistent encodings: PEM with or without
legacy encryption headers, raw DER PKCS#8, DER EncryptedPrivateKeyInfo and the
older PKCS#5 v1.5 (PBES1) variant. Each encoding is handled by an independent
strategy; strategies are tried in a fixed order until one succeeds.
"""
import hashlib
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from asn1crypto import keys as asn1_keys
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
from cryptography.hazmat.primitives import padding, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.ciphers import Cipher, modes

from ..exceptions import FormatError, UnsupportedEncodingError, WrongPasswordError
from ..models.credentials import PrivateKey


PEM_MARKER = b"-----BEGIN"
PEM_ENCRYPTION_MARKER = b"ENCRYPTED"

# PKCS#5 v1.5 PBES1 schemes: PBKDF1 with the given digest feeding DES-CBC.
PBES1_DES_SCHEMES = {
    "1.2.840.113549.1.5.3": hashlib.md5,    # pbeWithMD5AndDES-CBC
    "1.2.840.113549.1.5.10": hashlib.sha1,  # pbeWithSHA1AndDES-CBC
}

# Remaining PBES1 identifiers (MD2 and RC2 variants) are recognized so they
# are routed to the legacy strategy, which rejects them explicitly.
PBES1_OTHER_SCHEMES = (
    "1.2.840.113549.1.5.1",
    "1.2.840.113549.1.5.4",
    "1.2.840.113549.1.5.6",
    "1.2.840.113549.1.5.11",
)


@dataclass(frozen=True)
class KeyParsingStrategy:
    """One decoding path: an applicability check plus the decoder itself."""
    name: str
    applies: Callable[[bytes], bool]
    decode: Callable[[bytes, Optional[bytes]], rsa.RSAPrivateKey]


def password_bytes(password: Optional[Union[str, bytes]]) -> Optional[bytes]:
    """Normalize a password to bytes; empty passwords become None."""
    if not password:
        return None
    if isinstance(password, bytes):
        return password
    return password.encode('utf-8')


def _is_pem(data: bytes) -> bool:
    return PEM_MARKER in data


def _pem_declares_encryption(data: bytes) -> bool:
    return _is_pem(data) and PEM_ENCRYPTION_MARKER in data


def _load_encrypted_info(data: bytes) -> Optional[asn1_keys.EncryptedPrivateKeyInfo]:
    """Return the DER EncryptedPrivateKeyInfo structure, or None if it isn't one."""
    if _is_pem(data):
        return None
    try:
        info = asn1_keys.EncryptedPrivateKeyInfo.load(data, strict=True)
        info['encryption_algorithm']['algorithm'].dotted
        info['encrypted_data'].native
    except (ValueError, TypeError, KeyError):
        return None
    return info


def _scheme_of(info: asn1_keys.EncryptedPrivateKeyInfo) -> str:
    return info['encryption_algorithm']['algorithm'].dotted


def _is_pbes1(data: bytes) -> bool:
    info = _load_encrypted_info(data)
    if info is None:
        return False
    scheme = _scheme_of(info)
    return scheme in PBES1_DES_SCHEMES or scheme in PBES1_OTHER_SCHEMES


def _is_modern_encrypted_der(data: bytes) -> bool:
    return _load_encrypted_info(data) is not None and not _is_pbes1(data)


def _decode_pem_unencrypted(data: bytes, password: Optional[bytes]) -> rsa.RSAPrivateKey:
    try:
        return serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise FormatError(f"Not an unencrypted PEM private key: {e}") from e


def _decode_pem_encrypted(data: bytes, password: Optional[bytes]) -> rsa.RSAPrivateKey:
    if not password:
        raise WrongPasswordError("A password is required to decrypt this PEM private key")
    try:
        return serialization.load_pem_private_key(data, password=password)
    except ValueError as e:
        raise WrongPasswordError("Could not decrypt PEM private key with the supplied password") from e
    except (TypeError, UnsupportedAlgorithm) as e:
        raise FormatError(f"Unsupported encrypted PEM private key: {e}") from e


def _decode_der_unencrypted(data: bytes, password: Optional[bytes]) -> rsa.RSAPrivateKey:
    # Password ignored: unencrypted keys parse identically for any input.
    try:
        return serialization.load_der_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise FormatError(f"Not an unencrypted DER private key: {e}") from e


def _decode_der_encrypted_pkcs8(data: bytes, password: Optional[bytes]) -> rsa.RSAPrivateKey:
    if not password:
        raise WrongPasswordError("A password is required to decrypt this DER private key")
    try:
        return serialization.load_der_private_key(data, password=password)
    except ValueError as e:
        raise WrongPasswordError("Could not decrypt PKCS#8 private key with the supplied password") from e
    except (TypeError, UnsupportedAlgorithm) as e:
        raise FormatError(f"Unsupported encrypted PKCS#8 private key: {e}") from e


def _pbkdf1(digest: Callable, password: bytes, salt: bytes, iterations: int, length: int) -> bytes:
    derived = digest(password + salt).digest()
    for _ in range(iterations - 1):
        derived = digest(derived).digest()
    return derived[:length]


def _decode_der_pkcs5_legacy(data: bytes, password: Optional[bytes]) -> rsa.RSAPrivateKey:
    info = _load_encrypted_info(data)
    if info is None:
        raise FormatError("Not a DER EncryptedPrivateKeyInfo structure")

    scheme = _scheme_of(info)
    digest = PBES1_DES_SCHEMES.get(scheme)
    if digest is None:
        raise FormatError(f"Unsupported PBES1 scheme: {scheme}")
    if not password:
        raise WrongPasswordError("A password is required to decrypt this legacy private key")

    try:
        parameters = info['encryption_algorithm']['parameters']
        salt = parameters['salt'].native
        iterations = parameters['iterations'].native
    except (ValueError, TypeError, KeyError) as e:
        raise FormatError(f"Malformed PBES1 parameters: {e}") from e

    encrypted = info['encrypted_data'].native
    if not encrypted or len(encrypted) % 8 != 0:
        raise FormatError("PBES1 ciphertext is not a whole number of DES blocks")

    derived = _pbkdf1(digest, password, salt, iterations, 16)
    key, iv = derived[:8], derived[8:]

    # Three copies of one DES key make TripleDES behave as single DES.
    decryptor = Cipher(TripleDES(key * 3), modes.CBC(iv)).decryptor()
    padded = decryptor.update(encrypted) + decryptor.finalize()

    # From here on the cipher has run; anything that does not produce a key
    # means the password was wrong.
    try:
        unpadder = padding.PKCS7(64).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return serialization.load_der_private_key(plaintext, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise WrongPasswordError("Decrypted legacy private key is not valid key material") from e


KEY_STRATEGIES: Tuple[KeyParsingStrategy, ...] = (
    KeyParsingStrategy(
        "pem-unencrypted",
        lambda data: _is_pem(data) and not _pem_declares_encryption(data),
        _decode_pem_unencrypted,
    ),
    KeyParsingStrategy("pem-encrypted", _pem_declares_encryption, _decode_pem_encrypted),
    KeyParsingStrategy("der-pkcs8", lambda data: not _is_pem(data), _decode_der_unencrypted),
    KeyParsingStrategy("der-encrypted-pkcs8", _is_modern_encrypted_der, _decode_der_encrypted_pkcs8),
    KeyParsingStrategy("der-pkcs5-legacy", _is_pbes1, _decode_der_pkcs5_legacy),
)


class PrivateKeyCodec:
    """Parses RSA private keys from any supported encoding."""

    def __init__(self, strategies: Tuple[KeyParsingStrategy, ...] = KEY_STRATEGIES):
        self.strategies = strategies
        self.logger = logging.getLogger(__name__)

    def parse(self, data: Union[bytes, str], password: Optional[Union[str, bytes]] = None) -> PrivateKey:
        """
        Parse a private key, trying each applicable strategy in order.

        Intermediate failures only decide whether the next strategy runs; the
        error of the last attempted strategy is the one surfaced.

        Args:
            data: Key bytes (or PEM text)
            password: Password for encrypted variants

        Returns:
            PrivateKey wrapping the RSA key

        Raises:
            WrongPasswordError: If the last attempted decryption failed its integrity check
            UnsupportedEncodingError: If no strategy could decode the data
        """
        if isinstance(data, str):
            data = data.encode('utf-8')
        secret = password_bytes(password)

        last_error: Optional[Exception] = None
        for strategy in self.strategies:
            if not strategy.applies(data):
                continue
            try:
                key = strategy.decode(data, secret)
            except (FormatError, WrongPasswordError) as e:
                self.logger.debug(f"Key strategy {strategy.name} failed: {type(e).__name__}")
                last_error = e
                continue

            if not isinstance(key, rsa.RSAPrivateKey):
                raise UnsupportedEncodingError(
                    f"Only RSA private keys are supported, got {type(key).__name__}"
                )
            self.logger.debug(f"Private key decoded with strategy {strategy.name}")
            return PrivateKey(key)

        if isinstance(last_error, WrongPasswordError):
            raise last_error
        raise UnsupportedEncodingError("Private key encoding not recognized") from last_error
