"""
Key, certificate and container material shared by the tests.
"""
import hashlib
import os
from datetime import datetime, timedelta, timezone
from functools import lru_cache

from asn1crypto import keys as asn1_keys
from cryptography import x509
from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
from cryptography.hazmat.primitives import hashes, padding, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.ciphers import Cipher, modes
from cryptography.x509.oid import NameOID

PASSWORD = "Secreto123"
COMMON_NAME = "EMPRESA DEMO SA DE CV"

PBES1_SHA1_DES = "1.2.840.113549.1.5.10"
PBES1_MD5_DES = "1.2.840.113549.1.5.3"


def rsa_key(index: int = 0) -> rsa.RSAPrivateKey:
    """2048-bit RSA key, generated once per index."""
    return _rsa_key(index)


def certificate_for(index: int = 0, common_name: str = COMMON_NAME) -> x509.Certificate:
    """Self-signed certificate for ``rsa_key(index)``."""
    return _certificate_for(index, common_name)


# Cache through positional-only calls so rsa_key() and rsa_key(0) share an entry.
@lru_cache(maxsize=None)
def _rsa_key(index):
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@lru_cache(maxsize=None)
def _certificate_for(index, common_name):
    key = _rsa_key(index)
    name = x509.Name([
        x509.NameAttribute(NameOID.COUNTRY_NAME, "MX"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Empresa Demo"),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])
    now = datetime.now(timezone.utc)
    return x509.CertificateBuilder().subject_name(
        name
    ).issuer_name(
        name
    ).public_key(
        key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        now - timedelta(days=1)
    ).not_valid_after(
        now + timedelta(days=365)
    ).sign(key, hashes.SHA256())


def certificate_pem(index: int = 0) -> bytes:
    return certificate_for(index).public_bytes(serialization.Encoding.PEM)


def certificate_der(index: int = 0) -> bytes:
    return certificate_for(index).public_bytes(serialization.Encoding.DER)


def key_pem_pkcs8(index: int = 0) -> bytes:
    return rsa_key(index).private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def key_pem_traditional(index: int = 0) -> bytes:
    return rsa_key(index).private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    )


def key_pem_encrypted(index: int = 0, password: str = PASSWORD) -> bytes:
    return rsa_key(index).private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.BestAvailableEncryption(password.encode('utf-8')),
    )


def key_der_pkcs8(index: int = 0) -> bytes:
    return rsa_key(index).private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def key_der_encrypted(index: int = 0, password: str = PASSWORD) -> bytes:
    return rsa_key(index).private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.BestAvailableEncryption(password.encode('utf-8')),
    )


def key_der_pbes1(index: int = 0,
                  password: str = PASSWORD,
                  scheme: str = PBES1_SHA1_DES,
                  iterations: int = 2048) -> bytes:
    """Encrypt the PKCS#8 key the way PKCS#5 v1.5 tooling does: PBKDF1 then DES-CBC."""
    digest = hashlib.sha1 if scheme == PBES1_SHA1_DES else hashlib.md5
    salt = os.urandom(8)

    derived = digest(password.encode('utf-8') + salt).digest()
    for _ in range(iterations - 1):
        derived = digest(derived).digest()
    des_key, iv = derived[:8], derived[8:16]

    padder = padding.PKCS7(64).padder()
    padded = padder.update(key_der_pkcs8(index)) + padder.finalize()
    encryptor = Cipher(TripleDES(des_key * 3), modes.CBC(iv)).encryptor()
    encrypted = encryptor.update(padded) + encryptor.finalize()

    return asn1_keys.EncryptedPrivateKeyInfo({
        'encryption_algorithm': {
            'algorithm': scheme,
            'parameters': {'salt': salt, 'iterations': iterations},
        },
        'encrypted_data': encrypted,
    }).dump()
