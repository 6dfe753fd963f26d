"""
Security package for certificate, key, container and signature handling.
"""
from .certificate_codec import CertificateCodec
from .key_codec import PrivateKeyCodec, KeyParsingStrategy, KEY_STRATEGIES
from .container import ContainerBuilder, ContainerReader, ContainerCipher
from .signing import SignedMessageBuilder, verify_signed_message, embedded_certificate
from .converter import CredentialConverter

__all__ = [
    'CertificateCodec',
    'PrivateKeyCodec',
    'KeyParsingStrategy',
    'KEY_STRATEGIES',
    'ContainerBuilder',
    'ContainerReader',
    'ContainerCipher',
    'SignedMessageBuilder',
    'verify_signed_message',
    'embedded_certificate',
    'CredentialConverter',
]
