"""
PKCS#7 signed message generation and verification.
"""
import hashlib
import logging
from typing import Optional, Union

from asn1crypto import cms, pem as asn1_pem
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.serialization import pkcs7

from ..exceptions import (
    CredentialError,
    FormatError,
    SigningError,
    UnsupportedEncodingError,
    WrongPasswordError,
)
from ..models.credentials import Certificate, PrivateKey, SignedMessage
from .container import ContainerReader


class SignedMessageBuilder:
    """Signs payloads with the key and certificate held in a container."""

    def __init__(self, reader: Optional[ContainerReader] = None):
        self.reader = reader or ContainerReader()
        self.logger = logging.getLogger(__name__)

    def sign(self,
             container: bytes,
             password: Union[str, bytes, None],
             payload: Union[bytes, str]) -> SignedMessage:
        """
        Sign a payload with the container's key, attaching the payload.

        Args:
            container: PKCS#12 container bytes
            password: Container password
            payload: Bytes (or UTF-8 text) to sign

        Returns:
            SignedMessage with the PEM SignedData

        Raises:
            ValueError: If the payload is empty
            CredentialError: If the container cannot be opened or its key cannot sign
            SigningError: If signing produced no output
        """
        payload = _as_bytes(payload)
        if not payload:
            raise ValueError("Cannot sign an empty payload")

        try:
            key, certificate = self.reader.open(container, password)
        except WrongPasswordError as e:
            raise CredentialError(CredentialError.WRONG_PASSWORD) from e
        except (FormatError, UnsupportedEncodingError) as e:
            raise CredentialError(CredentialError.CORRUPT_CONTAINER) from e

        return self.sign_with(key, certificate, payload)

    def sign_with(self, key: PrivateKey, certificate: Certificate, payload: Union[bytes, str]) -> SignedMessage:
        """Sign with already parsed key material."""
        payload = _as_bytes(payload)
        if not payload:
            raise ValueError("Cannot sign an empty payload")
        if not key.matches(certificate):
            raise CredentialError(CredentialError.CORRUPT_KEY)

        try:
            output = pkcs7.PKCS7SignatureBuilder().set_data(
                payload
            ).add_signer(
                certificate.x509_certificate, key.rsa_key, hashes.SHA256()
            ).sign(serialization.Encoding.PEM, [pkcs7.PKCS7Options.Binary])
        except (ValueError, TypeError) as e:
            raise CredentialError(CredentialError.CORRUPT_KEY) from e

        if not output:
            raise SigningError("PKCS#7 generation produced an empty result")

        pem_text = output.decode('ascii')
        self.logger.debug(f"Signed {len(payload)} byte payload, PEM length {len(pem_text)}")
        return SignedMessage(pem=pem_text, payload=payload, certificate=certificate)


def _as_bytes(value: Union[bytes, str]) -> bytes:
    if isinstance(value, str):
        return value.encode('utf-8')
    return value or b""


_DIGESTS = {
    'sha1': (hashes.SHA1, hashlib.sha1),
    'sha256': (hashes.SHA256, hashlib.sha256),
    'sha384': (hashes.SHA384, hashlib.sha384),
    'sha512': (hashes.SHA512, hashlib.sha512),
}


def load_signed_data(message: Union[SignedMessage, str, bytes]) -> cms.SignedData:
    """Decode the SignedData structure from PEM or DER."""
    if isinstance(message, SignedMessage):
        message = message.pem
    data = _as_bytes(message)
    try:
        if asn1_pem.detect(data):
            _, _, data = asn1_pem.unarmor(data)
        content_info = cms.ContentInfo.load(data)
        if content_info['content_type'].native != 'signed_data':
            raise FormatError(f"Unexpected content type: {content_info['content_type'].native}")
        return content_info['content']
    except (ValueError, TypeError) as e:
        raise FormatError(f"Invalid PKCS#7 structure: {e}") from e


def embedded_certificate(message: Union[SignedMessage, str, bytes]) -> Certificate:
    """Return the first certificate attached to a signed message."""
    signed_data = load_signed_data(message)
    certificates = signed_data['certificates']
    if not certificates:
        raise FormatError("Signed message carries no certificate")
    return Certificate.from_x509(x509.load_der_x509_certificate(certificates[0].chosen.dump()))


def verify_signed_message(message: Union[SignedMessage, str, bytes],
                          payload: Optional[Union[bytes, str]] = None) -> bool:
    """
    Verify the single signer of a signed message.

    Args:
        message: SignedMessage, PEM text or DER bytes
        payload: Content to check against; defaults to the attached content

    Returns:
        True if the digest and signature both check out, False otherwise
    """
    try:
        signed_data = load_signed_data(message)
        signer = signed_data['signer_infos'][0]
        content = payload if payload is not None else signed_data['encap_content_info']['content'].native
        content = _as_bytes(content)

        digest_name = signer['digest_algorithm']['algorithm'].native
        if digest_name not in _DIGESTS:
            return False
        hash_cls, hash_fn = _DIGESTS[digest_name]

        certificate = embedded_certificate(message)
        public_key = certificate.public_key
        if not isinstance(public_key, rsa.RSAPublicKey):
            return False

        signed_attrs = signer['signed_attrs']
        if signed_attrs:
            message_digest = None
            for attribute in signed_attrs:
                if attribute['type'].native == 'message_digest':
                    message_digest = attribute['values'][0].native
            if message_digest != hash_fn(content).digest():
                return False
            # Signed attributes are signed as an explicit SET OF, not the
            # implicit [0] tag they carry inside SignerInfo.
            to_verify = b'\x31' + signed_attrs.dump()[1:]
        else:
            to_verify = content

        public_key.verify(signer['signature'].native, to_verify, padding.PKCS1v15(), hash_cls())
        return True
    except (InvalidSignature, FormatError, ValueError, TypeError, KeyError, IndexError):
        return False
