"""
Conversion of separate certificate and key material into a container.
"""
import logging
from typing import Optional, Union

from .certificate_codec import CertificateCodec
from .container import ContainerBuilder, ContainerCipher, ContainerReader
from .key_codec import PrivateKeyCodec


class CredentialConverter:
    """Turns CER+KEY material into a PKCS#12 container."""

    def __init__(self,
                 certificate_codec: Optional[CertificateCodec] = None,
                 key_codec: Optional[PrivateKeyCodec] = None,
                 builder: Optional[ContainerBuilder] = None,
                 reader: Optional[ContainerReader] = None):
        self.certificate_codec = certificate_codec or CertificateCodec()
        self.key_codec = key_codec or PrivateKeyCodec()
        self.builder = builder or ContainerBuilder()
        self.reader = reader or ContainerReader()
        self.logger = logging.getLogger(__name__)

    def convert(self,
                certificate_data: bytes,
                key_data: bytes,
                password: str,
                cipher: Union[str, ContainerCipher, None] = None) -> bytes:
        """
        Build a container from certificate and key bytes.

        Certificate material that is itself a container opening with the
        password is returned unchanged; uploads sometimes carry a PFX under a
        certificate file name.

        Args:
            certificate_data: Certificate bytes (PEM, DER, or an existing container)
            key_data: Private key bytes in any supported encoding
            password: Key password, reused as the container password
            cipher: Container cipher, builder default when omitted

        Returns:
            Container bytes
        """
        if self.reader.is_container(certificate_data) and self.reader.validate(certificate_data, password):
            self.logger.info("Certificate material is already a container, using it as-is")
            return certificate_data

        certificate = self.certificate_codec.parse(certificate_data)
        key = self.key_codec.parse(key_data, password)
        return self.builder.build(key, certificate, password, cipher)

    def convert_sources(self, certificate_source, key_source, password: str,
                        cipher: Union[str, ContainerCipher, None] = None) -> bytes:
        """Read both materials from their sources and convert them."""
        self.logger.info(f"Reading certificate from {certificate_source.describe()}")
        certificate_data = certificate_source.read()
        self.logger.info(f"Reading key from {key_source.describe()}")
        key_data = key_source.read()
        return self.convert(certificate_data, key_data, password, cipher)
