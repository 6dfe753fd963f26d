"""
Certificate decoding for PEM and raw DER inputs.
"""
import logging
from typing import Union

from cryptography import x509

from ..exceptions import FormatError
from ..models.credentials import Certificate


PEM_CERTIFICATE_MARKER = b"-----BEGIN CERTIFICATE-----"


class CertificateCodec:
    """Parses certificates from PEM or DER bytes."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def parse(self, data: Union[bytes, str]) -> Certificate:
        """
        Parse a certificate.

        Bytes containing the PEM certificate marker are always decoded as PEM;
        anything else is decoded as raw DER. There is no second attempt:
        certificates are never password protected, so a failure in the chosen
        path is final.

        Args:
            data: Certificate bytes (or text) in PEM or DER form

        Returns:
            Parsed Certificate

        Raises:
            FormatError: If the ASN.1 structure cannot be decoded
        """
        if isinstance(data, str):
            data = data.encode('utf-8')

        if not data:
            raise FormatError("Certificate data is empty")

        if PEM_CERTIFICATE_MARKER in data:
            try:
                certificate = x509.load_pem_x509_certificate(data)
            except ValueError as e:
                raise FormatError(f"Invalid PEM certificate: {e}") from e
            encoding = "PEM"
        else:
            try:
                certificate = x509.load_der_x509_certificate(data)
            except ValueError as e:
                raise FormatError(f"Invalid DER certificate: {e}") from e
            encoding = "DER"

        parsed = Certificate.from_x509(certificate)
        self.logger.debug(f"Parsed {encoding} certificate: {parsed.subject_string()}")
        return parsed
