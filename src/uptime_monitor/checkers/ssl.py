"""
TLS certificate inspection for uptime probes.

Extracts the leaf certificate from an open HTTPS connection and computes
how long it remains valid.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from OpenSSL import crypto

from ..models import SSL_EXPIRY_WARNING_DAYS

logger = logging.getLogger(__name__)


@dataclass
class CertificateInfo:
    """Expiry details of a peer certificate."""
    subject: str
    issuer: str
    expiration_date: datetime
    days_until_expiry: int

    @property
    def is_expiring(self) -> bool:
        """True when the certificate expires within SSL_EXPIRY_WARNING_DAYS."""
        return self.days_until_expiry < SSL_EXPIRY_WARNING_DAYS


def get_peer_certificate(response: Any) -> Optional[bytes]:
    """
    Return the DER-encoded peer certificate of an open aiohttp response.

    Must be called before the response is released, while its connection
    is still attached.

    Args:
        response: aiohttp.ClientResponse

    Returns:
        DER bytes, or None for plain HTTP or when no certificate is available
    """
    connection = getattr(response, 'connection', None)
    if connection is None or connection.transport is None:
        return None

    ssl_object = connection.transport.get_extra_info('ssl_object')
    if ssl_object is None:
        return None

    return ssl_object.getpeercert(binary_form=True)


def days_until(expiration_date: datetime, now: Optional[datetime] = None) -> int:
    """Whole days until expiration_date, truncated toward zero."""
    now = now or datetime.now(timezone.utc)
    return int((expiration_date - now).total_seconds() / 86400)


def _name_value(name: crypto.X509Name, *keys: bytes) -> str:
    components = dict(name.get_components())
    for key in keys:
        if key in components:
            return components[key].decode(errors='replace')
    return 'Unknown'


def parse_certificate(cert_der: bytes, now: Optional[datetime] = None) -> CertificateInfo:
    """
    Parse a DER certificate into CertificateInfo.

    Args:
        cert_der: DER-encoded X.509 certificate
        now: Reference time for days_until_expiry (defaults to current UTC time)

    Returns:
        CertificateInfo for the certificate

    Raises:
        ValueError: If the certificate cannot be parsed
    """
    try:
        x509 = crypto.load_certificate(crypto.FILETYPE_ASN1, cert_der)
    except crypto.Error as e:
        raise ValueError(f"Invalid certificate: {e}") from e

    not_after = x509.get_notAfter()
    if not not_after:
        raise ValueError("Certificate has no notAfter date")

    # Format: b'20251105103000Z'
    expiration_date = datetime.strptime(not_after.decode('ascii'), '%Y%m%d%H%M%SZ')
    expiration_date = expiration_date.replace(tzinfo=timezone.utc)

    return CertificateInfo(
        subject=_name_value(x509.get_subject(), b'CN'),
        issuer=_name_value(x509.get_issuer(), b'O', b'CN'),
        expiration_date=expiration_date,
        days_until_expiry=days_until(expiration_date, now),
    )
