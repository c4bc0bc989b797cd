"""Shared fixtures for the uptime monitor tests."""

from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


def make_certificate_der(
    not_after: datetime,
    common_name: str = "example.com",
    organization: str = "Test CA",
) -> bytes:
    """Build a self-signed DER certificate that expires at `not_after`."""
    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    issuer = x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
        x509.NameAttribute(NameOID.COMMON_NAME, "Test Issuer"),
    ])
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_after - timedelta(days=365))
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.DER)


@pytest.fixture
def certificate_der():
    """Factory for DER certificates expiring a given number of days from now."""
    def factory(days: float, **kwargs) -> bytes:
        not_after = datetime.now(timezone.utc) + timedelta(days=days)
        return make_certificate_der(not_after.replace(microsecond=0), **kwargs)
    return factory
