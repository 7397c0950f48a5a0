"""Certificate data models."""

import logging
from datetime import datetime, timezone
from typing import Optional

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from pydantic import BaseModel, field_validator

logger = logging.getLogger(__name__)


def read_not_after(certificate_pem: str) -> datetime:
    """Expiry date (UTC) of the first certificate of a PEM chain."""
    cert = x509.load_pem_x509_certificate(certificate_pem.encode('utf-8'))
    return cert.not_valid_after_utc


def key_matches_certificate(private_key_pem: str, certificate_pem: str) -> bool:
    """Whether a private key is the one certified by a PEM certificate.

    Raises:
        ValueError: either PEM block cannot be parsed
    """
    private_key = serialization.load_pem_private_key(private_key_pem.encode('utf-8'), password=None)
    cert = x509.load_pem_x509_certificate(certificate_pem.encode('utf-8'))
    spki = (serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo)
    return private_key.public_key().public_bytes(*spki) == cert.public_key().public_bytes(*spki)


class DomainCertificate(BaseModel):
    """Key and certificate chain of one served domain.

    ``not_after`` is read from the certificate itself when the model is
    built from PEM data; it is ``None`` when the certificate could not be
    parsed.
    """
    domain: str
    private_key_pem: str
    certificate_pem: str
    not_after: Optional[datetime] = None

    @field_validator('domain')
    @classmethod
    def validate_domain(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Domain cannot be empty')
        return v.lower()

    @classmethod
    def from_pem(cls, domain: str, private_key_pem: str, certificate_pem: str) -> 'DomainCertificate':
        try:
            not_after = read_not_after(certificate_pem)
        except ValueError as e:
            logger.error(f"Cannot read the expiry date of the certificate for {domain}: {e}")
            not_after = None
        return cls(
            domain=domain,
            private_key_pem=private_key_pem,
            certificate_pem=certificate_pem,
            not_after=not_after,
        )

    def days_until_expiry(self, now: Optional[datetime] = None) -> Optional[float]:
        if self.not_after is None:
            return None
        now = now or datetime.now(timezone.utc)
        return (self.not_after - now).total_seconds() / 86400

    def needs_renewal(self, threshold_days: int, now: Optional[datetime] = None) -> bool:
        """Whether the certificate expires within ``threshold_days``.

        An unreadable certificate is never considered due: renewing it on
        every check would only hammer the ACME provider.
        """
        days = self.days_until_expiry(now)
        if days is None:
            return False
        return days <= threshold_days
