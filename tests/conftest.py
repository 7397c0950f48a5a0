"""Shared fixtures for the gateway tests."""

from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Iterable, List, Optional, Tuple

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from web3_gateway.errors import UpstreamFetchError
from web3_gateway.proxy.resolver import ResolvedResource
from web3_gateway.sites import SiteRegistry, parse_served_site

SITE_ADDRESS = "0x4e1f41613c9084fdb9e34e11fae9412427480e56"
OTHER_ADDRESS = "0x5a985f13345e820aa9618826b85f74c3986e1463"


def make_self_signed(domain: str, days: float) -> Tuple[str, str]:
    """Return ``(private_key_pem, certificate_pem)`` valid for ``days`` from now."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domain)])
    now = datetime.now(timezone.utc)

    cert = x509.CertificateBuilder().subject_name(
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
        now + timedelta(days=days)
    ).add_extension(
        x509.SubjectAlternativeName([x509.DNSName(domain)]),
        critical=False,
    ).sign(key, hashes.SHA256())

    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    ).decode()
    cert_pem = cert.public_bytes(serialization.Encoding.PEM).decode()
    return key_pem, cert_pem


async def iterate(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


async def collect(stream: AsyncIterator[bytes]) -> List[bytes]:
    return [chunk async for chunk in stream]


class FakeResolver:
    """Content resolver returning canned responses and recording the fetched URLs."""

    def __init__(self, status_code: int = 200, headers: Optional[List[Tuple[str, str]]] = None,
                 chunks: Iterable[bytes] = (b"",), error: Optional[str] = None):
        self.status_code = status_code
        self.headers = headers or []
        self.chunks = list(chunks)
        self.error = error
        self.calls: List[str] = []

    async def fetch(self, web3_url: str) -> ResolvedResource:
        self.calls.append(web3_url)
        if self.error:
            raise UpstreamFetchError(self.error)
        return ResolvedResource(
            status_code=self.status_code,
            headers=list(self.headers),
            body=iterate(self.chunks),
        )


@pytest.fixture
def self_signed():
    """Factory building self-signed PEM pairs."""
    return make_self_signed


@pytest.fixture
def single_site_registry() -> SiteRegistry:
    """One site without a DNS domain: answers every host."""
    return SiteRegistry([parse_served_site(f"web3://{SITE_ADDRESS}")])


@pytest.fixture
def multi_site_registry() -> SiteRegistry:
    """Two sites, one of them on chain 5."""
    return SiteRegistry([
        parse_served_site(f"web3://{SITE_ADDRESS}=site.com"),
        parse_served_site(f"web3://{OTHER_ADDRESS}:5=other.org"),
    ])
