"""Registry of the web3:// websites served by this gateway."""

import logging
import re
from typing import Iterable, List, Optional

from ..errors import AmbiguousRouting, ConfigurationError, InvalidAddress, InvalidDomain
from ..shared.config import DNS_DOMAIN_PATTERN
from .models import ServedSite
from .translator import split_host_port

logger = logging.getLogger(__name__)

SERVED_SITE_PATTERN = re.compile(
    r'^web3://(?P<hostname>[^:/?#]+)(:(?P<chain_id>[1-9][0-9]*))?(?P<path>[^#]*)?(?P<fragment>#.*)?$',
    re.DOTALL,
)


def validate_dns_domain(dns_domain: str) -> str:
    """Validate a DNS domain and return its normalized form."""
    normalized = dns_domain.strip().lower()
    if not DNS_DOMAIN_PATTERN.match(normalized):
        raise InvalidDomain(f"Invalid DNS domain : {dns_domain}")
    return normalized


def parse_served_site(web3_url: str, dns_domain: Optional[str] = None) -> ServedSite:
    """Parse a served website address.

    Accepts either the web3:// URL alone, with the DNS domain passed
    separately, or the command line form ``web3://address=dns-domain``.
    """
    if dns_domain is None and '=' in web3_url:
        web3_url, dns_domain = web3_url.split('=', 1)

    if not web3_url.startswith('web3://'):
        raise InvalidAddress(f"Invalid web3:// URL : {web3_url} (must start with web3://)")

    match = SERVED_SITE_PATTERN.match(web3_url)
    if not match:
        raise InvalidAddress(f"Invalid web3:// URL : {web3_url}")

    parts = match.groupdict()
    if parts['path'] not in (None, '', '/'):
        raise InvalidAddress(f"Invalid web3:// URL : {web3_url} : Cannot serve a specific path only.")
    if parts['fragment'] is not None:
        raise InvalidAddress(f"Invalid web3:// URL : {web3_url} : Fragment not allowed")

    if dns_domain is not None and dns_domain != '':
        dns_domain = validate_dns_domain(dns_domain)
    else:
        dns_domain = None

    chain_id = parts['chain_id']
    base_address = f"web3://{parts['hostname']}" + (f":{chain_id}" if chain_id else '')

    return ServedSite(
        hostname=parts['hostname'],
        chain_id=int(chain_id) if chain_id else 1,
        base_address=base_address,
        dns_domain=dns_domain,
    )


class SiteRegistry:
    """Immutable set of served sites, answering which site owns a request host."""

    def __init__(self, sites: Iterable[ServedSite], tls_enabled: bool = False):
        self._sites = tuple(sites)

        if not self._sites:
            raise ConfigurationError("At least one web3:// website must be served")

        missing_domain = [site for site in self._sites if not site.dns_domain]
        if len(self._sites) > 1 and missing_domain:
            raise AmbiguousRouting(
                "When serving multiple web3:// websites, they must all have a DNS domain")
        if tls_enabled and missing_domain:
            raise AmbiguousRouting(
                "When enabling HTTPS with Let's Encrypt, all served web3:// websites must have a DNS domain")

    @classmethod
    def from_arguments(cls, arguments: Iterable[str], tls_enabled: bool = False) -> 'SiteRegistry':
        """Build the registry from ``web3://address[=dns-domain]`` arguments."""
        return cls([parse_served_site(argument) for argument in arguments], tls_enabled=tls_enabled)

    @property
    def sites(self) -> List[ServedSite]:
        return list(self._sites)

    @property
    def domains(self) -> List[str]:
        """DNS domains of every served site."""
        return [site.dns_domain for site in self._sites if site.dns_domain]

    @property
    def single_tenant(self) -> bool:
        return len(self._sites) == 1 and not self._sites[0].dns_domain

    def lookup(self, host: str) -> Optional[ServedSite]:
        """Return the site serving the given Host header, if any."""
        if self.single_tenant:
            return self._sites[0]

        hostname, _ = split_host_port(host or '')
        hostname = hostname.lower()
        for site in self._sites:
            if site.dns_domain == hostname:
                return site
        return None

    def describe(self) -> List[str]:
        """Human-readable lines listing the served sites."""
        return [
            (f"{site.dns_domain} => " if site.dns_domain else '') + site.base_address
            for site in self._sites
        ]

    def __iter__(self):
        return iter(self._sites)

    def __len__(self) -> int:
        return len(self._sites)
