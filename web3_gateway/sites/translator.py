"""Conversion of web3:// URLs into gateway HTTP(S) URLs.

Everything here is a pure string transform: no network access, and
malformed input only ever raises ``InvalidAddress`` or ``UnresolvableURL``.
"""

import re
from typing import Iterable, Optional, Tuple

from pydantic import BaseModel

from ..errors import InvalidAddress, UnresolvableURL
from .models import ServedSite

WEB3_URL_PATTERN = re.compile(
    r'^(?P<protocol>[^:]+)://(?P<hostname>[^:/?#]+)(:(?P<chain_id>[1-9][0-9]*))?'
    r'(?P<path>/[^?#]*)?([?](?P<query>[^#]*))?(#(?P<fragment>.*))?$',
    re.DOTALL,
)
WEB3_PROTOCOLS = ('web3', 'w3')
ETH_ADDRESS_PATTERN = re.compile(r'^0x[0-9a-fA-F]{40}$')
NAME_SERVICE_SUFFIXES = ('.eth',)


class Web3URL(BaseModel):
    """Main parts of a parsed web3:// URL."""
    protocol: str
    hostname: str
    chain_id: Optional[int] = None
    path: Optional[str] = None
    query: Optional[str] = None
    fragment: Optional[str] = None

    @property
    def identity_key(self) -> str:
        # An explicit ":1" designates the same site as no chain id at all
        if self.chain_id and self.chain_id > 1:
            return f"{self.hostname.lower()}:{self.chain_id}"
        return self.hostname.lower()


def parse_web3_url(web3_url: str) -> Web3URL:
    """Split a web3:// URL into its main parts."""
    if not isinstance(web3_url, str):
        raise InvalidAddress(f"Invalid web3 URL: {web3_url!r}")

    match = WEB3_URL_PATTERN.match(web3_url)
    if not match:
        raise InvalidAddress(f"Invalid web3 URL: {web3_url}")

    parts = match.groupdict()
    if parts['protocol'] not in WEB3_PROTOCOLS:
        raise InvalidAddress(f"Invalid web3 URL protocol: {parts['protocol']}")

    return Web3URL(
        protocol=parts['protocol'],
        hostname=parts['hostname'],
        chain_id=int(parts['chain_id']) if parts['chain_id'] else None,
        path=parts['path'],
        query=parts['query'],
        fragment=parts['fragment'],
    )


def split_host_port(host: str) -> Tuple[str, Optional[str]]:
    """Split a Host header value into hostname and optional port."""
    if host.startswith('['):
        # IPv6 literal, e.g. [::1]:8080
        end = host.find(']')
        if end != -1:
            rest = host[end + 1:]
            return host[:end + 1], (rest[1:] if rest.startswith(':') and rest[1:] else None)
    hostname, sep, port = host.rpartition(':')
    if sep and hostname and port.isdigit():
        return hostname, port
    return host, None


def find_served_site(url: Web3URL, served_sites: Iterable[ServedSite]) -> Optional[ServedSite]:
    """Return the locally served site designated by a parsed web3:// URL."""
    key = url.identity_key
    for site in served_sites:
        if site.identity_key == key:
            return site
    return None


def gateway_subdomains(url: Web3URL) -> list:
    """Subdomain labels used to address a web3:// site on a delegation gateway."""
    hostname = url.hostname.lower()
    subdomains = [hostname]

    if ETH_ADDRESS_PATTERN.match(url.hostname):
        subdomains.append(str(url.chain_id) if url.chain_id else '1')
    elif hostname.endswith(NAME_SERVICE_SUFFIXES) and not url.chain_id:
        subdomains.append('1')
    elif url.chain_id:
        subdomains.append(str(url.chain_id))

    return subdomains


def build_delegated_url(url: Web3URL, gateway_dns_domain: str, server_is_https: bool) -> str:
    """Build the subdomain-delegation URL of a web3:// URL on a gateway domain."""
    protocol = 'https' if server_is_https else 'http'
    host = '.'.join(gateway_subdomains(url) + [gateway_dns_domain])
    path = url.path or '/'
    query = f"?{url.query}" if url.query else ''
    fragment = f"#{url.fragment}" if url.fragment else ''
    return f"{protocol}://{host}{path}{query}{fragment}"


def convert_web3_url_to_gateway_url(
    web3_url: str,
    request_host: str,
    server_is_https: bool,
    served_sites: Iterable[ServedSite],
    global_gateway_domain: Optional[str],
) -> str:
    """Convert a web3:// URL into an HTTP(S) URL reachable through a gateway.

    Args:
        web3_url: The web3:// URL to convert
        request_host: Host header of the current request (may include a port)
        server_is_https: Whether the current request was served over HTTPS
        served_sites: Sites served locally by this gateway
        global_gateway_domain: DNS domain of the gateway used for every
            web3:// address not served locally, if any

    Returns:
        The gateway URL

    Raises:
        InvalidAddress: web3_url is not a valid web3:// URL
        UnresolvableURL: the site is not served locally and no global
            gateway domain is configured
    """
    url = parse_web3_url(web3_url)
    protocol = 'https' if server_is_https else 'http'

    site = find_served_site(url, served_sites)
    if site:
        request_hostname, request_port = split_host_port(request_host or '')
        gateway = site.dns_domain or request_hostname
        if request_port:
            gateway = f"{gateway}:{request_port}"
        return f"{protocol}://{gateway}{url.path or ''}"

    if not global_gateway_domain:
        raise UnresolvableURL(
            f"No global web3 HTTP gateway DNS domain configured and the web3 URL "
            f"is not handled by this gateway: {web3_url}")

    return build_delegated_url(url, global_gateway_domain, server_is_https)
