"""Served sites: registry and web3:// URL translation."""

from .models import ServedSite
from .registry import SiteRegistry, parse_served_site, validate_dns_domain
from .translator import Web3URL, convert_web3_url_to_gateway_url, parse_web3_url

__all__ = [
    'ServedSite',
    'SiteRegistry',
    'parse_served_site',
    'validate_dns_domain',
    'Web3URL',
    'convert_web3_url_to_gateway_url',
    'parse_web3_url',
]
