"""HTML patching of web3:// websites served through the gateway.

The first chunk of every HTML response is rewritten so that a browser can
navigate the site without knowing about web3:// URLs:

- ``web3://`` values of resource attributes are converted into gateway URLs
- a configuration script and the bundled client-side patch are injected
  right after the opening ``<body>`` tag

Only the first chunk is looked at. A gzip-compressed document spread over
several chunks cannot be decompressed and is passed through unchanged.
"""

import gzip
import json
import logging
import re
import zlib
from functools import lru_cache
from importlib import resources
from typing import AsyncIterator, Iterable, Optional, Tuple

from ..errors import GatewayError, PatchDecodeError
from ..sites.models import ServedSite
from ..sites.translator import convert_web3_url_to_gateway_url

logger = logging.getLogger(__name__)

# Tags whose attribute may point to a fetchable resource
ELEMENT_ATTRIBUTES = {
    'a': 'href',
    'link': 'href',
    'area': 'href',
    'img': 'src',
    'script': 'src',
    'iframe': 'src',
    'video': 'src',
    'audio': 'src',
    'source': 'src',
    'embed': 'src',
    'input': 'src',
    'object': 'data',
}

HTML_TAG_PATTERN = re.compile(r'<\s*([a-z0-9]+)([^>]*)>', re.IGNORECASE)
BODY_TAG_PATTERN = re.compile(r'<body(?:\s[^>]*)?>', re.IGNORECASE)
# One attribute of a tag; quoted values are consumed whole
ATTRIBUTE_PATTERN = re.compile(
    r'(?P<name>[^\s"\'>/=]+)'
    r'(?:\s*=\s*(?:"(?P<dq>[^"]*)"|\'(?P<sq>[^\']*)\'|(?P<uq>[^\s"\'>]+)))?'
)
VALUE_GROUPS = ('dq', 'sq', 'uq')

WEB3_SCHEME_PREFIX = 'web3://'
IDENTITY_ENCODINGS = (None, '', 'identity')
HTML_PATCH_ASSET = 'html_patch.html'


@lru_cache(maxsize=None)
def load_html_patch() -> str:
    """Load the bundled client-side patch script (read once per process)."""
    return resources.files(__package__).joinpath('assets', HTML_PATCH_ASSET).read_text(encoding='utf-8')


def build_patch_variables(served_sites: Iterable[ServedSite], global_gateway_domain: Optional[str]) -> str:
    """Script block declaring the variables consumed by the client-side patch."""
    websites = [
        {'web3HostnameAndChain': site.web3_hostname_and_chain, 'dnsDomain': site.dns_domain}
        for site in served_sites
    ]
    # "</" must not appear inside an inline script
    websites_json = json.dumps(websites).replace('</', '<\\/')
    domain_json = json.dumps(global_gateway_domain).replace('</', '<\\/')
    return (
        "\n<script>\n"
        "  /**\n"
        "   * Patch by web3-http-gateway, part 1/2 : configuration variables for part 2/2.\n"
        "   */\n"
        f"  var gatewayWeb3Websites = {websites_json};\n"
        f"  var globalWeb3HttpGatewayDnsDomain = {domain_json};\n"
        "</script>\n"
    )


def find_attribute_value(attributes: str, name: str) -> Optional[Tuple[int, int]]:
    """Span of the value of the first ``name`` attribute in a tag's attribute text."""
    for attribute_match in ATTRIBUTE_PATTERN.finditer(attributes):
        if attribute_match.group('name').lower() != name:
            continue
        for group in VALUE_GROUPS:
            if attribute_match.group(group) is not None:
                return attribute_match.span(group)
        # Attribute without a value
        return None
    return None


def rewrite_attributes(
    html: str,
    request_host: str,
    server_is_https: bool,
    served_sites: Iterable[ServedSite],
    global_gateway_domain: Optional[str],
) -> str:
    """Convert the web3:// URLs found in resource attributes of ``html``."""
    served_sites = list(served_sites)

    def replace_tag(match):
        tag = match.group(0)
        attribute = ELEMENT_ATTRIBUTES.get(match.group(1).lower())
        if not attribute:
            return tag

        value_span = find_attribute_value(match.group(2), attribute)
        if value_span is None:
            return tag

        # Spans are relative to the attribute text, which starts at group 2
        offset = match.start(2) - match.start(0)
        start, end = value_span[0] + offset, value_span[1] + offset
        value = tag[start:end]
        if not value.startswith(WEB3_SCHEME_PREFIX):
            return tag

        try:
            gateway_url = convert_web3_url_to_gateway_url(
                value, request_host, server_is_https, served_sites, global_gateway_domain)
        except GatewayError as e:
            logger.debug(f"Leaving {attribute}={value} untouched: {e}")
            return tag

        return tag[:start] + gateway_url + tag[end:]

    return HTML_TAG_PATTERN.sub(replace_tag, html)


def inject_body_patch(html: str, patch: str) -> str:
    """Insert ``patch`` right after the first opening body tag, if there is one."""
    match = BODY_TAG_PATTERN.search(html)
    if not match:
        return html
    return html[:match.end()] + patch + html[match.end():]


def _decompress(buf: bytes, content_encoding: Optional[str]) -> bytes:
    if content_encoding in IDENTITY_ENCODINGS:
        return buf
    if content_encoding != 'gzip':
        raise PatchDecodeError(f"Unsupported content encoding: {content_encoding}")
    try:
        return gzip.decompress(buf)
    except (OSError, EOFError, zlib.error) as e:
        raise PatchDecodeError(f"Cannot decompress gzip data: {e}") from e


def _compress(buf: bytes, content_encoding: Optional[str]) -> bytes:
    if content_encoding != 'gzip':
        return buf
    try:
        return gzip.compress(buf)
    except (OSError, zlib.error) as e:
        raise PatchDecodeError(f"Cannot recompress gzip data: {e}") from e


def patch_html(
    buf: bytes,
    content_encoding: Optional[str],
    request_host: str,
    server_is_https: bool,
    served_sites: Iterable[ServedSite],
    global_gateway_domain: Optional[str],
    html_patch: Optional[str] = None,
) -> bytes:
    """Patch one HTML buffer.

    Args:
        buf: Raw (possibly gzip-compressed) HTML bytes
        content_encoding: Declared Content-Encoding of the response
        request_host: Host header of the current request
        server_is_https: Whether the current request came over HTTPS
        served_sites: Sites served locally by this gateway
        global_gateway_domain: Fallback gateway DNS domain, if any
        html_patch: Client-side patch to inject (defaults to the bundled asset)

    Returns:
        The patched bytes, or ``buf`` itself if it could not be decoded
    """
    served_sites = list(served_sites)
    if html_patch is None:
        html_patch = load_html_patch()
    if content_encoding:
        content_encoding = content_encoding.strip().lower()

    try:
        raw = _decompress(buf, content_encoding)
    except PatchDecodeError as e:
        logger.warning(f"patch_html: {e}")
        return buf

    # surrogateescape keeps a multi-byte sequence cut at the chunk end intact
    html = raw.decode('utf-8', errors='surrogateescape')
    html = rewrite_attributes(html, request_host, server_is_https, served_sites, global_gateway_domain)
    html = inject_body_patch(html, build_patch_variables(served_sites, global_gateway_domain) + html_patch)
    patched = html.encode('utf-8', errors='surrogateescape')

    try:
        return _compress(patched, content_encoding)
    except PatchDecodeError as e:
        logger.warning(f"patch_html: {e}")
        return buf


def is_html(content_type: Optional[str]) -> bool:
    """Whether a Content-Type header value designates an HTML document."""
    if not content_type:
        return False
    return content_type.split(';', 1)[0].strip().lower() == 'text/html'


class HTMLStreamPatcher:
    """Applies ``patch_html`` to the first chunk of streamed HTML responses."""

    def __init__(self, served_sites: Iterable[ServedSite], global_gateway_domain: Optional[str]):
        self.served_sites = list(served_sites)
        self.global_gateway_domain = global_gateway_domain
        self.html_patch = load_html_patch()

    async def patch_stream(
        self,
        chunks: AsyncIterator[bytes],
        content_type: Optional[str],
        content_encoding: Optional[str],
        request_host: str,
        server_is_https: bool,
    ) -> AsyncIterator[bytes]:
        """Yield the response chunks, the first non-empty HTML chunk patched."""
        patch_pending = is_html(content_type)
        async for chunk in chunks:
            if patch_pending and chunk:
                patch_pending = False
                chunk = patch_html(
                    chunk, content_encoding, request_host, server_is_https,
                    self.served_sites, self.global_gateway_domain, self.html_patch)
            yield chunk
