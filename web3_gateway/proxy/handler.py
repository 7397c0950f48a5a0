"""Request handler serving web3:// websites over HTTP(S)."""

import logging
from typing import AsyncIterator, List, Optional, Tuple

from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import PlainTextResponse, RedirectResponse, Response, StreamingResponse

from ..errors import GatewayError, UpstreamFetchError
from ..sites.registry import SiteRegistry
from ..sites.translator import convert_web3_url_to_gateway_url, split_host_port
from .page_cache import CachedResponse, PageCache
from .patcher import HTMLStreamPatcher, is_html
from .resolver import ContentResolver, ResolvedResource

logger = logging.getLogger(__name__)

HOP_BY_HOP_HEADERS = (
    "connection", "keep-alive", "proxy-authenticate",
    "proxy-authorization", "te", "trailers", "transfer-encoding",
    "upgrade",
)


def request_raw_path(request: Request) -> str:
    """Request path as sent by the client, percent-escapes included."""
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return request.url.path
    # Some ASGI servers leave the query string in raw_path
    return raw_path.decode("latin-1").split("?", 1)[0]


class GatewayHandler:
    """Maps each request to a served web3:// website and streams the result back."""

    def __init__(
        self,
        registry: SiteRegistry,
        resolver: ContentResolver,
        global_gateway_domain: Optional[str],
        https_enabled: bool = False,
        page_cache: Optional[PageCache] = None,
    ):
        self.registry = registry
        self.resolver = resolver
        self.global_gateway_domain = global_gateway_domain
        self.https_enabled = https_enabled
        # Only set in forced-cache mode
        self.page_cache = page_cache
        self.patcher = HTMLStreamPatcher(registry.sites, global_gateway_domain)

    async def handle_request(self, request: Request) -> Response:
        host = request.headers.get("host", "")
        hostname, _ = split_host_port(host)
        path = request.url.path
        raw_path = request_raw_path(request)
        server_is_https = request.url.scheme == "https"

        if self.https_enabled and not server_is_https:
            target = f"https://{hostname}{raw_path}"
            if request.url.query:
                target += f"?{request.url.query}"
            return RedirectResponse(target, status_code=302)

        site = self.registry.lookup(host)
        if site is None:
            logger.info(f"{hostname} {path} 503")
            return PlainTextResponse(
                f"No web3:// website found for this domain : {hostname}", status_code=503)

        # Percent-escapes are part of the web3:// resource name
        web3_url = site.base_address + raw_path
        if request.url.query:
            web3_url += f"?{request.url.query}"

        if self.page_cache is not None:
            cached = self.page_cache.get(web3_url)
            if cached is not None:
                logger.info(f"{hostname} {path} {cached.status_code} (from cache)")
                return self._cached_response(cached)

        try:
            resource = await self.resolver.fetch(web3_url)
        except UpstreamFetchError as e:
            logger.info(f"{hostname} {path} 503")
            logger.warning(f"Error fetching {web3_url}: {e}")
            return PlainTextResponse(f"Error fetching the web3:// website: {e}", status_code=503)

        content_type = resource.get_header("content-type")
        headers = self._response_headers(resource, host, server_is_https, patching=is_html(content_type))

        body = self.patcher.patch_stream(
            resource.body,
            content_type,
            resource.get_header("content-encoding"),
            host,
            server_is_https,
        )
        if self.page_cache is not None:
            body = self._capture(body, web3_url, resource.status_code, headers)

        response = StreamingResponse(
            body,
            status_code=resource.status_code,
            background=BackgroundTask(resource.aclose),
        )
        for name, value in headers:
            response.headers.append(name, value)

        logger.info(f"{hostname} {path} {resource.status_code}")
        return response

    def _response_headers(self, resource: ResolvedResource, host: str, server_is_https: bool,
                          patching: bool) -> List[Tuple[str, str]]:
        """Filter and rewrite the resolved resource headers."""
        hop_by_hop = list(HOP_BY_HOP_HEADERS)
        connection_header = resource.get_header("connection")
        if connection_header:
            hop_by_hop.extend(value.strip().lower() for value in connection_header.split(","))
        if patching:
            # The patched body has a different length
            hop_by_hop.append("content-length")

        headers = []
        for name, value in resource.headers:
            if name.lower() in hop_by_hop:
                continue
            if name.lower() == "location" and value.startswith("web3://"):
                value = self._rewrite_location(value, host, server_is_https)
            headers.append((name, value))
        return headers

    def _rewrite_location(self, location: str, host: str, server_is_https: bool) -> str:
        try:
            return convert_web3_url_to_gateway_url(
                location, host, server_is_https, self.registry.sites, self.global_gateway_domain)
        except GatewayError as e:
            logger.warning(f"Keeping untranslatable Location header {location}: {e}")
            return location

    async def _capture(self, body: AsyncIterator[bytes], web3_url: str, status_code: int,
                       headers: List[Tuple[str, str]]) -> AsyncIterator[bytes]:
        """Pass the body through, caching it once it has been fully sent."""
        chunks = []
        async for chunk in body:
            chunks.append(chunk)
            yield chunk
        self.page_cache.set(web3_url, CachedResponse(
            status_code=status_code, headers=headers, body=b"".join(chunks)))

    def _cached_response(self, cached: CachedResponse) -> Response:
        response = Response(content=cached.body, status_code=cached.status_code)
        for name, value in cached.headers:
            if name.lower() == "content-length":
                continue
            response.headers.append(name, value)
        return response
