"""HTTP side of the gateway: request handling, HTML patching and page cache."""

from .app import create_gateway_app
from .handler import GatewayHandler
from .page_cache import CachedResponse, PageCache
from .patcher import HTMLStreamPatcher, patch_html
from .resolver import ContentResolver, ResolvedResource, UpstreamGatewayResolver

__all__ = [
    'create_gateway_app',
    'GatewayHandler',
    'CachedResponse',
    'PageCache',
    'HTMLStreamPatcher',
    'patch_html',
    'ContentResolver',
    'ResolvedResource',
    'UpstreamGatewayResolver',
]
