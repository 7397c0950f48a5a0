"""Content resolvers: turn a web3:// URL into a streamed HTTP-like response.

Resolving web3:// URLs (contract calls, name services, chain RPCs) is not
done by the gateway itself. The gateway only depends on the
``ContentResolver`` interface; the shipped ``UpstreamGatewayResolver``
delegates to an upstream subdomain-delegation gateway over HTTPS.
"""

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Protocol, Tuple

import httpx

from ..errors import GatewayError, UpstreamFetchError
from ..sites.translator import build_delegated_url, parse_web3_url

logger = logging.getLogger(__name__)


async def _no_op() -> None:
    return None


@dataclass
class ResolvedResource:
    """A resolved web3:// resource.

    ``body`` is a finite, non-restartable stream of raw bytes, still
    encoded as declared by the Content-Encoding header.
    """
    status_code: int
    headers: List[Tuple[str, str]]
    body: AsyncIterator[bytes]
    close: Callable[[], Awaitable[None]] = field(default=_no_op)

    def get_header(self, name: str) -> Optional[str]:
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None

    async def aclose(self) -> None:
        await self.close()


class ContentResolver(Protocol):
    """Anything able to fetch a web3:// URL."""

    async def fetch(self, web3_url: str) -> ResolvedResource:
        ...


class UpstreamGatewayResolver:
    """Fetches web3:// URLs through an upstream HTTP gateway such as w3link.io."""

    def __init__(self, gateway_dns_domain: str, connect_timeout: float = 30.0,
                 request_timeout: float = 120.0, client: Optional[httpx.AsyncClient] = None):
        self.gateway_dns_domain = gateway_dns_domain
        self.client = client or httpx.AsyncClient(
            follow_redirects=False,
            timeout=httpx.Timeout(
                connect=connect_timeout,
                read=request_timeout,
                write=10.0,
                pool=None
            ),
            limits=httpx.Limits(max_keepalive_connections=100)
        )
        logger.info(f"UpstreamGatewayResolver initialized for {gateway_dns_domain}: "
                    f"read={request_timeout}s, connect={connect_timeout}s")

    def upstream_url(self, web3_url: str) -> str:
        """HTTPS URL of a web3:// URL on the upstream gateway."""
        try:
            return build_delegated_url(parse_web3_url(web3_url), self.gateway_dns_domain, True)
        except GatewayError as e:
            raise UpstreamFetchError(str(e)) from e

    async def fetch(self, web3_url: str) -> ResolvedResource:
        url = self.upstream_url(web3_url)
        logger.debug(f"Fetching {web3_url} from {url}")

        # Only encodings the HTML patcher knows how to handle
        request = self.client.build_request('GET', url, headers={'accept-encoding': 'gzip, identity'})
        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"{type(e).__name__}: {e}") from e

        return ResolvedResource(
            status_code=response.status_code,
            headers=list(response.headers.items()),
            body=self._stream_response(response),
            close=response.aclose,
        )

    async def _stream_response(self, response: httpx.Response) -> AsyncIterator[bytes]:
        """Stream the raw (still encoded) response body."""
        try:
            async for chunk in response.aiter_raw():
                yield chunk
        except httpx.HTTPError as e:
            raise UpstreamFetchError(f"{type(e).__name__}: {e}") from e
        finally:
            await response.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()
