"""In-memory page cache used in forced-cache mode.

A plain key -> value store keyed by the resolved web3:// URL. There is no
TTL, no size bound and no eviction: once a page is cached it is served
from memory for the lifetime of the process.
"""

import logging
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class CachedResponse(BaseModel):
    """A fully drained web3:// response."""
    status_code: int
    headers: List[Tuple[str, str]] = Field(default_factory=list)
    body: bytes = b''


class PageCache:
    """Unbounded web3:// URL -> CachedResponse map."""

    def __init__(self):
        self._pages: Dict[str, CachedResponse] = {}

    def set(self, web3_url: str, response: CachedResponse) -> None:
        # Last write wins
        self._pages[web3_url] = response
        logger.debug(f"Cached {web3_url} ({len(response.body)} bytes)")

    def get(self, web3_url: str) -> Optional[CachedResponse]:
        return self._pages.get(web3_url)

    def has(self, web3_url: str) -> bool:
        return web3_url in self._pages

    def delete(self, web3_url: str) -> bool:
        return self._pages.pop(web3_url, None) is not None

    def __len__(self) -> int:
        return len(self._pages)
