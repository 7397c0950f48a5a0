"""Pending ACME HTTP-01 challenges."""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)


class ChallengeRegistry:
    """Token -> key authorization map served at /.well-known/acme-challenge/.

    Written from the ACME worker threads, read from the event loop.
    """

    def __init__(self):
        self._challenges: Dict[str, str] = {}
        self._lock = threading.Lock()

    @contextmanager
    def register(self, token: str, key_authorization: str) -> Iterator[None]:
        """Serve a challenge for the duration of the ``with`` block."""
        with self._lock:
            self._challenges[token] = key_authorization
        logger.info(f"Waiting for request for challenge at /.well-known/acme-challenge/{token}")
        try:
            yield
        finally:
            with self._lock:
                self._challenges.pop(token, None)
            logger.debug(f"Challenge {token} removed")

    def get(self, token: str) -> Optional[str]:
        with self._lock:
            return self._challenges.get(token)

    def __len__(self) -> int:
        with self._lock:
            return len(self._challenges)
