"""Certificate lifecycle: load, issue and renew per-domain certificates."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Optional

from ..errors import CertificateIssuanceError
from ..shared.config import Config
from .acme_client import ACMEClient
from .models import DomainCertificate
from .storage import CertificateStore

logger = logging.getLogger(__name__)


class CertificateManager:
    """Returns a valid certificate for a domain, issuing or renewing it when needed."""

    def __init__(
        self,
        store: CertificateStore,
        acme_client: ACMEClient,
        email: str,
        threshold_days: int = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.store = store
        self.acme_client = acme_client
        self.email = email
        self.threshold_days = threshold_days if threshold_days is not None else Config.RENEWAL_THRESHOLD_DAYS
        # ACME calls block, so they run in worker threads
        self.executor = executor or ThreadPoolExecutor(max_workers=Config.CERT_GEN_MAX_WORKERS)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, domain: str) -> asyncio.Lock:
        if domain not in self._locks:
            self._locks[domain] = asyncio.Lock()
        return self._locks[domain]

    async def _issue(self, domain: str) -> DomainCertificate:
        loop = asyncio.get_running_loop()
        private_key_pem, certificate_pem = await loop.run_in_executor(
            self.executor,
            self.acme_client.issue_certificate,
            domain,
            self.email
        )
        return self.store.save(domain, private_key_pem, certificate_pem)

    async def get_or_renew(self, domain: str) -> DomainCertificate:
        """Return a usable certificate for ``domain``.

        At most one issuance runs per domain at any time.

        Raises:
            CertificateIssuanceError: no certificate existed and issuance failed
        """
        async with self._lock_for(domain):
            existing = self.store.load(domain)

            if existing is None:
                logger.info(f"Certificate for {domain} not found, creating a new one...")
                return await self._issue(domain)

            days = existing.days_until_expiry()
            if days is not None:
                logger.info(f"Certificate for {domain} expires in {round(days)} days")

            if not existing.needs_renewal(self.threshold_days):
                logger.info(f"Certificate for {domain} found, using existing certificate.")
                return existing

            logger.info(f"Certificate for {domain} found, but it needs renewal. Renewing...")
            try:
                return await self._issue(domain)
            except CertificateIssuanceError as e:
                logger.error(f"Renewal failed, keeping the existing certificate for {domain}: {e}")
                return existing

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False)
