"""Certificate auto-renewal scheduler."""

import asyncio
import logging
from typing import Iterable, List

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..shared.config import Config
from .manager import CertificateManager
from .ssl_provider import SNIContextProvider

logger = logging.getLogger(__name__)


class CertificateScheduler:
    """Scheduler for the daily certificate renewal check."""

    def __init__(self, manager: CertificateManager, ssl_provider: SNIContextProvider,
                 domains: Iterable[str], check_interval: int = None):
        self.manager = manager
        self.ssl_provider = ssl_provider
        self.domains: List[str] = list(domains)
        self.check_interval = check_interval or Config.RENEWAL_CHECK_INTERVAL
        self.scheduler = AsyncIOScheduler(
            jobstores={
                'default': MemoryJobStore()
            },
            executors={
                'default': AsyncIOExecutor()
            },
            job_defaults={
                'coalesce': True,
                'max_instances': 1
            }
        )

    def start(self):
        """Start the scheduler (must be called from a running event loop)."""
        if not self.scheduler.running:
            self.scheduler.start()

            self.scheduler.add_job(
                self.check_and_renew_certificates,
                'interval',
                seconds=self.check_interval,
                id='renewal_check',
                replace_existing=True
            )

            logger.info(f"Scheduler started with check interval: {self.check_interval}s")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        return self.scheduler.running

    async def renew_domain(self, domain: str) -> None:
        """Check one domain and install the certificate it ends up with."""
        logger.info(f"Checking certificate renewal for {domain}...")
        certificate = await self.manager.get_or_renew(domain)
        key_path, cert_path = self.manager.store.paths(domain)
        self.ssl_provider.install(certificate, cert_path, key_path)
        logger.info(f"Certificate renewal for {domain} checked")

    async def check_and_renew_certificates(self) -> None:
        """Check every domain; a failure for one domain never stops the others."""
        results = await asyncio.gather(
            *(self.renew_domain(domain) for domain in self.domains),
            return_exceptions=True
        )
        for domain, result in zip(self.domains, results):
            if isinstance(result, Exception):
                logger.error(f"Error during certificate renewal check for {domain}: {result}")
