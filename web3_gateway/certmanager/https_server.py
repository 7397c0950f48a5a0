"""HTTPS listener serving every domain through SNI."""

import asyncio
import logging
import ssl
from typing import Iterable, Optional

from hypercorn.asyncio import serve
from hypercorn.config import Config as HypercornConfig

from .manager import CertificateManager
from .ssl_provider import SNIContextProvider

logger = logging.getLogger(__name__)


class SNIHypercornConfig(HypercornConfig):
    """Hypercorn config whose SSL context comes from an SNIContextProvider."""

    def __init__(self, ssl_provider: SNIContextProvider):
        super().__init__()
        self.ssl_provider = ssl_provider

    @property
    def ssl_enabled(self) -> bool:
        return True

    def create_ssl_context(self) -> Optional[ssl.SSLContext]:
        return self.ssl_provider.create_server_context()


class HTTPSServer:
    """Single HTTPS server instance for all served domains."""

    def __init__(self, app, manager: CertificateManager, ssl_provider: SNIContextProvider,
                 host: str = "0.0.0.0", port: int = 443):
        self.app = app
        self.manager = manager
        self.ssl_provider = ssl_provider
        self.host = host
        self.port = port

    async def load_certificates(self, domains: Iterable[str]) -> None:
        """Get (or issue) the certificate of every domain and install it.

        Raises:
            CertificateIssuanceError: a domain has no certificate and issuance failed
        """
        for domain in domains:
            certificate = await self.manager.get_or_renew(domain)
            key_path, cert_path = self.manager.store.paths(domain)
            self.ssl_provider.install(certificate, cert_path, key_path)

    def build_config(self, log_level: str = "INFO") -> SNIHypercornConfig:
        config = SNIHypercornConfig(self.ssl_provider)
        config.bind = [f"{self.host}:{self.port}"]
        config.loglevel = log_level.upper()
        return config

    async def serve(self, shutdown_trigger: Optional[asyncio.Event] = None, log_level: str = "INFO") -> None:
        logger.info(f"HTTPS Server running on port {self.port}")
        await serve(
            self.app,
            self.build_config(log_level),
            shutdown_trigger=shutdown_trigger.wait if shutdown_trigger else None,
        )
