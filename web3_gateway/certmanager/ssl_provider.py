"""SSL context selection using SNI callbacks.

Each served domain has its own ``ssl.SSLContext``. The listening socket
uses a context whose SNI callback switches the handshake to the context
of the requested domain, so certificates can be replaced at runtime
without restarting the server.
"""

import logging
import ssl
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from .models import DomainCertificate

logger = logging.getLogger(__name__)

ALPN_PROTOCOLS = ['h2', 'http/1.1']


class SNIContextProvider:
    """Provides SSL contexts dynamically based on SNI."""

    def __init__(self):
        self.contexts: Dict[str, ssl.SSLContext] = {}
        self._lock = threading.Lock()

    def _create_context(self, cert_path: Union[str, Path], key_path: Union[str, Path]) -> ssl.SSLContext:
        context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        context.load_cert_chain(str(cert_path), str(key_path))
        context.set_alpn_protocols(ALPN_PROTOCOLS)
        return context

    def install(self, certificate: DomainCertificate, cert_path: Union[str, Path],
                key_path: Union[str, Path]) -> None:
        """Build and activate the SSL context of a domain.

        Raises:
            ssl.SSLError: the key and certificate files cannot be loaded
        """
        context = self._create_context(cert_path, key_path)
        with self._lock:
            self.contexts[certificate.domain] = context
        logger.info(f"SSL context installed for {certificate.domain} (expires {certificate.not_after})")

    def get_context(self, server_name: Optional[str]) -> Optional[ssl.SSLContext]:
        if not server_name:
            return None
        with self._lock:
            return self.contexts.get(server_name.lower())

    def get_sni_callback(self):
        """Returns SNI callback for SSL context selection."""
        def sni_callback(ssl_object, server_name: Optional[str], ssl_context):
            context = self.get_context(server_name)
            if context is None:
                logger.warning(f"No SSL certificate found for domain {server_name}")
                return ssl.ALERT_DESCRIPTION_UNRECOGNIZED_NAME
            ssl_object.context = context
            return None

        return sni_callback

    def create_server_context(self) -> ssl.SSLContext:
        """SSL context of the listening socket."""
        context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        context.set_alpn_protocols(ALPN_PROTOCOLS)
        context.sni_callback = self.get_sni_callback()
        return context

    @property
    def domains(self) -> List[str]:
        with self._lock:
            return list(self.contexts.keys())
