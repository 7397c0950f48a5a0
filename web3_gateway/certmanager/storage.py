"""On-disk certificate storage.

Each domain has two files in ``<config dir>/certs``::

    <domain>-key.pem
    <domain>-cert.pem

Files are replaced on renewal and never deleted.
"""

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Tuple

from ..shared.config import Config
from .models import DomainCertificate, key_matches_certificate

logger = logging.getLogger(__name__)


class CertificateStore:
    """Reads and writes per-domain key/certificate file pairs."""

    def __init__(self, config_dir: Optional[Path] = None):
        self.certs_dir = Config.certs_dir(config_dir)

    def ensure_directory(self) -> None:
        self.certs_dir.mkdir(parents=True, exist_ok=True)

    def paths(self, domain: str) -> Tuple[Path, Path]:
        """Return ``(private_key_path, certificate_path)`` for a domain."""
        return (
            self.certs_dir / f"{domain}-key.pem",
            self.certs_dir / f"{domain}-cert.pem",
        )

    def load(self, domain: str) -> Optional[DomainCertificate]:
        """Load the stored certificate of a domain, if both files exist.

        A key that does not belong to the certificate (a save interrupted
        between the two files) counts as no certificate at all.
        """
        key_path, cert_path = self.paths(domain)
        try:
            private_key_pem = key_path.read_text(encoding='utf-8')
            certificate_pem = cert_path.read_text(encoding='utf-8')
        except FileNotFoundError:
            logger.debug(f"No stored certificate for {domain} in {self.certs_dir}")
            return None

        try:
            if not key_matches_certificate(private_key_pem, certificate_pem):
                logger.warning(f"Stored private key of {domain} does not match its certificate, ignoring both")
                return None
        except (ValueError, TypeError) as e:
            # Unreadable files are reported by DomainCertificate.from_pem
            logger.debug(f"Cannot compare the stored key and certificate of {domain}: {e}")

        # Expiry is read from the file every time, never cached
        return DomainCertificate.from_pem(domain, private_key_pem, certificate_pem)

    def _write_atomic(self, path: Path, content: str, mode: int) -> None:
        """Replace ``path`` with ``content`` in one rename."""
        fd, tmp_name = tempfile.mkstemp(dir=self.certs_dir, prefix=f".{path.name}.", suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as tmp_file:
                tmp_file.write(content)
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp_name)
            raise

    def save(self, domain: str, private_key_pem: str, certificate_pem: str) -> DomainCertificate:
        """Persist a freshly issued certificate and return it.

        Each file is replaced atomically, the certificate first.
        """
        self.ensure_directory()
        key_path, cert_path = self.paths(domain)

        self._write_atomic(cert_path, certificate_pem, 0o644)
        self._write_atomic(key_path, private_key_pem, 0o600)

        logger.info(f"Certificate for {domain} saved to {cert_path}")
        return DomainCertificate.from_pem(domain, private_key_pem, certificate_pem)
