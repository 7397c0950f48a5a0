"""Let's Encrypt certificates for the served domains."""

from .acme_client import ACMEClient
from .challenges import ChallengeRegistry
from .https_server import HTTPSServer, SNIHypercornConfig
from .manager import CertificateManager
from .models import DomainCertificate
from .scheduler import CertificateScheduler
from .ssl_provider import SNIContextProvider
from .storage import CertificateStore

__all__ = [
    'ACMEClient',
    'ChallengeRegistry',
    'HTTPSServer',
    'SNIHypercornConfig',
    'CertificateManager',
    'DomainCertificate',
    'CertificateScheduler',
    'SNIContextProvider',
    'CertificateStore',
]
