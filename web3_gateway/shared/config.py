"""Centralized configuration management for the web3:// HTTP gateway."""

import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DNS_DOMAIN_PATTERN = re.compile(r'^[a-z0-9]+([\-\.]{1}[a-z0-9]+)*(\.[a-z]{2,20})?$')
EMAIL_PATTERN = re.compile(r'^.+@.+\..+$')


def env_flag(name: str, default: str = 'false') -> bool:
    """Read a boolean environment variable."""
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Configuration class with all environment variables."""

    # Server Configuration
    HTTP_PORT: int = int(os.getenv('PORT', '8080'))
    HTTPS_PORT: int = int(os.getenv('HTTPS_PORT', '443'))
    SERVER_HOST: str = os.getenv('SERVER_HOST', '0.0.0.0')

    # Gateway behaviour
    GLOBAL_WEB3_HTTP_GATEWAY_DNS_DOMAIN: str = os.getenv(
        'GLOBAL_WEB3_HTTP_GATEWAY_DNS_DOMAIN', 'web3gateway.dev')
    FORCE_CACHE: bool = env_flag('FORCE_CACHE')

    # Upstream resolver
    UPSTREAM_GATEWAY_DNS_DOMAIN: str = os.getenv('UPSTREAM_GATEWAY_DNS_DOMAIN', 'w3link.io')
    UPSTREAM_CONNECT_TIMEOUT: int = int(os.getenv('UPSTREAM_CONNECT_TIMEOUT', '30'))
    UPSTREAM_REQUEST_TIMEOUT: int = int(os.getenv('UPSTREAM_REQUEST_TIMEOUT', '120'))

    # Let's Encrypt
    LETSENCRYPT_ENABLE_HTTPS: bool = env_flag('LETSENCRYPT_ENABLE_HTTPS')
    LETSENCRYPT_EMAIL: str = os.getenv('LETSENCRYPT_EMAIL', '')
    LETSENCRYPT_STAGING: bool = env_flag('LETSENCRYPT_STAGING')

    # Persisted state
    GATEWAY_CONFIG_DIR: Path = Path(os.getenv(
        'GATEWAY_CONFIG_DIR',
        str(Path.home() / '.config' / 'web3protocol-http-gateway')))

    # Logging
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO').upper()

    # Certificate Configuration
    RSA_KEY_SIZE: int = int(os.getenv('RSA_KEY_SIZE', '2048'))

    # ACME Configuration
    ACME_DIRECTORY_URL: str = os.getenv('ACME_DIRECTORY_URL',
        'https://acme-v02.api.letsencrypt.org/directory')
    ACME_STAGING_URL: str = os.getenv('ACME_STAGING_URL',
        'https://acme-staging-v02.api.letsencrypt.org/directory')
    ACME_TIMEOUT_SECONDS: int = int(os.getenv('ACME_TIMEOUT_SECONDS', '180'))

    # Certificate Management
    RENEWAL_CHECK_INTERVAL: int = int(os.getenv('RENEWAL_CHECK_INTERVAL', '86400'))  # 24 hours
    RENEWAL_THRESHOLD_DAYS: int = int(os.getenv('RENEWAL_THRESHOLD_DAYS', '30'))
    CERT_GEN_MAX_WORKERS: int = int(os.getenv('CERT_GEN_MAX_WORKERS', '5'))

    @classmethod
    def validate(cls) -> None:
        """Validate required configuration values."""
        errors = []

        if not cls.SERVER_HOST:
            errors.append("SERVER_HOST is required")

        # Check port ranges
        if not (0 <= cls.HTTP_PORT <= 65535):
            errors.append(f"PORT must be between 0 and 65535, got {cls.HTTP_PORT}")

        if not (1 <= cls.HTTPS_PORT <= 65535):
            errors.append(f"HTTPS_PORT must be between 1 and 65535, got {cls.HTTPS_PORT}")

        if cls.GLOBAL_WEB3_HTTP_GATEWAY_DNS_DOMAIN and not DNS_DOMAIN_PATTERN.match(
                cls.GLOBAL_WEB3_HTTP_GATEWAY_DNS_DOMAIN):
            errors.append(
                f"GLOBAL_WEB3_HTTP_GATEWAY_DNS_DOMAIN is not a valid domain: "
                f"{cls.GLOBAL_WEB3_HTTP_GATEWAY_DNS_DOMAIN}")

        if cls.LETSENCRYPT_EMAIL and not EMAIL_PATTERN.match(cls.LETSENCRYPT_EMAIL):
            errors.append(f"LETSENCRYPT_EMAIL is not a valid email address: {cls.LETSENCRYPT_EMAIL}")

        # Check timeout hierarchy
        if cls.UPSTREAM_CONNECT_TIMEOUT >= cls.UPSTREAM_REQUEST_TIMEOUT:
            errors.append("UPSTREAM_CONNECT_TIMEOUT must be less than UPSTREAM_REQUEST_TIMEOUT")

        if cls.RENEWAL_THRESHOLD_DAYS < 1:
            errors.append("RENEWAL_THRESHOLD_DAYS must be at least 1")

        if errors:
            raise ValueError(f"Configuration errors: {'; '.join(errors)}")

    @classmethod
    def certs_dir(cls, config_dir: Optional[Path] = None) -> Path:
        """Directory holding the per-domain key and certificate files."""
        return Path(config_dir or cls.GATEWAY_CONFIG_DIR) / 'certs'


@lru_cache()
def get_config() -> Config:
    """Get validated configuration instance."""
    Config.validate()
    return Config()
