"""Error taxonomy for the web3:// HTTP gateway."""


class GatewayError(Exception):
    """Base class for all gateway errors."""


class InvalidAddress(GatewayError):
    """Malformed web3:// URL (configuration or request input)."""


class InvalidDomain(GatewayError):
    """DNS domain that does not match the accepted domain grammar."""


class AmbiguousRouting(GatewayError):
    """Served sites that cannot be told apart by request host."""


class ConfigurationError(GatewayError):
    """Any other invalid startup configuration."""


class UnresolvableURL(GatewayError):
    """web3:// URL with neither a local site nor a fallback gateway."""


class UpstreamFetchError(GatewayError):
    """The content resolver failed to fetch a web3:// resource."""


class PatchDecodeError(GatewayError):
    """HTML body could not be decompressed or recompressed."""


class CertificateIssuanceError(GatewayError):
    """ACME certificate issuance failed for a domain."""

    def __init__(self, domain: str, message: str):
        self.domain = domain
        super().__init__(f"Certificate issuance failed for {domain}: {message}")
