"""Served site data model."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ServedSite(BaseModel):
    """A web3:// website exposed by this gateway.

    Built once at startup from the command line and never mutated.
    """
    model_config = ConfigDict(frozen=True)

    hostname: str
    chain_id: int = Field(default=1, ge=1)
    base_address: str
    dns_domain: Optional[str] = None

    @property
    def web3_hostname_and_chain(self) -> str:
        """Hostname with the chain id appended when it is not the default."""
        if self.chain_id > 1:
            return f"{self.hostname}:{self.chain_id}"
        return self.hostname

    @property
    def identity_key(self) -> str:
        """Case-insensitive key used to match web3:// URLs to this site."""
        return self.web3_hostname_and_chain.lower()
