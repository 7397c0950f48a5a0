"""web3:// HTTP gateway.

Serves web3:// websites as regular HTTP(S) websites, with Let's Encrypt
certificates for the domains serving them.
"""

__version__ = "0.1.0"
