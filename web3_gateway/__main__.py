"""Allow ``python -m web3_gateway``."""

from .main import main

main()
