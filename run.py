#!/usr/bin/env python3
"""CLI entry point for the web3:// HTTP gateway.

Runs the gateway from a source checkout, without installing it:

    ./run.py web3://0x4e1f41613c9084fdb9e34e11fae9412427480e56
"""

from web3_gateway.main import main

if __name__ == "__main__":
    main()
