#!/usr/bin/env python3
"""Example: Live registry

Anchors a DID on a real chain and IPFS node, then resolves it back.

Usage:
    export WEB3_RPC_URL=http://localhost:8545
    export WEB3_DID_REGISTRY=0x...
    export WEB3_IPFS_URL=http://localhost:5001
    export WEB3_PRIVATE_KEY=0x...
    python examples/02_live_registry.py did:go:myid

Requirements:
    pip install did-anchor
"""
from __future__ import annotations

import logging
import os
import sys

from did_anchor import CancellationToken, DIDAnchorError, DIDConfig, DIDService, Secp256k1Signer


def main(identifier: str) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    config = DIDConfig.from_env(os.environ, confirmation_timeout=30.0)
    service = DIDService.from_config(config)
    cancel = CancellationToken().with_timeout(60)

    try:
        with Secp256k1Signer(os.environ["WEB3_PRIVATE_KEY"]) as signer:
            created = service.create(identifier, signer, cancel=cancel)
        print(f"Transaction: {created.transaction_hash} (block {created.block_number})")
        print(service.show(identifier, cancel=cancel).to_json())
    except DIDAnchorError as exc:
        print(f"Failed: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1] if len(sys.argv) > 1 else "did:go:example"))
