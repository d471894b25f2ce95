"""did_anchor.anchor — the on-chain registry mapping DIDs to content hashes.

Submodules
----------
registry
    RegistryAnchor base class, Web3RegistryAnchor and InMemoryRegistryAnchor.
abi
    ABI of the DID registry contract.
"""
from __future__ import annotations

from did_anchor.anchor.abi import DID_REGISTRY_ABI
from did_anchor.anchor.registry import (
    ZERO_ADDRESS,
    Confirmation,
    InMemoryRegistryAnchor,
    RegistryAnchor,
    Web3RegistryAnchor,
)

__all__ = [
    "Confirmation",
    "DID_REGISTRY_ABI",
    "InMemoryRegistryAnchor",
    "RegistryAnchor",
    "Web3RegistryAnchor",
    "ZERO_ADDRESS",
]
