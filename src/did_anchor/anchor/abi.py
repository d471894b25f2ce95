"""ABI of the on-chain DID registry contract.

Contract surface::

    function register(bytes32 id, string hash) public;
    function owner(bytes32 id) public view returns (address);
    function hash(bytes32 id) public view returns (string);
"""
from __future__ import annotations

from typing import Any

DID_REGISTRY_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "register",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "id", "type": "bytes32"},
            {"name": "hash", "type": "string"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "owner",
        "stateMutability": "view",
        "inputs": [{"name": "id", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "address"}],
    },
    {
        "type": "function",
        "name": "hash",
        "stateMutability": "view",
        "inputs": [{"name": "id", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "string"}],
    },
]

__all__ = ["DID_REGISTRY_ABI"]
