"""Shared fixtures: deterministic keys, a fixed clock and in-memory backends."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from did_anchor.anchor.registry import InMemoryRegistryAnchor
from did_anchor.did.signer import Secp256k1Signer
from did_anchor.storage.content import InMemoryContentStore

ISSUER_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
OTHER_PRIVATE_KEY = "0x" + "11" * 32
FIXED_NOW = datetime(2019, 5, 1, 12, 0, 0, 250000, tzinfo=timezone.utc)


@pytest.fixture()
def issuer_private_key() -> str:
    return ISSUER_PRIVATE_KEY


@pytest.fixture()
def signer() -> Secp256k1Signer:
    return Secp256k1Signer(ISSUER_PRIVATE_KEY)


@pytest.fixture()
def other_signer() -> Secp256k1Signer:
    return Secp256k1Signer(OTHER_PRIVATE_KEY)


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def clock():
    return lambda: FIXED_NOW


@pytest.fixture()
def anchor() -> InMemoryRegistryAnchor:
    return InMemoryRegistryAnchor()


@pytest.fixture()
def store() -> InMemoryContentStore:
    return InMemoryContentStore()
