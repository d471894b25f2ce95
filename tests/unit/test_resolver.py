"""Tests for did_anchor.did.resolver — registry lookup plus content fetch."""
from __future__ import annotations

import json
from datetime import datetime

import pytest

from did_anchor.anchor.registry import InMemoryRegistryAnchor
from did_anchor.did.document import DIDDocument, build_document
from did_anchor.did.identifier import parse_did
from did_anchor.did.resolver import DIDResolver
from did_anchor.did.signer import Secp256k1Signer
from did_anchor.errors import DocumentNotFoundError, EncodingError, ParseError
from did_anchor.storage.content import InMemoryContentStore


@pytest.fixture()
def resolver(anchor: InMemoryRegistryAnchor, store: InMemoryContentStore) -> DIDResolver:
    return DIDResolver(anchor, store)


@pytest.fixture()
def document(signer: Secp256k1Signer, fixed_now: datetime) -> DIDDocument:
    return build_document("did:go:abc123", signer.public_key_bytes, fixed_now)


@pytest.fixture()
def content_hash(
    anchor: InMemoryRegistryAnchor,
    store: InMemoryContentStore,
    document: DIDDocument,
    signer: Secp256k1Signer,
) -> str:
    content_hash = store.upload(document.to_json().encode("utf-8"), "did.json")
    anchor.register(document.did, content_hash, signer)
    return content_hash


class TestResolve:
    def test_resolves_anchored_document(
        self, resolver: DIDResolver, document: DIDDocument, content_hash: str
    ) -> None:
        resolved = resolver.resolve("did:go:abc123")
        assert resolved == document
        assert json.loads(resolved.to_json()) == json.loads(document.to_json())

    def test_resolve_hash(self, resolver: DIDResolver, content_hash: str) -> None:
        assert resolver.resolve_hash("did:go:abc123") == content_hash

    def test_fragment_is_ignored(
        self, resolver: DIDResolver, document: DIDDocument, content_hash: str
    ) -> None:
        assert resolver.resolve("did:go:abc123#owner") == document

    def test_accepts_did_instances(
        self, resolver: DIDResolver, document: DIDDocument, content_hash: str
    ) -> None:
        assert resolver.resolve(parse_did("did:go:abc123")) == document

    def test_each_call_decodes_a_fresh_document(
        self, resolver: DIDResolver, content_hash: str
    ) -> None:
        assert resolver.resolve("did:go:abc123") is not resolver.resolve("did:go:abc123")

    def test_latest_registration_wins(
        self,
        resolver: DIDResolver,
        anchor: InMemoryRegistryAnchor,
        store: InMemoryContentStore,
        signer: Secp256k1Signer,
        content_hash: str,
    ) -> None:
        later = build_document(
            "did:go:abc123", signer.public_key_bytes, datetime.fromisoformat("2020-01-01T00:00:00+00:00")
        )
        new_hash = store.upload(later.to_json().encode("utf-8"))
        anchor.register(later.did, new_hash, signer)
        assert resolver.resolve("did:go:abc123") == later


class TestResolveErrors:
    def test_unanchored_identifier(self, resolver: DIDResolver) -> None:
        with pytest.raises(DocumentNotFoundError, match="did:go:nobody"):
            resolver.resolve("did:go:nobody")

    def test_unanchored_hash_is_empty(self, resolver: DIDResolver) -> None:
        assert resolver.resolve_hash("did:go:nobody") == ""

    def test_invalid_identifier(self, resolver: DIDResolver) -> None:
        with pytest.raises(ParseError):
            resolver.resolve("abc123")

    def test_malformed_content(
        self,
        resolver: DIDResolver,
        anchor: InMemoryRegistryAnchor,
        store: InMemoryContentStore,
        signer: Secp256k1Signer,
    ) -> None:
        content_hash = store.upload(b"this is not json")
        anchor.register(parse_did("did:go:broken"), content_hash, signer)
        with pytest.raises(EncodingError):
            resolver.resolve("did:go:broken")
