#!/usr/bin/env python3
"""Example: Quickstart

Anchors a DID document, issues a credential and verifies it, all against
the in-memory registry and content store. No chain or IPFS node needed.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install did-anchor
"""
from __future__ import annotations

import json

import did_anchor
from did_anchor import (
    DIDService,
    InMemoryContentStore,
    InMemoryRegistryAnchor,
    Secp256k1Signer,
    VerifiableCredential,
    VerificationFailure,
)


def main() -> None:
    print(f"did-anchor version: {did_anchor.__version__}")

    service = DIDService(InMemoryRegistryAnchor(), InMemoryContentStore())

    with Secp256k1Signer.generate() as issuer:
        # Step 1: Anchor the issuer's DID document
        created = service.create("did:go:issuer1", issuer)
        print(f"Registered {created.did} -> {created.content_hash}")
        print(f"Owner: {service.owner(created.did)}")

        # Step 2: Issue a credential about a subject
        credential = service.sign(
            "urn:1", "ProofOfAge", "did:go:issuer1", "did:go:subj1", {"age": 21}, issuer
        )
        print(credential.to_json())

    # Step 3: Verify it against the anchored document
    result = service.verify(credential)
    print(f"Verified with key {result.key_id}: {dict(result.sorted_claims())}")

    # Step 4: A tampered copy fails
    data = json.loads(credential.to_json())
    data["credentialSubject"]["age"] = 30
    try:
        service.verify(VerifiableCredential.from_dict(data))
    except VerificationFailure as exc:
        print(f"Tampered credential rejected: {exc}")

    print("\nQuickstart complete.")


if __name__ == "__main__":
    main()
