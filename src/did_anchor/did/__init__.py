"""did_anchor.did — identifiers, DID documents and verifiable credentials.

Submodules
----------
identifier
    DID parsing and formatting, registry key encoding.
encoding
    Public-key material codecs (PEM, JWK, hex, base64, base58, multibase).
document
    DIDDocument, PublicKey, AuthenticationRef, Service, Proof and the
    initial-document builder.
canonical
    Canonical JSON, Keccak-256 and RFC 3339 timestamp helpers.
signer
    Secp256k1Signer and signature verification.
credentials
    VerifiableCredential and CredentialIssuer.
resolver
    DIDResolver, which turns a DID into its anchored document.
verification
    CredentialVerifier and VerificationResult.

Quick start
-----------
::

    from did_anchor.anchor import InMemoryRegistryAnchor
    from did_anchor.storage import InMemoryContentStore
    from did_anchor.did import (
        CredentialIssuer,
        CredentialMetadata,
        CredentialVerifier,
        DIDResolver,
        Secp256k1Signer,
        build_document,
    )

    anchor, store = InMemoryRegistryAnchor(), InMemoryContentStore()
    signer = Secp256k1Signer.generate()

    document = build_document("did:go:issuer1", signer.public_key_bytes, now)
    content_hash = store.upload(document.to_json().encode())
    anchor.register(document.did, content_hash, signer)

    credential = CredentialIssuer().issue(
        CredentialMetadata("urn:1", ("ProofOfAge",), "did:go:issuer1", "did:go:subj1"),
        {"age": 21},
        signer,
    )
    result = CredentialVerifier(DIDResolver(anchor, store)).verify(credential)
"""
from __future__ import annotations

from did_anchor.did.canonical import canonical_json, format_timestamp, keccak256, parse_timestamp
from did_anchor.did.credentials import (
    BASE_CREDENTIAL_TYPE,
    CREDENTIALS_CONTEXT_V1,
    CredentialIssuer,
    CredentialMetadata,
    VerifiableCredential,
)
from did_anchor.did.document import (
    CONTEXT_V1,
    OWNER_FRAGMENT,
    AuthenticationRef,
    DIDDocument,
    EmbeddedKey,
    KeyMaterial,
    KeyReference,
    Proof,
    PublicKey,
    Service,
    build_document,
    key_material,
    key_material_from_point,
)
from did_anchor.did.encoding import KeyEncoding, decode_public_key, encode_public_key
from did_anchor.did.identifier import ANCHOR_METHOD, DID, MAX_ID_BYTES, as_did, format_did, parse_did
from did_anchor.did.resolver import DIDResolver
from did_anchor.did.signer import SECP256K1_KEY_TYPE, Secp256k1Signer, verify_signature
from did_anchor.did.verification import CredentialVerifier, VerificationResult

__all__ = [
    "ANCHOR_METHOD",
    "AuthenticationRef",
    "BASE_CREDENTIAL_TYPE",
    "CONTEXT_V1",
    "CREDENTIALS_CONTEXT_V1",
    "CredentialIssuer",
    "CredentialMetadata",
    "CredentialVerifier",
    "DID",
    "DIDDocument",
    "DIDResolver",
    "EmbeddedKey",
    "KeyEncoding",
    "KeyMaterial",
    "KeyReference",
    "MAX_ID_BYTES",
    "OWNER_FRAGMENT",
    "Proof",
    "PublicKey",
    "SECP256K1_KEY_TYPE",
    "Secp256k1Signer",
    "Service",
    "VerifiableCredential",
    "VerificationResult",
    "as_did",
    "build_document",
    "canonical_json",
    "decode_public_key",
    "encode_public_key",
    "format_did",
    "format_timestamp",
    "keccak256",
    "key_material",
    "key_material_from_point",
    "parse_did",
    "parse_timestamp",
    "verify_signature",
]
