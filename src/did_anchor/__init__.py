"""did-anchor — anchor DID documents on-chain and sign or verify credentials.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import did_anchor
>>> did_anchor.__version__
'0.1.0'

Quick start
-----------
::

    from did_anchor import (
        DIDService, InMemoryRegistryAnchor, InMemoryContentStore, Secp256k1Signer,
    )

    service = DIDService(InMemoryRegistryAnchor(), InMemoryContentStore())
    signer = Secp256k1Signer.generate()

    service.create("did:go:issuer1", signer)
    credential = service.sign(
        "urn:1", "ProofOfAge", "did:go:issuer1", "did:go:subj1", '{"age": 21}', signer
    )
    print(service.verify(credential).sorted_claims())
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ------------------------------------------------------------------
# Errors, configuration, cancellation
# ------------------------------------------------------------------
from did_anchor.errors import (
    ContentNotFoundError,
    DIDAnchorError,
    DocumentNotFoundError,
    EncodingError,
    NetworkError,
    OperationCancelledError,
    OperationTimeoutError,
    ParseError,
    TransactionFailedError,
    ValidationError,
    VerificationFailure,
)
from did_anchor.config import DIDConfig
from did_anchor.cancellation import CancellationToken

# ------------------------------------------------------------------
# Identifiers, documents, credentials
# ------------------------------------------------------------------
from did_anchor.did import (
    DID,
    CredentialIssuer,
    CredentialMetadata,
    CredentialVerifier,
    DIDDocument,
    DIDResolver,
    KeyEncoding,
    PublicKey,
    Secp256k1Signer,
    VerifiableCredential,
    VerificationResult,
    build_document,
    format_did,
    parse_did,
)

# ------------------------------------------------------------------
# Registry and content storage
# ------------------------------------------------------------------
from did_anchor.anchor import (
    Confirmation,
    InMemoryRegistryAnchor,
    RegistryAnchor,
    Web3RegistryAnchor,
)
from did_anchor.storage import ContentStore, InMemoryContentStore, IPFSContentStore

# ------------------------------------------------------------------
# Workflows
# ------------------------------------------------------------------
from did_anchor.service import CreateResult, DIDService

__all__ = [
    "CancellationToken",
    "Confirmation",
    "ContentNotFoundError",
    "ContentStore",
    "CreateResult",
    "CredentialIssuer",
    "CredentialMetadata",
    "CredentialVerifier",
    "DID",
    "DIDAnchorError",
    "DIDConfig",
    "DIDDocument",
    "DIDResolver",
    "DIDService",
    "DocumentNotFoundError",
    "EncodingError",
    "IPFSContentStore",
    "InMemoryContentStore",
    "InMemoryRegistryAnchor",
    "KeyEncoding",
    "NetworkError",
    "OperationCancelledError",
    "OperationTimeoutError",
    "ParseError",
    "PublicKey",
    "RegistryAnchor",
    "Secp256k1Signer",
    "TransactionFailedError",
    "ValidationError",
    "VerifiableCredential",
    "VerificationFailure",
    "VerificationResult",
    "Web3RegistryAnchor",
    "__version__",
    "build_document",
    "format_did",
    "parse_did",
]
