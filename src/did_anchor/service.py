"""DIDService — the create / owner / hash / show / sign / verify workflows.

Each method is one complete user-facing operation composed from the
registry anchor, the content store, the resolver, the issuer and the
verifier. Nothing here prints or exits; errors propagate as
:class:`~did_anchor.errors.DIDAnchorError` subclasses for the caller (the
CLI) to report.

Example
-------
::

    from did_anchor import DIDConfig, DIDService, Secp256k1Signer

    config = DIDConfig.from_env(os.environ)
    service = DIDService.from_config(config)
    with Secp256k1Signer(os.environ["WEB3_PRIVATE_KEY"]) as signer:
        result = service.create("did:go:abc123", signer)
    print(result.content_hash, result.transaction_hash)
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from did_anchor.anchor.registry import RegistryAnchor, Web3RegistryAnchor
from did_anchor.cancellation import CancellationToken
from did_anchor.config import DIDConfig
from did_anchor.did.canonical import utc
from did_anchor.did.credentials import CredentialIssuer, CredentialMetadata, VerifiableCredential
from did_anchor.did.document import DIDDocument, build_document
from did_anchor.did.identifier import DID, as_did
from did_anchor.did.resolver import DIDResolver
from did_anchor.did.signer import Secp256k1Signer
from did_anchor.did.verification import CredentialVerifier, VerificationResult
from did_anchor.errors import EncodingError, ValidationError
from did_anchor.storage.content import DOCUMENT_FILENAME, ContentStore, IPFSContentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreateResult:
    """Outcome of :meth:`DIDService.create`.

    Parameters
    ----------
    did:
        The anchored DID string.
    content_hash:
        Content-store hash of the uploaded document.
    transaction_hash:
        Hash of the confirmed registration transaction.
    document:
        The document that was uploaded.
    block_number:
        Block containing the registration, when known.
    """

    did: str
    content_hash: str
    transaction_hash: str
    document: DIDDocument
    block_number: int | None = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DIDService:
    """Runs DID and credential workflows against one anchor and store.

    Parameters
    ----------
    anchor:
        Registry anchor. ``None`` when no chain is configured; operations
        that need the registry then raise :class:`ValidationError`.
    store:
        Content store for DID documents.
    config:
        Settings the service was built from. Defaults to :class:`DIDConfig()`.
    clock:
        Returns the current time. Defaults to :func:`datetime.now` in UTC.
    """

    def __init__(
        self,
        anchor: RegistryAnchor | None,
        store: ContentStore,
        config: DIDConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._anchor = anchor
        self._store = store
        self._config = config or DIDConfig()
        self._clock = clock or _utc_now
        self._issuer = CredentialIssuer(clock=self._clock)

    @classmethod
    def from_config(cls, config: DIDConfig) -> "DIDService":
        """Build a service using web3.py for the registry and IPFS for content.

        The registry anchor is only created when both the RPC URL and the
        registry address are configured; no connection is opened here.
        """
        anchor: RegistryAnchor | None = None
        if config.rpc_url and config.registry_address:
            anchor = Web3RegistryAnchor.from_rpc(
                config.rpc_url,
                config.registry_address,
                request_timeout=config.request_timeout,
                confirmation_timeout=config.confirmation_timeout,
                poll_interval=config.poll_interval,
            )
        store = IPFSContentStore(config.ipfs_api_url, timeout=config.request_timeout)
        return cls(anchor, store, config=config)

    @property
    def config(self) -> DIDConfig:
        return self._config

    @property
    def resolver(self) -> DIDResolver:
        return DIDResolver(self._require_anchor(), self._store)

    def _require_anchor(self) -> RegistryAnchor:
        if self._anchor is None:
            self._config.require_chain()
            raise ValidationError("Registry anchor not configured.")
        return self._anchor

    # ------------------------------------------------------------------
    # DID workflows
    # ------------------------------------------------------------------

    def create(
        self,
        identifier: str | DID,
        signer: Secp256k1Signer,
        cancel: CancellationToken | None = None,
    ) -> CreateResult:
        """Build, upload and anchor the initial document for *identifier*.

        The document holds the signer's public key as ``<did>#owner``.
        Every input is validated before the first network call.

        Raises
        ------
        ParseError
            If *identifier* is not a valid DID.
        ValidationError
            If the DID is not ``did:go``, its id exceeds 32 bytes, no
            registry is configured, or *signer* is closed.
        NetworkError, OperationTimeoutError, OperationCancelledError
            From the content store or the registry anchor.
        """
        if not identifier:
            raise ValidationError("DID required.")
        did = as_did(identifier).base()
        did.require_anchorable()
        anchor = self._require_anchor()
        if signer.closed:
            raise ValidationError("Signer is closed; its private key has been released.")

        document = build_document(did, signer.public_key_bytes, utc(self._clock()))
        data = document.to_json().encode("utf-8")

        content_hash = self._store.upload(data, DOCUMENT_FILENAME, cancel=cancel)
        confirmation = anchor.register(did, content_hash, signer, cancel=cancel)
        logger.info("Created %s with document %s", did, content_hash)
        return CreateResult(
            did=str(did),
            content_hash=content_hash,
            transaction_hash=confirmation.transaction_hash,
            document=document,
            block_number=confirmation.block_number,
        )

    def owner(self, identifier: str | DID, cancel: CancellationToken | None = None) -> str:
        """Return the address that owns *identifier* in the registry."""
        anchor = self._require_anchor()
        return anchor.owner(as_did(identifier).base(), cancel=cancel)

    def content_hash(self, identifier: str | DID, cancel: CancellationToken | None = None) -> str:
        """Return the content hash anchored for *identifier*, ``""`` if none."""
        return self.resolver.resolve_hash(identifier, cancel=cancel)

    def show(self, identifier: str | DID, cancel: CancellationToken | None = None) -> DIDDocument:
        """Resolve *identifier* to its anchored document."""
        return self.resolver.resolve(identifier, cancel=cancel)

    # ------------------------------------------------------------------
    # Credential workflows
    # ------------------------------------------------------------------

    def sign(
        self,
        credential_id: str,
        credential_type: str,
        issuer: str,
        subject: str,
        data: str | Mapping[str, Any] | None,
        signer: Secp256k1Signer,
    ) -> VerifiableCredential:
        """Issue a credential about *subject* signed by *signer*.

        Parameters
        ----------
        credential_id:
            Credential identifier, e.g. ``"urn:1"``.
        credential_type:
            Credential type appended after ``"VerifiableCredential"``.
        issuer:
            Issuer DID.
        subject:
            Subject DID.
        data:
            Claims as a mapping or a JSON object string. ``None`` or an
            empty string means no claims.
        signer:
            The issuer's signing capability.

        Raises
        ------
        ValidationError
            If a required field is missing or a DID is invalid.
        EncodingError
            If *data* is not a JSON object.
        """
        claims = parse_claims(data)
        metadata = CredentialMetadata(
            id=credential_id,
            types=(credential_type,) if credential_type else (),
            issuer=issuer,
            subject=subject,
        )
        return self._issuer.issue(metadata, claims, signer)

    def verify(
        self,
        credential: VerifiableCredential,
        cancel: CancellationToken | None = None,
    ) -> VerificationResult:
        """Verify *credential* against its issuer's anchored document.

        Raises
        ------
        VerificationFailure
            If the issuer cannot be resolved or no key matches.
        ValidationError
            If no registry is configured.
        """
        return CredentialVerifier(self.resolver).verify(credential, cancel=cancel)

    def verify_file(
        self,
        path: str | Path,
        cancel: CancellationToken | None = None,
    ) -> VerificationResult:
        """Read a credential JSON file and verify it.

        Raises
        ------
        ValidationError
            If the file cannot be read.
        EncodingError
            If the file is not a valid credential.
        VerificationFailure
            If verification fails.
        """
        try:
            raw = Path(path).read_bytes()
        except OSError as exc:
            raise ValidationError(f"Cannot read file: {exc}") from exc
        credential = VerifiableCredential.from_json(raw)
        return self.verify(credential, cancel=cancel)


def parse_claims(data: str | Mapping[str, Any] | None) -> dict[str, Any]:
    """Return subject claims from a mapping or a JSON object string.

    Raises
    ------
    EncodingError
        If *data* is a string that does not decode to a JSON object.
    """
    if data is None or data == "":
        return {}
    if isinstance(data, Mapping):
        return dict(data)
    try:
        decoded = json.loads(data)
    except json.JSONDecodeError as exc:
        raise EncodingError(f"Cannot parse subject JSON data: {exc}") from exc
    if not isinstance(decoded, dict):
        raise EncodingError("Cannot parse subject JSON data: expected a JSON object.")
    return decoded


__all__ = ["CreateResult", "DIDService", "parse_claims"]
