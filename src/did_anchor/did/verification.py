"""CredentialVerifier — checks a credential's signature against its issuer's DID document.

Verification flow
-----------------
1. Resolve the issuer's DID document through the registry and content
   store. Any resolution error becomes a :class:`VerificationFailure`
   carrying the original error as ``cause``.
2. Recompute the Keccak-256 digest of the credential with its proof
   cleared.
3. Select the issuer's public keys whose type matches the proof type.
   Only ``Secp256k1VerificationKey2018`` is supported; other keys are
   skipped.
4. Try each candidate key in document order and stop at the first that
   validates ``proofValue``. Proofs carry no recovery id, so every
   candidate is tried.
5. Raise :class:`VerificationFailure` if none matches.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from did_anchor.cancellation import CancellationToken
from did_anchor.did.credentials import VerifiableCredential
from did_anchor.did.resolver import DIDResolver
from did_anchor.did.signer import SECP256K1_KEY_TYPE, verify_signature
from did_anchor.errors import DIDAnchorError, EncodingError, VerificationFailure

logger = logging.getLogger(__name__)

SUPPORTED_PROOF_TYPES = frozenset({SECP256K1_KEY_TYPE})


# ------------------------------------------------------------------
# VerificationResult
# ------------------------------------------------------------------


@dataclass(frozen=True)
class VerificationResult:
    """A successfully verified credential, ready for display.

    Parameters
    ----------
    credential_id:
        The credential's ``id``.
    types:
        The credential's ``type`` list.
    issuer:
        Issuer DID.
    subject_id:
        Subject DID, taken from ``credentialSubject.id``.
    issuance_date:
        When the credential was issued.
    claims:
        Subject claims without ``id``.
    key_id:
        Id of the issuer key that validated the signature.
    """

    credential_id: str
    types: list[str]
    issuer: str
    subject_id: str
    issuance_date: datetime
    claims: dict[str, Any] = field(default_factory=dict)
    key_id: str = ""

    @property
    def verified(self) -> bool:
        return True

    def sorted_claims(self) -> list[tuple[str, Any]]:
        """Return the claims as ``(key, value)`` pairs sorted by key."""
        return sorted(self.claims.items())


# ------------------------------------------------------------------
# CredentialVerifier
# ------------------------------------------------------------------


class CredentialVerifier:
    """Verifies credential signatures using anchored issuer documents.

    Parameters
    ----------
    resolver:
        Resolver used to fetch the issuer's DID document.

    Example
    -------
    ::

        verifier = CredentialVerifier(DIDResolver(anchor, store))
        try:
            result = verifier.verify(credential)
        except VerificationFailure as exc:
            print("NOT VERIFIED:", exc)
        else:
            print("VERIFIED with", result.key_id)
    """

    def __init__(self, resolver: DIDResolver) -> None:
        self._resolver = resolver

    def verify(
        self,
        credential: VerifiableCredential,
        cancel: CancellationToken | None = None,
    ) -> VerificationResult:
        """Verify *credential* against its issuer's anchored DID document.

        Returns
        -------
        VerificationResult

        Raises
        ------
        VerificationFailure
            If the credential has no usable proof, the issuer cannot be
            resolved, or no candidate key validates the signature.
        """
        proof = credential.proof
        if proof is None or not proof.proof_value:
            raise VerificationFailure(f"Credential {credential.id!r} has no proof.")

        try:
            document = self._resolver.resolve(credential.issuer, cancel=cancel)
        except DIDAnchorError as exc:
            raise VerificationFailure(
                f"Cannot read issuer DID document for {credential.issuer!r}: {exc}",
                cause=exc,
            ) from exc

        try:
            signature = bytes.fromhex(proof.proof_value)
        except ValueError as exc:
            raise VerificationFailure(f"proofValue is not hex: {exc}", cause=exc) from exc

        try:
            digest = credential.unsigned().digest()
        except EncodingError as exc:
            raise VerificationFailure(
                f"Cannot compute digest of credential {credential.id!r}: {exc}",
                cause=exc,
            ) from exc

        candidates = document.keys_of_type(proof.type) if proof.type in SUPPORTED_PROOF_TYPES else []
        for key in candidates:
            try:
                point = key.material.to_point()
            except EncodingError as exc:
                logger.debug("Skipping key %s: %s", key.id, exc)
                continue
            if verify_signature(point, digest, signature):
                logger.info("Credential %s verified with key %s", credential.id, key.id)
                return VerificationResult(
                    credential_id=credential.id,
                    types=list(credential.type),
                    issuer=credential.issuer,
                    subject_id=credential.subject_id,
                    issuance_date=credential.issuance_date,
                    claims=credential.claims,
                    key_id=key.id,
                )

        logger.info(
            "Credential %s not verified: %d candidate key(s) of type %s",
            credential.id,
            len(candidates),
            proof.type,
        )
        raise VerificationFailure(
            f"No {proof.type} key of {credential.issuer!r} verifies the credential signature."
        )


__all__ = ["CredentialVerifier", "SUPPORTED_PROOF_TYPES", "VerificationResult"]
