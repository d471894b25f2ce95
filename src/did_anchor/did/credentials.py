"""Verifiable credentials and their issuer.

A credential binds claims about a subject DID to an issuer DID and is
signed by the issuer's secp256k1 key:

1. the credential is assembled without a proof;
2. its canonical JSON (see :mod:`did_anchor.did.canonical`) is hashed with
   Keccak-256;
3. the digest is signed with a recoverable signature whose trailing
   recovery byte is dropped;
4. the hex of the remaining ``r || s`` becomes ``proof.proofValue``.

Credential JSON
---------------
::

    {
        "@context": ["https://www.w3.org/2018/credentials/v1"],
        "id": "urn:1",
        "type": ["VerifiableCredential", "ProofOfAge"],
        "issuer": "did:go:issuer1",
        "issuanceDate": "2019-05-01T12:00:00Z",
        "credentialSubject": {"age": 21, "id": "did:go:subj1"},
        "proof": {
            "type": "Secp256k1VerificationKey2018",
            "created": "2019-05-01T12:00:00Z",
            "proofValue": "3f1a..."
        }
    }

Credentials are immutable: issuance builds a new signed instance, and
verification never changes it.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from did_anchor.did.canonical import (
    canonical_json,
    format_timestamp,
    keccak256,
    parse_timestamp,
    sort_keys,
    utc,
)
from did_anchor.did.document import Proof
from did_anchor.did.identifier import parse_did
from did_anchor.did.signer import SECP256K1_KEY_TYPE, Secp256k1Signer
from did_anchor.errors import EncodingError, ParseError, ValidationError

logger = logging.getLogger(__name__)

CREDENTIALS_CONTEXT_V1 = "https://www.w3.org/2018/credentials/v1"

BASE_CREDENTIAL_TYPE = "VerifiableCredential"


# ------------------------------------------------------------------
# VerifiableCredential (Pydantic v2)
# ------------------------------------------------------------------


class VerifiableCredential(BaseModel):
    """A signed (or not yet signed) set of claims about a subject.

    Parameters
    ----------
    context:
        JSON-LD context URIs.
    id:
        Credential identifier chosen by the issuer.
    type:
        Ordered credential types, starting with ``"VerifiableCredential"``.
    issuer:
        DID of the issuer.
    issuance_date:
        UTC issuance time.
    credential_subject:
        Claims about the subject, including ``"id"`` = subject DID.
    proof:
        The issuer's signature, ``None`` before signing.
    """

    model_config = ConfigDict(frozen=True)

    context: list[str] = Field(default_factory=lambda: [CREDENTIALS_CONTEXT_V1])
    id: str = Field(min_length=1)
    type: list[str] = Field(min_length=1)
    issuer: str
    issuance_date: datetime
    credential_subject: dict[str, Any]
    proof: Proof | None = None

    @field_validator("issuer")
    @classmethod
    def validate_issuer(cls, value: str) -> str:
        parse_did(value)
        return value

    @field_validator("issuance_date")
    @classmethod
    def normalize_issuance_date(cls, value: datetime) -> datetime:
        return utc(value)

    @field_validator("credential_subject")
    @classmethod
    def validate_subject_id(cls, value: dict[str, Any]) -> dict[str, Any]:
        subject_id = value.get("id")
        if not isinstance(subject_id, str) or not subject_id:
            raise ValueError("credentialSubject must include an 'id' string.")
        return value

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def subject_id(self) -> str:
        return self.credential_subject["id"]

    @property
    def claims(self) -> dict[str, Any]:
        """Subject claims without the ``"id"`` entry."""
        return {key: value for key, value in self.credential_subject.items() if key != "id"}

    @property
    def signed(self) -> bool:
        return self.proof is not None

    # ------------------------------------------------------------------
    # Signing pre-image
    # ------------------------------------------------------------------

    def unsigned(self) -> "VerifiableCredential":
        """Return a copy of this credential with the proof cleared."""
        return self.model_copy(update={"proof": None})

    def canonical_bytes(self) -> bytes:
        """Return the canonical JSON of this credential without its proof."""
        payload = self._payload()
        payload["credentialSubject"] = sort_keys(payload["credentialSubject"])
        return canonical_json(payload)

    def digest(self) -> bytes:
        """Return the Keccak-256 digest signed by the issuer."""
        return keccak256(self.canonical_bytes())

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def _payload(self) -> dict[str, Any]:
        return {
            "@context": list(self.context),
            "id": self.id,
            "type": list(self.type),
            "issuer": self.issuer,
            "issuanceDate": format_timestamp(self.issuance_date),
            "credentialSubject": dict(self.credential_subject),
        }

    def to_dict(self) -> dict[str, Any]:
        data = self._payload()
        if self.proof is not None:
            data["proof"] = self.proof.to_dict()
        return data

    def to_json(self, indent: int | str | None = "\t") -> str:
        """Serialize to JSON, tab-indented by default."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VerifiableCredential":
        """Build a credential from its decoded JSON object.

        Raises
        ------
        EncodingError
            If required properties are missing or malformed.
        """
        try:
            context = data.get("@context", [CREDENTIALS_CONTEXT_V1])
            if isinstance(context, str):
                context = [context]
            proof_raw = data.get("proof")
            return cls(
                context=context,
                id=data["id"],
                type=data["type"],
                issuer=data["issuer"],
                issuance_date=parse_timestamp(data["issuanceDate"]),
                credential_subject=data.get("credentialSubject") or {},
                proof=Proof.from_dict(proof_raw) if proof_raw else None,
            )
        except EncodingError:
            raise
        except (KeyError, TypeError, AttributeError, ParseError, pydantic.ValidationError) as exc:
            raise EncodingError(f"Invalid verifiable credential: {exc}") from exc

    @classmethod
    def from_json(cls, raw: str | bytes) -> "VerifiableCredential":
        """Decode a credential from JSON text or bytes.

        Raises
        ------
        EncodingError
            If *raw* is not JSON, not an object, or not a valid credential.
        """
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise EncodingError(f"Invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise EncodingError("Credential JSON must be an object.")
        return cls.from_dict(data)


# ------------------------------------------------------------------
# CredentialIssuer
# ------------------------------------------------------------------


@dataclass(frozen=True)
class CredentialMetadata:
    """Who issues what to whom.

    Parameters
    ----------
    id:
        Credential identifier.
    types:
        Credential types, e.g. ``("ProofOfAge",)``. ``"VerifiableCredential"``
        is always placed first.
    issuer:
        Issuer DID string.
    subject:
        Subject DID string.
    """

    id: str
    types: tuple[str, ...]
    issuer: str
    subject: str

    def __post_init__(self) -> None:
        if isinstance(self.types, str):
            object.__setattr__(self, "types", (self.types,))
        else:
            object.__setattr__(self, "types", tuple(self.types))


def _credential_types(types: Iterable[str]) -> list[str]:
    return [BASE_CREDENTIAL_TYPE] + [t for t in types if t and t != BASE_CREDENTIAL_TYPE]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CredentialIssuer:
    """Builds and signs verifiable credentials.

    Issuance performs no network I/O; the issuer's document does not need
    to be anchored at signing time.

    Parameters
    ----------
    clock:
        Returns the current time. Defaults to :func:`datetime.now` in UTC.

    Example
    -------
    ::

        issuer = CredentialIssuer()
        credential = issuer.issue(
            CredentialMetadata(
                id="urn:1",
                types=("ProofOfAge",),
                issuer="did:go:issuer1",
                subject="did:go:subj1",
            ),
            {"age": 21},
            signer,
        )
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or _utc_now

    def issue(
        self,
        metadata: CredentialMetadata,
        claims: Mapping[str, Any],
        signer: Secp256k1Signer,
    ) -> VerifiableCredential:
        """Issue a signed credential.

        Parameters
        ----------
        metadata:
            Credential id, types, issuer and subject.
        claims:
            Claims about the subject. Any ``"id"`` key is replaced by the
            subject DID.
        signer:
            The issuer's signing capability.

        Returns
        -------
        VerifiableCredential
            The signed credential.

        Raises
        ------
        ValidationError
            If the id or types are missing, the issuer or subject is not
            a valid DID, or a claim key is not a string.
        EncodingError
            If the claims are not JSON serializable. Nested claim objects
            with non-string keys land here.
        """
        if not metadata.id:
            raise ValidationError("Credential ID required.")
        types = _credential_types(metadata.types)
        if len(types) < 2:
            raise ValidationError("Credential type required.")
        for role, value in (("issuer", metadata.issuer), ("subject", metadata.subject)):
            if not value:
                raise ValidationError(f"Credential {role} DID required.")
            try:
                parse_did(value)
            except ParseError as exc:
                raise ValidationError(f"Invalid credential {role} DID: {exc}") from exc
        bad_keys = [key for key in claims if not isinstance(key, str)]
        if bad_keys:
            raise ValidationError(f"Claim keys must be strings, got {bad_keys!r}.")

        subject = dict(claims)
        subject["id"] = metadata.subject

        issued_at = utc(self._clock()).replace(microsecond=0)

        unsigned = VerifiableCredential(
            id=metadata.id,
            type=types,
            issuer=metadata.issuer,
            issuance_date=issued_at,
            credential_subject=subject,
        )

        signature = signer.sign_digest(unsigned.digest())
        proof = Proof(
            type=SECP256K1_KEY_TYPE,
            created=issued_at,
            proof_value=signature[:-1].hex(),
        )
        credential = unsigned.model_copy(update={"proof": proof})
        logger.info(
            "Issued credential %s (%s) from %s to %s",
            credential.id,
            ", ".join(credential.type),
            credential.issuer,
            metadata.subject,
        )
        return credential


__all__ = [
    "BASE_CREDENTIAL_TYPE",
    "CREDENTIALS_CONTEXT_V1",
    "CredentialIssuer",
    "CredentialMetadata",
    "VerifiableCredential",
]
