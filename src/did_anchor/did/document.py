"""DIDDocument — the identity document anchored through the registry.

JSON shape
----------
::

    {
        "@context": "https://w3id.org/did/v1",
        "id": "did:go:abc123",
        "publicKey": [{
            "id": "did:go:abc123#owner",
            "type": "Secp256k1VerificationKey2018",
            "controller": "did:go:abc123",
            "publicKeyHex": "0x04..."
        }],
        "authentication": ["did:go:abc123#owner"],
        "service": [],
        "created": "2019-05-01T12:00:00Z",
        "updated": "2019-05-01T12:00:00Z"
    }

A document is immutable once built. Changing it means uploading new
content and registering the new hash; the registry keeps only the latest
value.

Public key material is a tagged variant: exactly one of the six
``publicKey*`` properties is populated, modelled as one
:data:`KeyMaterial` member per encoding. Authentication entries are either
an embedded key or a reference to a key id, modelled as
:class:`EmbeddedKey` / :class:`KeyReference`.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Annotated, Any, Literal, Union

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from did_anchor.did.canonical import format_timestamp, parse_timestamp, utc
from did_anchor.did.encoding import (
    PUBLIC_KEY_FIELDS,
    KeyEncoding,
    decode_public_key,
    encode_public_key,
)
from did_anchor.did.identifier import DID, as_did, parse_did
from did_anchor.did.signer import SECP256K1_KEY_TYPE
from did_anchor.errors import EncodingError, ParseError

logger = logging.getLogger(__name__)

CONTEXT_V1 = "https://w3id.org/did/v1"

OWNER_FRAGMENT = "owner"

# ------------------------------------------------------------------
# Key material variants
# ------------------------------------------------------------------


class _KeyMaterial(BaseModel):
    model_config = ConfigDict(frozen=True)

    @property
    def key_encoding(self) -> KeyEncoding:
        return KeyEncoding(self.encoding)  # type: ignore[attr-defined]

    def to_point(self) -> bytes:
        """Decode the material to a 65-byte uncompressed secp256k1 point."""
        return decode_public_key(self.key_encoding, self.value)  # type: ignore[attr-defined]

    def to_dict(self) -> dict[str, Any]:
        return {self.key_encoding.json_field: self.value}  # type: ignore[attr-defined]


class PemKeyMaterial(_KeyMaterial):
    encoding: Literal["pem"] = "pem"
    value: str = Field(min_length=1)


class JwkKeyMaterial(_KeyMaterial):
    """JWK material, kept in the form it was given: an object or a JSON string."""

    encoding: Literal["jwk"] = "jwk"
    value: Union[dict[str, Any], str]

    @field_validator("value")
    @classmethod
    def validate_value(cls, value: dict[str, Any] | str) -> dict[str, Any] | str:
        if not value:
            raise ValueError("publicKeyJwk must not be empty.")
        return value


class HexKeyMaterial(_KeyMaterial):
    encoding: Literal["hex"] = "hex"
    value: str = Field(min_length=1)


class Base64KeyMaterial(_KeyMaterial):
    encoding: Literal["base64"] = "base64"
    value: str = Field(min_length=1)


class Base58KeyMaterial(_KeyMaterial):
    encoding: Literal["base58"] = "base58"
    value: str = Field(min_length=1)


class MultibaseKeyMaterial(_KeyMaterial):
    encoding: Literal["multibase"] = "multibase"
    value: str = Field(min_length=1)


KeyMaterial = Annotated[
    Union[
        PemKeyMaterial,
        JwkKeyMaterial,
        HexKeyMaterial,
        Base64KeyMaterial,
        Base58KeyMaterial,
        MultibaseKeyMaterial,
    ],
    Field(discriminator="encoding"),
]

_MATERIAL_CLASSES: dict[KeyEncoding, type[_KeyMaterial]] = {
    KeyEncoding.PEM: PemKeyMaterial,
    KeyEncoding.JWK: JwkKeyMaterial,
    KeyEncoding.HEX: HexKeyMaterial,
    KeyEncoding.BASE64: Base64KeyMaterial,
    KeyEncoding.BASE58: Base58KeyMaterial,
    KeyEncoding.MULTIBASE: MultibaseKeyMaterial,
}


def key_material(encoding: KeyEncoding, value: Any) -> _KeyMaterial:
    """Build the :data:`KeyMaterial` variant for *encoding* holding *value*."""
    return _MATERIAL_CLASSES[encoding](value=value)


def key_material_from_point(encoding: KeyEncoding, point: bytes) -> _KeyMaterial:
    """Encode a secp256k1 point as the :data:`KeyMaterial` variant for *encoding*."""
    return key_material(encoding, encode_public_key(encoding, point))


# ------------------------------------------------------------------
# Public key
# ------------------------------------------------------------------


class PublicKey(BaseModel):
    """A public key entry in a DID document.

    Parameters
    ----------
    id:
        Key identifier, usually the DID plus a fragment (``did:go:x#owner``).
    type:
        Key-suite tag, e.g. ``"Secp256k1VerificationKey2018"``.
    controller:
        DID of the party controlling the matching private key.
    material:
        The key bytes in exactly one encoding.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    type: str = Field(min_length=1)
    controller: str = Field(min_length=1)
    material: KeyMaterial

    @field_validator("controller")
    @classmethod
    def validate_controller(cls, value: str) -> str:
        parse_did(value)
        return value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "controller": self.controller,
            **self.material.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PublicKey":
        """Build a key from its JSON object.

        Exactly one ``publicKey*`` property must be non-empty; empty strings
        in the others are tolerated.

        Raises
        ------
        EncodingError
            If zero or several key properties are populated.
        """
        populated = [name for name in PUBLIC_KEY_FIELDS if data.get(name)]
        if len(populated) != 1:
            raise EncodingError(
                f"Public key {data.get('id')!r} must populate exactly one of "
                f"{list(PUBLIC_KEY_FIELDS)}, found {populated}."
            )
        field_name = populated[0]
        return cls(
            id=data["id"],
            type=data["type"],
            controller=data["controller"],
            material=key_material(KeyEncoding.from_json_field(field_name), data[field_name]),
        )


# ------------------------------------------------------------------
# Authentication references
# ------------------------------------------------------------------


class EmbeddedKey(BaseModel):
    """An authentication entry that carries its own public key."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["embedded"] = "embedded"
    key: PublicKey

    @property
    def key_id(self) -> str:
        return self.key.id

    def resolve(self, document: "DIDDocument") -> PublicKey | None:
        return self.key

    def to_json_value(self) -> Any:
        return self.key.to_dict()


class KeyReference(BaseModel):
    """An authentication entry pointing at a key listed under ``publicKey``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["reference"] = "reference"
    key_id: str = Field(min_length=1)

    def resolve(self, document: "DIDDocument") -> PublicKey | None:
        return document.find_public_key(self.key_id)

    def to_json_value(self) -> Any:
        return self.key_id


AuthenticationRef = Annotated[
    Union[EmbeddedKey, KeyReference],
    Field(discriminator="kind"),
]


def _decode_key(entry: Any) -> PublicKey | None:
    """Decode one key entry, or return ``None`` if it cannot be used.

    Documents may list keys this package has no use for (other suites,
    non-DID controllers, unusual material). They are dropped so the
    remaining keys stay resolvable.
    """
    try:
        return PublicKey.from_dict(entry)
    except (EncodingError, KeyError, TypeError, AttributeError, pydantic.ValidationError) as exc:
        key_id = entry.get("id") if isinstance(entry, Mapping) else entry
        logger.debug("Skipping unusable public key %r: %s", key_id, exc)
        return None


def _public_keys_from_json(entries: Any) -> list[PublicKey]:
    decoded = (_decode_key(entry) for entry in entries or [])
    return [key for key in decoded if key is not None]


def _authentications_from_json(entries: Any) -> list[EmbeddedKey | KeyReference]:
    refs: list[EmbeddedKey | KeyReference] = []
    for entry in entries or []:
        if isinstance(entry, str):
            refs.append(KeyReference(key_id=entry))
        elif isinstance(entry, Mapping):
            key = _decode_key(entry)
            if key is not None:
                refs.append(EmbeddedKey(key=key))
        else:
            raise EncodingError(
                f"authentication entries must be a key object or a key id string, got {entry!r}."
            )
    return refs


# ------------------------------------------------------------------
# Service and proof
# ------------------------------------------------------------------


class Service(BaseModel):
    """A service endpoint advertised by the DID subject. Passed through as-is."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    type: str = ""
    service_endpoint: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "type": self.type, "serviceEndpoint": self.service_endpoint}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Service":
        return cls(
            id=data["id"],
            type=data.get("type") or "",
            service_endpoint=data.get("serviceEndpoint") or "",
        )


class Proof(BaseModel):
    """A proof block on a DID document or a verifiable credential.

    Document proofs use ``signature_value`` (plus optional ``creator``,
    ``domain`` and ``nonce``); credential proofs use ``proof_value``. Both
    hold hex-encoded signatures.
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(min_length=1)
    created: datetime | None = None
    creator: str | None = None
    domain: str | None = None
    nonce: str | None = None
    signature_value: str | None = None
    proof_value: str | None = None

    @field_validator("created")
    @classmethod
    def normalize_created(cls, value: datetime | None) -> datetime | None:
        return utc(value) if value is not None else None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type}
        if self.creator:
            data["creator"] = self.creator
        if self.created is not None:
            data["created"] = format_timestamp(self.created)
        if self.domain:
            data["domain"] = self.domain
        if self.nonce:
            data["nonce"] = self.nonce
        if self.signature_value:
            data["signatureValue"] = self.signature_value
        if self.proof_value:
            data["proofValue"] = self.proof_value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Proof":
        created_raw = data.get("created")
        return cls(
            type=data["type"],
            created=parse_timestamp(created_raw) if created_raw else None,
            creator=data.get("creator") or None,
            domain=data.get("domain") or None,
            nonce=data.get("nonce") or None,
            signature_value=data.get("signatureValue") or None,
            proof_value=data.get("proofValue") or None,
        )


# ------------------------------------------------------------------
# DID Document
# ------------------------------------------------------------------


class DIDDocument(BaseModel):
    """A DID document.

    Parameters
    ----------
    context:
        Always :data:`CONTEXT_V1`.
    id:
        The DID this document describes.
    public_keys:
        Ordered public key entries.
    authentications:
        Ordered authentication entries, embedded or by reference.
    services:
        Ordered service endpoints.
    created:
        UTC creation time, optional.
    updated:
        UTC last-update time, optional.
    proof:
        Optional integrity proof over the document.
    """

    model_config = ConfigDict(frozen=True)

    context: str = CONTEXT_V1
    id: str
    public_keys: list[PublicKey] = Field(default_factory=list)
    authentications: list[AuthenticationRef] = Field(default_factory=list)
    services: list[Service] = Field(default_factory=list)
    created: datetime | None = None
    updated: datetime | None = None
    proof: Proof | None = None

    @field_validator("context")
    @classmethod
    def validate_context(cls, value: str) -> str:
        if value != CONTEXT_V1:
            raise ValueError(f"@context must be {CONTEXT_V1!r}, got {value!r}.")
        return value

    @field_validator("id")
    @classmethod
    def validate_did(cls, value: str) -> str:
        parse_did(value)
        return value

    @field_validator("created", "updated")
    @classmethod
    def normalize_timestamps(cls, value: datetime | None) -> datetime | None:
        return utc(value) if value is not None else None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def did(self) -> DID:
        return parse_did(self.id)

    def find_public_key(self, key_id: str) -> PublicKey | None:
        """Return the public key listed with *key_id*, or ``None``."""
        for key in self.public_keys:
            if key.id == key_id:
                return key
        return None

    def keys_of_type(self, key_type: str) -> list[PublicKey]:
        """Return the public keys tagged with *key_type*, in document order."""
        return [key for key in self.public_keys if key.type == key_type]

    def authentication_keys(self) -> list[PublicKey]:
        """Return the keys authorised for authentication, resolving references.

        References that do not match a listed key are skipped.
        """
        resolved = (ref.resolve(self) for ref in self.authentications)
        return [key for key in resolved if key is not None]

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "@context": self.context,
            "id": self.id,
            "publicKey": [key.to_dict() for key in self.public_keys],
            "authentication": [ref.to_json_value() for ref in self.authentications],
            "service": [service.to_dict() for service in self.services],
        }
        if self.created is not None:
            data["created"] = format_timestamp(self.created)
        if self.updated is not None:
            data["updated"] = format_timestamp(self.updated)
        if self.proof is not None:
            data["proof"] = self.proof.to_dict()
        return data

    def to_json(self) -> str:
        """Serialize to tab-indented JSON, the form uploaded to the content store."""
        return json.dumps(self.to_dict(), indent="\t")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DIDDocument":
        """Build a document from its decoded JSON object.

        Public key entries that cannot be decoded are skipped, so one
        unusual key does not hide the others. :class:`PublicKey` itself
        stays strict.

        Raises
        ------
        EncodingError
            If required properties are missing or malformed.
        """
        try:
            created_raw = data.get("created")
            updated_raw = data.get("updated")
            proof_raw = data.get("proof")
            services_raw = data.get("service")
            if services_raw is None:
                # Older documents carry services under "Services".
                services_raw = data.get("Services")
            return cls(
                context=data.get("@context", CONTEXT_V1),
                id=data["id"],
                public_keys=_public_keys_from_json(data.get("publicKey")),
                authentications=_authentications_from_json(data.get("authentication")),
                services=[Service.from_dict(entry) for entry in services_raw or []],
                created=parse_timestamp(created_raw) if created_raw else None,
                updated=parse_timestamp(updated_raw) if updated_raw else None,
                proof=Proof.from_dict(proof_raw) if proof_raw else None,
            )
        except EncodingError:
            raise
        except (KeyError, TypeError, AttributeError, ParseError, pydantic.ValidationError) as exc:
            raise EncodingError(f"Invalid DID document: {exc}") from exc

    @classmethod
    def from_json(cls, raw: str | bytes) -> "DIDDocument":
        """Decode a document from JSON text or bytes.

        Raises
        ------
        EncodingError
            If *raw* is not JSON, not an object, or not a valid document.
        """
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise EncodingError(f"Invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise EncodingError("DID document JSON must be an object.")
        return cls.from_dict(data)


# ------------------------------------------------------------------
# Builder
# ------------------------------------------------------------------


def build_document(
    identifier: str | DID,
    owner_public_key: bytes,
    now: datetime,
    encoding: KeyEncoding = KeyEncoding.HEX,
) -> DIDDocument:
    """Build the initial document for *identifier* owned by *owner_public_key*.

    The document has a single ``Secp256k1VerificationKey2018`` key with id
    ``<identifier>#owner``, controlled by the identifier, and one
    authentication reference to it. Pure function: no I/O.

    Parameters
    ----------
    identifier:
        The DID being described (any fragment is dropped).
    owner_public_key:
        secp256k1 public key of the owner, any point form.
    now:
        Timestamp used for both ``created`` and ``updated``.
    encoding:
        Encoding used for the key material; hex by default.
    """
    did = as_did(identifier).base()
    key_id = str(did.with_fragment(OWNER_FRAGMENT))
    owner_key = PublicKey(
        id=key_id,
        type=SECP256K1_KEY_TYPE,
        controller=str(did),
        material=key_material_from_point(encoding, owner_public_key),
    )
    return DIDDocument(
        id=str(did),
        public_keys=[owner_key],
        authentications=[KeyReference(key_id=key_id)],
        created=now,
        updated=now,
    )


__all__ = [
    "AuthenticationRef",
    "Base58KeyMaterial",
    "Base64KeyMaterial",
    "CONTEXT_V1",
    "DIDDocument",
    "EmbeddedKey",
    "HexKeyMaterial",
    "JwkKeyMaterial",
    "KeyMaterial",
    "KeyReference",
    "MultibaseKeyMaterial",
    "OWNER_FRAGMENT",
    "PemKeyMaterial",
    "Proof",
    "PublicKey",
    "Service",
    "build_document",
    "key_material",
    "key_material_from_point",
]
