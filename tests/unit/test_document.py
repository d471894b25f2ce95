"""Tests for did_anchor.did.document — the DID document model and builder."""
from __future__ import annotations

import json
from datetime import datetime

import pydantic
import pytest

from did_anchor.did.document import (
    CONTEXT_V1,
    DIDDocument,
    EmbeddedKey,
    HexKeyMaterial,
    KeyReference,
    MultibaseKeyMaterial,
    Proof,
    PublicKey,
    Service,
    build_document,
    key_material_from_point,
)
from did_anchor.did.encoding import KeyEncoding, encode_public_key
from did_anchor.did.signer import SECP256K1_KEY_TYPE, Secp256k1Signer
from did_anchor.errors import EncodingError


@pytest.fixture()
def document(signer: Secp256k1Signer, fixed_now: datetime) -> DIDDocument:
    return build_document("did:go:abc123", signer.public_key_bytes, fixed_now)


def _key_dict(signer: Secp256k1Signer, key_id: str = "did:go:abc123#owner") -> dict:
    return {
        "id": key_id,
        "type": SECP256K1_KEY_TYPE,
        "controller": "did:go:abc123",
        "publicKeyHex": signer.public_key_hex,
    }


# ---------------------------------------------------------------------------
# build_document
# ---------------------------------------------------------------------------


class TestBuildDocument:
    def test_single_owner_key(self, document: DIDDocument, signer: Secp256k1Signer) -> None:
        assert len(document.public_keys) == 1
        key = document.public_keys[0]
        assert key.id == "did:go:abc123#owner"
        assert key.type == SECP256K1_KEY_TYPE
        assert key.controller == "did:go:abc123"
        assert key.material == HexKeyMaterial(value=signer.public_key_hex)

    def test_authentication_references_owner_key(self, document: DIDDocument) -> None:
        assert document.authentications == [KeyReference(key_id="did:go:abc123#owner")]
        assert document.authentication_keys() == document.public_keys

    def test_timestamps(self, document: DIDDocument, fixed_now: datetime) -> None:
        assert document.created == fixed_now
        assert document.updated == fixed_now

    def test_context_and_id(self, document: DIDDocument) -> None:
        assert document.context == CONTEXT_V1
        assert document.id == "did:go:abc123"
        assert str(document.did) == "did:go:abc123"

    def test_fragment_dropped_from_identifier(
        self, signer: Secp256k1Signer, fixed_now: datetime
    ) -> None:
        document = build_document("did:go:abc123#other", signer.public_key_bytes, fixed_now)
        assert document.id == "did:go:abc123"

    def test_other_encoding(self, signer: Secp256k1Signer, fixed_now: datetime) -> None:
        document = build_document(
            "did:go:abc123", signer.public_key_bytes, fixed_now, encoding=KeyEncoding.MULTIBASE
        )
        material = document.public_keys[0].material
        assert isinstance(material, MultibaseKeyMaterial)
        assert material.to_point() == signer.public_key_bytes

    def test_documents_are_immutable(self, document: DIDDocument) -> None:
        with pytest.raises(pydantic.ValidationError):
            document.id = "did:go:other"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


class TestDocumentJSON:
    def test_json_shape(self, document: DIDDocument, signer: Secp256k1Signer) -> None:
        data = json.loads(document.to_json())
        assert data == {
            "@context": "https://w3id.org/did/v1",
            "id": "did:go:abc123",
            "publicKey": [_key_dict(signer)],
            "authentication": ["did:go:abc123#owner"],
            "service": [],
            "created": "2019-05-01T12:00:00.25Z",
            "updated": "2019-05-01T12:00:00.25Z",
        }

    def test_json_is_tab_indented(self, document: DIDDocument) -> None:
        assert document.to_json().startswith('{\n\t"@context"')

    def test_round_trip_is_field_for_field(self, document: DIDDocument) -> None:
        decoded = DIDDocument.from_json(document.to_json())
        assert decoded == document
        assert json.loads(decoded.to_json()) == json.loads(document.to_json())

    def test_decodes_bytes(self, document: DIDDocument) -> None:
        assert DIDDocument.from_json(document.to_json().encode("utf-8")) == document

    def test_optional_timestamps_omitted(self, signer: Secp256k1Signer) -> None:
        document = DIDDocument(
            id="did:go:abc123",
            public_keys=[PublicKey.from_dict(_key_dict(signer))],
        )
        data = document.to_dict()
        assert "created" not in data
        assert "updated" not in data
        assert "proof" not in data

    def test_services_round_trip(self) -> None:
        data = {
            "@context": CONTEXT_V1,
            "id": "did:go:abc123",
            "service": [
                {"id": "did:go:abc123#hub", "type": "Hub", "serviceEndpoint": "https://hub.example"}
            ],
        }
        document = DIDDocument.from_dict(data)
        assert document.services == [
            Service(id="did:go:abc123#hub", type="Hub", service_endpoint="https://hub.example")
        ]
        assert document.to_dict()["service"] == data["service"]

    def test_accepts_capitalized_services_key(self) -> None:
        data = {
            "id": "did:go:abc123",
            "Services": [{"id": "did:go:abc123#hub", "type": "Hub", "serviceEndpoint": "x"}],
        }
        assert DIDDocument.from_dict(data).services[0].id == "did:go:abc123#hub"

    def test_document_proof(self) -> None:
        data = {
            "id": "did:go:abc123",
            "proof": {
                "type": SECP256K1_KEY_TYPE,
                "created": "2019-05-01T12:00:00Z",
                "creator": "did:go:abc123#owner",
                "signatureValue": "abcd",
            },
        }
        document = DIDDocument.from_dict(data)
        assert document.proof == Proof(
            type=SECP256K1_KEY_TYPE,
            created=datetime.fromisoformat("2019-05-01T12:00:00+00:00"),
            creator="did:go:abc123#owner",
            signature_value="abcd",
        )
        assert document.to_dict()["proof"] == data["proof"]

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2]",
            '{"publicKey": []}',
            '{"id": "not-a-did"}',
            '{"id": "did:go:abc123", "@context": "https://example.com/other"}',
            '{"id": "did:go:abc123", "created": "yesterday"}',
            '{"id": "did:go:abc123", "authentication": [42]}',
        ],
    )
    def test_malformed_documents_raise_encoding_error(self, raw: str) -> None:
        with pytest.raises(EncodingError):
            DIDDocument.from_json(raw)


# ---------------------------------------------------------------------------
# PublicKey
# ---------------------------------------------------------------------------


class TestPublicKey:
    def test_requires_exactly_one_material_field(self, signer: Secp256k1Signer) -> None:
        data = _key_dict(signer)
        data["publicKeyBase58"] = "abc"
        with pytest.raises(EncodingError, match="exactly one"):
            PublicKey.from_dict(data)

    def test_requires_some_material(self, signer: Secp256k1Signer) -> None:
        data = _key_dict(signer)
        del data["publicKeyHex"]
        with pytest.raises(EncodingError, match="exactly one"):
            PublicKey.from_dict(data)

    def test_empty_alternative_fields_tolerated(self, signer: Secp256k1Signer) -> None:
        data = _key_dict(signer)
        data["publicKeyPem"] = ""
        assert PublicKey.from_dict(data).material.key_encoding is KeyEncoding.HEX

    def test_jwk_material(self, signer: Secp256k1Signer) -> None:
        material = key_material_from_point(KeyEncoding.JWK, signer.public_key_bytes)
        key = PublicKey(
            id="did:go:abc123#jwk",
            type=SECP256K1_KEY_TYPE,
            controller="did:go:abc123",
            material=material,
        )
        decoded = PublicKey.from_dict(key.to_dict())
        assert decoded == key
        assert decoded.material.to_point() == signer.public_key_bytes

    def test_jwk_material_as_string(self, signer: Secp256k1Signer) -> None:
        jwk = json.dumps(encode_public_key(KeyEncoding.JWK, signer.public_key_bytes))
        data = {
            "id": "did:go:abc123#jwk",
            "type": SECP256K1_KEY_TYPE,
            "controller": "did:go:abc123",
            "publicKeyJwk": jwk,
        }
        key = PublicKey.from_dict(data)
        assert key.material.to_point() == signer.public_key_bytes
        assert key.to_dict() == data

    def test_non_did_controller_rejected(self, signer: Secp256k1Signer) -> None:
        data = _key_dict(signer)
        data["controller"] = "https://example.com/owner"
        with pytest.raises(pydantic.ValidationError):
            PublicKey.from_dict(data)


class TestUnusableKeysInDocuments:
    def _document(self, signer: Secp256k1Signer, extra: dict) -> DIDDocument:
        return DIDDocument.from_dict(
            {
                "id": "did:go:abc123",
                "publicKey": [extra, _key_dict(signer)],
                "authentication": [extra["id"], "did:go:abc123#owner"],
            }
        )

    @pytest.mark.parametrize(
        "extra",
        [
            {
                "id": "did:go:abc123#rsa",
                "type": "RsaVerificationKey2018",
                "controller": "https://example.com/owner",
                "publicKeyPem": "-----BEGIN PUBLIC KEY-----",
            },
            {
                "id": "did:go:abc123#double",
                "type": SECP256K1_KEY_TYPE,
                "controller": "did:go:abc123",
                "publicKeyHex": "0x04",
                "publicKeyBase58": "abc",
            },
            {"id": "did:go:abc123#bare", "type": SECP256K1_KEY_TYPE},
        ],
    )
    def test_unusable_keys_are_skipped(self, signer: Secp256k1Signer, extra: dict) -> None:
        document = self._document(signer, extra)
        assert [key.id for key in document.public_keys] == ["did:go:abc123#owner"]
        assert [key.id for key in document.authentication_keys()] == ["did:go:abc123#owner"]

    def test_other_suite_with_jwk_string_is_kept(self, signer: Secp256k1Signer) -> None:
        extra = {
            "id": "did:go:abc123#ed",
            "type": "JsonWebKey2020",
            "controller": "did:go:abc123",
            "publicKeyJwk": '{"kty":"OKP"}',
        }
        document = self._document(signer, extra)
        assert document.find_public_key("did:go:abc123#ed").to_dict() == extra
        assert document.keys_of_type(SECP256K1_KEY_TYPE) == [document.public_keys[1]]

    def test_unusable_embedded_authentication_key_is_skipped(
        self, signer: Secp256k1Signer
    ) -> None:
        document = DIDDocument.from_dict(
            {
                "id": "did:go:abc123",
                "authentication": [
                    {"id": "did:go:abc123#broken", "type": SECP256K1_KEY_TYPE},
                    _key_dict(signer, "did:go:abc123#auth"),
                ],
            }
        )
        assert [ref.key_id for ref in document.authentications] == ["did:go:abc123#auth"]


# ---------------------------------------------------------------------------
# Authentication references
# ---------------------------------------------------------------------------


class TestAuthentication:
    def test_embedded_key_resolves_to_itself(self, signer: Secp256k1Signer) -> None:
        data = {"id": "did:go:abc123", "authentication": [_key_dict(signer, "did:go:abc123#auth")]}
        document = DIDDocument.from_dict(data)
        entry = document.authentications[0]
        assert isinstance(entry, EmbeddedKey)
        assert entry.key_id == "did:go:abc123#auth"
        assert entry.resolve(document) == entry.key
        assert document.to_dict()["authentication"] == data["authentication"]

    def test_dangling_reference_resolves_to_none(self) -> None:
        document = DIDDocument.from_dict(
            {"id": "did:go:abc123", "authentication": ["did:go:abc123#missing"]}
        )
        assert document.authentications[0].resolve(document) is None
        assert document.authentication_keys() == []

    def test_keys_of_type(self, document: DIDDocument) -> None:
        assert document.keys_of_type(SECP256K1_KEY_TYPE) == document.public_keys
        assert document.keys_of_type("Ed25519VerificationKey2018") == []

    def test_find_public_key(self, document: DIDDocument) -> None:
        assert document.find_public_key("did:go:abc123#owner") is document.public_keys[0]
        assert document.find_public_key("did:go:abc123#nope") is None
