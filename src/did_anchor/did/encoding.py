"""Public-key material encodings used in DID documents.

A DID document public key carries its material in exactly one of six
JSON properties. This module converts between each textual encoding and
the 65-byte uncompressed secp256k1 point (``0x04 || X || Y``) that the
signature code works with.

=========== ====================== =========================================
Encoding    JSON property          Text form
=========== ====================== =========================================
PEM         ``publicKeyPem``       SubjectPublicKeyInfo PEM block
JWK         ``publicKeyJwk``       JWK object or its JSON string
Hex         ``publicKeyHex``       hex, optional ``0x`` prefix
Base64      ``publicKeyBase64``    standard base64 with padding
Base58      ``publicKeyBase58``    base58btc
Multibase   ``publicKeyMultibase`` multibase prefix + payload
=========== ====================== =========================================

Point parsing, compression and PEM/JWK handling use the ``cryptography``
package.
"""
from __future__ import annotations

import base64
import binascii
import json
from enum import Enum
from typing import Any

from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
    load_pem_public_key,
)

from did_anchor.errors import EncodingError


class KeyEncoding(str, Enum):
    """The six ways a public key can be carried in a DID document."""

    PEM = "pem"
    JWK = "jwk"
    HEX = "hex"
    BASE64 = "base64"
    BASE58 = "base58"
    MULTIBASE = "multibase"

    @property
    def json_field(self) -> str:
        """Return the DID document JSON property for this encoding."""
        return _JSON_FIELDS[self]

    @classmethod
    def from_json_field(cls, name: str) -> "KeyEncoding":
        """Return the encoding stored under JSON property *name*."""
        for encoding, field_name in _JSON_FIELDS.items():
            if field_name == name:
                return encoding
        raise EncodingError(f"Unknown public key property {name!r}.")


_JSON_FIELDS: dict[KeyEncoding, str] = {
    KeyEncoding.PEM: "publicKeyPem",
    KeyEncoding.JWK: "publicKeyJwk",
    KeyEncoding.HEX: "publicKeyHex",
    KeyEncoding.BASE64: "publicKeyBase64",
    KeyEncoding.BASE58: "publicKeyBase58",
    KeyEncoding.MULTIBASE: "publicKeyMultibase",
}

PUBLIC_KEY_FIELDS: tuple[str, ...] = tuple(_JSON_FIELDS.values())

# Multicodec varint prefix for a compressed secp256k1 public key.
_SECP256K1_MULTICODEC_PREFIX: bytes = b"\xe7\x01"

# ---------------------------------------------------------------------------
# Base58btc codec
# ---------------------------------------------------------------------------

_BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def base58btc_encode(data: bytes) -> str:
    """Encode *data* as a base58btc string."""
    n = int.from_bytes(data, "big")
    chars: list[str] = []
    while n > 0:
        n, remainder = divmod(n, 58)
        chars.append(_BASE58_ALPHABET[remainder])
    # Leading zero bytes become '1' characters
    for byte in data:
        if byte != 0:
            break
        chars.append("1")
    return "".join(reversed(chars))


def base58btc_decode(encoded: str) -> bytes:
    """Decode a base58btc string.

    Raises
    ------
    EncodingError
        If *encoded* contains a character outside the base58btc alphabet.
    """
    n = 0
    for char in encoded:
        index = _BASE58_ALPHABET.find(char)
        if index < 0:
            raise EncodingError(f"Invalid base58btc character {char!r}.")
        n = n * 58 + index
    body = n.to_bytes((n.bit_length() + 7) // 8, "big") if n > 0 else b""
    pad_size = len(encoded) - len(encoded.lstrip("1"))
    return b"\x00" * pad_size + body


# ---------------------------------------------------------------------------
# Point helpers
# ---------------------------------------------------------------------------


def _load_point(data: bytes) -> ec.EllipticCurvePublicKey:
    if len(data) == 64:
        data = b"\x04" + data
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), data)
    except ValueError as exc:
        raise EncodingError(f"Not a valid secp256k1 public key: {exc}") from exc


def normalize_point(data: bytes) -> bytes:
    """Return *data* as a 65-byte uncompressed secp256k1 point.

    Accepts uncompressed (65 bytes), compressed (33 bytes) or raw
    ``X || Y`` (64 bytes) input.

    Raises
    ------
    EncodingError
        If *data* is not a point on the secp256k1 curve.
    """
    return _load_point(data).public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)


def compress_point(data: bytes) -> bytes:
    """Return the 33-byte compressed form of a secp256k1 point."""
    return _load_point(data).public_bytes(Encoding.X962, PublicFormat.CompressedPoint)


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------


def encode_public_key(encoding: KeyEncoding, point: bytes) -> Any:
    """Encode a secp256k1 point in the requested *encoding*.

    Returns a string for every encoding except JWK, which is a dict.
    """
    uncompressed = normalize_point(point)
    if encoding is KeyEncoding.HEX:
        return "0x" + uncompressed.hex()
    if encoding is KeyEncoding.BASE64:
        return base64.b64encode(uncompressed).decode("ascii")
    if encoding is KeyEncoding.BASE58:
        return base58btc_encode(uncompressed)
    if encoding is KeyEncoding.MULTIBASE:
        return "z" + base58btc_encode(_SECP256K1_MULTICODEC_PREFIX + compress_point(uncompressed))
    if encoding is KeyEncoding.PEM:
        key = _load_point(uncompressed)
        return key.public_bytes(Encoding.PEM, PublicFormat.SubjectPublicKeyInfo).decode("ascii")
    if encoding is KeyEncoding.JWK:
        return {
            "kty": "EC",
            "crv": "secp256k1",
            "x": _b64url(uncompressed[1:33]),
            "y": _b64url(uncompressed[33:]),
        }
    raise EncodingError(f"Unsupported key encoding {encoding!r}.")


# ---------------------------------------------------------------------------
# Decode
# ---------------------------------------------------------------------------


def _decode_multibase(value: str) -> bytes:
    if not value:
        raise EncodingError("Empty multibase value.")
    prefix, payload = value[0], value[1:]
    if prefix == "z":
        data = base58btc_decode(payload)
    elif prefix == "f":
        data = bytes.fromhex(payload)
    elif prefix == "m":
        data = base64.b64decode(payload + "=" * (-len(payload) % 4))
    elif prefix == "u":
        data = _b64url_decode(payload)
    else:
        raise EncodingError(f"Unsupported multibase prefix {prefix!r}.")
    if data.startswith(_SECP256K1_MULTICODEC_PREFIX):
        data = data[len(_SECP256K1_MULTICODEC_PREFIX):]
    return data


def _decode_pem(value: str) -> bytes:
    key = load_pem_public_key(value.encode("ascii"))
    if not isinstance(key, ec.EllipticCurvePublicKey) or key.curve.name != "secp256k1":
        raise EncodingError("PEM public key is not a secp256k1 key.")
    return key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)


def _decode_jwk(value: Any) -> bytes:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise EncodingError(f"publicKeyJwk is not a JSON object: {exc}") from exc
    if not isinstance(value, dict):
        raise EncodingError("publicKeyJwk must be a JSON object.")
    if value.get("kty") != "EC" or value.get("crv") != "secp256k1":
        raise EncodingError("publicKeyJwk must describe an EC secp256k1 key.")
    try:
        x = int.from_bytes(_b64url_decode(value["x"]), "big")
        y = int.from_bytes(_b64url_decode(value["y"]), "big")
        key = ec.EllipticCurvePublicNumbers(x, y, ec.SECP256K1()).public_key()
    except KeyError as exc:
        raise EncodingError(f"publicKeyJwk missing coordinate {exc}.") from exc
    return key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)


def decode_public_key(encoding: KeyEncoding, value: Any) -> bytes:
    """Decode textual key material to a 65-byte uncompressed point.

    Raises
    ------
    EncodingError
        If the material is malformed or is not a secp256k1 point.
    """
    try:
        if encoding is KeyEncoding.JWK:
            return _decode_jwk(value)
        if not isinstance(value, str):
            raise EncodingError(f"{encoding.json_field} must be a string.")
        if encoding is KeyEncoding.PEM:
            return _decode_pem(value)
        if encoding is KeyEncoding.HEX:
            raw = bytes.fromhex(value[2:] if value.startswith(("0x", "0X")) else value)
        elif encoding is KeyEncoding.BASE64:
            raw = base64.b64decode(value, validate=True)
        elif encoding is KeyEncoding.BASE58:
            raw = base58btc_decode(value)
        else:
            raw = _decode_multibase(value)
    except (binascii.Error, ValueError, TypeError) as exc:
        if isinstance(exc, EncodingError):
            raise
        raise EncodingError(f"Malformed {encoding.json_field}: {exc}") from exc
    return normalize_point(raw)


__all__ = [
    "KeyEncoding",
    "PUBLIC_KEY_FIELDS",
    "base58btc_decode",
    "base58btc_encode",
    "compress_point",
    "decode_public_key",
    "encode_public_key",
    "normalize_point",
]
