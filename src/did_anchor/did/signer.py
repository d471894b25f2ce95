"""Secp256k1Signer — the signing capability passed to issuers and anchors.

The signer owns the private key for its lifetime. Callers hand the signer
object around by reference; the raw key never leaves it, and its ``repr``
shows only the derived address. Closing the signer (or leaving its
``with`` block) drops the key, after which every signing call fails.

Signatures are 65-byte recoverable ECDSA signatures over a 32-byte digest,
laid out as ``r || s || v`` with ``v`` in ``{0, 1}``. Credential proofs
store only ``r || s``; :func:`verify_signature` checks such a 64-byte
signature against a known public key.

Backed by ``eth_account`` (account and transaction signing) and
``eth_keys`` (raw digest signing and verification).
"""
from __future__ import annotations

import logging
from typing import Any

from eth_account import Account
from eth_keys import keys
from eth_keys.constants import SECPK1_N
from eth_keys.exceptions import ValidationError as KeyValidationError

from did_anchor.did.encoding import normalize_point
from did_anchor.errors import EncodingError, ValidationError

logger = logging.getLogger(__name__)

SECP256K1_KEY_TYPE = "Secp256k1VerificationKey2018"

_HALF_N = SECPK1_N // 2


class Secp256k1Signer:
    """Holds a secp256k1 private key and signs on its behalf.

    Parameters
    ----------
    private_key:
        32-byte key, or its hex form with or without a ``0x`` prefix.

    Raises
    ------
    ValidationError
        If *private_key* is not a valid secp256k1 private key. The message
        never contains the key itself.

    Example
    -------
    ::

        with Secp256k1Signer(os.environ["WEB3_PRIVATE_KEY"]) as signer:
            print(signer.address)
            signature = signer.sign_digest(digest)
    """

    def __init__(self, private_key: bytes | str) -> None:
        try:
            self._account: Any = Account.from_key(private_key)
            self._key: keys.PrivateKey | None = keys.PrivateKey(bytes(self._account.key))
        except (ValueError, TypeError, KeyValidationError):
            raise ValidationError("Cannot parse private key.") from None
        self._address: str = self._account.address
        self._public_key = b"\x04" + self._key.public_key.to_bytes()

    @classmethod
    def generate(cls) -> "Secp256k1Signer":
        """Return a signer for a freshly generated random key."""
        return cls(bytes(Account.create().key))

    # ------------------------------------------------------------------
    # Public material
    # ------------------------------------------------------------------

    @property
    def address(self) -> str:
        """EIP-55 checksummed account address derived from the key."""
        return self._address

    @property
    def public_key_bytes(self) -> bytes:
        """65-byte uncompressed public key (``0x04 || X || Y``)."""
        return self._public_key

    @property
    def public_key_hex(self) -> str:
        """``0x``-prefixed hex of :attr:`public_key_bytes`."""
        return "0x" + self._public_key.hex()

    @property
    def closed(self) -> bool:
        return self._key is None

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign_digest(self, digest: bytes) -> bytes:
        """Sign a 32-byte digest, returning ``r || s || v`` (65 bytes)."""
        if len(digest) != 32:
            raise ValidationError(f"Digest must be 32 bytes, got {len(digest)}.")
        return self._require_key().sign_msg_hash(digest).to_bytes()

    def sign_transaction(self, transaction: dict[str, Any]) -> Any:
        """Sign a chain transaction dict, returning eth_account's signed transaction."""
        self._require_key()
        return self._account.sign_transaction(transaction)

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Drop the private key. Signing afterwards raises."""
        self._key = None
        self._account = None

    def __enter__(self) -> "Secp256k1Signer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"Secp256k1Signer(address={self._address!r}, {state})"

    def _require_key(self) -> keys.PrivateKey:
        if self._key is None:
            raise ValidationError("Signer is closed; its private key has been released.")
        return self._key


def verify_signature(public_key: bytes, digest: bytes, signature: bytes) -> bool:
    """Check a 64-byte ``r || s`` signature of *digest* against *public_key*.

    High-``s`` signatures are rejected. No recovery id is needed; the
    caller supplies the candidate key.

    Parameters
    ----------
    public_key:
        secp256k1 point in uncompressed, compressed or raw ``X || Y`` form.
    digest:
        The 32-byte message digest.
    signature:
        64-byte ``r || s`` signature.

    Returns
    -------
    bool
        ``True`` if the signature is valid for the key.
    """
    if len(signature) != 64 or len(digest) != 32:
        return False
    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:], "big")
    if not (0 < r < SECPK1_N and 0 < s <= _HALF_N):
        return False
    try:
        point = normalize_point(public_key)
        key = keys.PublicKey(point[1:])
        return bool(key.verify_msg_hash(digest, keys.Signature(vrs=(0, r, s))))
    except (EncodingError, KeyValidationError) as exc:
        logger.debug("Signature check skipped for unusable key: %s", exc)
        return False


__all__ = ["SECP256K1_KEY_TYPE", "Secp256k1Signer", "verify_signature"]
