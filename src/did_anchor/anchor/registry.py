"""Registry anchors — the on-chain mapping from DID to document content hash.

The registry contract maps a 32-byte key (the DID's method-specific id,
zero-padded) to a content hash and records the account that registered
it. The contract decides ownership; this module adds no client-side
locking, so concurrent registrations for one id race on the ledger and the
last confirmed write wins.

:class:`RegistryAnchor` is the storage contract.
:class:`Web3RegistryAnchor` talks to a deployed contract through web3.py.
:class:`InMemoryRegistryAnchor` mirrors the contract's behaviour in memory
for tests and offline use.
"""
from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from eth_utils import keccak, to_checksum_address
from web3 import Web3
from web3.exceptions import TransactionNotFound, Web3Exception

from did_anchor.anchor.abi import DID_REGISTRY_ABI
from did_anchor.cancellation import CancellationToken, ensure_token
from did_anchor.did.identifier import DID
from did_anchor.did.signer import Secp256k1Signer
from did_anchor.errors import (
    NetworkError,
    OperationTimeoutError,
    TransactionFailedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

DEFAULT_CONFIRMATION_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 0.5


@dataclass(frozen=True)
class Confirmation:
    """Receipt summary of a confirmed registration.

    Parameters
    ----------
    transaction_hash:
        ``0x``-prefixed transaction hash.
    content_hash:
        The content hash that was registered.
    block_number:
        Block containing the transaction, when known.
    """

    transaction_hash: str
    content_hash: str
    block_number: int | None = None


class RegistryAnchor(ABC):
    """Abstract base class for DID registry backends."""

    @abstractmethod
    def register(
        self,
        did: DID,
        content_hash: str,
        signer: Secp256k1Signer,
        cancel: CancellationToken | None = None,
    ) -> Confirmation:
        """Anchor *content_hash* under *did* and wait for confirmation.

        Parameters
        ----------
        did:
            A ``did:go`` identifier whose id fits in 32 bytes.
        content_hash:
            Content-store hash of the DID document.
        signer:
            Account that sends the transaction and becomes the owner.
        cancel:
            Optional cancellation token.

        Returns
        -------
        Confirmation

        Raises
        ------
        ValidationError
            If the DID cannot be anchored; raised before any network call.
        NetworkError
            On transport failure.
        TransactionFailedError
            If the transaction is mined but reverted.
        OperationTimeoutError
            If no receipt arrives within the bounded confirmation wait.
        OperationCancelledError
            If *cancel* fires.
        """

    @abstractmethod
    def owner(self, did: DID, cancel: CancellationToken | None = None) -> str:
        """Return the address controlling *did* (the zero address if none)."""

    @abstractmethod
    def resolve_hash(self, did: DID, cancel: CancellationToken | None = None) -> str:
        """Return the content hash anchored for *did*, or ``""`` if never anchored."""

    @staticmethod
    def registration_key(did: DID, content_hash: str) -> bytes:
        """Validate a registration request and return its 32-byte key."""
        did.require_anchorable()
        if not content_hash:
            raise ValidationError("Content hash required for registration.")
        return did.registry_key()


# ------------------------------------------------------------------
# web3.py implementation
# ------------------------------------------------------------------


class Web3RegistryAnchor(RegistryAnchor):
    """Registry anchor backed by a deployed DID registry contract.

    Parameters
    ----------
    web3:
        Connected :class:`web3.Web3` instance.
    registry_address:
        Address of the registry contract.
    confirmation_timeout:
        Seconds to poll for a receipt before raising
        :class:`~did_anchor.errors.OperationTimeoutError`.
    poll_interval:
        Seconds between receipt polls.

    Raises
    ------
    ValidationError
        If *registry_address* is not a valid address.
    """

    def __init__(
        self,
        web3: Web3,
        registry_address: str,
        confirmation_timeout: float = DEFAULT_CONFIRMATION_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        if not registry_address:
            raise ValidationError("Registry contract address required.")
        try:
            address = to_checksum_address(registry_address)
        except ValueError as exc:
            raise ValidationError(f"Invalid registry address {registry_address!r}.") from exc
        self._web3 = web3
        self._contract = web3.eth.contract(address=address, abi=DID_REGISTRY_ABI)
        self._confirmation_timeout = confirmation_timeout
        self._poll_interval = poll_interval

    @classmethod
    def from_rpc(
        cls,
        rpc_url: str,
        registry_address: str,
        request_timeout: float = 30.0,
        **kwargs: Any,
    ) -> "Web3RegistryAnchor":
        """Connect to *rpc_url* over HTTP and bind the registry contract."""
        if not rpc_url:
            raise ValidationError("RPC URL required.")
        provider = Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": request_timeout})
        return cls(Web3(provider), registry_address, **kwargs)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def register(
        self,
        did: DID,
        content_hash: str,
        signer: Secp256k1Signer,
        cancel: CancellationToken | None = None,
    ) -> Confirmation:
        key = self.registration_key(did, content_hash)
        cancel = ensure_token(cancel)
        cancel.raise_if_cancelled()

        try:
            nonce = self._web3.eth.get_transaction_count(signer.address, "pending")
            transaction = self._contract.functions.register(key, content_hash).build_transaction(
                {"from": signer.address, "nonce": nonce}
            )
            cancel.raise_if_cancelled()
            signed = signer.sign_transaction(transaction)
            tx_hash = self._web3.eth.send_raw_transaction(signed.raw_transaction)
        except (Web3Exception, OSError) as exc:
            raise NetworkError(f"Cannot register DID identifier {did}: {exc}") from exc

        tx_hex = Web3.to_hex(tx_hash)
        logger.info("Sent registration of %s -> %s in transaction %s", did, content_hash, tx_hex)

        receipt = self._wait_for_receipt(tx_hash, cancel)
        if receipt.get("status") == 0:
            raise TransactionFailedError(tx_hex)
        logger.info("Registration of %s confirmed in block %s", did, receipt.get("blockNumber"))
        return Confirmation(
            transaction_hash=tx_hex,
            content_hash=content_hash,
            block_number=receipt.get("blockNumber"),
        )

    def _wait_for_receipt(self, tx_hash: Any, cancel: CancellationToken) -> Any:
        deadline = time.monotonic() + self._confirmation_timeout
        while True:
            cancel.raise_if_cancelled()
            try:
                return self._web3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                pass
            except (Web3Exception, OSError) as exc:
                raise NetworkError(f"Cannot get the receipt: {exc}") from exc
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise OperationTimeoutError(
                    f"Transaction {Web3.to_hex(tx_hash)} not confirmed within "
                    f"{self._confirmation_timeout:g}s."
                )
            cancel.wait(min(self._poll_interval, remaining))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def owner(self, did: DID, cancel: CancellationToken | None = None) -> str:
        address = self._call("owner", did, cancel)
        return to_checksum_address(address)

    def resolve_hash(self, did: DID, cancel: CancellationToken | None = None) -> str:
        return self._call("hash", did, cancel) or ""

    def _call(self, function_name: str, did: DID, cancel: CancellationToken | None) -> Any:
        cancel = ensure_token(cancel)
        cancel.raise_if_cancelled()
        function = self._contract.get_function_by_name(function_name)
        try:
            result = function(did.registry_key()).call()
        except (Web3Exception, OSError) as exc:
            raise NetworkError(f"Cannot call the contract: {exc}") from exc
        cancel.raise_if_cancelled()
        logger.debug("registry.%s(%s) -> %r", function_name, did, result)
        return result


# ------------------------------------------------------------------
# In-memory implementation
# ------------------------------------------------------------------


class InMemoryRegistryAnchor(RegistryAnchor):
    """Registry anchor held in process memory.

    Applies the contract's rule that only the current owner may overwrite
    an entry; other writers get a :class:`TransactionFailedError`.
    Confirmation is immediate. Safe for use from several threads.
    """

    def __init__(self) -> None:
        self._entries: dict[bytes, tuple[str, str]] = {}
        self._block_number = 0
        self._lock = threading.Lock()

    def register(
        self,
        did: DID,
        content_hash: str,
        signer: Secp256k1Signer,
        cancel: CancellationToken | None = None,
    ) -> Confirmation:
        key = self.registration_key(did, content_hash)
        cancel = ensure_token(cancel)
        cancel.raise_if_cancelled()

        with self._lock:
            self._block_number += 1
            block_number = self._block_number
            tx_hash = "0x" + keccak(
                key + content_hash.encode("utf-8") + block_number.to_bytes(8, "big")
            ).hex()
            current = self._entries.get(key)
            if current is not None and current[0] != signer.address:
                raise TransactionFailedError(tx_hash, f"{did} is owned by {current[0]}")
            self._entries[key] = (signer.address, content_hash)

        logger.info("Registered %s -> %s in block %d", did, content_hash, block_number)
        return Confirmation(
            transaction_hash=tx_hash,
            content_hash=content_hash,
            block_number=block_number,
        )

    def owner(self, did: DID, cancel: CancellationToken | None = None) -> str:
        ensure_token(cancel).raise_if_cancelled()
        with self._lock:
            entry = self._entries.get(did.registry_key())
        return entry[0] if entry else ZERO_ADDRESS

    def resolve_hash(self, did: DID, cancel: CancellationToken | None = None) -> str:
        ensure_token(cancel).raise_if_cancelled()
        with self._lock:
            entry = self._entries.get(did.registry_key())
        return entry[1] if entry else ""

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = [
    "Confirmation",
    "InMemoryRegistryAnchor",
    "RegistryAnchor",
    "Web3RegistryAnchor",
    "ZERO_ADDRESS",
]
