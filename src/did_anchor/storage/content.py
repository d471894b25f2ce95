"""Content-addressed storage for DID documents.

Documents are uploaded once and addressed by the hash the store returns.
Uploading identical bytes twice yields the identical hash, so re-anchoring
an unchanged document is harmless.

:class:`ContentStore` is the storage contract.
:class:`IPFSContentStore` talks to an IPFS HTTP API (``/api/v0/add`` and
``/api/v0/cat``).
:class:`InMemoryContentStore` keeps bytes in a dict keyed by a CIDv0-style
hash, for tests and offline use.
"""
from __future__ import annotations

import hashlib
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any

import requests

from did_anchor.cancellation import CancellationToken, ensure_token
from did_anchor.did.encoding import base58btc_encode
from did_anchor.errors import (
    ContentNotFoundError,
    EncodingError,
    NetworkError,
    OperationTimeoutError,
)

logger = logging.getLogger(__name__)

DOCUMENT_FILENAME = "did.json"

# multihash header: sha2-256, 32-byte digest
_SHA256_MULTIHASH_PREFIX = b"\x12\x20"

_NOT_FOUND_MARKERS = ("not found", "invalid path", "invalid cid", "no link named")


def content_hash_v0(data: bytes) -> str:
    """Return the base58btc sha2-256 multihash of *data* (``Qm...``)."""
    return base58btc_encode(_SHA256_MULTIHASH_PREFIX + hashlib.sha256(data).digest())


class ContentStore(ABC):
    """Abstract base class for content-addressed document stores."""

    @abstractmethod
    def upload(
        self,
        data: bytes,
        filename: str = DOCUMENT_FILENAME,
        cancel: CancellationToken | None = None,
    ) -> str:
        """Store *data* and return its content hash.

        Raises
        ------
        NetworkError
            On transport failure or an unusable response.
        OperationTimeoutError, OperationCancelledError
            On deadline expiry or cancellation.
        """

    @abstractmethod
    def fetch(self, content_hash: str, cancel: CancellationToken | None = None) -> bytes:
        """Return the bytes stored under *content_hash*.

        Raises
        ------
        ContentNotFoundError
            If the store does not know *content_hash*.
        NetworkError
            On transport failure.
        OperationTimeoutError, OperationCancelledError
            On deadline expiry or cancellation.
        """


# ------------------------------------------------------------------
# IPFS HTTP API
# ------------------------------------------------------------------


class IPFSContentStore(ContentStore):
    """Content store backed by an IPFS node's HTTP API.

    Parameters
    ----------
    api_url:
        Base URL of the API, e.g. ``"https://ipfs.infura.io:5001"``.
    timeout:
        Upper bound in seconds for a single request. A cancellation token
        with an earlier deadline shortens it.
    session:
        :class:`requests.Session` to send requests through. A new one is
        created when omitted.
    """

    def __init__(
        self,
        api_url: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def api_url(self) -> str:
        return self._api_url

    def upload(
        self,
        data: bytes,
        filename: str = DOCUMENT_FILENAME,
        cancel: CancellationToken | None = None,
    ) -> str:
        response = self._post(
            "add",
            cancel,
            operation="upload",
            params={"pin": "true"},
            files={"file": (filename, data)},
        )

        # /add streams one JSON object per line; the last names the file.
        lines = [line for line in response.text.splitlines() if line.strip()]
        if not lines:
            raise NetworkError("Empty response from IPFS add.")
        try:
            content_hash = json.loads(lines[-1])["Hash"]
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            raise NetworkError(f"Unexpected response from IPFS add: {lines[-1]!r}") from exc
        logger.info("Uploaded %s (%d bytes) as %s", filename, len(data), content_hash)
        return content_hash

    def fetch(self, content_hash: str, cancel: CancellationToken | None = None) -> bytes:
        response = self._post(
            "cat",
            cancel,
            operation="fetch",
            content_hash=content_hash,
            params={"arg": content_hash},
        )
        data = response.content
        logger.debug("Fetched %s (%d bytes)", content_hash, len(data))
        return data

    def _post(
        self,
        command: str,
        cancel: CancellationToken | None,
        operation: str,
        content_hash: str | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        cancel = ensure_token(cancel)
        cancel.raise_if_cancelled()
        timeout = cancel.remaining(self._timeout)
        try:
            response = self._session.post(
                f"{self._api_url}/api/v0/{command}", timeout=timeout, **kwargs
            )
        except requests.Timeout as exc:
            raise OperationTimeoutError(f"IPFS {operation} timed out.") from exc
        except requests.RequestException as exc:
            raise NetworkError(f"IPFS {operation} failed: {exc}") from exc

        if not response.ok:
            message = _error_message(response)
            if content_hash is not None and _is_not_found(response.status_code, message):
                raise ContentNotFoundError(content_hash)
            raise NetworkError(
                f"IPFS {operation} failed with HTTP {response.status_code}: {message}"
            )
        cancel.raise_if_cancelled()
        return response


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or (response.reason or "")
    if isinstance(payload, dict) and "Message" in payload:
        return str(payload["Message"])
    return str(payload)


def _is_not_found(status: int, message: str) -> bool:
    if status == 404:
        return True
    lowered = message.lower()
    return status >= 500 and any(marker in lowered for marker in _NOT_FOUND_MARKERS)


# ------------------------------------------------------------------
# In-memory implementation
# ------------------------------------------------------------------


class InMemoryContentStore(ContentStore):
    """Content store held in process memory. Safe for use from several threads."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def upload(
        self,
        data: bytes,
        filename: str = DOCUMENT_FILENAME,
        cancel: CancellationToken | None = None,
    ) -> str:
        ensure_token(cancel).raise_if_cancelled()
        if not isinstance(data, (bytes, bytearray)):
            raise EncodingError("Content must be bytes.")
        content_hash = content_hash_v0(bytes(data))
        with self._lock:
            self._blobs[content_hash] = bytes(data)
        logger.debug("Stored %s (%d bytes) as %s", filename, len(data), content_hash)
        return content_hash

    def fetch(self, content_hash: str, cancel: CancellationToken | None = None) -> bytes:
        ensure_token(cancel).raise_if_cancelled()
        with self._lock:
            data = self._blobs.get(content_hash)
        if data is None:
            raise ContentNotFoundError(content_hash)
        return data

    def __contains__(self, content_hash: object) -> bool:
        with self._lock:
            return content_hash in self._blobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)


__all__ = [
    "ContentStore",
    "DOCUMENT_FILENAME",
    "IPFSContentStore",
    "InMemoryContentStore",
    "content_hash_v0",
]
