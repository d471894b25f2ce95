"""DIDResolver — turns a DID into its anchored DID document.

Resolution is the only way a document re-enters the system after
anchoring: look up the content hash in the registry, fetch the bytes from
the content store, decode the JSON. Every call returns a freshly decoded
document; nothing is cached.
"""
from __future__ import annotations

import logging

from did_anchor.anchor.registry import RegistryAnchor
from did_anchor.cancellation import CancellationToken
from did_anchor.did.document import DIDDocument
from did_anchor.did.identifier import DID, as_did
from did_anchor.errors import DocumentNotFoundError
from did_anchor.storage.content import ContentStore

logger = logging.getLogger(__name__)


class DIDResolver:
    """Resolves DIDs through a registry anchor and a content store.

    Parameters
    ----------
    anchor:
        Registry mapping DIDs to content hashes.
    store:
        Content-addressed store holding the document bytes.
    """

    def __init__(self, anchor: RegistryAnchor, store: ContentStore) -> None:
        self._anchor = anchor
        self._store = store

    def resolve_hash(self, identifier: str | DID, cancel: CancellationToken | None = None) -> str:
        """Return the anchored content hash for *identifier*, or ``""`` if unset.

        Raises
        ------
        ParseError
            If *identifier* is not a valid DID.
        """
        did = as_did(identifier).base()
        return self._anchor.resolve_hash(did, cancel=cancel)

    def resolve(self, identifier: str | DID, cancel: CancellationToken | None = None) -> DIDDocument:
        """Resolve *identifier* to its DID document.

        Raises
        ------
        ParseError
            If *identifier* is not a valid DID.
        DocumentNotFoundError
            If the registry has no hash for the DID.
        ContentNotFoundError
            If the content store does not have the anchored hash.
        EncodingError
            If the stored bytes are not a valid DID document.
        NetworkError, OperationTimeoutError, OperationCancelledError
            On transport failure, deadline expiry or cancellation.
        """
        did = as_did(identifier).base()
        content_hash = self._anchor.resolve_hash(did, cancel=cancel)
        if not content_hash:
            raise DocumentNotFoundError(str(did))
        logger.debug("Resolved %s to content hash %s", did, content_hash)
        data = self._store.fetch(content_hash, cancel=cancel)
        return DIDDocument.from_json(data)


__all__ = ["DIDResolver"]
