"""did_anchor.storage — content-addressed storage for DID documents."""
from __future__ import annotations

from did_anchor.storage.content import (
    DOCUMENT_FILENAME,
    ContentStore,
    InMemoryContentStore,
    IPFSContentStore,
    content_hash_v0,
)

__all__ = [
    "ContentStore",
    "DOCUMENT_FILENAME",
    "IPFSContentStore",
    "InMemoryContentStore",
    "content_hash_v0",
]
