"""DID identifier parsing and formatting.

DID format
----------
::

    did:<method>:<method-specific-id>[#<fragment>]

Examples::

    did:go:abc123
    did:go:abc123#owner
    did:example:123456789abcdefghi

Only identifiers with method ``go`` can be anchored in the registry, and
their method-specific id must fit in 32 bytes once UTF-8 encoded. Any
other method can still be parsed and displayed.

Parsing and formatting are exact inverses: ``format_did(parse_did(s)) == s``
for every string that parses.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, replace

from did_anchor.errors import ParseError, ValidationError

DID_SCHEME = "did:"

# Method name registered on-chain.
ANCHOR_METHOD = "go"

# Size of the registry's bytes32 key.
MAX_ID_BYTES = 32

_METHOD_PATTERN = re.compile(r"^[a-z0-9]+$")
# Alphanumerics plus the limited punctuation allowed in method-specific ids.
_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:%\-]+$")
_FRAGMENT_PATTERN = re.compile(r"^[A-Za-z0-9._:%\-]+$")


@dataclass(frozen=True)
class DID:
    """A parsed decentralized identifier.

    Parameters
    ----------
    method:
        DID method name (e.g. ``"go"``).
    id:
        Method-specific identifier, opaque to this module.
    fragment:
        Optional fragment naming a part of the DID document (e.g. ``"owner"``).
    """

    method: str
    id: str
    fragment: str | None = None

    def __str__(self) -> str:
        return format_did(self)

    def with_fragment(self, fragment: str | None) -> "DID":
        """Return a copy of this DID with *fragment* replaced."""
        return replace(self, fragment=fragment)

    def base(self) -> "DID":
        """Return this DID without its fragment."""
        return replace(self, fragment=None)

    def id_bytes(self) -> bytes:
        """Return the method-specific id encoded as UTF-8."""
        return self.id.encode("utf-8")

    def require_anchorable(self) -> None:
        """Raise unless this DID may be written to the registry.

        Raises
        ------
        ValidationError
            If the method is not ``go`` or the id exceeds 32 UTF-8 bytes.
        """
        if self.method != ANCHOR_METHOD:
            raise ValidationError(
                f"Only '{ANCHOR_METHOD}' DID methods can be registered, got {self.method!r}."
            )
        size = len(self.id_bytes())
        if size > MAX_ID_BYTES:
            raise ValidationError(
                f"DID id {self.id!r} is {size} bytes; the registry allows at most {MAX_ID_BYTES}."
            )

    def registry_key(self) -> bytes:
        """Return the 32-byte registry key for this DID.

        The UTF-8 id is zero-padded on the right, or truncated when longer
        than 32 bytes. Writers call :meth:`require_anchorable` first so a
        truncated key is only ever used for lookups.
        """
        return self.id_bytes()[:MAX_ID_BYTES].ljust(MAX_ID_BYTES, b"\x00")


def parse_did(value: str) -> DID:
    """Parse a DID string into a :class:`DID`.

    Parameters
    ----------
    value:
        The DID string, optionally with a ``#fragment`` suffix.

    Returns
    -------
    DID

    Raises
    ------
    ParseError
        If the scheme is missing, the method is missing or malformed, the
        method-specific id is empty or contains disallowed characters, or
        the fragment is empty or malformed.
    """
    if not value.startswith(DID_SCHEME):
        raise ParseError(value, "missing 'did:' scheme")

    method, separator, remainder = value[len(DID_SCHEME):].partition(":")
    if not separator or not method:
        raise ParseError(value, "missing method")
    if not _METHOD_PATTERN.match(method):
        raise ParseError(value, "method must be lowercase alphanumeric")

    method_id, hash_mark, fragment = remainder.partition("#")
    if not method_id:
        raise ParseError(value, "empty method-specific id")
    if not _ID_PATTERN.match(method_id):
        raise ParseError(value, "method-specific id contains disallowed characters")

    if not hash_mark:
        return DID(method=method, id=method_id)
    if not fragment or not _FRAGMENT_PATTERN.match(fragment):
        raise ParseError(value, "fragment is empty or contains disallowed characters")
    return DID(method=method, id=method_id, fragment=fragment)


def format_did(did: DID) -> str:
    """Format a :class:`DID` back to its string form."""
    text = f"{DID_SCHEME}{did.method}:{did.id}"
    if did.fragment is not None:
        text += f"#{did.fragment}"
    return text


def as_did(value: str | DID) -> DID:
    """Return *value* as a :class:`DID`, parsing it when given a string."""
    if isinstance(value, DID):
        return value
    return parse_did(value)


__all__ = [
    "ANCHOR_METHOD",
    "DID",
    "DID_SCHEME",
    "MAX_ID_BYTES",
    "as_did",
    "format_did",
    "parse_did",
]
