"""CancellationToken — caller-supplied cancellation and deadline signal.

Every registry and content-store call accepts an optional token. The token
is checked before and after each blocking network call, bounds the
per-request socket timeout, and wakes the confirmation poll loop early when
cancelled.

Example
-------
::

    token = CancellationToken().with_timeout(15)
    resolver.resolve("did:go:abc123", cancel=token)

    # From a signal handler or another thread:
    token.cancel()
"""
from __future__ import annotations

import threading
import time

from did_anchor.errors import OperationCancelledError, OperationTimeoutError


class CancellationToken:
    """A cancellable signal with an optional absolute deadline.

    Cancelling a token also cancels every token derived from it with
    :meth:`with_timeout`. Derived tokens never cancel their parent.

    Parameters
    ----------
    deadline:
        Absolute :func:`time.monotonic` value after which the token counts
        as expired. ``None`` means no deadline.
    """

    def __init__(self, deadline: float | None = None) -> None:
        self._deadline = deadline
        self._event = threading.Event()
        self._children: list[CancellationToken] = []
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def with_timeout(self, seconds: float) -> "CancellationToken":
        """Return a child token expiring *seconds* from now.

        The child keeps the earlier of its own and the parent's deadline.
        """
        deadline = time.monotonic() + seconds
        if self._deadline is not None:
            deadline = min(deadline, self._deadline)
        child = CancellationToken(deadline=deadline)
        with self._lock:
            self._children.append(child)
            if self._event.is_set():
                child.cancel()
        return child

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Cancel this token and all tokens derived from it."""
        with self._lock:
            self._event.set()
            children = list(self._children)
        for child in children:
            child.cancel()

    @property
    def cancelled(self) -> bool:
        """``True`` once cancelled explicitly or past the deadline."""
        return self._event.is_set() or self.expired

    @property
    def expired(self) -> bool:
        """``True`` if the deadline has passed."""
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self, default: float | None = None) -> float | None:
        """Return the seconds left before the deadline.

        Parameters
        ----------
        default:
            Upper bound returned when the token has no deadline, or when
            the deadline is further away than *default*.

        Returns
        -------
        float | None
            Seconds left (never negative), or *default* if there is no
            deadline.
        """
        if self._deadline is None:
            return default
        left = max(0.0, self._deadline - time.monotonic())
        if default is not None:
            return min(left, default)
        return left

    def raise_if_cancelled(self) -> None:
        """Raise if the token has been cancelled or its deadline passed.

        Raises
        ------
        OperationCancelledError
            If :meth:`cancel` was called.
        OperationTimeoutError
            If the deadline elapsed.
        """
        if self._event.is_set():
            raise OperationCancelledError("Operation cancelled by caller.")
        if self.expired:
            raise OperationTimeoutError("Operation deadline exceeded.")

    def wait(self, seconds: float) -> bool:
        """Sleep up to *seconds*, returning early when cancelled.

        Returns
        -------
        bool
            ``True`` if the token is cancelled when the wait ends.
        """
        timeout = self.remaining(seconds)
        if timeout:
            self._event.wait(timeout)
        return self.cancelled


def ensure_token(cancel: CancellationToken | None) -> CancellationToken:
    """Return *cancel*, or a fresh never-cancelled token if it is ``None``."""
    return cancel if cancel is not None else CancellationToken()


__all__ = ["CancellationToken", "ensure_token"]
