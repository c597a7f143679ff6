"""Shared queues of fragments waiting for their references.

A fragment that references something not admitted yet (a parent result
map, a cache of another namespace, an SQL fragment) is kept in one of
three queues until a later resolution pass succeeds. Each queue has its
own re-entrant lock, so a pass over one queue never blocks builders
enqueueing into another.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import StrEnum
from threading import RLock
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

    from mapperkit.errors import UnresolvableReference

logger = logging.getLogger(__name__)


class FragmentKind(StrEnum):
    """Kind of a pending fragment, in resolution order."""

    RESULT_MAP = 'resultMap'
    CACHE_REF = 'cache-ref'
    STATEMENT = 'statement'


class PendingFragment(ABC):
    """Resumable state of one fragment that could not be built yet.

    Attributes:
        kind: Queue the fragment belongs to.
        identity: Qualified identifier of the fragment.
        resource: Document the fragment was declared in.
        reference: Last reference that could not be resolved.
    """

    kind: FragmentKind

    def __init__(self, identity: str, resource: str | None = None) -> None:
        """Initialize the fragment state."""
        self.identity = identity
        self.resource = resource
        self.reference: str | None = None

    def __repr__(self) -> str:
        """Debug representation."""
        return f'{type(self).__name__}({self.identity!r}, reference={self.reference!r})'

    def defer(self, error: 'UnresolvableReference') -> None:
        """Record the reference that blocked the last attempt."""
        self.reference = error.reference

    @abstractmethod
    def resolve(self) -> Any:  # noqa: ANN401
        """Build the fragment.

        Raises:
            UnresolvableReference: If a reference is still missing.
        """


class PendingRegistry:
    """Three independent queues of pending fragments."""

    def __init__(self) -> None:
        """Initialize empty queues."""
        self._queues: dict[FragmentKind, list[PendingFragment]] = {
            kind: [] for kind in FragmentKind
        }
        self._locks: dict[FragmentKind, RLock] = {
            kind: RLock() for kind in FragmentKind
        }

    def enqueue(self, kind: FragmentKind, entry: PendingFragment) -> None:
        """Append a fragment to its queue.

        Blocks while a pass holds the queue.
        """
        with self._locks[kind]:
            self._queues[kind].append(entry)

        logger.debug('Deferred %s %r waiting for %r', kind, entry.identity, entry.reference)

    def snapshot(self, kind: FragmentKind) -> list[PendingFragment]:
        """Copy the current content of a queue."""
        with self._locks[kind]:
            return list(self._queues[kind])

    def remove(self, kind: FragmentKind, entry: PendingFragment) -> None:
        """Remove a resolved fragment from its queue."""
        with self._locks[kind]:
            queue = self._queues[kind]
            for position, candidate in enumerate(queue):
                if candidate is entry:
                    del queue[position]
                    return

    @contextmanager
    def guard(self, kind: FragmentKind) -> 'Iterator[list[PendingFragment]]':
        """Hold a queue's lock for a whole pass.

        Yields:
            The live queue. Removing entries from it is allowed while the
            lock is held.
        """
        with self._locks[kind]:
            yield self._queues[kind]

    def pending(self, kind: FragmentKind | None = None) -> list[PendingFragment]:
        """List pending fragments of one queue, or of all queues in order."""
        if kind is not None:
            return self.snapshot(kind)

        return [
            entry
            for queue_kind in FragmentKind
            for entry in self.snapshot(queue_kind)
        ]

    def is_empty(self) -> bool:
        """Check whether no fragment is pending."""
        return not any(self.snapshot(kind) for kind in FragmentKind)
