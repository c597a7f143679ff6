"""Retry passes over pending fragments.

After every admitted document, one pass walks the pending queues in a
fixed order (result maps, cache links, statements) and retries each
fragment that was queued when the pass over its queue started. Resolved
fragments leave their queue; the others stay for the next pass. Passes
continue until loading finishes, at which point anything still pending
is reported.
"""

import logging
from typing import TYPE_CHECKING

from mapperkit.errors import MapperError, UnresolvableReference, UnresolvedFragmentsError

from .mapping import UnresolvedFragment
from .pending import FragmentKind

if TYPE_CHECKING:
    from .pending import PendingRegistry

logger = logging.getLogger(__name__)


class DeferredResolutionLoop:
    """Resolution passes over a `PendingRegistry`."""

    def __init__(self, registry: 'PendingRegistry') -> None:
        """Initialize the loop over a registry."""
        self.registry = registry

    def run_pass(self) -> int:
        """Retry every pending fragment once.

        Each queue is locked for the whole of its pass. Fragments enqueued
        by a retry are appended to the live queue but are not attempted
        before the next pass.

        A fragment failing for any other reason than a missing reference
        is dropped from its queue before its error is raised, so that it
        is reported once and later passes are not affected.

        Returns:
            Number of fragments resolved by this pass.

        Raises:
            MapperError: If a retried fragment is invalid.
        """
        resolved = 0

        for kind in FragmentKind:
            with self.registry.guard(kind) as queue:
                for entry in list(queue):
                    try:
                        entry.resolve()

                    except UnresolvableReference as error:
                        entry.defer(error)
                        continue

                    except MapperError:
                        queue.remove(entry)
                        logger.debug('Dropped invalid pending %s %r', kind, entry.identity)
                        raise

                    queue.remove(entry)
                    resolved += 1
                    logger.debug('Resolved pending %s %r', kind, entry.identity)

        if resolved:
            logger.debug('Resolution pass resolved %d fragment(s)', resolved)

        return resolved

    def unresolved_summary(self) -> list[UnresolvedFragment]:
        """Describe every fragment still pending, in queue order."""
        return [
            UnresolvedFragment(
                kind=entry.kind,
                identity=entry.identity,
                resource=entry.resource,
                reference=entry.reference,
            )
            for entry in self.registry.pending()
        ]

    def raise_for_unresolved(self) -> None:
        """Fail when any fragment is still pending.

        Raises:
            UnresolvedFragmentsError: Naming every pending fragment.
        """
        if fragments := self.unresolved_summary():
            raise UnresolvedFragmentsError(fragments)
