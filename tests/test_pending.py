"""Tests for pending fragments and resolution passes."""

from threading import Thread
from typing import TYPE_CHECKING

import pytest

from mapperkit.core import DeferredResolutionLoop, FragmentKind, PendingFragment, PendingRegistry
from mapperkit.errors import ConfigurationError, UnresolvableReference, UnresolvedFragmentsError

if TYPE_CHECKING:
    from collections.abc import Callable


class Fragment(PendingFragment):
    """Fragment resolved once its reference is available."""

    kind = FragmentKind.RESULT_MAP

    def __init__(self, identity: str, available: set[str], reference: str,
                 resource: str | None = 'users.yaml',
                 on_resolve: 'Callable[[], None] | None' = None) -> None:
        super().__init__(identity, resource)
        self.available = available
        self.missing = reference
        self.attempts = 0
        self.on_resolve = on_resolve

    def resolve(self) -> str:
        self.attempts += 1
        if self.missing not in self.available:
            raise UnresolvableReference(f'Missing {self.missing!r}', reference=self.missing)
        self.available.add(self.identity)
        if self.on_resolve is not None:
            self.on_resolve()
        return self.identity


class Statement(Fragment):
    """Statement fragment resolved once its reference is available."""

    kind = FragmentKind.STATEMENT


def _raise(error: Exception) -> None:
    raise error


@pytest.fixture
def registry() -> PendingRegistry:
    """Provide empty pending queues."""
    return PendingRegistry()


@pytest.fixture
def loop(registry: PendingRegistry) -> DeferredResolutionLoop:
    """Provide resolution passes over the pending queues."""
    return DeferredResolutionLoop(registry)


def test_registry_queues(registry: PendingRegistry) -> None:
    """Keep fragments in their own queues."""
    available: set[str] = set()
    first = Fragment('a.first', available, 'a.base')
    second = Statement('a.select', available, 'a.first')

    assert registry.is_empty()

    registry.enqueue(FragmentKind.STATEMENT, second)
    registry.enqueue(FragmentKind.RESULT_MAP, first)

    assert not registry.is_empty()
    assert registry.pending(FragmentKind.STATEMENT) == [second]
    assert registry.pending() == [first, second]

    registry.remove(FragmentKind.RESULT_MAP, first)

    assert registry.snapshot(FragmentKind.RESULT_MAP) == []


def test_defer_records_reference() -> None:
    """Record the reference that blocked an attempt."""
    fragment = Fragment('a.child', set(), 'a.parent')

    with pytest.raises(UnresolvableReference) as error:
        fragment.resolve()

    fragment.defer(error.value)

    assert fragment.reference == 'a.parent'


def test_empty_pass(loop: DeferredResolutionLoop) -> None:
    """Resolve nothing without pending fragments."""
    assert loop.run_pass() == 0
    assert loop.unresolved_summary() == []

    loop.raise_for_unresolved()


def test_pass_resolves_available_references(registry: PendingRegistry,
                                           loop: DeferredResolutionLoop) -> None:
    """Remove resolved fragments and keep the others."""
    available = {'a.base'}
    ready = Fragment('a.ready', available, 'a.base')
    blocked = Fragment('a.blocked', available, 'b.missing')

    registry.enqueue(FragmentKind.RESULT_MAP, ready)
    registry.enqueue(FragmentKind.RESULT_MAP, blocked)

    assert loop.run_pass() == 1
    assert registry.pending() == [blocked]
    assert blocked.reference == 'b.missing'

    available.add('b.missing')

    assert loop.run_pass() == 1
    assert registry.is_empty()


def test_pass_order(registry: PendingRegistry, loop: DeferredResolutionLoop) -> None:
    """Retry result maps before the statements depending on them."""
    available = {'a.base'}
    statement = Statement('a.select', available, 'a.child')
    result_map = Fragment('a.child', available, 'a.base')

    registry.enqueue(FragmentKind.STATEMENT, statement)
    registry.enqueue(FragmentKind.RESULT_MAP, result_map)

    assert loop.run_pass() == 2
    assert registry.is_empty()


def test_pass_without_fixpoint(registry: PendingRegistry, loop: DeferredResolutionLoop) -> None:
    """Attempt every fragment at most once per pass."""
    available = {'a.base'}
    grandchild = Fragment('a.grandchild', available, 'a.child')
    child = Fragment('a.child', available, 'a.base')

    registry.enqueue(FragmentKind.RESULT_MAP, grandchild)
    registry.enqueue(FragmentKind.RESULT_MAP, child)

    assert loop.run_pass() == 1
    assert grandchild.attempts == 1

    assert loop.run_pass() == 1
    assert registry.is_empty()


def test_fragments_enqueued_during_pass(registry: PendingRegistry,
                                        loop: DeferredResolutionLoop) -> None:
    """Wait for the next pass with fragments enqueued by a retry."""
    available = {'a.base'}
    late = Fragment('a.late', available, 'a.base')
    trigger = Fragment(
        'a.trigger', available, 'a.base',
        on_resolve=lambda: registry.enqueue(FragmentKind.RESULT_MAP, late),
    )
    registry.enqueue(FragmentKind.RESULT_MAP, trigger)

    assert loop.run_pass() == 1
    assert registry.pending() == [late]
    assert late.attempts == 0

    assert loop.run_pass() == 1
    assert late.attempts == 1


def test_enqueue_blocks_during_pass(registry: PendingRegistry,
                                    loop: DeferredResolutionLoop) -> None:
    """Append fragments from other threads only after the pass over their queue."""
    available: set[str] = set()
    late = Fragment('a.late', available, 'a.base')
    threads: list[Thread] = []

    def enqueue_from_thread() -> None:
        thread = Thread(target=registry.enqueue, args=(FragmentKind.RESULT_MAP, late))
        thread.start()
        thread.join(timeout=0.1)
        threads.append(thread)

    blocked = Fragment('a.blocked', available, 'a.missing')
    trigger = Fragment('a.trigger', {'a.base'}, 'a.base', on_resolve=enqueue_from_thread)
    registry.enqueue(FragmentKind.RESULT_MAP, trigger)
    registry.enqueue(FragmentKind.RESULT_MAP, blocked)

    loop.run_pass()
    threads[0].join()

    assert threads[0].is_alive() is False
    assert registry.pending() == [blocked, late]
    assert late.attempts == 0


def test_invalid_fragment_dropped(registry: PendingRegistry, loop: DeferredResolutionLoop) -> None:
    """Drop a fragment failing on retry and raise its error once."""
    available: set[str] = set()
    invalid = Fragment('a.invalid', available, 'a.base')
    blocked = Fragment('a.blocked', available, 'a.missing')
    registry.enqueue(FragmentKind.RESULT_MAP, invalid)
    registry.enqueue(FragmentKind.RESULT_MAP, blocked)

    available.add('a.base')
    invalid.on_resolve = lambda: _raise(ConfigurationError('Broken fragment'))

    with pytest.raises(ConfigurationError, match=r'^Broken fragment$'):
        loop.run_pass()

    assert registry.pending() == [blocked]
    assert loop.run_pass() == 0


def test_unresolved_summary(registry: PendingRegistry, loop: DeferredResolutionLoop) -> None:
    """Describe and report every fragment still pending."""
    blocked = Fragment('app.users.childMap', set(), 'app.base.baseMap')
    registry.enqueue(FragmentKind.RESULT_MAP, blocked)

    loop.run_pass()
    summary = loop.unresolved_summary()

    assert len(summary) == 1
    assert summary[0].kind is FragmentKind.RESULT_MAP
    assert summary[0].reference == 'app.base.baseMap'
    assert summary[0].describe() == (
        "resultMap 'app.users.childMap' references unknown 'app.base.baseMap' "
        "(in 'users.yaml')"
    )

    with pytest.raises(UnresolvedFragmentsError, match=r'^1 fragment\(s\) could not be resolved'):
        loop.raise_for_unresolved()
