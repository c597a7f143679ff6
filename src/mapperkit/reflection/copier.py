"""Copying of instance state between two objects."""

from contextlib import suppress
from typing import Any

#: Errors raised by attributes that refuse assignment (frozen or read-only).
_READ_ONLY_ERRORS = (AttributeError, TypeError, ValueError)


def _slots(type_: type) -> list[str]:
    """List slot names declared along the MRO of a type."""
    names: list[str] = []

    for klass in type_.__mro__:
        slots = vars(klass).get('__slots__', ())
        if isinstance(slots, str):
            slots = (slots,)
        names.extend(slot for slot in slots if slot not in ('__dict__', '__weakref__'))

    return names


def copy_properties(type_: type, source: Any, target: Any) -> None:  # noqa: ANN401
    """Copy instance state of `source` into `target`.

    Every entry of the instance dictionary and every assigned slot
    declared along the MRO of `type_` is copied with `setattr`. Members
    refusing assignment (frozen models, read-only properties) and unset
    slots are skipped.

    Args:
        type_: Type whose declared slots are copied, usually the common
            base of `source` and `target`.
        source: Object to copy from.
        target: Object to copy to.
    """
    for name, value in getattr(source, '__dict__', {}).items():
        with suppress(*_READ_ONLY_ERRORS):
            setattr(target, name, value)

    for name in _slots(type_):
        try:
            value = getattr(source, name)
        except AttributeError:
            continue

        with suppress(*_READ_ONLY_ERRORS):
            setattr(target, name, value)
