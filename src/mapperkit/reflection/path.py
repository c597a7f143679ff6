"""Dotted and indexed property path expressions.

A property path addresses a possibly nested property, for example
`orders[0].items.name`. Each segment may carry an index suffix holding
either a sequence ordinal or a mapping key.
"""

from typing import TYPE_CHECKING

from mapperkit.errors import UnsupportedOperationError

if TYPE_CHECKING:
    from collections.abc import Iterator


class PropertyPath:
    """Parsed head segment of a property expression.

    The expression is split at the first `.`: the head becomes this
    segment and the rest is kept as raw text, parsed again only when
    the caller asks for the remainder.

    Parsing never fails. Malformed brackets are kept as they are and
    must be validated by the caller.
    """

    __slots__ = ('children', 'index', 'indexed_name', 'name')

    def __init__(self, expression: str) -> None:
        """Parse the head segment of an expression.

        Args:
            expression: Full property expression, e.g. `order[0].items.name`.
        """
        head, dot, children = expression.partition('.')

        self.children: str | None = children if dot else None
        self.indexed_name = head

        name, bracket, index = head.partition('[')
        self.name = name
        self.index: str | None = index[:-1] if bracket else None

    @classmethod
    def parse(cls, expression: str) -> 'PropertyPath':
        """Parse an expression into its head segment."""
        return cls(expression)

    @property
    def remainder(self) -> 'PropertyPath | None':
        """Segment following this one, or `None` for the last segment."""
        if self.children is None:
            return None

        return PropertyPath(self.children)

    def has_remainder(self) -> bool:
        """Check whether another segment follows this one."""
        return self.children is not None

    def next(self) -> 'PropertyPath':
        """Parse the following segment.

        Returns:
            The next segment of the expression.

        Raises:
            UnsupportedOperationError: If this is the last segment.
                Check `has_remainder()` first.
        """
        if self.children is None:
            raise UnsupportedOperationError(
                f'Property path {self.indexed_name!r} has no remaining segments',
            )

        return PropertyPath(self.children)

    def __iter__(self) -> 'Iterator[PropertyPath]':
        """Iterate over this segment and every following one."""
        segment: PropertyPath | None = self
        while segment is not None:
            yield segment
            segment = segment.remainder

    def __repr__(self) -> str:
        """Debug representation."""
        return (
            f'{type(self).__name__}(name={self.name!r}, index={self.index!r}, '
            f'children={self.children!r})'
        )
