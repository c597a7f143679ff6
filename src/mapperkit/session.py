"""Control arguments of mapped calls.

Row bounds and result handlers steer how a statement is executed rather
than what it is executed with, so they are never bound as named
statement parameters.
"""

from abc import ABC, abstractmethod
from sys import maxsize
from typing import Any

from pydantic import Field

from mapperkit.models import SchemaModel

#: Offset of an unbounded selection.
NO_ROW_OFFSET = 0

#: Limit of an unbounded selection.
NO_ROW_LIMIT = maxsize


class RowBounds(SchemaModel):
    """Offset and limit window applied to selected rows."""

    offset: int = Field(
        default=NO_ROW_OFFSET,
        ge=0,
        title='Offset',
        description='Number of leading rows to skip.',
    )

    limit: int = Field(
        default=NO_ROW_LIMIT,
        ge=0,
        title='Limit',
        description='Maximum number of rows to return.',
    )


class ResultHandler(ABC):
    """Callback receiving selected rows one by one."""

    @abstractmethod
    def handle_result(self, result: Any) -> None:  # noqa: ANN401
        """Handle a single mapped result."""
