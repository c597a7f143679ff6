"""Fragment identifier patterns and validation rules.

This module defines name patterns and strongly-typed aliases used to
validate namespaces and fragment identifiers declared by mapper
documents.
"""

from re import ASCII
from re import compile as regexp
from typing import Annotated

from pydantic import Field

#: Base pattern for a single identifier segment.
_NAME_PATTERN = r'[a-zA-Z_][\w-]*'

#: Compiled pattern for a namespace or a namespace-qualified identifier.
QUALIFIED_ID_PATTERN = regexp(
    rf'^{_NAME_PATTERN}(\.{_NAME_PATTERN})*$',
    flags=ASCII,
)

#: Compiled pattern for a `#{...}` parameter placeholder inside SQL text.
#: Only the property path is captured; inline options after a comma are ignored.
PLACEHOLDER_PATTERN = regexp(r'#\{\s*(?P<property>[^,}\s]+)\s*(,[^}]*)?\}')


Namespace = Annotated[
    str, Field(
        pattern=QUALIFIED_ID_PATTERN.pattern,
        title='Namespace',
        description=(
            'Dotted identifier of a mapper document. Local fragment '
            'identifiers are qualified with it.'
        ),
        examples=[
            'app.users',
        ],
    ),
]
