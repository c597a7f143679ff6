"""Core exception hierarchy.

This module defines base error and warning types used across the library
to report introspection failures, malformed mapper documents, unresolved
forward references and argument binding issues in a structured way.
"""

from os import linesep
from typing import TYPE_CHECKING, Any, TypedDict

from yaml import dump
from yaml.error import MarkedYAMLError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import Self

if TYPE_CHECKING:
    from yaml.error import Mark

if TYPE_CHECKING:
    from mapperkit.core.mapping import UnresolvedFragment

SNIPPET_ELLIPSIS = f' ...{linesep}'
SNIPPET_INDENT = 2

FORMAT_REPLACER = '<runtime object>'
FORMAT_FILENAME = '<unicode string>'
FORMAT_INDENT = 4

SCALARS = (str, bytes, int, float, bool)
MAPPINGS = (dict,)
SEQUENCES = (list, tuple, set)


class ErrorContext(TypedDict, total=False):
    """Container describing contextual information for error formatting.

    This structure aggregates optional metadata that may be available
    at different stages of document parsing, fragment building, or
    deferred resolution.

    All fields are optional; the formatter adapts output based on
    provided values.
    """

    #: Name of the resource (file path or label) where the error occurred.
    filename: str | None

    #: Line number in the source document.
    line_num: int | None
    #: Column number in the source document.
    column_num: int | None

    #: Identity of the fragment being built.
    fragment: str | None

    #: Underlying exception that triggered formatting.
    error: Exception | None

    #: Attributes of the element associated with the error.
    element: Any


class ErrorFormatter:
    """Utility class for formatting mapper errors.

    This formatter is responsible for producing human-readable
    error messages with optional source location and YAML-based
    contextual snippets.
    """

    @classmethod
    def format(cls, message: str, context: ErrorContext | None = None) -> str:
        """Format an error message using contextual information.

        Args:
            message: Base human-readable error message.
            context: Optional error context with location and data.

        Returns:
            A fully formatted error message suitable for display.
        """
        if not context:
            return message

        message += linesep
        message += cls.get_location_string(context, indent=FORMAT_INDENT)
        message += cls.get_snippet_string(context, indent=FORMAT_INDENT * 2)

        return message.rstrip()

    @classmethod
    def get_location_string(cls, context: ErrorContext, *,
                            indent: str | int | None = None) -> str:
        """Format source location information.

        Args:
            context: Error context containing location metadata.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted location string including resource, line,
            column and fragment identity when available.
        """
        indent = cls._ensure_indent(indent)

        filename = context.get('filename')
        if not filename:
            filename = FORMAT_FILENAME

        message = f'{indent}in "{filename}"'
        if (line_num := context.get('line_num')) is not None:
            line_num += 1
            message += f', line {line_num}'
            if (column_num := context.get('column_num')) is not None:
                column_num += 1
                message += f', column {column_num}'
        message += linesep

        if fragment := context.get('fragment'):
            message += f'{indent}while building {fragment!r}{linesep}'

        return message

    @classmethod
    def get_snippet_string(cls, context: ErrorContext, *,
                           indent: str | int | None = None) -> str:
        """Generate a formatted snippet illustrating the error context.

        Args:
            context: Error context containing element or exception data.
            indent: Optional indentation (string or number of spaces).

        Returns:
            A formatted multi-line snippet string, or an empty string
            if no snippet data is available.
        """
        indent = cls._ensure_indent(indent)

        if (error := context.get('error')) and isinstance(error, MarkedYAMLError):
            if error.problem_mark is None:
                return ''
            snippet = error.problem_mark.get_snippet(indent=0) or ''
            return cls._make_indent(snippet, indent)

        if element := context.get('element'):
            snippet = f'{indent}{SNIPPET_ELLIPSIS}'
            snippet += cls._make_yaml(element, indent)
            return snippet + linesep

        return ''

    @classmethod
    def _filter_unsafe(cls, value: Any) -> Any:  # noqa: ANN401
        """Recursively sanitize values for safe YAML serialization.

        Args:
            value: Arbitrary value to sanitize.

        Returns:
            A YAML-safe representation of the value.
        """
        if value is None or isinstance(value, SCALARS):
            return value

        if isinstance(value, MAPPINGS):
            return {
                key: cls._filter_unsafe(item)
                for key, item in value.items()
            }

        if isinstance(value, SEQUENCES):
            return [
                cls._filter_unsafe(item)
                for item in value
            ]

        return FORMAT_REPLACER

    @classmethod
    def _make_yaml(cls, value: Any, indent: str = '') -> str:  # noqa: ANN401
        """Serialize a value to an indented YAML string."""
        data = dump(
            cls._filter_unsafe(value),
            indent=SNIPPET_INDENT,
            sort_keys=False,
        )

        return cls._make_indent(data, indent)

    @staticmethod
    def _make_indent(value: str, indent: str) -> str:
        """Apply indentation to a multi-line string.

        Empty or whitespace-only lines are omitted.
        """
        if not indent:
            return value

        return linesep.join(
            f'{indent}{line}'
            for line in value.splitlines()
            if line.strip()
        )

    @staticmethod
    def _ensure_indent(indent: str | int | None = None) -> str:
        """Normalize indentation input to a string prefix."""
        if isinstance(indent, int) and indent > 0:
            return ' ' * indent

        if isinstance(indent, str):
            return indent

        return ''


class MapperWarning(UserWarning):
    """Warning emitted for non-fatal mapper configuration issues.

    Used when a document is admitted twice or a declaration is ignored,
    but loading can safely continue.
    """


class MapperError(Exception, ErrorFormatter):
    """Base exception for all mapperkit errors.

    All custom exceptions raised by the library inherit from this class
    to allow unified error handling by callers.
    """

    def __init__(self, message: str, *,
                 context: ErrorContext | None = None) -> None:
        """Initialize an error.

        Args:
            message: Human-readable error description.
            context: Error context containing optional location and data.
        """
        self.message = message
        self.context = context

        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        return self.format(self.message, self.context)


class ReflectionError(MapperError):
    """Error raised while introspecting a type or navigating its properties."""


class AmbiguousAccessorError(ReflectionError):
    """Error raised when accessor candidates of one property have conflicting types.

    Raised at descriptor build time; the type cannot be introspected.
    """

    def __init__(self, message: str, *, owner: type, name: str) -> None:
        """Initialize an ambiguity error.

        Args:
            message: Human-readable error description.
            owner: Type being introspected.
            name: Property name with ambiguous candidates.
        """
        self.owner = owner
        self.name = name

        super().__init__(message)


class NoSuchAccessorError(ReflectionError):
    """Error raised when a getter or setter was never discovered for a name."""

    def __init__(self, message: str, *, owner: type, name: str) -> None:
        """Initialize a lookup error.

        Args:
            message: Human-readable error description.
            owner: Type being queried.
            name: Property name that has no such accessor.
        """
        self.owner = owner
        self.name = name

        super().__init__(message)


class UnsupportedOperationError(ReflectionError):
    """Error raised when an operation has no meaning for the given object."""


class UnresolvableReference(MapperError):  # noqa: N818
    """Signal raised when a fragment references something not yet admitted.

    This is not a failure: builders catch it and queue the fragment for
    a later resolution pass. It is only reported if the fragment is still
    pending when loading finishes.
    """

    def __init__(self, message: str, *, reference: str) -> None:
        """Initialize the signal.

        Args:
            message: Human-readable description of the missing reference.
            reference: Identifier that could not be resolved.
        """
        self.reference = reference

        super().__init__(message)


class ConfigurationError(MapperError):
    """Error raised for a malformed mapper document or fragment.

    Missing required attributes, mutually exclusive attributes, duplicate
    identifiers and invalid references to types or properties are all
    reported through this error together with the originating resource.
    """

    @classmethod
    def from_yaml_mark(cls, message: str, mark: 'Mark | None', *,
                       fragment: str | None = None,
                       element: Any = None,  # noqa: ANN401
                       error: Exception | None = None) -> 'Self':
        """Create an error instance from a YAML source mark.

        Args:
            message: Human-readable error message.
            mark: Source position of the element, if known.
            fragment: Identity of the fragment being built.
            element: Attributes of the failing element.
            error: Optional underlying exception.

        Returns:
            An initialized error with location context.
        """
        error_context = ErrorContext(
            filename=mark.name if mark else None,
            line_num=mark.line if mark else None,
            column_num=mark.column if mark else None,
            fragment=fragment,
            element=element,
            error=error,
        )

        return cls(message, context=error_context)

    @classmethod
    def from_yaml_error(cls, error: MarkedYAMLError,
                        resource: str | None = None) -> 'Self':
        """Create a configuration error from a YAML parsing failure.

        Args:
            error: Exception raised by the YAML parser.
            resource: Resource name to use when the mark has none.

        Returns:
            ConfigurationError representing the YAML parsing failure.
        """
        mark = error.problem_mark
        error_context = ErrorContext(
            filename=resource or (mark.name if mark else None),
            line_num=mark.line if mark else None,
            column_num=mark.column if mark else None,
            error=error,
        )

        message = 'Invalid YAML'
        if error.problem:
            message += f'{linesep}{' ' * FORMAT_INDENT}{error.problem}'

        return cls(message, context=error_context)


class UnresolvedFragmentsError(ConfigurationError):
    """Error raised when fragments are still pending after the last pass."""

    def __init__(self, fragments: 'Sequence[UnresolvedFragment]') -> None:
        """Initialize the aggregated report.

        Args:
            fragments: Every fragment still pending, in queue order.
        """
        self.fragments = tuple(fragments)

        lines = [f'{len(self.fragments)} fragment(s) could not be resolved']
        lines.extend(
            f'{' ' * FORMAT_INDENT}{fragment.describe()}'
            for fragment in self.fragments
        )

        super().__init__(linesep.join(lines))


class BindingError(MapperError):
    """Error raised when a named call argument cannot be found."""
