"""Generic attributed tree built from YAML mapper documents.

Every YAML mapping becomes a `Node`:

- scalar values become attributes;
- a mapping value becomes one child named by its key;
- a list value becomes one child per item. Tagged items (`!include`,
  `!result`, ...) are named by their tag, other items by the key.
  Scalar items become childless nodes holding the value as `text`.

Example:
    ```yaml
    namespace: app.users
    select:
      - id: findUser
        sql:
          - SELECT
          - !include {refid: userColumns}
          - FROM users
    ```
"""

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError
from yaml import SafeLoader
from yaml.nodes import MappingNode, ScalarNode, SequenceNode

from mapperkit.errors import ConfigurationError, ReflectionError

if TYPE_CHECKING:
    from collections.abc import Iterator
    from io import TextIOBase

    from yaml.error import Mark

#: Name of the document root.
ROOT_NAME = 'mapper'

#: Prefix of local tags naming list items.
TAG_PREFIX = '!'

#: String forms accepted for boolean attributes.
TRUE_VALUES = frozenset({'true', 'yes', 'on', '1'})
FALSE_VALUES = frozenset({'false', 'no', 'off', '0'})

#: Attributes identifying a node, in order of preference.
IDENTIFYING_ATTRIBUTES = ('id', 'value', 'property')

#: Key holding child elements in plain representations.
CHILDREN_KEY = 'children'


class Node:
    """Element of a mapper document.

    Attributes:
        name: Element name (its key or tag).
        attributes: Scalar attributes in declaration order.
        children: Child elements in declaration order.
        text: Value of a scalar list item.
        parent: Enclosing element, `None` for the root.
        mark: Source position of the element.
    """

    def __init__(self, name: str = ROOT_NAME, *,
                 attributes: dict[str, Any] | None = None,
                 text: str | None = None,
                 mark: 'Mark | None' = None) -> None:
        """Initialize a detached element."""
        self.name = name
        self.attributes = attributes or {}
        self.children: list[Node] = []
        self.text = text
        self.parent: Node | None = None
        self.mark = mark

    def __repr__(self) -> str:
        """Debug representation."""
        return f'{type(self).__name__}({self.name!r}, {self.attributes!r})'

    def append(self, child: 'Node') -> None:
        """Attach a child element."""
        child.parent = self
        self.children.append(child)

    def __iter__(self) -> 'Iterator[Node]':
        """Iterate over child elements."""
        return iter(self.children)

    @property
    def root(self) -> 'Node':
        """Topmost element of the document."""
        node = self
        while node.parent is not None:
            node = node.parent

        return node

    @property
    def resource(self) -> str | None:
        """Name of the document the element was read from."""
        return self.mark.name if self.mark else None

    def error(self, message: str, *,
              fragment: str | None = None,
              error: Exception | None = None) -> ConfigurationError:
        """Build a configuration error located at this element."""
        return ConfigurationError.from_yaml_mark(
            message,
            self.mark,
            fragment=fragment,
            element=self.as_dict(),
            error=error,
        )

    @contextmanager
    def located(self, fragment: str | None = None) -> 'Iterator[Node]':
        """Attach the location of this element to errors raised inside.

        Configuration errors without a location, introspection errors and
        validation errors of built fragments are re-raised as located
        configuration errors. Unresolvable references pass through.
        """
        try:
            yield self

        except ConfigurationError as base:
            if base.context:
                raise
            raise self.error(base.message, fragment=fragment) from base

        except (ReflectionError, ValidationError) as base:
            raise self.error(str(base), fragment=fragment, error=base) from base

    def get_string(self, name: str, default: str | None = None) -> str | None:
        """Read an attribute as text.

        Returns:
            The attribute value, or `default` if it is missing or null.
        """
        value = self.attributes.get(name)
        if value is None:
            return default

        if isinstance(value, bool):
            return 'true' if value else 'false'

        return str(value)

    def get_int(self, name: str, default: int | None = None) -> int | None:
        """Read an attribute as an integer.

        Raises:
            ConfigurationError: If the value is not an integer.
        """
        value = self.attributes.get(name)
        if value is None:
            return default

        if isinstance(value, int) and not isinstance(value, bool):
            return value

        try:
            return int(str(value).strip())
        except ValueError as base:
            raise self.error(
                f'Attribute {name!r} of {self.name!r} must be an integer, got {value!r}',
            ) from base

    def get_bool(self, name: str, default: bool | None = None) -> bool | None:
        """Read an attribute as a boolean.

        Raises:
            ConfigurationError: If the value is not a boolean.
        """
        value = self.attributes.get(name)
        if value is None:
            return default

        if isinstance(value, bool):
            return value

        text = str(value).strip().lower()
        if text in TRUE_VALUES:
            return True
        if text in FALSE_VALUES:
            return False

        raise self.error(
            f'Attribute {name!r} of {self.name!r} must be a boolean, got {value!r}',
        )

    def eval_nodes(self, path: str) -> list['Node']:
        """Select descendants by a `/`-separated path.

        Each step may list alternatives separated by `|`. A leading `/`
        starts from the root, whose name must match the first step.
        Matches are returned in document order.

        Args:
            path: Descendant path, e.g. `select|insert` or `/mapper/sql`.

        Returns:
            Matching elements, possibly empty.
        """
        steps = [step for step in path.split('/') if step]
        current: list[Node] = [self]

        if path.startswith('/'):
            if not steps or self.root.name not in steps[0].split('|'):
                return []
            current, steps = [self.root], steps[1:]

        for step in steps:
            names = set(step.split('|'))
            current = [
                child
                for node in current
                for child in node.children
                if child.name in names
            ]

        return current

    def eval_node(self, path: str) -> 'Node | None':
        """Select the first descendant matching a path, if any."""
        nodes = self.eval_nodes(path)
        return nodes[0] if nodes else None

    def value_based_identifier(self) -> str:
        """Build an identifier from the element names and values up to the root.

        Each level contributes its name followed by its `id`, `value` or
        `property` attribute in brackets, with dots replaced by
        underscores, e.g. `mapper_resultMap[userMap]_association[address]`.
        """
        parts: list[str] = []

        node: Node | None = self
        while node is not None:
            part = node.name
            for attribute in IDENTIFYING_ATTRIBUTES:
                if (value := node.get_string(attribute)) is not None:
                    part += f'[{value.replace('.', '_')}]'
                    break
            parts.append(part)
            node = node.parent

        return '_'.join(reversed(parts))

    def as_dict(self) -> dict[str, Any]:
        """Plain representation used in error snippets."""
        data: dict[str, Any] = dict(self.attributes)

        if self.text is not None:
            data['text'] = self.text

        if self.children:
            data[CHILDREN_KEY] = [child.as_dict() for child in self.children]

        return {self.name: data}


class MapperLoader(SafeLoader):
    """YAML loader producing `Node` trees.

    Any local tag (`!name`) is accepted and names the tagged element.
    """

    def __init__(self, stream: 'TextIOBase | str', resource: str | None = None) -> None:
        """Initialize the loader.

        Args:
            stream: YAML text or text stream.
            resource: Name reported in source marks.
        """
        super().__init__(stream)

        if resource is not None:
            self.name = resource

    def construct_element(self, node: MappingNode, name: str = ROOT_NAME) -> Node:
        """Build an element from a YAML mapping."""
        self.flatten_mapping(node)
        element = Node(name, mark=node.start_mark)

        for key_node, value_node in node.value:
            key = str(self.construct_scalar(key_node))

            if isinstance(value_node, MappingNode):
                element.append(self.construct_element(value_node, self._name_of(value_node, key)))

            elif isinstance(value_node, SequenceNode):
                for item in value_node.value:
                    element.append(self.construct_item(item, key))

            elif self._is_local(value_node):
                element.attributes[key] = self.construct_scalar(value_node)

            else:
                element.attributes[key] = self.construct_object(value_node, deep=True)

        return element

    def construct_item(self, node: Any, key: str) -> Node:  # noqa: ANN401
        """Build an element from a list item."""
        name = self._name_of(node, key)

        if isinstance(node, MappingNode):
            return self.construct_element(node, name)

        if isinstance(node, ScalarNode):
            value = self.construct_scalar(node) if self._is_local(node) else self.construct_object(node)
            return Node(name, text=None if value is None else str(value), mark=node.start_mark)

        raise ConfigurationError.from_yaml_mark(
            f'Nested lists are not allowed in {key!r}',
            node.start_mark,
        )

    def construct_document_root(self, node: Any) -> Node:  # noqa: ANN401
        """Build the root element of a document."""
        if not isinstance(node, MappingNode):
            raise ConfigurationError.from_yaml_mark(
                'Mapper document must be a mapping',
                node.start_mark,
            )

        return self.construct_element(node)

    @staticmethod
    def _is_local(node: Any) -> bool:  # noqa: ANN401
        """Check whether a YAML node carries a local tag."""
        return isinstance(node.tag, str) and node.tag.startswith(TAG_PREFIX)

    def _name_of(self, node: Any, key: str) -> str:  # noqa: ANN401
        """Name an element by its local tag or by its key."""
        if self._is_local(node):
            return node.tag.removeprefix(TAG_PREFIX)

        return key

    def load_root(self) -> Node | None:
        """Load a single document into a tree.

        Returns:
            The root element, or `None` for an empty document.
        """
        try:
            node = self.get_single_node()
            if node is None:
                return None
            return self.construct_document_root(node)
        finally:
            self.dispose()


def load_document(content: 'TextIOBase | str', resource: str | None = None) -> Node | None:
    """Parse YAML content into a tree.

    Raises:
        yaml.error.MarkedYAMLError: If the content is not valid YAML.
        ConfigurationError: If the content is not a mapping document.
    """
    return MapperLoader(content, resource).load_root()
