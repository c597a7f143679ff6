"""Tests for mapper document trees."""

import pytest
from yaml.error import MarkedYAMLError

from mapperkit.core import Node, load_document
from mapperkit.errors import ConfigurationError, NoSuchAccessorError, UnresolvableReference

DOCUMENT = '''
namespace: app.users
cache: {size: 64}
resultMap:
  - id: userMap
    type: User
    results:
      - !id {property: id, column: user_id}
      - {property: name, column: user_name}
      - !association
        property: address
        results:
          - {property: city, column: city}
select:
  - id: findUser
    useCache: false
    sql:
      - SELECT *
      - !include userColumns
      - !include {refid: tail}
'''


@pytest.fixture
def root() -> Node:
    """Provide the tree of an example document."""
    node = load_document(DOCUMENT, 'users.yaml')
    assert node is not None
    return node


def test_scalar_attributes(root: Node) -> None:
    """Keep scalar values as attributes."""
    assert root.name == 'mapper'
    assert root.get_string('namespace') == 'app.users'
    assert root.resource == 'users.yaml'


def test_mapping_children(root: Node) -> None:
    """Turn mapping values into children named by their keys."""
    cache = root.eval_node('cache')

    assert cache is not None
    assert cache.get_int('size') == 64
    assert cache.parent is root


def test_list_item_names(root: Node) -> None:
    """Name list items by their tags or by their keys."""
    results = root.eval_nodes('resultMap/results|id|association')

    assert [node.name for node in results] == ['id', 'results', 'association']
    assert results[0].get_string('column') == 'user_id'


def test_scalar_list_items(root: Node) -> None:
    """Keep scalar list items as text."""
    body = root.eval_nodes('select/sql|include')

    assert [(node.name, node.text) for node in body] == [
        ('sql', 'SELECT *'),
        ('include', 'userColumns'),
        ('include', None),
    ]
    assert body[2].get_string('refid') == 'tail'


def test_absolute_paths(root: Node) -> None:
    """Select descendants starting from the root."""
    association = root.eval_node('resultMap/association')
    assert association is not None

    assert association.eval_nodes('/mapper/select')[0].get_string('id') == 'findUser'
    assert association.eval_nodes('/other/select') == []
    assert association.root is root


def test_value_based_identifier(root: Node) -> None:
    """Identify nodes by their position and values."""
    association = root.eval_node('resultMap/association')
    assert association is not None

    assert association.value_based_identifier() == 'mapper_resultMap[userMap]_association[address]'


def test_value_based_identifier_dots() -> None:
    """Replace dots of values in identifiers."""
    parent = Node(attributes={'id': 'a.b'})
    child = Node('collection', attributes={'property': 'orders'})
    parent.append(child)

    assert child.value_based_identifier() == 'mapper[a_b]_collection[orders]'


@pytest.mark.parametrize(('value', 'expected'), (
    pytest.param(True, True, id='bool'),
    pytest.param('yes', True, id='yes'),
    pytest.param('OFF', False, id='off'),
    pytest.param(0, False, id='int'),
    pytest.param(None, None, id='missing'),
))
def test_get_bool(value: object, expected: bool | None) -> None:
    """Read boolean attributes."""
    assert Node(attributes={'flag': value}).get_bool('flag') is expected


def test_get_bool_invalid() -> None:
    """Reject values that are not booleans."""
    with pytest.raises(ConfigurationError, match=r"^Attribute 'flag' of 'mapper' must be a boolean"):
        Node(attributes={'flag': 'maybe'}).get_bool('flag')


def test_get_int_invalid() -> None:
    """Reject values that are not integers."""
    node = Node(attributes={'size': 'large', 'count': ' 12 '})

    assert node.get_int('count') == 12

    with pytest.raises(ConfigurationError, match=r"^Attribute 'size' of 'mapper' must be an integer"):
        node.get_int('size')


def test_get_string_of_booleans() -> None:
    """Render booleans as lower-case text."""
    node = Node(attributes={'flag': False})

    assert node.get_string('flag') == 'false'
    assert node.get_string('missing', 'default') == 'default'


def test_located_errors(root: Node) -> None:
    """Attach the element location to errors raised inside."""
    select = root.eval_node('select')
    assert select is not None

    with pytest.raises(ConfigurationError) as error, select.located('app.users.findUser'):
        raise ConfigurationError('Broken statement')

    context = error.value.context
    assert context is not None
    assert context['filename'] == 'users.yaml'
    assert context['line_num'] == select.mark.line
    assert "while building 'app.users.findUser'" in str(error.value)


def test_located_reflection_errors(root: Node) -> None:
    """Turn introspection errors into located configuration errors."""
    with pytest.raises(ConfigurationError, match=r'^There is no getter'), root.located():
        raise NoSuchAccessorError('There is no getter', owner=object, name='x')


def test_located_keeps_unresolved_references(root: Node) -> None:
    """Let missing references pass through."""
    with pytest.raises(UnresolvableReference), root.located():
        raise UnresolvableReference('Missing', reference='x')


def test_as_dict() -> None:
    """Represent an element with its attributes and children."""
    parent = Node('resultMap', attributes={'id': 'userMap'})
    parent.append(Node('result', attributes={'property': 'name'}))
    parent.append(Node('sql', text='SELECT 1'))

    assert parent.as_dict() == {
        'resultMap': {
            'id': 'userMap',
            'children': [
                {'result': {'property': 'name'}},
                {'sql': {'text': 'SELECT 1'}},
            ],
        },
    }


@pytest.mark.parametrize(('content', 'expected'), (
    pytest.param('- a\n- b\n', r'^Mapper document must be a mapping', id='sequence'),
    pytest.param('select:\n  - [a, b]\n', r"^Nested lists are not allowed in 'select'", id='nested'),
))
def test_invalid_documents(content: str, expected: str) -> None:
    """Reject documents that are not trees of mappings."""
    with pytest.raises(ConfigurationError, match=expected):
        load_document(content)


def test_invalid_yaml() -> None:
    """Propagate YAML syntax errors with their marks."""
    with pytest.raises(MarkedYAMLError) as error:
        load_document('namespace: [app', 'broken.yaml')

    assert error.value.problem_mark is not None
    assert error.value.problem_mark.name == 'broken.yaml'


def test_empty_document() -> None:
    """Load nothing from an empty document."""
    assert load_document('') is None
