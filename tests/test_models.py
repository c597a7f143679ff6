"""Tests for settings and control argument models."""

import os
from sys import maxsize
from typing import TYPE_CHECKING

import pydantic
import pytest

from mapperkit.models import MapperSettings, SchemaModel
from mapperkit.session import RowBounds

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def test_settings_from_environment(mocker: 'MockerFixture') -> None:
    """Read settings from prefixed environment variables."""
    mocker.patch.dict(os.environ, {
        'MAPPERKIT_DATABASE_ID': 'postgres',
        'MAPPERKIT_CACHE_ENABLED': 'false',
        'UNRELATED_VARIABLE': 'ignored',
    })

    settings = MapperSettings()

    assert settings.database_id == 'postgres'
    assert settings.cache_enabled is False


def test_explicit_settings_override_environment(mocker: 'MockerFixture') -> None:
    """Prefer values passed explicitly."""
    mocker.patch.dict(os.environ, {'MAPPERKIT_DATABASE_ID': 'postgres'})

    assert MapperSettings(database_id='mysql').database_id == 'mysql'


def test_settings_are_frozen(settings: MapperSettings) -> None:
    """Refuse changes to resolved settings."""
    with pytest.raises(pydantic.ValidationError):
        settings.database_id = 'postgres'  # type: ignore[misc]


def test_schema_model_forbids_extra_fields() -> None:
    """Reject unknown fields of built fragments."""
    class Fragment(SchemaModel):
        id: str

    with pytest.raises(pydantic.ValidationError, match='Extra inputs are not permitted'):
        Fragment(id='app.users.userMap', typo=True)  # type: ignore[call-arg]


def test_row_bounds_defaults() -> None:
    """Select every row by default."""
    bounds = RowBounds()

    assert bounds.offset == 0
    assert bounds.limit == maxsize


@pytest.mark.parametrize('values', (
    pytest.param({'offset': -1}, id='negative offset'),
    pytest.param({'limit': -5}, id='negative limit'),
))
def test_invalid_row_bounds(values: dict[str, int]) -> None:
    """Reject negative offsets and limits."""
    with pytest.raises(pydantic.ValidationError):
        RowBounds(**values)
