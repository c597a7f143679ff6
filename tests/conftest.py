"""Tests configurations and fixtures."""

from typing import TYPE_CHECKING

import pytest

from mapperkit.core import Configuration, ConfigurationLoader
from mapperkit.models import MapperSettings
from mapperkit.reflection import DescriptorFactory

if TYPE_CHECKING:
    from collections.abc import Callable


@pytest.fixture
def settings() -> MapperSettings:
    """Provide settings isolated from `MAPPERKIT_*` environment variables."""
    return MapperSettings(
        use_actual_param_name=True,
        map_underscore_to_camel_case=False,
        lazy_loading_enabled=False,
        database_id=None,
        cache_enabled=True,
        reflector_cache_enabled=True,
    )


@pytest.fixture
def factory() -> DescriptorFactory:
    """Provide a descriptor factory with an empty cache."""
    return DescriptorFactory()


@pytest.fixture
def configuration(settings: MapperSettings) -> Configuration:
    """Provide an empty configuration."""
    return Configuration(settings)


@pytest.fixture
def loader(configuration: Configuration) -> ConfigurationLoader:
    """Provide a loader over the empty configuration."""
    return ConfigurationLoader(configuration)


@pytest.fixture
def make_configuration() -> 'Callable[..., Configuration]':
    """Provide a factory of configurations with custom settings.

    The returned callable accepts any `MapperSettings` field as a
    keyword argument. Unspecified fields use their defaults rather than
    environment values.
    """
    def make(**overrides: object) -> Configuration:
        """Build a configuration with explicit settings."""
        values = {
            'use_actual_param_name': True,
            'map_underscore_to_camel_case': False,
            'lazy_loading_enabled': False,
            'database_id': None,
            'cache_enabled': True,
            'reflector_cache_enabled': True,
            **overrides,
        }
        return Configuration(MapperSettings(**values))

    return make
