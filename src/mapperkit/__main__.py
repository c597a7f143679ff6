"""CLI utilities for checking mapper documents and inspecting types.

`check` loads mapper documents into one configuration and reports
malformed or unresolved fragments. `describe` prints the readable and
writable properties discovered on a class.
"""

import logging
from pathlib import Path

from click import Context, argument, echo, group, option, pass_context
from click import Path as PathParam
from yaml import dump

from mapperkit.core import Configuration, ConfigurationLoader
from mapperkit.errors import MapperError
from mapperkit.models import MapperSettings

MapperFilepath = PathParam(
    exists=True,
    dir_okay=False,
    readable=True,
    path_type=Path,
)


@group(help='Command-line utilities for mapper documents.')
@option('-v', '--verbose', is_flag=True, help='Log resolution passes to standard error.')
def cli(verbose: bool) -> None:
    """Root CLI group for mapperkit tools."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(name)s: %(message)s')


@cli.command(
    name='check',
    help='Load mapper documents and report malformed or unresolved fragments.',
)
@option(
    '-d', '--database-id',
    default=None,
    help='Identifier of the database vendor used to select statements.',
)
@option(
    '-w', '--workers',
    type=int,
    default=1,
    show_default=True,
    help='Number of documents loaded concurrently.',
)
@argument('files', nargs=-1, required=True, type=MapperFilepath)
@pass_context
def check(ctx: Context, files: tuple[Path, ...], database_id: str | None, workers: int) -> None:
    """Load documents and print a summary.

    Args:
        ctx: Click context used to set the exit code.
        files: Mapper documents to load.
        database_id: Database vendor identifier.
        workers: Number of documents loaded concurrently.
    """
    settings = MapperSettings(database_id=database_id)
    loader = ConfigurationLoader(Configuration(settings))

    try:
        loader.load(files, workers=workers)
        configuration = loader.finish()

    except MapperError as error:
        echo(str(error), err=True)
        ctx.exit(1)

    echo(
        f'{len(configuration.loaded_resources)} document(s): '
        f'{len(configuration.result_maps)} result map(s), '
        f'{len(configuration.sql_fragments)} SQL fragment(s), '
        f'{len(configuration.statements)} statement(s), '
        f'{len(configuration.caches)} cache(s)',
    )


@cli.command(
    name='describe',
    help='Print the properties discovered on a class as YAML.',
)
@argument('type_name', metavar='TYPE')
@pass_context
def describe(ctx: Context, type_name: str) -> None:
    """Print readable and writable properties of a class.

    Args:
        ctx: Click context used to set the exit code.
        type_name: Type alias or dotted `module.Class` path.
    """
    configuration = Configuration()

    try:
        type_ = configuration.type_aliases.resolve(type_name) or object
        metadata = configuration.metadata_for(type_)

    except MapperError as error:
        echo(str(error), err=True)
        ctx.exit(1)

    content = {
        'type': f'{type_.__module__}.{type_.__qualname__}',
        'default_constructor': metadata.has_default_constructor(),
        'readable': {
            name: metadata.read_accessor(name).value_type.__qualname__
            for name in metadata.getter_names()
        },
        'writable': {
            name: metadata.write_accessor(name).value_type.__qualname__
            for name in metadata.setter_names()
        },
    }

    echo(dump(content, sort_keys=False, indent=2), nl=False)


if __name__ == '__main__':
    cli()
