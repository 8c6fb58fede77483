import click

from lendgraph.version import __version__


@click.group()
@click.version_option(version=__version__)
def cli() -> None: ...


from . import config, database, index  # noqa: F401, E402
