from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from lendgraph.config import settings
from lendgraph.database.operations import get_alembic_config, get_scoped_sqlite_session
from lendgraph.logging import logger
from lendgraph.version import __version__

db_session = get_scoped_sqlite_session(database_path=settings.database.path)


def get_database_versions() -> tuple[str | None, str | None]:
    """
    Get the (current, latest) schema revisions for the configured database.
    """

    with db_session() as session:
        current_database_version = MigrationContext.configure(
            connection=session.connection()
        ).get_current_revision()
    latest_database_version = ScriptDirectory.from_config(
        config=get_alembic_config()
    ).get_current_head()
    return current_database_version, latest_database_version


def check_database_version() -> None:
    current_database_version, latest_database_version = get_database_versions()
    if current_database_version is not None and current_database_version != latest_database_version:
        logger.warning(
            f"The current database revision ({current_database_version}) does not match the latest "
            f"({latest_database_version}) for {__package__} version {__version__}!"
            "\n"
            "Database-related features may raise exceptions if you continue. Perform database "
            "migrations with 'lendgraph database upgrade'."
        )
