import pathlib
import sqlite3

from alembic import command
from alembic.config import Config
from sqlalchemy import URL, Connection, Engine, create_engine, event, text
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from lendgraph.config import settings
from lendgraph.database.models import Base
from lendgraph.exceptions.database import BackupExists
from lendgraph.logging import logger


def backup_sqlite_database(db_path: pathlib.Path) -> None:
    assert db_path.exists()

    backup_path = pathlib.Path(db_path).with_suffix(db_path.suffix + ".bak")
    if backup_path.exists():
        raise BackupExists(path=backup_path)

    engine = create_engine(
        f"sqlite:///{db_path.absolute()}",
    )
    with engine.connect() as connection:
        connection.execute(
            text("PRAGMA wal_checkpoint(FULL);"),
        )

    with sqlite3.connect(db_path) as src, sqlite3.connect(backup_path) as dest:
        src.backup(target=dest)
    logger.info(f"Backed up SQLite database to {backup_path}")


def create_new_sqlite_database(db_path: pathlib.Path) -> None:
    engine = create_engine(
        f"sqlite:///{db_path.absolute()}",
    )
    with engine.connect() as connection:
        assert (
            connection.execute(
                text("PRAGMA journal_mode=WAL;"),
            ).scalar()
            == "wal"
        )
        connection.execute(
            text("PRAGMA auto_vacuum=FULL;"),
        )

        Base.metadata.create_all(bind=engine)
        connection.execute(
            text("VACUUM;"),
        )

        logger.info(f"Initialized new SQLite database at {db_path}")
        command.stamp(get_alembic_config(db_path), "head")


def compact_sqlite_database(db_path: pathlib.Path) -> None:
    engine = create_engine(
        f"sqlite:///{db_path.absolute()}",
    )
    with engine.connect() as connection:
        connection.execute(
            text("VACUUM;"),
        )
        logger.info(f"Compacted SQLite database at {db_path}")


def upgrade_existing_sqlite_database(db_path: pathlib.Path | None = None) -> None:
    command.upgrade(get_alembic_config(db_path), "head")
    logger.info("Updated existing SQLite database.")


def enable_sqlite_savepoints(engine: Engine) -> Engine:
    """
    Let SQLAlchemy control transaction boundaries on a pysqlite engine.

    The sqlite3 module defers BEGIN until the first data-modifying statement, so a SAVEPOINT issued
    at the start of a transaction would open the transaction itself and its RELEASE would commit.
    """

    @event.listens_for(engine, "connect")
    def _disable_implicit_begin(dbapi_connection: sqlite3.Connection, _: object) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection: Connection) -> None:
        connection.exec_driver_sql("BEGIN")

    return engine


def get_scoped_sqlite_session(database_path: pathlib.Path) -> scoped_session[Session]:
    return scoped_session(
        session_factory=sessionmaker(
            bind=enable_sqlite_savepoints(
                create_engine(
                    URL.create(
                        drivername="sqlite",
                        database=str(database_path.absolute()),
                    )
                )
            )
        )
    )


def get_alembic_config(db_path: pathlib.Path | None = None) -> Config:
    if db_path is None:
        db_path = settings.database.path

    cfg = Config()
    cfg.set_main_option("sqlalchemy.url", f"sqlite:///{db_path.absolute()}")
    cfg.set_main_option("script_location", "lendgraph:migrations")

    return cfg
