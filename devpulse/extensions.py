"""Extension instances shared across the package, bound in ``create_app``."""
from sqlite3 import Connection as SQLite3Connection

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event

db = SQLAlchemy()


def enforce_sqlite_foreign_keys(engine) -> None:
    """Switch on FK enforcement per SQLite connection.

    Clients, projects, tasks and invoices rely on ``ON DELETE CASCADE`` /
    ``SET NULL`` when an account or client is removed.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - engine hook
        if isinstance(dbapi_connection, SQLite3Connection):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()
