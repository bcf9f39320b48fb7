"""Flask extension instances shared across the application."""
from __future__ import annotations

import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


db = SQLAlchemy(model_class=Base)


def _unicode_lower(value):
    if isinstance(value, str):
        return value.lower()
    return value


@event.listens_for(Engine, "connect")
def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:  # pragma: no cover - SQLAlchemy hook
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        # SQLite's built-in lower() only folds ASCII; ILIKE compiles to lower() on this backend.
        dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)
