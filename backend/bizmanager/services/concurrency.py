# Overview: Locking and write-transaction helpers shared by the order and delivery paths.

from __future__ import annotations

from sqlalchemy import text

from ..extensions import db


def lock_for_update(query):
    """
    Row-level lock on the rows `query` selects.

    SQLite renders no FOR UPDATE clause; begin_write() serializes writers there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """Open the write transaction up front (SQLite: BEGIN IMMEDIATE)."""
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))

