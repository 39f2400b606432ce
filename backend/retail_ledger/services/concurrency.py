# Overview: Transaction and row-locking helpers for ledger writes.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import text


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; write_transaction() takes the
    database write lock up front there instead.
    """
    return query.with_for_update()


@contextmanager
def write_transaction(session):
    """
    One all-or-nothing write transaction on `session`.

    Commits when the block exits normally; any exception rolls back every
    statement issued inside the block and propagates unchanged.

    No retry: a failed write is reported to the caller, who decides whether
    to resubmit. Writes carry no idempotency key, so replaying one is unsafe.
    """
    try:
        if session.get_bind().dialect.name == "sqlite":
            # SQLite ignores row locks; take the write lock before the first read
            # so two writers cannot both read and then deadlock upgrading.
            session.execute(text("BEGIN IMMEDIATE"))
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
