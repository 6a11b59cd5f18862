# Overview: Row locking and compare-and-set helpers shared by the order and sale services.

from __future__ import annotations


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def conditional_update(query, values: dict) -> int:
    """
    Compare-and-set: apply values to the rows matched by query.

    The guard lives in the query's filter (e.g. status == pending), so the
    check and the write happen in one UPDATE statement. Returns the number of
    rows changed; 0 means the guard no longer held. Does not commit.
    """
    return query.update(values, synchronize_session=False)
