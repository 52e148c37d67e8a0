# src/wallet_sso/db/errors.py
"""Exceptions raised by the pooled persistence layer."""

from __future__ import annotations


class PoolError(RuntimeError):
    """Base class for connection pool failures."""

    reason = "pool_error"


class AcquireTimeoutError(PoolError):
    """No connection became available within the acquire timeout."""

    reason = "pool_acquire_timeout"


class PoolShuttingDownError(PoolError):
    """The pool is shutting down and refuses new acquisitions."""

    reason = "pool_shutting_down"


class PersistenceError(RuntimeError):
    """Opaque I/O failure while talking to the backing store."""

    reason = "persistence_error"
