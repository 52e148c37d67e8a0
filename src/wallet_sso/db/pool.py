# src/wallet_sso/db/pool.py
"""Bounded pool of persistent-storage connections.

The pool owns every connection to the backing store. It opens connections
lazily up to `max_size`, queues excess demand in FIFO order with a per-waiter
acquire timeout, hands released connections straight to the next waiter, and
reaps connections that sat idle longer than `idle_timeout` without ever
dropping below `min_size`. When an open fails while callers are queued, the
pool opens again on behalf of the oldest waiter and passes that waiter the
error if the retry fails too.

The SQLAlchemy engine behind it is created with `NullPool`, so this class is
the only pooling layer in the process.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from wallet_sso.core.tasks import PeriodicTask
from wallet_sso.db.errors import AcquireTimeoutError, PersistenceError, PoolShuttingDownError
from wallet_sso.db.time import Clock, SystemClock

logger = logging.getLogger(__name__)

Connector = Callable[[], Awaitable[Any]]
Closer = Callable[[Any], Awaitable[None]]


@dataclass(frozen=True)
class PoolConfig:
    """Sizing and timing parameters. Durations are in milliseconds."""

    min_size: int = 2
    max_size: int = 10
    acquire_timeout_ms: int = 30_000
    idle_timeout_ms: int = 300_000
    reap_interval_ms: int = 1_000

    def __post_init__(self) -> None:
        if self.max_size < 1:
            raise ValueError("max_size must be at least 1")
        if not 0 <= self.min_size <= self.max_size:
            raise ValueError("min_size must be between 0 and max_size")


@dataclass
class PooledConnection:
    """A reusable handle to the backing store and its bookkeeping."""

    handle: Any
    last_used: int
    in_use: bool = False


@dataclass(frozen=True)
class PoolStats:
    total: int
    in_use: int
    idle: int
    waiting: int
    min: int
    max: int


class ConnectionPool:
    """Async connection pool with FIFO admission control."""

    def __init__(
        self,
        engine: AsyncEngine | None,
        config: PoolConfig | None = None,
        *,
        clock: Clock | None = None,
        connector: Connector | None = None,
        closer: Closer | None = None,
    ) -> None:
        """Create an unopened pool.

        Args:
            engine: Async engine used to open connections. May be None when a
                custom `connector` is supplied.
            config: Pool sizing and timing parameters.
            clock: Time source for idle bookkeeping.
            connector: Optional coroutine factory that opens a raw handle.
            closer: Optional coroutine that closes a raw handle.
        """
        if engine is None and connector is None:
            raise ValueError("either an engine or a connector is required")
        self.engine = engine
        self.config = config or PoolConfig()
        self._clock = clock or SystemClock()
        self._connector = connector or self._open_engine_connection
        self._closer = closer or self._close_engine_connection
        self._connections: list[PooledConnection] = []
        self._by_handle: dict[int, PooledConnection] = {}
        self._waiting: deque[asyncio.Future[Any]] = deque()
        self._opening = 0
        self._openers: set[asyncio.Task[None]] = set()
        self._shutting_down = False
        self._reaper = PeriodicTask(
            "connection-pool-reaper",
            self.config.reap_interval_ms / 1000,
            self._reap_async,
        )

    async def _open_engine_connection(self) -> AsyncConnection:
        if self.engine is None:
            raise PersistenceError("No database engine configured")
        return await self.engine.connect()

    @staticmethod
    async def _close_engine_connection(handle: AsyncConnection) -> None:
        await handle.close()

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    async def initialize(self) -> None:
        """Open `min_size` connections eagerly and start the reaper."""
        for _ in range(self.config.min_size):
            await self._create_connection()
        await self._reaper.start()
        logger.info(
            "Database pool initialized (min=%d, max=%d)",
            self.config.min_size,
            self.config.max_size,
        )

    async def _create_connection(self) -> PooledConnection:
        self._opening += 1
        try:
            handle = await self._connector()
        except Exception as exc:
            logger.error("Failed to create database connection: %s", exc)
            # The failed open may have been what a queued caller was counting on.
            self._schedule_open_for_waiter()
            if isinstance(exc, SQLAlchemyError):
                raise PersistenceError(str(exc)) from exc
            raise
        finally:
            self._opening -= 1
        connection = PooledConnection(handle=handle, last_used=self._clock.now_ms())
        self._connections.append(connection)
        self._by_handle[id(handle)] = connection
        return connection

    def _has_capacity(self) -> bool:
        return len(self._connections) + self._opening < self.config.max_size

    def _has_live_waiter(self) -> bool:
        return any(not waiter.done() for waiter in self._waiting)

    def _pop_live_waiter(self) -> asyncio.Future[Any] | None:
        while self._waiting:
            waiter = self._waiting.popleft()
            if not waiter.done():
                return waiter
        return None

    def _schedule_open_for_waiter(self) -> None:
        if self._shutting_down or not self._has_live_waiter():
            return
        task = asyncio.get_running_loop().create_task(self._open_for_waiter())
        self._openers.add(task)
        task.add_done_callback(self._openers.discard)

    async def _open_for_waiter(self) -> None:
        """Open a connection for the oldest waiter, or pass it the open error."""
        if self._shutting_down or not self._has_capacity() or not self._has_live_waiter():
            return
        try:
            connection = await self._create_connection()
        except Exception as exc:
            waiter = self._pop_live_waiter()
            if waiter is not None:
                waiter.set_exception(exc)
            return
        if self._shutting_down:
            await self._discard(connection)
            return
        self._hand_off(connection)

    def _hand_off(self, connection: PooledConnection) -> bool:
        waiter = self._pop_live_waiter()
        if waiter is None:
            return False
        self._checkout(connection)
        waiter.set_result(connection.handle)
        return True

    async def get_connection(self) -> Any:
        """Acquire a connection handle, waiting in FIFO order if necessary.

        Raises:
            PoolShuttingDownError: If the pool has been shut down.
            AcquireTimeoutError: If no connection was handed over in time.
        """
        if self._shutting_down:
            raise PoolShuttingDownError("Database pool is shutting down")

        for connection in self._connections:
            if not connection.in_use:
                return self._checkout(connection)

        if len(self._connections) + self._opening < self.config.max_size:
            connection = await self._create_connection()
            if self._shutting_down:
                await self._discard(connection)
                raise PoolShuttingDownError("Database pool is shutting down")
            return self._checkout(connection)

        return await self._wait_for_connection()

    def _checkout(self, connection: PooledConnection) -> Any:
        connection.in_use = True
        connection.last_used = self._clock.now_ms()
        return connection.handle

    async def _wait_for_connection(self) -> Any:
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[Any] = loop.create_future()
        self._waiting.append(waiter)
        timer = loop.call_later(
            self.config.acquire_timeout_ms / 1000,
            self._expire_waiter,
            waiter,
        )
        try:
            return await waiter
        except asyncio.CancelledError:
            # The connection may have been handed over just before cancellation.
            if waiter.done() and not waiter.cancelled() and waiter.exception() is None:
                self.release_connection(waiter.result())
            self._remove_waiter(waiter)
            raise
        finally:
            timer.cancel()

    def _expire_waiter(self, waiter: asyncio.Future[Any]) -> None:
        if waiter.done():
            return
        self._remove_waiter(waiter)
        waiter.set_exception(AcquireTimeoutError("Database connection timeout"))

    def _remove_waiter(self, waiter: asyncio.Future[Any]) -> None:
        try:
            self._waiting.remove(waiter)
        except ValueError:
            pass

    def release_connection(self, handle: Any) -> None:
        """Return a handle to the pool or pass it directly to the next waiter."""
        connection = self._by_handle.get(id(handle))
        if connection is None or connection.handle is not handle:
            if not self._shutting_down:
                logger.warning("Released a connection that does not belong to this pool")
            return

        connection.in_use = False
        connection.last_used = self._clock.now_ms()
        self._hand_off(connection)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Any]:
        """Yield a pooled handle and release it on every exit path."""
        handle = await self.get_connection()
        try:
            yield handle
        finally:
            await self._reset(handle)
            self.release_connection(handle)

    async def _reset(self, handle: Any) -> None:
        # Reads autobegin a transaction; end it before the handle is reused.
        if isinstance(handle, AsyncConnection) and handle.in_transaction():
            try:
                await handle.rollback()
            except SQLAlchemyError as exc:
                logger.error("Error resetting database connection: %s", exc)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncConnection]:
        """Yield a pooled connection inside a committed-on-success transaction.

        SQLAlchemy failures surface as `PersistenceError`.
        """
        async with self.connection() as conn:
            try:
                async with conn.begin():
                    yield conn
            except SQLAlchemyError as exc:
                raise PersistenceError(str(exc)) from exc

    def reap_idle(self) -> list[PooledConnection]:
        """Detach idle connections older than `idle_timeout` and return them.

        The pool never shrinks below `min_size`. Detached handles still need
        closing; `_reap_async` does that for the background reaper.
        """
        now = self._clock.now_ms()
        idle = [
            conn
            for conn in self._connections
            if not conn.in_use and now - conn.last_used > self.config.idle_timeout_ms
        ]
        removable = max(0, min(len(idle), len(self._connections) - self.config.min_size))
        reaped = idle[:removable]
        for conn in reaped:
            self._connections.remove(conn)
            self._by_handle.pop(id(conn.handle), None)
        if reaped:
            logger.debug(
                "Reaped idle database connections (removed=%d, remaining=%d)",
                len(reaped),
                len(self._connections),
            )
        return reaped

    async def _reap_async(self) -> None:
        for conn in self.reap_idle():
            await self._close_quietly(conn)

    async def _discard(self, connection: PooledConnection) -> None:
        if connection in self._connections:
            self._connections.remove(connection)
        self._by_handle.pop(id(connection.handle), None)
        await self._close_quietly(connection)

    async def _close_quietly(self, connection: PooledConnection) -> None:
        try:
            await self._closer(connection.handle)
        except Exception as exc:
            logger.error("Error closing database connection: %s", exc)

    async def shutdown(self) -> None:
        """Reject waiters, stop the reaper, and close every connection."""
        self._shutting_down = True
        while self._waiting:
            waiter = self._waiting.popleft()
            if not waiter.done():
                waiter.set_exception(PoolShuttingDownError("Database pool shutting down"))

        await self._reaper.stop()
        if self._openers:
            await asyncio.gather(*self._openers, return_exceptions=True)

        connections, self._connections = self._connections, []
        self._by_handle.clear()
        await asyncio.gather(*(self._close_quietly(conn) for conn in connections))
        logger.info("Database pool shutdown complete")

    def stats(self) -> PoolStats:
        in_use = sum(1 for conn in self._connections if conn.in_use)
        return PoolStats(
            total=len(self._connections),
            in_use=in_use,
            idle=len(self._connections) - in_use,
            waiting=sum(1 for waiter in self._waiting if not waiter.done()),
            min=self.config.min_size,
            max=self.config.max_size,
        )
