"""
Pooled aiosqlite connections for the invoice database.

Connections run in autocommit mode; writes go through ``transaction()``,
which opens BEGIN IMMEDIATE so concurrent writers queue on the database
lock instead of failing halfway through.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from src.config import get_logger, get_settings

logger = get_logger(__name__)

_CONNECTION_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA foreign_keys=ON",
)


async def _run_to_completion(conn: aiosqlite.Connection, sql: str) -> None:
    """
    Execute ``sql`` and wait for it even if the caller is cancelled meanwhile.

    aiosqlite runs statements on a worker thread, so cancelling the awaiting
    task does not stop one that was already queued. Waiting for it keeps
    ``conn.in_transaction`` truthful before the cancellation propagates.
    """
    statement = asyncio.ensure_future(conn.execute(sql))
    try:
        await asyncio.shield(statement)
    except asyncio.CancelledError:
        await asyncio.wait({statement})
        if not statement.cancelled() and statement.exception() is not None:
            logger.warning(
                "sqlite_statement_failed_after_cancel",
                sql=sql,
                error=str(statement.exception()),
            )
        raise


class ConnectionPool:
    """Fixed set of connections handed out through an asyncio queue."""

    def __init__(self, db_path: Path, pool_size: int = 5, busy_timeout: int = 30000):
        self.db_path = Path(db_path)
        self.pool_size = max(1, pool_size)
        self.busy_timeout = busy_timeout

        self._idle: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue(maxsize=self.pool_size)
        self._connections: list[aiosqlite.Connection] = []
        self._initialized = False
        self._lock = asyncio.Lock()

    @property
    def available(self) -> int:
        """Connections currently idle in the pool."""
        return self._idle.qsize()

    async def _open(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(self.db_path, isolation_level=None)
        await conn.execute(f"PRAGMA busy_timeout={self.busy_timeout}")
        for pragma in _CONNECTION_PRAGMAS:
            await conn.execute(pragma)
        conn.row_factory = aiosqlite.Row
        return conn

    async def initialize(self) -> None:
        async with self._lock:
            if self._initialized:
                return
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connections = [await self._open() for _ in range(self.pool_size)]
            for conn in self._connections:
                self._idle.put_nowait(conn)
            self._initialized = True
        logger.info("sqlite_pool_opened", db_path=str(self.db_path), size=self.pool_size)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Borrow a connection; it returns to the pool when the block exits.

        Usage:
            async with pool.acquire() as conn:
                await conn.execute(...)
        """
        if not self._initialized:
            await self.initialize()
        conn = await self._idle.get()
        try:
            yield conn
        finally:
            try:
                if conn.in_transaction:
                    logger.warning("sqlite_transaction_left_open", db_path=str(self.db_path))
                    await _run_to_completion(conn, "ROLLBACK")
            finally:
                self._idle.put_nowait(conn)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Borrow a connection inside a write transaction.

        Commits when the block completes. Any exception, cancellation
        included, rolls back before the connection is returned. BEGIN and
        COMMIT always finish once sent, so a cancelled caller learns the
        true state: after a cancelled COMMIT the rows are durable.
        """
        async with self.acquire() as conn:
            await _run_to_completion(conn, "BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    await _run_to_completion(conn, "ROLLBACK")
                raise
            await _run_to_completion(conn, "COMMIT")

    async def ping(self) -> bool:
        """True when the database answers a trivial query."""
        async with self.acquire() as conn:
            cursor = await conn.execute("SELECT 1")
            row = await cursor.fetchone()
        return row is not None and row[0] == 1

    async def close(self) -> None:
        async with self._lock:
            while not self._idle.empty():
                self._idle.get_nowait()
            for conn in self._connections:
                await conn.close()
            self._connections = []
            self._initialized = False
        logger.info("sqlite_pool_closed", db_path=str(self.db_path))


_pool: ConnectionPool | None = None


async def get_pool() -> ConnectionPool:
    """Process-wide pool over the configured database, opened on first use."""
    global _pool
    if _pool is None:
        storage = get_settings().storage
        _pool = ConnectionPool(
            db_path=storage.db_path,
            pool_size=storage.pool_size,
            busy_timeout=storage.busy_timeout,
        )
        await _pool.initialize()
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


@asynccontextmanager
async def get_connection() -> AsyncIterator[aiosqlite.Connection]:
    """Read connection from the global pool."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        yield conn


@asynccontextmanager
async def get_transaction() -> AsyncIterator[aiosqlite.Connection]:
    """Write transaction on the global pool."""
    pool = await get_pool()
    async with pool.transaction() as conn:
        yield conn
