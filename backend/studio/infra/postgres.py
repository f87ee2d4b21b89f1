"""AsyncPG pool management for the backend."""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Awaitable, Callable, Iterator, Optional, TypeVar

import asyncpg

from studio.domain.errors import TransientStoreError
from studio.settings import settings

_pool: Optional[asyncpg.pool.Pool] = None
_memory_only = False

log = logging.getLogger(__name__)

T = TypeVar("T")

# Network level failures that leave the outcome of a read unknown but safe to repeat
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
	asyncpg.PostgresConnectionError,
	asyncpg.InterfaceError,
	asyncpg.CannotConnectNowError,
	OSError,
	asyncio.TimeoutError,
)


async def init_pool() -> asyncpg.pool.Pool:
	global _pool
	if _pool is None:
		# Force 127.0.0.1 instead of localhost to avoid IPv6 issues on Windows
		dsn = settings.postgres_url.replace("localhost", "127.0.0.1")
		_pool = await asyncpg.create_pool(
			dsn=dsn,
			min_size=settings.postgres_min_pool_size,
			max_size=settings.postgres_max_pool_size,
			command_timeout=settings.postgres_command_timeout,
		)
	return _pool


def set_pool(pool: Optional[asyncpg.pool.Pool]) -> None:
	global _pool
	_pool = pool


def use_memory_store(enabled: bool = True) -> None:
	"""Pin repositories to the in-memory store (local dev without Postgres)."""
	global _memory_only
	_memory_only = enabled


async def get_pool() -> asyncpg.pool.Pool:
	if _pool is None:
		try:
			await init_pool()
		except (*TRANSIENT_ERRORS, asyncpg.PostgresError) as exc:
			log.warning("postgres pool could not be created", exc_info=True)
			raise TransientStoreError() from exc
	if _pool is None:
		raise TransientStoreError()
	return _pool


async def get_pool_or_none() -> Optional[asyncpg.pool.Pool]:
	"""Return the pool, or None when the process is pinned to the memory store.

	Only ``use_memory_store`` selects the memory store. A configured database
	that cannot be reached raises TransientStoreError instead of silently
	serving from process memory.
	"""
	if _memory_only:
		return None
	return await get_pool()


async def close_pool() -> None:
	global _pool
	if _pool is not None:
		await _pool.close()
		_pool = None


@contextmanager
def store_errors() -> Iterator[None]:
	"""Translate connection level failures into TransientStoreError."""
	try:
		yield
	except TRANSIENT_ERRORS as exc:
		raise TransientStoreError() from exc


async def retry_read(fn: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
	"""Run a read, retrying on TransientStoreError.

	Only read paths go through here. Writes are never repeated automatically
	since the first attempt may have committed.
	"""
	attempts = max(0, settings.read_retry_attempts)
	for attempt in range(attempts + 1):
		try:
			return await fn(*args, **kwargs)
		except TransientStoreError:
			if attempt >= attempts:
				raise
			log.warning("transient store error on read, retrying", extra={"attempt": attempt + 1})
	raise AssertionError("unreachable")
