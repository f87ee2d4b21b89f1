"""Operations endpoints: health checks and Prometheus metrics."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

import asyncpg
from fastapi import APIRouter, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from redis.exceptions import RedisError

from studio.domain.errors import TransientStoreError
from studio.infra import postgres
from studio.infra.redis import redis_client

router = APIRouter(prefix="", tags=["ops"])

LOGGER = logging.getLogger(__name__)


async def _postgres_status(timeout: float = 0.3) -> Dict[str, Any]:
	try:
		pool = await postgres.get_pool_or_none()
	except TransientStoreError as exc:
		LOGGER.warning("Postgres pool unavailable", exc_info=True)
		return {"ok": False, "error": exc.code}
	if pool is None:
		return {"ok": True, "mode": "memory"}
	try:
		async with pool.acquire() as conn:
			await asyncio.wait_for(conn.execute("SELECT 1"), timeout=timeout)
	except (*postgres.TRANSIENT_ERRORS, asyncpg.PostgresError) as exc:
		LOGGER.warning("Postgres readiness query failed", exc_info=True)
		return {"ok": False, "error": type(exc).__name__}
	return {"ok": True, "mode": "postgres"}


async def _redis_status(timeout: float = 0.2) -> Dict[str, Any]:
	try:
		await asyncio.wait_for(redis_client.ping(), timeout=timeout)
	except (RedisError, OSError, asyncio.TimeoutError) as exc:
		LOGGER.warning("Redis readiness check failed", exc_info=True)
		return {"ok": False, "error": type(exc).__name__}
	return {"ok": True}


@router.get("/health/live")
async def health_live() -> dict[str, str]:
	return {"status": "ok"}


@router.get("/health/ready")
async def health_ready() -> Response:
	checks = {"postgres": await _postgres_status(), "redis": await _redis_status()}
	ready = all(check["ok"] for check in checks.values())
	return JSONResponse(
		content={"status": "ok" if ready else "degraded", "checks": checks},
		status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
	)


@router.get("/metrics")
async def prometheus_metrics() -> Response:
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
