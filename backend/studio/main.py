"""ASGI entrypoint: FastAPI app plus the Socket.IO server."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import asyncpg
import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from studio.api import members, me, ops, reservations, schedule, stats
from studio.api.errors import install_error_handlers
from studio.container import get_container
from studio.domain.notifications.sockets import StaffNamespace
from studio.infra import postgres
from studio.infra.schema import ensure_schema
from studio.obs import init as obs_init
from studio.settings import settings

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	try:
		pool = await postgres.init_pool()
		await ensure_schema(pool)
	except (*postgres.TRANSIENT_ERRORS, asyncpg.PostgresError):
		if settings.is_prod():
			raise
		log.warning("postgres unavailable, using in-memory store", exc_info=True)
		postgres.use_memory_store()
	container = get_container()
	await container.feed.start()
	try:
		yield
	finally:
		await container.feed.stop()
		container.bus.close()
		await postgres.close_pool()


app = FastAPI(title="Studio Scheduling API", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.cors_allow_origins)
if not allow_origins:
	allow_origins = ["http://localhost:5173"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

# Use the same allowed origins for Socket.IO as for the REST API
sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
sio.register_namespace(StaffNamespace())
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)
obs_init(app)

app.include_router(schedule.router)
app.include_router(reservations.router)
app.include_router(members.router)
app.include_router(me.router)
app.include_router(stats.router)
app.include_router(ops.router)
