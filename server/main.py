"""FastAPI WebSocket server for synchronized card rooms."""

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from config import config
from handlers import HANDLERS, ConnectionContext, make_state_pusher
from logging_config import setup_logging, room_id_var, player_id_var
from reconciliation import get_strategy
from routers.health import router as health_router, set_health_dependencies
from routers.rooms import router as rooms_router, set_room_store
from services.card_session import CardSyncSession
from stores.room_store import RoomStore

# Configure logging based on environment
setup_logging(
    level=config.LOG_LEVEL,
    environment=config.ENVIRONMENT,
)
logger = logging.getLogger(__name__)


# Initialized in lifespan
_redis_client: Optional[redis.Redis] = None

# Sessions currently open on this process (for metrics and shutdown)
_sessions: set[CardSyncSession] = set()


async def _init_redis():
    """Initialize Redis client."""
    global _redis_client
    try:
        _redis_client = redis.from_url(config.REDIS_URL, decode_responses=False)
        await _redis_client.ping()
        logger.info("Redis client connected")
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        _redis_client = None


async def _shutdown_services():
    """Close every open session, then the Redis client."""
    for session in list(_sessions):
        await session.close()
    _sessions.clear()
    logger.info("All card sync sessions closed")

    if _redis_client:
        await _redis_client.close()
        logger.info("Redis connection closed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for async service initialization."""
    # Fail fast on a misconfigured strategy name
    get_strategy(config.RECONCILIATION_STRATEGY)

    if config.REDIS_URL:
        await _init_redis()

    set_room_store(RoomStore(_redis_client) if _redis_client else None)
    set_health_dependencies(
        redis_client=_redis_client,
        sessions=_sessions,
    )

    logger.info(
        f"Card sync server started (environment={config.ENVIRONMENT}, "
        f"strategy={config.RECONCILIATION_STRATEGY})"
    )

    yield

    logger.info("Shutdown initiated...")
    await _shutdown_services()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Card Sync Server",
    debug=config.DEBUG,
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(rooms_router)
app.include_router(health_router)


@app.websocket("/ws/cards/{room_id}")
async def websocket_endpoint(websocket: WebSocket, room_id: str):
    await websocket.accept()

    if _redis_client is None:
        await websocket.send_json({"type": "error", "message": "Card sync unavailable"})
        await websocket.close(code=1011, reason="Redis not configured")
        return

    connection_id = str(uuid.uuid4())
    player_id = websocket.query_params.get("player_id") or connection_id
    room_id_var.set(room_id)
    player_id_var.set(player_id)

    session = CardSyncSession(
        _redis_client,
        room_id,
        player_id,
        strategy=get_strategy(config.RECONCILIATION_STRATEGY),
        on_state_change=make_state_pusher(websocket),
    )
    ctx = ConnectionContext(
        websocket=websocket,
        connection_id=connection_id,
        player_id=player_id,
        room_id=room_id,
        session=session,
    )

    _sessions.add(session)
    try:
        async with session:
            await websocket.send_json({
                "type": "joined",
                "room_id": room_id,
                "player_id": player_id,
                "initialized": session.is_initialized,
            })
            while True:
                data = await websocket.receive_json()
                if not isinstance(data, dict):
                    continue
                handler = HANDLERS.get(data.get("type"))
                if handler:
                    await handler(data, ctx)
    except WebSocketDisconnect:
        logger.debug(f"WebSocket disconnected ({connection_id})")
    finally:
        _sessions.discard(session)


def run():
    """Run the server using uvicorn."""
    import uvicorn

    logger.info(f"Starting card sync server on {config.HOST}:{config.PORT}")
    logger.info(f"Debug mode: {config.DEBUG}")

    uvicorn.run(
        "main:app",
        host=config.HOST,
        port=config.PORT,
        reload=config.DEBUG,
        log_level=config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
