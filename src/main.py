import contextlib
import logging

import pendulum
import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from core.config import settings
from services.bus import RedisBus
from services.live_relay import LiveRelay

logger = logging.getLogger(__name__)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    bus = RedisBus.from_url(settings.REDIS_URL)
    app.state.relay = LiveRelay(bus)
    logger.info("Live relay connected to bus")
    try:
        yield
    finally:
        await bus.close()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Set all CORS enabled origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def exception_handler(request: Request, exc: Exception):
    return JSONResponse(
        status_code=500,
        content={"error": str(exc)},
    )


@app.get("/health")
async def health():
    return {"status": "ok", "timestamp": pendulum.now("UTC").to_iso8601_string()}


# WebSocket endpoint for real-time deployment updates
@app.websocket("/live")
async def live(websocket: WebSocket):
    relay: LiveRelay = websocket.app.state.relay
    await relay.serve(websocket)


if __name__ == "__main__":
    from log import configure_logging

    configure_logging(app="live_relay")
    uvicorn.run(app, host="0.0.0.0", port=settings.API_PORT)
