import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from catfe_tv.api import guest_sessions, photos, playlists, polls, screens, settings, time_slots, webhooks
from catfe_tv.db import Base, SessionLocal, engine, ensure_sqlite_schema
from catfe_tv.services.clock import CAFE_TIMEZONE, local_now
from catfe_tv.services.countdown import REMINDER_WINDOW_MINUTES, session_label, time_status
from catfe_tv.services.guest_sessions import needing_reminder
from catfe_tv.services.realtime import hub, parse_topics
from catfe_tv.services.storage import STORAGE_DIR, ensure_storage

logger = logging.getLogger(__name__)

REMINDER_SWEEP_SEC = int(os.getenv("CATFE_REMINDER_SWEEP_SEC", "10"))
QUIET_ACCESS_LOG = os.getenv("CATFE_QUIET_ACCESS_LOG", "1").strip().lower() in {"1", "true", "yes", "on"}
QUIET_WEBSOCKET_LOG = os.getenv("CATFE_QUIET_WEBSOCKET_LOG", "1").strip().lower() in {"1", "true", "yes", "on"}

if QUIET_ACCESS_LOG:
    # Keep warning/error lines, suppress normal access noise (200/201 etc).
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

if QUIET_WEBSOCKET_LOG:
    logging.getLogger("websockets").setLevel(logging.CRITICAL)
    logging.getLogger("uvicorn.protocols.websockets").setLevel(logging.CRITICAL)

_reminder_task: asyncio.Task | None = None
# (session id, expires_at) pairs already announced; extending a session re-arms it.
_announced: set[tuple[int, datetime]] = set()


def collect_reminders(now: datetime) -> list[dict]:
    """Sessions that just entered the reminder window and were not announced yet."""
    db = SessionLocal()
    try:
        due = needing_reminder(db, now)
    finally:
        db.close()

    fresh: list[dict] = []
    for session in due:
        key = (session.id, session.expires_at)
        if session.reminder_shown or key in _announced:
            continue
        _announced.add(key)
        fresh.append(
            {
                "session_id": session.id,
                "guest_name": session.guest_name,
                "session_label": session_label(session.duration),
                "expires_at": session.expires_at.isoformat(),
                "time_status": time_status(session.expires_at, now, REMINDER_WINDOW_MINUTES).to_dict(),
            }
        )
    # forget sessions that left the window so the set stays small
    live = {(session.id, session.expires_at) for session in due}
    _announced.intersection_update(live)
    return fresh


async def _reminder_watcher() -> None:
    while True:
        await asyncio.sleep(REMINDER_SWEEP_SEC)
        try:
            reminders = collect_reminders(local_now())
        except Exception:
            logger.exception("Reminder sweep failed")
            continue
        await hub.publish_reminders(reminders)


@asynccontextmanager
async def lifespan(_: FastAPI):
    global _reminder_task
    if _reminder_task is None or _reminder_task.done():
        _reminder_task = asyncio.create_task(_reminder_watcher())
    try:
        yield
    finally:
        if _reminder_task is not None:
            _reminder_task.cancel()
            try:
                await _reminder_task
            except asyncio.CancelledError:
                pass
            _reminder_task = None


Base.metadata.create_all(bind=engine)
ensure_sqlite_schema()
ensure_storage()

app = FastAPI(title="Catfé TV", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def root():
    return {
        "ok": True,
        "service": "catfe-tv-api",
        "time_utc": datetime.now(timezone.utc).isoformat(),
        "docs": "/docs",
    }


@app.get("/healthz")
def healthz():
    return {
        "ok": True,
        "timezone": CAFE_TIMEZONE or "local",
        "local_time": local_now().isoformat(),
        "revision": hub.revision,
        "realtime_clients": hub.client_count,
    }


@app.websocket("/ws/updates")
async def ws_updates(websocket: WebSocket):
    await hub.connect(websocket, parse_topics(websocket.query_params.get("topics")))
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        await hub.disconnect(websocket)
    except Exception:
        await hub.disconnect(websocket)


@app.middleware("http")
async def realtime_mutation_middleware(request: Request, call_next):
    response = await call_next(request)
    if response.status_code < 400:
        await hub.publish_change(request.url.path, request.method)
    return response


app.include_router(screens.router)
app.include_router(settings.router)
app.include_router(playlists.router)
app.include_router(time_slots.router)
app.include_router(guest_sessions.router)
app.include_router(polls.router)
app.include_router(photos.router)
app.include_router(webhooks.router)

app.mount("/storage", StaticFiles(directory=STORAGE_DIR), name="storage")
