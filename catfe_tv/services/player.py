"""
Headless playlist player.

Mirrors what a TV display does: fetch the active slides and settings, build the
rotation locally, advance on a timer and refresh in the background. The last
good fetch is cached on disk so a display that boots without network still has
something to show.
"""

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Protocol

import httpx
from pydantic import ValidationError

from catfe_tv.schemas.screen import ScreenOut
from catfe_tv.schemas.settings import SettingsOut
from catfe_tv.services.clock import local_now, utc_now
from catfe_tv.services.scheduling import build_playlist, resolve_duration

logger = logging.getLogger(__name__)

API_BASE_URL = os.getenv("CATFE_API_BASE_URL", "http://127.0.0.1:8000").rstrip("/")
# "/playlists/current/screens" follows the scheduled playlist instead of every active slide
PLAYER_SCREENS_PATH = os.getenv("CATFE_PLAYER_SCREENS_PATH", "/screens/active")
PLAYER_CACHE_PATH = os.getenv("CATFE_PLAYER_CACHE", ".catfe-player-cache.json")
PLAYER_TIMEOUT_SEC = float(os.getenv("CATFE_PLAYER_TIMEOUT_SEC", "10"))
ERROR_RETRY_SEC = 10

LOADING = "loading"
READY = "ready"
ERROR = "error"


@dataclass
class PlaylistData:
    slides: list[ScreenOut] = field(default_factory=list)
    settings: SettingsOut = field(default_factory=SettingsOut)

    @classmethod
    def from_json(cls, screens: list[dict[str, Any]], settings: dict[str, Any] | None) -> "PlaylistData":
        """Parse an API or cache payload, dropping slides that fail validation.

        A single bad row must not take the whole rotation down, so each slide
        is checked on its own. Unusable settings fall back to the defaults.
        """
        if not isinstance(screens, list):
            raise ValueError(f"expected a list of screens, got {type(screens).__name__}")
        slides = []
        for item in screens:
            try:
                slides.append(ScreenOut.model_validate(item))
            except ValidationError as exc:
                slide_id = item.get("id") if isinstance(item, dict) else None
                logger.warning("Skipping invalid slide %s: %s", slide_id, exc)
        try:
            parsed_settings = SettingsOut.model_validate(settings or {})
        except ValidationError as exc:
            logger.warning("Invalid display settings, using defaults: %s", exc)
            parsed_settings = SettingsOut()
        return cls(slides=slides, settings=parsed_settings)

    def to_json(self) -> dict[str, Any]:
        return {
            "screens": [slide.model_dump(mode="json") for slide in self.slides],
            "settings": self.settings.model_dump(mode="json"),
        }


class PlaylistSource(Protocol):
    async def fetch(self) -> PlaylistData: ...


class ApiPlaylistSource:
    def __init__(
        self,
        base_url: str = API_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
        screens_path: str = PLAYER_SCREENS_PATH,
    ):
        self.base_url = base_url.rstrip("/")
        self.screens_path = screens_path
        self._transport = transport

    async def fetch(self) -> PlaylistData:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=PLAYER_TIMEOUT_SEC, transport=self._transport
        ) as client:
            screens = await client.get(self.screens_path)
            screens.raise_for_status()
            settings = await client.get("/settings")
            settings.raise_for_status()
        return PlaylistData.from_json(screens.json(), settings.json())


class PlaylistCache:
    """Last successful fetch, stored as a JSON file."""

    def __init__(self, path: str = PLAYER_CACHE_PATH):
        self.path = path

    def save(self, data: PlaylistData) -> None:
        payload = {"saved_at": utc_now().isoformat(), **data.to_json()}
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            logger.warning("Could not write playlist cache %s: %s", self.path, exc)

    def load(self) -> PlaylistData | None:
        try:
            with open(self.path, encoding="utf-8") as f:
                payload = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable playlist cache %s: %s", self.path, exc)
            return None
        try:
            return PlaylistData.from_json(payload.get("screens") or [], payload.get("settings"))
        except (ValueError, AttributeError) as exc:
            logger.warning("Ignoring malformed playlist cache %s: %s", self.path, exc)
            return None


class PlaylistPlayer:
    """Rotation state machine: loading, then ready or error. Pausing is separate.

    At most one advance timer is pending at any time. It is re-armed whenever
    the current index, the current slide's duration or the paused flag
    changes.
    """

    def __init__(
        self,
        source: PlaylistSource,
        cache: PlaylistCache | None = None,
        now: Callable[[], datetime] = local_now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        refresh_sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_change: Callable[["PlaylistPlayer"], None] | None = None,
    ):
        self.source = source
        self.cache = cache
        self._now = now
        self._sleep = sleep
        self._refresh_sleep = refresh_sleep
        self._on_change = on_change

        self.state = LOADING
        self.error: str | None = None
        self.paused = False
        self.is_offline = False
        self.playlist: list[ScreenOut] = []
        self.settings = SettingsOut()
        self.index = 0

        self._advance_task: asyncio.Task | None = None
        self._refresh_task: asyncio.Task | None = None
        self._armed_for: tuple[int, int] | None = None

    @property
    def current(self) -> ScreenOut | None:
        if self.state != READY or not self.playlist:
            return None
        return self.playlist[self.index % len(self.playlist)]

    @property
    def showing_fallback(self) -> bool:
        return self.state == READY and not self.playlist

    @property
    def current_duration(self) -> int | None:
        slide = self.current
        return resolve_duration(slide, self.settings) if slide is not None else None

    @property
    def timer_pending(self) -> bool:
        return self._advance_task is not None and not self._advance_task.done()

    async def start(self) -> None:
        await self.refresh()
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh_loop())

    async def stop(self) -> None:
        self._cancel_advance()
        task, self._refresh_task = self._refresh_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def refresh(self) -> bool:
        """Fetch and rebuild. Returns False when the source failed; never raises."""
        try:
            data = await self.source.fetch()
        except (httpx.HTTPError, ValidationError, ValueError, OSError) as exc:
            self._fetch_failed(exc)
            return False

        self.is_offline = False
        if self.cache is not None:
            self.cache.save(data)
        self._apply(data)
        return True

    def _fetch_failed(self, exc: Exception) -> None:
        logger.warning("Playlist refresh failed: %s", exc)
        if self.state == READY:
            # keep showing what we have
            self.is_offline = True
            return
        cached = self.cache.load() if self.cache is not None else None
        if cached is None:
            self.state = ERROR
            self.error = f"Unable to load playlist: {exc}"
            self._cancel_advance()
            self._notify()
            return
        self.is_offline = True
        self._apply(cached)

    def _apply(self, data: PlaylistData) -> None:
        previous = self.current
        self.settings = data.settings
        self.playlist = build_playlist(data.slides, data.settings, self._now())
        self.state = READY
        self.error = None

        self.index = 0
        if previous is not None:
            for position, slide in enumerate(self.playlist):
                if slide.id == previous.id:
                    self.index = position
                    break

        current = self.current
        if current is None or previous is None or current.id != previous.id:
            self._notify()
        self._rearm_if_changed()

    def next(self) -> None:
        self._move(1)

    def previous(self) -> None:
        self._move(-1)

    def pause(self) -> None:
        if self.paused:
            return
        self.paused = True
        self._cancel_advance()

    def resume(self) -> None:
        if not self.paused:
            return
        self.paused = False
        self._arm()

    def _move(self, delta: int) -> None:
        if self.state != READY or not self.playlist:
            return
        self.index = (self.index + delta) % len(self.playlist)
        self._notify()
        self._arm()

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self)
        except Exception:
            logger.exception("Player change callback failed")

    def _cancel_advance(self) -> None:
        task, self._advance_task = self._advance_task, None
        self._armed_for = None
        if task is not None and not task.done():
            task.cancel()

    def _rearm_if_changed(self) -> None:
        slide = self.current
        key = (slide.id, self.current_duration) if slide is not None else None
        if key is None or key != self._armed_for or not self.timer_pending:
            self._arm()

    def _arm(self) -> None:
        self._cancel_advance()
        slide = self.current
        if slide is None or self.paused:
            return
        duration = self.current_duration
        self._armed_for = (slide.id, duration)
        self._advance_task = asyncio.create_task(self._advance_after(duration))

    async def _advance_after(self, seconds: float) -> None:
        await self._sleep(seconds)
        # Detach first so the rearm below does not cancel this task.
        self._advance_task = None
        self._move(1)

    async def _refresh_loop(self) -> None:
        while True:
            interval = ERROR_RETRY_SEC if self.state == ERROR else self.settings.refresh_interval_seconds
            await self._refresh_sleep(max(1, interval))
            await self.refresh()
