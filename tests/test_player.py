import asyncio
import json
from datetime import datetime

import httpx
import pytest

from catfe_tv.schemas.screen import ScreenOut
from catfe_tv.schemas.settings import SettingsOut
from catfe_tv.services.player import (
    ERROR,
    READY,
    ApiPlaylistSource,
    PlaylistCache,
    PlaylistData,
    PlaylistPlayer,
)

NOW = datetime(2024, 1, 8, 11, 0)


class ManualTimer:
    """Stand-in for asyncio.sleep; sleeps finish only when fired."""

    def __init__(self):
        self._pending: list[tuple[float, asyncio.Future]] = []

    async def sleep(self, seconds):
        future = asyncio.get_running_loop().create_future()
        entry = (seconds, future)
        self._pending.append(entry)
        try:
            await future
        finally:
            self._pending.remove(entry)

    @property
    def live(self):
        return [seconds for seconds, future in self._pending if not future.done()]

    def fire(self):
        for _, future in self._pending:
            if not future.done():
                future.set_result(None)
                return
        raise AssertionError("no pending timer")


class FakeSource:
    def __init__(self, data=None, error=None):
        self.data = data
        self.error = error
        self.calls = 0

    async def fetch(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.data


async def idle(_seconds):
    await asyncio.Event().wait()


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


def slide(id, duration=None, type="EVENT", **fields):
    fields.setdefault("sort_order", id)
    return ScreenOut(id=id, type=type, title=f"Slide {id}", duration_seconds=duration, **fields)


def data(*slides, **settings):
    return PlaylistData(slides=list(slides), settings=SettingsOut(**settings))


def make_player(source, timer, cache=None):
    return PlaylistPlayer(source, cache=cache, now=lambda: NOW, sleep=timer.sleep, refresh_sleep=idle)


def test_start_arms_timer_for_first_slide():
    async def scenario():
        timer = ManualTimer()
        player = make_player(FakeSource(data(slide(1, 7), slide(2, 9))), timer)
        await player.start()
        await settle()
        assert player.state == READY
        assert player.index == 0
        assert player.current.id == 1
        assert timer.live == [7]
        await player.stop()
        await settle()
        assert timer.live == []

    asyncio.run(scenario())


def test_auto_advance_rearms_and_wraps():
    async def scenario():
        timer = ManualTimer()
        player = make_player(FakeSource(data(slide(1, 7), slide(2, 9), slide(3))), timer)
        await player.start()
        await settle()

        timer.fire()
        await settle()
        assert player.index == 1
        assert timer.live == [9]

        timer.fire()
        await settle()
        assert player.index == 2
        # falls back to the settings default
        assert timer.live == [10]

        timer.fire()
        await settle()
        assert player.index == 0
        assert timer.live == [7]
        await player.stop()

    asyncio.run(scenario())


def test_manual_navigation_keeps_single_timer():
    async def scenario():
        timer = ManualTimer()
        player = make_player(FakeSource(data(slide(1, 5), slide(2, 6), slide(3, 8))), timer)
        await player.start()
        await settle()

        player.previous()
        await settle()
        assert player.index == 2
        assert timer.live == [8]

        player.next()
        await settle()
        assert player.index == 0
        assert timer.live == [5]

        player.next()
        player.next()
        await settle()
        assert player.index == 2
        assert timer.live == [8]
        await player.stop()

    asyncio.run(scenario())


def test_pause_and_resume():
    async def scenario():
        timer = ManualTimer()
        player = make_player(FakeSource(data(slide(1, 5), slide(2, 6))), timer)
        await player.start()
        await settle()

        player.pause()
        await settle()
        assert player.paused
        assert timer.live == []

        player.next()
        await settle()
        assert player.index == 1
        assert timer.live == []

        player.resume()
        await settle()
        assert timer.live == [6]
        await player.stop()

    asyncio.run(scenario())


def test_refresh_keeps_current_slide_when_still_present():
    async def scenario():
        timer = ManualTimer()
        source = FakeSource(data(slide(1, 5), slide(2, 6), slide(3, 7)))
        player = make_player(source, timer)
        await player.start()
        await settle()
        player.next()
        await settle()
        assert player.current.id == 2

        source.data = data(slide(4, 4, sort_order=0), slide(2, 6), slide(3, 7))
        assert await player.refresh()
        await settle()
        assert player.current.id == 2
        assert player.index == 1
        assert timer.live == [6]
        await player.stop()

    asyncio.run(scenario())


def test_refresh_rearms_when_duration_changes():
    async def scenario():
        timer = ManualTimer()
        source = FakeSource(data(slide(1, 5), slide(2, 6)))
        player = make_player(source, timer)
        await player.start()
        await settle()

        source.data = data(slide(1, 12), slide(2, 6))
        await player.refresh()
        await settle()
        assert player.current.id == 1
        assert timer.live == [12]
        await player.stop()

    asyncio.run(scenario())


def test_refresh_falls_back_when_current_slide_removed():
    async def scenario():
        timer = ManualTimer()
        source = FakeSource(data(slide(1, 5), slide(2, 6), slide(3, 7)))
        player = make_player(source, timer)
        await player.start()
        await settle()
        player.next()
        player.next()
        await settle()
        assert player.current.id == 3

        source.data = data(slide(1, 5), slide(2, 6))
        await player.refresh()
        await settle()
        assert player.index == 0
        assert player.current.id == 1

        source.data = data()
        await player.refresh()
        await settle()
        assert player.current is None
        assert player.showing_fallback
        assert timer.live == []
        await player.stop()

    asyncio.run(scenario())


def test_refresh_failure_keeps_playlist():
    async def scenario():
        timer = ManualTimer()
        source = FakeSource(data(slide(1, 5), slide(2, 6)))
        player = make_player(source, timer)
        await player.start()
        await settle()

        source.error = httpx.ConnectError("network down")
        assert not await player.refresh()
        await settle()
        assert player.state == READY
        assert player.is_offline
        assert [s.id for s in player.playlist] == [1, 2]
        assert timer.live == [5]
        await player.stop()

    asyncio.run(scenario())


def test_first_load_failure_uses_cache(tmp_path):
    cache = PlaylistCache(str(tmp_path / "cache.json"))
    cache.save(data(slide(1, 5), slide(2, 6), snap_and_purr_frequency=3))

    async def scenario():
        timer = ManualTimer()
        player = make_player(FakeSource(error=httpx.ConnectError("offline")), timer, cache=cache)
        await player.start()
        await settle()
        assert player.state == READY
        assert player.is_offline
        assert player.settings.snap_and_purr_frequency == 3
        assert [s.id for s in player.playlist] == [1, 2]
        assert timer.live == [5]
        await player.stop()

    asyncio.run(scenario())


def test_first_load_failure_without_cache_is_error(tmp_path):
    async def scenario():
        timer = ManualTimer()
        source = FakeSource(error=httpx.ConnectError("offline"))
        player = make_player(source, timer, cache=PlaylistCache(str(tmp_path / "missing.json")))
        await player.start()
        await settle()
        assert player.state == ERROR
        assert "offline" in player.error
        assert player.current is None
        assert timer.live == []

        # recovers on the next successful refresh
        source.error = None
        source.data = data(slide(1, 5))
        await player.refresh()
        await settle()
        assert player.state == READY
        assert player.error is None
        assert timer.live == [5]
        await player.stop()

    asyncio.run(scenario())


def test_successful_fetch_writes_cache(tmp_path):
    cache = PlaylistCache(str(tmp_path / "cache.json"))

    async def scenario():
        player = make_player(FakeSource(data(slide(1, 5))), ManualTimer(), cache=cache)
        await player.start()
        await player.stop()

    asyncio.run(scenario())
    cached = cache.load()
    assert [s.id for s in cached.slides] == [1]


def test_corrupt_cache_is_ignored(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("{not json", encoding="utf-8")
    assert PlaylistCache(str(path)).load() is None


def test_player_interleaves_like_the_server():
    async def scenario():
        timer = ManualTimer()
        source = FakeSource(
            data(slide(1, 5), slide(2, 5), slide(9, 5, type="SNAP_AND_PURR"), snap_and_purr_frequency=1)
        )
        player = make_player(source, timer)
        await player.start()
        await settle()
        assert [s.id for s in player.playlist] == [1, 9, 2, 9]
        await player.stop()

    asyncio.run(scenario())


def test_api_source_fetches_screens_and_settings():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/screens/active":
            return httpx.Response(200, json=[{"id": 1, "type": "EVENT", "title": "Trivia", "days_of_week": [4]}])
        if request.url.path == "/settings":
            return httpx.Response(200, json={"snap_and_purr_frequency": 4, "refresh_interval_seconds": 30})
        return httpx.Response(404)

    async def scenario():
        source = ApiPlaylistSource("http://catfe.test", transport=httpx.MockTransport(handler))
        return await source.fetch()

    result = asyncio.run(scenario())
    assert result.slides[0].title == "Trivia"
    assert result.slides[0].days_of_week == [4]
    assert result.settings.snap_and_purr_frequency == 4
    assert result.settings.refresh_interval_seconds == 30


def test_api_source_can_follow_the_serving_playlist():
    requested = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(request.url.path)
        if request.url.path == "/playlists/current/screens":
            return httpx.Response(200, json=[{"id": 5, "type": "EVENT", "title": "Late night"}])
        return httpx.Response(200, json={})

    async def scenario():
        source = ApiPlaylistSource(
            "http://catfe.test",
            transport=httpx.MockTransport(handler),
            screens_path="/playlists/current/screens",
        )
        return await source.fetch()

    result = asyncio.run(scenario())
    assert [s.id for s in result.slides] == [5]
    assert requested == ["/playlists/current/screens", "/settings"]


def test_api_source_raises_on_server_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))

    async def scenario():
        await ApiPlaylistSource("http://catfe.test", transport=transport).fetch()

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(scenario())


def test_invalid_slide_is_skipped_and_rest_keep_rotating():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/screens/active":
            return httpx.Response(
                200,
                json=[
                    {"id": 1, "type": "EVENT", "title": "Good"},
                    {"id": 2, "type": "EVENT", "title": None},
                    {"type": "EVENT", "title": "Missing id"},
                    {"id": 4, "type": "EVENT", "title": "Also good", "duration_seconds": 12},
                ],
            )
        return httpx.Response(200, json={})

    async def scenario():
        timer = ManualTimer()
        source = ApiPlaylistSource("http://catfe.test", transport=httpx.MockTransport(handler))
        player = make_player(source, timer)
        await player.start()
        await settle()
        try:
            assert player.state == READY
            assert [s.id for s in player.playlist] == [1, 4]
            assert player.current.id == 1
        finally:
            await player.stop()

    asyncio.run(scenario())


def test_invalid_settings_fall_back_to_defaults():
    parsed = PlaylistData.from_json(
        [{"id": 1, "type": "EVENT", "title": "Good"}], {"snap_and_purr_frequency": "often"}
    )
    assert [s.id for s in parsed.slides] == [1]
    assert parsed.settings == SettingsOut()


def test_non_list_screens_payload_is_rejected():
    with pytest.raises(ValueError):
        PlaylistData.from_json({"detail": "Not Found"}, None)


def test_cache_file_is_plain_json(tmp_path):
    path = tmp_path / "cache.json"
    PlaylistCache(str(path)).save(data(slide(1, 5)))
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["screens"][0]["id"] == 1
    assert payload["saved_at"].endswith("+00:00")
