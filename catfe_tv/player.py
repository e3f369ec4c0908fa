"""Run a headless display: `python -m catfe_tv.player`."""

import asyncio
import logging

from catfe_tv.services.player import ApiPlaylistSource, PlaylistCache, PlaylistPlayer

logger = logging.getLogger("catfe_tv.player")


def _log_slide(player: PlaylistPlayer) -> None:
    if player.state != "ready":
        logger.error("Player %s: %s", player.state, player.error)
        return
    slide = player.current
    if slide is None:
        logger.info("No eligible slides, showing %s fallback", player.settings.fallback_mode)
        return
    logger.info(
        "[%d/%d] %s %r for %ss%s",
        player.index + 1,
        len(player.playlist),
        slide.type,
        slide.title,
        player.current_duration,
        " (offline)" if player.is_offline else "",
    )


async def run() -> None:
    player = PlaylistPlayer(ApiPlaylistSource(), cache=PlaylistCache(), on_change=_log_slide)
    await player.start()
    try:
        await asyncio.Event().wait()
    finally:
        await player.stop()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
