"""
Poll option decoding, vote tallies and the TV poll rotation.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable

logger = logging.getLogger(__name__)

ROTATION_MINUTES = 15


@dataclass
class DecodedOptions:
    options: list[dict[str, Any]] = field(default_factory=list)
    error: str | None = None


def _normalize_option(raw: Any) -> dict[str, Any] | None:
    if not isinstance(raw, dict):
        return None
    option_id = raw.get("id")
    text = raw.get("text")
    if option_id is None or text is None:
        return None
    option = {"id": str(option_id), "text": str(text)}
    image_url = raw.get("image_url", raw.get("imageUrl"))
    if image_url:
        option["image_url"] = str(image_url)
    return option


def decode_poll_options(raw: Any) -> DecodedOptions:
    """Decode the stored options column. Never raises.

    Older rows were written with the list JSON-encoded twice, so a string
    result is decoded one more time.
    """
    value = raw
    for _ in range(2):
        if not isinstance(value, (str, bytes)):
            break
        try:
            value = json.loads(value)
        except (TypeError, ValueError) as exc:
            return DecodedOptions(error=f"invalid options JSON: {exc}")
    if value is None:
        return DecodedOptions()
    if not isinstance(value, list):
        return DecodedOptions(error=f"options must be a list, got {type(value).__name__}")

    options: list[dict[str, Any]] = []
    for item in value:
        option = _normalize_option(item)
        if option is None:
            return DecodedOptions(error=f"malformed option entry: {item!r}")
        options.append(option)
    return DecodedOptions(options=options)


def encode_poll_options(options: Iterable[dict[str, Any]]) -> str:
    return json.dumps([{k: v for k, v in option.items() if v is not None} for option in options])


def poll_options(poll) -> list[dict[str, Any]]:
    decoded = decode_poll_options(poll.options)
    if decoded.error:
        logger.warning("Poll %s has unreadable options: %s", poll.id, decoded.error)
    return decoded.options


def tally(options: list[dict[str, Any]], counts: dict[str, int]) -> tuple[list[dict[str, Any]], int]:
    total = sum(counts.get(option["id"], 0) for option in options)
    results = []
    for option in options:
        votes = counts.get(option["id"], 0)
        percentage = round(votes / total * 100) if total else 0
        results.append({**option, "vote_count": votes, "percentage": percentage})
    return results, total


def _slot(now: datetime) -> tuple[int, int, int, int, int]:
    return (now.year, now.month, now.day, now.hour, now.minute // ROTATION_MINUTES)


class PollRotation:
    """Holds the poll shown on TV for the current quarter hour.

    Within a slot the same poll id is returned; on a new slot the caller's
    candidates are ranked by `last_shown_at` (never shown first) and the
    least recently shown one wins.
    """

    def __init__(self) -> None:
        self._slot: tuple[int, int, int, int, int] | None = None
        self._poll_id: int | None = None

    def reset(self) -> None:
        self._slot = None
        self._poll_id = None

    def pick(self, candidates: list[Any], now: datetime, on_switch: Callable[[Any], None] | None = None):
        if not candidates:
            self.reset()
            return None
        slot = _slot(now)
        if slot == self._slot:
            for poll in candidates:
                if poll.id == self._poll_id:
                    return poll

        chosen = min(
            candidates,
            key=lambda p: (p.last_shown_at is not None, p.last_shown_at or datetime.min, p.sort_order or 0, p.id),
        )
        self._slot = slot
        self._poll_id = chosen.id
        if on_switch is not None:
            on_switch(chosen)
        return chosen


rotation = PollRotation()
