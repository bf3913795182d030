"""Logical clock used by the agent for every notion of "now".

The replay cache freezes it to a cassette's recorded time so prompts and
history timestamps do not drift between recording and playback.
"""

from datetime import datetime, timezone


class LogicalClock:
    def __init__(self) -> None:
        self._frozen_at: datetime | None = None

    @property
    def is_frozen(self) -> bool:
        return self._frozen_at is not None

    def now(self) -> datetime:
        if self._frozen_at is not None:
            return self._frozen_at
        return datetime.now(timezone.utc)

    def freeze(self, iso_time: str | datetime) -> None:
        if isinstance(iso_time, str):
            iso_time = datetime.fromisoformat(iso_time.replace("Z", "+00:00"))
        if iso_time.tzinfo is None:
            iso_time = iso_time.replace(tzinfo=timezone.utc)
        self._frozen_at = iso_time

    def unfreeze(self) -> None:
        self._frozen_at = None
