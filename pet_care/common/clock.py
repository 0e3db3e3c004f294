from datetime import datetime, timedelta
from typing import Optional


class Clock:
    """
    Wall-clock source for the engine.

    The default clock reads local time as a timezone-aware datetime. Tests use
    a frozen clock and move it forward explicitly:

        clock = Clock.fixed(datetime(2024, 1, 1, 9, tzinfo=timezone.utc))
        clock.advance(hours=3)
    """

    def __init__(self, frozen_at: Optional[datetime] = None):
        self._frozen_at = frozen_at

    @classmethod
    def fixed(cls, when: datetime) -> 'Clock':
        return cls(frozen_at=when)

    @property
    def is_frozen(self) -> bool:
        return self._frozen_at is not None

    def now(self) -> datetime:
        if self._frozen_at is not None:
            return self._frozen_at
        return datetime.now().astimezone()

    def advance(self, **delta) -> datetime:
        """Move a frozen clock forward by ``timedelta(**delta)``."""
        if self._frozen_at is None:
            raise RuntimeError("only a frozen clock can be advanced")
        self._frozen_at = self._frozen_at + timedelta(**delta)
        return self._frozen_at
