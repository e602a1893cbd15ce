"""Rollup level selection for a query window."""

from sentinel.models import RollupSettings

_HOUR_MS = 3_600_000


class RollupLevels:
    """Picks the finest rollup level suited to a window.

    A level is usable when the window is shorter than the next level's view
    threshold and the level still retains data from the window's start.
    """

    def __init__(self, settings: RollupSettings | None = None) -> None:
        self._settings = settings or RollupSettings()

    def level_for_window(self, from_millis: int, to_millis: int, now_millis: int) -> int:
        levels = self._settings.levels
        expirations = self._settings.expiration_hours
        window = to_millis - from_millis
        age = now_millis - from_millis
        for level in range(len(levels) - 1):
            expiration_hours = expirations[level]
            retained = expiration_hours == 0 or expiration_hours * _HOUR_MS > age
            if window < levels[level + 1].view_threshold_millis and retained:
                return level
        return len(levels) - 1
