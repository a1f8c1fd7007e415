from __future__ import annotations

from datetime import datetime, timezone

# Accelerated clocks count from here so game time stays close to real dates.
DEFAULT_EPOCH = datetime(2024, 1, 1)
# One game day every two real minutes. Much faster and game time runs past
# datetime.max within a few years of the epoch.
MAX_MULTIPLIER = 720.0


def utcnow() -> datetime:
    """Naive UTC, which is how SQLite hands timestamps back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class GameClock:
    """Source of "now" for the simulation.

    With ``multiplier=1`` this is plain UTC wall time. Larger multipliers
    stretch the time elapsed since ``epoch`` so a whole day/night cycle can
    be watched in minutes.
    """

    def __init__(self, multiplier: float = 1.0, epoch: datetime = DEFAULT_EPOCH) -> None:
        if not 0 < multiplier <= MAX_MULTIPLIER:
            raise ValueError(
                f"time multiplier must be in (0, {MAX_MULTIPLIER:g}], got {multiplier!r}"
            )
        self.multiplier = float(multiplier)
        self.epoch = epoch

    def now(self) -> datetime:
        real = utcnow()
        if self.multiplier == 1.0:
            return real
        return self.epoch + (real - self.epoch) * self.multiplier

    def __repr__(self) -> str:
        return f"GameClock(multiplier={self.multiplier})"
