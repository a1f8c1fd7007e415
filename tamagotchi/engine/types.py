from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional

STAT_MIN = 0
STAT_MAX = 100

STAT_NAMES = ("hunger", "happiness", "hygiene", "health", "discipline", "energy")


class Stage(str, Enum):
    EGG = "egg"
    BABY = "baby"
    CHILD = "child"
    TEEN = "teen"
    ADULT = "adult"
    DEAD = "dead"


GROWTH_ORDER = (Stage.EGG, Stage.BABY, Stage.CHILD, Stage.TEEN, Stage.ADULT)


class SleepState(str, Enum):
    AWAKE = "awake"
    FALLING_ASLEEP = "falling_asleep"
    ASLEEP = "asleep"
    WAKING_UP = "waking_up"


class ActionType(str, Enum):
    FEED = "feed"
    PLAY = "play"
    CLEAN = "clean"
    HEAL = "heal"
    DISCIPLINE = "discipline"


def clamp_stat(value: int) -> int:
    return max(STAT_MIN, min(STAT_MAX, int(value)))


@dataclass(frozen=True)
class PetSnapshot:
    """Everything the simulation needs to know about one pet.

    Snapshots are immutable; every engine function returns a new one via
    ``dataclasses.replace``.
    """

    name: str
    created_at: datetime
    last_interacted_at: datetime
    stage: Stage = Stage.EGG
    hunger: int = 100
    happiness: int = 100
    hygiene: int = 100
    health: int = 100
    discipline: int = 0
    energy: int = 100
    evolution_points: int = 0
    sleep_state: SleepState = SleepState.AWAKE
    sleep_start_time: Optional[datetime] = None
    sleep_quality: int = 100
    light_on: bool = True
    id: Optional[int] = field(default=None, compare=False)

    @property
    def is_dead(self) -> bool:
        return self.stage is Stage.DEAD

    def stats(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in STAT_NAMES}

    def with_changes(self, **changes) -> "PetSnapshot":
        for name in STAT_NAMES:
            if name in changes:
                changes[name] = clamp_stat(changes[name])
        return replace(self, **changes)
