"""Pure simulation core: no Flask, no database."""
from .clock import GameClock, utcnow
from .degradation import apply_action, apply_effect, evolve, recompute
from .errors import (
    ConcurrentUpdateError,
    DevModeDisabledError,
    DuplicatePetError,
    InvalidActionError,
    PetDeadError,
    PetError,
    PetNotFoundError,
    ValidationError,
)
from .sleep import should_be_sleeping, sleep_status, toggle_light, toggle_sleep
from .types import ActionType, PetSnapshot, SleepState, Stage

__all__ = [
    "ActionType",
    "ConcurrentUpdateError",
    "DevModeDisabledError",
    "DuplicatePetError",
    "GameClock",
    "InvalidActionError",
    "PetDeadError",
    "PetError",
    "PetNotFoundError",
    "PetSnapshot",
    "SleepState",
    "Stage",
    "ValidationError",
    "apply_action",
    "apply_effect",
    "evolve",
    "recompute",
    "should_be_sleeping",
    "sleep_status",
    "toggle_light",
    "toggle_sleep",
    "utcnow",
]
