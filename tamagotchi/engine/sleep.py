"""Day/night sleep cycle.

A pet's sleep is driven by the hour of the game clock and its growth stage.
Each evaluation performs at most one transition of the state machine::

    awake -> falling_asleep -> asleep -> waking_up -> awake

and reports the sleep quality and the energy gained or lost over the
elapsed interval. Nothing here touches the database or the real clock;
``now`` is always passed in.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import NamedTuple, Optional

from .errors import PetDeadError
from .types import PetSnapshot, SleepState, Stage


class SleepSchedule(NamedTuple):
    start_hour: int
    end_hour: int
    duration: int


SLEEP_SCHEDULES: dict[Stage, SleepSchedule] = {
    Stage.BABY: SleepSchedule(20, 8, 12),
    Stage.CHILD: SleepSchedule(20, 7, 11),
    Stage.TEEN: SleepSchedule(21, 7, 10),
    Stage.ADULT: SleepSchedule(22, 6, 8),
}

FALL_ASLEEP_MINUTES = 5
WAKE_UP_MINUTES = 3

# energy per hour by resulting state
ENERGY_RATES: dict[SleepState, int] = {
    SleepState.ASLEEP: 10,
    SleepState.FALLING_ASLEEP: 5,
    SleepState.WAKING_UP: 5,
    SleepState.AWAKE: -15,
}

LIGHT_ON_PENALTY = 30
INTERRUPTED_PENALTY = 20
LOW_STAT_THRESHOLD = 30
LOW_HUNGER_PENALTY = 15
LOW_HYGIENE_PENALTY = 15
LOW_HAPPINESS_PENALTY = 10

FORCED_WAKE_PENALTY = {
    SleepState.ASLEEP: 10,
    SleepState.FALLING_ASLEEP: 5,
    SleepState.WAKING_UP: 5,
}
LIGHT_HAPPINESS_DELTA = 5


@dataclass(frozen=True)
class SleepUpdate:
    sleep_state: SleepState
    sleep_start_time: Optional[datetime]
    sleep_quality: int
    energy_delta: int
    interrupted: bool = False


def should_be_sleeping(stage: Stage, hour: int) -> bool:
    schedule = SLEEP_SCHEDULES.get(stage)
    if schedule is None:
        return False
    if schedule.start_hour > schedule.end_hour:
        return hour >= schedule.start_hour or hour < schedule.end_hour
    return schedule.start_hour <= hour < schedule.end_hour


def _minutes_since(start: Optional[datetime], now: datetime) -> float:
    if start is None:
        return math.inf
    return (now - start).total_seconds() / 60.0


def calculate_sleep_quality(
    sleep_state: SleepState,
    light_on: bool,
    interrupted: bool,
    hunger: int,
    hygiene: int,
    happiness: int,
) -> int:
    quality = 100
    if sleep_state is SleepState.ASLEEP and light_on:
        quality -= LIGHT_ON_PENALTY
    if interrupted:
        quality -= INTERRUPTED_PENALTY
    if hunger < LOW_STAT_THRESHOLD:
        quality -= LOW_HUNGER_PENALTY
    if hygiene < LOW_STAT_THRESHOLD:
        quality -= LOW_HYGIENE_PENALTY
    if happiness < LOW_STAT_THRESHOLD:
        quality -= LOW_HAPPINESS_PENALTY
    return max(0, quality)


def calculate_energy_delta(sleep_state: SleepState, elapsed_hours: float, quality: int) -> int:
    rate = ENERGY_RATES[sleep_state]
    if rate < 0:
        return -math.floor(elapsed_hours * -rate)
    gained = math.floor(elapsed_hours * rate)
    if sleep_state is SleepState.ASLEEP:
        gained = gained * quality // 100
    return gained


def next_sleep_state(pet: PetSnapshot, now: datetime) -> tuple[SleepState, Optional[datetime], bool]:
    """Return ``(state, sleep_start_time, interrupted)`` after one transition."""
    should_sleep = should_be_sleeping(pet.stage, now.hour)
    state = pet.sleep_state
    start = pet.sleep_start_time

    if state is SleepState.AWAKE:
        if should_sleep:
            return SleepState.FALLING_ASLEEP, now, False
        return SleepState.AWAKE, None, False

    if state is SleepState.FALLING_ASLEEP:
        if not should_sleep:
            return SleepState.AWAKE, None, True
        if _minutes_since(start, now) >= FALL_ASLEEP_MINUTES:
            return SleepState.ASLEEP, start, False
        return state, start, False

    if state is SleepState.ASLEEP:
        if not should_sleep:
            return SleepState.WAKING_UP, start, False
        return state, start, False

    # waking up
    if _minutes_since(start, now) >= WAKE_UP_MINUTES:
        return SleepState.AWAKE, None, False
    return state, start, False


def advance(pet: PetSnapshot, now: datetime, elapsed_hours: float) -> SleepUpdate:
    state, start, interrupted = next_sleep_state(pet, now)
    quality = calculate_sleep_quality(
        state,
        pet.light_on,
        interrupted,
        hunger=pet.hunger,
        hygiene=pet.hygiene,
        happiness=pet.happiness,
    )
    return SleepUpdate(
        sleep_state=state,
        sleep_start_time=start,
        sleep_quality=quality,
        energy_delta=calculate_energy_delta(state, elapsed_hours, quality),
        interrupted=interrupted,
    )


def toggle_sleep(pet: PetSnapshot, now: datetime) -> PetSnapshot:
    """Player-initiated sleep toggle. Takes effect immediately."""
    if pet.is_dead:
        raise PetDeadError()
    if pet.sleep_state is SleepState.AWAKE:
        return pet.with_changes(
            sleep_state=SleepState.FALLING_ASLEEP, sleep_start_time=now
        )
    penalty = FORCED_WAKE_PENALTY[pet.sleep_state]
    return pet.with_changes(
        sleep_state=SleepState.AWAKE,
        sleep_start_time=None,
        happiness=pet.happiness - penalty,
    )


def toggle_light(pet: PetSnapshot, light_on: bool, now: datetime) -> PetSnapshot:
    if pet.is_dead:
        raise PetDeadError()
    delta = 0
    if not light_on and should_be_sleeping(pet.stage, now.hour):
        delta = LIGHT_HAPPINESS_DELTA
    if light_on and pet.sleep_state is SleepState.ASLEEP:
        delta = -LIGHT_HAPPINESS_DELTA
    return pet.with_changes(light_on=bool(light_on), happiness=pet.happiness + delta)


def sleep_status(pet: PetSnapshot, now: datetime) -> dict:
    schedule = SLEEP_SCHEDULES.get(pet.stage)
    return {
        "currentState": pet.sleep_state.value,
        "shouldBeSleeping": should_be_sleeping(pet.stage, now.hour),
        "isSleeping": pet.sleep_state is SleepState.ASLEEP,
        "isFallingAsleep": pet.sleep_state is SleepState.FALLING_ASLEEP,
        "isWakingUp": pet.sleep_state is SleepState.WAKING_UP,
        "lightOn": pet.light_on,
        "sleepQuality": pet.sleep_quality,
        "currentTime": {
            "hour": now.hour,
            "minute": now.minute,
            "timestamp": now.isoformat(),
        },
        "schedule": (
            {
                "sleepStart": schedule.start_hour,
                "sleepEnd": schedule.end_hour,
                "duration": schedule.duration,
            }
            if schedule
            else None
        ),
    }
