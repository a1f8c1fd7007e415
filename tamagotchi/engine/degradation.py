"""Passive degradation, evolution and player actions.

``recompute`` rebuilds a pet's current state from its last persisted
snapshot and the time elapsed since ``last_interacted_at``. It is a pure
function of ``(snapshot, now)``: calling it twice with the same arguments
gives the same answer, so callers can retry it freely.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Union

from . import sleep
from .errors import InvalidActionError, PetDeadError
from .types import STAT_MAX, ActionType, PetSnapshot, Stage

logger = logging.getLogger(__name__)

# Below this many hours a recompute is a no-op.
MIN_ELAPSED_HOURS = 0.1

DECAY_PER_HOUR = {
    "hunger": 10,
    "happiness": 5,
    "hygiene": 7 / 1.5,  # 7 points every 90 minutes
}
STARVATION_HEALTH_PER_HOUR = 20
EVOLUTION_POINTS_PER_HOUR = 2
GOOD_STAT_THRESHOLD = 70

# (from, to, minimum hours alive, requirement)
EVOLUTION_RULES = (
    (Stage.EGG, Stage.BABY, 0.1, None),
    (Stage.BABY, Stage.CHILD, 2, "all_stats_good"),
    (Stage.CHILD, Stage.TEEN, 8, "disciplined"),
    (Stage.TEEN, Stage.ADULT, 24, "all_stats_good"),
)

ACTION_EFFECTS: dict[ActionType, dict[str, int]] = {
    ActionType.FEED: {"hunger": 20, "hygiene": -5},
    ActionType.PLAY: {"happiness": 15, "energy": -10},
    ActionType.CLEAN: {"hygiene": 30},
    ActionType.HEAL: {"health": STAT_MAX},
    ActionType.DISCIPLINE: {"discipline": 10, "happiness": -5},
}


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600.0


def all_stats_good(pet: PetSnapshot) -> bool:
    return (
        pet.hunger > GOOD_STAT_THRESHOLD
        and pet.happiness > GOOD_STAT_THRESHOLD
        and pet.hygiene > GOOD_STAT_THRESHOLD
        and pet.health > GOOD_STAT_THRESHOLD
    )


def _requirement_met(requirement, pet: PetSnapshot, stats_good: bool) -> bool:
    if requirement is None:
        return True
    if requirement == "all_stats_good":
        return stats_good
    if requirement == "disciplined":
        return pet.discipline > 0
    raise ValueError(f"unknown evolution requirement {requirement!r}")


def evolve(pet: PetSnapshot, elapsed_hours: float, total_hours_alive: float) -> PetSnapshot:
    """Advance at most one growth stage and award evolution points."""
    stats_good = all_stats_good(pet)
    stage = pet.stage
    for from_stage, to_stage, min_hours, requirement in EVOLUTION_RULES:
        if stage is not from_stage:
            continue
        if total_hours_alive >= min_hours and _requirement_met(requirement, pet, stats_good):
            stage = to_stage
        break

    points = pet.evolution_points
    if stats_good:
        points += math.floor(elapsed_hours * EVOLUTION_POINTS_PER_HOUR)

    return pet.with_changes(stage=stage, evolution_points=points)


def recompute(pet: PetSnapshot, now: datetime) -> PetSnapshot:
    elapsed_hours = hours_between(pet.last_interacted_at, now)
    if elapsed_hours < MIN_ELAPSED_HOURS:
        return pet

    slept = sleep.advance(pet, now, elapsed_hours)

    hunger = max(0, pet.hunger - math.floor(elapsed_hours * DECAY_PER_HOUR["hunger"]))
    happiness = max(
        0, pet.happiness - math.floor(elapsed_hours * DECAY_PER_HOUR["happiness"])
    )
    hygiene = max(0, pet.hygiene - math.floor(elapsed_hours * DECAY_PER_HOUR["hygiene"]))

    health = pet.health
    if hunger == 0 or hygiene == 0:
        health = max(0, health - math.floor(elapsed_hours * STARVATION_HEALTH_PER_HOUR))

    stage = pet.stage
    if health == 0 and stage is not Stage.DEAD:
        logger.info("pet died id=%s name=%s hours_idle=%.2f", pet.id, pet.name, elapsed_hours)
        stage = Stage.DEAD

    result = pet.with_changes(
        hunger=hunger,
        happiness=happiness,
        hygiene=hygiene,
        health=health,
        energy=pet.energy + slept.energy_delta,
        stage=stage,
        sleep_state=slept.sleep_state,
        sleep_start_time=slept.sleep_start_time,
        sleep_quality=slept.sleep_quality,
    )

    if result.stage is not Stage.DEAD:
        result = evolve(result, elapsed_hours, hours_between(pet.created_at, now))
    return result


def parse_action(action: Union[str, ActionType]) -> ActionType:
    try:
        return ActionType(action)
    except ValueError:
        raise InvalidActionError(action) from None


def apply_effect(pet: PetSnapshot, action: Union[str, ActionType]) -> PetSnapshot:
    """Apply one action's stat deltas to an already up-to-date snapshot."""
    action = parse_action(action)
    if pet.is_dead:
        raise PetDeadError()
    effects = ACTION_EFFECTS[action]
    return pet.with_changes(
        **{stat: getattr(pet, stat) + delta for stat, delta in effects.items()}
    )


def apply_action(pet: PetSnapshot, action: Union[str, ActionType], now: datetime) -> PetSnapshot:
    if pet.is_dead:
        raise PetDeadError()
    action = parse_action(action)
    return apply_effect(recompute(pet, now), action)
