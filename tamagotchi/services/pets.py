from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Mapping, Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..engine import sleep
from ..engine.clock import GameClock
from ..engine.degradation import apply_effect, parse_action, recompute
from ..engine.errors import (
    ConcurrentUpdateError,
    DevModeDisabledError,
    DuplicatePetError,
    PetDeadError,
    PetError,
    PetNotFoundError,
    ValidationError,
)
from ..engine.types import STAT_MAX, STAT_MIN, STAT_NAMES, PetSnapshot, SleepState, Stage
from ..extensions import db
from ..models.pet import Pet

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 3
NAME_MAX_LENGTH = 100

Mutation = Callable[[PetSnapshot, datetime], Optional[PetSnapshot]]


def get_clock() -> GameClock:
    return current_app.extensions["pet_clock"]


def _now() -> datetime:
    return get_clock().now()


def _stamp(snapshot: PetSnapshot, now: datetime) -> PetSnapshot:
    return snapshot.with_changes(last_interacted_at=now)


def validate_name(name) -> str:
    cleaned = name.strip() if isinstance(name, str) else ""
    if not cleaned or len(cleaned) > NAME_MAX_LENGTH:
        raise ValidationError(
            "Invalid pet name",
            errors={"name": [f"Name must be between 1 and {NAME_MAX_LENGTH} characters."]},
        )
    return cleaned


def find_pet(owner_id: int) -> Optional[Pet]:
    return Pet.query.filter_by(owner_id=owner_id).first()


def _require_pet(owner_id: int) -> Pet:
    pet = find_pet(owner_id)
    if pet is None:
        raise PetNotFoundError()
    return pet


def _write(owner_id: int, mutate: Mutation) -> Pet:
    """Load the pet, run ``mutate`` on its snapshot and save the result.

    The save is guarded by the row version; if another writer got there
    first the whole read-compute-write cycle is repeated on fresh data.
    ``mutate`` returning ``None`` means there is nothing to save.
    """
    for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
        pet = _require_pet(owner_id)
        now = _now()
        try:
            snapshot = mutate(pet.to_snapshot(), now)
        except PetError:
            db.session.rollback()
            raise
        if snapshot is None:
            return pet

        pet.apply_snapshot(snapshot)
        try:
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            logger.warning(
                "stale pet write owner_id=%s attempt=%s/%s",
                owner_id,
                attempt,
                MAX_WRITE_ATTEMPTS,
            )
            continue
        return pet

    raise ConcurrentUpdateError()


def spawn(owner_id: int, name) -> Pet:
    name = validate_name(name)
    existing = find_pet(owner_id)
    if existing is not None:
        logger.info(
            "spawn rejected, owner already has a pet owner_id=%s pet_id=%s",
            owner_id,
            existing.id,
        )
        raise DuplicatePetError()

    now = _now()
    pet = Pet.from_snapshot(
        owner_id, PetSnapshot(name=name, created_at=now, last_interacted_at=now)
    )
    db.session.add(pet)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        if find_pet(owner_id) is not None:
            raise DuplicatePetError() from None
        logger.warning("spawn rejected, unknown owner owner_id=%s", owner_id)
        raise ValidationError(
            "Invalid owner", errors={"owner": ["Owner does not exist."]}
        ) from None
    logger.info("pet spawned owner_id=%s pet_id=%s name=%s", owner_id, pet.id, pet.name)
    return pet


def get_current_state(owner_id: int) -> Pet:
    def _refresh(snapshot: PetSnapshot, now: datetime) -> Optional[PetSnapshot]:
        current = recompute(snapshot, now)
        if current is snapshot:
            return None
        return _stamp(current, now)

    pet = _write(owner_id, _refresh)
    logger.debug(
        "pet state retrieved owner_id=%s pet_id=%s stage=%s", owner_id, pet.id, pet.stage
    )
    return pet


def _refuse_if_dead(pet: Pet) -> Pet:
    if pet.stage == Stage.DEAD.value:
        raise PetDeadError()
    return pet


def apply_action(owner_id: int, action_type) -> Pet:
    action = parse_action(action_type)

    def _act(snapshot: PetSnapshot, now: datetime) -> PetSnapshot:
        if snapshot.is_dead:
            raise PetDeadError()
        current = recompute(snapshot, now)
        if current.is_dead:
            # persist the death, then refuse the action
            return _stamp(current, now)
        return _stamp(apply_effect(current, action), now)

    pet = _refuse_if_dead(_write(owner_id, _act))
    logger.info(
        "pet action performed owner_id=%s pet_id=%s action=%s stage=%s",
        owner_id,
        pet.id,
        action.value,
        pet.stage,
    )
    return pet


def toggle_sleep(owner_id: int) -> Pet:
    def _toggle(snapshot: PetSnapshot, now: datetime) -> PetSnapshot:
        current = recompute(snapshot, now)
        if current.is_dead:
            if snapshot.is_dead:
                raise PetDeadError()
            return _stamp(current, now)
        return _stamp(sleep.toggle_sleep(current, now), now)

    pet = _refuse_if_dead(_write(owner_id, _toggle))
    logger.info(
        "pet sleep toggled owner_id=%s pet_id=%s sleep_state=%s",
        owner_id,
        pet.id,
        pet.sleep_state,
    )
    return pet


def toggle_light(owner_id: int, light_on) -> Pet:
    if not isinstance(light_on, bool):
        raise ValidationError(
            "Invalid light state", errors={"lightOn": ["Must be true or false."]}
        )

    def _toggle(snapshot: PetSnapshot, now: datetime) -> PetSnapshot:
        current = recompute(snapshot, now)
        if current.is_dead:
            if snapshot.is_dead:
                raise PetDeadError()
            return _stamp(current, now)
        return _stamp(sleep.toggle_light(current, light_on, now), now)

    pet = _refuse_if_dead(_write(owner_id, _toggle))
    logger.info(
        "pet light toggled owner_id=%s pet_id=%s light_on=%s", owner_id, pet.id, pet.light_on
    )
    return pet


def get_sleep_status(owner_id: int) -> dict:
    pet = get_current_state(owner_id)
    return sleep.sleep_status(pet.to_snapshot(), _now())


def revive(owner_id: int, new_name) -> Pet:
    new_name = validate_name(new_name)
    now = _now()
    pet = Pet.from_snapshot(
        owner_id, PetSnapshot(name=new_name, created_at=now, last_interacted_at=now)
    )
    try:
        old = find_pet(owner_id)
        if old is not None:
            logger.info(
                "replacing pet owner_id=%s old_pet_id=%s old_stage=%s",
                owner_id,
                old.id,
                old.stage,
            )
            db.session.delete(old)
            # the delete must hit the table before the insert (unique owner_id)
            db.session.flush()
        db.session.add(pet)
        db.session.commit()
    except (IntegrityError, StaleDataError):
        db.session.rollback()
        raise ConcurrentUpdateError() from None
    logger.info("pet revived owner_id=%s pet_id=%s name=%s", owner_id, pet.id, pet.name)
    return pet


def _require_dev_mode() -> None:
    if not current_app.config.get("DEV_MODE"):
        raise DevModeDisabledError()


def dev_reset(owner_id: int) -> Pet:
    _require_dev_mode()

    def _reset(snapshot: PetSnapshot, now: datetime) -> PetSnapshot:
        fresh = PetSnapshot(
            id=snapshot.id,
            name=snapshot.name,
            created_at=snapshot.created_at,
            last_interacted_at=now,
        )
        return fresh

    pet = _write(owner_id, _reset)
    logger.info("pet reset to egg (dev mode) owner_id=%s pet_id=%s", owner_id, pet.id)
    return pet


def _validate_override(stage, stats: Optional[Mapping]) -> dict:
    changes = {}
    errors = {}
    if stage is not None:
        try:
            changes["stage"] = Stage(stage)
        except ValueError:
            errors["stage"] = [f"Must be one of: {', '.join(s.value for s in Stage)}."]
    for key, value in (stats or {}).items():
        if key not in STAT_NAMES:
            errors[key] = ["Unknown stat."]
        elif isinstance(value, bool) or not isinstance(value, int):
            errors[key] = ["Must be an integer."]
        elif not STAT_MIN <= value <= STAT_MAX:
            errors[key] = [f"Must be between {STAT_MIN} and {STAT_MAX}."]
        else:
            changes[key] = value
    if errors:
        raise ValidationError("Invalid override", errors=errors)
    if not changes:
        raise ValidationError("Nothing to override")
    return changes


def dev_override(owner_id: int, stage=None, stats: Optional[Mapping] = None) -> Pet:
    _require_dev_mode()
    changes = _validate_override(stage, stats)

    def _override(snapshot: PetSnapshot, now: datetime) -> PetSnapshot:
        current = recompute(snapshot, now).with_changes(**changes)
        if current.is_dead and current.sleep_state is not SleepState.AWAKE:
            current = current.with_changes(sleep_state=SleepState.AWAKE, sleep_start_time=None)
        return _stamp(current, now)

    pet = _write(owner_id, _override)
    logger.info(
        "pet overridden (dev mode) owner_id=%s pet_id=%s changes=%s",
        owner_id,
        pet.id,
        {k: getattr(v, "value", v) for k, v in changes.items()},
    )
    return pet


def force_inactivity_death(cutoff_hours: Optional[float] = None) -> int:
    """Kill every living pet nobody has touched for ``cutoff_hours``.

    This is a direct terminal override, not a decay computation.
    """
    if cutoff_hours is None:
        cutoff_hours = current_app.config.get("INACTIVITY_CUTOFF_HOURS", 72)
    threshold = _now() - timedelta(hours=cutoff_hours)
    result = db.session.execute(
        update(Pet)
        .where(Pet.last_interacted_at < threshold, Pet.stage != Stage.DEAD.value)
        .values(
            stage=Stage.DEAD.value,
            health=0,
            sleep_state=SleepState.AWAKE.value,
            sleep_start_time=None,
            version=Pet.version + 1,
        )
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    count = result.rowcount or 0
    if count:
        logger.info("forced death for %s inactive pets (cutoff=%sh)", count, cutoff_hours)
    return count


def daily_evolution_sweep() -> int:
    candidate_ids = [
        pet_id
        for (pet_id,) in db.session.query(Pet.id)
        .filter(Pet.stage.notin_([Stage.DEAD.value, Stage.ADULT.value]))
        .order_by(Pet.id)
    ]
    evolved = 0
    for pet_id in candidate_ids:
        pet = db.session.get(Pet, pet_id)
        if pet is None:
            # revived (row replaced) since the sweep started
            logger.info("evolution sweep skipped pet_id=%s, no longer exists", pet_id)
            continue
        now = _now()
        before = pet.to_snapshot()
        after = recompute(before, now)
        if after.stage is before.stage:
            continue
        pet.apply_snapshot(_stamp(after, now))
        try:
            db.session.commit()
        except StaleDataError:
            db.session.rollback()
            logger.warning("evolution sweep skipped pet_id=%s, modified concurrently", before.id)
            continue
        if after.is_dead:
            continue
        evolved += 1
        logger.info(
            "pet evolved pet_id=%s from=%s to=%s", before.id, before.stage.value, after.stage.value
        )
    return evolved
