from datetime import timedelta

import pytest
from sqlalchemy import delete, update

from tamagotchi.cli import (
    init_db_cmd,
    reset_db_cmd,
    seed_demo_cmd,
    sweep_evolution_cmd,
    sweep_inactive_cmd,
)
from tamagotchi.engine.errors import (
    ConcurrentUpdateError,
    DuplicatePetError,
    PetDeadError,
    PetNotFoundError,
    ValidationError,
)
from tamagotchi.extensions import db
from tamagotchi.models.pet import Pet
from tamagotchi.models.user import User
from tamagotchi.services import pets as pet_service


def _bump_version(pet_id):
    db.session.execute(
        update(Pet)
        .where(Pet.id == pet_id)
        .values(version=Pet.version + 1)
        .execution_options(synchronize_session=False)
    )


def test_spawn_and_duplicate(owner, clock):
    pet = pet_service.spawn(owner.id, "Mochi")
    assert pet.stage == "egg"
    assert pet.created_at == clock.now()
    assert pet.last_interacted_at == clock.now()
    with pytest.raises(DuplicatePetError):
        pet_service.spawn(owner.id, "Again")


def test_spawn_for_unknown_owner(app, clock):
    with pytest.raises(ValidationError) as excinfo:
        pet_service.spawn(9999, "Ghost")
    assert "owner" in excinfo.value.errors
    assert Pet.query.count() == 0


def test_spawn_rejects_blank_name(owner, clock):
    with pytest.raises(ValidationError):
        pet_service.spawn(owner.id, "  ")


def test_missing_pet(owner, clock):
    with pytest.raises(PetNotFoundError):
        pet_service.get_current_state(owner.id)
    with pytest.raises(PetNotFoundError):
        pet_service.apply_action(owner.id, "feed")


def test_stale_write_is_retried(owner, pet, set_stats, monkeypatch):
    set_stats(pet, stage="adult", hunger=50)
    real_recompute = pet_service.recompute
    calls = []

    def racing_recompute(snapshot, now):
        calls.append(now)
        if len(calls) == 1:
            # someone else writes the row between our read and our write
            _bump_version(snapshot.id)
        return real_recompute(snapshot, now)

    monkeypatch.setattr(pet_service, "recompute", racing_recompute)
    result = pet_service.apply_action(owner.id, "feed")

    assert len(calls) == 2
    assert result.hunger == 70


def test_stale_write_gives_up(owner, pet, set_stats, monkeypatch):
    owner_id = owner.id
    set_stats(pet, stage="adult", hunger=50)
    real_recompute = pet_service.recompute

    def always_racing(snapshot, now):
        _bump_version(snapshot.id)
        return real_recompute(snapshot, now)

    monkeypatch.setattr(pet_service, "recompute", always_racing)
    with pytest.raises(ConcurrentUpdateError):
        pet_service.apply_action(owner_id, "feed")

    db.session.expire_all()
    assert Pet.query.filter_by(owner_id=owner_id).one().hunger == 50


def test_recompute_without_changes_skips_the_write(owner, pet, clock):
    version = pet.version
    clock.advance(minutes=3)
    again = pet_service.get_current_state(owner.id)
    assert again.version == version
    assert again.last_interacted_at == clock.now() - timedelta(minutes=3)


def test_revive_replaces_any_pet(owner, pet, set_stats, clock):
    set_stats(pet, stage="adult", evolution_points=50)
    clock.advance(days=2)
    fresh = pet_service.revive(owner.id, "Pip")
    assert fresh.name == "Pip"
    assert fresh.stage == "egg"
    assert fresh.evolution_points == 0
    assert fresh.created_at == clock.now()
    assert Pet.query.count() == 1


def test_revive_without_existing_pet(owner, clock):
    assert pet_service.revive(owner.id, "Pip").name == "Pip"


def test_force_inactivity_death(make_user, clock):
    stale_owner = make_user("stale@petmail.com")
    fresh_owner = make_user("fresh@petmail.com")
    gone_owner = make_user("gone@petmail.com")
    stale = pet_service.spawn(stale_owner.id, "Stale")
    fresh = pet_service.spawn(fresh_owner.id, "Fresh")
    gone = pet_service.spawn(gone_owner.id, "Gone")
    gone.stage = "dead"
    gone.health = 0
    db.session.commit()

    stale_version = stale.version
    clock.advance(hours=73)
    fresh.last_interacted_at = clock.now() - timedelta(hours=1)
    db.session.commit()

    assert pet_service.force_inactivity_death() == 1

    db.session.expire_all()
    stale = Pet.query.filter_by(owner_id=stale_owner.id).one()
    assert stale.stage == "dead"
    assert stale.health == 0
    assert stale.version == stale_version + 1
    assert Pet.query.filter_by(owner_id=fresh_owner.id).one().stage != "dead"

    with pytest.raises(PetDeadError):
        pet_service.apply_action(stale_owner.id, "heal")


def test_force_inactivity_death_respects_cutoff(owner, pet, clock):
    clock.advance(hours=10)
    assert pet_service.force_inactivity_death(cutoff_hours=12) == 0
    assert pet_service.force_inactivity_death(cutoff_hours=9) == 1


def test_daily_evolution_sweep(make_user, clock):
    egg_owner = make_user("egg@petmail.com")
    adult_owner = make_user("adult@petmail.com")
    dead_owner = make_user("dead@petmail.com")
    pet_service.spawn(egg_owner.id, "Egg")
    adult = pet_service.spawn(adult_owner.id, "Adult")
    dead = pet_service.spawn(dead_owner.id, "Dead")
    adult.stage = "adult"
    dead.stage = "dead"
    dead.health = 0
    db.session.commit()

    clock.advance(minutes=10)
    assert pet_service.daily_evolution_sweep() == 1

    db.session.expire_all()
    hatched = Pet.query.filter_by(owner_id=egg_owner.id).one()
    assert hatched.stage == "baby"
    assert hatched.last_interacted_at == clock.now()
    untouched = Pet.query.filter_by(owner_id=adult_owner.id).one()
    assert untouched.last_interacted_at == clock.now() - timedelta(minutes=10)

    # nothing left to evolve right away
    assert pet_service.daily_evolution_sweep() == 0


def test_cli_sweeps(app, owner, pet, clock):
    runner = app.test_cli_runner()
    clock.advance(minutes=10)

    result = runner.invoke(sweep_evolution_cmd)
    assert result.exit_code == 0
    assert "1 pets evolved" in result.output

    clock.advance(hours=73)
    result = runner.invoke(sweep_inactive_cmd, ["--cutoff-hours", "80"])
    assert result.exit_code == 0
    assert "Forced death for 0 inactive pets" in result.output

    result = runner.invoke(sweep_inactive_cmd)
    assert "Forced death for 1 inactive pets" in result.output


def test_evolution_sweep_skips_pets_replaced_midway(make_user, clock, monkeypatch):
    first_id = pet_service.spawn(make_user("first@petmail.com").id, "First").id
    second_id = pet_service.spawn(make_user("second@petmail.com").id, "Second").id
    real_recompute = pet_service.recompute

    def recompute_then_delete(snapshot, now):
        if snapshot.id == first_id:
            # the second pet's row goes away while the sweep is running
            db.session.execute(
                delete(Pet)
                .where(Pet.id == second_id)
                .execution_options(synchronize_session=False)
            )
        return real_recompute(snapshot, now)

    monkeypatch.setattr(pet_service, "recompute", recompute_then_delete)
    clock.advance(minutes=10)

    assert pet_service.daily_evolution_sweep() == 1
    db.session.expire_all()
    assert [p.id for p in Pet.query.all()] == [first_id]
    assert db.session.get(Pet, first_id).stage == "baby"


def test_evolution_sweep_does_not_count_deaths(owner, pet, clock):
    clock.advance(hours=80)
    assert pet_service.daily_evolution_sweep() == 0
    db.session.expire_all()
    assert Pet.query.filter_by(owner_id=owner.id).one().stage == "dead"


def test_cli_seed_demo(app, clock):
    runner = app.test_cli_runner()
    result = runner.invoke(seed_demo_cmd, ["--email", "demo@petmail.com"])
    assert result.exit_code == 0, result.output
    user = User.query.filter_by(email="demo@petmail.com").one()
    assert user.check_password("demo123")
    assert Pet.query.filter_by(owner_id=user.id).one().name == "Mochi"


def test_cli_db_commands(app):
    runner = app.test_cli_runner()
    assert "Tables created" in runner.invoke(init_db_cmd).output
    assert "--force" in runner.invoke(reset_db_cmd).output
