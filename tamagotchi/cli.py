from __future__ import annotations

import click
from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .models.user import User
from .models.pet import Pet
from .services import pets as pet_service


def _db_uri() -> str:
    return current_app.config.get("SQLALCHEMY_DATABASE_URI", "")


@click.command("init-db")
def init_db_cmd():
    uri = _db_uri()
    click.echo(f"Creating tables on DB: {uri}")
    db.create_all()
    click.echo("✔ Tables created.")


@click.command("reset-db")
@click.option("--force", is_flag=True, help="Drop + create (irreversible).")
def reset_db_cmd(force: bool):
    uri = _db_uri()
    if not force:
        click.echo("Add --force to confirm dropping all tables.")
        return
    click.echo(f"Dropping & creating tables on DB: {uri}")
    db.drop_all()
    db.create_all()
    click.echo("✔ Database reset.")


@click.command("purge-data")
def purge_data_cmd():
    db.session.query(Pet).delete()
    db.session.query(User).delete()
    db.session.commit()
    if _db_uri().startswith("sqlite:"):
        try:
            db.session.execute(text("DELETE FROM sqlite_sequence"))
            db.session.commit()
        except SQLAlchemyError:
            # only exists once an AUTOINCREMENT table has been written to
            db.session.rollback()
    click.echo("✔ All data removed (schema kept).")


@click.command("seed-demo")
@click.option("--email", default="demo@tamagotchi.dev", show_default=True)
@click.option("--password", default="demo123", show_default=True)
@click.option("--pet-name", default="Mochi", show_default=True)
def seed_demo_cmd(email: str, password: str, pet_name: str):
    owner = User.query.filter_by(email=email).first()
    if owner is None:
        owner = User(email=email, name="Demo Owner")
        owner.set_password(password)
        db.session.add(owner)
        db.session.commit()

    pet = pet_service.revive(owner.id, pet_name)
    click.echo(f"✔ Seed done. User: {email} (password: {password}), pet: {pet.name}")


@click.command("sweep-inactive")
@click.option(
    "--cutoff-hours",
    type=float,
    default=None,
    help="Hours without interaction before a pet dies. Defaults to INACTIVITY_CUTOFF_HOURS.",
)
def sweep_inactive_cmd(cutoff_hours):
    click.echo("Checking for inactive pets...")
    count = pet_service.force_inactivity_death(cutoff_hours)
    click.echo(f"✔ Forced death for {count} inactive pets.")


@click.command("sweep-evolution")
def sweep_evolution_cmd():
    click.echo("Running evolution check...")
    count = pet_service.daily_evolution_sweep()
    click.echo(f"✔ {count} pets evolved.")
