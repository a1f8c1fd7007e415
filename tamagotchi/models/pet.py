from sqlalchemy import CheckConstraint

from ..engine.clock import utcnow
from ..engine.types import STAT_NAMES, PetSnapshot, SleepState, Stage
from ..extensions import db

_STAGES = ", ".join(f"'{s.value}'" for s in Stage)
_SLEEP_STATES = ", ".join(f"'{s.value}'" for s in SleepState)


def _iso(dt):
    return dt.isoformat() if dt else None


class Pet(db.Model):
    __tablename__ = "pets"

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    name = db.Column(db.String(100), nullable=False)
    stage = db.Column(db.String(20), nullable=False, default=Stage.EGG.value, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    last_interacted_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    hunger = db.Column(db.Integer, nullable=False, default=100)
    happiness = db.Column(db.Integer, nullable=False, default=100)
    hygiene = db.Column(db.Integer, nullable=False, default=100)
    health = db.Column(db.Integer, nullable=False, default=100)
    discipline = db.Column(db.Integer, nullable=False, default=0)
    energy = db.Column(db.Integer, nullable=False, default=100)
    evolution_points = db.Column(db.Integer, nullable=False, default=0)

    sleep_state = db.Column(db.String(20), nullable=False, default=SleepState.AWAKE.value)
    sleep_start_time = db.Column(db.DateTime, nullable=True)
    sleep_quality = db.Column(db.Integer, nullable=False, default=100)
    light_on = db.Column(db.Boolean, nullable=False, default=True)

    # optimistic lock: every UPDATE is "WHERE id = ? AND version = ?"
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = tuple(
        CheckConstraint(f"{stat} >= 0 AND {stat} <= 100", name=f"ck_pet_{stat}_range")
        for stat in STAT_NAMES
    ) + (
        CheckConstraint("sleep_quality >= 0 AND sleep_quality <= 100", name="ck_pet_sleep_quality_range"),
        CheckConstraint("evolution_points >= 0", name="ck_pet_evolution_points_non_negative"),
        CheckConstraint(f"stage IN ({_STAGES})", name="ck_pet_stage"),
        CheckConstraint(f"sleep_state IN ({_SLEEP_STATES})", name="ck_pet_sleep_state"),
    )

    owner = db.relationship("User", backref=db.backref("pet", uselist=False))

    @classmethod
    def from_snapshot(cls, owner_id: int, snapshot: PetSnapshot) -> "Pet":
        pet = cls(owner_id=owner_id, created_at=snapshot.created_at)
        pet.apply_snapshot(snapshot)
        return pet

    def to_snapshot(self) -> PetSnapshot:
        return PetSnapshot(
            id=self.id,
            name=self.name,
            created_at=self.created_at,
            last_interacted_at=self.last_interacted_at,
            stage=Stage(self.stage),
            hunger=self.hunger,
            happiness=self.happiness,
            hygiene=self.hygiene,
            health=self.health,
            discipline=self.discipline,
            energy=self.energy,
            evolution_points=self.evolution_points,
            sleep_state=SleepState(self.sleep_state),
            sleep_start_time=self.sleep_start_time,
            sleep_quality=self.sleep_quality,
            light_on=self.light_on,
        )

    def apply_snapshot(self, snapshot: PetSnapshot) -> None:
        self.name = snapshot.name
        self.stage = snapshot.stage.value
        for stat, value in snapshot.stats().items():
            setattr(self, stat, value)
        self.evolution_points = snapshot.evolution_points
        self.sleep_state = snapshot.sleep_state.value
        self.sleep_start_time = snapshot.sleep_start_time
        self.sleep_quality = snapshot.sleep_quality
        self.light_on = snapshot.light_on
        self.last_interacted_at = snapshot.last_interacted_at

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "stage": self.stage,
            "createdAt": _iso(self.created_at),
            "lastInteractedAt": _iso(self.last_interacted_at),
            "sleepState": self.sleep_state,
            "isSleeping": self.sleep_state == SleepState.ASLEEP.value,
            "lightOn": self.light_on,
            "sleepQuality": self.sleep_quality,
            "stats": {stat: getattr(self, stat) for stat in STAT_NAMES},
            "evolutionPoints": self.evolution_points,
        }

    def __repr__(self) -> str:
        return f"<Pet {self.id} {self.name!r} {self.stage}>"
