from pathlib import Path
import os

BASE_DIR = Path(__file__).resolve().parent
INSTANCE_DIR = BASE_DIR / "instance"
INSTANCE_DIR.mkdir(exist_ok=True)  # ensure instance exists
DB_FILE = INSTANCE_DIR / "tamagotchi.db"


def _get_database_uri() -> str:
    url = os.environ.get("DATABASE_URL")
    if url:
        return url
    return f"sqlite:///{DB_FILE.as_posix()}"


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me")
    SQLALCHEMY_DATABASE_URI = _get_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10MB bodies

    # >1 speeds up the game clock (day/night cycle, decay)
    TIME_MULTIPLIER = float(os.environ.get("TIME_MULTIPLIER", "1"))
    INACTIVITY_CUTOFF_HOURS = float(os.environ.get("INACTIVITY_CUTOFF_HOURS", "72"))
    DEV_MODE = _env_flag("DEV_MODE", default=_env_flag("FLASK_DEBUG"))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
