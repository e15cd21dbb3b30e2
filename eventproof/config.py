"""
Service configuration, read from the environment (and a .env file if present).
"""

import os
import time
from dotenv import load_dotenv

load_dotenv()

DAY_MS = 86_400_000
HOUR_MS = 3_600_000


def system_clock():
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def _database_uri():
    if os.getenv("DATABASE_URL"):
        return os.environ["DATABASE_URL"]
    db_user = os.getenv("DB_USER", "eventproof_user")
    db_pass = os.getenv("DB_PASS", "password")
    db_host = os.getenv("DB_HOST", "eventproof-db")
    db_name = os.getenv("DB_NAME", "eventproof_db")
    return f"postgresql://{db_user}:{db_pass}@{db_host}/{db_name}"


class Config:
    SQLALCHEMY_DATABASE_URI = _database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change-me")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Sponsor/operator safety valve: how long after end_time an unsettled
    # escrow stays locked.
    ESCROW_GRACE_PERIOD_MS = int(os.getenv("ESCROW_GRACE_PERIOD_MS", 7 * DAY_MS))
    # "checked_out" or "attended" (CheckedIn + CheckedOut)
    SETTLEMENT_ATTENDANCE_POLICY = os.getenv("SETTLEMENT_ATTENDANCE_POLICY", "checked_out")
    # "all_or_nothing" or "proportional"
    SETTLEMENT_RELEASE_POLICY = os.getenv("SETTLEMENT_RELEASE_POLICY", "all_or_nothing")
    OPERATOR_ADDRESS = os.getenv("OPERATOR_ADDRESS")

    CLOCK = staticmethod(system_clock)
