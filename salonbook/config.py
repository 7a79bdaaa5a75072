"""Application settings, read from the environment."""
from __future__ import annotations

import os


def _split_csv(env_val: str) -> list[str]:
    return [x.strip() for x in (env_val or "").split(",") if x.strip()]


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///salonbook.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Granularity of offered start times, in minutes.
    SLOT_STEP_MINUTES = int(os.environ.get("SLOT_STEP_MINUTES", 15))
    AUTH_TOKEN_MAX_AGE = int(os.environ.get("AUTH_TOKEN_MAX_AGE", 86400))
    CORS_ORIGINS = _split_csv(os.environ.get("CORS_ORIGINS", "*")) or ["*"]


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
