# backend/tracker/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tracker.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shared credentials. There is one admin password for the whole site and
    # two confirmation passwords for destructive operations.
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "admin-change-me")
    DELETE_PASSWORD = os.environ.get("DELETE_PASSWORD", "722379")
    HISTORY_PASSWORD = os.environ.get("HISTORY_PASSWORD", "1432")

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    SESSION_TIMEOUT_HOURS = int(os.environ.get("SESSION_TIMEOUT_HOURS", "12"))
    ADMIN_PRESENCE_TIMEOUT_SECONDS = int(os.environ.get("ADMIN_PRESENCE_TIMEOUT_SECONDS", "30"))

    # Response size cap for list endpoints
    MAX_ROWS = int(os.environ.get("MAX_ROWS", "1000"))

    COMPANY_NAME = os.environ.get("COMPANY_NAME", "Material Tracking System")

    # Browser origins allowed to call the API (comma-separated)
    CORS_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    )
