# backend/pharmapos/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # DATABASE_URL wins; otherwise a local SQLite file
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///pharmapos.sqlite3")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds a SQLite writer waits on BEGIN IMMEDIATE before "database is locked"
    SQLITE_BUSY_TIMEOUT = _env_int("SQLITE_BUSY_TIMEOUT", 15)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Page size caps for list endpoints
    SALES_PAGE_LIMIT_MAX = _env_int("SALES_PAGE_LIMIT_MAX", 200)
    AUDIT_PAGE_LIMIT_MAX = _env_int("AUDIT_PAGE_LIMIT_MAX", 500)
