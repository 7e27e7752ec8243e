# backend/flexpos/config.py
from __future__ import annotations
import os


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/flexpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///flexpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Tenant identity is established upstream; these headers are trusted as-is.
    TENANT_HEADER = os.environ.get("FLEXPOS_TENANT_HEADER", "X-Tenant-Id")
    ACTOR_HEADER = os.environ.get("FLEXPOS_ACTOR_HEADER", "X-Actor-Id")

    # Refunds always carry a flat tax rate (fraction, not percent)
    RETURN_TAX_RATE = os.environ.get("FLEXPOS_RETURN_TAX_RATE", "0.10")

    CORS_ALLOWED_ORIGINS = _split_csv(os.environ.get(
        "FLEXPOS_CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    ))
