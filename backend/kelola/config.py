# backend/kelola/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/kelola.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///kelola.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Stock-mutating workflows retry this many times on write conflicts
    STOCK_RETRY_ATTEMPTS = int(os.environ.get("STOCK_RETRY_ATTEMPTS", "3"))
    STOCK_RETRY_BACKOFF = float(os.environ.get("STOCK_RETRY_BACKOFF", "0.1"))

    # Reorder heuristic
    REORDER_LEAD_TIME_DAYS = int(os.environ.get("REORDER_LEAD_TIME_DAYS", "7"))
    REORDER_WINDOW_DAYS = int(os.environ.get("REORDER_WINDOW_DAYS", "30"))
    REORDER_SAMPLE_SIZE = int(os.environ.get("REORDER_SAMPLE_SIZE", "10"))
    # "assumed": fixed REORDER_WINDOW_DAYS; "observed": span of the sampled movements
    REORDER_WINDOW_MODE = os.environ.get("REORDER_WINDOW_MODE", "assumed")

    INVOICE_PREFIX = os.environ.get("INVOICE_PREFIX", "INV")
    PRODUCTION_PREFIX = os.environ.get("PRODUCTION_PREFIX", "PROD")

    # Comma-separated frontend origins allowed to call the API
    CORS_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
        if o.strip()
    )
