# backend/outletpos/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/outletpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///outletpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Outlets operate on local (WIB, UTC+7) business days; no DST.
    BUSINESS_UTC_OFFSET_HOURS = int(os.environ.get("BUSINESS_UTC_OFFSET_HOURS", "7"))

    # Delivery-channel prices are rounded to the nearest multiple of this step.
    PRICE_ROUNDING_STEP = int(os.environ.get("PRICE_ROUNDING_STEP", "500"))

    # Bounded retry for transaction-number collisions at checkout.
    TRANSACTION_NUMBER_ATTEMPTS = int(os.environ.get("TRANSACTION_NUMBER_ATTEMPTS", "5"))

    DRAFT_CART_TTL_HOURS = int(os.environ.get("DRAFT_CART_TTL_HOURS", "24"))
    SESSION_TOKEN_TTL_HOURS = int(os.environ.get("SESSION_TOKEN_TTL_HOURS", "12"))

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Front-end origins allowed to call the API from a browser (comma separated).
    CORS_ALLOWED_ORIGINS = [
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if o.strip()
    ]
