# backend/backoffice/config.py
from __future__ import annotations
import os
from urllib.parse import quote_plus

BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))


def _database_uri() -> str:
    """
    MySQL when DB_HOST/DB_NAME are provided,
    otherwise DATABASE_URL, otherwise a local SQLite file.
    """
    host = os.environ.get("DB_HOST")
    name = os.environ.get("DB_NAME")
    if host and name:
        user = os.environ.get("DB_USER", "root")
        password = quote_plus(os.environ.get("DB_PASSWORD", ""))
        port = os.environ.get("DB_PORT", "3306")
        return f"mysql+pymysql://{user}:{password}@{host}:{port}/{name}?charset=utf8mb4"

    return os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///itkmmshop.sqlite3",  # default local location (instance folder)
    )


def _frontend_origins() -> set[str]:
    raw = os.environ.get("FRONTEND_ORIGINS")
    if raw:
        return {o.strip().rstrip("/") for o in raw.split(",") if o.strip()}
    return {
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    }


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = _database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Uploaded product images and payment slips (served under /uploads)
    UPLOAD_FOLDER = os.environ.get("UPLOAD_FOLDER", os.path.join(BACKEND_DIR, "uploads"))
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024

    # Thai VAT
    DEFAULT_VAT_RATE = 7

    # Shop details printed on receipts and shown next to the PromptPay QR
    SHOP_NAME = os.environ.get("SHOP_NAME", "itkmmshop")
    SHOP_PHONE = os.environ.get("SHOP_PHONE", "")
    SHOP_EMAIL = os.environ.get("SHOP_EMAIL", "")
    SHOP_TAX_ID = os.environ.get("SHOP_TAX_ID", "")

    # PromptPay target: mobile number or 13-digit tax ID (falls back to SHOP_PHONE)
    PROMPTPAY_ID = os.environ.get("PROMPTPAY_ID", "")
    BANK_NAME = os.environ.get("BANK_NAME", "")
    BANK_ACCOUNT_NUMBER = os.environ.get("BANK_ACCOUNT_NUMBER", "")
    BANK_ACCOUNT_NAME = os.environ.get("BANK_ACCOUNT_NAME", "")

    # The React admin reads REACT_APP_API_URL; its origin must be allowed here
    CORS_ORIGINS = _frontend_origins()

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # bcrypt cost; tests lower it to keep fixtures fast
    BCRYPT_LOG_ROUNDS = int(os.environ.get("BCRYPT_LOG_ROUNDS", "12"))
