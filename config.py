"""
Runtime configuration for the shop backend.

Values come from the process environment, optionally seeded from a local
``.env`` file.
"""
import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_ALGO = "HS256"
TOKEN_TTL_DAYS = int(os.getenv("TOKEN_TTL_DAYS", "7"))

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@shop.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

# error messages of unexpected failures are only exposed in development
APP_ENV = os.getenv("APP_ENV", "production")

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
UPLOAD_URL = os.getenv("UPLOAD_URL", "/uploads")
MAX_IMAGE_BYTES = int(os.getenv("MAX_IMAGE_BYTES", str(5 * 1024 * 1024)))

PORT = int(os.getenv("PORT", "8000"))


def is_development() -> bool:
    return APP_ENV.lower() == "development"
