"""Configuration and simple helper utilities for PawfectMatch."""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

DEFAULT_PETFINDER_BASE_URL = "https://api.petfinder.com/v2"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CACHE_DIR = "./data/cache/petfinder"
DEFAULT_PET_DETAIL_CACHE_SECONDS = 60 * 60
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
TOKEN_SAFETY_MARGIN_SECONDS = 300
MAX_EMPTY_PAGE_SKIPS = 5
MAX_FILTER_TEXT_LENGTH = 80
MAX_DISTANCE_MILES = 500
SESSION_COOKIE_NAME = "pawfectmatch_session"
SESSION_COOKIE_MAX_AGE_SECONDS = 60 * 60 * 24
SESSION_IDLE_SECONDS = 60 * 60 * 2
DEFAULT_SESSION_SECRET = "pawfectmatch-dev-session-secret-change-me"
ADOPTABLE_STATUS = "adoptable"

ANIMAL_TYPES = ("dog", "cat", "rabbit", "bird", "horse", "pig")
AGE_OPTIONS = ("baby", "young", "adult", "senior")
SIZE_OPTIONS = ("small", "medium", "large", "xlarge")
GENDER_OPTIONS = ("male", "female")


def get_petfinder_credentials() -> tuple[str, str]:
    """Return the Petfinder client id and secret from the environment."""
    client_id = os.environ.get("PETFINDER_CLIENT_ID", "").strip()
    client_secret = os.environ.get("PETFINDER_CLIENT_SECRET", "").strip()
    if not client_id:
        raise RuntimeError("PETFINDER_CLIENT_ID is not set.")
    if not client_secret:
        raise RuntimeError("PETFINDER_CLIENT_SECRET is not set.")
    return client_id, client_secret


def get_petfinder_base_url() -> str:
    raw = os.environ.get("PETFINDER_BASE_URL", "").strip()
    return (raw or DEFAULT_PETFINDER_BASE_URL).rstrip("/")


def get_timeout_seconds() -> float:
    """Return the upstream request timeout, falling back on bad values."""
    raw = os.environ.get("PETFINDER_TIMEOUT_SECONDS", "")
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_TIMEOUT_SECONDS
    return value if value > 0 else DEFAULT_TIMEOUT_SECONDS


def get_cache_dir() -> str:
    return os.environ.get("PAWFECTMATCH_CACHE_DIR", "").strip() or DEFAULT_CACHE_DIR


def get_pet_detail_cache_seconds() -> int:
    raw = os.environ.get("PET_DETAIL_CACHE_SECONDS", "")
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_PET_DETAIL_CACHE_SECONDS
    return max(0, value)


def get_log_level() -> str:
    return (os.environ.get("LOG_LEVEL") or "INFO").upper()
