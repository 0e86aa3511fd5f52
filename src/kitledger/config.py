"""Application configuration — loads .env, then overrides from settings.json."""

import json
import os
from pathlib import Path

from dotenv import load_dotenv

# Find the project root (where .env lives)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# Runtime settings file for in-app configuration
_SETTINGS_FILE = _PROJECT_ROOT / "data" / "settings.json"


def _load_settings() -> dict:
    """Load saved runtime settings from JSON file."""
    if _SETTINGS_FILE.exists():
        try:
            return json.loads(_SETTINGS_FILE.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            pass
    return {}


def _save_settings(settings: dict):
    """Persist runtime settings to JSON file."""
    _SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
    _SETTINGS_FILE.write_text(
        json.dumps(settings, indent=2), encoding="utf-8"
    )


# Load saved settings once at import time
_runtime = _load_settings()


class Config:
    """Central configuration: .env defaults, settings.json overrides."""

    # Paths
    PROJECT_ROOT: Path = _PROJECT_ROOT
    DATABASE_PATH: Path = Path(
        os.getenv("DATABASE_PATH", str(_PROJECT_ROOT / "data" / "kitledger.db"))
    )
    EXPORT_DIRECTORY: str = _runtime.get(
        "export_directory",
        os.getenv("EXPORT_DIRECTORY", str(_PROJECT_ROOT / "data" / "exports")),
    )

    # Backend selection: "local" (SQLite) or "rest" (managed backend)
    GATEWAY_BACKEND: str = _runtime.get(
        "gateway_backend",
        os.getenv("GATEWAY_BACKEND", "local"),
    )

    # Managed backend (settings.json overrides .env)
    BACKEND_URL: str = _runtime.get(
        "backend_url",
        os.getenv("BACKEND_URL", ""),
    )
    BACKEND_API_KEY: str = _runtime.get(
        "backend_api_key",
        os.getenv("BACKEND_API_KEY", ""),
    )
    REQUEST_TIMEOUT: float = float(_runtime.get(
        "request_timeout",
        os.getenv("REQUEST_TIMEOUT", "30"),
    ))

    # Relation naming and named procedures
    TABLE_PREFIX: str = os.getenv("TABLE_PREFIX", "inventory_")
    RECEIVE_PROCEDURE: str = os.getenv(
        "RECEIVE_PROCEDURE", "record_purchase_receipt"
    )
    SALE_PROCEDURE: str = os.getenv("SALE_PROCEDURE", "record_sale")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @classmethod
    def update_backend_settings(cls, base_url: str, api_key: str,
                                timeout: float):
        """Update managed-backend settings at runtime and persist to disk."""
        cls.BACKEND_URL = base_url
        cls.BACKEND_API_KEY = api_key
        cls.REQUEST_TIMEOUT = timeout

        settings = _load_settings()
        settings["backend_url"] = base_url
        settings["backend_api_key"] = api_key
        settings["request_timeout"] = timeout
        _save_settings(settings)

    @classmethod
    def update_gateway_backend(cls, backend: str):
        """Switch between the local and rest gateways and persist."""
        if backend not in ("local", "rest"):
            raise ValueError(f"Unknown gateway backend: {backend}")
        cls.GATEWAY_BACKEND = backend
        settings = _load_settings()
        settings["gateway_backend"] = backend
        _save_settings(settings)

    @classmethod
    def update_export_directory(cls, path: str):
        """Update the default export folder and persist."""
        cls.EXPORT_DIRECTORY = path
        settings = _load_settings()
        settings["export_directory"] = path
        _save_settings(settings)

    @classmethod
    def relation_name(cls, table: str) -> str:
        """Physical relation name for a logical table or view."""
        return f"{cls.TABLE_PREFIX}{table}"
