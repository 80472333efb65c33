# =============================================================================
# cage_core/config.py
# Application Configuration for Cage Service Sheets
# =============================================================================
"""
Configuration is read from Streamlit secrets first, then environment variables,
then defaults.

Expected secrets.toml format:
    [supabase]
    url = "https://your-project.supabase.co"
    key = "your-anon-key"
    bucket = "service-sheets"

    [app]
    local_db_path = "local_data/cage_device.db"
    downloads_dir = "downloads"
    local_quota_bytes = 5242880
    log_level = "INFO"

Missing Supabase credentials are not an error: the app runs in local-only mode.
"""

from __future__ import annotations
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import logging

import streamlit as st

from cage_core.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_DB_PATH = Path("local_data") / "cage_device.db"
DEFAULT_DOWNLOADS_DIR = Path("downloads")
DEFAULT_REPORTS_BUCKET = "service-sheets"
DEFAULT_LOCAL_QUOTA_BYTES = 5 * 1024 * 1024  # Typical browser localStorage limit


@dataclass
class AppConfig:
    """Resolved runtime configuration."""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    reports_bucket: str = DEFAULT_REPORTS_BUCKET
    local_db_path: Path = field(default_factory=lambda: DEFAULT_LOCAL_DB_PATH)
    downloads_dir: Path = field(default_factory=lambda: DEFAULT_DOWNLOADS_DIR)
    local_quota_bytes: int = DEFAULT_LOCAL_QUOTA_BYTES
    log_level: str = "INFO"

    @property
    def cloud_configured(self) -> bool:
        """True when Supabase credentials are present."""
        return bool(self.supabase_url and self.supabase_key)


def _load_secrets() -> Dict[str, Dict[str, Any]]:
    """Read the [supabase] and [app] sections of Streamlit secrets, if any."""
    sections: Dict[str, Dict[str, Any]] = {}
    try:
        for name in ("supabase", "app"):
            if name in st.secrets:
                sections[name] = dict(st.secrets[name])
    except Exception as e:
        # No secrets.toml, or not running under Streamlit
        logger.debug(f"Streamlit secrets not available: {e}")
    return sections


def _pick(secret_value: Any, env_name: str, default: Any = None) -> Any:
    if secret_value not in (None, ""):
        return secret_value
    env_value = os.getenv(env_name)
    if env_value not in (None, ""):
        return env_value
    return default


def load_config() -> AppConfig:
    """
    Build the application configuration.

    Returns:
        AppConfig with secrets > environment > defaults precedence

    Raises:
        ConfigurationError: If a numeric setting cannot be parsed
    """
    secrets = _load_secrets()
    supabase = secrets.get("supabase", {})
    app = secrets.get("app", {})

    quota_raw = _pick(app.get("local_quota_bytes"), "CAGE_LOCAL_QUOTA_BYTES", DEFAULT_LOCAL_QUOTA_BYTES)
    try:
        quota = int(quota_raw)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Invalid local storage quota: {quota_raw!r}",
            config_key="local_quota_bytes",
            expected_type="int",
        )

    config = AppConfig(
        supabase_url=_pick(supabase.get("url"), "SUPABASE_URL"),
        supabase_key=_pick(supabase.get("key"), "SUPABASE_KEY"),
        reports_bucket=_pick(supabase.get("bucket"), "CAGE_REPORTS_BUCKET", DEFAULT_REPORTS_BUCKET),
        local_db_path=Path(_pick(app.get("local_db_path"), "CAGE_LOCAL_DB_PATH", DEFAULT_LOCAL_DB_PATH)),
        downloads_dir=Path(_pick(app.get("downloads_dir"), "CAGE_DOWNLOADS_DIR", DEFAULT_DOWNLOADS_DIR)),
        local_quota_bytes=quota,
        log_level=str(_pick(app.get("log_level"), "CAGE_LOG_LEVEL", "INFO")),
    )

    if not config.cloud_configured:
        logger.info("Supabase credentials not configured - running in local-only mode")

    return config
