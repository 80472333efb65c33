# =============================================================================
# cage_core/data/supabase_client.py
# Supabase Client Configuration for Cage Service Sheets
# =============================================================================

from __future__ import annotations
from typing import Optional
import logging

from supabase import Client, create_client

from cage_core.config import AppConfig

logger = logging.getLogger(__name__)


def create_supabase_client(config: AppConfig) -> Optional[Client]:
    """
    Initialize and return a Supabase client from the app configuration.

    Returns:
        Supabase client instance, or None if not configured or creation failed
        (the app then runs in local-only mode)
    """
    if not config.cloud_configured:
        return None

    try:
        client: Client = create_client(config.supabase_url, config.supabase_key)
        return client
    except Exception as e:
        logger.warning(f"Failed to initialize Supabase client: {e}")
        return None


def sign_in_anonymously(client: Client) -> Optional[str]:
    """
    Establish an anonymous session for row-level-security policies.

    Returns:
        Session user id

    Raises:
        Exception: Whatever the auth endpoint raised (caller decides the fallback)
    """
    response = client.auth.sign_in_anonymously()
    user = getattr(response, "user", None)
    return getattr(user, "id", None)
