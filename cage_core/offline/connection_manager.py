# =============================================================================
# cage_core/offline/connection_manager.py
# Cloud Session and Connectivity Management
# =============================================================================
"""
ConnectionManager - establishes the anonymous cloud session and tracks whether
the cloud can be used at all.

Features:
- Anonymous session establishment at start-up
- Local-only mode when credentials are missing or sign-in is refused
- Host reachability checks, at most once per CHECK_INTERVAL on reruns
- A user switch to work offline
- Event callbacks for status changes
"""

from __future__ import annotations
import socket
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse
import logging

from cage_core.data.supabase_client import sign_in_anonymously

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"           # Session established and host reachable
    OFFLINE = "offline"         # Host unreachable
    LOCAL_ONLY = "local_only"   # No credentials, or anonymous sign-in refused
    CHECKING = "checking"       # Currently checking status
    UNKNOWN = "unknown"         # Initial state


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    authenticated: bool = False
    host_reachable: bool = False
    session_user_id: Optional[str] = None
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    consecutive_failures: int = 0
    error_message: Optional[str] = None


class ConnectionManager:
    """
    Tracks whether cloud calls are worth attempting.

    Usage:
        manager = ConnectionManager(client, config.supabase_url)
        manager.initialize()
        if manager.cloud_enabled:
            # Try cloud, fall back to device storage on failure
    """

    CONNECTION_TIMEOUT = 5  # Seconds for reachability tests
    CHECK_INTERVAL = 30     # Seconds between rerun checks

    def __init__(self, client: Any = None, supabase_url: Optional[str] = None):
        self._client = client
        self._supabase_url = supabase_url
        self._state = ConnectionState()
        self._callbacks: List[Callable[[ConnectionState], None]] = []
        self._forced_offline = False
        self._initialized = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def is_online(self) -> bool:
        """Session established and the cloud host answered the last check."""
        return self._state.status == ConnectionStatus.ONLINE

    @property
    def is_offline(self) -> bool:
        return self._state.status in (ConnectionStatus.OFFLINE, ConnectionStatus.LOCAL_ONLY)

    @property
    def cloud_enabled(self) -> bool:
        """False in local-only mode: cloud adapters fail fast instead of calling out."""
        return self._client is not None and self._state.authenticated and not self._forced_offline

    @property
    def forced_offline(self) -> bool:
        return self._forced_offline

    def initialize(self) -> ConnectionState:
        """
        Establish the anonymous session. Never raises; failure means local-only mode.
        """
        if self._initialized:
            return self._state

        self.establish_session()
        self._initialized = True
        logger.info(f"ConnectionManager initialized. Status: {self._state.status.value}")
        return self._state

    def establish_session(self) -> bool:
        """
        Sign in anonymously.

        Returns:
            True if a session is available
        """
        old_status = self._state.status

        if self._client is None:
            self._state.authenticated = False
            self._state.error_message = "Supabase not configured"
            self._set_status(ConnectionStatus.LOCAL_ONLY, old_status)
            return False

        try:
            self._state.session_user_id = sign_in_anonymously(self._client)
            self._state.authenticated = True
            self._state.host_reachable = True
            self._state.error_message = None
            self._state.last_online = datetime.now()
            self._state.consecutive_failures = 0
            self._set_status(ConnectionStatus.ONLINE, old_status)
            return True
        except Exception as e:
            logger.warning(f"Anonymous sign-in failed, switching to local-only mode: {e}")
            self._state.authenticated = False
            self._state.error_message = f"Auth Error: {e}"
            self._state.consecutive_failures += 1
            self._set_status(ConnectionStatus.LOCAL_ONLY, old_status)
            return False

    def check_connection(self) -> ConnectionState:
        """
        Re-check reachability of the cloud host and update state.

        Returns:
            Updated ConnectionState
        """
        old_status = self._state.status
        self._state.last_check = datetime.now()

        if self._forced_offline:
            return self._state

        if self._client is None:
            self._set_status(ConnectionStatus.LOCAL_ONLY, old_status)
            return self._state

        self._state.status = ConnectionStatus.CHECKING
        reachable = self._check_host()
        self._state.host_reachable = reachable

        if not reachable:
            self._state.consecutive_failures += 1
            self._set_status(ConnectionStatus.OFFLINE, old_status)
        elif not self._state.authenticated:
            # Host is back: retry the session that failed earlier
            self._state.status = old_status
            self.establish_session()
        else:
            self._state.last_online = datetime.now()
            self._state.consecutive_failures = 0
            self._state.error_message = None
            self._set_status(ConnectionStatus.ONLINE, old_status)

        return self._state

    def check_if_due(self, now: Optional[datetime] = None) -> ConnectionState:
        """Re-check unless the last check is younger than CHECK_INTERVAL."""
        now = now or datetime.now()
        last = self._state.last_check
        if last is not None and (now - last).total_seconds() < self.CHECK_INTERVAL:
            return self._state
        return self.check_connection()

    def _check_host(self) -> bool:
        """
        Check the Supabase host accepts TCP connections.

        Returns:
            True if the host is reachable
        """
        if not self._supabase_url:
            return False

        parsed = urlparse(self._supabase_url)
        host = parsed.hostname
        port = parsed.port or (443 if parsed.scheme != "http" else 80)
        if not host:
            return False

        try:
            with socket.create_connection((host, port), timeout=self.CONNECTION_TIMEOUT):
                return True
        except OSError as e:
            self._state.error_message = str(e)
            logger.debug(f"Supabase host check failed: {e}")
            return False

    def _set_status(self, status: ConnectionStatus, old_status: ConnectionStatus) -> None:
        self._state.status = status
        if old_status != status:
            logger.info(f"Connection status changed: {old_status.value} -> {status.value}")
            self._notify_callbacks()

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Register a callback for connection status changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def _notify_callbacks(self) -> None:
        """Notify all registered callbacks of status change."""
        for callback in self._callbacks:
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}")

    def force_offline(self) -> None:
        """Force local-only behaviour (user preference or tests)."""
        old_status = self._state.status
        self._forced_offline = True
        self._state.host_reachable = False
        self._set_status(ConnectionStatus.OFFLINE, old_status)
        logger.info("Forced offline mode")

    def clear_forced_offline(self) -> ConnectionState:
        """Leave forced offline mode and re-check."""
        self._forced_offline = False
        return self.check_connection()

    def get_status_display(self) -> Dict[str, Any]:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "cloud_enabled": self.cloud_enabled,
            "authenticated": self._state.authenticated,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }
