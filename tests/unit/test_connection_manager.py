# =============================================================================
# tests/unit/test_connection_manager.py
# Unit Tests for ConnectionManager
# =============================================================================

from unittest.mock import MagicMock


class TestSessionEstablishment:
    """Test anonymous sign-in and local-only mode"""

    def test_no_client_is_local_only(self):
        from cage_core.offline.connection_manager import ConnectionManager, ConnectionStatus

        manager = ConnectionManager(None)
        manager.initialize()

        assert manager.status == ConnectionStatus.LOCAL_ONLY
        assert not manager.cloud_enabled
        assert manager.is_offline

    def test_successful_sign_in_goes_online(self, mock_supabase):
        from cage_core.offline.connection_manager import ConnectionManager, ConnectionStatus

        mock_supabase.auth.sign_in_anonymously.return_value.user.id = "anon-1"
        manager = ConnectionManager(mock_supabase, "https://example.supabase.co")

        manager.initialize()

        assert manager.status == ConnectionStatus.ONLINE
        assert manager.cloud_enabled
        assert manager.state.session_user_id == "anon-1"

    def test_refused_sign_in_degrades_to_local_only(self, mock_supabase):
        """Auth failure never raises; the app keeps working locally"""
        from cage_core.offline.connection_manager import ConnectionManager, ConnectionStatus

        mock_supabase.auth.sign_in_anonymously.side_effect = RuntimeError("anonymous sign-ins are disabled")
        manager = ConnectionManager(mock_supabase, "https://example.supabase.co")

        state = manager.initialize()

        assert state.status == ConnectionStatus.LOCAL_ONLY
        assert not manager.cloud_enabled
        assert "anonymous sign-ins are disabled" in state.error_message

    def test_initialize_runs_once(self, mock_supabase):
        from cage_core.offline.connection_manager import ConnectionManager

        manager = ConnectionManager(mock_supabase, "https://example.supabase.co")
        manager.initialize()
        manager.initialize()

        assert mock_supabase.auth.sign_in_anonymously.call_count == 1


class TestConnectionChecks:
    """Test reachability checks and forced offline"""

    def test_unreachable_host_goes_offline(self, mock_supabase, monkeypatch):
        from cage_core.offline.connection_manager import ConnectionManager, ConnectionStatus

        manager = ConnectionManager(mock_supabase, "https://example.supabase.co")
        manager.initialize()
        monkeypatch.setattr(manager, "_check_host", lambda: False)

        manager.check_connection()

        assert manager.status == ConnectionStatus.OFFLINE
        assert manager.state.consecutive_failures == 1

    def test_reachable_host_retries_failed_session(self, mock_supabase, monkeypatch):
        from cage_core.offline.connection_manager import ConnectionManager, ConnectionStatus

        mock_supabase.auth.sign_in_anonymously.side_effect = [RuntimeError("down"), MagicMock()]
        manager = ConnectionManager(mock_supabase, "https://example.supabase.co")
        manager.initialize()
        monkeypatch.setattr(manager, "_check_host", lambda: True)

        manager.check_connection()

        assert manager.status == ConnectionStatus.ONLINE
        assert manager.cloud_enabled

    def test_force_offline_disables_cloud(self, mock_supabase):
        from cage_core.offline.connection_manager import ConnectionManager, ConnectionStatus

        manager = ConnectionManager(mock_supabase, "https://example.supabase.co")
        manager.initialize()

        manager.force_offline()

        assert manager.status == ConnectionStatus.OFFLINE
        assert not manager.cloud_enabled

    def test_host_check_without_url_is_false(self):
        from cage_core.offline.connection_manager import ConnectionManager
        assert ConnectionManager(MagicMock(), None)._check_host() is False

    def test_callbacks_fire_on_change_only(self, mock_supabase):
        from cage_core.offline.connection_manager import ConnectionManager

        manager = ConnectionManager(mock_supabase, "https://example.supabase.co")
        seen = []
        manager.register_callback(lambda state: seen.append(state.status.value))

        manager.initialize()
        manager.force_offline()
        manager.force_offline()

        assert seen == ["online", "offline"]

    def test_status_display(self):
        from cage_core.offline.connection_manager import ConnectionManager

        manager = ConnectionManager(None)
        manager.initialize()
        display = manager.get_status_display()

        assert display["status"] == "local_only"
        assert display["cloud_enabled"] is False
        assert display["error"] == "Supabase not configured"


class TestRerunChecks:
    """Test the throttled check the app runs on every rerun"""

    def test_first_rerun_checks(self, mock_supabase, monkeypatch):
        from cage_core.offline.connection_manager import ConnectionManager, ConnectionStatus

        manager = ConnectionManager(mock_supabase, "https://example.supabase.co")
        manager.initialize()
        monkeypatch.setattr(manager, "_check_host", lambda: False)

        manager.check_if_due()

        assert manager.status == ConnectionStatus.OFFLINE
        assert manager.state.last_check is not None

    def test_recent_check_is_reused(self, mock_supabase, monkeypatch):
        from datetime import timedelta
        from cage_core.offline.connection_manager import ConnectionManager

        manager = ConnectionManager(mock_supabase, "https://example.supabase.co")
        manager.initialize()
        hosts = []
        monkeypatch.setattr(manager, "_check_host", lambda: hosts.append(1) or True)

        manager.check_if_due()
        checked_at = manager.state.last_check
        manager.check_if_due(now=checked_at + timedelta(seconds=5))
        assert len(hosts) == 1

        manager.check_if_due(now=checked_at + timedelta(seconds=manager.CHECK_INTERVAL))
        assert len(hosts) == 2

    def test_work_offline_switch(self, mock_supabase, monkeypatch):
        from cage_core.offline.connection_manager import ConnectionManager, ConnectionStatus

        manager = ConnectionManager(mock_supabase, "https://example.supabase.co")
        manager.initialize()
        monkeypatch.setattr(manager, "_check_host", lambda: True)

        manager.force_offline()
        assert manager.forced_offline
        manager.check_if_due()
        assert manager.status == ConnectionStatus.OFFLINE

        manager.clear_forced_offline()

        assert not manager.forced_offline
        assert manager.status == ConnectionStatus.ONLINE
        assert manager.cloud_enabled
