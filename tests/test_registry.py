"""Tests for SessionRegistry."""

from concurrent.futures import ThreadPoolExecutor

from longpoll import CancelToken, SessionRegistry


class TestSessionRegistry:
    """Tests for session bookkeeping."""

    def test_register_and_deregister(self):
        """Test registration adds a session and deregistration removes it."""
        registry = SessionRegistry()
        handle = registry.register(CancelToken())

        assert registry.active_count() == 1
        assert handle in registry

        registry.deregister(handle)

        assert registry.active_count() == 0
        assert handle not in registry

    def test_handles_are_unique(self):
        """Test every registration gets its own handle."""
        registry = SessionRegistry()
        token = CancelToken()

        first = registry.register(token)
        second = registry.register(token)

        assert first != second
        assert len(registry) == 2

    def test_deregister_is_idempotent(self):
        """Test removing an unknown or already removed handle is a no-op."""
        registry = SessionRegistry()
        handle = registry.register(CancelToken())

        registry.deregister(handle)
        registry.deregister(handle)
        registry.deregister(9999)

        assert registry.active_count() == 0

    def test_cancel_all(self):
        """Test cancel_all signals every registered token and reports the count."""
        registry = SessionRegistry()
        tokens = [CancelToken() for _ in range(3)]
        for token in tokens:
            registry.register(token)

        assert registry.cancel_all() == 3
        assert all(token.cancelled for token in tokens)

    def test_cancel_all_does_not_deregister(self):
        """Test sessions stay registered until they deregister themselves."""
        registry = SessionRegistry()
        registry.register(CancelToken())

        registry.cancel_all()

        assert registry.active_count() == 1

    def test_cancel_all_skips_deregistered(self):
        """Test tokens of finished sessions are left alone."""
        registry = SessionRegistry()
        finished = CancelToken()
        running = CancelToken()
        registry.deregister(registry.register(finished))
        registry.register(running)

        assert registry.cancel_all() == 1
        assert finished.cancelled is False
        assert running.cancelled is True

    def test_cancel_all_empty(self):
        """Test cancel_all on an empty registry."""
        assert SessionRegistry().cancel_all() == 0

    def test_concurrent_registration(self):
        """Test register/deregister from many threads while cancelling."""
        registry = SessionRegistry()

        def churn(_):
            handle = registry.register(CancelToken())
            registry.cancel_all()
            registry.active_count()
            registry.deregister(handle)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(churn, range(200)))

        assert registry.active_count() == 0
