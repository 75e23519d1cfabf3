"""
Unit tests for cancellation tokens.
"""

import threading

from featuredev_agent.cancellation import CancellationTokenSource


class TestCancellationTokenSource:
    """Tests for CancellationTokenSource."""

    def test_initial_state(self):
        source = CancellationTokenSource()
        assert not source.cancelled
        assert not source.token.is_cancellation_requested()

    def test_cancel(self):
        source = CancellationTokenSource()

        source.cancel("stop_button")

        assert source.cancelled
        assert source.token.is_cancellation_requested()

    def test_cancel_is_idempotent(self):
        source = CancellationTokenSource()

        source.cancel()
        source.cancel("again")

        assert source.cancelled

    def test_token_tracks_its_own_source(self):
        first = CancellationTokenSource()
        second = CancellationTokenSource()

        first.cancel()

        assert first.token.is_cancellation_requested()
        assert not second.token.is_cancellation_requested()

    def test_cancel_from_thread(self):
        source = CancellationTokenSource()

        thread = threading.Thread(target=source.cancel)
        thread.start()
        thread.join()

        assert source.cancelled
