"""
Unit tests for session state.
"""

import pytest
from unittest.mock import patch

from featuredev_agent.backend import ScriptedBackend, ScriptedOutcome
from featuredev_agent.exceptions import SessionNotFoundError
from featuredev_agent.state import (
    CODE_GENERATION_RETRY_LIMIT,
    ConversationNotStartedState,
    PrepareCodeGenerationState,
    PreparingState,
    Session,
    SessionManager,
    SessionPhase,
    SessionState,
    retries_remaining,
)
from featuredev_agent.telemetry import MetricDataOperationName, MetricDataResult


@pytest.fixture
def backend():
    return ScriptedBackend([ScriptedOutcome(remaining_iterations=3, total_iterations=5)])


@pytest.fixture
def session(backend, telemetry):
    return Session(tab_id="tab", backend=backend, telemetry=telemetry)


class TestSessionState:
    """Tests for state variants."""

    def test_phases(self):
        assert ConversationNotStartedState().phase == SessionPhase.INIT
        assert PreparingState().phase == SessionPhase.CODEGEN
        assert PrepareCodeGenerationState().phase == SessionPhase.CODEGEN

    def test_remaining_may_not_exceed_total(self):
        with pytest.raises(ValueError):
            PrepareCodeGenerationState(
                code_generation_remaining_iteration_count=6,
                code_generation_total_iteration_count=5,
            )

    def test_partial_counts_allowed(self):
        state = SessionState(code_generation_remaining_iteration_count=4)
        assert state.code_generation_total_iteration_count is None


class TestSession:
    """Tests for Session."""

    def test_initial_state(self, session):
        assert isinstance(session.state, ConversationNotStartedState)
        assert session.retries == CODE_GENERATION_RETRY_LIMIT
        assert not session.cancellation_requested

    @pytest.mark.asyncio
    async def test_send_installs_backend_state(self, session):
        state = await session.send("build it")

        assert isinstance(state, PrepareCodeGenerationState)
        assert session.state is state
        assert session.latest_message == "build it"
        assert state.code_generation_remaining_iteration_count == 3

    @pytest.mark.asyncio
    async def test_remaining_never_increases(self, telemetry):
        backend = ScriptedBackend([
            ScriptedOutcome(remaining_iterations=2, total_iterations=5),
            ScriptedOutcome(remaining_iterations=4, total_iterations=5),
        ])
        session = Session(tab_id="tab", backend=backend, telemetry=telemetry)

        await session.send("one")
        await session.send("two")

        assert session.state.code_generation_remaining_iteration_count == 2

    @pytest.mark.asyncio
    async def test_unreported_counts_keep_previous(self, telemetry):
        backend = ScriptedBackend([
            ScriptedOutcome(remaining_iterations=2, total_iterations=5),
            ScriptedOutcome(),
        ])
        session = Session(tab_id="tab", backend=backend, telemetry=telemetry)

        await session.send("one")
        await session.send("two")

        assert session.state.code_generation_remaining_iteration_count == 2
        assert session.state.code_generation_total_iteration_count == 5

    @pytest.mark.asyncio
    async def test_missing_count_is_not_a_warning(self, telemetry):
        backend = ScriptedBackend([
            ScriptedOutcome(remaining_iterations=2, total_iterations=5),
            ScriptedOutcome(),
            ScriptedOutcome(remaining_iterations=4, total_iterations=5),
        ])
        session = Session(tab_id="tab", backend=backend, telemetry=telemetry)
        await session.send("one")

        with patch("featuredev_agent.state.logger") as logger:
            await session.send("two")
            logger.warning.assert_not_called()

            await session.send("three")
            logger.warning.assert_called_once()
            assert logger.warning.call_args.kwargs["reported"] == 4

    def test_cancel_and_reset(self, session):
        session.cancel()
        assert session.cancellation_requested

        session.reset_token()
        assert not session.cancellation_requested

    def test_cancel_after_reset_targets_new_token(self, session):
        old = session.token_source
        session.reset_token()
        session.cancel()

        assert session.token_source.cancelled
        assert not old.cancelled

    def test_decrement_retries_floors_at_zero(self, session):
        for _ in range(5):
            session.decrement_retries()
        assert session.retries == 0
        assert retries_remaining(session) == 0

    def test_retries_remaining_without_session(self):
        assert retries_remaining(None) == CODE_GENERATION_RETRY_LIMIT

    def test_metric_telemetry_tagged_with_conversation(self, session, telemetry):
        session.send_metric_data_telemetry(
            MetricDataOperationName.START_CODE_GENERATION, MetricDataResult.SUCCESS,
        )

        assert telemetry.events[0].conversation_id == session.conversation_id


class TestSessionManager:
    """Tests for SessionManager."""

    def test_get_or_create_reuses(self, backend):
        manager = SessionManager(backend=backend)

        first = manager.get_or_create("tab")

        assert manager.get_or_create("tab") is first
        assert manager.get("tab") is first

    def test_get_missing(self, backend):
        manager = SessionManager(backend=backend)

        with pytest.raises(SessionNotFoundError):
            manager.get("nope")

    def test_new_task(self, backend):
        manager = SessionManager(backend=backend, retry_limit=1)
        first = manager.get_or_create("tab")

        second = manager.new_task("tab")

        assert second is not first
        assert second.conversation_id != first.conversation_id
        assert second.retries == 1
        assert first.state.phase == SessionPhase.CLOSED

    def test_close(self, backend):
        manager = SessionManager(backend=backend)
        manager.get_or_create("tab")

        manager.close("tab")
        manager.close("tab")

        with pytest.raises(SessionNotFoundError):
            manager.get("tab")

    def test_close_discards_pending_timer(self, backend, telemetry):
        manager = SessionManager(backend=backend, telemetry=telemetry)
        session = manager.get_or_create("tab")
        session.send_metric_data_telemetry(
            MetricDataOperationName.START_CODE_GENERATION, MetricDataResult.SUCCESS,
        )
        assert telemetry.pending_conversations == [session.conversation_id]

        manager.close("tab")

        assert telemetry.pending_conversations == []
