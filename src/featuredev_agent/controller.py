"""
Feature development controller - drives code generation for a chat tab.

One attempt per user action:
1. Announce progress (initial or retry wording)
2. Stop early if cancellation was requested
3. Trigger generation on the session (the only await on the backend)
4. Stop early if cancellation was requested meanwhile
5. Report "no changes" or the code result plus iteration counts
6. Offer follow-ups

Every failure is classified, reported to telemetry with a redacted stack
trace and re-raised. The finalizer always restores the chat input state.
"""

import asyncio
from pathlib import Path
from typing import Callable, Optional

from featuredev_agent.config import AgentConfig
from featuredev_agent.error_report import classify_error, get_stack_trace_for_error
from featuredev_agent.logging import bind_conversation, get_logger
from featuredev_agent.messages import (
    FeatureDevMessageType,
    FollowUp,
    FollowUpStatusType,
    FollowUpTypes,
    InsertAction,
    get_follow_up_options,
    message,
    session_end_follow_ups,
)
from featuredev_agent.messenger import Messenger
from featuredev_agent.notifications import NotificationAction, Notifier, NullNotifier
from featuredev_agent.state import (
    PrepareCodeGenerationState,
    Session,
    SessionManager,
    retries_remaining,
)
from featuredev_agent.telemetry import MetricDataOperationName, MetricDataResult
from featuredev_agent.workspace import ApplyResult, apply_changes

logger = get_logger(__name__)


class FeatureDevController:
    """
    Glue between the chat UI (messenger), sessions and telemetry.
    """

    def __init__(
        self,
        messenger: Messenger,
        sessions: SessionManager,
        config: Optional[AgentConfig] = None,
        notifier: Optional[Notifier] = None,
        is_chat_visible: Optional[Callable[[], bool]] = None,
        show_chat: Optional[Callable[[], None]] = None,
    ):
        """
        Args:
            messenger: Chat UI updates
            sessions: Session registry
            config: Agent configuration
            notifier: Out-of-band notification surface
            is_chat_visible: Returns False when the chat is hidden; None means
                there is no chat window to check
            show_chat: Brings the chat forward (notification action)
        """
        self.messenger = messenger
        self.sessions = sessions
        self.config = config or AgentConfig()
        self.notifier = notifier or NullNotifier()
        self._is_chat_visible = is_chat_visible
        self._show_chat = show_chat

    @property
    def low_iteration_threshold(self) -> int:
        return self.config.codegen.low_iteration_threshold

    async def run_code_generation_attempt(self, session: Session, user_message: str) -> None:
        """
        Run one code-generation attempt for `session`.

        Attempts on the same session are serialized; the cancellation token
        reset in the finalizer completes before the next attempt starts.

        Raises:
            Exception: Whatever the attempt raised, after telemetry.
        """
        async with session.attempt_lock:
            await self._run_attempt(session, user_message)

    async def _run_attempt(self, session: Session, user_message: str) -> None:
        tab_id = session.tab_id
        bind_conversation(tab_id, session.conversation_id)

        await self.messenger.send_async_event_progress(
            tab_id=tab_id,
            in_progress=True,
            message=(
                message("chat_message.start_code_generation")
                if session.retries == session.retry_limit
                else message("chat_message.start_code_generation_retry")
            ),
        )

        logger.info("Code generation started", retries=session.retries)

        try:
            await self.messenger.send_answer(
                tab_id=tab_id,
                message=message("chat_message.requesting_changes"),
                message_type=FeatureDevMessageType.ANSWER_STREAM,
            )
            state = session.state

            remaining_iterations = state.code_generation_remaining_iteration_count
            total_iterations = state.code_generation_total_iteration_count

            if session.cancellation_requested:
                await self.dispose_token(tab_id, remaining_iterations, total_iterations)
                return

            await self.messenger.send_update_placeholder(
                tab_id=tab_id,
                new_placeholder=message("placeholder.generating_code"),
            )

            session.send_metric_data_telemetry(
                operation_name=MetricDataOperationName.START_CODE_GENERATION,
                result=MetricDataResult.SUCCESS,
            )

            await session.send(user_message)

            state = session.state

            file_paths = []
            deleted_files = []
            references = []
            upload_id = ""

            if isinstance(state, PrepareCodeGenerationState):
                file_paths = state.file_paths
                deleted_files = state.deleted_files
                references = state.references
                upload_id = state.upload_id
                remaining_iterations = state.code_generation_remaining_iteration_count
                total_iterations = state.code_generation_total_iteration_count

            if session.cancellation_requested:
                await self.dispose_token(
                    tab_id,
                    state.code_generation_remaining_iteration_count,
                    state.code_generation_total_iteration_count,
                )
                return

            if not file_paths and not deleted_files:
                logger.info("Code generation produced no changes")
                await self.messenger.send_answer(
                    tab_id=tab_id,
                    message=message("code_generation.no_file_changes"),
                    message_type=FeatureDevMessageType.ANSWER,
                )
                await self.messenger.send_system_prompt(
                    tab_id=tab_id,
                    follow_ups=(
                        [
                            FollowUp(
                                type=FollowUpTypes.RETRY,
                                pill_text=message("follow_up.retry"),
                                status=FollowUpStatusType.WARNING,
                            )
                        ]
                        if retries_remaining(session) > 0
                        else []
                    ),
                )
                # Locked until retry is clicked
                await self.messenger.send_chat_input_enabled_message(tab_id=tab_id, enabled=False)
                return

            await self.messenger.send_code_result(
                tab_id=tab_id,
                upload_id=upload_id,
                file_paths=file_paths,
                deleted_files=deleted_files,
                references=references,
            )

            iteration_message = self.iteration_count_message(remaining_iterations, total_iterations)
            if iteration_message is not None:
                await self.messenger.send_answer(
                    tab_id=tab_id,
                    message=iteration_message,
                    message_type=FeatureDevMessageType.ANSWER,
                )

            await self.messenger.send_system_prompt(
                tab_id=tab_id,
                follow_ups=get_follow_up_options(session.state.phase, InsertAction.ALL),
            )
            await self.messenger.send_update_placeholder(
                tab_id=tab_id,
                new_placeholder=message("placeholder.after_code_generation"),
            )
        except (Exception, asyncio.CancelledError) as err:
            # A cancelled task is reported as a Fault before it unwinds
            result = classify_error(err)
            logger.warning(
                "Code generation failed",
                result=result.value,
                error_type=type(err).__name__,
            )
            session.send_metric_data_telemetry(
                operation_name=MetricDataOperationName.END_CODE_GENERATION,
                result=result,
                log="stack trace: " + get_stack_trace_for_error(err),
            )
            raise
        finally:
            if session.cancellation_requested:
                session.reset_token()
            else:
                await self.messenger.send_async_event_progress(tab_id=tab_id, in_progress=False)
                # Locked until a follow-up is clicked
                await self.messenger.send_chat_input_enabled_message(tab_id=tab_id, enabled=False)
            self._notify_if_hidden()

        session.send_metric_data_telemetry(
            operation_name=MetricDataOperationName.END_CODE_GENERATION,
            result=MetricDataResult.SUCCESS,
        )
        logger.info("Code generation finished")

    def iteration_count_message(
        self,
        remaining_iterations: Optional[int],
        total_iterations: Optional[int],
    ) -> Optional[str]:
        """Message shown after a code result, or None when counts are unknown."""
        if remaining_iterations is None or total_iterations is None:
            return None
        if remaining_iterations > self.low_iteration_threshold:
            return message("code_generation.iteration_counts_ask_to_add_code_or_feedback")
        if remaining_iterations > 0:
            return message("code_generation.iteration_counts", remaining_iterations, total_iterations)
        return message(
            "code_generation.iteration_counts_ask_to_add_code",
            remaining_iterations,
            total_iterations,
        )

    async def dispose_token(
        self,
        tab_id: str,
        remaining_iterations: Optional[int],
        total_iterations: Optional[int],
    ) -> None:
        """Report a stopped generation."""
        logger.info(
            "Code generation stopped",
            remaining=remaining_iterations,
            total=total_iterations,
        )

        if remaining_iterations is not None and remaining_iterations <= 0:
            await self.messenger.send_answer(
                tab_id=tab_id,
                message=message("code_generation.stopped_code_generation_no_iterations"),
                message_type=FeatureDevMessageType.ANSWER,
            )
            await self.messenger.send_system_prompt(tab_id=tab_id, follow_ups=session_end_follow_ups())
            await self.messenger.send_chat_input_enabled_message(tab_id=tab_id, enabled=False)
            await self.messenger.send_update_placeholder(
                tab_id=tab_id,
                new_placeholder=message("placeholder.after_code_generation"),
            )
            return

        if (
            remaining_iterations is not None
            and total_iterations is not None
            and remaining_iterations <= self.low_iteration_threshold
        ):
            await self.messenger.send_answer(
                tab_id=tab_id,
                message=message(
                    "code_generation.stopped_code_generation",
                    remaining_iterations,
                    total_iterations,
                ),
                message_type=FeatureDevMessageType.ANSWER,
            )
        else:
            await self.messenger.send_answer(
                tab_id=tab_id,
                message=message("code_generation.stopped_code_generation_no_iteration_count_display"),
                message_type=FeatureDevMessageType.ANSWER,
            )

        await self.messenger.send_chat_input_enabled_message(tab_id=tab_id, enabled=True)
        await self.messenger.send_update_placeholder(
            tab_id=tab_id,
            new_placeholder=message("placeholder.new_plan"),
        )

    def _notify_if_hidden(self) -> None:
        """Advisory notification; never raises."""
        if not self.config.notifications.enabled or self._is_chat_visible is None:
            return
        try:
            if self._is_chat_visible():
                return
            actions = []
            if self._show_chat is not None:
                actions.append(
                    NotificationAction(
                        text=message("code_generation.notification_open_link"),
                        handler=self._show_chat,
                    )
                )
            self.notifier.notify_info(
                title=message("code_generation.notification_title"),
                content=message("code_generation.notification_message"),
                actions=actions,
            )
        except Exception as e:
            logger.warning("Failed to show notification", error=str(e))

    # Follow-up handlers

    async def on_code_generation(self, tab_id: str, user_message: str) -> None:
        """Handle a user message asking for code."""
        session = self.sessions.get_or_create(tab_id)
        await self.run_code_generation_attempt(session, user_message)

    async def on_retry(self, tab_id: str) -> None:
        """Retry the last request if retries remain."""
        session = self.sessions.get(tab_id)
        await self.messenger.send_chat_input_enabled_message(tab_id=tab_id, enabled=False)

        if retries_remaining(session) <= 0:
            logger.info("Retry limit reached", tab_id=tab_id)
            await self.messenger.send_answer(
                tab_id=tab_id,
                message=message("chat_message.retry_limit_reached"),
                message_type=FeatureDevMessageType.ANSWER,
            )
            await self.messenger.send_system_prompt(tab_id=tab_id, follow_ups=session_end_follow_ups())
            return

        session.decrement_retries()
        await self.run_code_generation_attempt(session, session.latest_message)

    async def on_stop(self, tab_id: str) -> None:
        """Request cancellation; observed at the attempt's next checkpoint."""
        session = self.sessions.get(tab_id)
        await self.messenger.send_async_event_progress(
            tab_id=tab_id,
            in_progress=True,
            message=message("chat_message.stopping_code_generation"),
        )
        session.cancel("stop_button")

    async def on_new_task(self, tab_id: str) -> None:
        self.sessions.new_task(tab_id)
        await self.messenger.send_update_placeholder(
            tab_id=tab_id,
            new_placeholder=message("placeholder.new_task"),
        )
        await self.messenger.send_chat_input_enabled_message(tab_id=tab_id, enabled=True)

    async def on_close_session(self, tab_id: str) -> None:
        await self.messenger.send_answer(
            tab_id=tab_id,
            message=message("chat_message.session_closed"),
            message_type=FeatureDevMessageType.ANSWER,
        )
        await self.messenger.send_update_placeholder(
            tab_id=tab_id,
            new_placeholder=message("placeholder.session_closed"),
        )
        await self.messenger.send_chat_input_enabled_message(tab_id=tab_id, enabled=False)
        self.sessions.close(tab_id)

    async def on_insert_code(self, tab_id: str, workspace_root: Path) -> ApplyResult:
        """Apply the current code result to the workspace."""
        session = self.sessions.get(tab_id)
        state = session.state
        if not isinstance(state, PrepareCodeGenerationState):
            raise RuntimeError(f"No code result to insert for tab {tab_id}")

        result = apply_changes(workspace_root, state.file_paths, state.deleted_files)

        await self.messenger.send_answer(
            tab_id=tab_id,
            message=message("chat_message.code_updated"),
            message_type=FeatureDevMessageType.ANSWER,
        )
        await self.messenger.send_system_prompt(tab_id=tab_id, follow_ups=session_end_follow_ups())
        return result

    async def on_follow_up_clicked(
        self,
        tab_id: str,
        follow_up_type: FollowUpTypes,
        workspace_root: Optional[Path] = None,
    ) -> None:
        """Dispatch a follow-up click."""
        logger.info("Follow-up clicked", tab_id=tab_id, follow_up=follow_up_type.value)

        if follow_up_type == FollowUpTypes.RETRY:
            await self.on_retry(tab_id)
        elif follow_up_type == FollowUpTypes.NEW_TASK:
            await self.on_new_task(tab_id)
        elif follow_up_type == FollowUpTypes.CLOSE_SESSION:
            await self.on_close_session(tab_id)
        elif follow_up_type == FollowUpTypes.INSERT_CODE:
            if workspace_root is None:
                raise ValueError("workspace_root is required to insert code")
            await self.on_insert_code(tab_id, workspace_root)
        elif follow_up_type == FollowUpTypes.PROVIDE_FEEDBACK_AND_REGENERATE_CODE:
            await self.messenger.send_chat_input_enabled_message(tab_id=tab_id, enabled=True)
            await self.messenger.send_update_placeholder(
                tab_id=tab_id,
                new_placeholder=message("placeholder.new_plan"),
            )
