"""
Session state.

A session is one chat tab's conversation. Its `state` is one of the
SessionState variants below; the controller inspects it only for
PrepareCodeGenerationState.
"""

import asyncio
import threading
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, TYPE_CHECKING

from featuredev_agent.cancellation import CancellationTokenSource
from featuredev_agent.exceptions import SessionNotFoundError
from featuredev_agent.logging import get_logger
from featuredev_agent.references import CodeReference
from featuredev_agent.telemetry import (
    MetricDataOperationName,
    MetricDataResult,
    TelemetryRecorder,
)

if TYPE_CHECKING:
    from featuredev_agent.backend import CodeGenerationBackend

logger = get_logger(__name__)

CODE_GENERATION_RETRY_LIMIT = 3


class SessionPhase(str, Enum):
    """Session phases."""

    INIT = "init"
    CODEGEN = "codegen"
    CLOSED = "closed"


@dataclass
class NewFileZipInfo:
    """A generated or modified file."""

    zip_file_path: str
    file_content: str
    rejected: bool = False
    change_applied: bool = False


@dataclass
class DeletedFileInfo:
    """A file the generated change deletes."""

    zip_file_path: str
    rejected: bool = False
    change_applied: bool = False


@dataclass
class SessionState:
    """Fields common to every session state."""

    phase: SessionPhase = SessionPhase.INIT
    code_generation_remaining_iteration_count: Optional[int] = None
    code_generation_total_iteration_count: Optional[int] = None

    def __post_init__(self) -> None:
        remaining = self.code_generation_remaining_iteration_count
        total = self.code_generation_total_iteration_count
        if remaining is not None and total is not None and remaining > total:
            raise ValueError(
                f"remaining iterations ({remaining}) exceed total iterations ({total})"
            )


@dataclass
class ConversationNotStartedState(SessionState):
    phase: SessionPhase = SessionPhase.INIT


@dataclass
class PreparingState(SessionState):
    """Generation requested, no result yet."""

    phase: SessionPhase = SessionPhase.CODEGEN


@dataclass
class PrepareCodeGenerationState(SessionState):
    """Code generation finished; results are ready for review."""

    phase: SessionPhase = SessionPhase.CODEGEN
    file_paths: List[NewFileZipInfo] = field(default_factory=list)
    deleted_files: List[DeletedFileInfo] = field(default_factory=list)
    references: List[CodeReference] = field(default_factory=list)
    upload_id: str = ""


class Session:
    """One conversation's mutable state."""

    def __init__(
        self,
        tab_id: str,
        backend: "CodeGenerationBackend",
        telemetry: Optional[TelemetryRecorder] = None,
        retry_limit: int = CODE_GENERATION_RETRY_LIMIT,
        conversation_id: Optional[str] = None,
    ):
        self.tab_id = tab_id
        self.conversation_id = conversation_id or str(uuid.uuid4())
        self.backend = backend
        self.telemetry = telemetry or TelemetryRecorder()
        self.retry_limit = retry_limit
        self.retries = retry_limit
        self.latest_message: str = ""
        self.state: SessionState = ConversationNotStartedState()

        self._token_source = CancellationTokenSource()
        self._token_lock = threading.Lock()
        # One code-generation attempt at a time
        self.attempt_lock = asyncio.Lock()

    @property
    def token_source(self) -> CancellationTokenSource:
        with self._token_lock:
            return self._token_source

    @property
    def cancellation_requested(self) -> bool:
        return self.token_source.token.is_cancellation_requested()

    def cancel(self, source: str = "user") -> None:
        """Request cancellation of the in-flight attempt."""
        with self._token_lock:
            self._token_source.cancel(source)

    def reset_token(self) -> None:
        """Install a fresh token so later attempts are not cancelled."""
        with self._token_lock:
            self._token_source = CancellationTokenSource()
        logger.debug("Cancellation token reset", tab_id=self.tab_id)

    def decrement_retries(self) -> None:
        self.retries = max(0, self.retries - 1)

    async def send(self, message: str) -> SessionState:
        """
        Trigger code generation and install the resulting state.

        The backend call is awaited as-is; cancellation does not interrupt it.
        """
        self.latest_message = message
        if not isinstance(self.state, PreparingState):
            self._set_state(
                PreparingState(
                    code_generation_remaining_iteration_count=self.state.code_generation_remaining_iteration_count,
                    code_generation_total_iteration_count=self.state.code_generation_total_iteration_count,
                )
            )

        new_state = await self.backend.generate(self, message)
        self._set_state(new_state)
        return self.state

    def _set_state(self, new_state: SessionState) -> None:
        previous = self.state.code_generation_remaining_iteration_count
        reported = new_state.code_generation_remaining_iteration_count
        if previous is not None and (reported is None or reported > previous):
            if reported is None:
                logger.debug("Remaining iteration count not reported, keeping previous", previous=previous)
            else:
                logger.warning(
                    "Remaining iteration count increased, keeping previous",
                    previous=previous,
                    reported=reported,
                )
            new_state.code_generation_remaining_iteration_count = previous
            if new_state.code_generation_total_iteration_count is None:
                new_state.code_generation_total_iteration_count = self.state.code_generation_total_iteration_count
            total = new_state.code_generation_total_iteration_count
            if total is not None and previous > total:
                new_state.code_generation_remaining_iteration_count = total

        logger.debug(
            "State transition",
            old=type(self.state).__name__,
            new=type(new_state).__name__,
        )
        self.state = new_state

    def send_metric_data_telemetry(
        self,
        operation_name: MetricDataOperationName,
        result: MetricDataResult,
        log: Optional[str] = None,
    ) -> None:
        self.telemetry.record(
            operation_name=operation_name,
            result=result,
            log=log,
            conversation_id=self.conversation_id,
        )


def retries_remaining(session: Optional[Session]) -> int:
    if session is None:
        return CODE_GENERATION_RETRY_LIMIT
    return session.retries


class SessionManager:
    """Sessions by chat tab."""

    def __init__(
        self,
        backend: "CodeGenerationBackend",
        telemetry: Optional[TelemetryRecorder] = None,
        retry_limit: int = CODE_GENERATION_RETRY_LIMIT,
    ):
        self.backend = backend
        self.telemetry = telemetry or TelemetryRecorder()
        self.retry_limit = retry_limit
        self._sessions: Dict[str, Session] = {}

    def get(self, tab_id: str) -> Session:
        try:
            return self._sessions[tab_id]
        except KeyError:
            raise SessionNotFoundError(tab_id) from None

    def get_or_create(self, tab_id: str) -> Session:
        if tab_id not in self._sessions:
            self._sessions[tab_id] = Session(
                tab_id=tab_id,
                backend=self.backend,
                telemetry=self.telemetry,
                retry_limit=self.retry_limit,
            )
            logger.info(
                "Session created",
                tab_id=tab_id,
                conversation_id=self._sessions[tab_id].conversation_id,
            )
        return self._sessions[tab_id]

    def new_task(self, tab_id: str) -> Session:
        """Destroy the tab's session and start a fresh one."""
        self.close(tab_id)
        return self.get_or_create(tab_id)

    def close(self, tab_id: str) -> None:
        session = self._sessions.pop(tab_id, None)
        if session is None:
            return
        session.state = ConversationNotStartedState(phase=SessionPhase.CLOSED)
        self.telemetry.discard_pending(session.conversation_id)
        logger.info("Session closed", tab_id=tab_id, conversation_id=session.conversation_id)
