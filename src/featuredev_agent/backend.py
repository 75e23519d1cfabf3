"""
Code-generation backend contract.

The backend uploads the workspace, asks the service for code and returns
the next session state. `ScriptedBackend` replays canned outcomes and is
used by the CLI simulator and tests.
"""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence, Union, TYPE_CHECKING

from featuredev_agent.logging import get_logger
from featuredev_agent.references import CodeReference
from featuredev_agent.state import (
    DeletedFileInfo,
    NewFileZipInfo,
    PrepareCodeGenerationState,
    SessionState,
)

if TYPE_CHECKING:
    from featuredev_agent.state import Session

logger = get_logger(__name__)


class CodeGenerationBackend(Protocol):
    async def generate(self, session: "Session", message: str) -> SessionState:
        """Run one code generation for `message` and return the new state."""
        ...


@dataclass
class ScriptedOutcome:
    """One canned code-generation result."""

    file_paths: List[NewFileZipInfo] = field(default_factory=list)
    deleted_files: List[DeletedFileInfo] = field(default_factory=list)
    references: List[CodeReference] = field(default_factory=list)
    upload_id: str = "upload-1"
    remaining_iterations: Optional[int] = None
    total_iterations: Optional[int] = None
    delay_seconds: float = 0.0
    cancel_during: bool = False

    def to_state(self) -> PrepareCodeGenerationState:
        return PrepareCodeGenerationState(
            file_paths=list(self.file_paths),
            deleted_files=list(self.deleted_files),
            references=list(self.references),
            upload_id=self.upload_id,
            code_generation_remaining_iteration_count=self.remaining_iterations,
            code_generation_total_iteration_count=self.total_iterations,
        )


class ScriptedBackend:
    """
    Backend replaying outcomes in order.

    An outcome that is an exception is raised instead of returned. The
    last outcome repeats once the script is exhausted.
    """

    def __init__(self, outcomes: Sequence[Union[ScriptedOutcome, BaseException]]):
        if not outcomes:
            raise ValueError("ScriptedBackend needs at least one outcome")
        self._outcomes = list(outcomes)
        self._index = 0
        self.messages: List[str] = []

    async def generate(self, session: "Session", message: str) -> SessionState:
        self.messages.append(message)
        outcome = self._outcomes[min(self._index, len(self._outcomes) - 1)]
        self._index += 1

        logger.debug("Scripted generation", call=self._index, outcome=type(outcome).__name__)

        if isinstance(outcome, BaseException):
            raise outcome

        if outcome.cancel_during:
            session.cancel("scripted")
        if outcome.delay_seconds:
            await asyncio.sleep(outcome.delay_seconds)

        return outcome.to_state()
