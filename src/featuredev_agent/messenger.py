"""
Messenger contract: fire-and-forget updates to the chat UI.

Updates must reach the UI in emission order. `RecordingMessenger` keeps
them in a list (tests, simulator) and can forward each one to a callback.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

from featuredev_agent.messages import FeatureDevMessageType, FollowUp
from featuredev_agent.references import CodeReference
from featuredev_agent.state import DeletedFileInfo, NewFileZipInfo


class Messenger(Protocol):
    async def send_async_event_progress(self, tab_id: str, in_progress: bool, message: Optional[str] = None) -> None: ...

    async def send_answer(self, tab_id: str, message: str, message_type: FeatureDevMessageType) -> None: ...

    async def send_system_prompt(self, tab_id: str, follow_ups: List[FollowUp]) -> None: ...

    async def send_code_result(
        self,
        tab_id: str,
        upload_id: str,
        file_paths: List[NewFileZipInfo],
        deleted_files: List[DeletedFileInfo],
        references: List[CodeReference],
    ) -> None: ...

    async def send_update_placeholder(self, tab_id: str, new_placeholder: str) -> None: ...

    async def send_chat_input_enabled_message(self, tab_id: str, enabled: bool) -> None: ...


@dataclass
class RecordedMessage:
    """One UI update."""

    kind: str
    tab_id: str
    payload: Dict[str, Any] = field(default_factory=dict)


class RecordingMessenger:
    """Messenger that records every update in order."""

    def __init__(self, on_message: Optional[Callable[[RecordedMessage], None]] = None):
        self.messages: List[RecordedMessage] = []
        self._on_message = on_message

    def _emit(self, kind: str, tab_id: str, **payload: Any) -> None:
        recorded = RecordedMessage(kind=kind, tab_id=tab_id, payload=payload)
        self.messages.append(recorded)
        if self._on_message:
            self._on_message(recorded)

    async def send_async_event_progress(self, tab_id: str, in_progress: bool, message: Optional[str] = None) -> None:
        self._emit("progress", tab_id, in_progress=in_progress, message=message)

    async def send_answer(self, tab_id: str, message: str, message_type: FeatureDevMessageType) -> None:
        self._emit("answer", tab_id, message=message, message_type=message_type)

    async def send_system_prompt(self, tab_id: str, follow_ups: List[FollowUp]) -> None:
        self._emit("system_prompt", tab_id, follow_ups=list(follow_ups))

    async def send_code_result(
        self,
        tab_id: str,
        upload_id: str,
        file_paths: List[NewFileZipInfo],
        deleted_files: List[DeletedFileInfo],
        references: List[CodeReference],
    ) -> None:
        self._emit(
            "code_result",
            tab_id,
            upload_id=upload_id,
            file_paths=list(file_paths),
            deleted_files=list(deleted_files),
            references=list(references),
        )

    async def send_update_placeholder(self, tab_id: str, new_placeholder: str) -> None:
        self._emit("placeholder", tab_id, new_placeholder=new_placeholder)

    async def send_chat_input_enabled_message(self, tab_id: str, enabled: bool) -> None:
        self._emit("chat_input_enabled", tab_id, enabled=enabled)

    def of_kind(self, kind: str) -> List[RecordedMessage]:
        return [m for m in self.messages if m.kind == kind]

    def kinds(self) -> List[str]:
        return [m.kind for m in self.messages]

    def clear(self) -> None:
        self.messages.clear()
