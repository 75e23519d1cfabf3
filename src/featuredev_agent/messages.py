"""
Chat message texts, message types and follow-up options.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from featuredev_agent.state import SessionPhase


MESSAGES = {
    "chat_message.start_code_generation": "Generating code ...",
    "chat_message.start_code_generation_retry": "Retrying code generation ...",
    "chat_message.requesting_changes": "Requesting changes ...",
    "chat_message.stopping_code_generation": "Stopping code generation ...",
    "chat_message.retry_limit_reached": (
        "I'm sorry, I ran into an issue generating code and have reached the retry limit. "
        "You can start a new task or close this session."
    ),
    "chat_message.session_closed": "Okay, I've ended this chat session. You can open a new tab to chat or start another workflow.",
    "chat_message.code_updated": "The code has been added to your workspace.",
    "code_generation.no_file_changes": "Unable to generate any file changes",
    "code_generation.iteration_counts": (
        "You have {0} out of {1} code generations left."
    ),
    "code_generation.iteration_counts_ask_to_add_code_or_feedback": (
        "Would you like to add this code to your project, or provide feedback for new code?"
    ),
    "code_generation.iteration_counts_ask_to_add_code": (
        "Would you like to add this code to your project? You have {0} out of {1} code generations left."
    ),
    "code_generation.stopped_code_generation": (
        "I stopped generating your code. If you want to continue working on this task, "
        "provide another description. You have {0} out of {1} code generations left."
    ),
    "code_generation.stopped_code_generation_no_iterations": (
        "I stopped generating your code. You don't have more iterations left, however, "
        "you can start a new session."
    ),
    "code_generation.stopped_code_generation_no_iteration_count_display": (
        "I stopped generating your code. If you want to continue working on this task, "
        "provide another description."
    ),
    "code_generation.notification_title": "Code generation complete",
    "code_generation.notification_message": "Your code changes are ready to review.",
    "code_generation.notification_open_link": "Open chat",
    "placeholder.generating_code": "Generating code...",
    "placeholder.after_code_generation": "Choose an option to proceed",
    "placeholder.new_plan": "Describe your task or issue in as much detail as possible",
    "placeholder.new_task": "Describe your task or issue in as much detail as possible",
    "placeholder.session_closed": "Open a new chat tab to continue",
    "follow_up.retry": "Retry",
    "follow_up.new_task": "New task",
    "follow_up.close_session": "Close session",
    "follow_up.insert_all_code": "Accept all changes",
    "follow_up.insert_remaining_code": "Accept remaining changes",
    "follow_up.provide_feedback_and_regenerate": "Provide feedback to regenerate",
}


def message(key: str, *args: object) -> str:
    """Look up a message text and fill positional placeholders."""
    text = MESSAGES[key]
    if args:
        return text.format(*args)
    return text


class FeatureDevMessageType(str, Enum):
    ANSWER = "answer"
    ANSWER_PART = "answer-part"
    ANSWER_STREAM = "answer-stream"
    SYSTEM_PROMPT = "system-prompt"


class FollowUpTypes(str, Enum):
    RETRY = "Retry"
    NEW_TASK = "NewTask"
    CLOSE_SESSION = "CloseSession"
    INSERT_CODE = "InsertCode"
    PROVIDE_FEEDBACK_AND_REGENERATE_CODE = "ProvideFeedbackAndRegenerateCode"


class FollowUpStatusType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class FollowUpIcons(str, Enum):
    OK = "ok"
    REFRESH = "refresh"


@dataclass(frozen=True)
class FollowUp:
    """A clickable suggested next action."""

    type: FollowUpTypes
    pill_text: str
    status: Optional[FollowUpStatusType] = None
    icon: Optional[FollowUpIcons] = None


class InsertAction(str, Enum):
    ALL = "all"
    REMAINING = "remaining"


def get_follow_up_options(phase: Optional[SessionPhase], insert_action: InsertAction) -> List[FollowUp]:
    """Follow-ups offered after code generation in the given phase."""
    if phase != SessionPhase.CODEGEN:
        return []

    if insert_action == InsertAction.REMAINING:
        insert_text = message("follow_up.insert_remaining_code")
    else:
        insert_text = message("follow_up.insert_all_code")

    return [
        FollowUp(
            type=FollowUpTypes.INSERT_CODE,
            pill_text=insert_text,
            status=FollowUpStatusType.SUCCESS,
            icon=FollowUpIcons.OK,
        ),
        FollowUp(
            type=FollowUpTypes.PROVIDE_FEEDBACK_AND_REGENERATE_CODE,
            pill_text=message("follow_up.provide_feedback_and_regenerate"),
            status=FollowUpStatusType.INFO,
            icon=FollowUpIcons.REFRESH,
        ),
    ]


def session_end_follow_ups() -> List[FollowUp]:
    """NewTask and CloseSession, in that order."""
    return [
        FollowUp(
            type=FollowUpTypes.NEW_TASK,
            pill_text=message("follow_up.new_task"),
            status=FollowUpStatusType.INFO,
        ),
        FollowUp(
            type=FollowUpTypes.CLOSE_SESSION,
            pill_text=message("follow_up.close_session"),
            status=FollowUpStatusType.INFO,
        ),
    ]
