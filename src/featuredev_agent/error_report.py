"""
Error classification and redacted stack traces for telemetry.
"""

import traceback
from typing import List, Set

from featuredev_agent.exceptions import (
    CodeGenerationException,
    CodeIterationLimitException,
    ContentLengthException,
    ConversationIdNotFoundException,
    EmptyPatchException,
    ExportParseException,
    GuardrailsException,
    MonthlyConversationLimitError,
    NoChangeRequiredException,
    PromptRefusalException,
    RepoSizeLimitError,
    ThrottlingException,
    UploadCodeException,
    UploadURLExpired,
    ZipFileCorruptedException,
)
from featuredev_agent.telemetry import MetricDataResult


# Known, user-recoverable conditions
ERROR_RESULT_EXCEPTIONS = (
    GuardrailsException,
    NoChangeRequiredException,
    PromptRefusalException,
    ThrottlingException,
    ContentLengthException,
    MonthlyConversationLimitError,
    CodeIterationLimitException,
    RepoSizeLimitError,
    UploadURLExpired,
)

LLM_FAILURE_EXCEPTIONS = (EmptyPatchException,)

# Exceptions whose messages are deterministic and carry no user data
MESSAGE_SAFE_EXCEPTIONS = (
    NoChangeRequiredException,
    EmptyPatchException,
    ContentLengthException,
    ZipFileCorruptedException,
    UploadURLExpired,
    CodeIterationLimitException,
    GuardrailsException,
    PromptRefusalException,
    ThrottlingException,
    ExportParseException,
    CodeGenerationException,
    UploadCodeException,
    ConversationIdNotFoundException,
    RepoSizeLimitError,
)


def classify_error(error: BaseException) -> MetricDataResult:
    """Map an exception to the telemetry result it is reported as."""
    if isinstance(error, ERROR_RESULT_EXCEPTIONS):
        return MetricDataResult.ERROR
    if isinstance(error, LLM_FAILURE_EXCEPTIONS):
        return MetricDataResult.LLM_FAILURE
    return MetricDataResult.FAULT


def _qualified_name(error: BaseException) -> str:
    cls = type(error)
    if cls.__module__ == "builtins":
        return cls.__qualname__
    return f"{cls.__module__}.{cls.__qualname__}"


def _cause_of(error: BaseException) -> BaseException | None:
    if error.__cause__ is not None:
        return error.__cause__
    if error.__suppress_context__:
        return None
    return error.__context__


def get_stack_trace_for_error(error: BaseException) -> str:
    """
    Render an exception chain without leaking message text.

    Only exceptions in MESSAGE_SAFE_EXCEPTIONS contribute their message;
    everything else is rendered by type name. The chain follows the cause
    (explicit, or implicit context) and the members of exception groups,
    rendered as suppressed. Each exception object appears at most once.
    """
    lines: List[str] = []
    seen: Set[int] = set()

    def render(exc: BaseException, prefix: str = "") -> None:
        seen.add(id(exc))

        if isinstance(exc, MESSAGE_SAFE_EXCEPTIONS):
            lines.append(f"{prefix}{_qualified_name(exc)}: {exc}")
        else:
            lines.append(f"{prefix}{_qualified_name(exc)}")

        for frame in traceback.extract_tb(exc.__traceback__):
            lines.append(f"{prefix}\tat {frame.filename}:{frame.lineno} in {frame.name}")

        cause = _cause_of(exc)
        if cause is not None and id(cause) not in seen:
            lines.append(f"{prefix}\tCaused by: ")
            render(cause, prefix + "\t")

        if isinstance(exc, BaseExceptionGroup):
            for suppressed in exc.exceptions:
                if id(suppressed) in seen:
                    continue
                lines.append(f"{prefix}\tSuppressed: ")
                render(suppressed, prefix + "\t")

    render(error)
    return "\n".join(lines) + "\n"
