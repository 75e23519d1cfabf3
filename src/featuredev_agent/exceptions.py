"""
Domain exceptions raised by the code-generation backend and session.

Messages of these exceptions are produced locally from fixed text (or a
backend reason code), so several of them are safe to include in telemetry.
"""

from typing import Optional


class FeatureDevException(Exception):
    """Base class for feature development workflow errors."""

    default_message = "Feature development request failed"

    def __init__(
        self,
        message: Optional[str] = None,
        operation: str = "",
        description: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.operation = operation
        self.description = description
        super().__init__(self.message)


class ContentLengthException(FeatureDevException):
    default_message = "The task description is too long"


class ZipFileCorruptedException(FeatureDevException):
    default_message = "The uploaded code archive is corrupted"


class UploadURLExpired(FeatureDevException):
    default_message = "The upload URL expired before the code was uploaded"


class UploadCodeException(FeatureDevException):
    default_message = "Failed to upload code"


class CodeIterationLimitException(FeatureDevException):
    default_message = "You have reached the code generation limit for this conversation"


class MonthlyConversationLimitError(FeatureDevException):
    default_message = "You have reached the monthly conversation limit"


class RepoSizeLimitError(FeatureDevException):
    default_message = "The workspace is too large to upload"


class GuardrailsException(FeatureDevException):
    default_message = "The request was blocked by content guardrails"


class PromptRefusalException(FeatureDevException):
    default_message = "The model declined to respond to this request"


class ThrottlingException(FeatureDevException):
    default_message = "Too many requests, try again later"


class NoChangeRequiredException(FeatureDevException):
    default_message = "No code changes are required for this request"


class EmptyPatchException(FeatureDevException):
    default_message = "Code generation returned an empty patch"


class ExportParseException(FeatureDevException):
    default_message = "Failed to parse the exported code result"


class CodeGenerationException(FeatureDevException):
    default_message = "Code generation failed"


class ConversationIdNotFoundException(FeatureDevException):
    default_message = "Conversation id was not found"


class SessionNotFoundError(KeyError):
    """Raised when a follow-up references a tab without a session."""

    def __init__(self, tab_id: str):
        self.tab_id = tab_id
        super().__init__(f"No session for tab {tab_id}")
