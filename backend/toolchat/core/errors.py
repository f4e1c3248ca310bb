"""
Error taxonomy for chat turns.

Every failure that reaches the HTTP boundary is one of these kinds; the
exception handlers in ``toolchat.main`` render them as JSON bodies with
the matching status code.
"""

from typing import Any, Dict, Optional


class ToolChatError(Exception):
    """Base class for errors that are surfaced to API clients."""

    status_code: int = 500
    kind: str = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message, "error": self.kind}
        body.update(self.details)
        return body


class ValidationError(ToolChatError):
    """Malformed input at the turn boundary, rejected before any external call."""

    status_code = 400
    kind = "validation_error"


class NotFoundError(ToolChatError):
    """A referenced conversation, system prompt or tool does not exist."""

    status_code = 404
    kind = "not_found"


class ToolExecutionError(ToolChatError):
    """A tool failed to run (remote status, transport failure, timeout)."""

    status_code = 500
    kind = "tool_execution_error"

    def __init__(
        self,
        message: str,
        tool_name: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.tool_name = tool_name
        self.status = status


class CompletionUnavailable(ToolChatError):
    """The language-model provider was unreachable or returned an error."""

    status_code = 503
    kind = "completion_unavailable"
