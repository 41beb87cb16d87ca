"""Custom exception classes for ThreadKeeper."""


class ThreadKeeperError(Exception):
    """Base exception for ThreadKeeper errors."""
    pass


class ToolError(ThreadKeeperError):
    """Exception raised when an external automation tool fails."""
    pass


class ToolUnavailableError(ToolError):
    """Exception raised when an automation tool is missing or cannot be started."""
    pass


class ToolTimeoutError(ToolError):
    """Exception raised when an automation tool exceeds its time budget."""
    pass


class ToolExitError(ToolError):
    """Exception raised when an automation tool exits with a non-zero status."""
    pass


class MalformedOutputError(ThreadKeeperError):
    """Exception raised when tool or JSON output cannot be parsed."""
    pass


class SessionError(ThreadKeeperError):
    """Exception raised for session storage errors."""
    pass


class SessionNotFoundError(SessionError):
    """Exception raised when a stored session does not exist or is unreadable."""
    pass


class SessionTamperedError(SessionError):
    """Exception raised when a session file does not match its signature."""
    pass


class ValidationRejectedError(ThreadKeeperError):
    """Exception raised when a process name or URL fails validation."""
    pass


class CaptureError(ThreadKeeperError):
    """Exception raised when a context capture fails as a whole."""
    pass


class SummaryError(ThreadKeeperError):
    """Exception raised when the AI summary cannot be produced."""
    pass
