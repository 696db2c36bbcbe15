"""
email_errors.py
---------------
Exception hierarchy for the Postmark MCP server.

Startup errors (ConfigurationError, and ProviderError during the liveness
check) are fatal. Everything raised while serving a tool call is caught by
the dispatcher and returned to the caller as an error result.
"""

from typing import Optional


class EmailMcpError(Exception):
    """Base class for every error raised by this server."""


class ConfigurationError(EmailMcpError):
    """A required startup value is missing."""


class ValidationError(EmailMcpError):
    """Tool arguments do not match the tool's input contract."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Invalid arguments for {tool_name}: {message}")
        self.tool_name = tool_name


class InvalidArgument(ValidationError):
    """Arguments are well-formed but contradict each other."""


class UnknownToolError(EmailMcpError):
    """No tool is registered under the requested name."""

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class AttachmentReadError(EmailMcpError):
    """An attachment file could not be read from disk."""

    def __init__(self, file_path: str, reason: str):
        super().__init__(f"Cannot read attachment {file_path}: {reason}")
        self.file_path = file_path


class ProviderError(EmailMcpError):
    """Postmark rejected the request, or could not be reached."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[int] = None,
    ):
        detail = []
        if status_code is not None:
            detail.append(f"HTTP {status_code}")
        if error_code is not None:
            detail.append(f"ErrorCode {error_code}")
        prefix = f"Postmark API error ({', '.join(detail)})" if detail else "Postmark API error"
        super().__init__(f"{prefix}: {message}")
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
