"""Exception types raised inside a conversation turn.

Only UnknownUserError is expected to cross the turn boundary; everything
else is caught by the orchestrator and turned into an apology reply.
"""

from __future__ import annotations


class PackbotError(Exception):
    """Base class for all packbot errors."""


class BackendError(PackbotError):
    """The reasoning backend returned an HTTP error or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RunFailedError(PackbotError):
    """A backend run reached the ``failed`` state."""


class RunProtocolError(PackbotError):
    """A run asked for tool outputs but did not expose any tool calls."""


class RunIncompleteError(PackbotError):
    """The iteration cap was reached and no assistant text is available."""


class ToolRegistryError(PackbotError):
    """The tool registry does not match the declared tool contract."""


class UnknownUserError(PackbotError):
    def __init__(self, user_id: str):
        super().__init__(f"Unknown user: {user_id}")
        self.user_id = user_id


class WeatherError(PackbotError):
    """The weather service returned an error or could not be reached."""
