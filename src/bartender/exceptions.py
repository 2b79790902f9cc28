"""Custom exception hierarchy for bartender."""

from __future__ import annotations


class BartenderError(Exception):
    """Base exception for all bartender errors."""


class BartenderConfigError(BartenderError):
    """Invalid or missing configuration."""


class TemplateError(BartenderError):
    """The format template is malformed and can never render."""


class RenderFailure(BartenderError):
    """Rendering a validated template failed unexpectedly."""


class SourceError(BartenderError):
    """A source failed to produce updates.

    Source errors are contained by the scheduler: they are logged and the
    source is retried, they never stop the process.
    """

    def __init__(self, message: str, *, key: str = "") -> None:
        self.key = key
        super().__init__(message)


class SourceStartupFailure(SourceError):
    """The source's path or command is unusable (missing, wrong type, denied)."""


class SourceRuntimeFailure(SourceError):
    """The source started but failed while running.

    Covers commands exiting non-zero or timing out, and long-running
    processes exiting.
    """

    def __init__(
        self,
        message: str,
        *,
        key: str = "",
        returncode: int | None = None,
    ) -> None:
        self.returncode = returncode
        super().__init__(message, key=key)
