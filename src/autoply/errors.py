"""Summary: Error taxonomy for Autoply workflows.

Importance: Lets the orchestrator map each failure to a plain user-facing reply.
Alternatives: Raise ValueError/RuntimeError everywhere and parse messages.
"""

from __future__ import annotations


class AutoplyError(Exception):
    """Summary: Base class for Autoply domain errors."""


class UnsupportedFormat(AutoplyError):
    """Summary: Raised when a document media type is outside the allow-list.

    Importance: Fatal to the request; the user must be told to upload a PDF or DOC.
    Alternatives: Attempt extraction on any bytes and return empty text.
    """

    def __init__(self, media_type: str | None) -> None:
        super().__init__(f"Unsupported file type: {media_type}")
        self.media_type = media_type


class ExtractionDegraded(AutoplyError):
    """Summary: Raised in strict mode when only the letter-run fallback produced text.

    Importance: Non-fatal by default; logged so weak extractions can be found later.
    Alternatives: Silently return whatever the fallback found.
    """

    def __init__(self, media_type: str, text: str) -> None:
        super().__init__(f"Fallback text extraction used for {media_type}")
        self.media_type = media_type
        self.text = text


class ClassificationFailed(AutoplyError):
    """Summary: Routing could not call or understand the light model.

    Importance: Recovered locally by degrading to a conversational reply.
    """


class GenerationFailed(AutoplyError):
    """Summary: The heavy model call failed while drafting an application."""


class NoPendingAction(AutoplyError):
    """Summary: Confirm or cancel was requested with nothing staged."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"No pending email for user {user_id}")
        self.user_id = user_id


class DispatchFailed(AutoplyError):
    """Summary: The mail collaborator failed to send a confirmed draft.

    Importance: The pending draft stays staged so the user can retry.
    Alternatives: Clear the draft and ask the user to regenerate.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
