"""Summary: Domain model dataclasses for Autoply.

Importance: Defines the core entities shared across routing, generation, and storage.
Alternatives: Use Pydantic models or ORM classes directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"
MESSAGE_ROLES = (ROLE_USER, ROLE_ASSISTANT)


@dataclass(frozen=True)
class Message:
    """Summary: One conversation turn for a user.

    Importance: Core unit of the rolling history fed to the router and generator.
    Alternatives: Store the whole conversation as a single JSON blob per user.
    """

    user_id: str
    role: str
    content: str
    timestamp: datetime


@dataclass(frozen=True)
class User:
    """Summary: Represents a bot user keyed by their Telegram identity.

    Importance: Anchors CV storage, OAuth tokens, and history to one person.
    Alternatives: Key everything by chat id without a user record.
    """

    telegram_id: str
    first_name: str | None = None
    last_name: str | None = None


@dataclass(frozen=True)
class ConversationIntent:
    """Summary: Router outcome for chit-chat, CV questions, and fallbacks."""

    response_text: str


@dataclass(frozen=True)
class JobApplicationIntent:
    """Summary: Router outcome when the user shares a posting or asks to apply.

    Importance: Carries the job description and optional recipient into generation.
    Alternatives: Let the heavy model re-read the raw message and decide again.
    """

    job_description: str
    recipient_email: str | None = None


RouterIntent = Union[ConversationIntent, JobApplicationIntent]


@dataclass(frozen=True)
class EmailContent:
    """Summary: Subject and body produced by the drafting tool."""

    subject: str
    body: str


@dataclass(frozen=True)
class GeneratedEmail:
    """Summary: A complete draft ready for staging; never sent automatically.

    Importance: Couples the formatted content with its recipient and owner.
    Alternatives: Pass tool payload dicts around directly.
    """

    subject: str
    body: str
    recipient_email: str
    source_user_id: str


@dataclass(frozen=True)
class ToolInvocation:
    """Summary: Record of one tool call made during a generation run."""

    name: str
    arguments: dict[str, Any]
    result: dict[str, Any]


@dataclass(frozen=True)
class GenerationResult:
    """Summary: Output of the bounded generation loop.

    Importance: Separates user-visible narration from the structured draft.
    Alternatives: Return the raw provider response and parse it in the caller.
    """

    display_text: str
    email_draft: GeneratedEmail | None = None
    tool_calls: tuple[ToolInvocation, ...] = ()
    steps: int = 0


@dataclass(frozen=True)
class PendingAction:
    """Summary: An unconfirmed draft held in the user's single pending slot."""

    subject: str
    body: str
    recipient_email: str
    staged_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class TurnResult:
    """Summary: Reply for one inbound message.

    Importance: Tells the transport whether to show Send/Cancel controls.
    Alternatives: Return a plain string and let the transport query the pending store.
    """

    response_text: str
    staged_draft: PendingAction | None = None

    @property
    def confirmation_requested(self) -> bool:
        return self.staged_draft is not None


@dataclass(frozen=True)
class Application:
    """Summary: Record of a dispatched application email.

    Importance: Powers the /history command and auditing of what was sent.
    Alternatives: Rely on the Gmail sent folder only.
    """

    user_id: int
    job_summary: str
    subject: str
    body: str
    sender_email: str
    recipient_email: str
    cv_storage_key: str
    provider_message_id: str | None
    sent_at: datetime


@dataclass(frozen=True)
class AiRequest:
    """Summary: Records an AI request for audit and traceability.

    Importance: Provides visibility into prompts and model usage per stage.
    Alternatives: Log requests only in observability logs.
    """

    provider: str
    model: str
    prompt: str
    purpose: str
    timestamp: datetime


@dataclass(frozen=True)
class AiResponse:
    """Summary: Records an AI response paired to a request."""

    request_id: int
    response_text: str
    latency_ms: int
    token_estimate: int
