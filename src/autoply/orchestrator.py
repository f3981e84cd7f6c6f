"""Summary: End-to-end turn processing for the chat transport.

Importance: The single seam the transport depends on; every branch ends in a reply.
Alternatives: Let the transport sequence history, routing, and generation itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from autoply.errors import DispatchFailed, GenerationFailed, NoPendingAction
from autoply.generator import ApplicationGenerator
from autoply.history import ConversationHistoryStore, render
from autoply.models import (
    ROLE_ASSISTANT,
    ROLE_USER,
    ConversationIntent,
    PendingAction,
    TurnResult,
)
from autoply.pending import PendingActionStore
from autoply.router import UPLOAD_REMINDER, IntentRouter

logger = logging.getLogger(__name__)

CONFIRM = "confirm"
CANCEL = "cancel"
DECISIONS = (CONFIRM, CANCEL)

GENERATION_FAILURE = (
    "I'm sorry, I couldn't draft that application right now. Please try again in a moment."
)
SENT_RESPONSE = "Email sent successfully!"
CANCELLED_RESPONSE = "Email cancelled."
NOTHING_TO_SEND = "No pending email to send."
NOTHING_TO_CANCEL = "No pending email to cancel."


@dataclass(frozen=True)
class Orchestrator:
    """Summary: Composes history, routing, generation, and pending staging.

    Importance: Keeps the confirmation contract in one place: drafts are staged,
    never sent, during a turn.
    Alternatives: A workflow engine or graph framework.
    """

    history: ConversationHistoryStore
    router: IntentRouter
    generator: ApplicationGenerator
    pending: PendingActionStore

    def turn(self, user_id: str, message_text: str, document_text: str | None) -> TurnResult:
        """Summary: Process one inbound message for a user.

        Importance: Turns for the same user are serialized; other users run in parallel.
        Alternatives: Queue turns per user in an external broker.

        `document_text` is the freshly extracted CV text, or None when the user has
        not uploaded one.
        """

        with self.pending.lock_for(user_id):
            prior = render(self.history.load(user_id))
            self.history.append(user_id, ROLE_USER, message_text)
            intent = self.router.route(message_text, document_text, prior, user_id=user_id)

            if isinstance(intent, ConversationIntent):
                return self._reply(user_id, intent.response_text)
            if document_text is None:
                return self._reply(user_id, UPLOAD_REMINDER)

            try:
                result = self.generator.generate(
                    intent.job_description,
                    intent.recipient_email,
                    document_text,
                    prior,
                    user_id=user_id,
                )
            except GenerationFailed:
                logger.exception("Application generation failed for user %s.", user_id)
                return self._reply(user_id, GENERATION_FAILURE)

            self.history.append(user_id, ROLE_ASSISTANT, result.display_text)
            if result.email_draft is None:
                return TurnResult(response_text=result.display_text)
            staged = self.pending.stage(user_id, result.email_draft)
            return TurnResult(
                response_text=f"{result.display_text}\n\n{format_preview(staged)}",
                staged_draft=staged,
            )

    def resolve(self, user_id: str, decision: str, dispatch: Callable[[PendingAction], Any]) -> str:
        """Summary: Apply an explicit confirm or cancel signal.

        Importance: Maps every outcome, including failures, to a plain reply.
        Alternatives: Raise and let the transport format errors.
        """

        if decision not in DECISIONS:
            raise ValueError(f"Unknown decision: {decision}")
        if decision == CANCEL:
            try:
                self.pending.cancel(user_id, strict=True)
            except NoPendingAction:
                return NOTHING_TO_CANCEL
            return CANCELLED_RESPONSE
        try:
            self.pending.confirm(user_id, dispatch)
        except NoPendingAction:
            return NOTHING_TO_SEND
        except DispatchFailed as exc:
            return f"Failed to send email: {exc.reason}"
        return SENT_RESPONSE

    def _reply(self, user_id: str, text: str) -> TurnResult:
        message = self.history.append(user_id, ROLE_ASSISTANT, text)
        return TurnResult(response_text=message.content)


def format_preview(pending: PendingAction) -> str:
    """Summary: Render the draft the user is asked to confirm."""

    return (
        "--- EMAIL PREVIEW ---\n\n"
        f"To: {pending.recipient_email}\n"
        f"Subject: {pending.subject}\n\n"
        f"{pending.body}\n\n"
        "--- END PREVIEW ---\n\n"
        "Your CV will be attached automatically."
    )
