"""Summary: Tests for end-to-end turn processing.

Importance: Exercises history, routing, generation, and staging together.
Alternatives: Test each collaborator only in isolation.
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from autoply.ai import AiProvider, ChatCompletion, ToolCall
from autoply.errors import DispatchFailed
from autoply.generator import ApplicationGenerator
from autoply.history import ConversationHistoryStore
from autoply.models import PendingAction
from autoply.orchestrator import (
    CANCEL,
    CANCELLED_RESPONSE,
    CONFIRM,
    GENERATION_FAILURE,
    NOTHING_TO_CANCEL,
    NOTHING_TO_SEND,
    SENT_RESPONSE,
    Orchestrator,
    format_preview,
)
from autoply.pending import PendingActionStore
from autoply.router import UPLOAD_REMINDER, IntentRouter
from autoply.storage.sqlite_store import SqliteStore
from autoply.tools import GENERATE_EMAIL

CV_TEXT = "Jane Doe. Backend Engineer with Python and Go."
JOB = "Acme is hiring a Backend Engineer. Send applications to jobs@acme.com."

APPLY_REPLY = json.dumps(
    {"intent": "job_application", "jobDescription": JOB, "recipientEmail": "jobs@acme.com"}
)
GREETING_REPLY = json.dumps({"intent": "conversation", "response": "Hi! Your CV looks great."})


class _RouterReplies(AiProvider):
    model = "light-test"

    def __init__(self, *replies: str) -> None:
        self.replies = list(replies)
        self.prompts: list[str] = []

    def generate_text(self, prompt: str, purpose: str) -> tuple[str, int]:
        self.prompts.append(prompt)
        return self.replies.pop(0), 1

    def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]] | None, purpose: str
    ) -> ChatCompletion:
        raise AssertionError("router must not use tool completions")


class _DraftingModel(AiProvider):
    """Summary: Heavy-model stand-in that drafts once, then narrates."""

    model = "heavy-test"

    def __init__(self, job_title: str = "Backend Engineer", fail: bool = False) -> None:
        self.job_title = job_title
        self.fail = fail
        self.calls = 0

    def generate_text(self, prompt: str, purpose: str) -> tuple[str, int]:
        raise AssertionError("generator must use tool completions")

    def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]] | None, purpose: str
    ) -> ChatCompletion:
        self.calls += 1
        if self.fail:
            raise RuntimeError("model overloaded")
        if messages[-1]["role"] == "tool":
            return ChatCompletion(content="**Draft ready.** Please review it below.")
        arguments = {
            "jobDescription": JOB,
            "cvText": CV_TEXT,
            "recipientEmail": "jobs@acme.com",
            "jobTitle": self.job_title,
        }
        return ChatCompletion(
            content="",
            tool_calls=(ToolCall(id="call_1", name=GENERATE_EMAIL, arguments=json.dumps(arguments)),),
        )


def _orchestrator(
    store: SqliteStore, router: AiProvider, heavy: AiProvider | None = None
) -> Orchestrator:
    return Orchestrator(
        history=ConversationHistoryStore(store=store),
        router=IntentRouter(provider=router),
        generator=ApplicationGenerator(provider=heavy or _DraftingModel()),
        pending=PendingActionStore(),
    )


def test_greeting_gets_a_conversational_reply(store: SqliteStore) -> None:
    """Summary: Verify chit-chat is answered and logged without staging anything.

    Importance: Most turns are conversation; they must never produce drafts.
    Alternatives: Route every message to the heavy model.
    """

    orchestrator = _orchestrator(store, _RouterReplies(GREETING_REPLY))
    result = orchestrator.turn("1", "hello", CV_TEXT)
    assert result.response_text == "Hi! Your CV looks great."
    assert not result.confirmation_requested
    assert orchestrator.pending.peek("1") is None
    roles = [item.role for item in orchestrator.history.load("1")]
    assert roles == ["user", "assistant"]


def test_application_stages_draft_and_shows_preview(store: SqliteStore) -> None:
    """Summary: Verify an application turn stages a draft and returns a preview.

    Importance: Users must see exactly what will be sent before confirming.
    Alternatives: Send a summary and hide the body.
    """

    orchestrator = _orchestrator(store, _RouterReplies(APPLY_REPLY))
    result = orchestrator.turn("1", f"Please apply: {JOB}", CV_TEXT)
    assert result.confirmation_requested
    assert result.staged_draft is not None
    assert result.staged_draft.subject == "Application for Backend Engineer Position"
    assert result.response_text.startswith("Draft ready. Please review it below.")
    assert "--- EMAIL PREVIEW ---" in result.response_text
    assert "To: jobs@acme.com" in result.response_text
    assert orchestrator.pending.peek("1") == result.staged_draft
    stored = [item.content for item in orchestrator.history.load("1")]
    assert stored[-1] == "Draft ready. Please review it below."


def test_application_without_document_asks_for_cv(store: SqliteStore) -> None:
    """Summary: Verify applications without a CV never reach the heavy model.

    Importance: Drafting requires CV facts.
    Alternatives: Draft a generic email.
    """

    heavy = _DraftingModel()
    orchestrator = _orchestrator(store, _RouterReplies(APPLY_REPLY), heavy)
    result = orchestrator.turn("1", "apply to this", None)
    assert UPLOAD_REMINDER in result.response_text
    assert not result.confirmation_requested
    assert heavy.calls == 0


def test_generation_failure_apologizes(store: SqliteStore) -> None:
    """Summary: Verify generation errors produce an apology and no draft.

    Importance: Every turn gets a reply even when the heavy model fails.
    Alternatives: Propagate the error to the transport.
    """

    orchestrator = _orchestrator(store, _RouterReplies(APPLY_REPLY), _DraftingModel(fail=True))
    result = orchestrator.turn("1", "apply", CV_TEXT)
    assert result.response_text == GENERATION_FAILURE
    assert orchestrator.pending.peek("1") is None


def test_confirm_dispatches_the_staged_draft(store: SqliteStore) -> None:
    """Summary: Verify confirmation dispatches once and then reports an empty slot.

    Importance: A confirmed draft must never be sent twice.
    Alternatives: Keep the draft after sending.
    """

    orchestrator = _orchestrator(store, _RouterReplies(APPLY_REPLY))
    orchestrator.turn("1", "apply", CV_TEXT)
    sent: list[PendingAction] = []
    assert orchestrator.resolve("1", CONFIRM, lambda action: sent.append(action) or "id") == SENT_RESPONSE
    assert len(sent) == 1
    assert sent[0].recipient_email == "jobs@acme.com"
    assert orchestrator.resolve("1", CONFIRM, lambda action: "id") == NOTHING_TO_SEND


def test_dispatch_failure_keeps_draft_then_cancel(store: SqliteStore) -> None:
    """Summary: Verify a failed send reports the reason and keeps the draft.

    Importance: The user can retry or cancel after fixing the problem.
    Alternatives: Drop the draft on any failure.
    """

    orchestrator = _orchestrator(store, _RouterReplies(APPLY_REPLY))
    orchestrator.turn("1", "apply", CV_TEXT)

    def _fail(action: PendingAction) -> str:
        raise DispatchFailed("Please connect your Gmail first with /connect")

    reply = orchestrator.resolve("1", CONFIRM, _fail)
    assert reply == "Failed to send email: Please connect your Gmail first with /connect"
    assert orchestrator.pending.peek("1") is not None
    assert orchestrator.resolve("1", CANCEL, _fail) == CANCELLED_RESPONSE
    assert orchestrator.resolve("1", CANCEL, _fail) == NOTHING_TO_CANCEL


def test_new_draft_replaces_the_previous_one(store: SqliteStore) -> None:
    """Summary: Verify a second application replaces the staged draft.

    Importance: Confirmation always refers to the latest preview.
    Alternatives: Queue drafts per user.
    """

    orchestrator = _orchestrator(store, _RouterReplies(APPLY_REPLY, APPLY_REPLY))
    orchestrator.turn("1", "apply", CV_TEXT)
    orchestrator.generator.provider.job_title = "Staff Engineer"
    orchestrator.turn("1", "apply again", CV_TEXT)
    staged = orchestrator.pending.peek("1")
    assert staged is not None
    assert staged.subject == "Application for Staff Engineer Position"


def test_later_turns_see_earlier_history(store: SqliteStore) -> None:
    """Summary: Verify the router prompt includes earlier turns.

    Importance: Follow-up messages depend on prior context.
    Alternatives: Route each message in isolation.
    """

    router = _RouterReplies(GREETING_REPLY, GREETING_REPLY)
    orchestrator = _orchestrator(store, router)
    orchestrator.turn("1", "hello", CV_TEXT)
    orchestrator.turn("1", "what next?", CV_TEXT)
    assert "Previous conversation" not in router.prompts[0]
    assert "user: [" in router.prompts[1]
    assert "] hello" in router.prompts[1]


def test_unknown_decision_is_rejected(store: SqliteStore) -> None:
    orchestrator = _orchestrator(store, _RouterReplies())
    with pytest.raises(ValueError):
        orchestrator.resolve("1", "maybe", lambda action: "id")


def test_format_preview_lists_recipient_subject_and_body() -> None:
    """Summary: Verify the preview shows recipient, subject, and body.

    Importance: Users confirm exactly what will be sent.
    Alternatives: Show only the subject line.
    """

    preview = format_preview(
        PendingAction(subject="Job Application", body="Dear Hiring Manager,", recipient_email="a@b.com")
    )
    assert preview.splitlines()[0] == "--- EMAIL PREVIEW ---"
    assert "To: a@b.com\nSubject: Job Application\n\nDear Hiring Manager," in preview
    assert preview.endswith("Your CV will be attached automatically.")
