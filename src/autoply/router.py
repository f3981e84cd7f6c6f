"""Summary: Intent routing with the light model.

Importance: Cheaply separates chit-chat from application requests before the heavy model runs.
Alternatives: Send every message to the heavy model with tools enabled.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from autoply.ai import AiProvider
from autoply.errors import ClassificationFailed
from autoply.history import render_transcript
from autoply.models import ConversationIntent, JobApplicationIntent, RouterIntent
from autoply.services import AiAuditLog
from autoply.text import is_valid_email, strip_markdown

logger = logging.getLogger(__name__)

ROUTER_SYSTEM_PROMPT = """You are a helpful assistant for a job application bot. Your job is to:
1. Handle greetings and chit-chat naturally
2. Answer questions about the user's CV if provided
3. Detect when a user wants to apply for a job

IMPORTANT: You must respond in a specific JSON format based on the user's intent.

If the user is sharing a JOB DESCRIPTION or asking you to apply for a job:
{"intent": "job_application", "jobDescription": "<the job description>", "recipientEmail": "<email if mentioned, otherwise null>"}

For ALL other messages (greetings, questions about CV, general chat):
{"intent": "conversation", "response": "<your helpful response>"}

RULES:
- Be concise and friendly
- When asked about the CV, reference specific details from it
- NEVER generate markdown - use plain text only
- Only classify as "job_application" if the user explicitly shares a job posting or asks to apply
- If user asks general questions like "what jobs can I apply for?", that's a conversation, not an application"""

NO_DOCUMENT_NOTE = (
    "NOTE: The user has NOT uploaded a CV yet. If they ask about their CV or try to apply, "
    "remind them to upload it first."
)

EMPTY_REPLY_RESPONSE = "I'm here to help! Could you please tell me more about what you need?"
FAILURE_RESPONSE = "I'm sorry, I encountered an issue. Could you please try again?"
UPLOAD_REMINDER = (
    "To apply for jobs, please upload your CV first as a PDF or DOC file."
)

_JSON_DECODER = json.JSONDecoder()
_DOCUMENT_MENTION_PATTERN = re.compile(r"\b(cv|résumé|resume|document|upload)", re.IGNORECASE)


@dataclass(frozen=True)
class IntentRouter:
    """Summary: Single-shot classifier returning a RouterIntent.

    Importance: Total function; routing problems degrade to a conversational reply.
    Alternatives: Keyword rules, which miss pasted job postings without trigger words.
    """

    provider: AiProvider
    audit: AiAuditLog | None = None

    def route(
        self,
        message: str,
        document_text: str | None,
        history: list[dict[str, str]],
        user_id: str | None = None,
    ) -> RouterIntent:
        """Summary: Classify a user message.

        Importance: Never raises; unparseable output is treated as conversation because
        an application can lead to an email being drafted and sent.
        Alternatives: Retry the model until it produces valid JSON.
        """

        prompt = build_router_prompt(message, document_text, history)
        try:
            reply = self._call_model(prompt, user_id)
        except ClassificationFailed:
            logger.exception("Intent routing failed; replying with fallback.")
            return ConversationIntent(response_text=FAILURE_RESPONSE)
        intent = parse_router_reply(reply)
        intent = apply_document_policy(intent, has_document=document_text is not None)
        logger.info("Routed message as %s.", type(intent).__name__)
        return intent

    def _call_model(self, prompt: str, user_id: str | None) -> str:
        try:
            reply, latency_ms = self.provider.generate_text(prompt, purpose="route")
            if self.audit is not None:
                self.audit.record(prompt, "route", reply or "", latency_ms, user_id=user_id)
        except Exception as exc:
            raise ClassificationFailed(str(exc)) from exc
        return reply


def build_router_prompt(
    message: str, document_text: str | None, history: list[dict[str, str]]
) -> str:
    if document_text is not None:
        cv_context = f"User's CV content:\n{document_text}"
    else:
        cv_context = NO_DOCUMENT_NOTE
    sections = [ROUTER_SYSTEM_PROMPT, cv_context]
    if history:
        sections.append(f"Previous conversation:\n{render_transcript(history)}")
    sections.append(f"User message: {message}")
    sections.append("Respond with the appropriate JSON format:")
    return "\n\n".join(sections)


def parse_router_reply(reply: str | None) -> RouterIntent:
    """Summary: Turn raw model output into a RouterIntent without ever raising.

    Importance: The model is an untrusted semi-structured producer.
    Alternatives: Use provider JSON mode and fail hard on violations.
    """

    text = (reply or "").strip()
    if not text:
        logger.warning("Router returned an empty reply.")
        return ConversationIntent(response_text=EMPTY_REPLY_RESPONSE)
    if "{" not in text:
        return ConversationIntent(response_text=strip_markdown(text))
    parsed = first_json_object(text)
    if parsed is None:
        logger.warning("Router reply contained malformed JSON.")
        return ConversationIntent(response_text=strip_markdown(text))
    application = _as_application(parsed)
    if application is not None:
        return application
    response = parsed.get("response")
    if isinstance(response, str) and response.strip():
        return ConversationIntent(response_text=strip_markdown(response))
    return ConversationIntent(response_text=strip_markdown(text))


def apply_document_policy(intent: RouterIntent, has_document: bool) -> RouterIntent:
    """Summary: Make sure a user without a CV hears that one is required.

    Importance: Classification still happens; only the outcome is adjusted.
    Alternatives: Refuse to route until a CV is uploaded.
    """

    if has_document:
        return intent
    if isinstance(intent, JobApplicationIntent):
        return ConversationIntent(
            response_text=f"I can help with that application once I have your CV. {UPLOAD_REMINDER}"
        )
    if _DOCUMENT_MENTION_PATTERN.search(intent.response_text):
        return intent
    return ConversationIntent(response_text=f"{intent.response_text}\n\n{UPLOAD_REMINDER}")


def _as_application(parsed: dict[str, Any]) -> JobApplicationIntent | None:
    if parsed.get("intent") != "job_application":
        return None
    description = parsed.get("jobDescription")
    if not isinstance(description, str) or not description.strip():
        return None
    recipient = parsed.get("recipientEmail")
    if not isinstance(recipient, str) or not is_valid_email(recipient):
        recipient = None
    return JobApplicationIntent(
        job_description=description.strip(),
        recipient_email=recipient.strip() if recipient else None,
    )


def first_json_object(text: str) -> dict[str, Any] | None:
    """Summary: Return the first well-formed JSON object embedded in text.

    Importance: Models wrap JSON in prose or fences, and the prose may contain braces.
    Alternatives: Match braces with a regex, which breaks on trailing commentary.
    """

    index = text.find("{")
    while index != -1:
        try:
            parsed, _end = _JSON_DECODER.raw_decode(text, index)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
        index = text.find("{", index + 1)
    return None
