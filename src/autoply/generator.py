"""Summary: Bounded tool-calling generation of application emails.

Importance: Drafts grounded emails with the heavy model while capping cost and latency.
Alternatives: A single completion that returns the whole email as JSON.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from autoply.ai import AiProvider, ChatCompletion, ToolCall
from autoply.errors import GenerationFailed
from autoply.models import GeneratedEmail, GenerationResult, ToolInvocation
from autoply.services import AiAuditLog
from autoply.text import strip_markdown
from autoply.tools import GENERATE_EMAIL, TOOL_RUNNERS, TOOLS, ToolArgumentError

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 5

GENERATION_SYSTEM_PROMPT = """You are a professional job application assistant. Your role is to generate tailored application emails.

STRICT RULES:
1. You MUST use the generate_email tool to create job applications
2. You NEVER generate markdown - all output must be plain text
3. You ground all content strictly in the user's actual experience from their CV
4. You NEVER invent or exaggerate skills or experience
5. After generating, present a brief summary and wait for confirmation

When generating an email:
1. Analyze the job requirements against the CV
2. Use the generate_email tool with all relevant details
3. Present the preview and ask for confirmation before sending"""

RECIPIENT_REQUEST = (
    "Which email address should I send this application to? "
    "Reply with the recipient's email and I'll prepare the draft."
)
RECIPIENT_CHECK = (
    "I addressed this draft to {recipient}, taken from the job description. "
    "Check the recipient before sending, or reply with the right address."
)


@dataclass(frozen=True)
class ApplicationGenerator:
    """Summary: Runs the heavy model with the drafting tool for at most `max_steps` steps.

    Importance: Tool execution is local and pure; the model only chooses facts.
    Alternatives: An open-ended agent loop stopped by the model itself.
    """

    provider: AiProvider
    max_steps: int = DEFAULT_MAX_STEPS
    audit: AiAuditLog | None = None

    def generate(
        self,
        job_description: str,
        recipient_email: str | None,
        document_text: str,
        history: list[dict[str, str]],
        user_id: str = "",
    ) -> GenerationResult:
        """Summary: Draft an application email for one job description.

        Importance: Only validated tool output becomes a draft; narration is plain text.
        Alternatives: Stage whatever email-shaped text the model writes.

        Raises GenerationFailed when the completion service fails.
        """

        messages: list[dict[str, Any]] = [
            {"role": "system", "content": build_system_prompt(document_text)},
            *history,
            {"role": "user", "content": build_application_prompt(job_description, recipient_email)},
        ]
        invocations: list[ToolInvocation] = []
        final_text = ""
        steps = 0
        while steps < self.max_steps:
            steps += 1
            completion = self._complete(messages, user_id)
            final_text = completion.content or final_text
            if not completion.tool_calls:
                break
            messages.append(completion.as_message())
            for call in completion.tool_calls:
                invocation, payload = execute_tool_call(call)
                if invocation is not None:
                    invocations.append(invocation)
                messages.append(
                    {"role": "tool", "tool_call_id": call.id, "content": json.dumps(payload)}
                )
        else:
            logger.warning("Generation stopped at the %s step budget.", self.max_steps)

        draft = select_draft(invocations, job_description, recipient_email, user_id)
        display_text = strip_markdown(final_text)
        if draft is None and recipient_email is None and RECIPIENT_REQUEST not in display_text:
            display_text = f"{display_text}\n\n{RECIPIENT_REQUEST}".strip()
        elif draft is not None and recipient_email is None:
            check = RECIPIENT_CHECK.format(recipient=draft.recipient_email)
            display_text = f"{display_text}\n\n{check}".strip()
        if not display_text:
            display_text = "Here is your application draft." if draft else RECIPIENT_REQUEST
        logger.info(
            "Generation finished in %s steps with %s tool calls (draft=%s).",
            steps,
            len(invocations),
            draft is not None,
        )
        return GenerationResult(
            display_text=display_text,
            email_draft=draft,
            tool_calls=tuple(invocations),
            steps=steps,
        )

    def _complete(self, messages: list[dict[str, Any]], user_id: str) -> ChatCompletion:
        try:
            completion = self.provider.complete(messages, TOOLS, purpose="generate")
        except Exception as exc:
            raise GenerationFailed(str(exc)) from exc
        if self.audit is not None:
            self.audit.record(
                json.dumps(messages[-1], default=str),
                "generate",
                completion.content,
                completion.latency_ms,
                user_id=user_id,
            )
        return completion


def build_system_prompt(document_text: str) -> str:
    return f"{GENERATION_SYSTEM_PROMPT}\n\nUser's CV content:\n{document_text}"


def build_application_prompt(job_description: str, recipient_email: str | None) -> str:
    if recipient_email:
        return (
            "Generate a job application email for this position. "
            f"Send to: {recipient_email}\n\nJob Description:\n{job_description}"
        )
    return (
        "Generate a job application email for this position. "
        "The recipient email address is unknown: ask the user for it.\n\n"
        f"Job Description:\n{job_description}"
    )


def execute_tool_call(call: ToolCall) -> tuple[ToolInvocation | None, dict[str, Any]]:
    """Summary: Run one requested tool and build the payload fed back to the model.

    Importance: Unknown tools and invalid arguments become error payloads, not crashes.
    Alternatives: Abort the whole generation on the first bad call.
    """

    runner = TOOL_RUNNERS.get(call.name)
    if runner is None:
        logger.warning("Model requested unknown tool %s.", call.name)
        return None, {"error": f"Unknown tool: {call.name}"}
    try:
        args, content = runner(call.arguments)
    except ToolArgumentError as exc:
        logger.warning("Rejected %s arguments: %s", call.name, exc)
        return None, {"error": str(exc)}
    result = {"subject": content.subject, "body": content.body}
    return ToolInvocation(name=call.name, arguments=args.as_dict(), result=result), result


def select_draft(
    invocations: list[ToolInvocation],
    job_description: str,
    recipient_email: str | None,
    user_id: str,
) -> GeneratedEmail | None:
    """Summary: Pick the last drafting-tool result as the ready draft.

    Importance: A user-supplied recipient always wins; without one, only an address
    that literally appears in the job description is accepted.
    Alternatives: Trust whatever recipient the model passed to the tool.
    """

    drafts = [item for item in invocations if item.name == GENERATE_EMAIL]
    if not drafts:
        return None
    latest = drafts[-1]
    recipient = recipient_email
    if recipient is None:
        candidate = latest.arguments.get("recipientEmail") or ""
        if not candidate or candidate.lower() not in job_description.lower():
            return None
        recipient = candidate
    return GeneratedEmail(
        subject=latest.result["subject"],
        body=latest.result["body"],
        recipient_email=recipient,
        source_user_id=user_id,
    )
