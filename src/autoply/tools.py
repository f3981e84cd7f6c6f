"""Summary: Structured drafting tool exposed to the generation model.

Importance: The model decides when and with which facts to draft; formatting stays deterministic.
Alternatives: Let the model free-text the email and parse it afterwards.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable

from autoply.models import EmailContent
from autoply.text import is_valid_email

GENERATE_EMAIL = "generate_email"

GENERATE_EMAIL_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": GENERATE_EMAIL,
        "description": (
            "Generate a job application email based on the job description and candidate CV. "
            "Returns email subject and body in plain text."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "jobDescription": {
                    "type": "string",
                    "description": "The full job description or posting text",
                },
                "cvText": {
                    "type": "string",
                    "description": "The full extracted text from the candidate CV",
                },
                "recipientEmail": {
                    "type": "string",
                    "format": "email",
                    "description": "The email address to send the application to",
                },
                "companyName": {
                    "type": "string",
                    "description": "The name of the company, if known",
                },
                "jobTitle": {"type": "string", "description": "The job title, if known"},
            },
            "required": ["jobDescription", "cvText", "recipientEmail"],
        },
    },
}

TOOLS = [GENERATE_EMAIL_TOOL]


class ToolArgumentError(ValueError):
    """Summary: Tool arguments failed validation; reported back to the model."""


def generate_email(
    job_description: str,
    cv_text: str,
    recipient_email: str,
    company_name: str | None = None,
    job_title: str | None = None,
) -> EmailContent:
    """Summary: Format an application email from extracted facts.

    Importance: Pure function, so drafts are reproducible and testable without a model.
    Alternatives: Ask the model for the final body text.
    """

    return EmailContent(
        subject=generate_subject(job_title, company_name),
        body=generate_body(job_title, company_name),
    )


def generate_subject(job_title: str | None, company_name: str | None) -> str:
    if job_title and company_name:
        return f"Application for {job_title} at {company_name}"
    if job_title:
        return f"Application for {job_title} Position"
    return "Job Application"


def generate_body(job_title: str | None, company_name: str | None) -> str:
    greeting = f"Dear {company_name} Hiring Team," if company_name else "Dear Hiring Manager,"
    if job_title:
        opening = f"I am writing to express my strong interest in the {job_title} position."
    else:
        opening = (
            "I am writing to express my strong interest in the open position at your company."
        )
    return "\n\n".join(
        [
            greeting,
            opening,
            "Based on the role requirements and my background, I believe I would be an "
            "excellent fit for this opportunity.",
            "I have attached my CV for your review and would welcome the opportunity to "
            "discuss how my experience aligns with your needs.",
            "Thank you for considering my application. I look forward to hearing from you.",
            "Best regards",
        ]
    )


@dataclass(frozen=True)
class GenerateEmailArgs:
    """Summary: Validated arguments for the drafting tool."""

    job_description: str
    cv_text: str
    recipient_email: str
    company_name: str | None = None
    job_title: str | None = None

    @staticmethod
    def parse(raw_arguments: str) -> "GenerateEmailArgs":
        """Summary: Validate the model's JSON arguments against the tool schema.

        Importance: A draft only exists when the payload matches the declared schema.
        Alternatives: Trust the model's arguments as-is.
        """

        try:
            payload = json.loads(raw_arguments or "{}")
        except json.JSONDecodeError as exc:
            raise ToolArgumentError(f"Arguments are not valid JSON: {exc.msg}") from exc
        if not isinstance(payload, dict):
            raise ToolArgumentError("Arguments must be a JSON object")
        job_description = _required_text(payload, "jobDescription")
        cv_text = _required_text(payload, "cvText")
        recipient = _required_text(payload, "recipientEmail")
        if not is_valid_email(recipient):
            raise ToolArgumentError(f"recipientEmail is not a valid email address: {recipient}")
        return GenerateEmailArgs(
            job_description=job_description,
            cv_text=cv_text,
            recipient_email=recipient.strip(),
            company_name=_optional_text(payload, "companyName"),
            job_title=_optional_text(payload, "jobTitle"),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "jobDescription": self.job_description,
            "cvText": self.cv_text,
            "recipientEmail": self.recipient_email,
            "companyName": self.company_name,
            "jobTitle": self.job_title,
        }


def run_generate_email(raw_arguments: str) -> tuple[GenerateEmailArgs, EmailContent]:
    args = GenerateEmailArgs.parse(raw_arguments)
    content = generate_email(
        args.job_description,
        args.cv_text,
        args.recipient_email,
        company_name=args.company_name,
        job_title=args.job_title,
    )
    return args, content


TOOL_RUNNERS: dict[str, Callable[[str], tuple[GenerateEmailArgs, EmailContent]]] = {
    GENERATE_EMAIL: run_generate_email,
}


def _required_text(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ToolArgumentError(f"{key} is required")
    return value


def _optional_text(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ToolArgumentError(f"{key} must be a string")
    return value.strip() or None
