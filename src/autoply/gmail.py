"""Summary: Gmail REST helpers for sending applications.

Importance: Delivers confirmed drafts from the user's own mailbox with the CV attached.
Alternatives: Use SMTP with app passwords or the google-api-python-client SDK.
"""

from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attachment:
    """Summary: A file attached to an outgoing email."""

    filename: str
    content: bytes
    media_type: str


@dataclass(frozen=True)
class OutgoingEmail:
    """Summary: Everything the dispatcher needs for one send.

    Importance: Mirrors the mail collaborator contract: from, to, subject, body, attachment.
    Alternatives: Pass loose keyword arguments through the call chain.
    """

    from_address: str
    to_address: str
    subject: str
    body: str
    attachment: Attachment | None = None


def build_mime_message(email: OutgoingEmail) -> bytes:
    """Summary: Build a multipart MIME message.

    Importance: Lets the stdlib handle header encoding and boundaries.
    Alternatives: Concatenate MIME parts by hand.
    """

    message = EmailMessage()
    message["From"] = email.from_address
    message["To"] = email.to_address
    message["Subject"] = email.subject
    message.set_content(email.body)
    if email.attachment is not None:
        maintype, _, subtype = email.attachment.media_type.partition("/")
        message.add_attachment(
            email.attachment.content,
            maintype=maintype or "application",
            subtype=subtype or "octet-stream",
            filename=email.attachment.filename,
        )
    return message.as_bytes()


def encode_raw(message: bytes) -> str:
    return base64.urlsafe_b64encode(message).decode("ascii").rstrip("=")


class GmailClient:
    """Summary: Minimal Gmail API client bound to one access token.

    Importance: Covers the two calls Autoply needs: send and list send-as addresses.
    Alternatives: Use a provider SDK.
    """

    def __init__(self, access_token: str, base_url: str) -> None:
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")

    def send(self, email: OutgoingEmail) -> str:
        """Summary: Send an email and return the Gmail message id.

        Importance: Raises RuntimeError on API failure so callers can keep the draft.
        Alternatives: Queue the send and poll for delivery status.
        """

        raw = encode_raw(build_mime_message(email))
        response = _gmail_api_request(
            f"{self._base_url}/users/me/messages/send",
            self._access_token,
            {"raw": raw},
        )
        message_id = response.get("id")
        if not message_id:
            raise RuntimeError("Gmail API did not return a message id")
        logger.info("Sent Gmail message %s to %s.", message_id, email.to_address)
        return str(message_id)

    def fetch_send_as_addresses(self) -> list[str]:
        response = _gmail_api_request(
            f"{self._base_url}/users/me/settings/sendAs", self._access_token
        )
        entries = response.get("sendAs", [])
        default = [item["sendAsEmail"] for item in entries if item.get("isDefault")]
        others = [item["sendAsEmail"] for item in entries if not item.get("isDefault")]
        return default + others


def _gmail_api_request(
    url: str, access_token: str, payload: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Summary: Call the Gmail API and decode the JSON reply.

    Importance: Encapsulates Gmail API calls without new dependencies.
    Alternatives: Use a third-party HTTP client or SDK.
    """

    headers = {"Authorization": f"Bearer {access_token}"}
    data = None
    if payload is not None:
        headers["Content-Type"] = "application/json"
        data = json.dumps(payload).encode("utf-8")
    request = urllib.request.Request(
        url,
        data=data,
        headers=headers,
        method="POST" if payload is not None else "GET",
    )
    try:
        with urllib.request.urlopen(request, timeout=30) as response:
            raw = response.read().decode("utf-8")
    except urllib.error.HTTPError as exc:
        error_body = exc.read().decode("utf-8", errors="replace")
        raise RuntimeError(f"Gmail API request failed: {error_body or exc.reason}") from exc
    except urllib.error.URLError as exc:
        raise RuntimeError(f"Gmail API request failed: {exc.reason}") from exc
    return json.loads(raw) if raw else {}
