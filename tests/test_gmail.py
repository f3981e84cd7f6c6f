"""Summary: Tests for Gmail message building and API calls.

Importance: Ensures confirmed drafts leave as well-formed MIME with the CV attached.
Alternatives: Use integration tests with the live Gmail API.
"""

from __future__ import annotations

import base64
import email
import json
from typing import Any

import pytest

from autoply.gmail import Attachment, GmailClient, OutgoingEmail, build_mime_message, encode_raw


class _FakeResponse:
    def __init__(self, payload: dict[str, Any]) -> None:
        self._body = json.dumps(payload).encode("utf-8")

    def read(self) -> bytes:
        return self._body

    def __enter__(self) -> "_FakeResponse":
        return self

    def __exit__(self, *_args: object) -> None:
        return None


def _outgoing() -> OutgoingEmail:
    return OutgoingEmail(
        from_address="jane@gmail.com",
        to_address="jobs@acme.com",
        subject="Application for SRE Position",
        body="Dear Hiring Manager,\n\nBest regards",
        attachment=Attachment(filename="Jane_Doe_CV.pdf", content=b"%PDF-1.4", media_type="application/pdf"),
    )


def test_build_mime_message_attaches_cv() -> None:
    """Summary: Verify headers, body, and attachment survive MIME encoding.

    Importance: Recruiters must receive the CV with a readable filename.
    Alternatives: Send the CV as a link.
    """

    parsed = email.message_from_bytes(build_mime_message(_outgoing()))
    assert parsed["From"] == "jane@gmail.com"
    assert parsed["To"] == "jobs@acme.com"
    assert parsed["Subject"] == "Application for SRE Position"
    parts = list(parsed.walk())
    attachments = [part for part in parts if part.get_filename()]
    assert attachments[0].get_filename() == "Jane_Doe_CV.pdf"
    assert attachments[0].get_content_type() == "application/pdf"
    assert attachments[0].get_payload(decode=True) == b"%PDF-1.4"


def test_encode_raw_is_unpadded_base64url() -> None:
    raw = encode_raw(b"hello??>>")
    assert "=" not in raw
    assert base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)) == b"hello??>>"


def test_send_posts_raw_message(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify send posts the encoded message with a bearer token.

    Importance: This is the request that actually delivers the application.
    Alternatives: Use SMTP with an OAuth2 login.
    """

    captured: dict[str, Any] = {}

    def _fake_urlopen(request: Any, timeout: int) -> _FakeResponse:
        captured["url"] = request.full_url
        captured["auth"] = request.get_header("Authorization")
        captured["body"] = json.loads(request.data.decode("utf-8"))
        return _FakeResponse({"id": "msg-1"})

    monkeypatch.setattr("urllib.request.urlopen", _fake_urlopen)
    client = GmailClient("token-1", "https://gmail.test/gmail/v1/")
    assert client.send(_outgoing()) == "msg-1"
    assert captured["url"] == "https://gmail.test/gmail/v1/users/me/messages/send"
    assert captured["auth"] == "Bearer token-1"
    assert "raw" in captured["body"]


def test_send_without_id_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify a send response without an id is treated as a failure.

    Importance: A missing id means the message cannot be traced.
    Alternatives: Accept the response and record an empty id.
    """

    monkeypatch.setattr("urllib.request.urlopen", lambda request, timeout: _FakeResponse({}))
    with pytest.raises(RuntimeError):
        GmailClient("token", "https://gmail.test").send(_outgoing())


def test_send_as_addresses_put_default_first(monkeypatch: pytest.MonkeyPatch) -> None:
    """Summary: Verify the default send-as address is listed first.

    Importance: The first address is used when the user has not selected one.
    Alternatives: Keep the API order unchanged.
    """

    payload = {
        "sendAs": [
            {"sendAsEmail": "alias@work.com", "isDefault": False},
            {"sendAsEmail": "jane@gmail.com", "isDefault": True},
        ]
    }
    monkeypatch.setattr("urllib.request.urlopen", lambda request, timeout: _FakeResponse(payload))
    addresses = GmailClient("token", "https://gmail.test").fetch_send_as_addresses()
    assert addresses == ["jane@gmail.com", "alias@work.com"]
