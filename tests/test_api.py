"""Summary: API integration tests.

Importance: Validates FastAPI endpoints against the chat and confirmation workflow.
Alternatives: Use manual curl testing only.
"""

from __future__ import annotations

import json
from typing import Any

import pytest
from fastapi.testclient import TestClient

from autoply.ai import AiProvider, ChatCompletion, ToolCall
from autoply.api import create_app
from autoply.app import AppContext, build_context
from autoply.config import AppConfig
from autoply.extract import PDF_MEDIA_TYPE
from autoply.tools import GENERATE_EMAIL

JOB = "Acme needs a Site Reliability Engineer. Send CVs to hr@acme.com."
PDF_BYTES = b"%PDF-1.4\nstream\nBT (Jane Doe SRE) Tj ET\nendstream\n%%EOF"


class _KeywordRouter(AiProvider):
    """Summary: Routes messages containing "apply" as applications."""

    model = "light-test"

    def generate_text(self, prompt: str, purpose: str) -> tuple[str, int]:
        message = prompt.rsplit("User message: ", 1)[-1]
        if "apply" in message.lower():
            return json.dumps({"intent": "job_application", "jobDescription": JOB}), 1
        return json.dumps({"intent": "conversation", "response": "Hello! How can I help?"}), 1

    def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]] | None, purpose: str
    ) -> ChatCompletion:
        raise AssertionError("router must not use tool completions")


class _DraftingModel(AiProvider):
    model = "heavy-test"

    def generate_text(self, prompt: str, purpose: str) -> tuple[str, int]:
        raise AssertionError("generator must use tool completions")

    def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]] | None, purpose: str
    ) -> ChatCompletion:
        if messages[-1]["role"] == "tool":
            return ChatCompletion(content="Draft ready.")
        arguments = {
            "jobDescription": JOB,
            "cvText": "Jane",
            "recipientEmail": "hr@acme.com",
            "jobTitle": "Site Reliability Engineer",
        }
        return ChatCompletion(
            content="",
            tool_calls=(ToolCall(id="c1", name=GENERATE_EMAIL, arguments=json.dumps(arguments)),),
        )


class _SilentBot:
    def __init__(self) -> None:
        self.updates: list[dict[str, Any]] = []

    def handle_update(self, update: dict[str, Any]) -> None:
        self.updates.append(update)
        if update.get("explode"):
            raise RuntimeError("boom")


@pytest.fixture
def context(config: AppConfig) -> AppContext:
    return build_context(config, light_provider=_KeywordRouter(), heavy_provider=_DraftingModel())


@pytest.fixture
def bot() -> _SilentBot:
    return _SilentBot()


@pytest.fixture
def client(config: AppConfig, context: AppContext, bot: _SilentBot) -> TestClient:
    return TestClient(create_app(config, context=context, bot=bot))


def _with_cv(context: AppContext, telegram_id: str = "100") -> None:
    user = context.users.get_or_create(telegram_id, "Jane", "Doe")
    context.users.save_cv(user.id, PDF_BYTES, PDF_MEDIA_TYPE)


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_webhook_always_acknowledges(client: TestClient, bot: _SilentBot) -> None:
    """Summary: Verify updates reach the bot and failures still return ok.

    Importance: Telegram retries failing webhooks, which would duplicate replies.
    Alternatives: Surface handler errors as HTTP 500.
    """

    assert client.post("/webhook", json={"update_id": 1}).json() == {"ok": True}
    assert client.post("/webhook", json={"update_id": 2, "explode": True}).json() == {"ok": True}
    assert [update["update_id"] for update in bot.updates] == [1, 2]


def test_turn_conversation(client: TestClient, context: AppContext) -> None:
    """Summary: Verify a conversational turn returns plain text and no preview.

    Importance: Non-application messages must never stage a draft.
    Alternatives: Return the router intent directly.
    """

    _with_cv(context)
    response = client.post("/turn", json={"user_id": "100", "message": "hi there"})
    assert response.status_code == 200
    body = response.json()
    assert body == {
        "response_text": "Hello! How can I help?",
        "confirmation_requested": False,
        "preview": None,
    }


def test_turn_without_cv_reminds_user(client: TestClient) -> None:
    """Summary: Verify users without a CV are asked to upload one over HTTP.

    Importance: The reminder keeps application requests from silently failing.
    Alternatives: Reject the request with a 4xx status.
    """

    body = client.post("/turn", json={"user_id": "200", "message": "please apply"}).json()
    assert "upload your CV" in body["response_text"]
    assert body["confirmation_requested"] is False


def test_turn_then_confirm_without_gmail(client: TestClient, context: AppContext) -> None:
    """Summary: Verify a staged draft is previewed and a failed send keeps it.

    Importance: Exercises staging and the dispatch failure path over HTTP.
    Alternatives: Only test the orchestrator directly.
    """

    _with_cv(context)
    body = client.post("/turn", json={"user_id": "100", "message": "apply for me"}).json()
    assert body["confirmation_requested"] is True
    assert body["preview"] == {
        "subject": "Application for Site Reliability Engineer Position",
        "body": body["preview"]["body"],
        "recipient_email": "hr@acme.com",
    }
    assert "--- EMAIL PREVIEW ---" in body["response_text"]

    reply = client.post("/confirm", json={"user_id": "100", "decision": "confirm"}).json()
    assert reply["response_text"].startswith("Failed to send email:")
    reply = client.post("/confirm", json={"user_id": "100", "decision": "cancel"}).json()
    assert reply["response_text"] == "Email cancelled."


def test_confirm_validates_input(client: TestClient, context: AppContext) -> None:
    """Summary: Verify bad decisions, unknown users, and empty slots are reported.

    Importance: Callers need distinct outcomes for invalid and no-op confirmations.
    Alternatives: Treat every invalid request as a 500.
    """

    assert client.post("/confirm", json={"user_id": "100", "decision": "maybe"}).status_code == 400
    assert client.post("/confirm", json={"user_id": "404", "decision": "confirm"}).status_code == 404
    context.users.get_or_create("100", None, None)
    reply = client.post("/confirm", json={"user_id": "100", "decision": "confirm"}).json()
    assert reply["response_text"] == "No pending email to send."


def test_turn_rejects_empty_message(client: TestClient) -> None:
    assert client.post("/turn", json={"user_id": "100", "message": ""}).status_code == 422


def test_oauth_callback_connects_gmail(
    client: TestClient, context: AppContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Summary: Verify the OAuth callback stores tokens and lists sender addresses.

    Importance: Completing consent is what unlocks sending.
    Alternatives: Poll for tokens from the chat surface.
    """

    from autoply.oauth import OAuthTokenResult

    def _fake_exchange(*_args: object) -> OAuthTokenResult:
        return OAuthTokenResult(
            access_token="access", refresh_token="refresh", expires_at=None, token_type="Bearer", raw={}
        )

    class _FakeGmail:
        def fetch_send_as_addresses(self) -> list[str]:
            return ["jane@gmail.com"]

    monkeypatch.setattr("autoply.services.exchange_oauth_code", _fake_exchange)
    monkeypatch.setattr("autoply.app.GmailClient", lambda *_args: _FakeGmail())
    user = context.users.get_or_create("100", "Jane", "Doe")
    response = client.get("/oauth/callback", params={"code": "abc", "state": "100"})
    assert response.status_code == 200
    assert "jane@gmail.com" in response.text
    assert context.tokens.send_as_emails(user.id) == ["jane@gmail.com"]


def test_oauth_callback_requires_known_user(client: TestClient) -> None:
    """Summary: Verify the callback rejects missing parameters and unknown states.

    Importance: Tokens must never be stored against the wrong account.
    Alternatives: Create a user on the fly from the state value.
    """

    assert client.get("/oauth/callback").status_code == 400
    assert client.get("/oauth/callback", params={"code": "abc", "state": "999"}).status_code == 404
