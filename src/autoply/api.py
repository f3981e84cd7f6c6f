"""Summary: FastAPI application for Autoply.

Importance: Exposes the Telegram webhook, the OAuth callback, and a JSON chat surface.
Alternatives: Use Telegram long polling or a different web framework.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from autoply.app import AppContext, build_context
from autoply.config import AppConfig
from autoply.orchestrator import DECISIONS
from autoply.storage.sqlite_store import StoredUser
from autoply.telegram import TelegramBot

logger = logging.getLogger(__name__)


class TurnRequest(BaseModel):
    """Summary: Request payload for one chat turn.

    Importance: Lets non-Telegram clients drive the same orchestrator.
    Alternatives: Accept only Telegram webhook updates.
    """

    user_id: str = Field(min_length=1)
    message: str = Field(min_length=1)
    first_name: str | None = None
    last_name: str | None = None


class ConfirmRequest(BaseModel):
    """Summary: Request payload for confirming or cancelling a staged draft."""

    user_id: str = Field(min_length=1)
    decision: str


def create_app(
    config: AppConfig,
    context: AppContext | None = None,
    bot: TelegramBot | None = None,
) -> FastAPI:
    """Summary: Create a FastAPI app wired to Autoply services.

    Importance: Ensures the API layer shares the same configuration, storage, and drafts.
    Alternatives: Instantiate services globally outside the factory.
    """

    if not logging.getLogger().handlers:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    app = FastAPI(title="Autoply API", version="0.1.0")
    context = context or build_context(config)
    bot = bot or context.telegram_bot()

    def _user_for(telegram_id: str, first: str | None = None, last: str | None = None) -> StoredUser:
        existing = context.store.get_user_by_telegram_id(telegram_id)
        if existing is not None and first is None and last is None:
            return existing
        return context.users.get_or_create(telegram_id, first, last)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Summary: Health check endpoint.

        Importance: Supports uptime checks in local and cloud deployments.
        Alternatives: Use a metrics endpoint only.
        """

        return {"status": "ok"}

    @app.post("/webhook")
    def webhook(update: dict[str, Any]) -> dict[str, bool]:
        """Summary: Receive one Telegram update.

        Importance: Always acknowledges so Telegram does not redeliver a failing update.
        Alternatives: Return 500 and rely on Telegram retries.
        """

        try:
            bot.handle_update(update)
        except Exception:
            logger.exception("Webhook update %s failed.", update.get("update_id"))
        return {"ok": True}

    @app.get("/oauth/callback", response_class=HTMLResponse)
    def oauth_callback(code: str | None = None, state: str | None = None) -> str:
        """Summary: Complete the Gmail OAuth flow for the user named in `state`.

        Importance: Stores tokens and sender addresses so confirmed drafts can be sent.
        Alternatives: Ask users to paste an authorization code into the chat.
        """

        if not code or not state:
            raise HTTPException(status_code=400, detail="Missing code or state")
        user = context.store.get_user_by_telegram_id(state)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        try:
            emails = context.tokens.connect(user.id, code)
        except (RuntimeError, ValueError) as exc:
            logger.exception("OAuth callback failed for user %s.", user.id)
            raise HTTPException(status_code=500, detail="Failed to connect Gmail") from exc
        listing = "".join(f"<li>{email}</li>" for email in emails)
        return (
            "<h1>Gmail Connected!</h1>"
            f"<p>Available sender emails:</p><ul>{listing}</ul>"
            "<p>You can close this window and return to Telegram.</p>"
        )

    @app.post("/turn")
    def turn(payload: TurnRequest) -> dict[str, Any]:
        """Summary: Run one chat turn and report whether a draft awaits confirmation.

        Importance: Mirrors the Telegram text path for other clients and tests.
        Alternatives: Expose router and generator as separate endpoints.
        """

        user = _user_for(payload.user_id, payload.first_name, payload.last_name)
        document_text = context.users.load_cv_text(user)
        result = context.orchestrator.turn(str(user.id), payload.message, document_text)
        preview = None
        if result.staged_draft is not None:
            preview = {
                "subject": result.staged_draft.subject,
                "body": result.staged_draft.body,
                "recipient_email": result.staged_draft.recipient_email,
            }
        return {
            "response_text": result.response_text,
            "confirmation_requested": result.confirmation_requested,
            "preview": preview,
        }

    @app.post("/confirm")
    def confirm(payload: ConfirmRequest) -> dict[str, str]:
        """Summary: Confirm or cancel the staged draft for a user."""

        if payload.decision not in DECISIONS:
            raise HTTPException(status_code=400, detail="Decision must be confirm or cancel")
        user = context.store.get_user_by_telegram_id(payload.user_id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        reply = context.orchestrator.resolve(
            str(user.id), payload.decision, context.applications.dispatcher_for(user)
        )
        return {"response_text": reply}

    return app


app = create_app(AppConfig.from_env())
