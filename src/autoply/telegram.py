"""Summary: Telegram transport for the Autoply bot.

Importance: Receives updates, relays turns to the orchestrator, and collects confirmations.
Alternatives: Use python-telegram-bot or aiogram.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

from autoply.config import AppConfig
from autoply.errors import UnsupportedFormat
from autoply.oauth import build_google_auth_url
from autoply.orchestrator import CANCEL, CONFIRM, Orchestrator
from autoply.services import ApplicationService, TokenService, UserService
from autoply.storage.sqlite_store import StoredUser

logger = logging.getLogger(__name__)

CONFIRM_CALLBACK = "confirm_send"
CANCEL_CALLBACK = "cancel_send"

WELCOME_TEXT = """Welcome to Autoply Bot!

I help you apply for jobs by generating professional application emails.

To get started:
1. Upload your CV (PDF or DOC)
2. Connect your Gmail with /connect
3. Share a job description and I'll draft an email

Commands:
/cv - Check CV status
/connect - Connect Gmail account
/history - View sent applications"""

APOLOGY_TEXT = "I'm sorry, something went wrong. Please try again."


class TelegramClient:
    """Summary: Minimal Telegram Bot API client.

    Importance: Covers sending text, inline Send/Cancel buttons, callbacks, and file downloads.
    Alternatives: Use a full bot framework.
    """

    def __init__(self, bot_token: str, api_url: str = "https://api.telegram.org") -> None:
        self._bot_token = bot_token
        self._api_url = api_url.rstrip("/")

    def send_message(self, chat_id: int, text: str) -> None:
        self._call("sendMessage", {"chat_id": chat_id, "text": text})

    def send_confirmation(self, chat_id: int, text: str) -> None:
        self._call(
            "sendMessage",
            {
                "chat_id": chat_id,
                "text": text,
                "reply_markup": {
                    "inline_keyboard": [
                        [
                            {"text": "Send", "callback_data": CONFIRM_CALLBACK},
                            {"text": "Cancel", "callback_data": CANCEL_CALLBACK},
                        ]
                    ]
                },
            },
        )

    def answer_callback(self, callback_id: str) -> None:
        self._call("answerCallbackQuery", {"callback_query_id": callback_id})

    def download_file(self, file_id: str) -> bytes:
        """Summary: Resolve a file id and download its bytes."""

        result = self._call("getFile", {"file_id": file_id})
        file_path = (result or {}).get("file_path")
        if not file_path:
            raise RuntimeError("Telegram did not return a file path")
        url = f"{self._api_url}/file/bot{self._bot_token}/{urllib.parse.quote(file_path)}"
        try:
            with urllib.request.urlopen(url, timeout=30) as response:
                return response.read()
        except urllib.error.URLError as exc:
            raise RuntimeError(f"Telegram file download failed: {exc}") from exc

    def _call(self, method: str, payload: dict[str, Any]) -> Any:
        request = urllib.request.Request(
            url=f"{self._api_url}/bot{self._bot_token}/{method}",
            data=json.dumps(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=30) as response:
                raw = json.loads(response.read().decode("utf-8"))
        except urllib.error.URLError as exc:
            raise RuntimeError(f"Telegram {method} failed: {exc}") from exc
        if not raw.get("ok"):
            raise RuntimeError(f"Telegram {method} failed: {raw.get('description')}")
        return raw.get("result")


@dataclass(frozen=True)
class TelegramBot:
    """Summary: Handles Telegram updates end to end.

    Importance: Maps commands, uploads, chat text, and button presses onto services.
    Alternatives: Separate handlers per update type registered with a framework.
    """

    client: TelegramClient
    orchestrator: Orchestrator
    users: UserService
    tokens: TokenService
    applications: ApplicationService
    config: AppConfig

    def handle_update(self, update: dict[str, Any]) -> None:
        """Summary: Entry point for one webhook update."""

        callback = update.get("callback_query")
        if callback:
            self._handle_callback(callback)
            return
        message = update.get("message")
        if not message:
            return
        sender = message.get("from") or {}
        if "id" not in sender:
            return
        chat_id = message["chat"]["id"]
        user = self.users.get_or_create(
            str(sender["id"]), sender.get("first_name"), sender.get("last_name")
        )
        try:
            if message.get("document"):
                self._handle_document(message["document"], user, chat_id)
            elif message.get("text"):
                self._handle_text(message["text"], user, chat_id)
        except Exception:
            logger.exception("Failed to handle update %s.", update.get("update_id"))
            self.client.send_message(chat_id, APOLOGY_TEXT)

    def _handle_text(self, text: str, user: StoredUser, chat_id: int) -> None:
        command = text.strip().lower()
        if command == "/start":
            self.client.send_message(chat_id, WELCOME_TEXT)
            return
        if command == "/cv":
            if user.cv_storage_key:
                reply = "Your CV is on file. Send a new one to replace it."
            else:
                reply = "No CV uploaded yet. Please send your CV as a PDF or DOC file."
            self.client.send_message(chat_id, reply)
            return
        if command == "/connect":
            self.client.send_message(chat_id, self._connect_text(user))
            return
        if command == "/history":
            self.client.send_message(chat_id, self._history_text(user))
            return

        if not user.cv_storage_key:
            self.client.send_message(
                chat_id, "Please upload your CV first before I can help with job applications."
            )
            return
        try:
            document_text = self.users.load_cv_text(user)
        except UnsupportedFormat as exc:
            self.client.send_message(chat_id, f"{exc} Please upload a PDF or DOC file.")
            return
        result = self.orchestrator.turn(str(user.id), text, document_text)
        if result.confirmation_requested:
            self.client.send_confirmation(chat_id, result.response_text)
        else:
            self.client.send_message(chat_id, result.response_text)

    def _handle_document(self, document: dict[str, Any], user: StoredUser, chat_id: int) -> None:
        media_type = document.get("mime_type")
        try:
            data = self.client.download_file(document["file_id"]) if media_type else b""
            self.users.save_cv(user.id, data, media_type)
        except UnsupportedFormat:
            self.client.send_message(chat_id, "Please upload a PDF or DOC file.")
            return
        except RuntimeError:
            logger.exception("CV download failed for user %s.", user.id)
            self.client.send_message(chat_id, "Failed to download file.")
            return
        self.client.send_message(
            chat_id,
            "CV uploaded successfully! You can now share job descriptions and I'll help you apply.",
        )

    def _handle_callback(self, callback: dict[str, Any]) -> None:
        chat_id = (callback.get("message") or {}).get("chat", {}).get("id")
        data = callback.get("data")
        if not chat_id or not data:
            return
        user = self.users.store.get_user_by_telegram_id(str(callback["from"]["id"]))
        if user is None:
            return
        self.client.answer_callback(callback["id"])
        if data == CONFIRM_CALLBACK:
            decision = CONFIRM
        elif data == CANCEL_CALLBACK:
            decision = CANCEL
        else:
            return
        reply = self.orchestrator.resolve(
            str(user.id), decision, self.applications.dispatcher_for(user)
        )
        self.client.send_message(chat_id, reply)

    def _connect_text(self, user: StoredUser) -> str:
        if self.tokens.is_connected(user.id):
            emails = self.tokens.send_as_emails(user.id)
            if not emails:
                return "Gmail connected but no sender addresses found."
            default = user.selected_email or emails[0]
            listing = "\n".join(emails)
            return f"Gmail connected! Available sender emails:\n{listing}\n\nDefault: {default}"
        url = build_google_auth_url(self.config, user.telegram_id)
        return f"Please connect your Gmail account:\n\n{url}"

    def _history_text(self, user: StoredUser) -> str:
        applications = self.applications.recent(user.id, limit=5)
        if not applications:
            return "No applications sent yet."
        lines = [
            f"{index}. {item.job_summary}\n   Sent: {item.sent_at[:10]}"
            for index, item in enumerate(applications, start=1)
        ]
        return "Recent applications:\n\n" + "\n\n".join(lines)
